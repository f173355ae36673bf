"""Versioned API router: forms, fill sessions, expression tools and observation."""

from __future__ import annotations

from fastapi import APIRouter

from form_runtime.routes import expressions, forms, sessions, submissions

api_router = APIRouter()
for _module in (forms, sessions, expressions, submissions):
    api_router.include_router(_module.router)

__all__ = ["api_router"]
