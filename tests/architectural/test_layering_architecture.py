"""Architectural tests for the form runtime package layout.

Static inspection only (``ast``); nothing under ``form_runtime`` is imported,
so these checks cannot be affected by runtime configuration.
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Iterator, List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[2]
PACKAGE = ROOT / "form_runtime"


def _modules(subdir: str = "") -> List[Path]:
    base = PACKAGE / subdir if subdir else PACKAGE
    assert base.is_dir(), f"missing package directory: {base}"
    return sorted(p for p in base.rglob("*.py") if "__pycache__" not in p.parts)


def _parse(path: Path) -> ast.Module:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def _imports(tree: ast.AST) -> Iterator[str]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name
        elif isinstance(node, ast.ImportFrom) and node.module:
            yield node.module


def _rel(path: Path) -> str:
    return str(path.relative_to(ROOT))


@pytest.mark.parametrize("path", _modules("logic") + _modules("models"), ids=_rel)
def test_engine_modules_do_not_depend_on_the_web_layer(path):
    offending = [
        name
        for name in _imports(_parse(path))
        if name.split(".")[0] in {"fastapi", "starlette", "uvicorn"}
        or name.startswith(("form_runtime.routes", "form_runtime.http", "form_runtime.main"))
    ]
    assert offending == [], f"{_rel(path)} imports web-layer modules: {offending}"


@pytest.mark.parametrize("path", _modules(), ids=_rel)
def test_no_bare_except(path):
    bare = [node.lineno for node in ast.walk(_parse(path)) if isinstance(node, ast.ExceptHandler) and node.type is None]
    assert bare == [], f"bare except in {_rel(path)} at lines {bare}"


@pytest.mark.parametrize("path", _modules(), ids=_rel)
def test_no_dynamic_code_execution(path):
    calls = [
        node.func.id
        for node in ast.walk(_parse(path))
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in {"eval", "exec", "compile"}
    ]
    assert calls == [], f"{_rel(path)} calls {calls}"


def _routed_handlers(path: Path) -> List[ast.AST]:
    """Functions carrying a router decorator, sync or async."""
    handlers: List[ast.AST] = []
    for node in ast.walk(_parse(path)):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if any(
            isinstance(d, ast.Call) and isinstance(d.func, ast.Attribute) and isinstance(d.func.value, ast.Name) and d.func.value.id == "router"
            for d in node.decorator_list
        ):
            handlers.append(node)
    return handlers


def _handler_branches(path: Path) -> List[Tuple[str, int]]:
    """Decision statements inside route handlers."""
    found: List[Tuple[str, int]] = []
    for node in _routed_handlers(path):
        for inner in ast.walk(node):
            if isinstance(inner, (ast.For, ast.While, ast.If)):
                found.append((node.name, inner.lineno))
    return found


@pytest.mark.parametrize("path", _modules("routes"), ids=_rel)
def test_route_handlers_only_orchestrate(path):
    assert _handler_branches(path) == [], f"route handlers in {_rel(path)} contain decision logic"


@pytest.mark.parametrize("path", _modules("routes"), ids=_rel)
def test_route_handlers_run_on_the_event_loop(path):
    sync = [node.name for node in _routed_handlers(path) if isinstance(node, ast.FunctionDef)]
    assert sync == [], f"{_rel(path)} has threadpool (sync) handlers: {sync}"


def test_modules_that_log_use_a_module_logger():
    missing = []
    for path in _modules():
        source = path.read_text(encoding="utf-8")
        if "logger." in source and "logger = logging.getLogger(__name__)" not in source:
            missing.append(_rel(path))
    assert missing == [], f"modules logging without a module logger: {missing}"


def test_app_factory_does_not_instantiate_at_import():
    tree = _parse(PACKAGE / "main.py")
    top_level_calls = [
        node
        for node in tree.body
        if isinstance(node, (ast.Assign, ast.Expr)) and isinstance(getattr(node, "value", None), ast.Call)
    ]
    names = [ast.unparse(n.value.func) for n in top_level_calls]
    assert "create_app" not in names
    assert "FastAPI" not in names
