"""ASGI middleware carrying a request id through a call.

The caller's ``X-Request-Id`` is reused when present, otherwise a uuid4 is
minted. The id is exposed to log records through ``request_id_var`` while the
request runs and echoed on the response.
"""

from __future__ import annotations

import uuid

from form_runtime.logging_setup import request_id_var


def _incoming_id(scope, header: bytes):  # type: ignore[no-untyped-def]
    for key, value in scope.get("headers") or []:
        if key.lower() == header:
            return value.decode("latin-1").strip() or None
    return None


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name
        self._header_key = header_name.lower().encode("latin-1")

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _incoming_id(scope, self._header_key) or str(uuid.uuid4())
        token = request_id_var.set(request_id)

        async def send_with_id(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = [h for h in message.get("headers") or [] if h[0].lower() != self._header_key]
                headers.append((self._header_key, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        finally:
            request_id_var.reset(token)


__all__ = ["RequestIdMiddleware"]
