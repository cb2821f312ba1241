from __future__ import annotations

import uuid
from typing import Any, Callable

from fastapi import Request, Response

from tokenvault.core.logging_config import reset_request_id, set_request_id

REQUEST_ID_HEADER = "x-request-id"
MAX_REQUEST_ID_LENGTH = 128


def _new_request_id() -> str:
    return uuid.uuid4().hex


async def request_context_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """
    Request-scoped context:
    - take the caller's X-Request-ID, or mint one if absent
    - keep it in a contextvar so every log line of the request carries it
    - echo it back on the response
    """
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:MAX_REQUEST_ID_LENGTH] or _new_request_id()
    token = set_request_id(rid)
    try:
        resp = await call_next(request)
        resp.headers.setdefault(REQUEST_ID_HEADER, rid)
        return resp
    finally:
        reset_request_id(token)
