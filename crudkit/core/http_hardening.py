from __future__ import annotations

import logging
import re
from time import perf_counter
from typing import TYPE_CHECKING
from uuid import uuid4

from fastapi import FastAPI, Request

if TYPE_CHECKING:
    from crudkit.controllers.context import RequestContext

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("crudkit.http")

RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store",
}


def _request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value or not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def request_id_of(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = _request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
    return request_id


def note_crud_outcome(request: Request, ctx: "RequestContext") -> None:
    request.state.crud_model = ctx.controller.model_name if ctx.controller is not None else None
    request.state.crud_action = ctx.action
    request.state.crud_errors = [type(err).__name__ for err in ctx.errors]


def _access_line(request: Request, status_code: int, duration_ms: float) -> tuple:
    action = getattr(request.state, "crud_action", None)
    if action is None:
        return (
            "%s %s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            status_code,
            duration_ms,
            request.state.request_id,
        )
    errors = getattr(request.state, "crud_errors", [])
    return (
        "%s %s crud=%s/%s errors=%d%s status=%s duration_ms=%.2f request_id=%s",
        request.method,
        request.url.path,
        getattr(request.state, "crud_model", None),
        action,
        len(errors),
        f" ({','.join(errors)})" if errors else "",
        status_code,
        duration_ms,
        request.state.request_id,
    )


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _crud_request_middleware(request: Request, call_next):
        request_id = request_id_of(request)
        started_at = perf_counter()

        response = await call_next(request)

        for key, value in RESPONSE_HEADERS.items():
            response.headers[key] = value
        response.headers[REQUEST_ID_HEADER] = request_id

        _LOG.info(*_access_line(request, response.status_code, (perf_counter() - started_at) * 1000.0))
        return response
