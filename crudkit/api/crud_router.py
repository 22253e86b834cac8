from __future__ import annotations

import json
import logging
from typing import Any, Callable
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from crudkit.api.rendering import render_response
from crudkit.controllers.context import WRITE_METHODS, RequestContext
from crudkit.controllers.crud import CrudController
from crudkit.core.errors import CrudError
from crudkit.core.http_hardening import note_crud_outcome, request_id_of

_LOG = logging.getLogger("crudkit.api")


async def request_params(request: Request) -> dict[str, list[str]]:
    params: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, []).append(value)
    if request.method not in WRITE_METHODS:
        return params
    body = await request.body()
    if not body:
        return params
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body must be valid JSON")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")
        for key, value in payload.items():
            values = value if isinstance(value, list) else [value]
            params.setdefault(str(key), []).extend("" if v is None else str(v) for v in values)
    elif "application/x-www-form-urlencoded" in content_type:
        for key, value in parse_qsl(body.decode("utf-8"), keep_blank_values=True):
            params.setdefault(key, []).append(value)
    return params


def _no_models() -> dict:
    return {}


def build_crud_router(
    controller: CrudController,
    *,
    prefix: str = "",
    models_dependency: Callable[..., Any] = _no_models,
    tags: list[str] | None = None,
) -> APIRouter:
    """Expose a controller's actions as FastAPI routes under ``prefix``."""
    router = APIRouter(prefix=prefix, tags=tags or [controller.model_name])

    def _context(request: Request, action: str, params: dict[str, list[str]], models: Any) -> RequestContext:
        return RequestContext(
            method=request.method,
            params=params,
            action=action,
            base_path=str(request.scope.get("root_path") or "") + prefix,
            models=models or {},
            controller=controller,
            request_id=request_id_of(request),
        )

    def _run(request: Request, ctx: RequestContext, *steps: Callable[[RequestContext], Any]):
        try:
            controller.auto(ctx)
            for step in steps:
                step(ctx)
        except CrudError as exc:
            exc.request_id = exc.request_id or ctx.request_id
            ctx.add_error(exc)
            _LOG.warning(
                "%s %s failed: %s request_id=%s",
                controller.model_name,
                ctx.action,
                exc.detail,
                exc.request_id,
            )
            raise exc.to_http()
        finally:
            note_crud_outcome(request, ctx)
        if ctx.errors:
            raise ctx.errors[0].to_http()
        if ctx.redirect_to:
            return RedirectResponse(ctx.redirect_to, status_code=303)
        return JSONResponse(render_response(ctx.stash))

    @router.get("/create")
    def create(request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(request, _context(request, "create", params, models), controller.create)

    @router.get("/list")
    def list_objects(request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(request, _context(request, "list", params, models), controller.list)

    @router.get("/search")
    def search(request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(request, _context(request, "search", params, models), controller.search)

    @router.get("/count")
    def count(request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(request, _context(request, "count", params, models), controller.count)

    @router.get("/{object_id}/view")
    def view(object_id: str, request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(
            request,
            _context(request, "view", params, models),
            lambda ctx: controller.fetch(ctx, object_id),
            controller.view,
        )

    @router.get("/{object_id}/edit")
    def edit(object_id: str, request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(
            request,
            _context(request, "edit", params, models),
            lambda ctx: controller.fetch(ctx, object_id),
            controller.edit,
        )

    @router.api_route("/{object_id}/save", methods=["GET", "POST"])
    def save(object_id: str, request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(
            request,
            _context(request, "save", params, models),
            lambda ctx: controller.fetch(ctx, object_id),
            controller.save,
        )

    @router.api_route("/{object_id}/rm", methods=["GET", "POST"])
    def rm(object_id: str, request: Request, params=Depends(request_params), models=Depends(models_dependency)):
        return _run(
            request,
            _context(request, "rm", params, models),
            lambda ctx: controller.fetch(ctx, object_id),
            controller.rm,
        )

    return router
