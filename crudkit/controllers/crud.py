from __future__ import annotations

import logging
from typing import Any

from crudkit.controllers.context import RequestContext
from crudkit.controllers.gateway import AdapterModelGateway, DirectModelGateway, ModelGateway
from crudkit.core.config import CrudConfig
from crudkit.core.errors import ConfigurationError, CrudError, NotFound, PermissionDenied, ValidationFailure
from crudkit.schemas.results import ResultEnvelope
from crudkit.services.pager import pager_from_params
from crudkit.services.query_builder import is_truthy

_LOG = logging.getLogger("crudkit.controller")


def _is_new_key(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() in {"", "0"}
    return not value


class CrudController:
    """Base CRUD controller. Subclasses implement ``form_to_object``."""

    # Override with a method ``make_query(self, ctx, *args)`` to build
    # queries in the controller instead of the model.
    make_query = None

    def __init__(
        self,
        config: CrudConfig,
        *,
        model_cls: type | None = None,
        model_adapter: Any = None,
        form_class: type | None = None,
    ):
        self.config = config
        self.form_class = form_class
        if model_adapter is not None:
            if isinstance(model_adapter, type):
                model_adapter = model_adapter(model_name=config.model_name, model_meta=dict(config.model_meta))
            self.model_adapter = model_adapter
            self.gateway: ModelGateway = AdapterModelGateway(model_adapter)
        else:
            self.model_adapter = None
            self.gateway = DirectModelGateway(config.model_name, model_cls)

        if callable(getattr(self, "make_query", None)):
            self._query_maker = self.make_query
        elif self.gateway.can_make_query:
            self._query_maker = self.gateway.make_query
        else:
            self._query_maker = None

        self._form_reset = None
        if form_class is not None:
            for name in ("clear", "reset"):
                if callable(getattr(form_class, name, None)):
                    self._form_reset = name
                    break

    @property
    def model_name(self) -> str:
        return self.config.model_name

    @property
    def primary_key(self) -> str:
        return self.config.primary_key

    @property
    def default_template(self) -> str | None:
        return self.config.default_template

    @property
    def page_size(self) -> int:
        return self.config.page_size

    def throw_error(self, ctx: RequestContext, error: CrudError | str) -> bool:
        if isinstance(error, str):
            error = CrudError(error)
        if error.request_id is None:
            error.request_id = ctx.request_id
        ctx.add_error(error)
        _LOG.warning(
            "%s on %s/%s: %s request_id=%s",
            type(error).__name__,
            self.model_name,
            ctx.action,
            error.detail,
            error.request_id,
        )
        return False

    def has_errors(self, ctx: RequestContext) -> bool:
        return ctx.has_errors()

    def form(self, ctx: RequestContext | None = None):
        if self.form_class is None:
            return None
        form = self.form_class()
        if self._form_reset:
            getattr(form, self._form_reset)()
        return form

    def _stashed_form(self, ctx: RequestContext):
        form = ctx.stash.get("form")
        if form is None:
            form = self.form(ctx)
            if form is None:
                raise ConfigurationError(f"{type(self).__name__} has no form_class")
            ctx.stash["form"] = form
        return form

    def field_names(self, ctx: RequestContext | None = None) -> list[str]:
        form = ctx.stash.get("form") if ctx is not None else None
        form = form or self.form(ctx)
        if form is None or not callable(getattr(form, "field_names", None)):
            raise ConfigurationError(f"{type(self).__name__} cannot resolve field names")
        return list(form.field_names())

    def auto(self, ctx: RequestContext) -> bool:
        ctx.stash["form"] = self.form(ctx)
        return True

    def default(self, ctx: RequestContext) -> None:
        _LOG.warning("no action defined for the default() CRUD method")

    def fetch(self, ctx: RequestContext, object_id: Any) -> Any:
        ctx.stash["object_id"] = object_id
        _LOG.debug("fetching %s id = %s", self.model_name, object_id)
        key = {} if _is_new_key(object_id) else {self.primary_key: object_id}
        obj = self.gateway.fetch(ctx, **key)
        ctx.stash["object"] = obj
        if self.has_errors(ctx) or obj is None:
            self.throw_error(ctx, NotFound(f"No such {self.model_name}"))
        return obj

    def create(self, ctx: RequestContext) -> bool:
        self.fetch(ctx, 0)
        return self.edit(ctx)

    def edit(self, ctx: RequestContext) -> bool:
        if self.has_errors(ctx):
            return False
        if not self.can_write(ctx):
            return self.throw_error(ctx, PermissionDenied())
        self._stashed_form(ctx).init_form(ctx.stash["object"])
        ctx.stash["template"] = self.default_template
        return True

    def view(self, ctx: RequestContext) -> bool:
        if self.has_errors(ctx):
            return False
        if not self.can_read(ctx):
            return self.throw_error(ctx, PermissionDenied())
        self._stashed_form(ctx).init_form(ctx.stash["object"])
        return True

    def _write_method_allowed(self, ctx: RequestContext) -> bool:
        if self.config.allow_get_writes or ctx.is_write_method:
            return True
        self.throw_error(ctx, PermissionDenied(f"{ctx.method} request not allowed"))
        return False

    def save(self, ctx: RequestContext) -> bool:
        if not self._write_method_allowed(ctx):
            return False

        if is_truthy(ctx.params, "_delete"):
            ctx.action = "rm"
            return self.rm(ctx)

        if self.has_errors(ctx):
            return False
        if not self.can_write(ctx):
            return self.throw_error(ctx, PermissionDenied())

        obj = self.form_to_object(ctx)
        if not obj:
            _LOG.debug("form_to_object() returned nothing for %s", self.model_name)
            return False

        if not self.precommit(ctx, obj):
            ctx.stash["template"] = ctx.stash.get("template") or self.default_template
            return False
        self.save_obj(ctx, obj)
        self.postcommit(ctx, obj)
        return True

    def rm(self, ctx: RequestContext) -> bool:
        if not self._write_method_allowed(ctx):
            return False
        if self.has_errors(ctx):
            return False
        if not self.can_write(ctx):
            return self.throw_error(ctx, PermissionDenied())
        # A blank object from fetch(0) was never stored.
        if _is_new_key(ctx.stash.get("object_id")):
            return self.throw_error(ctx, NotFound(f"No such {self.model_name}"))

        obj = ctx.stash.get("object")
        if not self.precommit(ctx, obj):
            return False
        self.gateway.delete(ctx, obj)
        self.postcommit(ctx, obj)
        return True

    def list(self, ctx: RequestContext, *args: Any):
        if not self.can_read(ctx):
            return self.throw_error(ctx, PermissionDenied())
        return self.do_search(ctx, *args)

    def search(self, ctx: RequestContext, *args: Any):
        if not self.can_read(ctx):
            return self.throw_error(ctx, PermissionDenied())
        return self.do_search(ctx, *args)

    def count(self, ctx: RequestContext, *args: Any):
        if not self.can_read(ctx):
            return self.throw_error(ctx, PermissionDenied())
        ctx.stash["fetch_no_results"] = True
        return self.do_search(ctx, *args)

    def can_read(self, ctx: RequestContext) -> bool:
        return True

    def can_write(self, ctx: RequestContext) -> bool:
        return True

    def form_to_object(self, ctx: RequestContext) -> Any:
        raise ConfigurationError(f"{type(self).__name__} must override form_to_object()")

    def save_obj(self, ctx: RequestContext, obj: Any) -> Any:
        # Create vs update follows the key given to fetch(), not the object state.
        if _is_new_key(ctx.stash.get("object_id")):
            return self.gateway.create(ctx, obj)
        return self.gateway.update(ctx, obj)

    def precommit(self, ctx: RequestContext, obj: Any) -> bool:
        return True

    def postcommit(self, ctx: RequestContext, obj: Any) -> bool:
        if ctx.action == "rm":
            ctx.redirect(ctx.uri_for(""))
        else:
            ctx.redirect(ctx.uri_for(getattr(obj, self.primary_key), "view"))
        return True

    def view_on_single_result(self, ctx: RequestContext, results: Any) -> str | None:
        if not self.config.view_on_single_result:
            return None
        obj = results[0]
        return ctx.uri_for(str(getattr(obj, self.primary_key)), "edit" if self.can_write(ctx) else "view")

    def do_search(self, ctx: RequestContext, *args: Any):
        if "form" not in ctx.stash or ctx.stash["form"] is None:
            ctx.stash["form"] = self.form(ctx)

        if not args and not ctx.has_params() and ctx.action == "search":
            return None

        ctx.stash.setdefault("view_on_single_result", True)

        if self._query_maker is None:
            raise ConfigurationError("neither controller nor model implement a make_query() method")
        query = self._query_maker(ctx, *args)

        count = self.gateway.count(ctx, query) or 0
        results = None
        if not ctx.stash.get("fetch_no_results"):
            results = self.gateway.search(ctx, query)

        if results and count == 1 and ctx.stash["view_on_single_result"]:
            uri = self.view_on_single_result(ctx, results)
            if uri:
                ctx.redirect(uri)
                return None

        pager = None
        if count:
            if self.gateway.can_make_pager:
                pager = self.gateway.make_pager(ctx, count, results)
            else:
                pager = pager_from_params(
                    ctx.params,
                    count,
                    page_size=self.config.page_size,
                    max_page_size=self.config.max_page_size,
                    pages_per_set=self.config.pages_per_set,
                )

        if self.config.naked_results:
            ctx.stash["results"] = results
        else:
            ctx.stash["results"] = ResultEnvelope(count=count, query=query, rows=list(results or []), pager=pager)
        return ctx.stash["results"]


class FormCrudController(CrudController):
    def form_to_object(self, ctx: RequestContext) -> Any:
        form = self._stashed_form(ctx)
        obj = ctx.stash.get("object")
        cleaned = form.validate(ctx.params)
        if cleaned is None:
            self.throw_error(ctx, ValidationFailure(f"Invalid {self.model_name}", getattr(form, "errors", None)))
            ctx.stash["template"] = self.default_template
            return None
        for name, value in cleaned.items():
            setattr(obj, name, value)
        return obj
