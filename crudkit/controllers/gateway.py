from __future__ import annotations

from typing import Any, Protocol

from crudkit.controllers.context import RequestContext
from crudkit.schemas.query import QueryDescriptor


class ModelGateway(Protocol):
    """Persistence calls made by the controller."""

    can_make_query: bool
    can_make_pager: bool

    def fetch(self, ctx: RequestContext, **key: Any) -> Any:
        ...

    def search(self, ctx: RequestContext, query: Any) -> list[Any]:
        ...

    def count(self, ctx: RequestContext, query: Any) -> int:
        ...

    def create(self, ctx: RequestContext, obj: Any) -> Any:
        ...

    def update(self, ctx: RequestContext, obj: Any) -> Any:
        ...

    def delete(self, ctx: RequestContext, obj: Any) -> Any:
        ...

    def make_query(self, ctx: RequestContext, *args: Any) -> QueryDescriptor:
        ...

    def make_pager(self, ctx: RequestContext, count: int, results: Any) -> Any:
        ...


class DirectModelGateway:
    """Calls the request-scoped model from ``ctx.model(name)``."""

    def __init__(self, model_name: str, model_cls: type | None = None):
        self.model_name = model_name
        self.can_make_query = callable(getattr(model_cls, "make_query", None))
        self.can_make_pager = callable(getattr(model_cls, "make_pager", None))

    def _model(self, ctx: RequestContext) -> Any:
        return ctx.model(self.model_name)

    def fetch(self, ctx: RequestContext, **key: Any) -> Any:
        return self._model(ctx).fetch(**key)

    def search(self, ctx: RequestContext, query: Any) -> list[Any]:
        return self._model(ctx).search(query)

    def count(self, ctx: RequestContext, query: Any) -> int:
        return self._model(ctx).count(query)

    def create(self, ctx: RequestContext, obj: Any) -> Any:
        return self._model(ctx).create(obj)

    def update(self, ctx: RequestContext, obj: Any) -> Any:
        return self._model(ctx).update(obj)

    def delete(self, ctx: RequestContext, obj: Any) -> Any:
        return self._model(ctx).delete(obj)

    def make_query(self, ctx: RequestContext, *args: Any) -> QueryDescriptor:
        return self._model(ctx).make_query(*args)

    def make_pager(self, ctx: RequestContext, count: int, results: Any) -> Any:
        return self._model(ctx).make_pager(count, results)


class AdapterModelGateway:
    """Calls a long-lived model adapter, passing the request context along."""

    def __init__(self, adapter: Any):
        self.adapter = adapter
        self.can_make_query = callable(getattr(adapter, "make_query", None))
        self.can_make_pager = callable(getattr(adapter, "make_pager", None))

    def fetch(self, ctx: RequestContext, **key: Any) -> Any:
        return self.adapter.fetch(ctx, **key)

    def search(self, ctx: RequestContext, query: Any) -> list[Any]:
        return self.adapter.search(ctx, query)

    def count(self, ctx: RequestContext, query: Any) -> int:
        return self.adapter.count(ctx, query)

    def create(self, ctx: RequestContext, obj: Any) -> Any:
        return self.adapter.create(ctx, obj)

    def update(self, ctx: RequestContext, obj: Any) -> Any:
        return self.adapter.update(ctx, obj)

    def delete(self, ctx: RequestContext, obj: Any) -> Any:
        return self.adapter.delete(ctx, obj)

    def make_query(self, ctx: RequestContext, *args: Any) -> QueryDescriptor:
        return self.adapter.make_query(ctx, *args)

    def make_pager(self, ctx: RequestContext, count: int, results: Any) -> Any:
        return self.adapter.make_pager(ctx, count, results)
