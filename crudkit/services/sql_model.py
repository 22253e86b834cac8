from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from sqlalchemy import and_, asc, desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Query, Session

from crudkit.core.config import CrudConfig
from crudkit.core.errors import ValidationFailure
from crudkit.schemas.query import FieldFilter, QueryDescriptor
from crudkit.services.pager import Pager, pager_from_params
from crudkit.services.query_builder import QueryBuilder

_LOG = logging.getLogger("crudkit.sql")

_RANGE_TYPES = (int, float, Decimal, date, datetime)


def _bad_filter_value(column_key: str, kind: str) -> ValidationFailure:
    return ValidationFailure(f'Invalid filter value for "{column_key}" ({kind})')


def _column_python_type(column) -> type | None:
    try:
        return column.type.python_type
    except (AttributeError, NotImplementedError):
        return None


def _coerce_bool(column_key: str, value: str) -> bool:
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise _bad_filter_value(column_key, "boolean")


def _coerce_number(column_key: str, value: str, python_type: type):
    text = str(value).strip().replace(",", ".")
    if not text:
        raise _bad_filter_value(column_key, "number")
    try:
        if python_type is int:
            return int(text)
        if python_type is float:
            return float(text)
        return Decimal(text)
    except (ValueError, InvalidOperation):
        raise _bad_filter_value(column_key, "number")


def _pad_date_prefix(text: str) -> str:
    # "2020" -> "2020-01-01", "2020-05" -> "2020-05-01"
    parts = [p for p in text.strip().rstrip("-").split("-") if p]
    while len(parts) < 3:
        parts.append("01")
    return "-".join(part.zfill(2) for part in parts[:3])


def _coerce_date(column_key: str, value: str, *, prefix: bool = False) -> date:
    text = str(value or "").strip()
    if prefix and "T" not in text and " " not in text:
        text = _pad_date_prefix(text)
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, "date")


def _coerce_datetime(column_key: str, value: str, *, prefix: bool = False) -> datetime:
    text = str(value or "").strip()
    try:
        if "T" not in text and " " not in text:
            parsed = datetime.combine(_coerce_date(column_key, text, prefix=prefix), datetime.min.time())
        else:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise _bad_filter_value(column_key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_value(column, value: str, *, prefix: bool = False) -> Any:
    """Convert a submitted string to the column's Python type.

    ``prefix`` marks a wildcard prefix ("2020" out of "2020%"), which is
    padded to a full date for temporal columns.
    """
    python_type = _column_python_type(column)
    key = column.key
    if python_type is None or python_type is str:
        return value
    if python_type is uuid.UUID:
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise _bad_filter_value(key, "uuid")
    if python_type is bool:
        return _coerce_bool(key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number(key, value, python_type)
    if python_type is datetime:
        return _coerce_datetime(key, value, prefix=prefix)
    if python_type is date:
        return _coerce_date(key, value, prefix=prefix)
    return value


def _columns_map(model: type) -> dict[str, Any]:
    mapper = sa_inspect(model)
    return {column.key: column for column in mapper.columns}


def _filter_clause(column, f: FieldFilter):
    if f.op == "EQUALS":
        values = [coerce_value(column, v) for v in f.values]
        if len(values) == 1:
            return column == values[0]
        return column.in_(values)
    if f.op == "NOT_EQUALS":
        values = [coerce_value(column, v) for v in f.values]
        if len(values) == 1:
            return column != values[0]
        return column.not_in(values)
    if f.op == "LIKE":
        method = column.ilike if f.token == "ilike" else column.like
        return or_(*[method(v) for v in f.values])
    if f.op == "RANGE_GE":
        return or_(*[column >= coerce_value(column, v, prefix=True) for v in f.values])
    raise ValueError(f"unsupported filter op {f.op!r}")


def apply_filters(q: Query, model: type, descriptor: QueryDescriptor) -> Query:
    columns = _columns_map(model)
    clauses = []
    for f in descriptor.filters:
        column = columns.get(f.field)
        if column is None:
            continue
        if not f.values:
            continue
        clauses.append(_filter_clause(column, f))
    if not clauses:
        return q
    combine = or_ if descriptor.logical_op == "OR" else and_
    return q.filter(combine(*clauses))


def apply_query_descriptor(q: Query, model: type, descriptor: QueryDescriptor) -> Query:
    q = apply_filters(q, model, descriptor)
    columns = _columns_map(model)
    for s in descriptor.sort:
        column = columns.get(s.column)
        if column is None:
            continue
        q = q.order_by(desc(column) if s.direction == "DESC" else asc(column))
    if descriptor.paged:
        q = q.offset(descriptor.offset).limit(descriptor.limit)
    return q


class SqlAlchemyModel:
    def __init__(
        self,
        db: Session,
        model_cls: type,
        ctx=None,
        *,
        config: CrudConfig | None = None,
        field_names: Sequence[str] | None = None,
    ):
        self.db = db
        self.model_cls = model_cls
        self.context = ctx
        self._config = config
        self.field_names = list(field_names) if field_names else None

    @property
    def config(self) -> CrudConfig:
        if self._config is not None:
            return self._config
        controller = getattr(self.context, "controller", None)
        if controller is not None:
            return controller.config
        return CrudConfig(model_name=self.model_cls.__name__)

    def new_object(self, **values: Any) -> Any:
        return self.model_cls(**values)

    def fetch(self, **key: Any) -> Any:
        if not key:
            return self.new_object()
        columns = _columns_map(self.model_cls)
        q = self.db.query(self.model_cls)
        for name, raw in key.items():
            column = columns.get(name)
            if column is None:
                return None
            try:
                value = coerce_value(column, raw) if isinstance(raw, str) else raw
            except ValidationFailure:
                return None
            q = q.filter(column == value)
        return q.first()

    def search(self, query: QueryDescriptor) -> list[Any]:
        return apply_query_descriptor(self.db.query(self.model_cls), self.model_cls, query).all()

    def count(self, query: QueryDescriptor) -> int:
        return apply_filters(self.db.query(self.model_cls), self.model_cls, query).count()

    def _commit(self, obj: Any) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            _LOG.warning("integrity error persisting %s", self.model_cls.__name__)
            raise ValidationFailure("Data constraint violated")
        if obj is not None:
            self.db.refresh(obj)

    def create(self, obj: Any) -> Any:
        self.db.add(obj)
        self._commit(obj)
        return obj

    def update(self, obj: Any) -> Any:
        self.db.add(obj)
        self._commit(obj)
        return obj

    def delete(self, obj: Any) -> None:
        self.db.delete(obj)
        self._commit(None)

    def treat_like_int(self) -> set[str]:
        return {
            name
            for name, column in _columns_map(self.model_cls).items()
            if _column_python_type(column) in _RANGE_TYPES
        }

    def _field_names_from_controller(self) -> list[str] | None:
        controller = getattr(self.context, "controller", None)
        if controller is None:
            return None
        return controller.field_names(self.context)

    def make_query(self, field_names: Sequence[str] | None = None) -> QueryDescriptor:
        params = getattr(self.context, "params", {}) or {}
        builder = QueryBuilder(self.config, treat_like_int=self.treat_like_int())
        return builder.build(field_names or self.field_names, params, self._field_names_from_controller)

    def make_pager(self, count: int, results: Any = None) -> Pager | None:
        params = getattr(self.context, "params", {}) or {}
        return pager_from_params(
            params,
            count,
            page_size=self.config.page_size,
            max_page_size=self.config.max_page_size,
            pages_per_set=self.config.pages_per_set,
        )
