from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence

from crudkit.core.errors import ConfigurationError
from crudkit.schemas.query import FieldFilter, LogicalOp, QueryDescriptor, SortClause

_LOG = logging.getLogger("crudkit.query")

WILDCARD = "%"
ALT_WILDCARD = "*"
NEGATION = "!"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
_FALSE_TOKENS = {"", "0", "false", "no", "off"}
_SORT_SPLIT_RE = re.compile(r"[\s,]+")
_DIRECTIONS = {"ASC", "DESC"}

Params = Mapping[str, Any]


def param_values(params: Params, name: str) -> list[str]:
    raw = params.get(name)
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return ["" if v is None else str(v) for v in raw]
    return [str(raw)]


def first_param(params: Params, name: str) -> str | None:
    values = param_values(params, name)
    return values[0] if values else None


def is_truthy(params: Params, name: str) -> bool:
    value = first_param(params, name)
    if value is None:
        return False
    return value.strip().lower() not in _FALSE_TOKENS


def int_param(params: Params, name: str, default: int, *, minimum: int = 0) -> int:
    text = (first_param(params, name) or "").strip()
    if not text:
        return default
    try:
        value = int(text)
    except ValueError:
        return default
    if value < minimum:
        return default if value == 0 else minimum
    return value


def _has_wildcard(value: str) -> bool:
    return WILDCARD in value or ALT_WILDCARD in value


@dataclass
class FilterSet:
    filters: list[FieldFilter] = field(default_factory=list)
    logical_op: LogicalOp = "AND"
    raw_params: dict[str, list[str]] = field(default_factory=dict)


def params_to_filters(
    field_names: Iterable[str],
    params: Params,
    *,
    ne_sign: str = "!=",
    use_ilike: bool = False,
    treat_like_int: Iterable[str] = (),
    fuzzy: bool | None = None,
    or_requested: bool | None = None,
) -> FilterSet:
    """Turn submitted request params into per-field filters.

    Values containing ``%`` or ``*`` become LIKE filters (or ``>=`` on the
    numeric prefix for integer-like fields), values starting with ``!``
    become not-equal filters, and anything else is an exact match. Fields
    without a non-blank value are skipped. ``params`` is never modified.
    """
    like_token = "ilike" if use_ilike else "like"
    int_like = set(treat_like_int or ())
    if fuzzy is None:
        fuzzy = is_truthy(params, "_fuzzy")
    if or_requested is None:
        or_requested = (first_param(params, "_op") or "").strip() == "OR"

    result = FilterSet()
    for name in field_names:
        if name not in params:
            continue
        values = param_values(params, name)
        if not any(v.strip() for v in values):
            continue
        result.raw_params[name] = list(values)

        copy = list(values)
        if fuzzy:
            copy = [v if _has_wildcard(v) else v + WILDCARD for v in copy]

        if not any(_has_wildcard(v) or v.startswith(NEGATION) for v in copy):
            exact = [v for v in copy if v.strip()]
            result.filters.append(FieldFilter(field=name, op="EQUALS", values=exact, token="=", raw_values=values))
            continue

        copy = [v.replace(ALT_WILDCARD, WILDCARD) for v in copy]
        wild = [v for v in copy if WILDCARD in v]
        if wild:
            if name in int_like:
                prefixes = [v.split(WILDCARD, 1)[0] for v in wild]
                prefixes = [p for p in prefixes if p]
                if prefixes:
                    result.filters.append(FieldFilter(field=name, op="RANGE_GE", values=prefixes, token=">=", raw_values=values))
            else:
                result.filters.append(FieldFilter(field=name, op="LIKE", values=wild, token=like_token, raw_values=values))

        negated = [v[len(NEGATION):] for v in copy if v.startswith(NEGATION)]
        if negated:
            result.filters.append(FieldFilter(field=name, op="NOT_EQUALS", values=negated, token=ne_sign, raw_values=values))

    # Counted per emitted filter, not per field: a single field that yields
    # both a LIKE and a not-equal filter is enough to switch to OR.
    if or_requested and len(result.filters) > 1:
        result.logical_op = "OR"
    return result


def parse_sort_order(expression: str | None) -> list[SortClause]:
    """Parse ``"name ASC, age desc"`` (commas optional) into sort clauses."""
    tokens = [t for t in _SORT_SPLIT_RE.split(expression or "") if t]
    clauses: list[SortClause] = []
    index = 0
    while index < len(tokens):
        column = tokens[index]
        index += 1
        if column.upper() in _DIRECTIONS:
            continue
        direction = "ASC"
        if index < len(tokens) and tokens[index].upper() in _DIRECTIONS:
            direction = tokens[index].upper()
            index += 1
        clauses.append(SortClause(column=column, direction=direction))
    return clauses


def _sort_expression(params: Params, primary_key: str) -> str:
    order = (first_param(params, "_order") or "").strip()
    if order:
        return order
    sort_column = (first_param(params, "_sort") or "").strip()
    if sort_column:
        direction = (first_param(params, "_dir") or "").strip().upper()
        if direction not in _DIRECTIONS:
            direction = "ASC"
        return f"{sort_column} {direction}"
    return f"{primary_key} DESC"


def query_as_string(raw_params: Mapping[str, Sequence[str]], op: str = "AND") -> str:
    parts = []
    for name in sorted(raw_params):
        values = list(raw_params[name])
        if not any(str(v).strip() for v in values):
            continue
        parts.append(f"{name} = " + " or ".join(values))
    return f" {op} ".join(parts)


def build_query(
    field_names: Sequence[str] | None,
    params: Params,
    *,
    primary_key: str = "id",
    page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
    ne_sign: str = "!=",
    use_ilike: bool = False,
    treat_like_int: Iterable[str] = (),
    field_names_resolver: Callable[[], Sequence[str] | None] | None = None,
) -> QueryDescriptor:
    if not field_names and field_names_resolver is not None:
        field_names = field_names_resolver()
    if not field_names:
        raise ConfigurationError("field_names required")

    filter_set = params_to_filters(
        field_names,
        params,
        ne_sign=ne_sign,
        use_ilike=use_ilike,
        treat_like_int=treat_like_int,
    )
    sort = parse_sort_order(_sort_expression(params, primary_key))

    limit: int | None = min(int_param(params, "_page_size", page_size, minimum=1), max_page_size)
    page = int_param(params, "_page", 1, minimum=1)
    if first_param(params, "_offset") is not None:
        offset: int | None = int_param(params, "_offset", 0, minimum=0)
    else:
        offset = (page - 1) * limit

    if is_truthy(params, "_no_page"):
        limit = None
        offset = None

    descriptor = QueryDescriptor(
        filters=filter_set.filters,
        logical_op=filter_set.logical_op,
        sort=sort,
        limit=limit,
        offset=offset,
        raw_params=filter_set.raw_params,
        plain_query_str=query_as_string(filter_set.raw_params, (first_param(params, "_op") or "AND").strip() or "AND"),
    )
    _LOG.debug(
        "built query filters=%d op=%s sort=%s limit=%s offset=%s",
        len(descriptor.filters),
        descriptor.logical_op,
        descriptor.sort_by,
        descriptor.limit,
        descriptor.offset,
    )
    return descriptor


class QueryBuilder:
    def __init__(self, config, treat_like_int: Iterable[str] = ()):
        self.config = config
        self.treat_like_int = set(treat_like_int or ())

    def parameters_to_filters(self, field_names: Iterable[str], params: Params) -> FilterSet:
        return params_to_filters(
            field_names,
            params,
            ne_sign=self.config.ne_sign,
            use_ilike=self.config.use_ilike,
            treat_like_int=self.treat_like_int,
        )

    def build(
        self,
        field_names: Sequence[str] | None,
        params: Params,
        field_names_resolver: Callable[[], Sequence[str] | None] | None = None,
    ) -> QueryDescriptor:
        return build_query(
            field_names,
            params,
            primary_key=self.config.primary_key,
            page_size=self.config.page_size,
            max_page_size=self.config.max_page_size,
            ne_sign=self.config.ne_sign,
            use_ilike=self.config.use_ilike,
            treat_like_int=self.treat_like_int,
            field_names_resolver=field_names_resolver,
        )
