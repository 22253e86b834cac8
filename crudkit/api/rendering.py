from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.inspection import inspect as sa_inspect

from crudkit.schemas.results import ResultEnvelope
from crudkit.services.pager import Pager


def _serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def _row_to_dict(row: Any) -> dict[str, Any] | Any:
    if row is None:
        return None
    if isinstance(row, BaseModel):
        return _serialize_value(row.model_dump())
    if isinstance(row, dict):
        return _serialize_value(row)
    try:
        mapper = sa_inspect(type(row))
    except NoInspectionAvailable:
        mapper = None
    if mapper is not None:
        return {column.key: _serialize_value(getattr(row, column.key)) for column in mapper.columns}
    if hasattr(row, "__dict__"):
        return {k: _serialize_value(v) for k, v in vars(row).items() if not k.startswith("_")}
    return _serialize_value(row)


def _form_payload(form: Any) -> dict[str, Any] | None:
    if form is None:
        return None
    return {
        "fields": list(form.field_names()) if callable(getattr(form, "field_names", None)) else [],
        "values": _serialize_value(getattr(form, "values", {}) or {}),
        "errors": list(getattr(form, "errors", []) or []),
    }


def _results_payload(results: Any) -> Any:
    if isinstance(results, ResultEnvelope):
        return {
            "count": results.count,
            "pager": results.pager.as_dict() if isinstance(results.pager, Pager) else results.pager,
            "rows": [_row_to_dict(row) for row in results.rows],
            "query": results.query.model_dump(),
            "sort_by": results.query.sort_by,
            "plain_query_str": results.query.plain_query_str,
        }
    if isinstance(results, (list, tuple)):
        return [_row_to_dict(row) for row in results]
    return results


def render_response(stash: dict[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if "template" in stash:
        payload["template"] = stash["template"]
    if "object_id" in stash:
        payload["object_id"] = _serialize_value(stash["object_id"])
    if "object" in stash:
        payload["object"] = _row_to_dict(stash["object"])
    if "form" in stash:
        payload["form"] = _form_payload(stash["form"])
    if "results" in stash:
        payload["results"] = _results_payload(stash["results"])
    return payload
