from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ValidationError


class PydanticForm:
    """Form backed by a pydantic ``schema``."""

    schema: type[BaseModel] | None = None

    def __init__(self, schema: type[BaseModel] | None = None):
        self.schema = schema or type(self).schema
        if self.schema is None:
            raise TypeError(f"{type(self).__name__} needs a pydantic schema")
        self.values: dict[str, Any] = {}
        self.errors: list[dict[str, str]] = []

    def field_names(self) -> list[str]:
        return list(self.schema.model_fields)

    def init_form(self, obj: Any) -> None:
        self.values = {name: getattr(obj, name, None) for name in self.field_names()}

    def _submitted(self, params: Mapping[str, Any]) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for name in self.field_names():
            if name not in params:
                continue
            raw = params[name]
            if isinstance(raw, (list, tuple)):
                raw = raw[0] if raw else None
            if isinstance(raw, str) and not raw.strip():
                raw = None
            data[name] = raw
        return data

    def validate(self, params: Mapping[str, Any]) -> dict[str, Any] | None:
        data = self._submitted(params)
        self.values = dict(data)
        try:
            cleaned = self.schema.model_validate(data)
        except ValidationError as exc:
            self.errors = [
                {"field": ".".join(str(part) for part in err.get("loc", ())), "message": str(err.get("msg") or "")}
                for err in exc.errors()
            ]
            return None
        self.errors = []
        return cleaned.model_dump(include=set(data))

    def clear(self) -> None:
        self.values = {}
        self.errors = []
