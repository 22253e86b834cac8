from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from crudkit.core.errors import ConfigurationError, CrudError

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
RESPONSE_KEYS = ("object", "form", "results", "template", "object_id")

ModelFactory = Callable[["RequestContext"], Any]


def normalize_params(raw: Mapping[str, Any] | None) -> dict[str, list[str]]:
    params: dict[str, list[str]] = {}
    for key, value in (raw or {}).items():
        if value is None:
            params[str(key)] = [""]
        elif isinstance(value, (list, tuple)):
            params[str(key)] = ["" if v is None else str(v) for v in value]
        else:
            params[str(key)] = [str(value)]
    return params


@dataclass
class RequestContext:
    method: str = "GET"
    params: dict[str, list[str]] = field(default_factory=dict)
    action: str = ""
    base_path: str = ""
    models: Mapping[str, ModelFactory] = field(default_factory=dict)
    controller: Any = None
    stash: dict[str, Any] = field(default_factory=dict)
    errors: list[CrudError] = field(default_factory=list)
    redirect_to: str | None = None
    request_id: str | None = None
    _resolved_models: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.method = str(self.method or "GET").upper()
        self.params = normalize_params(self.params)

    def param(self, name: str) -> str | None:
        values = self.params.get(name)
        return values[0] if values else None

    def has_params(self) -> bool:
        return bool(self.params)

    @property
    def is_write_method(self) -> bool:
        return self.method in WRITE_METHODS

    def add_error(self, error: CrudError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def model(self, name: str) -> Any:
        if name not in self._resolved_models:
            factory = self.models.get(name)
            if factory is None:
                raise ConfigurationError(f"no model registered as {name!r}")
            self._resolved_models[name] = factory(self)
        return self._resolved_models[name]

    def redirect(self, uri: str) -> None:
        self.redirect_to = uri

    def uri_for(self, *parts: Any) -> str:
        base = self.base_path.rstrip("/")
        tail = "/".join(str(p).strip("/") for p in parts if str(p).strip("/"))
        return f"{base}/{tail}" if tail else f"{base}/"

    def response(self) -> dict[str, Any]:
        return {key: self.stash[key] for key in RESPONSE_KEYS if key in self.stash}
