from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "crudkit"
    DATABASE_URL: str = "sqlite+pysqlite:///./crudkit.db"
    CORS_ORIGINS: str = "http://localhost:3000"

    CRUD_PAGE_SIZE: int = 50
    CRUD_MAX_PAGE_SIZE: int = 200
    CRUD_PAGES_PER_SET: int = 10
    CRUD_NE_SIGN: str = "!="
    CRUD_USE_ILIKE: bool = False
    CRUD_ALLOW_GET_WRITES: bool = False
    CRUD_VIEW_ON_SINGLE_RESULT: bool = True
    CRUD_NAKED_RESULTS: bool = False

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()


@dataclass(frozen=True)
class CrudConfig:
    """Per-controller settings, fixed when the controller is built."""

    model_name: str
    primary_key: str = "id"
    default_template: str | None = None
    page_size: int = 50
    max_page_size: int = 200
    pages_per_set: int = 10
    ne_sign: str = "!="
    use_ilike: bool = False
    allow_get_writes: bool = False
    view_on_single_result: bool = True
    naked_results: bool = False
    model_meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, model_name: str, source: Settings | None = None, **overrides: Any) -> "CrudConfig":
        source = source or settings
        base = cls(
            model_name=model_name,
            page_size=source.CRUD_PAGE_SIZE,
            max_page_size=source.CRUD_MAX_PAGE_SIZE,
            pages_per_set=source.CRUD_PAGES_PER_SET,
            ne_sign=source.CRUD_NE_SIGN,
            use_ilike=source.CRUD_USE_ILIKE,
            allow_get_writes=source.CRUD_ALLOW_GET_WRITES,
            view_on_single_result=source.CRUD_VIEW_ON_SINGLE_RESULT,
            naked_results=source.CRUD_NAKED_RESULTS,
        )
        return replace(base, **overrides) if overrides else base
