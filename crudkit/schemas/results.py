from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from crudkit.schemas.query import QueryDescriptor
from crudkit.services.pager import Pager


@dataclass
class ResultEnvelope:
    count: int
    query: QueryDescriptor
    rows: list[Any] = field(default_factory=list)
    pager: Pager | None = None

    def __iter__(self):
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)
