from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, model_validator

FilterOp = Literal["EQUALS", "NOT_EQUALS", "LIKE", "RANGE_GE"]
LogicalOp = Literal["AND", "OR"]
SortDirection = Literal["ASC", "DESC"]


class FieldFilter(BaseModel):
    field: str
    op: FilterOp
    values: List[str]
    # Operator as rendered for the backend: "=", "!=" / "<>", "like" / "ilike", ">=".
    token: str = "="
    # Every value submitted for the field, before wildcard and negation handling.
    raw_values: List[str] = []


class SortClause(BaseModel):
    column: str
    direction: SortDirection = "ASC"


class QueryDescriptor(BaseModel):
    filters: List[FieldFilter] = []
    logical_op: LogicalOp = "AND"
    sort: List[SortClause] = []
    limit: Optional[int] = None
    offset: Optional[int] = None
    raw_params: Dict[str, List[str]] = {}
    plain_query_str: str = ""

    @model_validator(mode="after")
    def _paging_is_all_or_nothing(self):
        if (self.limit is None) != (self.offset is None):
            raise ValueError("limit and offset must be set together")
        if self.limit is not None and (self.limit < 0 or self.offset < 0):
            raise ValueError("limit and offset must be non-negative")
        return self

    @property
    def paged(self) -> bool:
        return self.limit is not None

    @property
    def sort_by(self) -> str:
        return ", ".join(f"{s.column} {s.direction}" for s in self.sort)
