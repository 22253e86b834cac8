from crudkit.schemas.query import FieldFilter, FilterOp, LogicalOp, QueryDescriptor, SortClause, SortDirection

__all__ = ["FieldFilter", "FilterOp", "LogicalOp", "QueryDescriptor", "SortClause", "SortDirection"]
