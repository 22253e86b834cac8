"""HTTP surface for CRUD controllers."""

from crudkit.api.crud_router import build_crud_router

__all__ = ["build_crud_router"]
