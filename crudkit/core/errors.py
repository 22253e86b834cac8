from __future__ import annotations

from fastapi import HTTPException


class CrudError(Exception):
    status_code = 500

    def __init__(self, detail: str = "CRUD error"):
        super().__init__(detail)
        self.detail = detail
        self.request_id: str | None = None

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class ConfigurationError(CrudError):
    """Missing field names or a hook the controller cannot run without."""

    status_code = 500


class PermissionDenied(CrudError):
    status_code = 403

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(detail)


class NotFound(CrudError):
    status_code = 404

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail)


class ValidationFailure(CrudError):
    status_code = 400

    def __init__(self, detail: str = "Validation failed", errors: list[dict] | None = None):
        super().__init__(detail)
        self.errors = list(errors or [])

    def to_http(self) -> HTTPException:
        if not self.errors:
            return super().to_http()
        return HTTPException(status_code=self.status_code, detail={"message": self.detail, "errors": self.errors})
