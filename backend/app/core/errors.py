"""
Error taxonomy for the API.

Each error is an HTTPException so FastAPI renders it as ``{"detail": ...}``
without extra handlers. Conflicts are expected business conditions and are
not logged as errors by the callers raising them.
"""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Referenced entity does not exist."""

    def __init__(self, entity: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


class ConflictError(HTTPException):
    """Duplicate or otherwise conflicting business condition."""

    def __init__(self, reason: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)


class PermissionDeniedError(HTTPException):
    """Actor is not allowed to perform the operation."""

    def __init__(self, reason: str = "Permission denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=reason)


class InvitationExpiredError(HTTPException):
    """Invitation is past its expiry or already resolved."""

    def __init__(self, reason: str = "This invitation is no longer valid"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=reason)
