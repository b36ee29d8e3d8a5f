"""
Custom exception classes and error handling.

Every API error carries a stable machine-readable ``error_code`` and an
optional ``details`` payload. ``main.py`` renders them as
``{"error": code, "details": ...}``.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        details: Any = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.details = details


class AuthenticationError(APIException):
    """No valid principal."""

    def __init__(self, detail: str = "Not authenticated", error_code: str = "NOT_AUTHENTICATED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationError(APIException):
    """Authenticated, but the action is not permitted."""

    def __init__(self, error_code: str = "ACCESS_DENIED", reason: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
            error_code=error_code,
            details={"reason": reason} if reason else None,
        )


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, error_code: str = "NOT_FOUND", identifier: Any = None):
        detail = f"{resource} not found"
        if identifier is not None:
            detail = f"{detail}: {identifier}"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )


class ValidationError(APIException):
    """Client-correctable input error."""

    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR", details: Any = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code,
            details=details,
        )


class ConflictError(APIException):
    """Resource conflict (duplicate email, already verified, already onboarded)."""

    def __init__(self, detail: str, error_code: str = "CONFLICT", status_code: int = status.HTTP_409_CONFLICT):
        super().__init__(
            status_code=status_code,
            detail=detail,
            error_code=error_code
        )


class ExternalCapabilityError(APIException):
    """Email delivery or file storage failed."""

    def __init__(self, detail: str, error_code: str = "EXTERNAL_SERVICE_ERROR", details: Any = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code=error_code,
            details=details,
        )


class TransactionError(APIException):
    """A multi-row write failed and was rolled back."""

    def __init__(self, cause: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Transaction failed",
            error_code="TRANSACTION_FAILED",
            details={"cause": cause},
        )
