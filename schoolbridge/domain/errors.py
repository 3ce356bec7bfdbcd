"""
Error taxonomy shared by use cases and the HTTP layer.

Use cases raise these; the exception handlers in ``main`` turn them into the
response envelope with the matching status code.
"""

from typing import Any, Optional


class SchoolBridgeError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.__class__.__name__}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(SchoolBridgeError):
    """Malformed or semantically invalid input."""
    status_code = 400


class AuthenticationError(SchoolBridgeError):
    """Missing, invalid or expired credentials."""
    status_code = 401


class InvalidTokenError(AuthenticationError):
    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class AuthorizationError(SchoolBridgeError):
    """Valid identity, insufficient role or ownership."""
    status_code = 403


class NotFoundError(SchoolBridgeError):
    status_code = 404


class ConflictError(SchoolBridgeError):
    """Duplicate unique key or a state transition that already happened."""
    status_code = 409


class InternalError(SchoolBridgeError):
    status_code = 500
