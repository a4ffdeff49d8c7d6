"""
Error types raised by the service layer.

Services raise these instead of ``HTTPException`` so they stay usable
outside of a request.  Each error carries a short machine-readable
``code`` and the HTTP status the API layer maps it to.
"""


class MessagingError(Exception):
    """Base class for all service errors."""

    code = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(MessagingError):
    """Malformed or missing input; the caller must fix the request."""

    code = "validation_error"
    status_code = 400


class ConflictError(MessagingError):
    """A uniqueness rule was violated (e.g. duplicate e-mail)."""

    code = "conflict"
    status_code = 409


class NotFoundError(MessagingError):
    """A referenced entity does not exist."""

    code = "not_found"
    status_code = 404


class InternalError(MessagingError):
    """Storage or transaction failure not caused by caller input."""

    code = "internal_error"
    status_code = 500
