"""
tms/exceptions.py
Domain exceptions raised by the service layer

Services never raise HTTP errors. Each exception carries:
- kind: what went wrong for (e.g. "assessment", "elapsed_time")
- identity: the offending id or value, when there is one
The HTTP layer maps them onto the standard error body (see tms/errors.py).
"""
from typing import Any, Dict, Optional


class TMSException(Exception):
    """Base exception for the training management core"""
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, kind: Optional[str] = None, identity: Any = None):
        self.message = message
        self.kind = kind
        self.identity = identity
        super().__init__(self.message)

    def details(self) -> Optional[Dict[str, Any]]:
        if self.kind is None and self.identity is None:
            return None
        return {"kind": self.kind, "identity": self.identity}


class NotFoundError(TMSException):
    """
    Raised when a referenced assessment, course, submission or question
    does not exist.
    """
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, kind: str, identity: Any = None):
        message = f"{kind.capitalize()} not found"
        if identity is not None:
            message = f"{kind.capitalize()} with id '{identity}' not found"
        super().__init__(message, kind, identity)


class InvalidInputError(TMSException):
    """
    Raised for malformed input the schema layer could not catch.

    Examples:
    - Negative elapsed time
    - Manual grade above the question's point value
    - Manual grade for an objective question
    """
    status_code = 400
    code = "INVALID_INPUT"

    def __init__(self, message: str, kind: Optional[str] = None, identity: Any = None):
        super().__init__(message, kind, identity)


class StoreFailureError(TMSException):
    """
    Raised when the persistence layer is unavailable or rejects a write.
    Propagated, never retried here.
    """
    status_code = 503
    code = "STORE_FAILURE"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Store failure during {operation}"
        if cause is not None:
            message = f"{message}: {type(cause).__name__}"
        super().__init__(message, "store", operation)
        self.cause = cause
