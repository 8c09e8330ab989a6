"""
Error type raised by services and rendered by the API layer.
"""
from typing import Any, Optional


class ServiceError(Exception):
    """A failure with an HTTP status and a human-readable message."""

    def __init__(self, status_code: int, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"detail": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body
