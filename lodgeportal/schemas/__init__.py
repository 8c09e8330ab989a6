"""
Pydantic schemas for request/response validation.
"""
from lodgeportal.schemas.common import PaginatedResponse, MessageResponse, HealthResponse

__all__ = ["PaginatedResponse", "MessageResponse", "HealthResponse"]
