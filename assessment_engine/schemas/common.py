"""
Common schemas for API responses.
"""
from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error response schema for engine errors."""

    detail: str
    code: Optional[str] = None
    active_attempt_id: Optional[int] = None
