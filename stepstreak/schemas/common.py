"""
Error envelope shared by every router.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class ErrorDetail(BaseModel):
    """One entry of `details.errors` on a VALIDATION_ERROR response."""
    field: str
    message: str
    type: str


class ErrorResponse(BaseModel):
    """`{code, message, details}`; `code` is stable, `message` is for humans."""
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    details: Optional[dict[str, Any]] = None
