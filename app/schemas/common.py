"""
Error envelope shared by every router; see app/core/errors.py.
"""
from typing import Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """`{code, message, details}` returned for all 4xx/5xx responses.

    For VALIDATION_ERROR, details.errors is a list of {field, message, type}.
    """
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
