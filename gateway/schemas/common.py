"""Common schemas used across multiple endpoints."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Response model for errors."""
    detail: str
    code: str


class ManualRetrievalResponse(BaseModel):
    """Returned when a file cannot be relayed automatically."""
    status: str = "manual_retrieval"
    file_id: str
    file_name: Optional[str] = None
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    storage_location: Optional[str] = None
    retrieval_hint: Optional[str] = None
    reason: str
