"""Pydantic schemas for file and admin endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UploadFileResponse(BaseModel):
    """Response model for a stored upload."""
    file_id: str
    file_name: str
    size_bytes: int
    mime_type: str
    storage_location: str
    download_url: str


class SignedLinkResponse(BaseModel):
    """Response model for a signed download link."""
    url: str
    expires: int
    signature: str


class FileInfoResponse(BaseModel):
    """Response model for public file information."""
    file_id: str
    file_name: str
    mime_type: str
    size_bytes: int
    download_count: int
    uploaded_at: datetime


class UserUpdateRequest(BaseModel):
    """Request model for user provisioning."""
    name: Optional[str] = None
    username: Optional[str] = None
    can_upload: bool = False
    is_admin: bool = False


class UserResponse(BaseModel):
    """Response model for a provisioned user."""
    telegram_id: int
    name: Optional[str] = None
    username: Optional[str] = None
    can_upload: bool
    is_admin: bool
