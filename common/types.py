"""Shared data type definitions (StoredFile, FileMetadata, AuthorizedIdentity)."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StoredFile:
    """
    Backend location of a completed upload.

    Created once per successful upload and never mutated afterwards.
    """
    external_file_handle: str
    size_bytes: int
    mime_type: str
    storage_location: str
    retrieval_hint: Optional[str] = None


@dataclass(frozen=True)
class FileMetadata:
    """
    Descriptive metadata sent along with an upload.
    """
    file_name: str
    mime_type: str = "application/octet-stream"
    caption: Optional[str] = None


@dataclass(frozen=True)
class AuthorizedIdentity:
    """
    The backend account the relay acts as once signed in.
    """
    user_id: int
    first_name: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
