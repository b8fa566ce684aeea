"""Utility helper functions for the gateway."""

import mimetypes
import uuid
from typing import Optional


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def guess_mime_type(file_name: str, declared: Optional[str] = None) -> str:
    """
    Use the declared MIME type unless it is missing or generic.

    Args:
        file_name: Original file name
        declared: Content type sent by the client

    Returns:
        MIME type string
    """
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "application/octet-stream"
