"""Pydantic schemas for API requests and responses."""

from gateway.schemas.auth import (
    IdentityResponse,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
    AuthStatusResponse
)
from gateway.schemas.files import (
    UploadFileResponse,
    SignedLinkResponse,
    FileInfoResponse,
    UserUpdateRequest,
    UserResponse
)
from gateway.schemas.common import ErrorResponse, ManualRetrievalResponse

__all__ = [
    "IdentityResponse",
    "SendCodeResponse",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
    "AuthStatusResponse",
    "UploadFileResponse",
    "SignedLinkResponse",
    "FileInfoResponse",
    "UserUpdateRequest",
    "UserResponse",
    "ErrorResponse",
    "ManualRetrievalResponse"
]
