"""Pydantic schemas for relay account sign-in endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class IdentityResponse(BaseModel):
    """The signed-in relay account."""
    user_id: int
    first_name: Optional[str] = None
    username: Optional[str] = None


class SendCodeResponse(BaseModel):
    """Response model for code dispatch."""
    phone_code_hash: str


class VerifyCodeRequest(BaseModel):
    """Request model for code verification."""
    code: str = Field(..., min_length=1, max_length=16)


class VerifyCodeResponse(BaseModel):
    """Response model for a completed sign-in."""
    authorized: bool
    identity: IdentityResponse


class AuthStatusResponse(BaseModel):
    """Response model for the sign-in state."""
    authorized: bool
    state: str
    identity: Optional[IdentityResponse] = None
