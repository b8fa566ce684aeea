"""Relay account sign-in API routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from common.types import AuthorizedIdentity
from gateway.auth import require_api_key
from gateway.schemas.auth import (
    AuthStatusResponse,
    IdentityResponse,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse
)
from gateway.service_locator import require_session_manager
from gateway.services.session_manager import AuthSession, AuthSessionManager, AuthState

router = APIRouter(prefix="/auth", tags=["Relay account"], dependencies=[Depends(require_api_key)])


def _identity(identity: Optional[AuthorizedIdentity]) -> Optional[IdentityResponse]:
    if identity is None:
        return None
    return IdentityResponse(
        user_id=identity.user_id,
        first_name=identity.first_name,
        username=identity.username,
    )


def _status(session: AuthSession) -> AuthStatusResponse:
    return AuthStatusResponse(
        authorized=session.state == AuthState.AUTHORIZED,
        state=session.state.value,
        identity=_identity(session.authorized_identity),
    )


@router.post("/send-code", response_model=SendCodeResponse)
async def send_code(manager: AuthSessionManager = Depends(require_session_manager)):
    """
    Send a sign-in code to the configured relay account phone.

    Returns:
        - phone_code_hash: Backend reference of the dispatched code

    Raises:
        - 401: Invalid or missing API key
        - 409: Relay account already authorized or awaiting reset
        - 503: Backend unavailable
    """
    phone_code_hash = await manager.request_code()
    return SendCodeResponse(phone_code_hash=phone_code_hash)


@router.post("/verify-code", response_model=VerifyCodeResponse)
async def verify_code(
    request: VerifyCodeRequest,
    manager: AuthSessionManager = Depends(require_session_manager)
):
    """
    Complete sign-in with the received code.

    Parameters:
        - code: Code delivered to the relay account

    Returns:
        - authorized: Always true on success
        - identity: The signed-in account

    Raises:
        - 400: No pending code, or the account has two-step verification enabled
        - 401: Invalid or missing API key
        - 502: Backend rejected the code
    """
    identity = await manager.verify_code(request.code.strip())
    return VerifyCodeResponse(authorized=True, identity=_identity(identity))


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(manager: AuthSessionManager = Depends(require_session_manager)):
    """
    Current relay account state.
    """
    return _status(manager.status())


@router.post("/reset", response_model=AuthStatusResponse)
async def reset(manager: AuthSessionManager = Depends(require_session_manager)):
    """
    Return the relay account session to unauthenticated.

    The only way out of the two-factor-required state.
    """
    return _status(await manager.reset())
