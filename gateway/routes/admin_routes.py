"""User provisioning API routes."""

from fastapi import APIRouter, Depends

from gateway.auth import require_api_key
from gateway.repositories.user_repository import UserRepository
from gateway.schemas.files import UserResponse, UserUpdateRequest

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_api_key)])


@router.put("/users/{telegram_id}", response_model=UserResponse)
async def upsert_user(telegram_id: int, request: UserUpdateRequest):
    """
    Create or update a user and its upload permissions.

    Raises:
        - 401: Invalid or missing API key
    """
    user = UserRepository.upsert_user(
        telegram_id=telegram_id,
        name=request.name,
        username=request.username,
        can_upload=request.can_upload,
        is_admin=request.is_admin,
    )
    return UserResponse(
        telegram_id=user.telegram_id,
        name=user.name,
        username=user.username,
        can_upload=user.can_upload,
        is_admin=user.is_admin,
    )
