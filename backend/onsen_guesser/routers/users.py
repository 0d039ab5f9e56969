from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from typing import Optional

from ..dependencies import get_user_service, unwrap
from ..models.user import AvatarUpdate, UserCreate, UserResponse, UserStatsResponse, UserUpdate
from ..services.users import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: Optional[UserCreate] = None,
    users: UserService = Depends(get_user_service)
):
    """Create a guest player, or fetch the player registered with the given email."""
    user_data = user_data or UserCreate()
    return unwrap(await users.create_guest(user_data.name, user_data.email))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    users: UserService = Depends(get_user_service)
):
    return unwrap(await users.get_user(user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def rename_user(
    user_id: str,
    user_data: UserUpdate,
    users: UserService = Depends(get_user_service)
):
    """Change a player's display name."""
    return unwrap(await users.rename_user(user_id, user_data.name))


@router.post("/{user_id}/reset-stats", response_model=UserResponse)
async def reset_user_stats(
    user_id: str,
    users: UserService = Depends(get_user_service)
):
    return unwrap(await users.reset_stats(user_id))


@router.get("/{user_id}/stats", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: str,
    users: UserService = Depends(get_user_service)
):
    """Get a player's profile, recent games and all-time rank."""
    return unwrap(await users.user_stats(user_id))


@router.patch("/{user_id}/avatar", response_model=UserResponse)
async def update_user_avatar(
    user_id: str,
    avatar_data: AvatarUpdate,
    users: UserService = Depends(get_user_service)
):
    """Set or clear a player's avatar URL."""
    return unwrap(await users.update_avatar(user_id, avatar_data.avatar))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    users: UserService = Depends(get_user_service)
):
    """Delete a player and their leaderboard entries."""
    unwrap(await users.delete_user(user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
