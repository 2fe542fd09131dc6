"""
User API Routes

Registration, lookup and profile management.
"""

from typing import Optional

from fastapi import APIRouter, Query, Depends, status
from loguru import logger

from bookledger.api.dependencies import get_user_service
from bookledger.api.schemas import (
    UserCreate,
    UserUpdate,
    RoleUpdate,
    UserResponse,
    CountResponse,
    ErrorResponse,
)
from bookledger.storage.models import UserRole
from bookledger.users import UserService


router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Email already registered"}},
)
def register_user(
    user: UserCreate,
    users: UserService = Depends(get_user_service),
):
    logger.info(f"Registering user: {user.first_name} {user.last_name}")
    created = users.create_user(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        role=user.role,
    )
    return UserResponse.model_validate(created)


@router.get("", response_model=list[UserResponse])
def list_members(users: UserService = Depends(get_user_service)):
    """Members ordered by last name, then first name."""
    return [UserResponse.model_validate(u) for u in users.list_members()]


@router.get("/search", response_model=list[UserResponse])
def search_users(
    first_name: Optional[str] = Query(None, min_length=1),
    last_name: Optional[str] = Query(None, min_length=1),
    users: UserService = Depends(get_user_service),
):
    """Users whose first or last name contains the given fragments."""
    matches = users.search_by_name(first_name=first_name, last_name=last_name)
    return [UserResponse.model_validate(u) for u in matches]


@router.get("/role/{role}", response_model=list[UserResponse])
def users_by_role(
    role: UserRole,
    users: UserService = Depends(get_user_service),
):
    return [UserResponse.model_validate(u) for u in users.find_by_role(role)]


@router.get("/count", response_model=CountResponse)
def count_users(users: UserService = Depends(get_user_service)):
    return CountResponse(count=users.count_all())


@router.get("/count/{role}", response_model=CountResponse)
def count_users_by_role(
    role: UserRole,
    users: UserService = Depends(get_user_service),
):
    return CountResponse(count=users.count_by_role(role))


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
def get_user(
    user_id: int,
    users: UserService = Depends(get_user_service),
):
    return UserResponse.model_validate(users.get_user(user_id))


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        404: {"model": ErrorResponse, "description": "User not found"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
def update_user(
    user_id: int,
    user: UserUpdate,
    users: UserService = Depends(get_user_service),
):
    """Update profile fields. Only provided fields are modified."""
    logger.info(f"Updating user: {user_id}")
    updated = users.update_profile(user_id, **user.model_dump(exclude_unset=True))
    return UserResponse.model_validate(updated)


@router.patch(
    "/{user_id}/role",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
def change_role(
    user_id: int,
    body: RoleUpdate,
    users: UserService = Depends(get_user_service),
):
    logger.info(f"Changing role of user {user_id} to {body.role.value}")
    return UserResponse.model_validate(users.change_role(user_id, body.role))
