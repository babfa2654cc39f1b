from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api.dependencies import get_current_user
from gatepass.core.database import get_async_session
from gatepass.models.auth.user import User
from gatepass.models.shared.enums import UserRole
from gatepass.schemas.auth.user import (
    CreateUserResponse, ResetPasswordRequest, ResetPasswordResponse,
    UserCreate, UserResponse, UserUpdate,
)
from gatepass.services.auth.user_service import UserService

router = APIRouter()


@router.get("/")
async def get_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    role: Optional[UserRole] = Query(None),
    department_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """List users (admin only)"""
    service = UserService(session)
    users, total = await service.get_users(current_user, skip, limit, role, department_id, search)
    return {
        "users": [await service.to_response(u) for u in users],
        "total": total,
        "skip": skip,
        "limit": limit,
    }


@router.post("/", response_model=CreateUserResponse, status_code=201)
async def create_user(
    user_create: UserCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Create a user with a temporary password"""
    service = UserService(session)
    user, temporary_password = await service.create_user(current_user, user_create)
    return CreateUserResponse(user=await service.to_response(user), temporary_password=temporary_password)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Update user; payroll number is immutable"""
    service = UserService(session)
    user = await service.update_user(current_user, user_id, user_update)
    return await service.to_response(user)


@router.post("/{user_id}/reset-password", response_model=ResetPasswordResponse)
async def reset_password(
    user_id: int,
    data: Optional[ResetPasswordRequest] = None,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Issue a new temporary password"""
    service = UserService(session)
    temporary_password = await service.reset_password(
        current_user, user_id, data.temporary_password if data else None
    )
    return ResetPasswordResponse(message="Password reset successfully", temporary_password=temporary_password)
