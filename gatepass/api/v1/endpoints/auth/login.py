import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api.dependencies import get_current_user
from gatepass.core.database import get_async_session
from gatepass.models.auth.user import User
from gatepass.schemas.auth.login import LoginRequest, PasswordChangeRequest
from gatepass.schemas.auth.token import TokenResponse
from gatepass.schemas.auth.user import UserResponse
from gatepass.services.auth.auth_service import AuthService
from gatepass.services.auth.user_service import UserService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """Login with payroll number and password"""
    return await AuthService(session).login(login_data.payroll_no, login_data.password)


@router.get("/me", response_model=UserResponse)
async def get_me(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get the authenticated user's profile"""
    return await UserService(session).to_response(current_user)


@router.post("/change-password")
async def change_password(
    password_data: PasswordChangeRequest,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Change the authenticated user's password"""
    await AuthService(session).change_password(
        current_user, password_data.current_password, password_data.new_password
    )
    return {"message": "Password changed successfully"}
