import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import AuthenticationError, ValidationError
from gatepass.core.logging import log_user_action
from gatepass.core.security import create_access_token, get_password_hash, verify_password
from gatepass.models.auth.user import User
from gatepass.schemas.auth.token import TokenResponse
from gatepass.services.auth.user_service import UserService
from gatepass.utils.date_time import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_service = UserService(session)

    async def authenticate_user(self, payroll_no: str, password: str) -> Optional[User]:
        """Authenticate user with payroll number and password"""
        result = await self.session.execute(
            select(User).where(
                User.payroll_no == payroll_no.strip(),
                User.is_active == True,
                User.is_deleted == False,
            )
        )
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login for payroll number {payroll_no}")
            return None

        user_id = user.id
        try:
            user.last_login = utcnow()
            await self.session.commit()
            await self.session.refresh(user)
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error recording login for user {user_id}: {str(e)}")
            raise

        log_user_action(user.id, "login", "auth")
        return user

    async def login(self, payroll_no: str, password: str) -> TokenResponse:
        user = await self.authenticate_user(payroll_no, password)
        if user is None:
            raise AuthenticationError("Incorrect payroll number or password")

        access_token = create_access_token(user.id, extra_claims={"role": user.role.value})
        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            user=await self.user_service.to_response(user),
            requires_password_change=bool(user.must_change_password),
        )

    async def change_password(self, user: User, current_password: str, new_password: str) -> bool:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")
        if current_password == new_password:
            raise ValidationError("New password must differ from the current password")

        user_id = user.id
        try:
            user.hashed_password = get_password_hash(new_password)
            user.must_change_password = False
            user.updated_by = user.id
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error changing password for user {user_id}: {str(e)}")
            raise

        log_user_action(user.id, "change_password", "auth")
        return True
