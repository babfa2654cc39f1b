import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import BaseAppException, NotFoundError, ValidationError
from gatepass.core.logging import log_user_action
from gatepass.core.security import generate_temporary_password, get_password_hash
from gatepass.models.auth.user import User
from gatepass.models.organization.department import Department
from gatepass.models.shared.enums import UserRole
from gatepass.schemas.auth.user import UserCreate, UserResponse, UserUpdate
from gatepass.services.gate_pass import approval_router

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.is_deleted == False)
        )
        return result.scalar_one_or_none()

    async def get_user_by_payroll(self, payroll_no: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.payroll_no == payroll_no.strip(), User.is_deleted == False)
        )
        return result.scalar_one_or_none()

    async def _require_user(self, user_id: int) -> User:
        user = await self.get_user(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _check_references(self, user_id: Optional[int], department_id: Optional[int],
                                reports_to_user_id: Optional[int]):
        if department_id is not None and await self.session.get(Department, department_id) is None:
            raise ValidationError(f"Department {department_id} does not exist")
        if reports_to_user_id is not None:
            if user_id is not None and reports_to_user_id == user_id:
                raise ValidationError("A user cannot report to themselves")
            if await self.get_user(reports_to_user_id) is None:
                raise ValidationError(f"Supervisor {reports_to_user_id} does not exist")

    async def to_response(self, user: User) -> UserResponse:
        department_name = None
        if user.department_id is not None:
            department = await self.session.get(Department, user.department_id)
            department_name = department.name if department else None
        reports_to_name = None
        if user.reports_to_user_id is not None:
            supervisor = await self.session.get(User, user.reports_to_user_id)
            reports_to_name = supervisor.name if supervisor else None

        return UserResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            department_id=user.department_id,
            reports_to_user_id=user.reports_to_user_id,
            payroll_no=user.payroll_no,
            is_active=bool(user.is_active),
            must_change_password=bool(user.must_change_password),
            department_name=department_name,
            reports_to_name=reports_to_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    async def create_user(self, admin: User, user_create: UserCreate) -> Tuple[User, str]:
        """Create a user with a temporary password they must change on first login"""
        approval_router.ensure_can_manage_organization(admin)
        try:
            payroll_no = user_create.payroll_no.strip()
            if await self.get_user_by_payroll(payroll_no):
                raise ValidationError(f"Payroll number {payroll_no} is already registered")
            await self._check_references(None, user_create.department_id, user_create.reports_to_user_id)

            temporary_password = user_create.temporary_password or generate_temporary_password()
            user = User(
                name=user_create.name.strip(),
                payroll_no=payroll_no,
                email=user_create.email,
                role=user_create.role,
                department_id=user_create.department_id,
                reports_to_user_id=user_create.reports_to_user_id,
                hashed_password=get_password_hash(temporary_password),
                must_change_password=True,
                is_active=True,
                created_by=admin.id,
            )
            self.session.add(user)
            await self.session.commit()
            await self.session.refresh(user)

            log_user_action(admin.id, "create", "user", user.id)
            return user, temporary_password

        except BaseAppException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating user: {str(e)}")
            raise

    async def update_user(self, admin: User, user_id: int, user_update: UserUpdate) -> User:
        approval_router.ensure_can_manage_organization(admin)
        user = await self._require_user(user_id)
        update_data = user_update.model_dump(exclude_unset=True)

        payroll_no = update_data.pop("payroll_no", None)
        if payroll_no is not None and payroll_no.strip() != user.payroll_no:
            raise ValidationError("Payroll number cannot be changed")

        await self._check_references(
            user.id,
            update_data.get("department_id"),
            update_data.get("reports_to_user_id"),
        )
        if update_data.get("is_active") is False and user.id == admin.id:
            raise ValidationError("You cannot deactivate your own account")

        try:
            for field, value in update_data.items():
                setattr(user, field, value)
            user.updated_by = admin.id
            await self.session.commit()
            await self.session.refresh(user)
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating user {user_id}: {str(e)}")
            raise

        log_user_action(admin.id, "update", "user", user.id)
        return user

    async def reset_password(self, admin: User, user_id: int, temporary_password: Optional[str] = None) -> str:
        approval_router.ensure_can_manage_organization(admin)
        user = await self._require_user(user_id)
        temporary_password = temporary_password or generate_temporary_password()

        try:
            user.hashed_password = get_password_hash(temporary_password)
            user.must_change_password = True
            user.updated_by = admin.id
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error resetting password for user {user_id}: {str(e)}")
            raise

        log_user_action(admin.id, "reset_password", "user", user.id)
        return temporary_password

    async def get_users(
        self,
        admin: User,
        skip: int = 0,
        limit: int = 100,
        role: Optional[UserRole] = None,
        department_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[User], int]:
        approval_router.ensure_can_manage_organization(admin)
        conditions = [User.is_deleted == False]
        if role:
            conditions.append(User.role == role)
        if department_id is not None:
            conditions.append(User.department_id == department_id)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(User.name.ilike(pattern), User.payroll_no.ilike(pattern)))

        total = await self.session.scalar(select(func.count(User.id)).where(and_(*conditions))) or 0
        result = await self.session.execute(
            select(User).where(and_(*conditions)).order_by(User.name).offset(skip).limit(limit)
        )
        return result.scalars().all(), total
