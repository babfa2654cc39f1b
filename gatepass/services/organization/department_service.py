import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import BaseAppException, NotFoundError, ValidationError
from gatepass.core.logging import log_user_action
from gatepass.models.auth.user import User
from gatepass.models.organization.department import Department
from gatepass.schemas.organization.department_schema import (
    DepartmentCreate, DepartmentResponse, DepartmentUpdate,
)
from gatepass.services.gate_pass import approval_router

logger = logging.getLogger(__name__)


class DepartmentService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_department(self, department_id: int) -> Department:
        department = await self.session.get(Department, department_id)
        if department is None or department.is_deleted:
            raise NotFoundError(f"Department {department_id} not found")
        return department

    async def _check_name(self, name: str, exclude_id: Optional[int] = None):
        query = select(Department).where(Department.name == name, Department.is_deleted == False)
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if (await self.session.execute(query)).scalar_one_or_none():
            raise ValidationError(f"Department '{name}' already exists")

    async def _check_head(self, head_user_id: Optional[int]):
        if head_user_id is None:
            return
        head = await self.session.get(User, head_user_id)
        if head is None or head.is_deleted:
            raise ValidationError(f"User {head_user_id} does not exist")

    async def _check_parent(self, department_id: Optional[int], parent_id: Optional[int]):
        """The parent must exist and must not be the department itself or one of its descendants"""
        if parent_id is None:
            return
        parent = await self.session.get(Department, parent_id)
        if parent is None or parent.is_deleted:
            raise ValidationError(f"Parent department {parent_id} does not exist")
        if department_id is None:
            return

        seen = set()
        current = parent
        while current is not None and current.id not in seen:
            if current.id == department_id:
                raise ValidationError("Department hierarchy cannot contain a cycle")
            seen.add(current.id)
            current = (
                await self.session.get(Department, current.parent_department_id)
                if current.parent_department_id else None
            )

    async def to_response(self, department: Department) -> DepartmentResponse:
        head_name = None
        if department.head_user_id is not None:
            head = await self.session.get(User, department.head_user_id)
            head_name = head.name if head else None
        return DepartmentResponse(
            id=department.id,
            name=department.name,
            description=department.description,
            head_user_id=department.head_user_id,
            parent_department_id=department.parent_department_id,
            is_active=bool(department.is_active),
            head_name=head_name,
            created_at=department.created_at,
        )

    async def create_department(self, admin: User, data: DepartmentCreate) -> Department:
        approval_router.ensure_can_manage_organization(admin)
        try:
            name = data.name.strip()
            await self._check_name(name)
            await self._check_head(data.head_user_id)
            await self._check_parent(None, data.parent_department_id)

            department = Department(
                name=name,
                description=data.description,
                head_user_id=data.head_user_id,
                parent_department_id=data.parent_department_id,
                is_active=True,
                created_by=admin.id,
            )
            self.session.add(department)
            await self.session.commit()
            await self.session.refresh(department)

            log_user_action(admin.id, "create", "department", department.id)
            return department

        except BaseAppException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating department: {str(e)}")
            raise

    async def update_department(self, admin: User, department_id: int, data: DepartmentUpdate) -> Department:
        approval_router.ensure_can_manage_organization(admin)
        department = await self.get_department(department_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("name"):
            update_data["name"] = update_data["name"].strip()
            await self._check_name(update_data["name"], exclude_id=department.id)
        if "head_user_id" in update_data:
            await self._check_head(update_data["head_user_id"])
        if "parent_department_id" in update_data:
            await self._check_parent(department.id, update_data["parent_department_id"])

        try:
            for field, value in update_data.items():
                setattr(department, field, value)
            department.updated_by = admin.id
            await self.session.commit()
            await self.session.refresh(department)
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating department {department_id}: {str(e)}")
            raise

        log_user_action(admin.id, "update", "department", department.id)
        return department

    async def get_departments(self, include_inactive: bool = False) -> List[Department]:
        query = select(Department).where(Department.is_deleted == False)
        if not include_inactive:
            query = query.where(Department.is_active == True)
        result = await self.session.execute(query.order_by(Department.name))
        return result.scalars().all()
