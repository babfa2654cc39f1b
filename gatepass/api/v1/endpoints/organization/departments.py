from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api.dependencies import get_current_user
from gatepass.core.database import get_async_session
from gatepass.models.auth.user import User
from gatepass.schemas.organization.department_schema import (
    DepartmentCreate, DepartmentResponse, DepartmentUpdate,
)
from gatepass.services.organization.department_service import DepartmentService

router = APIRouter()


@router.get("/", response_model=List[DepartmentResponse])
async def get_departments(
    include_inactive: bool = Query(False),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get all departments"""
    service = DepartmentService(session)
    departments = await service.get_departments(include_inactive)
    return [await service.to_response(d) for d in departments]


@router.post("/", response_model=DepartmentResponse, status_code=201)
async def create_department(
    department: DepartmentCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Create a new department"""
    service = DepartmentService(session)
    created = await service.create_department(current_user, department)
    return await service.to_response(created)


@router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: int,
    department: DepartmentUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Update department"""
    service = DepartmentService(session)
    updated = await service.update_department(current_user, department_id, department)
    return await service.to_response(updated)
