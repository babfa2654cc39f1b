"""
Organization Seed Data (async, idempotent)
- Departments with heads and a parent/child hierarchy
- One user per role, each with a temporary password
Run:  python scripts/seed/org_data.py
"""

import os, sys
import asyncio
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from gatepass.core.database import async_session_maker, engine
from gatepass.core.security import get_password_hash
from gatepass.models import Base
from gatepass.models.auth.user import User
from gatepass.models.organization.department import Department
from gatepass.models.shared.enums import UserRole

# ----------------------------------------------------------------------
# SEED DATA
# ----------------------------------------------------------------------

DEFAULT_PASSWORD = os.getenv("SEED_PASSWORD", "ChangeMe123!")

DEPARTMENTS_SEED = [
    {"name": "Administration", "description": "Executive office and administration"},
    {"name": "Operations", "description": "Production and logistics"},
    {"name": "Warehouse", "description": "Stores and dispatch", "parent": "Operations"},
    {"name": "Security", "description": "Gate and premises security"},
]

USERS_SEED = [
    {"payroll_no": "ADM001", "name": "System Administrator", "role": UserRole.ADMIN, "department": "Administration"},
    {"payroll_no": "CEO001", "name": "Chief Executive", "role": UserRole.CEO, "department": "Administration"},
    {"payroll_no": "DIR001", "name": "Operations Director", "role": UserRole.DIRECTOR, "department": "Administration"},
    {"payroll_no": "HOD001", "name": "Operations Head", "role": UserRole.HOD, "department": "Operations", "heads": "Operations"},
    {"payroll_no": "SEC001", "name": "Gate Officer", "role": UserRole.SECURITY, "department": "Security"},
    {"payroll_no": "STF001", "name": "Machine Operator", "role": UserRole.STAFF, "department": "Operations"},
    {"payroll_no": "STF002", "name": "Store Clerk", "role": UserRole.STAFF, "department": "Warehouse"},
]

# ----------------------------------------------------------------------
# HELPERS
# ----------------------------------------------------------------------

async def get_or_create_department(db: AsyncSession, data: dict, parent_id=None) -> Department:
    result = await db.execute(select(Department).where(Department.name == data["name"]))
    obj = result.scalar_one_or_none()
    if obj:
        return obj
    obj = Department(
        name=data["name"],
        description=data.get("description"),
        parent_department_id=parent_id,
        is_active=True,
    )
    db.add(obj)
    await db.flush()
    return obj

async def get_or_create_user(db: AsyncSession, data: dict, department_id: int) -> User:
    result = await db.execute(select(User).where(User.payroll_no == data["payroll_no"]))
    obj = result.scalar_one_or_none()
    if obj:
        return obj
    obj = User(
        payroll_no=data["payroll_no"],
        name=data["name"],
        role=data["role"],
        department_id=department_id,
        hashed_password=get_password_hash(DEFAULT_PASSWORD),
        must_change_password=True,
        is_active=True,
    )
    db.add(obj)
    await db.flush()
    return obj

# ----------------------------------------------------------------------
# MAIN ASYNC SEED LOGIC
# ----------------------------------------------------------------------

async def seed(db: AsyncSession):
    # 1) Departments, parents first
    departments = {}
    for d in DEPARTMENTS_SEED:
        parent = departments.get(d.get("parent"))
        departments[d["name"]] = await get_or_create_department(db, d, parent.id if parent else None)
    await db.commit()
    print(f"✓ Departments ready: {len(departments)}")

    # 2) Users
    users = {}
    for u in USERS_SEED:
        users[u["payroll_no"]] = await get_or_create_user(db, u, departments[u["department"]].id)
    await db.commit()
    print(f"✓ Users ready: {len(users)}")

    # 3) Department heads
    for u in USERS_SEED:
        if u.get("heads"):
            departments[u["heads"]].head_user_id = users[u["payroll_no"]].id
    await db.commit()
    print("✓ Department heads assigned")

# ----------------------------------------------------------------------
# ASYNC ENTRY POINT
# ----------------------------------------------------------------------

async def main():
    # Create tables (safe if already created)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as db:
        try:
            await seed(db)
            print(f"✅ Organization seed completed successfully! Temporary password: {DEFAULT_PASSWORD}")
        except Exception as ex:
            await db.rollback()
            print(f"❌ Seed failed: {ex}")
            raise

if __name__ == "__main__":
    asyncio.run(main())
