from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gatepass.api.dependencies import get_clock
from gatepass.core.database import get_async_session
from gatepass.core.security import create_access_token, get_password_hash
from gatepass.main import app
from gatepass.models import Base, Department, User
from gatepass.models.shared.enums import UserRole
from gatepass.services.gate_pass.gate_pass_service import GatePassService
from gatepass.services.notification import alert_scheduler
from gatepass.services.notification.alert_scheduler import InProcessAlertScheduler
from gatepass.services.notification.gate_pass_notifier import build_event_bus

DEFAULT_PASSWORD = "Secret123!"


class FakeClock:
    """Deterministic clock; advance it to simulate time passing"""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 3, 4, 7, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so separate sessions use separate connections"""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as db:
        yield db


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alerts(session_maker, monkeypatch) -> InProcessAlertScheduler:
    scheduler = InProcessAlertScheduler(session_factory=session_maker)
    monkeypatch.setattr(alert_scheduler, "_scheduler", scheduler)
    return scheduler


@pytest.fixture
def make_service(clock, alerts):
    def _make(db: AsyncSession) -> GatePassService:
        return GatePassService(db, events=build_event_bus(db, alerts), clock=clock)
    return _make


@pytest.fixture
def service(session, make_service) -> GatePassService:
    return make_service(session)


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    async def _make(
        role: UserRole = UserRole.STAFF,
        name: Optional[str] = None,
        department_id: Optional[int] = None,
        reports_to_user_id: Optional[int] = None,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            payroll_no=f"P{counter['n']:04d}",
            hashed_password=get_password_hash(DEFAULT_PASSWORD),
            role=role,
            department_id=department_id,
            reports_to_user_id=reports_to_user_id,
            is_active=is_active,
            must_change_password=False,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return _make


@pytest.fixture
async def org(session, make_user) -> SimpleNamespace:
    """
    A small organization:

    Operations (head: hod) -> Warehouse (no head, child of Operations)
    staff in Operations, warehouse_staff in Warehouse, plus executives,
    an administrator and a security guard.
    """
    ceo = await make_user(UserRole.CEO, name="Grace CEO")
    director = await make_user(UserRole.DIRECTOR, name="David Director")
    admin = await make_user(UserRole.ADMIN, name="Ada Admin")
    security = await make_user(UserRole.SECURITY, name="Sam Security")
    hod = await make_user(UserRole.HOD, name="Helen Head")

    operations = Department(name="Operations", head_user_id=hod.id, is_active=True)
    session.add(operations)
    await session.commit()
    await session.refresh(operations)

    warehouse = Department(name="Warehouse", parent_department_id=operations.id, is_active=True)
    session.add(warehouse)
    await session.commit()
    await session.refresh(warehouse)

    hod.department_id = operations.id
    await session.commit()

    staff = await make_user(UserRole.STAFF, name="Steve Staff", department_id=operations.id)
    warehouse_staff = await make_user(UserRole.STAFF, name="Wanda Warehouse", department_id=warehouse.id)
    other_hod = await make_user(UserRole.HOD, name="Otto Other")

    return SimpleNamespace(
        ceo=ceo,
        director=director,
        admin=admin,
        security=security,
        hod=hod,
        other_hod=other_hod,
        staff=staff,
        warehouse_staff=warehouse_staff,
        operations=operations,
        warehouse=warehouse,
    )


@pytest.fixture
def auth_headers():
    """Bearer headers for a user"""
    def _headers(user: User) -> dict:
        token = create_access_token(user.id, extra_claims={"role": user.role.value})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
async def client(session_maker, clock, alerts) -> AsyncGenerator[AsyncClient, None]:
    """Create test client"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as db:
            yield db

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def password() -> str:
    """Password every factory-made user logs in with"""
    return DEFAULT_PASSWORD
