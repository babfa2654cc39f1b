import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.auth.jwt_handler import decode_access_token
from gatepass.core.database import get_async_session
from gatepass.core.exceptions import AuthenticationError
from gatepass.models.auth.user import User
from gatepass.services.auth.user_service import UserService
from gatepass.services.gate_pass.gate_pass_service import GatePassService
from gatepass.services.gate_pass.query_service import GatePassQueryService
from gatepass.services.notification.gate_pass_notifier import build_event_bus
from gatepass.utils.date_time import Clock, utcnow

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def get_clock() -> Clock:
    """Wall clock for services; overridden in tests"""
    return utcnow


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    """Get current authenticated user"""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Invalid authentication credentials")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid authentication credentials")

    user = await UserService(session).get_user(user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    request.state.current_user = user
    return user


def get_gate_pass_service(
    session: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
) -> GatePassService:
    return GatePassService(session, events=build_event_bus(session), clock=clock)


def get_query_service(
    session: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
) -> GatePassQueryService:
    return GatePassQueryService(session, clock=clock)
