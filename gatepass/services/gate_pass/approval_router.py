"""
Approval router and role policy.

Every decision that depends on a principal's role lives in this module:
who approves a request, who may operate the gate, who sees which history.
Other components ask these functions instead of comparing roles themselves.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import AuthorizationError
from gatepass.models.auth.user import User
from gatepass.models.organization.department import Department
from gatepass.models.shared.enums import UserRole

logger = logging.getLogger(__name__)

EXECUTIVE_ROLES = frozenset({UserRole.CEO, UserRole.DIRECTOR})
ORGANIZATION_SCOPE_ROLES = frozenset({UserRole.CEO, UserRole.DIRECTOR, UserRole.ADMIN})
GATE_OPERATOR_ROLES = frozenset({UserRole.SECURITY, UserRole.ADMIN})
ESCALATING_ROLES = frozenset({UserRole.HOD, UserRole.SECURITY})


@dataclass
class OrgDirectory:
    """Snapshot of users and departments used to resolve approver chains"""
    users: Dict[int, User] = field(default_factory=dict)
    departments: Dict[int, Department] = field(default_factory=dict)

    def active_user(self, user_id: Optional[int]) -> Optional[User]:
        user = self.users.get(user_id) if user_id is not None else None
        if user is None or not user.is_active or user.is_deleted:
            return None
        return user

    def executives(self) -> List[User]:
        return [
            u for u in self.users.values()
            if u.role in EXECUTIVE_ROLES and u.is_active and not u.is_deleted
        ]

    def department_head_id(self, department_id: Optional[int]) -> Optional[int]:
        """Head of a department, inherited from the nearest ancestor that has one"""
        seen: Set[int] = set()
        current = self.departments.get(department_id) if department_id is not None else None
        while current is not None and current.id not in seen:
            seen.add(current.id)
            if current.head_user_id and self.active_user(current.head_user_id):
                return current.head_user_id
            current = self.departments.get(current.parent_department_id)
        return None

    def child_department_ids(self, root_ids: Iterable[int]) -> Set[int]:
        result = set(root_ids)
        frontier = list(result)
        while frontier:
            parent_id = frontier.pop()
            for dept in self.departments.values():
                if dept.parent_department_id == parent_id and dept.id not in result:
                    result.add(dept.id)
                    frontier.append(dept.id)
        return result


async def load_directory(session: AsyncSession) -> OrgDirectory:
    users = (await session.execute(select(User))).scalars().all()
    departments = (await session.execute(select(Department))).scalars().all()
    return OrgDirectory(
        users={u.id: u for u in users},
        departments={d.id: d for d in departments},
    )


# region ========== Approver resolution ==========

def resolve_approver_ids(requester: User, directory: OrgDirectory) -> Set[int]:
    """
    Principals (besides ADMIN override) entitled to decide on ``requester``'s passes.

    STAFF go to their supervisor, else their department head; HOD and SECURITY
    escalate to CEO/DIRECTOR, as do STAFF who would otherwise approve themselves.
    Executive and admin requests can only be decided by an ADMIN.
    """
    executives = {u.id for u in directory.executives()} - {requester.id}

    if requester.role == UserRole.STAFF:
        for candidate in (requester.reports_to_user_id, directory.department_head_id(requester.department_id)):
            if candidate and candidate != requester.id and directory.active_user(candidate):
                return {candidate}
        return executives

    if requester.role in ESCALATING_ROLES:
        return executives

    return set()


def can_approve(approver: User, requester: User, directory: OrgDirectory) -> bool:
    if approver.id == requester.id:
        return False
    if not approver.is_active or approver.is_deleted:
        return False
    if approver.role == UserRole.ADMIN:
        return True
    return approver.id in resolve_approver_ids(requester, directory)


def ensure_can_approve(approver: User, requester: User, directory: OrgDirectory) -> None:
    if approver.id == requester.id:
        raise AuthorizationError("You cannot approve or reject your own gate pass")
    if not can_approve(approver, requester, directory):
        raise AuthorizationError("You are not an approver for this gate pass")


def is_pending_for(approver: User, requester: User, directory: OrgDirectory) -> bool:
    """Whether a PENDING pass of ``requester`` belongs in ``approver``'s queue"""
    return can_approve(approver, requester, directory)

# endregion

# region ========== Role policy ==========

def has_organization_scope(user: User) -> bool:
    return user.role in ORGANIZATION_SCOPE_ROLES


def can_operate_gate(user: User) -> bool:
    return user.is_active and user.role in GATE_OPERATOR_ROLES


def ensure_can_operate_gate(user: User) -> None:
    if not can_operate_gate(user):
        raise AuthorizationError("Only security staff can record gate check-out and check-in")


def can_manage_organization(user: User) -> bool:
    return user.is_active and user.role == UserRole.ADMIN


def ensure_can_manage_organization(user: User) -> None:
    if not can_manage_organization(user):
        raise AuthorizationError("Only administrators can manage users and departments")


def can_view_dashboard(user: User) -> bool:
    return has_organization_scope(user)


def ensure_can_view_dashboard(user: User) -> None:
    if not can_view_dashboard(user):
        raise AuthorizationError("Only executives and administrators can view the dashboard")


def can_view_daily_board(user: User) -> bool:
    return has_organization_scope(user) or user.role == UserRole.SECURITY


def ensure_can_view_daily_board(user: User) -> None:
    if not can_view_daily_board(user):
        raise AuthorizationError("Not allowed to view today's gate passes")


def can_list_all_passes(user: User) -> bool:
    return user.role == UserRole.ADMIN


def supervised_user_ids(supervisor: User, directory: OrgDirectory) -> Set[int]:
    """Users reporting to ``supervisor`` directly or through departments they head"""
    headed = [d.id for d in directory.departments.values() if d.head_user_id == supervisor.id]
    department_ids = directory.child_department_ids(headed)
    members = {
        u.id for u in directory.users.values()
        if u.reports_to_user_id == supervisor.id or (u.department_id is not None and u.department_id in department_ids)
    }
    members.discard(supervisor.id)
    return members


def department_scope_user_ids(viewer: User, directory: OrgDirectory) -> Optional[Set[int]]:
    """User ids visible in a department history view; None means the whole organization"""
    if has_organization_scope(viewer):
        return None
    return supervised_user_ids(viewer, directory)


def ensure_can_view_department(viewer: User, hod: User) -> None:
    if viewer.id == hod.id or has_organization_scope(viewer):
        return
    raise AuthorizationError("Not allowed to view this department's gate passes")


def can_view_user_history(viewer: User, subject: User, directory: OrgDirectory) -> bool:
    if viewer.id == subject.id or has_organization_scope(viewer):
        return True
    return subject.id in supervised_user_ids(viewer, directory)


def ensure_can_view_user_history(viewer: User, subject: User, directory: OrgDirectory) -> None:
    if not can_view_user_history(viewer, subject, directory):
        raise AuthorizationError("Not allowed to view this user's gate passes")


def can_view_pass(viewer: User, gate_pass, requester: User, directory: OrgDirectory) -> bool:
    if viewer.id in (gate_pass.user_id, gate_pass.approver_id):
        return True
    if has_organization_scope(viewer) or can_operate_gate(viewer):
        return True
    if can_approve(viewer, requester, directory):
        return True
    return requester.id in supervised_user_ids(viewer, directory)


def ensure_can_view_pass(viewer: User, gate_pass, requester: User, directory: OrgDirectory) -> None:
    if not can_view_pass(viewer, gate_pass, requester, directory):
        raise AuthorizationError("Not allowed to view this gate pass")


def ensure_acting_as(principal: User, claimed_user_id: Optional[int], label: str = "user") -> None:
    """Reject bodies that name a different principal than the authenticated one"""
    if claimed_user_id is not None and claimed_user_id != principal.id:
        raise AuthorizationError(f"The {label} in the request does not match the authenticated user")


def ensure_can_view_queue(viewer: User, approver: User) -> None:
    if viewer.id == approver.id or viewer.role == UserRole.ADMIN:
        return
    raise AuthorizationError("Not allowed to view another approver's pending queue")


# endregion
