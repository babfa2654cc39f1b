import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, DefaultDict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatePassEventBase:
    pass_id: str
    user_id: int
    actor_id: Optional[int]
    occurred_at: datetime
    destination: str
    expected_return: datetime


@dataclass(frozen=True)
class PassSubmitted(GatePassEventBase):
    reason: str = ""
    approver_ids: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class PassApproved(GatePassEventBase):
    adjusted_duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class PassRejected(GatePassEventBase):
    pass


@dataclass(frozen=True)
class PassCheckedOut(GatePassEventBase):
    pass


@dataclass(frozen=True)
class PassReturned(GatePassEventBase):
    total_duration_minutes: int = 0
    was_overdue: bool = False


Handler = Callable[[GatePassEventBase], Awaitable[None]]


class EventBus:
    """In-process publish/subscribe for gate pass domain events"""

    def __init__(self):
        self._subscribers: DefaultDict[Type[GatePassEventBase], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[GatePassEventBase], handler: Handler) -> None:
        self._subscribers[event_type].append(handler)

    async def publish(self, event: GatePassEventBase) -> None:
        for handler in self._subscribers.get(type(event), []):
            try:
                await handler(event)
            except Exception as e:
                # Subscribers never fail the transition that produced the event
                logger.error(f"Handler {getattr(handler, '__name__', handler)} failed for "
                             f"{type(event).__name__} on pass {event.pass_id}: {e}")
