from enum import Enum
from typing import Optional


class AccessStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    PAID = "paid"
    ACTIVE = "active"


VALID_TRANSITIONS = {
    AccessStatus.NEW: [AccessStatus.PENDING],
    AccessStatus.PENDING: [AccessStatus.PAID],
    AccessStatus.PAID: [AccessStatus.ACTIVE],
    AccessStatus.ACTIVE: [],
}

CHAT_ACCESS_STATUSES = {AccessStatus.PAID, AccessStatus.ACTIVE}


class InvalidTransitionError(Exception):
    def __init__(self, from_status: AccessStatus, to_status: AccessStatus):
        self.from_status = from_status
        self.to_status = to_status
        self.message = f"Invalid status transition: {from_status.value} -> {to_status.value}"
        super().__init__(self.message)


def parse_status(value: Optional[str]) -> AccessStatus:
    """Read a stored status; empty or unknown values count as new."""
    try:
        return AccessStatus(value)
    except ValueError:
        return AccessStatus.NEW


def has_chat_access(value: Optional[str]) -> bool:
    return parse_status(value) in CHAT_ACCESS_STATUSES


def can_transition(from_status: AccessStatus, to_status: AccessStatus) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_status, [])
    return to_status in allowed


def transition(from_status: AccessStatus, to_status: AccessStatus) -> AccessStatus:
    """Perform status transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)
    return to_status


def advance_to(current: AccessStatus, target: AccessStatus) -> AccessStatus:
    """Walk forward through the progression until target is reached.

    A status that is already at or past the target is returned unchanged.
    """
    order = list(AccessStatus)
    if order.index(current) >= order.index(target):
        return current
    status = current
    while status != target:
        status = transition(status, order[order.index(status) + 1])
    return status


def confirm_payment(current: AccessStatus) -> AccessStatus:
    """Payment confirmed by the billing callback."""
    return advance_to(current, AccessStatus.PAID)


def activate(current: AccessStatus) -> AccessStatus:
    """Onboarding finished, free chat unlocked."""
    if current == AccessStatus.ACTIVE:
        return current
    return transition(current, AccessStatus.ACTIVE)
