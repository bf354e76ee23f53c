"""
Status lifecycles for every stateful entity.

Each entity has one transition table. All status changes go through
``transition()``, which checks the table and then performs a guarded
``UPDATE ... WHERE status = <expected>`` so that two reviewers acting on the
same row cannot both win. Callers never assign ``.status`` directly once a row
exists.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class LifecycleError(ValueError):
    """Base class for domain errors surfaced to the user as a flash message."""


class TransitionError(LifecycleError):
    pass


class ConcurrentTransitionError(LifecycleError):
    pass


class PermissionDenied(LifecycleError):
    pass


class InsufficientFunds(LifecycleError):
    pass


@dataclass(frozen=True)
class StatusMachine:
    name: str
    initial: str
    transitions: dict[str, frozenset[str]]

    @property
    def statuses(self) -> frozenset[str]:
        out = set(self.transitions)
        for targets in self.transitions.values():
            out |= targets
        return frozenset(out)

    def next_statuses(self, current: str) -> frozenset[str]:
        return self.transitions.get(current, frozenset())

    def can(self, current: str, new: str) -> bool:
        return new in self.next_statuses(current)

    def is_terminal(self, status: str) -> bool:
        return not self.next_statuses(status)

    def check(self, current: str, new: str) -> None:
        if current not in self.statuses:
            raise TransitionError(f"{self.name} has unknown status {current!r}.")
        if not self.can(current, new):
            raise TransitionError(f"{self.name} cannot move from '{current}' to '{new}'.")


def _machine(name: str, initial: str, table: dict[str, set[str]]) -> StatusMachine:
    return StatusMachine(name=name, initial=initial, transitions={k: frozenset(v) for k, v in table.items()})


APPLICATION = _machine(
    "Application",
    "pending",
    {
        "pending": {"testing", "training", "accepted", "rejected"},
        "testing": {"training", "accepted", "rejected"},
        "training": {"accepted"},
        "accepted": set(),
        "rejected": set(),
    },
)

WORK_ORDER = _machine(
    "Work order",
    "active",
    {
        "active": {"completed", "cancelled"},
        "completed": set(),
        "cancelled": set(),
    },
)

CLAIM = _machine(
    "Claim",
    "pending",
    {
        "pending": {"approved", "rejected"},
        "rejected": {"disputed"},
        "disputed": {"approved", "rejected"},
        "approved": set(),
    },
)

DISPUTE = _machine(
    "Dispute",
    "open",
    {
        "open": {"resolved", "closed"},
        "resolved": set(),
        "closed": set(),
    },
)

WITHDRAW_REQUEST = _machine(
    "Withdraw request",
    "pending",
    {
        "pending": {"approved", "rejected"},
        "approved": set(),
        "rejected": set(),
    },
)

KYC_DOCUMENT = _machine(
    "KYC document",
    "pending",
    {
        "pending": {"approved", "rejected"},
        "approved": set(),
        "rejected": set(),
    },
)

SUPPORT_TICKET = _machine(
    "Ticket",
    "open",
    {
        "open": {"in_progress", "resolved", "closed"},
        "in_progress": {"open", "resolved", "closed"},
        "resolved": {"open", "closed"},
        "closed": {"open"},
    },
)

GIG = _machine(
    "Gig",
    "active",
    {
        "active": {"closed"},
        "closed": {"active"},
    },
)

REFERRAL = _machine(
    "Referral",
    "pending",
    {
        "pending": {"completed"},
        "completed": set(),
    },
)


def transition(s: Session, obj: Any, machine: StatusMachine, new_status: str, **values: Any) -> str:
    """
    Move ``obj`` to ``new_status`` (plus any extra column ``values``) atomically.

    Returns the previous status. Raises TransitionError for moves the table
    forbids and ConcurrentTransitionError when the row changed underneath us.
    """
    current = obj.status
    machine.check(current, new_status)

    model = type(obj)
    # Pending ORM changes must reach the DB before the guarded UPDATE runs.
    s.flush()
    result = s.execute(
        update(model)
        .where(model.id == obj.id, model.status == current)
        .values(status=new_status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("%s %s: stale transition %s -> %s", machine.name, obj.id, current, new_status)
        raise ConcurrentTransitionError(
            f"{machine.name} was changed by someone else. Reload the page and try again."
        )
    # Reload the touched columns on next access so the object matches the row.
    s.expire(obj, ["status", *values])
    logger.info("%s %s: %s -> %s", machine.name, obj.id, current, new_status)
    return current
