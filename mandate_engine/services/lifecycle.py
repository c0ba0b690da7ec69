"""Mandate status state machine.

    pending ──accept──▶ active ──suspend──▶ suspended
       │                 │  ▲                  │
     refuse          terminate └─reactivate────┤
       ▼                 ▼                  terminate
    cancelled ◀──────────┴─────────────────────┘
                      active ──expire──▶ expired

Pure rules only: which edges exist, who may take them, and what status a
mandate is in *today*. Persisting the result is the repository's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from mandate_engine.core.actor import Actor, ActorRole
from mandate_engine.core.exceptions import InvalidStateTransitionError, UnauthorizedActorError


class MandateStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class MandateAction(str, Enum):
    ACCEPT = "accept"
    REFUSE = "refuse"
    SUSPEND = "suspend"
    REACTIVATE = "reactivate"
    TERMINATE = "terminate"
    EXPIRE = "expire"


TERMINAL_STATUSES = frozenset({MandateStatus.EXPIRED, MandateStatus.CANCELLED})
OPEN_STATUSES = frozenset(MandateStatus) - TERMINAL_STATUSES


@dataclass(frozen=True)
class Transition:
    action: MandateAction
    source: MandateStatus
    target: MandateStatus


TRANSITIONS: tuple[Transition, ...] = (
    Transition(MandateAction.ACCEPT, MandateStatus.PENDING, MandateStatus.ACTIVE),
    Transition(MandateAction.REFUSE, MandateStatus.PENDING, MandateStatus.CANCELLED),
    Transition(MandateAction.SUSPEND, MandateStatus.ACTIVE, MandateStatus.SUSPENDED),
    Transition(MandateAction.REACTIVATE, MandateStatus.SUSPENDED, MandateStatus.ACTIVE),
    Transition(MandateAction.TERMINATE, MandateStatus.ACTIVE, MandateStatus.CANCELLED),
    Transition(MandateAction.TERMINATE, MandateStatus.SUSPENDED, MandateStatus.CANCELLED),
    Transition(MandateAction.EXPIRE, MandateStatus.ACTIVE, MandateStatus.EXPIRED),
)

ALLOWED_ACTORS: dict[MandateAction, frozenset[ActorRole]] = {
    MandateAction.ACCEPT: frozenset({ActorRole.AGENCY}),
    MandateAction.REFUSE: frozenset({ActorRole.AGENCY}),
    MandateAction.SUSPEND: frozenset({ActorRole.AGENCY}),
    MandateAction.REACTIVATE: frozenset({ActorRole.AGENCY}),
    MandateAction.TERMINATE: frozenset({ActorRole.OWNER, ActorRole.AGENCY}),
    MandateAction.EXPIRE: frozenset({ActorRole.SYSTEM}),
}

_EDGES: dict[tuple[MandateAction, MandateStatus], Transition] = {
    (t.action, t.source): t for t in TRANSITIONS
}


def is_past_end(end_date: Optional[date], today: date) -> bool:
    return end_date is not None and end_date < today


def effective_status(
    status: MandateStatus | str, end_date: Optional[date], today: date
) -> MandateStatus:
    """Status as of `today`: an active mandate past its end date is logically expired.

    Stored status is left alone; only the explicit `expire` action persists it.
    """
    current = MandateStatus(status)
    if current is MandateStatus.ACTIVE and is_past_end(end_date, today):
        return MandateStatus.EXPIRED
    return current


def check_actor(action: MandateAction, actor: Actor) -> None:
    """Raise before any storage access when the role may not take this edge."""
    if actor.role not in ALLOWED_ACTORS[action]:
        allowed = " or ".join(sorted(r.value for r in ALLOWED_ACTORS[action]))
        raise UnauthorizedActorError(
            f"Only {allowed} may {action.value} a mandate (got {actor.role.value})"
        )


def plan_transition(
    action: MandateAction,
    stored_status: MandateStatus | str,
    end_date: Optional[date],
    today: date,
) -> Transition:
    """Return the edge `action` takes from the mandate's current state, or raise.

    Every action but `expire` is judged against the effective status, so a
    mandate that has run past its end date cannot be suspended or terminated.
    `expire` is judged against the stored status and needs a past end date.
    """
    stored = MandateStatus(stored_status)
    if action is MandateAction.EXPIRE:
        current = stored
    else:
        current = effective_status(stored, end_date, today)

    edge = _EDGES.get((action, current))
    if edge is None:
        raise InvalidStateTransitionError(action.value, current.value)
    if action is MandateAction.EXPIRE and not is_past_end(end_date, today):
        raise InvalidStateTransitionError(action.value, current.value)
    return edge


def available_actions(
    stored_status: MandateStatus | str,
    end_date: Optional[date],
    today: date,
    role: ActorRole,
) -> list[MandateAction]:
    """Actions `role` could successfully request right now (for UI buttons)."""
    actions = []
    for action in MandateAction:
        if role not in ALLOWED_ACTORS[action]:
            continue
        try:
            plan_transition(action, stored_status, end_date, today)
        except InvalidStateTransitionError:
            continue
        actions.append(action)
    return actions
