"""Who is calling: the two contracting parties plus the time-driven system actor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    OWNER = "owner"
    AGENCY = "agency"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """An authenticated caller. `id` is None for the system actor or anonymous role checks."""

    role: ActorRole
    id: str | None = None

    @classmethod
    def owner(cls, owner_id: str | None = None) -> Actor:
        return cls(ActorRole.OWNER, owner_id)

    @classmethod
    def agency(cls, agency_id: str | None = None) -> Actor:
        return cls(ActorRole.AGENCY, agency_id)

    @classmethod
    def system(cls) -> Actor:
        return cls(ActorRole.SYSTEM)
