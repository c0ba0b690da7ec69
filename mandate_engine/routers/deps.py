"""Request-scoped dependencies: who is calling and for which tenant.

Authentication happens upstream; these headers carry its result.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from mandate_engine.core.actor import Actor, ActorRole
from mandate_engine.core.config import settings
from mandate_engine.core.exceptions import UnauthorizedActorError


def get_actor(
    x_actor_role: Optional[str] = Header(default=None, description="owner | agency | system"),
    x_actor_id: Optional[str] = Header(default=None, description="Owner or agency id"),
) -> Actor:
    if not x_actor_role:
        raise UnauthorizedActorError("X-Actor-Role header is required")
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        raise UnauthorizedActorError(f"Unknown actor role '{x_actor_role}'") from None
    return Actor(role=role, id=(x_actor_id or None) if role is not ActorRole.SYSTEM else None)


def get_client_id(
    x_client_id: Optional[str] = Header(default=None, description="Tenant id"),
) -> str:
    return x_client_id or settings.default_client_id
