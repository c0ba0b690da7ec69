"""Audit trail repository — append and read, nothing else."""

from __future__ import annotations

from typing import Any

from mandate_engine.core.actor import Actor
from mandate_engine.domain.audit import AuditTrail
from mandate_engine.repositories.base import BaseRepository


class AuditRepository(BaseRepository[AuditTrail]):
    model = AuditTrail

    async def record(
        self,
        *,
        actor: Actor,
        action: str,
        entity_id: str,
        old_value: Any = None,
        new_value: Any = None,
        description: str | None = None,
        entity_type: str = "mandate",
    ) -> AuditTrail:
        return await self.create(
            actor_id=actor.id,
            actor_role=actor.role.value,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=old_value,
            new_value=new_value,
            description=description,
        )

    async def list_for_entity(self, entity_id: str) -> list[AuditTrail]:
        result = await self._session.execute(
            self._base_query()
            .where(AuditTrail.entity_id == entity_id)
            .order_by(AuditTrail.created_at.asc(), AuditTrail.id.asc())
        )
        return list(result.scalars().all())
