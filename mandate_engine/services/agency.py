"""Agency directory service (read-only)."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.domain.reference import Agency
from mandate_engine.repositories.reference import AgencyRepository


class AgencyDirectoryService:
    def __init__(self, session: AsyncSession, client_id: str):
        self._repo = AgencyRepository(session, client_id)

    async def list_active_agencies(self) -> list[Agency]:
        return await self._repo.list_active()
