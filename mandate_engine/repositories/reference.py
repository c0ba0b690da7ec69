"""Read-only lookups of properties, profiles and agencies."""

from __future__ import annotations

from sqlalchemy import select

from mandate_engine.domain.reference import Agency, Profile, Property
from mandate_engine.repositories.base import BaseRepository


class PropertyRepository(BaseRepository[Property]):
    model = Property

    async def list_for_owner(self, owner_id: str) -> list[Property]:
        result = await self._session.execute(
            self._base_query().where(Property.owner_id == owner_id).order_by(Property.title)
        )
        return list(result.scalars().all())


class ProfileRepository(BaseRepository[Profile]):
    model = Profile


class AgencyRepository(BaseRepository[Agency]):
    model = Agency

    async def list_active(self) -> list[Agency]:
        result = await self._session.execute(
            self._base_query().where(Agency.status == "active").order_by(Agency.agency_name)
        )
        return list(result.scalars().all())
