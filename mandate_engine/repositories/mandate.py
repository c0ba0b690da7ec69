"""Mandate repository — every status-changing write is a guarded UPDATE.

The precondition and the write happen in one statement
(`UPDATE ... WHERE status = :expected`), so of two concurrent writers only
the first changes the row; the second sees rowcount 0.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import or_, select, update

from mandate_engine.domain.mandate import Mandate
from mandate_engine.repositories.base import BaseRepository


class MandateRepository(BaseRepository[Mandate]):
    model = Mandate

    # ------------------------------------------------------------------
    # Guarded writes
    # ------------------------------------------------------------------

    def _guarded_update(self, mandate_id: str):
        return (
            update(Mandate)
            .where(Mandate.id == mandate_id)
            .where(Mandate.client_id == self._client_id)
        )

    @staticmethod
    def _not_past_end(today: date):
        return or_(Mandate.end_date.is_(None), Mandate.end_date >= today)

    async def compare_and_set_status(
        self,
        mandate_id: str,
        *,
        expected: str,
        target: str,
        today: date,
        require_not_past_end: bool = False,
    ) -> bool:
        """Move `expected` → `target` atomically. Returns False if the row had moved on."""
        stmt = (
            self._guarded_update(mandate_id)
            .where(Mandate.status == expected)
            .values(status=target)
        )
        if require_not_past_end:
            stmt = stmt.where(self._not_past_end(today))
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount > 0

    async def update_if_status_in(
        self,
        mandate_id: str,
        statuses: list[str],
        *,
        today: date,
        **values: Any,
    ) -> bool:
        """Write `values` only while the mandate is in one of `statuses` (and, for
        active mandates, not past its end date)."""
        stmt = (
            self._guarded_update(mandate_id)
            .where(Mandate.status.in_(statuses))
            .where(or_(Mandate.status != "active", self._not_past_end(today)))
            .values(**values)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount > 0

    async def set_signature_if_unset(
        self, mandate_id: str, column: str, signed_at: datetime
    ) -> bool:
        """Stamp a party's signature once; re-signing leaves the first timestamp."""
        col = getattr(Mandate, column)
        result = await self._session.execute(
            self._guarded_update(mandate_id)
            .where(col.is_(None))
            .values({column: signed_at})
        )
        await self._session.flush()
        return result.rowcount > 0

    async def set_document_url(self, mandate_id: str, url: str) -> bool:
        result = await self._session.execute(
            self._guarded_update(mandate_id).values(signed_mandate_url=url)
        )
        await self._session.flush()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Batch support
    # ------------------------------------------------------------------

    async def add(self, **kwargs: Any) -> Mandate:
        """Stage a new mandate and flush it (inside the caller's transaction)."""
        return await self.create(**kwargs)

    async def open_property_ids(
        self, owner_id: str, agency_id: str, property_ids: list[str], open_statuses: list[str]
    ) -> set[str]:
        """Property ids that already have an open mandate with this agency."""
        if not property_ids:
            return set()
        result = await self._session.execute(
            select(Mandate.property_id)
            .where(Mandate.client_id == self._client_id)
            .where(Mandate.owner_id == owner_id)
            .where(Mandate.agency_id == agency_id)
            .where(Mandate.property_id.in_(set(property_ids)))
            .where(Mandate.status.in_(open_statuses))
        )
        return {pid for pid in result.scalars().all() if pid is not None}

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def list_for_party(self, party_id: str) -> list[Mandate]:
        """Every mandate where `party_id` is the owner or the agency."""
        result = await self._session.execute(
            self._base_query()
            .where(or_(Mandate.owner_id == party_id, Mandate.agency_id == party_id))
            .order_by(Mandate.created_at.desc(), Mandate.id.asc())
        )
        return list(result.scalars().all())
