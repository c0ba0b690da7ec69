"""Generic async repository with tenant isolation."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic read/create repository. All queries are filtered by client_id.

    Nothing here deletes rows: mandates and audit entries are kept for history.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession, client_id: str):
        self._session = session
        self._client_id = client_id

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _base_query(self):
        """Return a SELECT filtered by client_id."""
        return select(self.model).where(self.model.client_id == self._client_id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: str, *, refresh: bool = False) -> ModelT | None:
        q = self._base_query().where(self.model.id == entity_id)
        if refresh:
            # Reload attributes changed by bulk UPDATE statements
            q = q.execution_options(populate_existing=True)
        result = await self._session.execute(q)
        return result.scalars().first()

    async def get_many(self, entity_ids: list[str]) -> dict[str, ModelT]:
        if not entity_ids:
            return {}
        result = await self._session.execute(
            self._base_query().where(self.model.id.in_(set(entity_ids)))
        )
        return {row.id: row for row in result.scalars().all()}

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, **kwargs: Any) -> ModelT:
        instance = self.model(client_id=self._client_id, **kwargs)
        self._session.add(instance)
        await self._session.flush()  # populate id
        await self._session.refresh(instance)
        return instance
