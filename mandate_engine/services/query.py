"""Read views over a party's mandates: list filter/sort, status board, KPIs.

The pure functions work on `MandateView` rows so the list, board and grid
presentations all share one implementation. `MandateQueryService` only
assembles those rows from the repositories.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.core.config import settings
from mandate_engine.domain.mandate import Mandate
from mandate_engine.repositories.mandate import MandateRepository
from mandate_engine.repositories.reference import (
    AgencyRepository,
    ProfileRepository,
    PropertyRepository,
)
from mandate_engine.services.commission import aggregate_commission, monthly_commission
from mandate_engine.services.lifecycle import MandateStatus, effective_status
from mandate_engine.services.signatures import SignatureStatus, signature_status_of

SORT_FIELDS = ("created_at", "start_date", "property_title", "commission_rate", "counterparty_name")


@dataclass(frozen=True)
class MandateView:
    mandate: Any
    status: MandateStatus
    signature: SignatureStatus
    property_title: Optional[str] = None
    property_city: Optional[str] = None
    counterparty_name: Optional[str] = None
    monthly_commission: int = 0

    @property
    def id(self) -> str:
        return self.mandate.id


@dataclass(frozen=True)
class MandateFilters:
    status: Optional[MandateStatus] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class MandateKPIs:
    total: int
    active: int
    pending: int
    suspended: int
    expired: int
    cancelled: int
    total_monthly_commission: int
    expiring_soon_count: int
    pending_signature_count: int


# ---------------------------------------------------------------------------
# Pure derivations
# ---------------------------------------------------------------------------

def matches_search(view: MandateView, text: str) -> bool:
    """Case-insensitive substring on title, city, counterparty name or id."""
    needle = text.strip().casefold()
    if not needle:
        return True
    haystack = (view.property_title, view.property_city, view.counterparty_name, view.id)
    return any(value is not None and needle in value.casefold() for value in haystack)


def filter_views(views: Iterable[MandateView], filters: MandateFilters) -> list[MandateView]:
    result = list(views)
    if filters.status is not None:
        result = [v for v in result if v.status is filters.status]
    if filters.search:
        result = [v for v in result if matches_search(v, filters.search)]
    return result


def _sort_value(view: MandateView, field: str) -> Any:
    m = view.mandate
    if field == "created_at":
        return m.created_at
    if field == "start_date":
        return m.start_date
    if field == "property_title":
        return view.property_title.casefold() if view.property_title else None
    if field == "commission_rate":
        return Decimal(m.commission_rate)
    if field == "counterparty_name":
        return view.counterparty_name.casefold() if view.counterparty_name else None
    raise ValueError(f"Unsupported sort field: {field}")


def sort_views(
    views: Iterable[MandateView], field: str = "created_at", order: str = "desc"
) -> list[MandateView]:
    """Sort by `field`; ties always fall back to id ascending.

    Missing values (e.g. no property title on an all-properties mandate) sort
    after present ones in ascending order.
    """
    if field not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field: {field}")
    # Python's sort is stable, also with reverse=True, so the id order survives ties.
    by_id = sorted(views, key=lambda v: v.id)

    present = [v for v in by_id if _sort_value(v, field) is not None]
    missing = [v for v in by_id if _sort_value(v, field) is None]
    present.sort(key=lambda v: _sort_value(v, field), reverse=(order == "desc"))
    return present + missing


def partition_by_status(views: Iterable[MandateView]) -> dict[MandateStatus, list[MandateView]]:
    """Board columns; every status key is present even when empty."""
    columns: dict[MandateStatus, list[MandateView]] = {status: [] for status in MandateStatus}
    for view in views:
        columns[view.status].append(view)
    return columns


def compute_kpis(
    views: Iterable[MandateView], today: date, horizon_days: int | None = None
) -> MandateKPIs:
    if horizon_days is None:
        horizon_days = settings.expiring_soon_days
    horizon = today + timedelta(days=horizon_days)
    counts: dict[MandateStatus, int] = defaultdict(int)
    total = 0
    commission = 0
    expiring = 0
    unsigned = 0
    for view in views:
        total += 1
        counts[view.status] += 1
        if view.status is not MandateStatus.ACTIVE:
            continue
        commission += view.monthly_commission
        end = view.mandate.end_date
        if end is not None and today <= end <= horizon:
            expiring += 1
        if view.signature is not SignatureStatus.COMPLETED:
            unsigned += 1
    return MandateKPIs(
        total=total,
        active=counts[MandateStatus.ACTIVE],
        pending=counts[MandateStatus.PENDING],
        suspended=counts[MandateStatus.SUSPENDED],
        expired=counts[MandateStatus.EXPIRED],
        cancelled=counts[MandateStatus.CANCELLED],
        total_monthly_commission=commission,
        expiring_soon_count=expiring,
        pending_signature_count=unsigned,
    )


# ---------------------------------------------------------------------------
# Assembly from storage
# ---------------------------------------------------------------------------

class MandateQueryService:
    def __init__(
        self,
        session: AsyncSession,
        client_id: str,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self._mandates = MandateRepository(session, client_id)
        self._properties = PropertyRepository(session, client_id)
        self._profiles = ProfileRepository(session, client_id)
        self._agencies = AgencyRepository(session, client_id)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _today(self) -> date:
        return self._clock().date()

    async def views_for_party(self, party_id: str) -> list[MandateView]:
        mandates = await self._mandates.list_for_party(party_id)
        return await self._build_views(mandates, party_id)

    async def view_of(self, mandate: Mandate, viewer_id: str | None = None) -> MandateView:
        views = await self._build_views([mandate], viewer_id or mandate.owner_id)
        return views[0]

    async def query(
        self,
        party_id: str,
        filters: MandateFilters | None = None,
        sort: str = "created_at",
        order: str = "desc",
    ) -> list[MandateView]:
        views = await self.views_for_party(party_id)
        return sort_views(filter_views(views, filters or MandateFilters()), sort, order)

    async def board(
        self, party_id: str, search: str | None = None, sort: str = "created_at", order: str = "desc"
    ) -> dict[MandateStatus, list[MandateView]]:
        views = await self.query(party_id, MandateFilters(search=search), sort, order)
        return partition_by_status(views)

    async def kpis(self, party_id: str) -> MandateKPIs:
        views = await self.views_for_party(party_id)
        return compute_kpis(views, self._today())

    async def _build_views(self, mandates: list[Mandate], viewer_id: str) -> list[MandateView]:
        today = self._today()
        property_ids = [m.property_id for m in mandates if m.property_id]
        properties = await self._properties.get_many(property_ids)
        agencies = await self._agencies.get_many([m.agency_id for m in mandates])
        profiles = await self._profiles.get_many([m.owner_id for m in mandates])

        # All-properties mandates earn commission on every property of the owner
        portfolio_rents: dict[str, list[Decimal]] = {}
        for owner_id in {m.owner_id for m in mandates if m.property_id is None}:
            portfolio_rents[owner_id] = [
                p.monthly_rent for p in await self._properties.list_for_owner(owner_id)
            ]

        views = []
        for m in mandates:
            prop = properties.get(m.property_id) if m.property_id else None
            if m.property_id is None:
                commission = aggregate_commission(portfolio_rents.get(m.owner_id, []), m.commission_rate)
            elif prop is not None:
                commission = monthly_commission(prop.monthly_rent, m.commission_rate)
            else:
                commission = 0

            if viewer_id == m.owner_id:
                agency = agencies.get(m.agency_id)
                counterparty = agency.agency_name if agency else None
            else:
                profile = profiles.get(m.owner_id)
                counterparty = profile.display_name if profile else None

            views.append(
                MandateView(
                    mandate=m,
                    status=effective_status(m.status, m.end_date, today),
                    signature=signature_status_of(m),
                    property_title=prop.title if prop else None,
                    property_city=prop.city if prop else None,
                    counterparty_name=counterparty,
                    monthly_commission=commission,
                )
            )
        return views
