"""All-or-nothing creation of mandates for one owner → agency invitation.

N selected properties give N independent mandates with identical terms.
Every property is checked before anything is written; the writes then run
inside one SAVEPOINT so a failure part-way leaves no mandate behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.core.actor import Actor
from mandate_engine.core.config import settings
from mandate_engine.core.exceptions import (
    NotFoundError,
    PartialBatchFailureError,
    ValidationError,
)
from mandate_engine.domain.mandate import Mandate
from mandate_engine.repositories.audit import AuditRepository
from mandate_engine.repositories.mandate import MandateRepository
from mandate_engine.repositories.reference import (
    AgencyRepository,
    ProfileRepository,
    PropertyRepository,
)
from mandate_engine.services.commission import Number, validate_rate
from mandate_engine.services.lifecycle import OPEN_STATUSES, MandateStatus
from mandate_engine.services.permissions import PermissionSet

logger = logging.getLogger(__name__)

SCOPE_SINGLE = "single_property"
SCOPE_ALL = "all_properties"

# Reasons reported per failed property id
REASON_DUPLICATE = "duplicate"
REASON_NOT_FOUND = "property_not_found"
REASON_NOT_OWNED = "not_owned_by_owner"
REASON_OPEN_MANDATE = "open_mandate_exists"
REASON_WRITE_FAILED = "write_failed"


@dataclass(frozen=True)
class MandateTerms:
    """Fields shared by every mandate of one invitation."""

    commission_rate: Optional[Number] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    permissions: Mapping[str, bool] = field(default_factory=dict)
    notes: Optional[str] = None


@dataclass(frozen=True)
class ResolvedTerms:
    commission_rate: Decimal
    start_date: date
    end_date: Optional[date]
    permissions: PermissionSet
    notes: Optional[str]


def resolve_terms(terms: MandateTerms, today: date) -> ResolvedTerms:
    """Apply defaults and validate; 0 is a valid rate, only None falls back."""
    rate = terms.commission_rate
    if rate is None:
        rate = settings.default_commission_rate
    start = terms.start_date or today
    if terms.end_date is not None and terms.end_date < start:
        raise ValidationError(
            f"end_date {terms.end_date.isoformat()} is before start_date {start.isoformat()}"
        )
    return ResolvedTerms(
        commission_rate=validate_rate(rate),
        start_date=start,
        end_date=terms.end_date,
        permissions=PermissionSet.create_default().merge(terms.permissions),
        notes=terms.notes,
    )


class BatchMandateCreator:
    def __init__(
        self,
        session: AsyncSession,
        client_id: str,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self._session = session
        self._mandates = MandateRepository(session, client_id)
        self._audit = AuditRepository(session, client_id)
        self._properties = PropertyRepository(session, client_id)
        self._profiles = ProfileRepository(session, client_id)
        self._agencies = AgencyRepository(session, client_id)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def create_batch(
        self,
        owner_id: str,
        agency_id: str,
        property_ids: list[str] | None,
        terms: MandateTerms,
    ) -> list[Mandate]:
        """Create one pending mandate per property, or one all-properties mandate
        when `property_ids` is None. Returns every created mandate or raises."""
        resolved = resolve_terms(terms, self._clock().date())

        if property_ids is not None and not property_ids:
            raise ValidationError("Select at least one property, or none for all properties")

        if await self._profiles.get_by_id(owner_id) is None:
            raise NotFoundError("Owner", owner_id)
        agency = await self._agencies.get_by_id(agency_id)
        if agency is None:
            raise NotFoundError("Agency", agency_id)
        if agency.status != "active":
            raise ValidationError(f"Agency '{agency_id}' is not accepting mandates")

        targets: list[str | None]
        if property_ids is None:
            targets = [None]
        else:
            await self._check_properties(owner_id, agency_id, property_ids)
            targets = list(property_ids)

        created = await self._write_all(owner_id, agency_id, targets, resolved)
        logger.info(
            "mandate.created owner=%s agency=%s count=%d ids=%s",
            owner_id, agency_id, len(created), [m.id for m in created],
        )
        return created

    async def _check_properties(
        self, owner_id: str, agency_id: str, property_ids: list[str]
    ) -> None:
        failures: dict[str, str] = {}
        seen: set[str] = set()
        for pid in property_ids:
            if pid in seen:
                failures[pid] = REASON_DUPLICATE
            seen.add(pid)

        found = await self._properties.get_many(list(seen))
        for pid in seen:
            prop = found.get(pid)
            if prop is None:
                failures.setdefault(pid, REASON_NOT_FOUND)
            elif prop.owner_id != owner_id:
                failures.setdefault(pid, REASON_NOT_OWNED)

        already_open = await self._mandates.open_property_ids(
            owner_id, agency_id, list(seen), [s.value for s in OPEN_STATUSES]
        )
        for pid in already_open:
            failures.setdefault(pid, REASON_OPEN_MANDATE)

        if failures:
            ordered = [pid for pid in dict.fromkeys(property_ids) if pid in failures]
            logger.warning(
                "mandate batch rejected owner=%s agency=%s failures=%s",
                owner_id, agency_id, failures,
            )
            raise PartialBatchFailureError(ordered, failures)

    async def _write_all(
        self,
        owner_id: str,
        agency_id: str,
        targets: list[str | None],
        terms: ResolvedTerms,
    ) -> list[Mandate]:
        created: list[Mandate] = []
        current: str | None = None
        owner = Actor.owner(owner_id)
        try:
            async with self._session.begin_nested():
                for current in targets:
                    mandate = await self._mandates.add(
                        owner_id=owner_id,
                        agency_id=agency_id,
                        property_id=current,
                        mandate_scope=SCOPE_ALL if current is None else SCOPE_SINGLE,
                        status=MandateStatus.PENDING.value,
                        commission_rate=terms.commission_rate,
                        start_date=terms.start_date,
                        end_date=terms.end_date,
                        notes=terms.notes,
                        **terms.permissions.as_dict(),
                    )
                    await self._audit.record(
                        actor=owner,
                        action="create",
                        entity_id=mandate.id,
                        new_value={"status": mandate.status, "property_id": current},
                    )
                    created.append(mandate)
        except SQLAlchemyError as exc:
            failed = current if current is not None else SCOPE_ALL
            logger.warning(
                "mandate batch rolled back owner=%s agency=%s failed=%s: %s",
                owner_id, agency_id, failed, exc,
            )
            raise PartialBatchFailureError([failed], {failed: REASON_WRITE_FAILED}) from exc
        return created
