"""Mandate service — applies lifecycle transitions and the other guarded writes.

Each mutation follows the same order:
  1. role check (no storage access)
  2. load the mandate, check the caller is the right party
  3. plan the change from the current state (pure rules)
  4. one guarded UPDATE; if it matched no row another writer got there first
  5. audit row + log line
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.core.actor import Actor, ActorRole
from mandate_engine.core.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    UnauthorizedActorError,
    ValidationError,
)
from mandate_engine.domain.audit import AuditTrail
from mandate_engine.domain.mandate import Mandate
from mandate_engine.repositories.audit import AuditRepository
from mandate_engine.repositories.mandate import MandateRepository
from mandate_engine.services.batch import BatchMandateCreator, MandateTerms
from mandate_engine.services.commission import Number, validate_rate
from mandate_engine.services.lifecycle import (
    OPEN_STATUSES,
    MandateAction,
    MandateStatus,
    check_actor,
    effective_status,
    plan_transition,
)
from mandate_engine.services.permissions import PermissionSet, validate_partial
from mandate_engine.services.signatures import signature_column, signature_status_of

logger = logging.getLogger(__name__)

UPDATE_PERMISSIONS = "update_permissions"
UPDATE_COMMISSION = "update_commission_rate"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MandateService:
    def __init__(
        self,
        session: AsyncSession,
        client_id: str,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self._session = session
        self._client_id = client_id
        self._repo = MandateRepository(session, client_id)
        self._audit = AuditRepository(session, client_id)
        self._clock = clock or _utcnow

    def _today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_mandate(self, mandate_id: str, *, refresh: bool = False) -> Mandate:
        mandate = await self._repo.get_by_id(mandate_id, refresh=refresh)
        if not mandate:
            raise NotFoundError("Mandate", mandate_id)
        return mandate

    async def get_for_actor(self, mandate_id: str, actor: Actor) -> Mandate:
        mandate = await self.get_mandate(mandate_id)
        self._check_party(mandate, actor)
        return mandate

    async def history(self, mandate_id: str, actor: Actor) -> list[AuditTrail]:
        _ = await self.get_for_actor(mandate_id, actor)  # raises 404 / 403
        return await self._audit.list_for_entity(mandate_id)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_mandates(
        self,
        actor: Actor,
        agency_id: str,
        property_ids: list[str] | None,
        terms: MandateTerms,
    ) -> list[Mandate]:
        """Owner invites an agency; always goes through the batch path."""
        if actor.role is not ActorRole.OWNER or not actor.id:
            raise UnauthorizedActorError("Only an identified owner may invite an agency")
        creator = BatchMandateCreator(self._session, self._client_id, clock=self._clock)
        return await creator.create_batch(actor.id, agency_id, property_ids, terms)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def transition(
        self,
        mandate_id: str,
        action: MandateAction,
        actor: Actor,
        reason: str | None = None,
    ) -> Mandate:
        check_actor(action, actor)
        mandate = await self.get_mandate(mandate_id)
        self._check_party(mandate, actor)

        today = self._today()
        edge = plan_transition(action, mandate.status, mandate.end_date, today)
        changed = await self._repo.compare_and_set_status(
            mandate_id,
            expected=edge.source.value,
            target=edge.target.value,
            today=today,
            require_not_past_end=(
                edge.source is MandateStatus.ACTIVE and action is not MandateAction.EXPIRE
            ),
        )
        if not changed:
            await self._raise_lost_race(mandate_id, action.value)

        await self._audit.record(
            actor=actor,
            action=action.value,
            entity_id=mandate_id,
            old_value={"status": edge.source.value},
            new_value={"status": edge.target.value},
            description=reason,
        )
        logger.info(
            "mandate.%s id=%s %s->%s by=%s",
            action.value, mandate_id, edge.source.value, edge.target.value, actor.role.value,
        )
        return await self.get_mandate(mandate_id, refresh=True)

    # ------------------------------------------------------------------
    # Permissions / terms
    # ------------------------------------------------------------------

    async def update_permissions(
        self, mandate_id: str, actor: Actor, partial: Mapping[str, Any]
    ) -> Mandate:
        """Merge `partial` into the grant. Only the owner, only while active.

        An empty `partial` changes nothing and writes no audit row.
        """
        if actor.role is not ActorRole.OWNER:
            raise UnauthorizedActorError("Only the owner may change mandate permissions")
        values = validate_partial(partial)

        mandate = await self.get_mandate(mandate_id)
        self._check_party(mandate, actor)
        today = self._today()
        current = effective_status(mandate.status, mandate.end_date, today)
        if current is not MandateStatus.ACTIVE:
            raise InvalidStateTransitionError(UPDATE_PERMISSIONS, current.value)
        if not values:
            return mandate

        before = PermissionSet.from_row(mandate)
        changed = await self._repo.update_if_status_in(
            mandate_id, [MandateStatus.ACTIVE.value], today=today, **values
        )
        if not changed:
            await self._raise_lost_race(mandate_id, UPDATE_PERMISSIONS)

        await self._audit.record(
            actor=actor,
            action=UPDATE_PERMISSIONS,
            entity_id=mandate_id,
            old_value={key: getattr(before, key) for key in values},
            new_value=values,
        )
        logger.info("mandate.permissions_updated id=%s keys=%s", mandate_id, sorted(values))
        return await self.get_mandate(mandate_id, refresh=True)

    async def update_commission_rate(
        self, mandate_id: str, actor: Actor, rate: Number
    ) -> Mandate:
        if actor.role is not ActorRole.OWNER:
            raise UnauthorizedActorError("Only the owner may change the commission rate")
        value = validate_rate(rate)

        mandate = await self.get_mandate(mandate_id)
        self._check_party(mandate, actor)
        today = self._today()
        current = effective_status(mandate.status, mandate.end_date, today)
        if current not in OPEN_STATUSES:
            raise InvalidStateTransitionError(UPDATE_COMMISSION, current.value)

        old_rate = mandate.commission_rate
        changed = await self._repo.update_if_status_in(
            mandate_id, [s.value for s in OPEN_STATUSES], today=today, commission_rate=value
        )
        if not changed:
            await self._raise_lost_race(mandate_id, UPDATE_COMMISSION)

        await self._audit.record(
            actor=actor,
            action=UPDATE_COMMISSION,
            entity_id=mandate_id,
            old_value={"commission_rate": str(old_rate)},
            new_value={"commission_rate": str(value)},
        )
        logger.info("mandate.commission_updated id=%s rate=%s", mandate_id, value)
        return await self.get_mandate(mandate_id, refresh=True)

    # ------------------------------------------------------------------
    # Signatures / documents
    # ------------------------------------------------------------------

    async def record_signature(self, mandate_id: str, actor: Actor) -> Mandate:
        """Stamp the caller's signature. Idempotent; never reads or writes status."""
        column = signature_column(actor.role)
        mandate = await self.get_mandate(mandate_id)
        self._check_party(mandate, actor)

        signed = await self._repo.set_signature_if_unset(mandate_id, column, self._clock())
        mandate = await self.get_mandate(mandate_id, refresh=True)
        if signed:
            await self._audit.record(
                actor=actor,
                action="sign",
                entity_id=mandate_id,
                new_value={"signature_status": signature_status_of(mandate).value},
            )
            logger.info(
                "mandate.signed id=%s by=%s signature=%s",
                mandate_id, actor.role.value, signature_status_of(mandate).value,
            )
        return mandate

    async def attach_signed_document(self, mandate_id: str, actor: Actor, url: str) -> Mandate:
        """Store the document-store reference of the generated mandate."""
        if actor.role not in (ActorRole.OWNER, ActorRole.AGENCY):
            raise UnauthorizedActorError("Only a party to the mandate may attach its document")
        url = (url or "").strip()
        if not url:
            raise ValidationError("Document URL must not be empty")

        mandate = await self.get_mandate(mandate_id)
        self._check_party(mandate, actor)
        old_url = mandate.signed_mandate_url
        await self._repo.set_document_url(mandate_id, url)
        await self._audit.record(
            actor=actor,
            action="attach_document",
            entity_id=mandate_id,
            old_value={"signed_mandate_url": old_url},
            new_value={"signed_mandate_url": url},
        )
        logger.info("mandate.document_attached id=%s", mandate_id)
        return await self.get_mandate(mandate_id, refresh=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_party(mandate: Mandate, actor: Actor) -> None:
        """An identified owner/agency must be the one named on the mandate."""
        if actor.id is None or actor.role is ActorRole.SYSTEM:
            return
        expected = mandate.owner_id if actor.role is ActorRole.OWNER else mandate.agency_id
        if actor.id != expected:
            logger.warning(
                "mandate access denied id=%s role=%s actor=%s",
                mandate.id, actor.role.value, actor.id,
            )
            raise UnauthorizedActorError(
                f"{actor.role.value.capitalize()} '{actor.id}' is not a party to this mandate"
            )

    async def _raise_lost_race(self, mandate_id: str, action: str) -> None:
        """The guarded UPDATE matched nothing: report the state the winner left."""
        latest = await self.get_mandate(mandate_id, refresh=True)
        current = effective_status(latest.status, latest.end_date, self._today())
        logger.warning(
            "mandate write rejected id=%s action=%s current=%s", mandate_id, action, current.value
        )
        raise InvalidStateTransitionError(action, current.value)
