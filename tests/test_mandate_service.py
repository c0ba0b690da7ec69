# tests/test_mandate_service.py
from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import CLIENT, TODAY, fixed_clock
from mandate_engine.core.actor import Actor
from mandate_engine.core.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    UnauthorizedActorError,
    ValidationError,
)
from mandate_engine.repositories.mandate import MandateRepository
from mandate_engine.services.batch import MandateTerms
from mandate_engine.services.lifecycle import MandateAction, MandateStatus
from mandate_engine.services.mandate import MandateService
from mandate_engine.services.permissions import PERMISSION_KEYS, PermissionSet
from mandate_engine.services.signatures import SignatureStatus, signature_status_of

OWNER = Actor.owner("owner-1")
AGENCY = Actor.agency("agency-1")
TERMS = MandateTerms(commission_rate=10, start_date=date(2025, 1, 1), end_date=date(2025, 12, 31))


def _svc(session, clock=fixed_clock) -> MandateService:
    return MandateService(session, CLIENT, clock=clock)


async def _pending(session, property_id="prop-1", terms=TERMS):
    [mandate] = await _svc(session).create_mandates(OWNER, "agency-1", [property_id], terms)
    return mandate


async def _active(session, property_id="prop-1", terms=TERMS):
    mandate = await _pending(session, property_id, terms)
    return await _svc(session).transition(mandate.id, MandateAction.ACCEPT, AGENCY)


async def test_invite_three_properties_creates_three_pending_mandates(seeded):
    created = await _svc(seeded).create_mandates(
        OWNER, "agency-1", ["prop-1", "prop-2", "prop-3"], TERMS
    )
    assert len(created) == 3
    assert sorted(m.property_id for m in created) == ["prop-1", "prop-2", "prop-3"]
    for m in created:
        assert m.status == "pending"
        assert float(m.commission_rate) == 10
        assert (m.start_date, m.end_date) == (date(2025, 1, 1), date(2025, 12, 31))
        assert m.mandate_scope == "single_property"
        assert PermissionSet.from_row(m) == PermissionSet.create_default()
        assert m.owner_signed_at is None and m.agency_signed_at is None


async def test_accept_then_accept_again_fails(seeded):
    mandate = await _pending(seeded)
    accepted = await _svc(seeded).transition(mandate.id, MandateAction.ACCEPT, AGENCY)
    assert accepted.status == "active"

    with pytest.raises(InvalidStateTransitionError) as exc:
        await _svc(seeded).transition(mandate.id, MandateAction.ACCEPT, AGENCY)
    assert exc.value.current_status == "active"
    assert (await _svc(seeded).get_mandate(mandate.id)).status == "active"


async def test_full_agency_cycle(seeded):
    mandate = await _active(seeded)
    svc = _svc(seeded)
    assert (await svc.transition(mandate.id, MandateAction.SUSPEND, AGENCY, "travaux")).status == "suspended"
    assert (await svc.transition(mandate.id, MandateAction.REACTIVATE, AGENCY)).status == "active"
    assert (await svc.transition(mandate.id, MandateAction.TERMINATE, OWNER)).status == "cancelled"
    with pytest.raises(InvalidStateTransitionError):
        await svc.transition(mandate.id, MandateAction.REACTIVATE, AGENCY)


async def test_refuse_cancels_pending_mandate(seeded):
    mandate = await _pending(seeded)
    refused = await _svc(seeded).transition(mandate.id, MandateAction.REFUSE, AGENCY, "Portefeuille complet")
    assert refused.status == "cancelled"
    history = await _svc(seeded).history(mandate.id, OWNER)
    assert [e.action for e in history] == ["create", "refuse"]
    assert history[-1].description == "Portefeuille complet"
    assert history[-1].new_value == {"status": "cancelled"}


async def test_owner_terminates_suspended_mandate_without_touching_signatures(seeded):
    mandate = await _active(seeded)
    svc = _svc(seeded)
    await svc.record_signature(mandate.id, OWNER)
    await svc.transition(mandate.id, MandateAction.SUSPEND, AGENCY)
    before = await svc.get_mandate(mandate.id)
    signed_at = (before.owner_signed_at, before.agency_signed_at)

    terminated = await svc.transition(mandate.id, MandateAction.TERMINATE, OWNER)
    assert terminated.status == "cancelled"
    assert (terminated.owner_signed_at, terminated.agency_signed_at) == signed_at
    assert terminated.owner_signed_at is not None
    assert terminated.agency_signed_at is None


async def test_unauthorized_role_fails_before_lookup(seeded):
    # the mandate does not exist, yet the role check wins
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).transition("missing", MandateAction.ACCEPT, OWNER)
    with pytest.raises(NotFoundError):
        await _svc(seeded).transition("missing", MandateAction.ACCEPT, AGENCY)


async def test_other_agency_cannot_act_on_mandate(seeded):
    mandate = await _pending(seeded)
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).transition(mandate.id, MandateAction.ACCEPT, Actor.agency("agency-2"))
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).transition(mandate.id, MandateAction.REFUSE, Actor.agency("agency-2"))
    assert (await _svc(seeded).get_mandate(mandate.id)).status == "pending"


async def test_other_owner_cannot_terminate(seeded):
    mandate = await _active(seeded)
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).transition(mandate.id, MandateAction.TERMINATE, Actor.owner("owner-2"))


async def test_update_permissions_merges_partial(seeded):
    mandate = await _active(seeded)
    before = PermissionSet.from_row(mandate).as_dict()
    assert before["can_edit_properties"] is False

    updated = await _svc(seeded).update_permissions(mandate.id, OWNER, {"can_edit_properties": True})
    after = PermissionSet.from_row(updated).as_dict()
    assert after["can_edit_properties"] is True
    for key in PERMISSION_KEYS:
        if key != "can_edit_properties":
            assert after[key] == before[key]


async def test_update_permissions_is_idempotent(seeded):
    mandate = await _active(seeded)
    partial = {"can_view_financials": True, "can_view_properties": False}
    once = PermissionSet.from_row(await _svc(seeded).update_permissions(mandate.id, OWNER, partial))
    twice = PermissionSet.from_row(await _svc(seeded).update_permissions(mandate.id, OWNER, partial))
    assert once == twice


async def test_update_permissions_requires_active_and_owner(seeded):
    mandate = await _pending(seeded)
    with pytest.raises(InvalidStateTransitionError) as exc:
        await _svc(seeded).update_permissions(mandate.id, OWNER, {"can_edit_properties": True})
    assert exc.value.current_status == "pending"

    await _svc(seeded).transition(mandate.id, MandateAction.ACCEPT, AGENCY)
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).update_permissions(mandate.id, AGENCY, {"can_edit_properties": True})
    with pytest.raises(ValidationError):
        await _svc(seeded).update_permissions(mandate.id, OWNER, {"can_teleport": True})
    with pytest.raises(InvalidStateTransitionError):
        await _svc(seeded).update_permissions(
            (await _pending(seeded, "prop-2")).id, OWNER, {}
        )


async def test_empty_permission_patch_changes_nothing(seeded):
    mandate = await _active(seeded)
    before = PermissionSet.from_row(mandate)
    same = await _svc(seeded).update_permissions(mandate.id, OWNER, {})
    assert PermissionSet.from_row(same) == before
    assert PermissionSet.create_default().merge({}) == PermissionSet.create_default()
    actions = [e.action for e in await _svc(seeded).history(mandate.id, OWNER)]
    assert actions == ["create", "accept"]


async def test_signatures_are_idempotent_and_independent_of_status(seeded):
    mandate = await _pending(seeded)
    svc = _svc(seeded)
    first = await svc.record_signature(mandate.id, AGENCY)
    assert signature_status_of(first) is SignatureStatus.AGENCY_SIGNED
    assert first.status == "pending"
    stamped = first.agency_signed_at

    later = MandateService(seeded, CLIENT, clock=lambda: fixed_clock() + timedelta(hours=3))
    again = await later.record_signature(mandate.id, AGENCY)
    assert again.agency_signed_at == stamped

    done = await svc.record_signature(mandate.id, OWNER)
    assert signature_status_of(done) is SignatureStatus.COMPLETED
    assert done.status == "pending"

    history = await svc.history(mandate.id, OWNER)
    assert [e.action for e in history].count("sign") == 2


async def test_system_actor_cannot_sign(seeded):
    mandate = await _pending(seeded)
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).record_signature(mandate.id, Actor.system())


async def test_cancelled_mandate_can_still_be_signed(seeded):
    mandate = await _pending(seeded)
    await _svc(seeded).transition(mandate.id, MandateAction.REFUSE, AGENCY)
    await _svc(seeded).record_signature(mandate.id, OWNER)
    done = await _svc(seeded).record_signature(mandate.id, AGENCY)
    assert done.status == "cancelled"
    assert signature_status_of(done) is SignatureStatus.COMPLETED


async def test_lapsed_mandate_is_frozen_until_expired(seeded):
    terms = MandateTerms(commission_rate=10, start_date=date(2025, 1, 1), end_date=date(2025, 6, 1))
    mandate = await _active(seeded, terms=terms)
    svc = _svc(seeded)

    with pytest.raises(InvalidStateTransitionError) as exc:
        await svc.transition(mandate.id, MandateAction.SUSPEND, AGENCY)
    assert exc.value.current_status == "expired"
    with pytest.raises(InvalidStateTransitionError):
        await svc.update_permissions(mandate.id, OWNER, {"can_edit_properties": True})
    # stored status untouched by reads
    assert (await svc.get_mandate(mandate.id)).status == "active"

    with pytest.raises(UnauthorizedActorError):
        await svc.transition(mandate.id, MandateAction.EXPIRE, AGENCY)
    expired = await svc.transition(mandate.id, MandateAction.EXPIRE, Actor.system())
    assert expired.status == "expired"
    with pytest.raises(InvalidStateTransitionError):
        await svc.transition(mandate.id, MandateAction.EXPIRE, Actor.system())


async def test_expire_before_end_date_rejected(seeded):
    mandate = await _active(seeded)
    with pytest.raises(InvalidStateTransitionError):
        await _svc(seeded).transition(mandate.id, MandateAction.EXPIRE, Actor.system())


async def test_guarded_update_loses_to_earlier_writer(seeded):
    mandate = await _pending(seeded)
    repo = MandateRepository(seeded, CLIENT)
    # agency accepted first
    assert await repo.compare_and_set_status(mandate.id, expected="pending", target="active", today=TODAY)
    # a refusal prepared against the stale "pending" read matches nothing
    assert not await repo.compare_and_set_status(mandate.id, expected="pending", target="cancelled", today=TODAY)
    assert (await repo.get_by_id(mandate.id, refresh=True)).status == "active"


async def test_guarded_update_respects_end_date(seeded):
    terms = MandateTerms(commission_rate=10, start_date=date(2025, 1, 1), end_date=date(2025, 6, 1))
    mandate = await _active(seeded, terms=terms)
    repo = MandateRepository(seeded, CLIENT)
    changed = await repo.compare_and_set_status(
        mandate.id, expected="active", target="suspended", today=TODAY, require_not_past_end=True
    )
    assert not changed


async def test_unknown_status_is_rejected_by_the_database(seeded):
    mandate = await _pending(seeded)
    repo = MandateRepository(seeded, CLIENT)
    with pytest.raises(IntegrityError):
        await repo.compare_and_set_status(mandate.id, expected="pending", target="archived", today=TODAY)


async def test_update_commission_rate(seeded):
    mandate = await _active(seeded)
    updated = await _svc(seeded).update_commission_rate(mandate.id, OWNER, 12.5)
    assert float(updated.commission_rate) == 12.5

    with pytest.raises(ValidationError):
        await _svc(seeded).update_commission_rate(mandate.id, OWNER, 101)
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).update_commission_rate(mandate.id, AGENCY, 5)

    await _svc(seeded).transition(mandate.id, MandateAction.TERMINATE, AGENCY)
    with pytest.raises(InvalidStateTransitionError):
        await _svc(seeded).update_commission_rate(mandate.id, OWNER, 5)


async def test_attach_signed_document(seeded):
    mandate = await _active(seeded)
    url = "https://docs.example.com/mandates/signed.pdf"
    updated = await _svc(seeded).attach_signed_document(mandate.id, AGENCY, url)
    assert updated.signed_mandate_url == url
    assert updated.status == "active"
    with pytest.raises(ValidationError):
        await _svc(seeded).attach_signed_document(mandate.id, OWNER, "  ")
    with pytest.raises(UnauthorizedActorError):
        await _svc(seeded).attach_signed_document(mandate.id, Actor.system(), url)


async def test_unknown_mandate_is_not_found(seeded):
    with pytest.raises(NotFoundError):
        await _svc(seeded).get_mandate("nope")
    with pytest.raises(NotFoundError):
        await _svc(seeded).record_signature("nope", OWNER)


async def test_role_only_actor_is_accepted_without_id(seeded):
    mandate = await _pending(seeded)
    accepted = await _svc(seeded).transition(mandate.id, MandateAction.ACCEPT, Actor.agency())
    assert accepted.status == MandateStatus.ACTIVE.value
