# tests/test_batch.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from conftest import CLIENT, TODAY, count_mandates, fixed_clock
from mandate_engine.core.exceptions import NotFoundError, PartialBatchFailureError, ValidationError
from mandate_engine.domain import AuditTrail
from mandate_engine.repositories.mandate import MandateRepository
from mandate_engine.services.batch import BatchMandateCreator, MandateTerms
from mandate_engine.services.permissions import PermissionSet

TERMS = MandateTerms(
    commission_rate=10,
    start_date=date(2025, 1, 1),
    end_date=date(2025, 12, 31),
    permissions={"can_manage_applications": True},
    notes="Gestion locative complète",
)


def _creator(session) -> BatchMandateCreator:
    return BatchMandateCreator(session, CLIENT, clock=fixed_clock)


async def test_batch_gives_identical_independent_mandates(seeded):
    created = await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1", "prop-2"], TERMS)
    assert len({m.id for m in created}) == 2
    assert [m.property_id for m in created] == ["prop-1", "prop-2"]
    expected_permissions = PermissionSet.create_default().merge({"can_manage_applications": True})
    for m in created:
        assert m.status == "pending"
        assert m.agency_id == "agency-1"
        assert float(m.commission_rate) == 10
        assert m.end_date == date(2025, 12, 31)
        assert m.notes == "Gestion locative complète"
        assert PermissionSet.from_row(m) == expected_permissions


async def test_all_properties_invitation_is_a_batch_of_one(seeded):
    [mandate] = await _creator(seeded).create_batch("owner-1", "agency-1", None, TERMS)
    assert mandate.property_id is None
    assert mandate.mandate_scope == "all_properties"


async def test_one_bad_property_rejects_whole_batch(seeded):
    with pytest.raises(PartialBatchFailureError) as exc:
        await _creator(seeded).create_batch(
            "owner-1", "agency-1", ["prop-1", "prop-9", "prop-2", "ghost"], TERMS
        )
    assert exc.value.failed_property_ids == ["prop-9", "ghost"]
    assert exc.value.reasons == {"prop-9": "not_owned_by_owner", "ghost": "property_not_found"}
    assert await count_mandates(seeded) == 0


async def test_duplicate_property_in_batch_is_rejected(seeded):
    with pytest.raises(PartialBatchFailureError) as exc:
        await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1", "prop-2", "prop-1"], TERMS)
    assert exc.value.failed_property_ids == ["prop-1"]
    assert await count_mandates(seeded) == 0


async def test_property_with_open_mandate_for_same_agency_is_rejected(seeded):
    await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-2"], TERMS)
    with pytest.raises(PartialBatchFailureError) as exc:
        await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1", "prop-2"], TERMS)
    assert exc.value.reasons == {"prop-2": "open_mandate_exists"}
    assert await count_mandates(seeded) == 1


async def test_write_failure_midway_leaves_nothing_behind(seeded, monkeypatch):
    original_add = MandateRepository.add
    calls = {"n": 0}

    async def flaky_add(self, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise IntegrityError("INSERT INTO agency_mandates", {}, Exception("disk full"))
        return await original_add(self, **kwargs)

    monkeypatch.setattr(MandateRepository, "add", flaky_add)

    with pytest.raises(PartialBatchFailureError) as exc:
        await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1", "prop-2", "prop-3"], TERMS)
    assert exc.value.failed_property_ids == ["prop-2"]
    assert await count_mandates(seeded) == 0
    audit_rows = (await seeded.execute(select(func.count()).select_from(AuditTrail))).scalar_one()
    assert audit_rows == 0

    # the session is still usable and a retry succeeds
    monkeypatch.setattr(MandateRepository, "add", original_add)
    created = await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1", "prop-2", "prop-3"], TERMS)
    assert len(created) == 3


async def test_zero_commission_rate_is_kept(seeded):
    terms = MandateTerms(commission_rate=0, start_date=date(2025, 1, 1))
    [mandate] = await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1"], terms)
    assert float(mandate.commission_rate) == 0


async def test_two_decimal_rate_is_stored_exactly(seeded):
    terms = MandateTerms(commission_rate=Decimal("12.35"), start_date=date(2025, 1, 1))
    [mandate] = await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1"], terms)
    stored = await MandateRepository(seeded, CLIENT).get_by_id(mandate.id, refresh=True)
    assert stored.commission_rate == Decimal("12.35")


async def test_defaults_when_terms_omitted(seeded):
    [mandate] = await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1"], MandateTerms())
    assert float(mandate.commission_rate) == 10
    assert mandate.start_date == TODAY
    assert mandate.end_date is None


@pytest.mark.parametrize(
    "terms",
    [
        MandateTerms(commission_rate=120),
        MandateTerms(commission_rate=-0.5),
        MandateTerms(commission_rate=Decimal("12.345")),
        MandateTerms(start_date=date(2025, 6, 1), end_date=date(2025, 5, 31)),
        MandateTerms(permissions={"can_sell_property": True}),
    ],
)
async def test_invalid_terms_rejected(seeded, terms):
    with pytest.raises(ValidationError):
        await _creator(seeded).create_batch("owner-1", "agency-1", ["prop-1"], terms)
    assert await count_mandates(seeded) == 0


async def test_empty_selection_rejected(seeded):
    with pytest.raises(ValidationError):
        await _creator(seeded).create_batch("owner-1", "agency-1", [], TERMS)


async def test_unknown_or_inactive_agency(seeded):
    with pytest.raises(NotFoundError):
        await _creator(seeded).create_batch("owner-1", "agency-404", ["prop-1"], TERMS)
    with pytest.raises(ValidationError):
        await _creator(seeded).create_batch("owner-1", "agency-2", ["prop-1"], TERMS)
    with pytest.raises(NotFoundError):
        await _creator(seeded).create_batch("owner-404", "agency-1", ["prop-1"], TERMS)
