"""Mandate Pydantic schemas (request DTOs and response models)."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Literal

from pydantic import Field, StrictBool, field_validator, model_validator

from mandate_engine.schemas.common import CamelModel
from mandate_engine.services.batch import MandateTerms
from mandate_engine.services.lifecycle import MandateAction, MandateStatus
from mandate_engine.services.permissions import PermissionSet
from mandate_engine.services.query import MandateKPIs, MandateView


class PermissionsPatch(CamelModel):
    """Partial capability grant; keys left out are not touched.

    Values must be JSON booleans: no "yes"/1 coercion and no explicit null.
    """

    can_view_properties: StrictBool | None = None
    can_edit_properties: StrictBool | None = None
    can_create_properties: StrictBool | None = None
    can_delete_properties: StrictBool | None = None
    can_view_applications: StrictBool | None = None
    can_manage_applications: StrictBool | None = None
    can_create_leases: StrictBool | None = None
    can_view_financials: StrictBool | None = None
    can_manage_maintenance: StrictBool | None = None
    can_communicate_tenants: StrictBool | None = None
    can_manage_documents: StrictBool | None = None

    model_config = {**CamelModel.model_config, "extra": "forbid"}

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        # Only runs for keys that were sent; omitted keys keep the None default
        if value is None:
            raise ValueError("must be true or false")
        return value

    def as_partial(self) -> dict[str, bool]:
        return self.model_dump(exclude_unset=True)


class PermissionsOut(CamelModel):
    can_view_properties: bool
    can_edit_properties: bool
    can_create_properties: bool
    can_delete_properties: bool
    can_view_applications: bool
    can_manage_applications: bool
    can_create_leases: bool
    can_view_financials: bool
    can_manage_maintenance: bool
    can_communicate_tenants: bool
    can_manage_documents: bool


class MandateCreate(CamelModel):
    agency_id: str
    mandate_scope: Literal["single_property", "all_properties"] = "single_property"
    property_ids: list[str] | None = None
    commission_rate: float | None = None
    start_date: date | None = None
    end_date: date | None = None
    permissions: PermissionsPatch | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _scope_matches_properties(self) -> MandateCreate:
        if self.mandate_scope == "all_properties" and self.property_ids:
            raise ValueError("propertyIds must be empty for an all_properties mandate")
        if self.mandate_scope == "single_property" and not self.property_ids:
            raise ValueError("propertyIds is required for a single_property mandate")
        return self

    def target_property_ids(self) -> list[str] | None:
        return None if self.mandate_scope == "all_properties" else list(self.property_ids or [])

    def terms(self) -> MandateTerms:
        return MandateTerms(
            commission_rate=self.commission_rate,
            start_date=self.start_date,
            end_date=self.end_date,
            permissions=self.permissions.as_partial() if self.permissions else {},
            notes=self.notes,
        )


class TransitionRequest(CamelModel):
    action: MandateAction
    reason: str | None = Field(default=None, max_length=2000)


class CommissionUpdate(CamelModel):
    commission_rate: float


class DocumentAttach(CamelModel):
    url: str = Field(min_length=1, max_length=1000)


class MandateOut(CamelModel):
    id: str
    client_id: str
    owner_id: str
    agency_id: str
    property_id: str | None = None
    mandate_scope: str
    status: MandateStatus
    effective_status: MandateStatus
    commission_rate: float
    start_date: date
    end_date: date | None = None
    permissions: PermissionsOut
    owner_signed_at: datetime | None = None
    agency_signed_at: datetime | None = None
    signature_status: str
    signed_mandate_url: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    # Display data from reference lookups
    property_title: str | None = None
    property_city: str | None = None
    counterparty_name: str | None = None
    monthly_commission: int = 0

    @classmethod
    def from_view(cls, view: MandateView) -> MandateOut:
        m = view.mandate
        return cls(
            id=m.id,
            client_id=m.client_id,
            owner_id=m.owner_id,
            agency_id=m.agency_id,
            property_id=m.property_id,
            mandate_scope=m.mandate_scope,
            status=MandateStatus(m.status),
            effective_status=view.status,
            commission_rate=float(m.commission_rate),
            start_date=m.start_date,
            end_date=m.end_date,
            permissions=PermissionsOut(**PermissionSet.from_row(m).as_dict()),
            owner_signed_at=m.owner_signed_at,
            agency_signed_at=m.agency_signed_at,
            signature_status=view.signature.value,
            signed_mandate_url=m.signed_mandate_url,
            notes=m.notes,
            created_at=m.created_at,
            updated_at=m.updated_at,
            property_title=view.property_title,
            property_city=view.property_city,
            counterparty_name=view.counterparty_name,
            monthly_commission=view.monthly_commission,
        )


class MandateBoardOut(CamelModel):
    """Board columns keyed by status; all five keys always present."""

    pending: list[MandateOut]
    active: list[MandateOut]
    suspended: list[MandateOut]
    expired: list[MandateOut]
    cancelled: list[MandateOut]

    @classmethod
    def from_columns(cls, columns: dict[MandateStatus, list[MandateView]]) -> MandateBoardOut:
        return cls(**{
            status.value: [MandateOut.from_view(v) for v in views]
            for status, views in columns.items()
        })


class MandateKPIsOut(CamelModel):
    total: int
    active: int
    pending: int
    suspended: int
    expired: int
    cancelled: int
    total_monthly_commission: int
    expiring_soon_count: int
    pending_signature_count: int

    @classmethod
    def from_kpis(cls, kpis: MandateKPIs) -> MandateKPIsOut:
        return cls(**asdict(kpis))


class AuditEntryOut(CamelModel):
    id: str
    actor_id: str | None = None
    actor_role: str
    action: str
    old_value: Any = None
    new_value: Any = None
    description: str | None = None
    created_at: datetime
