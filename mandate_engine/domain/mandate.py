"""SQLAlchemy ORM model for agency mandates.

One row per delegation contract between an owner and an agency:
  - property_id NULL means the mandate covers all of the owner's properties
    (mandate_scope = "all_properties")
  - status is only ever written through the lifecycle service
  - the eleven can_* columns are the capability grant
  - owner_signed_at / agency_signed_at track the dual signature, independent of status
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mandate_engine.db.base import Base
from mandate_engine.domain.mixins import TenantMixin, TimestampMixin


class Mandate(Base, TenantMixin, TimestampMixin):
    __tablename__ = "agency_mandates"
    __table_args__ = (
        CheckConstraint(
            "(property_id IS NULL AND mandate_scope = 'all_properties') OR "
            "(property_id IS NOT NULL AND mandate_scope = 'single_property')",
            name="ck_agency_mandates_scope_matches_property",
        ),
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="ck_agency_mandates_commission_rate_range",
        ),
        CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'expired', 'cancelled')",
            name="ck_agency_mandates_status",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    agency_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Plain reference; properties are owned by another service
    property_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    # "single_property" | "all_properties"
    mandate_scope: Mapped[str] = mapped_column(
        String(20), default="single_property", nullable=False
    )

    # "pending" | "active" | "suspended" | "expired" | "cancelled"
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)

    # Property management
    can_view_properties: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_edit_properties: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_create_properties: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_delete_properties: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Applications & leases
    can_view_applications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_manage_applications: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_create_leases: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Financial & maintenance
    can_view_financials: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_manage_maintenance: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Communication & documents
    can_communicate_tenants: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_manage_documents: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Dual electronic signature
    owner_signed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    agency_signed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Document store reference
    signed_mandate_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
