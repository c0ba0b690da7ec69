"""Read-only reference entities owned by other services.

The mandate engine looks these up for names, cities and rents; it never writes them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from mandate_engine.db.base import Base
from mandate_engine.domain.mixins import TenantMixin


class Property(Base, TenantMixin):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)


class Profile(Base, TenantMixin):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)


class Agency(Base, TenantMixin):
    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    agency_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # "pending" | "active" | "suspended" | "rejected"
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=10, nullable=False)
