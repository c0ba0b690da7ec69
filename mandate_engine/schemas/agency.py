"""Agency directory schema."""

from __future__ import annotations

from mandate_engine.schemas.common import CamelModel


class AgencyOut(CamelModel):
    id: str
    agency_name: str
    city: str | None = None
    status: str
    commission_rate: float
