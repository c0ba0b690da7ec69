"""Schema base shared by the mandate and agency DTOs.

Request and response bodies use camelCase on the wire (`propertyIds`,
`canEditProperties`) and snake_case in Python.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase aliases; `from_attributes` so ORM rows (agencies, audit entries) validate directly."""

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "from_attributes": True,
    }


class HealthResponse(BaseModel):
    """Liveness payload for GET /health, naming the service and its environment."""
    status: str = "ok"
    app: str
    env: str
