"""Capability grant attached to a mandate.

Eleven independent booleans. The groups below only drive display order in
clients; no rule depends on them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from mandate_engine.core.exceptions import ValidationError

PERMISSION_GROUPS: dict[str, tuple[str, ...]] = {
    "property_management": (
        "can_view_properties",
        "can_edit_properties",
        "can_create_properties",
        "can_delete_properties",
    ),
    "applications_and_leases": (
        "can_view_applications",
        "can_manage_applications",
        "can_create_leases",
    ),
    "financial_and_maintenance": (
        "can_view_financials",
        "can_manage_maintenance",
    ),
    "communication_and_documents": (
        "can_communicate_tenants",
        "can_manage_documents",
    ),
}


@dataclass(frozen=True)
class PermissionSet:
    can_view_properties: bool = True
    can_edit_properties: bool = False
    can_create_properties: bool = False
    can_delete_properties: bool = False
    can_view_applications: bool = True
    can_manage_applications: bool = False
    can_create_leases: bool = False
    can_view_financials: bool = False
    can_manage_maintenance: bool = False
    can_communicate_tenants: bool = True
    can_manage_documents: bool = False

    @classmethod
    def create_default(cls) -> PermissionSet:
        """View properties, view applications and contact tenants; nothing else."""
        return cls()

    @classmethod
    def from_row(cls, row: Any) -> PermissionSet:
        """Read the can_* attributes off an ORM row (or any object carrying them)."""
        return cls(**{key: bool(getattr(row, key)) for key in PERMISSION_KEYS})

    def merge(self, partial: Mapping[str, Any]) -> PermissionSet:
        """Return a copy with only the keys present in `partial` overwritten."""
        return replace(self, **validate_partial(partial))

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)

    def granted(self) -> list[str]:
        return [key for key, value in self.as_dict().items() if value]


PERMISSION_KEYS: tuple[str, ...] = tuple(f.name for f in fields(PermissionSet))


def validate_partial(partial: Mapping[str, Any]) -> dict[str, bool]:
    """Reject unknown capability names and non-boolean values."""
    unknown = sorted(set(partial) - set(PERMISSION_KEYS))
    if unknown:
        raise ValidationError(f"Unknown permission key(s): {', '.join(unknown)}")
    not_bool = sorted(key for key, value in partial.items() if not isinstance(value, bool))
    if not_bool:
        raise ValidationError(f"Permission value(s) must be true or false: {', '.join(not_bool)}")
    return dict(partial)
