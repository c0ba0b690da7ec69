"""Domain package — all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  mandate.py    — agency mandates (the only table this service writes besides audit)
  reference.py  — read-only Property / Profile / Agency lookups
  audit.py      — Immutable audit trail (never updated or deleted)
  mixins.py     — Shared TimestampMixin, TenantMixin
"""

from mandate_engine.domain.audit import AuditTrail
from mandate_engine.domain.mandate import Mandate
from mandate_engine.domain.reference import Agency, Profile, Property

__all__ = [
    "Agency",
    "AuditTrail",
    "Mandate",
    "Profile",
    "Property",
]
