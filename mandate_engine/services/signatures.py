"""Dual-signature tracking.

The single place that answers "is this mandate signed?". It never looks at
lifecycle status: a mandate can be active and unsigned, or cancelled and
fully signed.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from mandate_engine.core.actor import ActorRole
from mandate_engine.core.exceptions import UnauthorizedActorError


class SignatureStatus(str, Enum):
    UNSIGNED = "unsigned"
    OWNER_SIGNED = "owner_signed"
    AGENCY_SIGNED = "agency_signed"
    COMPLETED = "completed"


_SIGNATURE_COLUMNS: dict[ActorRole, str] = {
    ActorRole.OWNER: "owner_signed_at",
    ActorRole.AGENCY: "agency_signed_at",
}


def signature_status(
    owner_signed_at: Optional[datetime], agency_signed_at: Optional[datetime]
) -> SignatureStatus:
    if owner_signed_at is not None and agency_signed_at is not None:
        return SignatureStatus.COMPLETED
    if owner_signed_at is not None:
        return SignatureStatus.OWNER_SIGNED
    if agency_signed_at is not None:
        return SignatureStatus.AGENCY_SIGNED
    return SignatureStatus.UNSIGNED


def signature_status_of(mandate: Any) -> SignatureStatus:
    return signature_status(mandate.owner_signed_at, mandate.agency_signed_at)


def needs_signature(mandate: Any) -> bool:
    return signature_status_of(mandate) is not SignatureStatus.COMPLETED


def signature_column(role: ActorRole) -> str:
    """Timestamp column a party's signature lands in. Only the two parties sign."""
    try:
        return _SIGNATURE_COLUMNS[role]
    except KeyError:
        raise UnauthorizedActorError(f"A {role.value} actor cannot sign a mandate") from None
