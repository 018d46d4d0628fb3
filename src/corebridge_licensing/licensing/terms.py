"""License types, statuses and validity periods."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from corebridge_licensing.config import LicenseTermsConfig


class LicenseType(StrEnum):
    """Purchased license duration."""

    ONE_YEAR = "1-year"
    THREE_YEAR = "3-year"
    FIVE_YEAR = "5-year"
    PERPETUAL = "perpetual"


class LicenseStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    SUSPENDED = "suspended"


class ActivationStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    REVOKED = "revoked"


def compute_expiry(
    license_type: LicenseType | str,
    issued_at: datetime,
    terms: LicenseTermsConfig,
) -> datetime:
    """Return the expiry instant for a license issued at *issued_at*.

    Perpetual licenses get the far-future sentinel so the expiry check never fires.
    Raises ``ValueError`` for an unknown license type.
    """
    license_type = LicenseType(license_type)
    if license_type is LicenseType.PERPETUAL:
        return terms.perpetual_expiry
    days = terms.validity_days.get(license_type.value)
    if days is None:
        raise ValueError(f"No validity period configured for '{license_type}'")
    return issued_at + timedelta(days=days)
