"""License issuance, validation, activation and expiration."""

from .keygen import derive_customer_id, generate_license_key
from .metadata import LicenseMetadata
from .terms import ActivationStatus, LicenseStatus, LicenseType, compute_expiry
from .verdict import Verdict, VerdictReason

__all__ = [
    "ActivationStatus",
    "LicenseMetadata",
    "LicenseStatus",
    "LicenseType",
    "Verdict",
    "VerdictReason",
    "compute_expiry",
    "derive_customer_id",
    "generate_license_key",
]
