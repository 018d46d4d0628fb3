"""Exceptions raised by the licensing core.

Negative validation outcomes (not found, expired, inactive, activation cap
reached) are returned as verdicts and never raised.
"""

from __future__ import annotations


class LicensingError(Exception):
    """Base class for licensing errors."""


class ValidationInputError(LicensingError):
    """A required field is missing or malformed."""


class LicenseNotFoundError(LicensingError):
    """No license exists with the given id."""

    def __init__(self, license_id: str) -> None:
        super().__init__(f"License {license_id} not found")
        self.license_id = license_id


class InvalidTransitionError(LicensingError):
    """An admin transition is not allowed from the license's current status."""

    def __init__(self, license_id: str, current: str, target: str) -> None:
        super().__init__(f"License {license_id} cannot move from {current} to {target}")
        self.license_id = license_id
        self.current = current
        self.target = target


class StorageFailure(LicensingError):
    """The database could not complete the operation."""


class ConcurrencyConflict(StorageFailure):
    """A transaction kept conflicting with concurrent writers until retries ran out."""
