"""Structured result of a validation call."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class VerdictReason(StrEnum):
    """Why a license was judged invalid."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    LICENSE_INACTIVE = "license_inactive"
    MAX_ACTIVATIONS = "max_activations"


@dataclass
class Verdict:
    """Outcome of ``ValidationEngine.validate``.

    Warning flags map each threshold (in days) to ``days_remaining <= threshold``.
    They are advisory only.
    """

    valid: bool
    reason: VerdictReason | None = None
    message: str = ""
    license_id: str | None = None
    status: str | None = None
    license_type: str | None = None
    expires_at: datetime | None = None
    days_remaining: int | None = None
    activation_count: int | None = None
    max_activations: int | None = None
    warnings: dict[int, bool] = field(default_factory=dict)
    activation_id: str | None = None
    activation_created: bool = False

    @classmethod
    def invalid(
        cls, reason: VerdictReason, message: str, license_id: str | None = None
    ) -> Verdict:
        return cls(valid=False, reason=reason, message=message, license_id=license_id)

    def to_dict(self) -> dict[str, Any]:
        if not self.valid:
            return {
                "valid": False,
                "reason": self.reason.value if self.reason else None,
                "message": self.message,
            }
        return {
            "valid": True,
            "license_id": self.license_id,
            "status": self.status,
            "license_type": self.license_type,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "days_remaining": self.days_remaining,
            "activation_count": self.activation_count,
            "max_activations": self.max_activations,
            "activation_id": self.activation_id,
            "warning_thresholds": {
                f"show_{days}_day_warning": flag
                for days, flag in sorted(self.warnings.items(), reverse=True)
            },
        }
