"""Typed view of the free-form license metadata column."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class LicenseMetadata(BaseModel):
    """Known administrative fields plus any extra keys written by other tools.

    Unknown keys are kept in ``model_extra`` and written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    revocation_reason: str | None = None
    revoked_at: datetime | None = None
    revoked_by: str | None = None
    suspension_reason: str | None = None
    suspended_at: datetime | None = None
    suspended_by: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> LicenseMetadata:
        return cls.model_validate(data or {})

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})
