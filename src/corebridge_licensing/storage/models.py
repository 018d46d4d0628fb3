"""SQLAlchemy ORM models for licenses, activations and the plugin catalog mirror."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from corebridge_licensing.licensing.clock import utcnow
from corebridge_licensing.licensing.metadata import LicenseMetadata


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class License(Base):
    """A grant of usage rights for one plugin to one customer."""

    __tablename__ = "licenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    license_key: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    plugin_id: Mapped[str] = mapped_column(String(255), index=True)
    customer_id: Mapped[str] = mapped_column(String(32), index=True)
    customer_email: Mapped[str] = mapped_column(String(255))
    customer_name: Mapped[str] = mapped_column(String(255))
    license_type: Mapped[str] = mapped_column(String(20))  # 1-year, 3-year, 5-year, perpetual
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    issued_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    activated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    activation_count: Mapped[int] = mapped_column(Integer, default=0)
    max_activations: Mapped[int] = mapped_column(Integer, default=1)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def details(self) -> LicenseMetadata:
        return LicenseMetadata.from_json(self.metadata_)

    @details.setter
    def details(self, value: LicenseMetadata) -> None:
        # Reassign so the JSON column is flagged dirty.
        self.metadata_ = value.to_json()

    def to_dict(self) -> dict[str, Any]:
        return {
            "license_id": self.id,
            "license_key": self.license_key,
            "plugin_id": self.plugin_id,
            "customer_id": self.customer_id,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "license_type": self.license_type,
            "status": self.status,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "activated_by": self.activated_by,
            "activation_count": self.activation_count,
            "max_activations": self.max_activations,
            "metadata": dict(self.metadata_ or {}),
        }


class Activation(Base):
    """Binding of a license to one machine identity."""

    __tablename__ = "license_activations"
    __table_args__ = (
        Index("ix_license_activations_license_machine", "license_id", "machine_id"),
        # At most one active activation per machine and license.
        Index(
            "uq_license_activations_active_machine",
            "license_id",
            "machine_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    license_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("licenses.id"), nullable=False, index=True
    )
    machine_id: Mapped[str] = mapped_column(String(255))
    ip_address: Mapped[str] = mapped_column(String(45), default="")
    user_agent: Mapped[str] = mapped_column(Text, default="")
    activated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "activation_id": self.id,
            "license_id": self.license_id,
            "machine_id": self.machine_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "last_seen_at": self.last_seen_at.isoformat() if self.last_seen_at else None,
            "status": self.status,
        }


class Plugin(Base):
    """Local mirror of the upstream plugin catalog, used for search only."""

    __tablename__ = "plugins"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    category: Mapped[str] = mapped_column(String(100), default="")
    health: Mapped[str] = mapped_column(String(50), default="")
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    running: Mapped[bool] = mapped_column(Boolean, default=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "health": self.health,
            "enabled": self.enabled,
            "running": self.running,
        }
