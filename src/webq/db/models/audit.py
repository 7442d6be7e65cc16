"""Audit event models for erasure accountability."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, UTCDateTime


class AuditEventType(str, Enum):
    """Types of audit events tracked in the system."""

    # Request-issued boundary
    ERASURE_CODE_ISSUED = "erasure.code_issued"

    # Request-completed boundary (exactly one per terminal request)
    ERASURE_COMPLETED = "erasure.completed"
    ERASURE_PARTIAL_FAILURE = "erasure.partial_failure"
    ERASURE_IDENTITY_DELETION_FAILED = "erasure.identity_deletion_failed"


class AuditSeverity(str, Enum):
    """Severity levels for audit events."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(Base):
    """Immutable audit log entry.

    Audit events are append-only. They deliberately carry no foreign key to
    the erased target so the trail outlives the data it describes.
    """

    __tablename__ = "audit_events"

    # UUIDv7 is time-ordered, making audit events naturally sortable by ID
    audit_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="info")

    # Context
    target_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    correlation_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Event data (structured JSON)
    event_data: Mapped[dict] = mapped_column(PortableJSON(), nullable=False)

    # Metadata
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)  # IPv6 support
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_audit_target", "target_id"),
        Index("idx_audit_correlation", "correlation_id"),
        Index("idx_audit_event_type", "event_type"),
        Index("idx_audit_created", "created_at"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent(id={self.audit_id}, type={self.event_type}, "
            f"severity={self.severity})>"
        )
