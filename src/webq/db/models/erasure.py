"""Coordination state for tenant data erasure.

Every table here is durable so that codes, lockouts, locks and request
progress survive process restarts and are shared between workers.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, TimestampMixin, UTCDateTime


class DeletionVerificationCode(Base):
    """Single-use, time-limited code authorizing an account erasure.

    Only a keyed hash of the code is stored.
    """

    __tablename__ = "deletion_verification_codes"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    target_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (Index("idx_deletion_codes_target", "target_id", "created_at"),)


class ChallengeAttempt(Base):
    """Challenge and lockout state for one requester fingerprint."""

    __tablename__ = "challenge_attempts"

    fingerprint: Mapped[str] = mapped_column(String(64), primary_key=True)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    answer_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    answer_nonce: Mapped[str | None] = mapped_column(String(64), nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)


class ErasureLock(Base):
    """Exclusive per-target execution lock (database backend)."""

    __tablename__ = "erasure_locks"

    target_key: Mapped[str] = mapped_column(String(100), primary_key=True)
    token: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class ErasureRequestRecord(TimestampMixin, Base):
    """Persisted erasure request and its terminal disposition."""

    __tablename__ = "erasure_requests"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    target_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    target_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    failure_kind: Mapped[str | None] = mapped_column(String(30), nullable=True)
    plan: Mapped[dict] = mapped_column(PortableJSON(), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    step_results: Mapped[list["ErasureStepResultRecord"]] = relationship(
        back_populates="request",
        order_by="ErasureStepResultRecord.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_erasure_requests_target", "target_kind", "target_id"),
        Index("idx_erasure_requests_status", "status"),
    )


class ErasureStepResultRecord(Base):
    """Append-only outcome of one executed deletion step."""

    __tablename__ = "erasure_step_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("erasure_requests.id"), nullable=False
    )
    attempt: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    collection: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    identity: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rows_deleted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    objects_deleted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    objects_absent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    request: Mapped[ErasureRequestRecord] = relationship(back_populates="step_results")

    __table_args__ = (Index("idx_erasure_step_results_request", "request_id", "attempt"),)
