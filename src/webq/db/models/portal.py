"""Client portal tables owned by the surrounding application.

Only the columns the erasure pipeline reads or joins on are declared
here. Foreign keys are plain references without ON DELETE CASCADE, so
rows must be removed child-first.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, UTCDateTime


class _PortalRow:
    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )


class Account(_PortalRow, Base):
    """Identity record of a client (the auth user)."""

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)


# =============================================================================
# Account-level records
# =============================================================================


class Profile(_PortalRow, Base):
    __tablename__ = "profiles"

    user_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255))


class UserRole(_PortalRow, Base):
    __tablename__ = "user_roles"

    user_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="client")


class Notification(_PortalRow, Base):
    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)


class ClientOnboarding(_PortalRow, Base):
    """Onboarding answers; ``logo_url`` points into the brand-files bucket."""

    __tablename__ = "client_onboarding"

    user_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255))
    logo_url: Mapped[str | None] = mapped_column(Text)


class TimelineMessage(_PortalRow, Base):
    __tablename__ = "timeline_messages"

    client_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)


# =============================================================================
# Projects
# =============================================================================


class ClientProject(_PortalRow, Base):
    __tablename__ = "client_projects"

    client_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class ProjectTicket(_PortalRow, Base):
    __tablename__ = "project_tickets"

    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("client_projects.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)


class TicketMessage(_PortalRow, Base):
    __tablename__ = "ticket_messages"

    ticket_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("project_tickets.id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)


class ProjectCredential(_PortalRow, Base):
    __tablename__ = "project_credentials"

    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("client_projects.id"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    secret_value: Mapped[str | None] = mapped_column(Text)


class ProjectFile(_PortalRow, Base):
    """Uploaded project file; ``file_url`` points into the project-files bucket."""

    __tablename__ = "project_files"

    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("client_projects.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str | None] = mapped_column(Text)


# =============================================================================
# Design orders
# =============================================================================


class DesignOrder(_PortalRow, Base):
    __tablename__ = "design_orders"

    client_id: Mapped[UUID] = mapped_column(PortableUUID(), ForeignKey("accounts.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)


class DesignDelivery(_PortalRow, Base):
    __tablename__ = "design_deliveries"

    order_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("design_orders.id"), nullable=False
    )


class DesignDeliveryFile(_PortalRow, Base):
    """Delivered artwork; ``file_url`` may live in design-files or brand-files."""

    __tablename__ = "design_delivery_files"

    delivery_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("design_deliveries.id"), nullable=False
    )
    file_url: Mapped[str | None] = mapped_column(Text)


class DesignFeedback(_PortalRow, Base):
    __tablename__ = "design_feedback"

    delivery_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("design_deliveries.id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)


# =============================================================================
# Anonymous visitors
# =============================================================================


class CookieConsentLog(_PortalRow, Base):
    """Consent decision recorded for an anonymous browser session."""

    __tablename__ = "cookie_consent_logs"

    session_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    preferences: Mapped[dict] = mapped_column(PortableJSON(), nullable=False, default=dict)

    __table_args__ = (Index("idx_cookie_consent_session", "session_id"),)
