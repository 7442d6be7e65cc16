"""Audit logging service for erasure accountability."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from webq.core.context import current_correlation_id, get_current_context_or_none
from webq.db.models.audit import AuditEvent, AuditEventType, AuditSeverity


class AuditLogger:
    """Service for creating and querying audit events.

    Audit events are immutable, append-only records of erasure lifecycle
    boundaries. The caller owns the session and decides when to commit.
    """

    def __init__(self, db: AsyncSession):
        """Initialize audit logger with database session.

        Args:
            db: Async SQLAlchemy session for database operations
        """
        self.db = db

    async def log_event(
        self,
        event_type: AuditEventType | str,
        correlation_id: UUID,
        event_data: dict[str, Any],
        severity: AuditSeverity | str = AuditSeverity.INFO,
        target_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditEvent:
        """Create an immutable audit log entry.

        Args:
            event_type: Type of event (erasure.completed, erasure.code_issued, etc.)
            correlation_id: Request correlation ID for tracing related events
            event_data: Structured event details (must be JSON serializable)
            severity: Event severity level (default: INFO)
            target_id: Account or session the event concerns
            resource_type: Optional resource type (erasure_request, ...)
            resource_id: Optional resource ID
            ip_address: Client IP address
            user_agent: Client user agent string

        Returns:
            Created AuditEvent instance
        """
        if isinstance(event_type, AuditEventType):
            event_type = event_type.value
        if isinstance(severity, AuditSeverity):
            severity = severity.value

        event = AuditEvent(
            event_type=event_type,
            severity=severity,
            target_id=target_id,
            correlation_id=correlation_id,
            resource_type=resource_type,
            resource_id=resource_id,
            event_data=event_data,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self.db.add(event)
        await self.db.flush()

        return event

    async def log_for_request(
        self,
        event_type: AuditEventType,
        event_data: dict[str, Any],
        *,
        severity: AuditSeverity = AuditSeverity.INFO,
        target_id: UUID | None = None,
        resource_id: str | None = None,
    ) -> AuditEvent:
        """Log an erasure event stamped with the current request's context.

        Outside a request (background resume) the event gets a fresh
        correlation id and no client metadata.
        """
        ctx = get_current_context_or_none()
        return await self.log_event(
            event_type,
            correlation_id=current_correlation_id(),
            event_data=event_data,
            severity=severity,
            target_id=target_id,
            resource_type="erasure_request" if resource_id else None,
            resource_id=resource_id,
            ip_address=ctx.client_ip if ctx else None,
            user_agent=ctx.user_agent if ctx else None,
        )

    async def query_events(
        self,
        target_id: UUID | None = None,
        event_type: AuditEventType | str | None = None,
        correlation_id: UUID | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Query audit events with filters.

        Args:
            target_id: Filter by erasure target
            event_type: Filter by event type
            correlation_id: Filter by request correlation ID
            start_date: Filter events after this date
            end_date: Filter events before this date
            limit: Max results (max 1000)
            offset: Pagination offset

        Returns:
            List of matching audit events, newest first
        """
        if isinstance(event_type, AuditEventType):
            event_type = event_type.value

        query = select(AuditEvent).order_by(
            AuditEvent.created_at.desc(),
            AuditEvent.audit_id.desc(),  # Secondary sort for equal timestamps
        )

        if target_id is not None:
            query = query.where(AuditEvent.target_id == target_id)
        if event_type is not None:
            query = query.where(AuditEvent.event_type == event_type)
        if correlation_id is not None:
            query = query.where(AuditEvent.correlation_id == correlation_id)
        if start_date is not None:
            query = query.where(AuditEvent.created_at >= start_date)
        if end_date is not None:
            query = query.where(AuditEvent.created_at <= end_date)

        query = query.limit(min(limit, 1000)).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())
