"""Unit tests for the audit logger."""

from datetime import timedelta

import pytest
from uuid_utils.compat import uuid7

from webq.core.audit import AuditLogger
from webq.core.context import create_context, request_context
from webq.db.models.audit import AuditEventType, AuditSeverity


@pytest.mark.asyncio
async def test_log_event_basic(db_session):
    """Test creating a basic audit event."""
    logger = AuditLogger(db_session)
    correlation_id = uuid7()
    target_id = uuid7()

    event = await logger.log_event(
        event_type=AuditEventType.ERASURE_COMPLETED,
        correlation_id=correlation_id,
        event_data={"collections": 14, "rows_deleted": 22},
        target_id=target_id,
        resource_type="erasure_request",
        resource_id="r-1",
    )

    assert event.audit_id is not None
    assert event.event_type == "erasure.completed"
    assert event.severity == "info"
    assert event.target_id == target_id
    assert event.correlation_id == correlation_id
    assert event.event_data == {"collections": 14, "rows_deleted": 22}


@pytest.mark.asyncio
async def test_log_event_critical(db_session):
    """Test logging an identity failure at critical severity."""
    logger = AuditLogger(db_session)

    event = await logger.log_event(
        event_type=AuditEventType.ERASURE_IDENTITY_DELETION_FAILED,
        correlation_id=uuid7(),
        event_data={"error": "foreign key"},
        severity=AuditSeverity.CRITICAL,
        ip_address="2001:db8::1",
    )

    assert event.severity == "critical"
    assert event.ip_address == "2001:db8::1"
    assert event.target_id is None


@pytest.mark.asyncio
async def test_log_event_accepts_strings(db_session):
    logger = AuditLogger(db_session)

    event = await logger.log_event(
        event_type="erasure.code_issued",
        correlation_id=uuid7(),
        event_data={},
        severity="warning",
    )

    assert event.event_type == AuditEventType.ERASURE_CODE_ISSUED.value
    assert event.severity == AuditSeverity.WARNING.value


@pytest.mark.asyncio
async def test_query_events_by_target(db_session):
    """Test querying events by erasure target."""
    logger = AuditLogger(db_session)
    target1, target2 = uuid7(), uuid7()

    await logger.log_event(AuditEventType.ERASURE_CODE_ISSUED, uuid7(), {}, target_id=target1)
    await logger.log_event(AuditEventType.ERASURE_COMPLETED, uuid7(), {}, target_id=target1)
    await logger.log_event(AuditEventType.ERASURE_COMPLETED, uuid7(), {}, target_id=target2)
    await db_session.commit()

    events = await logger.query_events(target_id=target1)

    assert len(events) == 2
    assert all(e.target_id == target1 for e in events)


@pytest.mark.asyncio
async def test_query_events_by_type_and_correlation(db_session):
    logger = AuditLogger(db_session)
    correlation_id = uuid7()

    await logger.log_event(AuditEventType.ERASURE_CODE_ISSUED, correlation_id, {})
    await logger.log_event(AuditEventType.ERASURE_PARTIAL_FAILURE, correlation_id, {})
    await logger.log_event(AuditEventType.ERASURE_PARTIAL_FAILURE, uuid7(), {})
    await db_session.commit()

    by_type = await logger.query_events(event_type=AuditEventType.ERASURE_PARTIAL_FAILURE)
    both = await logger.query_events(
        event_type=AuditEventType.ERASURE_PARTIAL_FAILURE, correlation_id=correlation_id
    )

    assert len(by_type) == 2
    assert len(both) == 1


@pytest.mark.asyncio
async def test_query_events_date_range(db_session):
    logger = AuditLogger(db_session)
    await logger.log_event(AuditEventType.ERASURE_COMPLETED, uuid7(), {})
    await db_session.commit()

    events = await logger.query_events()
    created = events[0].created_at

    assert len(await logger.query_events(start_date=created - timedelta(minutes=1))) == 1
    assert await logger.query_events(start_date=created + timedelta(minutes=1)) == []
    assert await logger.query_events(end_date=created - timedelta(minutes=1)) == []


@pytest.mark.asyncio
async def test_query_events_pagination(db_session):
    logger = AuditLogger(db_session)
    target_id = uuid7()
    for _ in range(5):
        await logger.log_event(AuditEventType.ERASURE_COMPLETED, uuid7(), {}, target_id=target_id)
    await db_session.commit()

    first_page = await logger.query_events(target_id=target_id, limit=3)
    second_page = await logger.query_events(target_id=target_id, limit=3, offset=3)

    assert len(first_page) == 3
    assert len(second_page) == 2
    assert {e.audit_id for e in first_page}.isdisjoint(e.audit_id for e in second_page)


@pytest.mark.asyncio
async def test_log_for_request_uses_context(db_session):
    """Events logged during a request carry its correlation id and client."""
    logger = AuditLogger(db_session)
    ctx = create_context(client_ip="203.0.113.7", user_agent="browser/1.0")

    with request_context(ctx):
        event = await logger.log_for_request(
            AuditEventType.ERASURE_COMPLETED, {"status": "completed"}, resource_id="r-1"
        )

    assert event.correlation_id == ctx.correlation_id
    assert event.ip_address == "203.0.113.7"
    assert event.user_agent == "browser/1.0"
    assert event.resource_type == "erasure_request"


@pytest.mark.asyncio
async def test_log_for_request_outside_request(db_session):
    logger = AuditLogger(db_session)

    event = await logger.log_for_request(AuditEventType.ERASURE_PARTIAL_FAILURE, {})

    assert event.correlation_id is not None
    assert event.ip_address is None
    assert event.resource_type is None
