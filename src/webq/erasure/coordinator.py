"""Erasure coordination: authorize, lock, plan, execute, persist, audit, notify.

The coordinator is the only entry point that deletes data. Unauthorized,
locked-out and already-in-progress requests are rejected before any
data is touched.
"""

import asyncio
from typing import Any, Protocol
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webq.config.settings import LockBackend, Settings
from webq.core.audit import AuditLogger
from webq.db.models.audit import AuditEventType, AuditSeverity
from webq.erasure.challenge import ChallengeGate
from webq.erasure.codes import VerificationCodeStore
from webq.erasure.executor import ErasureExecutor
from webq.erasure.locks import DatabaseExecutionLock, ExecutionLock, RedisExecutionLock
from webq.erasure.planner import DependencyPlanner
from webq.erasure.repository import ErasureRequestRepository
from webq.erasure.stores import SqlIdentityStore, SqlRecordStore
from webq.erasure.types import (
    Challenge,
    ChallengeProof,
    ErasureProof,
    ErasureRequest,
    ErasureStatus,
    ErasureUnauthorizedError,
    FailureKind,
    SessionTarget,
    StepResult,
    TargetKind,
    TenantTarget,
    VerificationCodeProof,
    make_target,
)
from webq.storage.base import ObjectStore
from webq.utils.clock import Clock, utc_now

logger = structlog.get_logger()


class ErasureNotifier(Protocol):
    """Receives terminal erasure requests (admin alerts, client email...)."""

    async def erasure_finished(self, request: ErasureRequest) -> None: ...


class LoggingNotifier:
    """Notifier that only logs; used when no dispatcher is wired in."""

    async def erasure_finished(self, request: ErasureRequest) -> None:
        logger.info(
            "erasure_notification",
            request_id=str(request.request_id),
            status=request.status.value,
        )


class ErasureCoordinator:
    """Entry point for account and session erasure."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        codes: VerificationCodeStore,
        gate: ChallengeGate,
        planner: DependencyPlanner,
        executor: ErasureExecutor,
        lock: ExecutionLock,
        repository: ErasureRequestRepository,
        notifier: ErasureNotifier | None = None,
        execution_timeout: float | None = None,
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._codes = codes
        self._gate = gate
        self._planner = planner
        self._executor = executor
        self._lock = lock
        self._repository = repository
        self._notifier = notifier or LoggingNotifier()
        self._execution_timeout = execution_timeout
        self._clock = clock

    # =========================================================================
    # Request-issued boundary
    # =========================================================================

    async def issue_verification_code(self, target_id: UUID) -> str:
        """Issue an account erasure code; delivering it is the caller's job."""
        code = await self._codes.issue(target_id)
        await self._audit(
            AuditEventType.ERASURE_CODE_ISSUED,
            AuditSeverity.INFO,
            target_id=target_id,
            event_data={
                "target_id": str(target_id),
                "timestamp": self._clock().isoformat(),
            },
        )
        return code

    async def issue_challenge(self, fingerprint: str) -> Challenge:
        """Issue a human-verification challenge for an anonymous requester."""
        return await self._gate.issue_challenge(fingerprint)

    # =========================================================================
    # Erasure
    # =========================================================================

    async def request_erasure(
        self,
        target: TenantTarget | SessionTarget,
        proof: ErasureProof,
    ) -> ErasureRequest:
        """Authorize and run the erasure of ``target``.

        The proof is checked before the target lock is taken, so a rejected
        proof never holds the lock. A valid proof is consumed even when the
        lock then turns out to be held.

        Returns:
            The request in COMPLETED or PARTIAL_FAILURE state

        Raises:
            ErasureUnauthorizedError: If the proof is invalid
            ChallengeLockedError: If the requester is locked out
            ErasureAlreadyInProgressError: If the target is being erased
        """
        await self._authorize(target, proof)

        async with self._lock.hold(target.lock_key):
            plan = self._planner.plan(target)
            request = ErasureRequest(
                target_kind=target.kind,
                target_id=target.target_id,
                plan=plan,
            )
            await self._repository.create(request)
            logger.info(
                "erasure_requested",
                request_id=str(request.request_id),
                target_kind=target.kind.value,
                target_id=str(target.target_id),
            )
            return await self._drive(request)

    async def resume(self, request_id: UUID) -> ErasureRequest:
        """Re-drive a request that did not complete.

        New step results are appended under an incremented attempt number;
        a COMPLETED request is returned unchanged.

        Raises:
            ErasureRequestNotFoundError: If the request does not exist
            ErasureAlreadyInProgressError: If the target is being erased
        """
        request = await self._repository.get(request_id)
        if request.status == ErasureStatus.COMPLETED:
            return request

        target = make_target(request.target_kind, request.target_id)
        async with self._lock.hold(target.lock_key):
            request = await self._repository.get(request_id)
            if request.status == ErasureStatus.COMPLETED:
                return request
            logger.info(
                "erasure_resumed",
                request_id=str(request_id),
                previous_status=request.status.value,
                attempt=request.attempts + 1,
            )
            return await self._drive(request)

    async def get_request(self, request_id: UUID) -> ErasureRequest:
        return await self._repository.get(request_id)

    async def _authorize(
        self, target: TenantTarget | SessionTarget, proof: ErasureProof
    ) -> None:
        if isinstance(target, TenantTarget) and isinstance(proof, VerificationCodeProof):
            if await self._codes.validate_and_consume(target.account_id, proof.code):
                return
        elif isinstance(target, SessionTarget) and isinstance(proof, ChallengeProof):
            result = await self._gate.submit(proof.fingerprint, proof.answer)
            if result.ok:
                return

        logger.info("erasure_unauthorized", target_kind=target.kind.value)
        raise ErasureUnauthorizedError()

    async def _drive(self, request: ErasureRequest) -> ErasureRequest:
        attempt = request.attempts + 1
        request.attempts = attempt
        request.status = ErasureStatus.EXECUTING
        request.failure_kind = None
        await self._repository.set_status(
            request.request_id, ErasureStatus.EXECUTING, attempts=attempt
        )

        async def record(result: StepResult) -> None:
            request.add_step_result(result)
            await self._repository.append_step_result(request.request_id, result)

        try:
            async with asyncio.timeout(self._execution_timeout):
                report = await self._executor.execute(request.plan, recorder=record, attempt=attempt)
        except TimeoutError:
            logger.error(
                "erasure_execution_timed_out",
                request_id=str(request.request_id),
                timeout_seconds=self._execution_timeout,
            )
            await self._finalize(request, ErasureStatus.PARTIAL_FAILURE, FailureKind.INTERRUPTED)
            return request
        except Exception:
            logger.exception("erasure_execution_interrupted", request_id=str(request.request_id))
            await self._finalize(request, ErasureStatus.PARTIAL_FAILURE, FailureKind.INTERRUPTED)
            raise

        await self._finalize(request, report.status, report.failure_kind)
        return request

    async def _finalize(
        self,
        request: ErasureRequest,
        status: ErasureStatus,
        failure_kind: FailureKind | None,
    ) -> None:
        request.status = status
        request.failure_kind = failure_kind
        request.completed_at = self._clock()
        await self._repository.set_status(
            request.request_id,
            status,
            failure_kind=failure_kind,
            completed_at=request.completed_at,
        )

        if status == ErasureStatus.COMPLETED:
            event_type, severity = AuditEventType.ERASURE_COMPLETED, AuditSeverity.INFO
        elif failure_kind == FailureKind.IDENTITY_RETAINED:
            event_type, severity = (
                AuditEventType.ERASURE_IDENTITY_DELETION_FAILED,
                AuditSeverity.CRITICAL,
            )
        else:
            event_type, severity = AuditEventType.ERASURE_PARTIAL_FAILURE, AuditSeverity.WARNING

        await self._audit(
            event_type,
            severity,
            target_id=request.target_id,
            event_data={
                "target_id": str(request.target_id),
                "status": status.value,
                "step_failure_count": request.step_failure_count,
                "timestamp": request.completed_at.isoformat(),
                "request_id": str(request.request_id),
                "target_kind": request.target_kind.value,
                "failure_kind": failure_kind.value if failure_kind else None,
                "attempt": request.attempts,
            },
            resource_id=str(request.request_id),
        )

        if status == ErasureStatus.COMPLETED and request.target_kind == TargetKind.ACCOUNT:
            await self._codes.purge(request.target_id)

        log = logger.info if status == ErasureStatus.COMPLETED else logger.error
        log(
            "erasure_finished",
            request_id=str(request.request_id),
            status=status.value,
            failure_kind=failure_kind.value if failure_kind else None,
            step_failure_count=request.step_failure_count,
        )

        await self._notify(request)

    async def _notify(self, request: ErasureRequest) -> None:
        try:
            await self._notifier.erasure_finished(request)
        except Exception as e:
            logger.warning(
                "erasure_notification_failed",
                request_id=str(request.request_id),
                error=str(e),
            )

    async def _audit(
        self,
        event_type: AuditEventType,
        severity: AuditSeverity,
        *,
        target_id: UUID,
        event_data: dict[str, Any],
        resource_id: str | None = None,
    ) -> None:
        async with self._session_factory() as session, session.begin():
            await AuditLogger(session).log_for_request(
                event_type,
                event_data,
                severity=severity,
                target_id=target_id,
                resource_id=resource_id,
            )


# =============================================================================
# Wiring
# =============================================================================


def build_erasure_coordinator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    object_store: ObjectStore,
    *,
    redis_client=None,
    notifier: ErasureNotifier | None = None,
    clock: Clock = utc_now,
) -> ErasureCoordinator:
    """Assemble a coordinator from settings.

    Args:
        settings: Application settings
        session_factory: Session factory for coordination state and records
        object_store: Binary object backend
        redis_client: Required when ``erasure.lock_backend`` is ``redis``
        notifier: Optional notification dispatcher
        clock: Time source shared by every component

    Returns:
        Configured ErasureCoordinator
    """
    config = settings.erasure

    if config.lock_backend == LockBackend.REDIS:
        if redis_client is None:
            raise ValueError("redis_client is required for the redis lock backend")
        lock: ExecutionLock = RedisExecutionLock(redis_client, config.lock_ttl_seconds)
    else:
        lock = DatabaseExecutionLock(session_factory, config.lock_ttl_seconds, clock=clock)

    records = SqlRecordStore(session_factory)
    return ErasureCoordinator(
        session_factory=session_factory,
        codes=VerificationCodeStore(session_factory, config, clock=clock),
        gate=ChallengeGate(session_factory, config, clock=clock),
        planner=DependencyPlanner(),
        executor=ErasureExecutor(
            records=records,
            objects=object_store,
            identity=SqlIdentityStore(records),
            tier_concurrency=config.tier_concurrency,
        ),
        lock=lock,
        repository=ErasureRequestRepository(session_factory),
        notifier=notifier,
        execution_timeout=config.execution_timeout_seconds,
        clock=clock,
    )


# Module-level coordinator instance
_coordinator: ErasureCoordinator | None = None


def get_erasure_coordinator() -> ErasureCoordinator:
    """Get the global coordinator.

    Raises:
        RuntimeError: If initialize_erasure_coordinator() has not run
    """
    if _coordinator is None:
        raise RuntimeError("Erasure coordinator is not initialized")
    return _coordinator


def initialize_erasure_coordinator(coordinator: ErasureCoordinator) -> ErasureCoordinator:
    """Install the global coordinator (called from the API lifespan)."""
    global _coordinator
    _coordinator = coordinator
    return _coordinator
