"""Persistence for erasure requests and their append-only step results."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webq.db.models.erasure import ErasureRequestRecord, ErasureStepResultRecord
from webq.erasure.types import (
    DeletionPlan,
    ErasureRequest,
    ErasureRequestNotFoundError,
    ErasureStatus,
    FailureKind,
    StepResult,
    StepStatus,
    TargetKind,
)


class ErasureRequestRepository:
    """Stores ErasureRequest state; step results are inserted, never updated."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, request: ErasureRequest) -> ErasureRequest:
        async with self._session_factory() as session, session.begin():
            session.add(
                ErasureRequestRecord(
                    id=request.request_id,
                    target_kind=request.target_kind.value,
                    target_id=request.target_id,
                    status=request.status.value,
                    failure_kind=None,
                    plan=request.plan.model_dump(mode="json"),
                    attempts=request.attempts,
                )
            )
        return request

    async def set_status(
        self,
        request_id: UUID,
        status: ErasureStatus,
        *,
        failure_kind: FailureKind | None = None,
        attempts: int | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        values: dict = {
            "status": status.value,
            "failure_kind": failure_kind.value if failure_kind else None,
            "completed_at": completed_at,
        }
        if attempts is not None:
            values["attempts"] = attempts

        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(ErasureRequestRecord)
                .where(ErasureRequestRecord.id == request_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

    async def append_step_result(self, request_id: UUID, result: StepResult) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(
                ErasureStepResultRecord(
                    request_id=request_id,
                    attempt=result.attempt,
                    tier=result.tier,
                    collection=result.collection,
                    status=result.status.value,
                    identity=result.identity,
                    rows_deleted=result.rows_deleted,
                    objects_deleted=result.objects_deleted,
                    objects_absent=result.objects_absent,
                    error=result.error,
                    recorded_at=result.recorded_at,
                )
            )

    async def get(self, request_id: UUID) -> ErasureRequest:
        """Load a request with its full step history.

        Raises:
            ErasureRequestNotFoundError: If no such request exists
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(ErasureRequestRecord).where(ErasureRequestRecord.id == request_id)
            )
            record = result.scalar_one_or_none()
            if record is None:
                raise ErasureRequestNotFoundError(request_id)
            return _to_domain(record)


def _to_domain(record: ErasureRequestRecord) -> ErasureRequest:
    return ErasureRequest(
        request_id=record.id,
        target_kind=TargetKind(record.target_kind),
        target_id=record.target_id,
        status=ErasureStatus(record.status),
        failure_kind=FailureKind(record.failure_kind) if record.failure_kind else None,
        plan=DeletionPlan.model_validate(record.plan),
        attempts=record.attempts,
        step_results=[
            StepResult(
                collection=r.collection,
                tier=r.tier,
                status=StepStatus(r.status),
                identity=r.identity,
                rows_deleted=r.rows_deleted,
                objects_deleted=r.objects_deleted,
                objects_absent=r.objects_absent,
                error=r.error,
                attempt=r.attempt,
                recorded_at=r.recorded_at,
            )
            for r in record.step_results
        ],
        created_at=record.created_at,
        completed_at=record.completed_at,
    )
