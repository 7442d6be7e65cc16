"""Plan execution with best-effort, idempotent step semantics.

Tiers run strictly in order. A failing step is recorded and execution
moves on, so one broken table or bucket never strands the rest of a
target's data. Missing rows and missing objects count as success, which
makes re-running a plan safe.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from webq.erasure.stores import IdentityStore, RecordStore
from webq.erasure.types import (
    DeletionPlan,
    DeletionStep,
    ErasureStatus,
    ExecutionReport,
    FailureKind,
    IdentityDeletionFailedError,
    StepFailedError,
    StepResult,
    StepStatus,
)
from webq.storage.base import ObjectStore, parse_object_ref
from webq.utils.exceptions import ObjectStorageError

logger = structlog.get_logger()

StepRecorder = Callable[[StepResult], Awaitable[None]]


class ErasureExecutor:
    """Walks a deletion plan against record, object and identity stores."""

    def __init__(
        self,
        records: RecordStore,
        objects: ObjectStore,
        identity: IdentityStore,
        tier_concurrency: int = 1,
    ):
        """Initialize the executor.

        Args:
            records: Row deletion backend
            objects: Binary object backend
            identity: Identity record backend used for the final step
            tier_concurrency: Steps of one tier allowed to run at once
        """
        self._records = records
        self._objects = objects
        self._identity = identity
        self._tier_concurrency = max(1, tier_concurrency)

    async def execute(
        self,
        plan: DeletionPlan,
        recorder: StepRecorder | None = None,
        attempt: int = 1,
    ) -> ExecutionReport:
        """Execute every tier of ``plan``.

        Args:
            plan: Plan produced by the DependencyPlanner
            recorder: Awaited with each step result as soon as it is known
            attempt: Attempt number stamped on the results

        Returns:
            Report with the terminal status and one result per step
        """
        results: list[StepResult] = []
        semaphore = asyncio.Semaphore(self._tier_concurrency)

        async def run(tier_index: int, step: DeletionStep) -> StepResult:
            async with semaphore:
                result = await self._run_step(tier_index, step, attempt)
            if recorder is not None:
                await recorder(result)
            return result

        for tier in plan.tiers:
            tier_results = await asyncio.gather(*(run(tier.index, step) for step in tier.steps))
            results.extend(tier_results)

        report = self._summarize(results)
        logger.info(
            "erasure_plan_executed",
            target_kind=plan.target_kind.value,
            target_id=str(plan.target_id),
            status=report.status.value,
            failure_kind=report.failure_kind.value if report.failure_kind else None,
            step_failures=len(report.failures),
            attempt=attempt,
        )
        return report

    # =========================================================================
    # Steps
    # =========================================================================

    async def _run_step(self, tier_index: int, step: DeletionStep, attempt: int) -> StepResult:
        """Execute a single step, catching and recording any errors."""
        objects_deleted = 0
        objects_absent = 0
        try:
            if step.bucket_refs:
                objects_deleted, objects_absent = await self._delete_objects(step)

            if step.identity:
                try:
                    rows = await self._identity.delete_identity(step.selector)
                except Exception as e:
                    raise IdentityDeletionFailedError(step.collection, str(e)) from e
            else:
                rows = await self._records.delete_rows(step.selector)
        except Exception as e:
            logger.warning(
                "erasure_step_failed",
                collection=step.collection,
                tier=tier_index,
                identity=step.identity,
                error=str(e),
                error_type=type(e).__name__,
            )
            return StepResult(
                collection=step.collection,
                tier=tier_index,
                status=StepStatus.FAILED,
                identity=step.identity,
                objects_deleted=objects_deleted,
                objects_absent=objects_absent,
                error=str(e),
                attempt=attempt,
            )

        status = (
            StepStatus.SUCCEEDED if rows or objects_deleted else StepStatus.ALREADY_ABSENT
        )
        return StepResult(
            collection=step.collection,
            tier=tier_index,
            status=status,
            identity=step.identity,
            rows_deleted=rows,
            objects_deleted=objects_deleted,
            objects_absent=objects_absent,
            attempt=attempt,
        )

    async def _delete_objects(self, step: DeletionStep) -> tuple[int, int]:
        """Delete objects referenced by the step's rows.

        Rows are kept when any object fails so a retry can still find its key.

        Raises:
            StepFailedError: If one or more object deletions failed
        """
        deleted = absent = 0
        errors: list[ObjectStorageError] = []

        for ref in step.bucket_refs:
            values = await self._records.fetch_column(step.selector, ref.column)
            for value in values:
                parsed = parse_object_ref(value, ref.buckets)
                if parsed is None:
                    continue
                bucket, key = parsed
                try:
                    if await self._objects.delete(bucket, key):
                        deleted += 1
                    else:
                        absent += 1
                except ObjectStorageError as e:
                    errors.append(e)

        if errors:
            raise StepFailedError(
                step.collection,
                f"{len(errors)} object deletion(s) failed, first: {errors[0]}",
            )
        return deleted, absent

    @staticmethod
    def _summarize(results: list[StepResult]) -> ExecutionReport:
        failures = [r for r in results if r.failed]
        if any(r.identity for r in failures):
            return ExecutionReport(
                status=ErasureStatus.PARTIAL_FAILURE,
                failure_kind=FailureKind.IDENTITY_RETAINED,
                results=results,
            )
        if failures:
            return ExecutionReport(
                status=ErasureStatus.PARTIAL_FAILURE,
                failure_kind=FailureKind.DATA_DEBRIS,
                results=results,
            )
        return ExecutionReport(status=ErasureStatus.COMPLETED, results=results)
