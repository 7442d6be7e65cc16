"""Unit tests for plan execution."""

from uuid import uuid4

import pytest
from uuid_utils.compat import uuid7

from webq.db.models import (
    Account,
    ClientProject,
    DesignDeliveryFile,
    ProjectFile,
    ProjectTicket,
    TicketMessage,
)
from webq.erasure.executor import ErasureExecutor
from webq.erasure.planner import DependencyPlanner
from webq.erasure.stores import SqlIdentityStore, SqlRecordStore
from webq.erasure.types import (
    ErasureStatus,
    FailureKind,
    SessionTarget,
    StepResult,
    StepStatus,
    TenantTarget,
)
from webq.storage.memory import InMemoryObjectStore


class FakeRecordStore:
    """Record store that deletes nothing real and fails on request."""

    def __init__(self, fail: set[str] | None = None):
        self.fail = fail or set()
        self.deleted: list[str] = []

    async def fetch_column(self, selector, column):
        return []

    async def delete_rows(self, selector):
        if selector.collection in self.fail:
            raise RuntimeError(f"{selector.collection} is unavailable")
        self.deleted.append(selector.collection)
        return 1


class FakeIdentityStore:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    async def delete_identity(self, selector):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return 1


@pytest.fixture
def planner() -> DependencyPlanner:
    return DependencyPlanner()


@pytest.fixture
def sql_executor(session_factory, object_store) -> ErasureExecutor:
    records = SqlRecordStore(session_factory)
    return ErasureExecutor(records, object_store, SqlIdentityStore(records))


def _by_collection(results: list[StepResult]) -> dict[str, StepResult]:
    return {r.collection: r for r in results}


@pytest.mark.asyncio
class TestAccountScenario:
    """Erasing a populated account against the real schema."""

    async def test_completes_and_removes_everything(
        self, sql_executor, planner, seed_account, object_store, count_rows
    ):
        """2 projects, 3 files and a ticket with 2 messages are all erased."""
        seeded = await seed_account()

        report = await sql_executor.execute(planner.plan(TenantTarget(account_id=seeded.account_id)))

        assert report.status == ErasureStatus.COMPLETED
        assert report.failure_kind is None
        assert report.failures == []

        results = _by_collection(report.results)
        assert results["project_files"].rows_deleted == 3
        assert results["project_files"].objects_deleted == 3
        assert results["ticket_messages"].rows_deleted == 2
        assert results["project_tickets"].rows_deleted == 1
        assert results["client_projects"].rows_deleted == 2
        assert results["design_delivery_files"].objects_deleted == 2
        assert results["client_onboarding"].objects_deleted == 1
        assert results["accounts"].rows_deleted == 1
        assert results["accounts"].identity is True

        for bucket, key in seeded.objects:
            assert not object_store.exists(bucket, key)
        for model in (Account, ClientProject, ProjectFile, ProjectTicket, TicketMessage):
            assert await count_rows(model) == 0

    async def test_other_accounts_untouched(
        self, sql_executor, planner, seed_account, object_store, count_rows
    ):
        seeded = await seed_account()
        bystander = await seed_account()

        await sql_executor.execute(planner.plan(TenantTarget(account_id=seeded.account_id)))

        assert await count_rows(Account, id=bystander.account_id) == 1
        assert await count_rows(TicketMessage, ticket_id=bystander.ticket_id) == 2
        assert await count_rows(ClientProject) == 2
        for bucket, key in bystander.objects:
            assert object_store.exists(bucket, key)

    async def test_second_run_is_all_absent(self, sql_executor, planner, seed_account):
        """Re-executing a finished plan succeeds without deleting anything."""
        seeded = await seed_account()
        plan = planner.plan(TenantTarget(account_id=seeded.account_id))

        await sql_executor.execute(plan)
        report = await sql_executor.execute(plan, attempt=2)

        assert report.status == ErasureStatus.COMPLETED
        assert {r.status for r in report.results} == {StepStatus.ALREADY_ABSENT}
        assert all(r.attempt == 2 for r in report.results)

    async def test_object_failure_keeps_rows(
        self, sql_executor, planner, seed_account, object_store, count_rows
    ):
        """A file that cannot be deleted keeps its row so a retry can find it."""
        seeded = await seed_account()
        failing = next(o for o in seeded.objects if o[1].endswith("f2.pdf"))
        object_store.fail_keys.add(failing)

        report = await sql_executor.execute(planner.plan(TenantTarget(account_id=seeded.account_id)))

        assert report.status == ErasureStatus.PARTIAL_FAILURE
        results = _by_collection(report.results)
        assert results["project_files"].status == StepStatus.FAILED
        assert "object deletion" in results["project_files"].error
        assert await count_rows(ProjectFile) == 3
        assert object_store.exists(*failing)

        # Unrelated branches still ran
        assert results["design_delivery_files"].status == StepStatus.SUCCEEDED
        assert await count_rows(DesignDeliveryFile) == 0

        # Projects and then the account are still referenced
        assert results["client_projects"].status == StepStatus.FAILED
        assert report.failure_kind == FailureKind.IDENTITY_RETAINED
        assert await count_rows(Account, id=seeded.account_id) == 1

    async def test_rerun_after_object_failure_completes(
        self, sql_executor, planner, seed_account, object_store, count_rows
    ):
        seeded = await seed_account()
        failing = next(o for o in seeded.objects if o[1].endswith("f3.pdf"))
        object_store.fail_keys.add(failing)
        plan = planner.plan(TenantTarget(account_id=seeded.account_id))

        await sql_executor.execute(plan)
        object_store.fail_keys.clear()
        report = await sql_executor.execute(plan, attempt=2)

        assert report.status == ErasureStatus.COMPLETED
        assert not object_store.exists(*failing)
        assert await count_rows(Account) == 0

    async def test_recorder_receives_results_in_tier_order(
        self, sql_executor, planner, seed_account
    ):
        seeded = await seed_account()
        recorded: list[StepResult] = []

        async def recorder(result: StepResult) -> None:
            recorded.append(result)

        report = await sql_executor.execute(
            planner.plan(TenantTarget(account_id=seeded.account_id)), recorder=recorder
        )

        assert len(recorded) == len(report.results)
        tiers = [r.tier for r in recorded]
        assert tiers == sorted(tiers)
        assert recorded[-1].collection == "accounts"

    async def test_concurrent_tier_steps(
        self, session_factory, object_store, planner, seed_account, count_rows
    ):
        records = SqlRecordStore(session_factory)
        executor = ErasureExecutor(
            records, object_store, SqlIdentityStore(records), tier_concurrency=4
        )
        seeded = await seed_account()

        report = await executor.execute(planner.plan(TenantTarget(account_id=seeded.account_id)))

        assert report.status == ErasureStatus.COMPLETED
        assert await count_rows(Account) == 0


@pytest.mark.asyncio
class TestFailureClassification:
    """Failure kinds derived from which steps failed."""

    async def test_identity_failure(self, planner):
        """Everything else deleted, identity kept: IDENTITY_RETAINED."""
        identity = FakeIdentityStore(error=RuntimeError("auth service returned 503"))
        executor = ErasureExecutor(FakeRecordStore(), InMemoryObjectStore(), identity)

        report = await executor.execute(planner.plan(TenantTarget(account_id=uuid7())))

        assert report.status == ErasureStatus.PARTIAL_FAILURE
        assert report.failure_kind == FailureKind.IDENTITY_RETAINED
        assert [r.collection for r in report.failures] == ["accounts"]
        assert "auth service returned 503" in report.failures[0].error
        assert identity.calls == 1

    async def test_record_failure_is_data_debris(self, planner):
        """A failed owned collection with the identity gone: DATA_DEBRIS."""
        records = FakeRecordStore(fail={"notifications"})
        executor = ErasureExecutor(records, InMemoryObjectStore(), FakeIdentityStore())

        report = await executor.execute(planner.plan(TenantTarget(account_id=uuid7())))

        assert report.status == ErasureStatus.PARTIAL_FAILURE
        assert report.failure_kind == FailureKind.DATA_DEBRIS
        assert [r.collection for r in report.failures] == ["notifications"]
        # Execution continued past the failure
        assert "user_roles" in records.deleted
        assert "client_projects" in records.deleted

    async def test_identity_not_called_through_record_store(self, planner):
        records = FakeRecordStore()
        identity = FakeIdentityStore()
        executor = ErasureExecutor(records, InMemoryObjectStore(), identity)

        await executor.execute(planner.plan(TenantTarget(account_id=uuid7())))

        assert "accounts" not in records.deleted
        assert identity.calls == 1

    async def test_empty_session_completes(self, sql_executor, planner):
        """A session with no consent rows is already erased."""
        report = await sql_executor.execute(planner.plan(SessionTarget(session_id=uuid4())))

        assert report.status == ErasureStatus.COMPLETED
        assert report.results[0].status == StepStatus.ALREADY_ABSENT
