"""Unit tests for the SQL record store."""

import pytest
from sqlalchemy.exc import IntegrityError
from uuid_utils.compat import uuid7

from webq.db.models import Account, ProjectFile, TicketMessage
from webq.erasure.planner import DependencyPlanner
from webq.erasure.stores import SqlIdentityStore, SqlRecordStore
from webq.erasure.types import RowSelector, SelectorLink, TenantTarget


@pytest.fixture
def records(session_factory) -> SqlRecordStore:
    return SqlRecordStore(session_factory)


def _step(account_id, collection):
    plan = DependencyPlanner().plan(TenantTarget(account_id=account_id))
    return next(s for s in plan.steps if s.collection == collection)


@pytest.mark.asyncio
class TestSqlRecordStore:
    """Tests for selector compilation and row deletion."""

    async def test_fetch_column_through_parent(self, records, seed_account):
        """project_files are found through the account's projects."""
        seeded = await seed_account()
        await seed_account()

        urls = await records.fetch_column(_step(seeded.account_id, "project_files").selector, "file_url")

        assert len(urls) == 3
        assert all("/project-files/" in url for url in urls)

    async def test_delete_two_levels_down(self, records, seed_account, count_rows):
        """Ticket messages are deleted only for the target account."""
        seeded = await seed_account()
        other = await seed_account()

        deleted = await records.delete_rows(_step(seeded.account_id, "ticket_messages").selector)

        assert deleted == 2
        assert await count_rows(TicketMessage, ticket_id=seeded.ticket_id) == 0
        assert await count_rows(TicketMessage, ticket_id=other.ticket_id) == 2

    async def test_delete_nothing_matches(self, records):
        deleted = await records.delete_rows(_step(uuid7(), "notifications").selector)

        assert deleted == 0

    async def test_foreign_key_blocks_parent_delete(self, records, seed_account, count_rows):
        """Projects with remaining files cannot be deleted."""
        seeded = await seed_account()

        with pytest.raises(IntegrityError):
            await records.delete_rows(_step(seeded.account_id, "client_projects").selector)

        assert await count_rows(ProjectFile) == 3

    async def test_unknown_collection(self, records):
        selector = RowSelector(
            links=(SelectorLink(collection="no_such_table", column="id"),),
            target_value=uuid7(),
        )

        with pytest.raises(LookupError, match="no_such_table"):
            await records.delete_rows(selector)

    async def test_identity_store_deletes_account(self, records, session_factory, count_rows):
        account_id = uuid7()
        async with session_factory() as session, session.begin():
            session.add(Account(id=account_id, email="solo@client.example"))

        identity = SqlIdentityStore(records)
        deleted = await identity.delete_identity(_step(account_id, "accounts").selector)

        assert deleted == 1
        assert await count_rows(Account, id=account_id) == 0
