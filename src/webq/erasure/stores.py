"""Relational backends the erasure executor deletes through."""

from typing import Any, Protocol

from sqlalchemy import ColumnElement, MetaData, Table, delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webq.db.models.base import Base
from webq.erasure.types import RowSelector


class RecordStore(Protocol):
    """Row-level access to the collections named in a deletion plan."""

    async def fetch_column(self, selector: RowSelector, column: str) -> list[Any]:
        """Values of ``column`` for every selected row."""
        ...

    async def delete_rows(self, selector: RowSelector) -> int:
        """Delete every selected row and return how many were removed."""
        ...


class IdentityStore(Protocol):
    """Removes the target's identity record (the auth user)."""

    async def delete_identity(self, selector: RowSelector) -> int:
        """Delete the identity row; 0 when it no longer exists."""
        ...


class SqlRecordStore:
    """Deletes plan rows with SQLAlchemy Core statements.

    Each call runs in its own transaction so one failing step never rolls
    back the work of another.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metadata: MetaData | None = None,
    ):
        self._session_factory = session_factory
        self._metadata = metadata or Base.metadata

    def _table(self, name: str) -> Table:
        try:
            return self._metadata.tables[name]
        except KeyError:
            raise LookupError(f"Unknown collection '{name}'") from None

    def compile(self, selector: RowSelector) -> tuple[Table, ColumnElement[bool]]:
        """Translate a selector into its table and WHERE clause.

        The last link compares directly against the target id; each earlier
        link becomes ``column IN (SELECT key FROM next WHERE ...)``.
        """
        links = selector.links
        last = links[-1]
        last_table = self._table(last.collection)
        condition: ColumnElement[bool] = last_table.c[last.column] == selector.target_value

        for link, parent in zip(reversed(links[:-1]), reversed(links[1:])):
            parent_table = self._table(parent.collection)
            subquery = select(parent_table.c[parent.key]).where(condition)
            condition = self._table(link.collection).c[link.column].in_(subquery)

        return self._table(links[0].collection), condition

    async def fetch_column(self, selector: RowSelector, column: str) -> list[Any]:
        table, condition = self.compile(selector)
        async with self._session_factory() as session:
            result = await session.execute(select(table.c[column]).where(condition))
            return [row[0] for row in result]

    async def delete_rows(self, selector: RowSelector) -> int:
        table, condition = self.compile(selector)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(table).where(condition))
            return result.rowcount or 0


class SqlIdentityStore:
    """Identity backend for accounts kept in the portal database."""

    def __init__(self, records: SqlRecordStore):
        self._records = records

    async def delete_identity(self, selector: RowSelector) -> int:
        return await self._records.delete_rows(selector)
