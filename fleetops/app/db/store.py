"""
Store collaborator.

The only access path to persisted trip, notification, chat and geofence
rows. Rows travel as plain dicts keyed by column name; filters support
equality, one OR-group over id columns, and the soft-delete flag.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field
from sqlalchemy import Table, and_, or_, select, update, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetops.app.core.exceptions import StoreError
from fleetops.app.core.reliability import retry_transient
from fleetops.app.db.session import Base
# Import models to ensure they are registered with Base
from fleetops.app.models import chat_message, geofence_event, notification, trip  # noqa: F401

logger = logging.getLogger("fleetops.store")

Row = Dict[str, Any]

# Driver and transport failures surfaced as StoreError
STORE_FAILURES = (SQLAlchemyError, ConnectionError, TimeoutError)


class RowFilter(BaseModel):
    """
    Query filter.

    ``equals`` columns are AND-ed; ``any_of`` columns are OR-ed together
    and the group is AND-ed with the rest. ``exclude_deleted`` adds
    ``is_deleted = false`` on tables that carry the flag.
    """
    equals: Dict[str, Any] = Field(default_factory=dict)
    any_of: Dict[str, Any] = Field(default_factory=dict)
    exclude_deleted: bool = True


class Store(Protocol):
    async def query(self, table: str, filter: RowFilter, projection: Optional[Sequence[str]] = None) -> List[Row]: ...

    async def insert(self, table: str, row: Row) -> Row: ...

    async def update(self, table: str, id: str, patch: Row) -> Optional[Row]: ...

    async def update_where(self, table: str, filter: RowFilter, patch: Row) -> int: ...


class SQLAlchemyStore:
    """
    Store backed by an async SQLAlchemy session factory.

    Each call runs in its own transaction, so an insert is either fully
    visible or not at all. Queries and keyed updates are retried on
    transient connection failures; inserts are not.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        retry_attempts: int = None,
        retry_base_delay: float = None,
    ):
        self.session_factory = session_factory
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table: {name}", details={"table": name})
        return table

    def _where(self, table: Table, filter: RowFilter):
        clauses = [table.c[column] == value for column, value in filter.equals.items()]
        if filter.any_of:
            clauses.append(or_(*(table.c[column] == value for column, value in filter.any_of.items())))
        if filter.exclude_deleted and "is_deleted" in table.c:
            clauses.append(table.c.is_deleted.is_(False))
        return and_(*clauses) if clauses else None

    async def query(self, table: str, filter: RowFilter, projection: Optional[Sequence[str]] = None) -> List[Row]:
        target = self._table(table)
        columns = [target.c[name] for name in projection] if projection else [target]
        stmt = select(*columns)
        where = self._where(target, filter)
        if where is not None:
            stmt = stmt.where(where)

        @retry_transient(self.retry_attempts, self.retry_base_delay)
        async def run() -> List[Row]:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [dict(row) for row in result.mappings().all()]

        try:
            return await run()
        except STORE_FAILURES as e:
            logger.error("Query on %s failed: %s", table, e)
            raise StoreError(f"Failed to query {table}: {e}", details={"table": table}) from e

    async def insert(self, table: str, row: Row) -> Row:
        target = self._table(table)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(insert(target).values(**row))
                return await self._fetch_by_id(session, target, row["id"])
        except STORE_FAILURES as e:
            logger.error("Insert into %s failed: %s", table, e)
            raise StoreError(f"Failed to insert into {table}: {e}", details={"table": table}) from e

    async def update(self, table: str, id: str, patch: Row) -> Optional[Row]:
        target = self._table(table)

        @retry_transient(self.retry_attempts, self.retry_base_delay)
        async def run() -> Optional[Row]:
            async with self.session_factory() as session:
                async with session.begin():
                    if patch:
                        await session.execute(update(target).where(target.c.id == id).values(**patch))
                return await self._fetch_by_id(session, target, id)

        try:
            return await run()
        except STORE_FAILURES as e:
            logger.error("Update of %s/%s failed: %s", table, id, e)
            raise StoreError(f"Failed to update {table}: {e}", details={"table": table, "id": id}) from e

    async def update_where(self, table: str, filter: RowFilter, patch: Row) -> int:
        """Bulk variant of ``update``; returns the affected row count."""
        target = self._table(table)
        stmt = update(target).values(**patch)
        where = self._where(target, filter)
        if where is not None:
            stmt = stmt.where(where)

        @retry_transient(self.retry_attempts, self.retry_base_delay)
        async def run() -> int:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                return result.rowcount

        try:
            return await run()
        except STORE_FAILURES as e:
            logger.error("Bulk update of %s failed: %s", table, e)
            raise StoreError(f"Failed to update {table}: {e}", details={"table": table}) from e

    async def _fetch_by_id(self, session: AsyncSession, target: Table, id: str) -> Optional[Row]:
        result = await session.execute(select(target).where(target.c.id == id))
        row = result.mappings().one_or_none()
        return dict(row) if row is not None else None
