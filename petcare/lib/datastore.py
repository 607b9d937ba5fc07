"""
Data store collaborator used by the booking services.

Services talk to the database through a small select/insert/update/delete
surface keyed by collection name and filter predicates, so they can be
exercised against a mock without a live backend. `SQLAlchemyDataStore` is the
production implementation.
"""
import enum
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Iterable, Optional, Sequence

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from petcare.lib.db import Base, get_session_factory
from petcare.lib.logging import get_logger


logger = get_logger(__name__)


class Collection(str, enum.Enum):
    """Collections (tables) the booking core reads and writes."""
    RECURRING_SERIES = "recurring_booking_series"
    BOOKINGS = "bookings"
    BOOKING_PETS = "booking_pets"
    CANCELLATION_POLICIES = "cancellation_policies"
    NOTIFICATIONS = "notifications"


class DataStoreError(Exception):
    """Raised when a store read or write fails."""

    def __init__(self, message: str, collection: Optional[str] = None):
        self.message = message
        self.collection = collection
        super().__init__(message)


@dataclass(frozen=True)
class Filter:
    """A single `column <op> value` predicate."""
    column: str
    op: str
    value: Any = None


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def is_null(column: str) -> Filter:
    return Filter(column, "is", None)


class DataStore(ABC):
    """
    Abstract query/command surface over named collections.

    Every method raises DataStoreError on failure.
    """

    @abstractmethod
    async def select(
        self,
        collection: Collection,
        *,
        columns: Optional[Sequence[str]] = None,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Fetch rows matching all filters.

        Args:
            collection: Collection to read
            columns: Column names to project (all columns when omitted)
            filters: Predicates combined with AND
            order_by: Column to sort on
            descending: Sort direction
            limit: Maximum number of rows

        Returns:
            Rows as plain dicts
        """
        pass

    @abstractmethod
    async def count(self, collection: Collection, *, filters: Sequence[Filter] = ()) -> int:
        """Count rows matching all filters."""
        pass

    @abstractmethod
    async def insert(self, collection: Collection, rows: Sequence[dict]) -> list[dict]:
        """
        Insert rows as a single unit: either all rows are written or none.

        Returns:
            The stored rows, including store-assigned ids and defaults
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: Collection,
        patch: dict,
        *,
        filters: Sequence[Filter],
    ) -> int:
        """Apply `patch` to matching rows and return how many changed."""
        pass

    @abstractmethod
    async def delete(self, collection: Collection, *, filters: Sequence[Filter]) -> int:
        """Delete matching rows and return how many were removed."""
        pass

    async def select_one(
        self,
        collection: Collection,
        *,
        filters: Sequence[Filter],
        columns: Optional[Sequence[str]] = None,
    ) -> Optional[dict]:
        """Return the first matching row or None."""
        rows = await self.select(collection, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None


_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": lambda column, value: column == value,
    "neq": lambda column, value: column != value,
    "gt": lambda column, value: column > value,
    "gte": lambda column, value: column >= value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
    "in": lambda column, value: column.in_(list(value)),
    "is": lambda column, value: column.is_(value),
}


class SQLAlchemyDataStore(DataStore):
    """
    DataStore backed by SQLAlchemy Core statements on an async session.

    Each call runs in its own transaction.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    def _table(self, collection: Collection) -> Table:
        import petcare.models  # noqa: F401  (registers tables on Base.metadata)

        name = Collection(collection).value
        return Base.metadata.tables[name]

    def _where(self, table: Table, filters: Sequence[Filter]) -> list:
        clauses = []
        for item in filters:
            if item.column not in table.c:
                raise DataStoreError(f"Unknown column '{item.column}'", table.name)
            if item.op not in _OPERATORS:
                raise DataStoreError(f"Unsupported filter operator '{item.op}'", table.name)
            clauses.append(_OPERATORS[item.op](table.c[item.column], item.value))
        return clauses

    def _column(self, table: Table, name: str):
        if name not in table.c:
            raise DataStoreError(f"Unknown column '{name}'", table.name)
        return table.c[name]

    @asynccontextmanager
    async def _transaction(self, operation: str, table: Table) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"{operation} on {table.name} failed: {e}")
            raise DataStoreError(f"{operation} on {table.name} failed: {e}", table.name) from e

    async def select(
        self,
        collection: Collection,
        *,
        columns: Optional[Sequence[str]] = None,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        table = self._table(collection)
        projection = [self._column(table, name) for name in columns] if columns else [table]
        stmt = select(*projection).where(*self._where(table, filters))
        if order_by:
            column = self._column(table, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._transaction("select", table) as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def count(self, collection: Collection, *, filters: Sequence[Filter] = ()) -> int:
        table = self._table(collection)
        stmt = select(func.count()).select_from(table).where(*self._where(table, filters))

        async with self._transaction("count", table) as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def insert(self, collection: Collection, rows: Sequence[dict]) -> list[dict]:
        table = self._table(collection)
        if not rows:
            return []

        inserted: list[dict] = []
        async with self._transaction("insert", table) as session:
            for row in rows:
                result = await session.execute(
                    insert(table).values(**row).returning(*table.c)
                )
                inserted.append(dict(result.mappings().one()))

        logger.debug(f"Inserted {len(inserted)} row(s) into {table.name}")
        return inserted

    async def update(
        self,
        collection: Collection,
        patch: dict,
        *,
        filters: Sequence[Filter],
    ) -> int:
        table = self._table(collection)
        if not filters:
            raise DataStoreError("Refusing to update without filters", table.name)
        stmt = update(table).where(*self._where(table, filters)).values(**patch)

        async with self._transaction("update", table) as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def delete(self, collection: Collection, *, filters: Sequence[Filter]) -> int:
        table = self._table(collection)
        if not filters:
            raise DataStoreError("Refusing to delete without filters", table.name)
        stmt = delete(table).where(*self._where(table, filters))

        async with self._transaction("delete", table) as session:
            result = await session.execute(stmt)
            return result.rowcount


def get_data_store() -> DataStore:
    """Factory used by the API layer."""
    return SQLAlchemyDataStore()
