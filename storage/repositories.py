"""
Data access for catalog records.

A single generic Repository implements insert/get/update/delete/list for any
catalog model; the per-resource repositories only declare which columns they
search on and which columns scope them to a parent record.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, Type, TypeVar

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storage.filters import Filters, Metadata, calculate_metadata
from storage.models import Base, Book, Product, Review, User

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
ResultT = TypeVar("ResultT")

DEFAULT_TIMEOUT = 3.0

# Columns assigned by the store, never written by callers
SYSTEM_COLUMNS = ("id", "created_at", "version")


class RecordNotFoundError(Exception):
    """Raised when a record does not exist or its id is not valid."""

    def __init__(self, table: str, record_id: Any):
        self.table = table
        self.record_id = record_id
        super().__init__(f"record not found: {table} id={record_id}")


class Repository(Generic[ModelT]):
    """Generic CRUD access for one table."""

    model: Type[ModelT]
    # Case-insensitive partial match, empty value matches everything
    search_columns: Tuple[str, ...] = ()
    # Equality match, falsy value matches everything
    exact_columns: Tuple[str, ...] = ()
    # Columns identifying the parent record of a nested resource
    scope_columns: Tuple[str, ...] = ()

    def __init__(self, sessionmaker: async_sessionmaker, timeout: float = DEFAULT_TIMEOUT):
        self.sessionmaker = sessionmaker
        self.timeout = timeout

    @property
    def table(self) -> str:
        return self.model.__tablename__

    @property
    def writable_columns(self) -> List[str]:
        return [c.name for c in self.model.__table__.columns if c.name not in SYSTEM_COLUMNS]

    @property
    def mutable_columns(self) -> List[str]:
        return [c for c in self.writable_columns if c not in self.scope_columns]

    async def _execute(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[ResultT]],
    ) -> ResultT:
        """Run work in a fresh session, bounded by the repository timeout."""

        async def run() -> ResultT:
            async with self.sessionmaker() as session:
                return await work(session)

        try:
            return await asyncio.wait_for(run(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Database operation timed out", table=self.table,
                         operation=operation, timeout=self.timeout)
            raise

    def _scope_clauses(self, scope: Dict[str, int]) -> list:
        table = self.model.__table__
        return [table.c[column] == scope[column] for column in self.scope_columns if column in scope]

    def _check_ids(self, record_id: int, scope: Dict[str, int]) -> None:
        missing = [column for column in self.scope_columns if column not in scope]
        if missing:
            raise ValueError(f"{self.table} requires scope columns: {', '.join(missing)}")
        if record_id < 1 or any(scope[column] < 1 for column in self.scope_columns):
            raise RecordNotFoundError(self.table, record_id)

    async def insert(self, fields: Dict[str, Any]) -> ModelT:
        """
        Insert a new record.

        Args:
            fields: Column values; system columns are ignored

        Returns:
            The stored record with id, created_at and version populated
        """
        values = {k: v for k, v in fields.items() if k in self.writable_columns}

        async def work(session: AsyncSession) -> ModelT:
            record = self.model(**values)
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

        record = await self._execute("insert", work)
        logger.debug("Record inserted", table=self.table, id=record.id)
        return record

    async def get(self, record_id: int, **scope: int) -> ModelT:
        """
        Fetch a record by id, optionally within a parent scope.

        Raises:
            RecordNotFoundError: If the id is not positive or no row matches
        """
        self._check_ids(record_id, scope)

        async def work(session: AsyncSession) -> Optional[ModelT]:
            stmt = select(self.model).where(self.model.id == record_id, *self._scope_clauses(scope))
            return (await session.execute(stmt)).scalar_one_or_none()

        record = await self._execute("get", work)
        if record is None:
            raise RecordNotFoundError(self.table, record_id)
        return record

    async def exists(self, record_id: int) -> bool:
        if record_id < 1:
            return False

        async def work(session: AsyncSession) -> Optional[int]:
            stmt = select(self.model.id).where(self.model.id == record_id)
            return (await session.execute(stmt)).scalar_one_or_none()

        return await self._execute("exists", work) is not None

    async def update(self, record: ModelT) -> ModelT:
        """
        Replace the mutable columns of a record and bump its version.

        The record's version attribute is set to the stored value.

        Raises:
            RecordNotFoundError: If the row no longer exists
        """
        values = {column: getattr(record, column) for column in self.mutable_columns}
        scope = {column: getattr(record, column) for column in self.scope_columns}

        async def work(session: AsyncSession) -> Optional[int]:
            stmt = (
                update(self.model)
                .where(self.model.id == record.id, *self._scope_clauses(scope))
                .values(**values, version=self.model.version + 1)
                .returning(self.model.version)
                .execution_options(synchronize_session=False)
            )
            version = (await session.execute(stmt)).scalar_one_or_none()
            await session.commit()
            return version

        version = await self._execute("update", work)
        if version is None:
            raise RecordNotFoundError(self.table, record.id)
        record.version = version
        return record

    async def delete(self, record_id: int, **scope: int) -> None:
        """
        Hard-delete a record.

        Raises:
            RecordNotFoundError: If the id is not positive or no row was deleted
        """
        self._check_ids(record_id, scope)

        async def work(session: AsyncSession) -> int:
            stmt = (
                delete(self.model)
                .where(self.model.id == record_id, *self._scope_clauses(scope))
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount

        if await self._execute("delete", work) == 0:
            raise RecordNotFoundError(self.table, record_id)

    async def get_all(
        self,
        search: Dict[str, Any],
        filters: Filters,
        **scope: int,
    ) -> Tuple[List[ModelT], Metadata]:
        """
        List one page of records.

        Args:
            search: Values for the search and exact columns; empty values are ignored
            filters: Validated pagination and sort request
            **scope: Parent scope for nested resources; omit it to list across all parents

        Returns:
            Tuple of (records, metadata)
        """
        table = self.model.__table__
        clauses = self._scope_clauses(scope)
        for column in self.search_columns:
            value = search.get(column)
            if value:
                clauses.append(table.c[column].ilike(f"%{value}%"))
        for column in self.exact_columns:
            value = search.get(column)
            if value:
                clauses.append(table.c[column] == value)

        sort_column = table.c[filters.sort_column()]
        order = sort_column.desc() if filters.sort_direction() == "DESC" else sort_column.asc()

        stmt = (
            select(func.count().over().label("total_records"), self.model)
            .where(*clauses)
            .order_by(order, self.model.id.asc())
            .limit(filters.limit())
            .offset(filters.offset())
        )

        async def work(session: AsyncSession) -> list:
            return list((await session.execute(stmt)).all())

        rows = await self._execute("get_all", work)
        total_records = rows[0].total_records if rows else 0
        records = [row[1] for row in rows]
        return records, calculate_metadata(total_records, filters.page, filters.page_size)


class BookRepository(Repository[Book]):
    model = Book
    search_columns = ("title", "author")


class ProductRepository(Repository[Product]):
    model = Product
    search_columns = ("name", "category")


class ReviewRepository(Repository[Review]):
    model = Review
    search_columns = ("content", "author")
    exact_columns = ("rating",)
    scope_columns = ("product_id",)


class UserRepository(Repository[User]):
    model = User
    search_columns = ("email", "full_name")


class Repositories:
    """The repository set the API works against."""

    def __init__(self, sessionmaker: async_sessionmaker, timeout: float = DEFAULT_TIMEOUT):
        self.books = BookRepository(sessionmaker, timeout)
        self.products = ProductRepository(sessionmaker, timeout)
        self.reviews = ReviewRepository(sessionmaker, timeout)
        self.users = UserRepository(sessionmaker, timeout)
