"""Summary: Generic repository over a single SQLite table.

Importance: Gives every entity the same CRUD, pagination, and soft-delete behavior.
Alternatives: Hand-write SQL for each entity or adopt an ORM session.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from dataclasses import dataclass, replace
from typing import Any, Callable, Generic, Mapping, TypeVar

from financeai.errors import AppError, RecordNotCreatedError, RecordNotFoundError
from financeai.models import Entity, utcnow
from financeai.storage.database import Database, TransactionScope, to_db


logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)
R = TypeVar("R")

PROTECTED_COLUMNS = frozenset({"id", "created_at", "updated_at", "deleted_at"})


@dataclass(frozen=True)
class Table:
    """Summary: Describes a table the repository may read and write.

    Importance: Restricts column names in generated SQL to a known list.
    Alternatives: Reflect columns from the database at runtime.
    """

    name: str
    columns: tuple[str, ...]
    soft_delete: bool = False

    def __post_init__(self) -> None:
        required = {"id", "created_at", "updated_at"}
        if self.soft_delete:
            required.add("deleted_at")
        missing = required - set(self.columns)
        if missing:
            raise ValueError(f"Table {self.name} is missing columns: {sorted(missing)}")

    def has(self, column: str) -> bool:
        return column in self.columns


@dataclass(frozen=True)
class Where:
    """Summary: A SQL predicate fragment with its bound parameters.

    Importance: Keeps filter values out of SQL text.
    Alternatives: Build query strings with formatting.
    """

    clause: str
    params: tuple[Any, ...] = ()


def and_(*conditions: Where | None) -> Where | None:
    parts = [condition for condition in conditions if condition is not None]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return Where(
        " AND ".join(f"({part.clause})" for part in parts),
        tuple(param for part in parts for param in part.params),
    )


def eq(column: str, value: object) -> Where:
    return Where(f"{column} = ?", (to_db(value),))


def gte(column: str, value: object) -> Where:
    return Where(f"{column} >= ?", (to_db(value),))


def lte(column: str, value: object) -> Where:
    return Where(f"{column} <= ?", (to_db(value),))


def contains(column: str, text: str) -> Where:
    return Where(f"{column} LIKE ?", (f"%{text}%",))


@dataclass(frozen=True)
class PaginationParams:
    page: int = 1
    limit: int = 8
    order_by: str = "created_at"
    order_direction: str = "desc"


@dataclass(frozen=True)
class PaginatedResult(Generic[E]):
    """Summary: One page of entities plus the counts needed to navigate.

    Importance: Lets callers render page indicators without a second query.
    Alternatives: Return only the page data and let clients guess the end.
    """

    data: list[E]
    total: int
    page: int
    limit: int
    total_pages: int


class Repository(Generic[E]):
    """Summary: CRUD and query surface for one table and entity type.

    Importance: Concrete repositories only supply a row-mapping function.
    Alternatives: Use per-entity stores with duplicated SQL.
    """

    def __init__(
        self,
        database: Database,
        table: Table,
        map_row: Callable[[sqlite3.Row], E],
    ) -> None:
        self.database = database
        self.table = table
        self.map_row = map_row

    def create(self, entity: E, transaction: TransactionScope | None = None) -> E:
        """Summary: Insert a new record and return the stored entity.

        Importance: Stamps creation timestamps server-side.
        Alternatives: Trust timestamps supplied by callers.
        """

        now = utcnow()
        entity = replace(entity, created_at=now, updated_at=now, deleted_at=None)
        values = {column: to_db(getattr(entity, column)) for column in self.table.columns}
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)

        def operation(connection: sqlite3.Connection) -> E:
            rows = connection.execute(
                f"INSERT INTO {self.table.name} ({columns}) VALUES ({placeholders}) RETURNING *",
                tuple(values.values()),
            ).fetchall()
            if not rows:
                raise RecordNotCreatedError(self.table.name)
            return self.map_row(rows[0])

        return self._execute(operation, transaction)

    def update(
        self,
        record_id: str,
        changes: Mapping[str, object],
        transaction: TransactionScope | None = None,
    ) -> E:
        """Summary: Update only the given columns of a record.

        Importance: Leaves untouched fields exactly as stored.
        Alternatives: Rewrite the whole row from an entity snapshot.
        """

        values = {key: to_db(value) for key, value in changes.items() if key not in PROTECTED_COLUMNS}
        unknown = [key for key in values if not self.table.has(key)]
        if unknown:
            raise AppError.validation_error(
                f"Unknown columns for {self.table.name}: {', '.join(sorted(unknown))}"
            )
        values["updated_at"] = to_db(utcnow())
        assignments = ", ".join(f"{column} = ?" for column in values)

        def operation(connection: sqlite3.Connection) -> E:
            rows = connection.execute(
                f"UPDATE {self.table.name} SET {assignments} WHERE id = ? RETURNING *",
                (*values.values(), record_id),
            ).fetchall()
            if not rows:
                raise RecordNotFoundError(self.table.name, record_id)
            return self.map_row(rows[0])

        return self._execute(operation, transaction)

    def find_by_id(
        self,
        record_id: str,
        transaction: TransactionScope | None = None,
        include_deleted: bool = False,
    ) -> E | None:
        where = eq("id", record_id)
        if not include_deleted:
            where = and_(where, self._not_deleted())

        def operation(connection: sqlite3.Connection) -> E | None:
            row = connection.execute(
                f"SELECT * FROM {self.table.name} WHERE {where.clause}", where.params
            ).fetchone()
            return self.map_row(row) if row else None

        return self._execute(operation, transaction)

    def find_all(
        self, where: Where | None = None, transaction: TransactionScope | None = None
    ) -> list[E]:
        """Summary: List visible records matching an optional predicate.

        Importance: Provides the default oldest-first listing for every table.
        Alternatives: Require pagination for every read.
        """

        condition = and_(where, self._not_deleted())
        sql, params = self._select(condition)

        def operation(connection: sqlite3.Connection) -> list[E]:
            rows = connection.execute(f"{sql} ORDER BY created_at ASC, rowid ASC", params).fetchall()
            return [self.map_row(row) for row in rows]

        return self._execute(operation, transaction)

    def find_with_pagination(
        self,
        params: PaginationParams | None = None,
        where: Where | None = None,
        transaction: TransactionScope | None = None,
    ) -> PaginatedResult[E]:
        """Summary: Return one page of visible records with total counts.

        Importance: Backs paginated listings with a count over the same predicate.
        Alternatives: Use keyset pagination on created_at.
        """

        params = params or PaginationParams()
        if params.page < 1 or params.limit < 1:
            raise AppError.validation_error("page and limit must be positive integers")
        if not self.table.has(params.order_by):
            raise AppError.validation_error(f"Cannot order {self.table.name} by {params.order_by}")
        direction = params.order_direction.lower()
        if direction not in {"asc", "desc"}:
            raise AppError.validation_error("order_direction must be 'asc' or 'desc'")

        condition = and_(where, self._not_deleted())
        sql, values = self._select(condition)
        count_sql = f"SELECT COUNT(*) FROM {self.table.name}"
        if condition is not None:
            count_sql += f" WHERE {condition.clause}"
        offset = (params.page - 1) * params.limit

        def operation(connection: sqlite3.Connection) -> PaginatedResult[E]:
            total = int(connection.execute(count_sql, values).fetchone()[0])
            rows = connection.execute(
                f"{sql} ORDER BY {params.order_by} {direction.upper()}, rowid {direction.upper()} "
                "LIMIT ? OFFSET ?",
                (*values, params.limit, offset),
            ).fetchall()
            return PaginatedResult(
                data=[self.map_row(row) for row in rows],
                total=total,
                page=params.page,
                limit=params.limit,
                total_pages=math.ceil(total / params.limit),
            )

        return self._execute(operation, transaction)

    def soft_delete(self, record_id: str, transaction: TransactionScope | None = None) -> None:
        if not self.table.soft_delete:
            raise AppError.bad_request(f"Table {self.table.name} does not support soft delete")
        now = to_db(utcnow())

        def operation(connection: sqlite3.Connection) -> None:
            rows = connection.execute(
                f"UPDATE {self.table.name} SET deleted_at = ?, updated_at = ? WHERE id = ? RETURNING id",
                (now, now, record_id),
            ).fetchall()
            if not rows:
                raise RecordNotFoundError(self.table.name, record_id)

        self._execute(operation, transaction)

    def hard_delete(self, record_id: str, transaction: TransactionScope | None = None) -> bool:
        """Summary: Physically remove a record.

        Importance: Deleting a missing id is a no-op; the return value reports whether a row went away.
        Alternatives: Raise RecordNotFoundError like update and soft_delete.
        """

        def operation(connection: sqlite3.Connection) -> bool:
            cursor = connection.execute(f"DELETE FROM {self.table.name} WHERE id = ?", (record_id,))
            if cursor.rowcount == 0:
                logger.debug("No %s row with id %s to delete.", self.table.name, record_id)
            return cursor.rowcount > 0

        return self._execute(operation, transaction)

    def delete_all(self) -> None:
        if not self.database.test_mode:
            raise AppError.forbidden("delete_all is only available in test mode")
        self._execute(lambda connection: connection.execute(f"DELETE FROM {self.table.name}"))

    def _not_deleted(self) -> Where | None:
        if self.table.soft_delete:
            return Where("deleted_at IS NULL")
        return None

    def _select(self, where: Where | None) -> tuple[str, tuple[Any, ...]]:
        sql = f"SELECT * FROM {self.table.name}"
        if where is None:
            return sql, ()
        return f"{sql} WHERE {where.clause}", where.params

    def _execute(
        self,
        operation: Callable[[sqlite3.Connection], R],
        transaction: TransactionScope | None = None,
    ) -> R:
        if transaction is not None:
            return operation(transaction)
        with self.database.transaction() as connection:
            return operation(connection)
