"""Summary: Expense persistence and aggregate queries.

Importance: Supplies the listings and totals the agent and slash commands report on.
Alternatives: Aggregate expenses in Python after loading every row.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from financeai.models import CategoryTotal, Expense, ExpenseCategory
from financeai.storage.database import Database, parse_timestamp
from financeai.storage.repository import Repository, Table, Where, and_, contains, eq, gte, lte


logger = logging.getLogger(__name__)

EXPENSES_TABLE = Table(
    name="expenses",
    columns=(
        "id",
        "date",
        "description",
        "amount",
        "category",
        "is_recurring",
        "user_id",
        "created_at",
        "updated_at",
    ),
)


@dataclass(frozen=True)
class ExpenseFilters:
    """Summary: Optional filters for listing and totalling expenses.

    Importance: One filter type shared by listings and sums keeps them consistent.
    Alternatives: Separate keyword arguments on each query method.
    """

    category: ExpenseCategory | None = None
    start_date: str | None = None
    end_date: str | None = None
    search: str | None = None
    limit: int = 50
    offset: int = 0


def map_expense(row: sqlite3.Row) -> Expense:
    return Expense(
        id=row["id"],
        date=row["date"],
        description=row["description"],
        amount=float(row["amount"]),
        category=ExpenseCategory(row["category"]),
        is_recurring=bool(row["is_recurring"]),
        user_id=row["user_id"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


class ExpenseRepository(Repository[Expense]):
    """Summary: Repository for expenses with per-user filtering and aggregation.

    Importance: All expense reads are scoped to one owner.
    Alternatives: Expose raw SQL to the agent.
    """

    def __init__(self, database: Database) -> None:
        super().__init__(database, EXPENSES_TABLE, map_expense)

    def find_by_user_id(self, user_id: str, filters: ExpenseFilters | None = None) -> list[Expense]:
        """Summary: List a user's expenses, newest first.

        Importance: Backs both the /despesas listing and agent queries.
        Alternatives: Use find_with_pagination with a predicate.
        """

        filters = filters or ExpenseFilters()
        where = self._user_filters(user_id, filters)
        try:
            with self.database.connect() as connection:
                rows = connection.execute(
                    f"SELECT * FROM expenses WHERE {where.clause} "
                    "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                    (*where.params, filters.limit, filters.offset),
                ).fetchall()
        except sqlite3.Error:
            logger.exception("Failed to list expenses for user %s.", user_id)
            raise
        return [map_expense(row) for row in rows]

    def get_total_by_user_id(self, user_id: str, filters: ExpenseFilters | None = None) -> float:
        filters = filters or ExpenseFilters()
        where = self._user_filters(user_id, filters)
        try:
            with self.database.connect() as connection:
                row = connection.execute(
                    f"SELECT COALESCE(SUM(amount), 0) FROM expenses WHERE {where.clause}",
                    where.params,
                ).fetchone()
        except sqlite3.Error:
            logger.exception("Failed to total expenses for user %s.", user_id)
            raise
        return float(row[0])

    def get_expenses_by_category(
        self,
        user_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[CategoryTotal]:
        """Summary: Sum and count a user's expenses per category.

        Importance: Feeds category breakdowns in summaries.
        Alternatives: Compute the breakdown client-side from a full listing.
        """

        where = self._user_filters(
            user_id, ExpenseFilters(start_date=start_date, end_date=end_date)
        )
        try:
            with self.database.connect() as connection:
                rows = connection.execute(
                    f"SELECT category, SUM(amount) AS total, COUNT(*) AS count FROM expenses "
                    f"WHERE {where.clause} GROUP BY category ORDER BY total DESC",
                    where.params,
                ).fetchall()
        except sqlite3.Error:
            logger.exception("Failed to group expenses by category for user %s.", user_id)
            raise
        return [
            CategoryTotal(
                category=ExpenseCategory(row["category"]),
                total=float(row["total"]),
                count=int(row["count"]),
            )
            for row in rows
        ]

    def find_expenses_by_category(self, user_id: str, category: ExpenseCategory) -> list[Expense]:
        return self.find_by_user_id(user_id, ExpenseFilters(category=category))

    def find_recurring_expenses(self, user_id: str) -> list[Expense]:
        return self.find_all(and_(eq("user_id", user_id), eq("is_recurring", True)))

    def _user_filters(self, user_id: str, filters: ExpenseFilters) -> Where:
        return and_(
            eq("user_id", user_id),
            eq("category", filters.category) if filters.category else None,
            gte("date", filters.start_date) if filters.start_date else None,
            lte("date", filters.end_date) if filters.end_date else None,
            contains("description", filters.search) if filters.search else None,
        )
