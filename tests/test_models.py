"""Summary: Tests for domain models.

Importance: Ensures category parsing and entity helpers behave predictably.
Alternatives: Exercise models only through the repositories.
"""

from __future__ import annotations

import pytest

from financeai.errors import AppError, RecordNotFoundError
from financeai.models import Expense, ExpenseCategory, User, format_currency


def _expense(**overrides: object) -> Expense:
    values = {
        "date": "2024-05-01",
        "description": "Mercado",
        "amount": 150.5,
        "category": ExpenseCategory.ESSENTIALS,
        "user_id": "user-1",
    }
    values.update(overrides)
    return Expense(**values)


def test_category_parse_accepts_values_case_insensitively() -> None:
    assert ExpenseCategory.parse(" Leisure ") is ExpenseCategory.LEISURE
    assert ExpenseCategory.parse(ExpenseCategory.KNOWLEDGE) is ExpenseCategory.KNOWLEDGE


def test_category_parse_rejects_unknown_value() -> None:
    with pytest.raises(ValueError) as excinfo:
        ExpenseCategory.parse("food")
    assert "Valid categories" in str(excinfo.value)


def test_expense_update_helpers_return_new_instances() -> None:
    """Summary: Verify update helpers never mutate the original expense.

    Importance: Entities are frozen snapshots shared across threads.
    Alternatives: Allow in-place mutation.
    """

    expense = _expense()
    updated = expense.update_amount(99.9).update_category("leisure").update_description("Cinema")
    assert expense.amount == 150.5
    assert updated.amount == 99.9
    assert updated.category is ExpenseCategory.LEISURE
    assert updated.description == "Cinema"
    assert updated.id == expense.id
    assert updated.updated_at >= expense.updated_at


def test_expense_category_predicates_and_formatting() -> None:
    expense = _expense(amount=10)
    assert expense.is_essential()
    assert not expense.is_emergency()
    assert _expense(category=ExpenseCategory.INVESTMENTS).is_investment()
    assert expense.formatted_amount == "R$ 10.00"
    assert format_currency(1234.567) == "R$ 1234.57"


def test_user_helpers() -> None:
    user = User(name="Ana", email="ana@example.com")
    assert user.update_salary(5000).monthly_salary == 5000
    assert user.verify_email().email_verified
    assert not user.email_verified


def test_app_error_to_dict_includes_details_only_when_present() -> None:
    assert AppError.not_found("missing").to_dict() == {"code": "NOT_FOUND", "message": "missing"}
    error = RecordNotFoundError("expenses", "abc")
    assert error.status_code == 404
    assert error.to_dict()["details"] == {"table": "expenses", "id": "abc"}


def test_record_not_found_keeps_the_id_out_of_the_message() -> None:
    error = RecordNotFoundError("expenses", "3f2a-secret-id")
    assert error.message == "Record not found"
    assert "3f2a-secret-id" not in str(error)
    assert error.details["id"] == "3f2a-secret-id"
