from datetime import date

import pytest

from models import BudgetPeriod, TransactionType
from schemas import BudgetIn, CategoryIn, TransactionIn
from services import BudgetService, CategoryService, NotFoundError, TransactionService


def _seed_spending(session, user):
    categories = CategoryService(session, user.id)
    food = categories.create(
        CategoryIn(name="Food", color="#F59E0B", type=TransactionType.expense)
    )
    fun = categories.create(
        CategoryIn(name="Fun", color="#EC4899", type=TransactionType.expense)
    )
    salary = categories.create(
        CategoryIn(name="Salary", color="#10B981", type=TransactionType.income)
    )
    txns = TransactionService(session, user.id)
    for amount, category, on in [
        (30.0, food, date(2025, 1, 10)),
        (20.0, food, date(2025, 1, 31)),
        (45.0, fun, date(2025, 1, 15)),
        (99.0, food, date(2025, 2, 1)),
    ]:
        txns.create(
            TransactionIn(
                amount=amount,
                type=TransactionType.expense,
                description="spend",
                date=on,
                category_id=category.id,
            )
        )
    txns.create(
        TransactionIn(
            amount=2000,
            type=TransactionType.income,
            description="Payday",
            date=date(2025, 1, 1),
            category_id=salary.id,
        )
    )
    return food


def test_spent_is_derived_from_expenses_in_window(session, make_user) -> None:
    user = make_user()
    food = _seed_spending(session, user)
    budgets = BudgetService(session, user.id)

    overall = budgets.create(
        BudgetIn(
            name="January",
            amount=200,
            period=BudgetPeriod.monthly,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
        )
    )
    groceries = budgets.create(
        BudgetIn(
            name="January food",
            amount=40,
            period=BudgetPeriod.monthly,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
            category_id=food.id,
        )
    )

    assert overall.spent == 95.0
    assert overall.remaining == 105.0
    assert overall.percentage_spent == pytest.approx(47.5)

    # Over budget is allowed and reported as negative remaining.
    assert groceries.spent == 50.0
    assert groceries.remaining == -10.0
    assert groceries.percentage_spent == pytest.approx(125.0)


def test_list_is_newest_first_and_reflects_new_spending(session, make_user) -> None:
    user = make_user()
    food = _seed_spending(session, user)
    budgets = BudgetService(session, user.id)
    first = budgets.create(
        BudgetIn(
            name="Q1",
            amount=1000,
            period=BudgetPeriod.custom,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 3, 31),
        )
    )
    second = budgets.create(
        BudgetIn(
            name="February",
            amount=150,
            period=BudgetPeriod.monthly,
            start_date=date(2025, 2, 1),
            end_date=date(2025, 2, 28),
        )
    )

    listed = budgets.list_all()
    assert [p.budget.id for p in listed] == [second.budget.id, first.budget.id]
    assert listed[0].spent == 99.0

    TransactionService(session, user.id).create(
        TransactionIn(
            amount=1.0,
            type=TransactionType.expense,
            description="Gum",
            date=date(2025, 2, 14),
            category_id=food.id,
        )
    )
    assert budgets.list_all()[0].spent == 100.0


def test_create_validates_window_and_category(session, make_user) -> None:
    user = make_user()
    budgets = BudgetService(session, user.id)
    with pytest.raises(ValueError, match="End date"):
        budgets.create(
            BudgetIn(
                name="Backwards",
                amount=10,
                period=BudgetPeriod.custom,
                start_date=date(2025, 2, 1),
                end_date=date(2025, 1, 1),
            )
        )
    with pytest.raises(ValueError, match="Invalid category"):
        budgets.create(
            BudgetIn(
                name="Ghost",
                amount=10,
                period=BudgetPeriod.monthly,
                start_date=date(2025, 1, 1),
                end_date=date(2025, 1, 31),
                category_id=999,
            )
        )


def test_delete_is_scoped_to_owner(session, make_user) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")
    progress = BudgetService(session, alice.id).create(
        BudgetIn(
            name="Mine",
            amount=10,
            period=BudgetPeriod.monthly,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
        )
    )
    with pytest.raises(NotFoundError):
        BudgetService(session, bob.id).delete(progress.budget.id)
    BudgetService(session, alice.id).delete(progress.budget.id)
    assert BudgetService(session, alice.id).list_all() == []
