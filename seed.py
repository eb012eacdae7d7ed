"""Populate the database with a demo account.

Usage: ``python seed.py [--reset]``. Without ``--reset`` an existing demo
user is left untouched.
"""

import argparse
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from database import session_scope
from models import BudgetPeriod, Category, TransactionType, User
from periods import local_today, month_end, month_start
from schemas import BudgetIn, CategoryIn, GoalIn, RegisterIn, TransactionIn
from services import (
    BudgetService,
    CategoryService,
    GoalService,
    TransactionService,
    UserService,
)


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_EMAIL = "john@example.com"
DEMO_PASSWORD = "password123"

DEFAULT_CATEGORIES = [
    ("Salary", "#10B981", TransactionType.income),
    ("Freelance", "#3B82F6", TransactionType.income),
    ("Food & Dining", "#F59E0B", TransactionType.expense),
    ("Transportation", "#EF4444", TransactionType.expense),
    ("Shopping", "#8B5CF6", TransactionType.expense),
    ("Entertainment", "#EC4899", TransactionType.expense),
    ("Utilities", "#6B7280", TransactionType.expense),
    ("Healthcare", "#059669", TransactionType.expense),
]

# (category, amount, description, days ago)
DEMO_TRANSACTIONS = [
    ("Salary", 3500.0, "Monthly Salary", 0),
    ("Freelance", 500.0, "Freelance Project", 2),
    ("Food & Dining", 85.50, "Grocery Shopping", 1),
    ("Transportation", 45.0, "Gas Station", 3),
    ("Entertainment", 25.0, "Movie Tickets", 5),
    ("Utilities", 120.0, "Electricity Bill", 7),
    ("Shopping", 200.0, "New Clothes", 10),
    ("Food & Dining", 65.0, "Restaurant Dinner", 12),
]


def seed_demo_data(
    session: Session, *, reset: bool = False, today: Optional[date] = None
) -> User:
    today = today or local_today()
    existing = session.scalar(select(User).where(User.email == DEMO_EMAIL))
    if existing and not reset:
        logger.info(f"seed_skipped: user_id={existing.id} already exists")
        return existing
    if existing:
        UserService(session).delete_account(existing.id, DEMO_PASSWORD)

    user = UserService(session).register(
        RegisterIn(name="John Doe", email=DEMO_EMAIL, password=DEMO_PASSWORD)
    )

    categories: dict[str, Category] = {}
    category_service = CategoryService(session, user.id)
    for name, color, txn_type in DEFAULT_CATEGORIES:
        categories[name] = category_service.create(
            CategoryIn(name=name, color=color, type=txn_type)
        )

    txn_service = TransactionService(session, user.id)
    for category_name, amount, description, days_ago in DEMO_TRANSACTIONS:
        category = categories[category_name]
        txn_service.create(
            TransactionIn(
                amount=amount,
                type=category.type,
                description=description,
                date=today - timedelta(days=days_ago),
                category_id=category.id,
            )
        )

    budgets = BudgetService(session, user.id)
    budgets.create(
        BudgetIn(
            name="Monthly Food Budget",
            amount=500.0,
            period=BudgetPeriod.monthly,
            start_date=month_start(today),
            end_date=month_end(today),
            category_id=categories["Food & Dining"].id,
        )
    )
    budgets.create(
        BudgetIn(
            name="Monthly Entertainment",
            amount=200.0,
            period=BudgetPeriod.monthly,
            start_date=month_start(today),
            end_date=month_end(today),
            category_id=categories["Entertainment"].id,
        )
    )

    GoalService(session, user.id).create(
        GoalIn(
            name="Emergency Fund",
            target_amount=5000.0,
            current_amount=1200.0,
            deadline=today + timedelta(days=180),
            description="Three months of expenses",
        )
    )

    logger.info(
        f"seed_complete: user_id={user.id} categories={len(categories)} "
        f"transactions={len(DEMO_TRANSACTIONS)}"
    )
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the demo account")
    parser.add_argument(
        "--reset", action="store_true", help="recreate the demo user if present"
    )
    args = parser.parse_args()
    with session_scope() as session:
        seed_demo_data(session, reset=args.reset)
    logger.info(f"seed_demo_login: email={DEMO_EMAIL}")


if __name__ == "__main__":
    main()
