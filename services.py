from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from models import (
    Budget,
    Category,
    Goal,
    GoalStatus,
    Transaction,
    TransactionType,
    User,
)
from periods import Period, current_month, local_today, trailing_days, trailing_months
from schemas import (
    BudgetIn,
    CategoryIn,
    GoalIn,
    GoalUpdate,
    ProfileUpdateIn,
    RegisterIn,
    TransactionIn,
)
from security import hash_password, verify_password


logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class ConflictError(ValueError):
    pass


class AuthenticationError(ValueError):
    pass


class StaleUpdateError(ValueError):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def register(self, data: RegisterIn) -> User:
        email = normalize_email(data.email)
        existing = self.session.scalar(select(User).where(User.email == email))
        if existing:
            raise ConflictError("Email already registered")
        user = User(
            name=data.name,
            email=email,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Email already registered") from exc
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.session.scalar(
            select(User).where(User.email == normalize_email(email))
        )
        if not user or not verify_password(password, user.password_hash):
            logger.info("login_failed: reason=invalid_credentials")
            raise AuthenticationError("Invalid credentials")
        return user

    def update_profile(self, user_id: int, data: ProfileUpdateIn) -> User:
        user = self.get(user_id)
        email = normalize_email(data.email)
        taken = self.session.scalar(
            select(User.id).where(User.email == email, User.id != user_id)
        )
        if taken:
            raise ConflictError("Email is already in use")
        user.name = data.name.strip()
        user.email = email
        if data.phone is not None:
            user.phone = data.phone.strip()
        if data.currency is not None:
            user.currency = data.currency.upper()
        if data.timezone is not None:
            user.timezone = data.timezone
        if data.avatar is not None:
            user.avatar = data.avatar or None
        if data.notifications is not None:
            user.notify_email = data.notifications.email
            user.notify_push = data.notifications.push
            user.notify_sms = data.notifications.sms
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Email is already in use") from exc
        return user

    def change_password(self, user_id: int, old_password: str, new_password: str) -> User:
        user = self.get(user_id)
        if not verify_password(old_password, user.password_hash):
            raise AuthenticationError("Invalid old password")
        user.password_hash = hash_password(new_password)
        self.session.commit()
        logger.info(f"password_changed: user_id={user_id}")
        return user

    def delete_account(self, user_id: int, password: str) -> None:
        user = self.get(user_id)
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid password")
        # Transactions go first: they reference categories.
        self.session.execute(delete(Transaction).where(Transaction.user_id == user_id))
        self.session.execute(delete(Budget).where(Budget.user_id == user_id))
        self.session.execute(delete(Goal).where(Goal.user_id == user_id))
        self.session.execute(delete(Category).where(Category.user_id == user_id))
        self.session.expire(user)
        self.session.delete(user)
        self.session.commit()
        logger.info(f"account_deleted: user_id={user_id}")


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.name)
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        existing = self.session.scalar(
            select(Category.id).where(
                Category.user_id == self.user_id, Category.name == name
            )
        )
        if existing:
            raise ConflictError("Category name already exists for this user")
        category = Category(
            user_id=self.user_id,
            name=name,
            color=data.color,
            icon=data.icon,
            type=data.type,
        )
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Category name already exists for this user") from exc
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        in_use = self.session.scalar(
            select(func.count(Transaction.id)).where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category.id,
            )
        )
        if in_use:
            raise ValueError("Category is used by existing transactions")
        self.session.execute(
            update(Budget)
            .where(Budget.user_id == self.user_id, Budget.category_id == category.id)
            .values(category_id=None)
        )
        self.session.delete(category)
        self.session.commit()


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def count(self) -> int:
        stmt = select(func.count(Transaction.id)).where(
            Transaction.user_id == self.user_id
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def list_all(self) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        category = self.session.get(Category, data.category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Invalid category")
        txn = Transaction(
            user_id=self.user_id,
            amount=float(data.amount),
            type=data.type,
            description=data.description.strip(),
            date=data.date,
            category_id=category.id,
        )
        self.session.add(txn)
        self.session.commit()
        logger.info(f"transaction_created: user_id={self.user_id} id={txn.id}")
        return self.get(txn.id)

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: user_id={self.user_id} id={transaction_id}")


@dataclass
class BudgetProgress:
    budget: Budget
    spent: float

    @property
    def remaining(self) -> float:
        return round(self.budget.amount - self.spent, 2)

    @property
    def percentage_spent(self) -> float:
        if self.budget.amount <= 0:
            return 0.0
        return self.spent / self.budget.amount * 100


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def spent_for(self, budget: Budget) -> float:
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == self.user_id,
            Transaction.type == TransactionType.expense,
            Transaction.date.between(budget.start_date, budget.end_date),
        )
        if budget.category_id is not None:
            stmt = stmt.where(Transaction.category_id == budget.category_id)
        return round(float(self.session.execute(stmt).scalar_one() or 0), 2)

    def list_all(self) -> list[BudgetProgress]:
        stmt = (
            select(Budget)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.created_at.desc(), Budget.id.desc())
        )
        return [
            BudgetProgress(budget=b, spent=self.spent_for(b))
            for b in self.session.scalars(stmt).all()
        ]

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise NotFoundError("Budget not found")
        return budget

    def create(self, data: BudgetIn) -> BudgetProgress:
        if data.end_date < data.start_date:
            raise ValueError("End date must be on or after start date")
        if data.category_id is not None:
            category = self.session.get(Category, data.category_id)
            if not category or category.user_id != self.user_id:
                raise ValueError("Invalid category")
        budget = Budget(
            user_id=self.user_id,
            name=data.name.strip(),
            amount=float(data.amount),
            period=data.period,
            start_date=data.start_date,
            end_date=data.end_date,
            category_id=data.category_id,
            notes=data.notes,
            is_active=data.is_active,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return BudgetProgress(budget=budget, spent=self.spent_for(budget))

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()


def _settle_goal_status(
    goal: Goal,
    requested: Optional[GoalStatus] = None,
    *,
    amounts_changed: bool = True,
) -> None:
    """Apply ``requested`` and complete the goal once the target is reached.

    Without a requested status the stored one is kept, unless the amounts
    changed, in which case it follows progress in both directions.
    """
    if requested is not None:
        goal.status = requested
    if goal.current_amount >= goal.target_amount:
        goal.status = GoalStatus.completed
    elif requested is None and amounts_changed:
        goal.status = GoalStatus.in_progress


class GoalService:
    _MUTABLE_FIELDS = (
        "name",
        "target_amount",
        "current_amount",
        "deadline",
        "description",
        "category",
    )

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Goal]:
        stmt = (
            select(Goal)
            .where(Goal.user_id == self.user_id)
            .order_by(Goal.deadline, Goal.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, goal_id: int) -> Goal:
        goal = self.session.get(Goal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise NotFoundError("Goal not found")
        return goal

    def create(self, data: GoalIn) -> Goal:
        goal = Goal(
            user_id=self.user_id,
            name=data.name.strip(),
            target_amount=float(data.target_amount),
            current_amount=float(data.current_amount or 0),
            deadline=data.deadline,
            description=data.description.strip(),
            category=data.category,
        )
        _settle_goal_status(goal)
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def update(self, goal_id: int, data: GoalUpdate) -> Goal:
        goal = self.get(goal_id)
        changes = data.model_dump(exclude_unset=True)
        expected_version = changes.pop("version", None)
        if expected_version is not None and expected_version != goal.version:
            raise StaleUpdateError("Goal was modified by another request")

        for field in self._MUTABLE_FIELDS:
            value = changes.get(field)
            if value is None:
                continue
            if field in ("target_amount", "current_amount"):
                value = float(value)
            elif field in ("name", "description"):
                value = value.strip()
            setattr(goal, field, value)
        amounts_changed = any(
            changes.get(field) is not None
            for field in ("target_amount", "current_amount")
        )
        _settle_goal_status(
            goal, changes.get("status"), amounts_changed=amounts_changed
        )
        try:
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            raise StaleUpdateError("Goal was modified by another request") from exc
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        try:
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            raise StaleUpdateError("Goal was modified by another request") from exc


class DashboardService:
    """Read-only figures for the dashboard, recomputed on every call."""

    SUMMARY_MONTHS = 6
    TREND_DAYS = 30

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _daily_totals(self, start: date, end: date) -> dict[tuple[date, TransactionType], float]:
        stmt = (
            select(
                Transaction.date,
                Transaction.type,
                func.sum(Transaction.amount).label("total"),
            )
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date.between(start, end),
            )
            .group_by(Transaction.date, Transaction.type)
        )
        return {
            (row.date, row.type): float(row.total or 0)
            for row in self.session.execute(stmt)
        }

    @staticmethod
    def _sum_between(
        totals: dict[tuple[date, TransactionType], float],
        period: Period,
        txn_type: TransactionType,
    ) -> float:
        return round(
            sum(
                amount
                for (day, kind), amount in totals.items()
                if kind == txn_type and period.start <= day <= period.end
            ),
            2,
        )

    def category_spending(self, period: Period) -> list[dict[str, object]]:
        total = func.sum(Transaction.amount)
        stmt = (
            select(Category.name, Category.color, total.label("total"))
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.date.between(period.start, period.end),
            )
            .group_by(Category.id, Category.name, Category.color)
            .order_by(total.desc(), Category.name)
        )
        return [
            {"name": row.name, "value": round(float(row.total or 0), 2), "color": row.color}
            for row in self.session.execute(stmt)
        ]

    def summary(self, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        this_month = current_month(today)
        months = trailing_months(self.SUMMARY_MONTHS, today=today)
        days = trailing_days(self.TREND_DAYS, today=today)

        window_start = min(months[0].start, days[0])
        totals = self._daily_totals(window_start, this_month.end)

        monthly_income = self._sum_between(totals, this_month, TransactionType.income)
        monthly_expenses = self._sum_between(totals, this_month, TransactionType.expense)

        monthly_summary = [
            {
                "month": period.start.strftime("%b"),
                "income": self._sum_between(totals, period, TransactionType.income),
                "expense": self._sum_between(totals, period, TransactionType.expense),
            }
            for period in months
        ]
        daily_spending = [
            {
                "date": f"{day.strftime('%b')} {day.day}",
                "amount": round(totals.get((day, TransactionType.expense), 0.0), 2),
            }
            for day in days
        ]

        return {
            "monthly_income": monthly_income,
            "monthly_expenses": monthly_expenses,
            "monthly_balance": round(monthly_income - monthly_expenses, 2),
            "total_transactions": TransactionService(self.session, self.user_id).count(),
            "charts": {
                "monthly_summary": monthly_summary,
                "category_spending": self.category_spending(this_month),
                "daily_spending": daily_spending,
            },
        }
