import time
from datetime import date

import pytest
from itsdangerous import TimestampSigner, URLSafeTimedSerializer
from sqlalchemy import func, select

from config import get_settings
from models import Category, Goal, Transaction, TransactionType, User
from schemas import CategoryIn, GoalIn, ProfileUpdateIn, RegisterIn, TransactionIn
from security import (
    TokenExpired,
    TokenInvalid,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)
from services import (
    AuthenticationError,
    CategoryService,
    ConflictError,
    GoalService,
    TransactionService,
    UserService,
)


def test_token_round_trip_and_tampering() -> None:
    token = issue_token(42)
    assert verify_token(token) == 42

    forged = URLSafeTimedSerializer("other-secret", salt="access-token").dumps({"uid": 42})
    with pytest.raises(TokenInvalid):
        verify_token(forged)
    not_a_user = URLSafeTimedSerializer(
        get_settings().token_secret, salt="access-token"
    ).dumps("42")
    with pytest.raises(TokenInvalid):
        verify_token(not_a_user)
    with pytest.raises(TokenInvalid):
        verify_token("not-a-token")


def test_token_expires_after_max_age(monkeypatch) -> None:
    eight_days_ago = int(time.time()) - 8 * 86400
    monkeypatch.setattr(TimestampSigner, "get_timestamp", lambda self: eight_days_ago)
    token = issue_token(7)
    monkeypatch.undo()

    with pytest.raises(TokenExpired):
        verify_token(token)


def test_password_hashing() -> None:
    hashed = hash_password("s3cret!")
    assert hashed != "s3cret!"
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret!", "not-a-bcrypt-hash")


def test_register_rejects_duplicate_email(session) -> None:
    users = UserService(session)
    users.register(RegisterIn(name="Ann", email="Ann@Example.com", password="hunter22"))

    with pytest.raises(ConflictError, match="already registered"):
        users.register(
            RegisterIn(name="Other", email="ANN@example.com", password="hunter22")
        )
    assert session.scalar(select(func.count(User.id))) == 1


def test_login_with_wrong_password_fails(session) -> None:
    users = UserService(session)
    created = users.register(
        RegisterIn(name="Ann", email="ann@example.com", password="hunter22")
    )

    assert users.authenticate("ANN@example.com", "hunter22").id == created.id
    with pytest.raises(AuthenticationError):
        users.authenticate("ann@example.com", "hunter23")
    with pytest.raises(AuthenticationError):
        users.authenticate("nobody@example.com", "hunter22")


def test_profile_update_rejects_taken_email(session) -> None:
    users = UserService(session)
    ann = users.register(RegisterIn(name="Ann", email="ann@example.com", password="hunter22"))
    users.register(RegisterIn(name="Ben", email="ben@example.com", password="hunter22"))

    with pytest.raises(ConflictError, match="already in use"):
        users.update_profile(
            ann.id, ProfileUpdateIn(name="Ann", email="ben@example.com")
        )

    updated = users.update_profile(
        ann.id,
        ProfileUpdateIn(
            name="Ann B",
            email="ann@example.com",
            phone="555-0100",
            currency="eur",
            notifications={"email": False, "push": True, "sms": True},
        ),
    )
    assert updated.name == "Ann B"
    assert updated.currency == "EUR"
    assert updated.notify_email is False
    assert updated.notify_sms is True


def test_change_password_verifies_old_password(session) -> None:
    users = UserService(session)
    ann = users.register(RegisterIn(name="Ann", email="ann@example.com", password="hunter22"))

    with pytest.raises(AuthenticationError):
        users.change_password(ann.id, "wrong", "newpass1")

    users.change_password(ann.id, "hunter22", "newpass1")
    assert users.authenticate("ann@example.com", "newpass1").id == ann.id


def test_delete_account_requires_password_and_cascades(session) -> None:
    users = UserService(session)
    ann = users.register(RegisterIn(name="Ann", email="ann@example.com", password="hunter22"))
    food = CategoryService(session, ann.id).create(
        CategoryIn(name="Food", color="#F59E0B", type=TransactionType.expense)
    )
    TransactionService(session, ann.id).create(
        TransactionIn(
            amount=3,
            type=TransactionType.expense,
            description="Tea",
            date=date(2025, 1, 1),
            category_id=food.id,
        )
    )
    GoalService(session, ann.id).create(
        GoalIn(name="Fund", target_amount=100, deadline=date(2026, 1, 1))
    )

    with pytest.raises(AuthenticationError):
        users.delete_account(ann.id, "nope")

    users.delete_account(ann.id, "hunter22")
    for model in (User, Category, Transaction, Goal):
        assert session.scalar(select(func.count()).select_from(model)) == 0
