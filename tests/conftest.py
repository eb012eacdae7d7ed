import os

os.environ.setdefault("FINANCE_TOKEN_SECRET", "test-token-secret")
os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite://")
os.environ["FINANCE_TIMEZONE"] = "UTC"
os.environ.pop("FINANCE_AI_API_KEY", None)

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from database import Base  # noqa: E402
from models import User  # noqa: E402


@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(name: str = "Alice") -> User:
        counter["n"] += 1
        user = User(
            name=name,
            email=f"{name.lower()}{counter['n']}@example.com",
            password_hash="!",
        )
        session.add(user)
        session.commit()
        return user

    return _make
