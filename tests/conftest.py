from datetime import date

import pytest

from budgetbud.database import Database
from budgetbud.services import add_category

TODAY = date(2024, 6, 15)
USER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.init_schema()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    with database.session_scope() as session:
        yield session


@pytest.fixture
def budget_categories(session):
    """Rent 50%, Food 30%, Fun 20%."""
    rent = add_category(session, USER, "Rent", 50, "#ef4444")
    food = add_category(session, USER, "Food", 30, "#10B981")
    fun = add_category(session, USER, "Fun", 20, "#8B5CF6")
    return rent, food, fun
