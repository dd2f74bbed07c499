import json
from datetime import date, datetime, timezone

from budgetbud.services import (
    build_export,
    create_paycheck,
    create_profile,
    deactivate_category,
    export_filename,
    export_json,
    record_transaction,
)
from tests.conftest import TODAY, USER

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_export_filename():
    assert export_filename(date(2024, 6, 15)) == "budgetbud-data-2024-06-15.json"


def test_export_document_contents(session, budget_categories):
    rent, food, fun = budget_categories
    create_profile(session, USER, "123456", display_name="Sam")
    create_paycheck(session, USER, 1000, TODAY, "monthly", today=TODAY)
    record_transaction(session, USER, food.id, "42.10", TODAY, "market", today=TODAY)
    deactivate_category(session, USER, fun.id)

    document = build_export(session, USER, now=NOW)

    assert document.metadata.user_id == USER
    assert document.profile.display_name == "Sam"
    assert [(c.name, c.is_active) for c in document.categories] == [
        ("Rent", True),
        ("Food", True),
        ("Fun", False),
    ]
    assert len(document.paychecks) == 1
    food_allocation = next(
        a for a in document.paychecks[0].allocations if a.category_name == "Food"
    )
    assert float(food_allocation.spent_amount) == 42.1
    assert [t.category_name for t in document.transactions] == ["Food"]


def test_export_json_uses_camel_case_metadata(session, budget_categories):
    payload = json.loads(export_json(session, USER, now=NOW))

    assert set(payload) == {"metadata", "profile", "categories", "paychecks", "transactions"}
    assert payload["metadata"] == {
        "exportDate": NOW.isoformat(),
        "exportVersion": "1.0",
        "userId": USER,
    }
    assert payload["profile"]["theme"] == "auto"
    assert len(payload["categories"]) == 3
