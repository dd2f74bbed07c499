from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

import budgetbud.services.paychecks as paychecks_module
from budgetbud.errors import ConflictError, NotFoundError, ValidationError
from budgetbud.models import Allocation, Paycheck, PaycheckFrequency
from budgetbud.services import (
    add_category,
    budgeted_amount,
    create_paycheck,
    deactivate_category,
    delete_all_paycheck_data,
    delete_paycheck,
    get_paycheck_detail,
    list_paychecks,
    record_transaction,
    update_category,
    update_paycheck,
)
from tests.conftest import TODAY, USER


def _allocations_by_name(session, paycheck_id):
    detail = get_paycheck_detail(session, USER, paycheck_id)
    return {allocation.category_name: allocation for allocation in detail.allocations}


@pytest.mark.parametrize(
    "amount, percentage, expected",
    [
        ("1000", "50", "500.00"),
        ("999.99", "33", "330.00"),
        ("999.99", "34", "340.00"),
        ("0.05", "10", "0.01"),
        ("0.04", "10", "0.00"),
    ],
)
def test_budgeted_amount_rounds_half_up(amount, percentage, expected):
    assert budgeted_amount(Decimal(amount), Decimal(percentage)) == Decimal(expected)


def test_create_paycheck_snapshots_active_categories(session, budget_categories):
    paycheck = create_paycheck(session, USER, 1000, TODAY, "monthly", "June", today=TODAY)

    assert paycheck.frequency is PaycheckFrequency.MONTHLY
    assert paycheck.description == "June"
    allocations = _allocations_by_name(session, paycheck.id)
    assert {name: a.budgeted_amount for name, a in allocations.items()} == {
        "Rent": 500.0,
        "Food": 300.0,
        "Fun": 200.0,
    }
    assert allocations["Rent"].category_color == "#EF4444"
    assert allocations["Food"].percentage == 30.0


def test_detail_orders_allocations_by_percentage(session, budget_categories):
    paycheck = create_paycheck(session, USER, 1000, TODAY, "weekly", today=TODAY)

    detail = get_paycheck_detail(session, USER, paycheck.id)

    assert [a.category_name for a in detail.allocations] == ["Rent", "Food", "Fun"]
    assert detail.allocated_amount == 1000.0
    assert detail.unbudgeted_amount == 0.0


def test_rounding_drift_stays_within_a_cent_per_allocation(session):
    for name, percentage in (("A", 33), ("B", 33), ("C", 34)):
        add_category(session, USER, name, percentage)

    paycheck = create_paycheck(session, USER, "999.99", TODAY, "monthly", today=TODAY)
    amounts = sorted(Decimal(allocation.budgeted_amount) for allocation in paycheck.allocations)
    detail = get_paycheck_detail(session, USER, paycheck.id)

    assert amounts == [Decimal("330.00"), Decimal("330.00"), Decimal("340.00")]
    assert abs(sum(amounts) - Decimal("999.99")) <= Decimal("0.02")
    assert detail.allocated_amount == 1000.0
    assert detail.unbudgeted_amount == 0.0


def test_only_active_categories_are_snapshotted(session, budget_categories):
    rent, food, fun = budget_categories
    deactivate_category(session, USER, fun.id)

    paycheck = create_paycheck(session, USER, 1000, TODAY, "monthly", today=TODAY)
    detail = get_paycheck_detail(session, USER, paycheck.id)

    assert [a.category_name for a in detail.allocations] == ["Rent", "Food"]
    assert detail.allocated_amount == 800.0
    assert detail.unbudgeted_amount == 200.0


def test_snapshot_survives_category_changes(session, budget_categories):
    rent, food, fun = budget_categories
    paycheck = create_paycheck(session, USER, 1000, TODAY, "monthly", today=TODAY)

    update_category(session, USER, food.id, name="Groceries", percentage=10, color="#000000")
    deactivate_category(session, USER, fun.id)

    allocations = _allocations_by_name(session, paycheck.id)
    assert set(allocations) == {"Rent", "Food", "Fun"}
    assert allocations["Food"].budgeted_amount == 300.0
    assert allocations["Food"].percentage == 30.0
    assert allocations["Food"].category_color == "#10B981"
    assert allocations["Fun"].budgeted_amount == 200.0


def test_paycheck_without_categories_is_fully_unbudgeted(session):
    paycheck = create_paycheck(session, USER, 500, TODAY, "bi-weekly", today=TODAY)

    detail = get_paycheck_detail(session, USER, paycheck.id)

    assert detail.allocations == []
    assert detail.unbudgeted_amount == 500.0


@pytest.mark.parametrize(
    "amount, paid_on, frequency",
    [
        (0, TODAY, "monthly"),
        (-10, TODAY, "monthly"),
        ("10.001", TODAY, "monthly"),
        (100001, TODAY, "monthly"),
        (1000, TODAY + timedelta(days=1), "monthly"),
        (1000, TODAY, "yearly"),
    ],
)
def test_create_paycheck_rejects_bad_input(session, budget_categories, amount, paid_on, frequency):
    with pytest.raises(ValidationError):
        create_paycheck(session, USER, amount, paid_on, frequency, today=TODAY)

    assert list_paychecks(session, USER) == []
    assert session.scalar(select(func.count(Allocation.id))) == 0


def test_category_change_during_creation_rolls_back(database, monkeypatch):
    with database.session_scope() as session:
        add_category(session, USER, "Rent", 50)
        add_category(session, USER, "Food", 30)

    real_list_categories = paychecks_module.list_categories
    calls = []

    def racing_list_categories(session, user_id, **kwargs):
        calls.append(kwargs)
        categories = real_list_categories(session, user_id, **kwargs)
        return categories if len(calls) == 1 else categories[:1]

    monkeypatch.setattr(paychecks_module, "list_categories", racing_list_categories)

    with pytest.raises(ConflictError):
        with database.session_scope() as session:
            create_paycheck(session, USER, 1000, TODAY, "monthly", today=TODAY)

    with database.session_scope() as session:
        assert session.scalar(select(func.count(Paycheck.id))) == 0
        assert session.scalar(select(func.count(Allocation.id))) == 0


def test_delete_paycheck_removes_allocations(session, budget_categories):
    kept = create_paycheck(session, USER, 1000, TODAY - timedelta(days=14), "bi-weekly", today=TODAY)
    doomed = create_paycheck(session, USER, 1000, TODAY, "bi-weekly", today=TODAY)

    delete_paycheck(session, USER, doomed.id)

    remaining = session.scalars(select(Allocation.paycheck_id)).all()
    assert set(remaining) == {kept.id}
    with pytest.raises(NotFoundError):
        get_paycheck_detail(session, USER, doomed.id)


def test_delete_all_paycheck_data_keeps_categories_and_transactions(session, budget_categories):
    rent, food, fun = budget_categories
    create_paycheck(session, USER, 1000, TODAY - timedelta(days=7), "weekly", today=TODAY)
    create_paycheck(session, USER, 1000, TODAY, "weekly", today=TODAY)
    record_transaction(session, USER, food.id, 20, TODAY, today=TODAY)

    result = delete_all_paycheck_data(session, USER)

    assert result.deleted_paychecks == 2
    assert result.deleted_allocations == 6
    assert list_paychecks(session, USER) == []
    assert session.scalar(select(func.count(Allocation.id))) == 0
    session.refresh(food)
    assert food.is_active


def test_update_paycheck_changes_date_and_description_only(session, budget_categories):
    paycheck = create_paycheck(session, USER, 1000, TODAY, "monthly", "old", today=TODAY)

    updated = update_paycheck(
        session, USER, paycheck.id, date=date(2024, 6, 1), description="  ", today=TODAY
    )

    assert updated.date == date(2024, 6, 1)
    assert updated.description is None
    assert Decimal(updated.amount) == Decimal("1000.00")

    with pytest.raises(ValidationError):
        update_paycheck(session, USER, paycheck.id, date=TODAY + timedelta(days=1), today=TODAY)


def test_list_paychecks_newest_first(session):
    for day in (1, 15, 8):
        create_paycheck(session, USER, 100, date(2024, 6, day), "weekly", today=TODAY)

    assert [p.date.day for p in list_paychecks(session, USER)] == [15, 8, 1]
    assert len(list_paychecks(session, USER, limit=2)) == 2


def test_spend_is_attributed_to_the_paycheck_period(session, budget_categories):
    rent, food, fun = budget_categories
    first = create_paycheck(session, USER, 1000, date(2024, 6, 1), "bi-weekly", today=TODAY)
    second = create_paycheck(session, USER, 1000, date(2024, 6, 10), "bi-weekly", today=TODAY)
    record_transaction(session, USER, food.id, 40, date(2024, 6, 9), today=TODAY)
    record_transaction(session, USER, food.id, "12.50", date(2024, 6, 10), today=TODAY)
    record_transaction(session, USER, food.id, 5, date(2024, 5, 31), today=TODAY)

    first_food = _allocations_by_name(session, first.id)["Food"]
    second_food = _allocations_by_name(session, second.id)["Food"]

    assert first_food.spent_amount == 40.0
    assert first_food.remaining_amount == 260.0
    assert second_food.spent_amount == 12.5
    assert get_paycheck_detail(session, USER, second.id).total_spent == 12.5
