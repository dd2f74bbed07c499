"""Spend aggregator: transactions and the dashboard/analytics figures derived from them.

No allocation row stores spend. Every figure below is recomputed from the
transactions table on read, so deleting a transaction needs no reversal.
"""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from ..config import ARCHIVED_CATEGORY_COLOR, MAX_TOTAL_PERCENTAGE, RECENT_PAYCHECK_LIMIT
from ..crud import (
    get_budgeted_by_category_id,
    get_latest_paycheck,
    get_spent_by_category,
    get_transaction_by_id,
    list_categories,
    list_paychecks,
    list_transactions as crud_list_transactions,
    list_user_allocations,
)
from ..errors import NotFoundError, ValidationError
from ..events import record_change
from ..models import Transaction
from ..schemas import (
    AnalyticsResult,
    CategoryRead,
    CategorySpending,
    DashboardResult,
    LifetimeAllocation,
    PaycheckRead,
    TransactionCreate,
    TransactionRead,
    validate_payload,
)
from .categories import require_category, total_percentage
from .paychecks import build_paycheck_detail

logger = logging.getLogger(__name__)


def record_transaction(
    session: Session,
    user_id: str,
    category_id: int,
    amount: Decimal | float | int | str,
    date: dt.date,
    description: str | None = None,
    *,
    today: dt.date | None = None,
) -> Transaction:
    """Record an expense against an active category of the user."""

    payload = validate_payload(
        TransactionCreate,
        {
            "category_id": category_id,
            "amount": amount,
            "date": date,
            "description": description,
        },
        today=today,
    )
    category = require_category(session, payload.category_id, user_id)
    if not category.is_active:
        raise ValidationError(f"Category {category.id} is inactive")

    transaction = Transaction(
        user_id=user_id,
        category=category,
        amount=payload.amount,
        date=payload.date,
        description=payload.description,
    )
    session.add(transaction)
    session.flush()
    session.refresh(transaction)
    record_change(session, "transactions", "insert", user_id, transaction.id)
    logger.info(
        "Transaction %s of %s recorded in category %s for user %s",
        transaction.id,
        transaction.amount,
        category.id,
        user_id,
    )
    return transaction


def delete_transaction(session: Session, user_id: str, transaction_id: int) -> None:
    """Delete a transaction; spend figures pick the change up on the next read."""

    transaction = get_transaction_by_id(session, transaction_id, user_id)
    if transaction is None:
        raise NotFoundError(f"Transaction not found: {transaction_id}")
    session.delete(transaction)
    session.flush()
    record_change(session, "transactions", "delete", user_id, transaction_id)
    logger.info("Transaction %s deleted for user %s", transaction_id, user_id)


def to_transaction_read(transaction: Transaction) -> TransactionRead:
    return TransactionRead(
        id=transaction.id,
        user_id=transaction.user_id,
        category_id=transaction.category_id,
        category_name=transaction.category.name,
        amount=transaction.amount,
        date=transaction.date,
        description=transaction.description,
        created_at=transaction.created_at,
    )


def list_transactions(
    session: Session, user_id: str, limit: int | None = None
) -> list[TransactionRead]:
    return [
        to_transaction_read(transaction)
        for transaction in crud_list_transactions(session, user_id, limit=limit)
    ]


def lifetime_allocations(session: Session, user_id: str) -> list[LifetimeAllocation]:
    """Budgeted totals across every paycheck, merged by snapshot category name.

    Category ids churn when a category is deactivated and recreated, so the
    snapshot name is the merge key. Spend is summed per category id and
    credited to the name that category's allocations carry, so renaming a
    category after a paycheck keeps its spend on the same line. The color of
    the most recent allocation wins.
    """

    merged: dict[str, dict[str, object]] = {}
    name_by_category_id: dict[int, str] = {}
    for allocation in list_user_allocations(session, user_id):
        entry = merged.setdefault(
            allocation.category_name,
            {
                "category_id": None,
                "category_color": ARCHIVED_CATEGORY_COLOR,
                "total_amount": Decimal("0"),
            },
        )
        entry["total_amount"] = entry["total_amount"] + Decimal(allocation.budgeted_amount)
        entry["category_color"] = allocation.category_color
        if allocation.category_id is not None:
            entry["category_id"] = allocation.category_id
            name_by_category_id[allocation.category_id] = allocation.category_name

    spent_by_name: dict[str, Decimal] = {}
    spent_by_id = get_spent_by_category(session, user_id, list(name_by_category_id))
    for category_id, spent in spent_by_id.items():
        name = name_by_category_id[category_id]
        spent_by_name[name] = spent_by_name.get(name, Decimal("0")) + spent
    result = [
        LifetimeAllocation(
            category_id=entry["category_id"],
            category_name=name,
            category_color=entry["category_color"],
            total_amount=float(entry["total_amount"]),
            total_spent=float(spent_by_name.get(name, Decimal("0"))),
        )
        for name, entry in merged.items()
    ]
    result.sort(key=lambda item: (-item.total_amount, item.category_name))
    return result


def get_dashboard(session: Session, user_id: str) -> DashboardResult:
    """Read every figure the dashboard shows in one point-in-time pass."""

    categories = list_categories(session, user_id)
    total_allocated = total_percentage(categories)

    latest = get_latest_paycheck(session, user_id)
    latest_detail = build_paycheck_detail(session, latest) if latest is not None else None

    recent = list_paychecks(session, user_id, limit=RECENT_PAYCHECK_LIMIT)
    recent.reverse()

    return DashboardResult(
        categories=[CategoryRead.model_validate(category) for category in categories],
        total_allocated=float(total_allocated),
        unallocated=float(max(Decimal("0"), MAX_TOTAL_PERCENTAGE - total_allocated)),
        total_budget=float(latest.amount) if latest is not None else 0.0,
        has_budget_version=latest is not None,
        latest_paycheck=latest_detail,
        recent_paychecks=[PaycheckRead.model_validate(paycheck) for paycheck in recent],
        lifetime_allocations=lifetime_allocations(session, user_id),
    )


def get_analytics(session: Session, user_id: str) -> AnalyticsResult:
    """Lifetime spent versus budgeted for each active category."""

    categories = list_categories(session, user_id)
    category_ids = [category.id for category in categories]
    spent = get_spent_by_category(session, user_id, category_ids)
    budgeted = get_budgeted_by_category_id(session, user_id, category_ids)

    spending = [
        CategorySpending(
            category_id=category.id,
            category_name=category.name,
            category_color=category.color,
            spent=float(spent.get(category.id, Decimal("0"))),
            budgeted=float(budgeted.get(category.id, Decimal("0"))),
            percentage=float(category.percentage),
        )
        for category in categories
    ]
    spending.sort(key=lambda item: (-item.budgeted, item.category_name))

    return AnalyticsResult(
        spending_by_category=spending,
        total_spent=float(sum((Decimal(str(item.spent)) for item in spending), Decimal("0"))),
        total_budgeted=float(
            sum((Decimal(str(item.budgeted)) for item in spending), Decimal("0"))
        ),
        categories_count=len(spending),
    )
