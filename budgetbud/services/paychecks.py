"""Paycheck snapshot builder.

Creating a paycheck freezes the user's active categories into allocation
rows. Each allocation stores its own copy of the category name, color and
percentage together with ``budgeted_amount``; none of these change after
creation, whatever later happens to the category.
"""
from __future__ import annotations

import datetime as dt
import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from ..crud import (
    count_user_allocations,
    delete_user_paychecks,
    get_next_paycheck_date,
    get_paycheck_by_id,
    get_spent_by_category,
    list_categories,
    list_paychecks as crud_list_paychecks,
)
from ..errors import ConflictError, NotFoundError
from ..events import record_change
from ..models import Allocation, Category, Paycheck, PaycheckFrequency
from ..schemas import (
    AllocationRead,
    PaycheckCreate,
    PaycheckDataDeletion,
    PaycheckDetail,
    PaycheckRead,
    PaycheckUpdate,
    validate_payload,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def budgeted_amount(amount: Decimal, percentage: Decimal) -> Decimal:
    """``amount * percentage / 100`` rounded half-up to cents."""

    return (Decimal(amount) * Decimal(percentage) / Decimal("100")).quantize(
        CENT, rounding=ROUND_HALF_UP
    )


def _snapshot_key(categories: list[Category]) -> list[tuple[int, Decimal]]:
    return sorted((category.id, Decimal(category.percentage)) for category in categories)


def require_paycheck(session: Session, paycheck_id: int, user_id: str) -> Paycheck:
    paycheck = get_paycheck_by_id(session, paycheck_id, user_id)
    if paycheck is None:
        raise NotFoundError(f"Paycheck not found: {paycheck_id}")
    return paycheck


def create_paycheck(
    session: Session,
    user_id: str,
    amount: Decimal | float | int | str,
    date: dt.date,
    frequency: PaycheckFrequency | str,
    description: str | None = None,
    *,
    today: dt.date | None = None,
) -> Paycheck:
    """Store a paycheck and one allocation per currently active category.

    Runs inside the caller's transaction: if the active category set changes
    between the snapshot read and the final check, ``ConflictError`` is raised
    and the session scope rolls the whole creation back.
    """

    payload = validate_payload(
        PaycheckCreate,
        {
            "amount": amount,
            "date": date,
            "frequency": frequency,
            "description": description,
        },
        today=today,
    )

    categories = list_categories(session, user_id, for_update=True)
    snapshot = _snapshot_key(categories)

    paycheck = Paycheck(
        user_id=user_id,
        amount=payload.amount,
        date=payload.date,
        frequency=payload.frequency,
        description=payload.description,
    )
    for category in categories:
        paycheck.allocations.append(
            Allocation(
                category_id=category.id,
                category_name=category.name,
                category_color=category.color,
                percentage=category.percentage,
                budgeted_amount=budgeted_amount(payload.amount, category.percentage),
            )
        )
    session.add(paycheck)
    session.flush()

    current = list_categories(session, user_id)
    if _snapshot_key(current) != snapshot:
        raise ConflictError(
            "Categories changed while the paycheck was being created; please retry."
        )

    session.refresh(paycheck)
    record_change(session, "paychecks", "insert", user_id, paycheck.id)
    if not categories:
        logger.warning(
            "Paycheck %s for user %s has no active categories; amount is unbudgeted",
            paycheck.id,
            user_id,
        )
    logger.info(
        "Paycheck %s created for user %s with %d allocations",
        paycheck.id,
        user_id,
        len(paycheck.allocations),
    )
    return paycheck


def update_paycheck(
    session: Session,
    user_id: str,
    paycheck_id: int,
    *,
    date: dt.date | None = None,
    description: str | None = None,
    today: dt.date | None = None,
) -> Paycheck:
    """Edit the date or description; amount and frequency stay frozen."""

    patch = validate_payload(
        PaycheckUpdate, {"date": date, "description": description}, today=today
    )
    paycheck = require_paycheck(session, paycheck_id, user_id)
    if patch.date is not None:
        paycheck.date = patch.date
    if description is not None:
        paycheck.description = (patch.description or "").strip() or None
    session.add(paycheck)
    session.flush()
    record_change(session, "paychecks", "update", user_id, paycheck.id)
    return paycheck


def delete_paycheck(session: Session, user_id: str, paycheck_id: int) -> None:
    """Delete a paycheck together with all of its allocations."""

    paycheck = require_paycheck(session, paycheck_id, user_id)
    session.delete(paycheck)
    session.flush()
    record_change(session, "paychecks", "delete", user_id, paycheck_id)
    logger.info("Paycheck %s deleted for user %s", paycheck_id, user_id)


def delete_all_paycheck_data(session: Session, user_id: str) -> PaycheckDataDeletion:
    """Delete every paycheck and allocation of the user; categories and transactions stay."""

    allocation_count = count_user_allocations(session, user_id)
    paycheck_count = delete_user_paychecks(session, user_id)
    session.expire_all()
    if paycheck_count:
        record_change(session, "paychecks", "delete", user_id)
    logger.info(
        "Deleted %d paychecks and %d allocations for user %s",
        paycheck_count,
        allocation_count,
        user_id,
    )
    return PaycheckDataDeletion(
        deleted_paychecks=paycheck_count,
        deleted_allocations=allocation_count,
        message="Paycheck data deleted successfully",
    )


def list_paychecks(
    session: Session, user_id: str, limit: int | None = None
) -> list[PaycheckRead]:
    return [
        PaycheckRead.model_validate(paycheck)
        for paycheck in crud_list_paychecks(session, user_id, limit=limit)
    ]


def allocation_spending(session: Session, paycheck: Paycheck) -> dict[int, Decimal]:
    """Spend per category inside the paycheck's period.

    The period starts on the paycheck date and ends (exclusive) on the date of
    the user's next paycheck; the latest paycheck's period is open-ended.
    """

    category_ids = [
        allocation.category_id
        for allocation in paycheck.allocations
        if allocation.category_id is not None
    ]
    return get_spent_by_category(
        session,
        paycheck.user_id,
        category_ids,
        start=paycheck.date,
        end=get_next_paycheck_date(session, paycheck),
    )


def build_paycheck_detail(session: Session, paycheck: Paycheck) -> PaycheckDetail:
    """Paycheck with allocations ordered by snapshot percentage, spend derived live."""

    spent_by_category = allocation_spending(session, paycheck)
    amount = Decimal(paycheck.amount)

    allocations: list[AllocationRead] = []
    allocated = Decimal("0")
    total_spent = Decimal("0")
    ordered = sorted(
        paycheck.allocations,
        key=lambda allocation: (-Decimal(allocation.percentage), allocation.id),
    )
    for allocation in ordered:
        budget = Decimal(allocation.budgeted_amount)
        spent = (
            spent_by_category.get(allocation.category_id, Decimal("0"))
            if allocation.category_id is not None
            else Decimal("0")
        )
        allocated += budget
        total_spent += spent
        allocations.append(
            AllocationRead(
                allocation_id=allocation.id,
                category_id=allocation.category_id,
                category_name=allocation.category_name,
                category_color=allocation.category_color,
                percentage=float(allocation.percentage),
                budgeted_amount=float(budget),
                spent_amount=float(spent),
                remaining_amount=float(budget - spent),
            )
        )

    base = PaycheckRead.model_validate(paycheck)
    return PaycheckDetail(
        **base.model_dump(),
        allocations=allocations,
        allocated_amount=float(allocated),
        unbudgeted_amount=float(max(Decimal("0"), amount - allocated)),
        total_spent=float(total_spent),
    )


def get_paycheck_detail(session: Session, user_id: str, paycheck_id: int) -> PaycheckDetail:
    return build_paycheck_detail(session, require_paycheck(session, paycheck_id, user_id))
