"""Database CRUD operations."""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import Select, asc, delete, desc, func, select
from sqlalchemy.orm import Session, selectinload

from .models import Allocation, Category, Paycheck, Profile, Transaction


def get_profile(session: Session, user_id: str) -> Optional[Profile]:
    """Get the profile of a user."""
    return session.get(Profile, user_id)


def find_profiles_by_pin_hash(
    session: Session, pin_hash: str, user_id: str | None = None
) -> List[Profile]:
    """Get every profile whose PIN hash matches, optionally restricted to one user."""

    stmt = select(Profile).where(Profile.pin_hash == pin_hash)
    if user_id is not None:
        stmt = stmt.where(Profile.id == user_id)
    return list(session.scalars(stmt.order_by(asc(Profile.created_at), asc(Profile.id))).all())


def list_categories(
    session: Session, user_id: str, *, active_only: bool = True, for_update: bool = False
) -> List[Category]:
    """Get the user's categories in creation order."""

    stmt: Select = select(Category).where(Category.user_id == user_id)
    if active_only:
        stmt = stmt.where(Category.is_active.is_(True))
    stmt = stmt.order_by(asc(Category.created_at), asc(Category.id))
    if for_update:
        stmt = stmt.with_for_update()
    return list(session.scalars(stmt).all())


def get_category_by_id(
    session: Session, category_id: int, user_id: str
) -> Optional[Category]:
    """Get a category by ID."""
    stmt = select(Category).where(
        Category.user_id == user_id,
        Category.id == category_id,
    )
    return session.scalars(stmt).first()


def count_category_references(session: Session, category_id: int) -> int:
    """Count the allocations and transactions pointing at a category."""

    allocations = session.execute(
        select(func.count(Allocation.id)).where(Allocation.category_id == category_id)
    ).scalar_one()
    transactions = session.execute(
        select(func.count(Transaction.id)).where(Transaction.category_id == category_id)
    ).scalar_one()
    return int(allocations) + int(transactions)


def list_paychecks(
    session: Session, user_id: str, limit: int | None = None
) -> List[Paycheck]:
    """Get the user's paychecks, newest first."""

    stmt: Select = (
        select(Paycheck)
        .where(Paycheck.user_id == user_id)
        .order_by(desc(Paycheck.date), desc(Paycheck.id))
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt).all())


def get_paycheck_by_id(
    session: Session, paycheck_id: int, user_id: str
) -> Optional[Paycheck]:
    """Get a paycheck with its allocations loaded."""

    stmt = (
        select(Paycheck)
        .options(selectinload(Paycheck.allocations))
        .where(Paycheck.user_id == user_id, Paycheck.id == paycheck_id)
    )
    return session.scalars(stmt).first()


def get_latest_paycheck(session: Session, user_id: str) -> Optional[Paycheck]:
    """Get the most recent paycheck by date."""

    paychecks = list_paychecks(session, user_id, limit=1)
    return paychecks[0] if paychecks else None


def get_next_paycheck_date(
    session: Session, paycheck: Paycheck
) -> Optional[date]:
    """Get the date of the paycheck that follows ``paycheck``, if any.

    Paychecks on the same day are ordered by creation, so a later one on the
    same date closes the earlier one's period.
    """

    later_same_day = (
        (Paycheck.date == paycheck.date) & (Paycheck.id > paycheck.id)
    )
    stmt = (
        select(Paycheck.date)
        .where(
            Paycheck.user_id == paycheck.user_id,
            (Paycheck.date > paycheck.date) | later_same_day,
        )
        .order_by(asc(Paycheck.date), asc(Paycheck.id))
        .limit(1)
    )
    return session.execute(stmt).scalar_one_or_none()


def list_user_allocations(session: Session, user_id: str) -> List[Allocation]:
    """Get every allocation of the user's paychecks, oldest paycheck first."""

    stmt = (
        select(Allocation)
        .join(Paycheck, Allocation.paycheck_id == Paycheck.id)
        .where(Paycheck.user_id == user_id)
        .order_by(asc(Paycheck.date), asc(Paycheck.id), asc(Allocation.id))
    )
    return list(session.scalars(stmt).all())


def count_user_allocations(session: Session, user_id: str) -> int:
    stmt = (
        select(func.count(Allocation.id))
        .join(Paycheck, Allocation.paycheck_id == Paycheck.id)
        .where(Paycheck.user_id == user_id)
    )
    return int(session.execute(stmt).scalar_one())


def delete_user_paychecks(session: Session, user_id: str) -> int:
    """Delete every paycheck (and, through the cascade, allocation) of a user."""

    paycheck_ids = list(
        session.scalars(select(Paycheck.id).where(Paycheck.user_id == user_id)).all()
    )
    if not paycheck_ids:
        return 0
    session.execute(delete(Allocation).where(Allocation.paycheck_id.in_(paycheck_ids)))
    session.execute(delete(Paycheck).where(Paycheck.id.in_(paycheck_ids)))
    return len(paycheck_ids)


def delete_user_transactions(session: Session, user_id: str) -> int:
    result = session.execute(delete(Transaction).where(Transaction.user_id == user_id))
    return int(result.rowcount or 0)


def delete_user_categories(session: Session, user_id: str) -> int:
    result = session.execute(delete(Category).where(Category.user_id == user_id))
    return int(result.rowcount or 0)


def list_transactions(
    session: Session, user_id: str, limit: int | None = None
) -> List[Transaction]:
    """Get the user's transactions, newest first."""

    stmt: Select = (
        select(Transaction)
        .options(selectinload(Transaction.category))
        .where(Transaction.user_id == user_id)
        .order_by(desc(Transaction.date), desc(Transaction.created_at), desc(Transaction.id))
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt).all())


def get_transaction_by_id(
    session: Session, transaction_id: int, user_id: str
) -> Optional[Transaction]:
    stmt = select(Transaction).where(
        Transaction.user_id == user_id,
        Transaction.id == transaction_id,
    )
    return session.scalars(stmt).first()


def get_spent_by_category(
    session: Session,
    user_id: str,
    category_ids: Iterable[int] | None = None,
    start: date | None = None,
    end: date | None = None,
) -> dict[int, Decimal]:
    """Sum transaction amounts per category for dates in ``[start, end)``."""

    stmt: Select = (
        select(
            Transaction.category_id,
            func.coalesce(func.sum(Transaction.amount), 0).label("total_amount"),
        )
        .where(Transaction.user_id == user_id)
        .group_by(Transaction.category_id)
    )
    if category_ids is not None:
        category_id_list = list(category_ids)
        if not category_id_list:
            return {}
        stmt = stmt.where(Transaction.category_id.in_(category_id_list))
    if start is not None:
        stmt = stmt.where(Transaction.date >= start)
    if end is not None:
        stmt = stmt.where(Transaction.date < end)

    return {
        row.category_id: Decimal(str(row.total_amount or 0))
        for row in session.execute(stmt)
    }


def get_budgeted_by_category_id(
    session: Session, user_id: str, category_ids: Iterable[int]
) -> dict[int, Decimal]:
    """Sum the budgeted amounts of every allocation per source category."""

    category_id_list = list(category_ids)
    if not category_id_list:
        return {}
    stmt = (
        select(
            Allocation.category_id,
            func.coalesce(func.sum(Allocation.budgeted_amount), 0).label("total_amount"),
        )
        .join(Paycheck, Allocation.paycheck_id == Paycheck.id)
        .where(
            Paycheck.user_id == user_id,
            Allocation.category_id.in_(category_id_list),
        )
        .group_by(Allocation.category_id)
    )
    return {
        row.category_id: Decimal(str(row.total_amount or 0))
        for row in session.execute(stmt)
    }
