"""User data export as a plain JSON document."""
from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal

from sqlalchemy.orm import Session

from ..config import DEFAULT_THEME, EXPORT_VERSION, UNKNOWN_CATEGORY_NAME
from ..crud import get_profile, list_categories, list_paychecks, list_transactions
from ..schemas import (
    ExportAllocation,
    ExportCategory,
    ExportDocument,
    ExportMetadata,
    ExportPaycheck,
    ExportProfile,
    ExportTransaction,
)
from .paychecks import allocation_spending


def build_export(
    session: Session, user_id: str, *, now: dt.datetime | None = None
) -> ExportDocument:
    """Collect the profile, categories, paychecks with allocations and transactions."""

    now = now or dt.datetime.now(dt.timezone.utc)
    profile = get_profile(session, user_id)

    categories = [
        ExportCategory(
            id=category.id,
            name=category.name,
            percentage=float(category.percentage),
            color=category.color,
            is_active=category.is_active,
        )
        for category in list_categories(session, user_id, active_only=False)
    ]

    paychecks: list[ExportPaycheck] = []
    for paycheck in list_paychecks(session, user_id):
        spent_by_category = allocation_spending(session, paycheck)
        paychecks.append(
            ExportPaycheck(
                id=paycheck.id,
                user_id=paycheck.user_id,
                amount=paycheck.amount,
                date=paycheck.date,
                frequency=paycheck.frequency,
                description=paycheck.description,
                created_at=paycheck.created_at,
                updated_at=paycheck.updated_at,
                allocations=[
                    ExportAllocation(
                        category_name=allocation.category_name,
                        budgeted_amount=allocation.budgeted_amount,
                        spent_amount=spent_by_category.get(allocation.category_id, Decimal("0")),
                    )
                    for allocation in paycheck.allocations
                ],
            )
        )

    transactions = [
        ExportTransaction(
            id=transaction.id,
            category_name=(
                transaction.category.name if transaction.category is not None else UNKNOWN_CATEGORY_NAME
            ),
            amount=transaction.amount,
            date=transaction.date,
            description=transaction.description,
        )
        for transaction in list_transactions(session, user_id)
    ]

    return ExportDocument(
        metadata=ExportMetadata(
            export_date=now.isoformat(),
            export_version=EXPORT_VERSION,
            user_id=user_id,
        ),
        profile=ExportProfile(
            display_name=profile.display_name if profile is not None else None,
            theme=profile.theme if profile is not None else DEFAULT_THEME,
        ),
        categories=categories,
        paychecks=paychecks,
        transactions=transactions,
    )


def export_filename(today: dt.date | None = None) -> str:
    return f"budgetbud-data-{(today or dt.date.today()).isoformat()}.json"


def export_json(session: Session, user_id: str, *, now: dt.datetime | None = None) -> str:
    """Serialise :func:`build_export` with the camelCase metadata keys, indented."""

    document = build_export(session, user_id, now=now)
    return json.dumps(document.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)
