"""Category store: percentage-weighted buckets whose active total stays within 100%."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from ..config import CATEGORY_COLOR_PALETTE, DEFAULT_CATEGORY_COLOR, MAX_TOTAL_PERCENTAGE
from ..crud import count_category_references, get_category_by_id, list_categories
from ..errors import NotFoundError, ValidationError
from ..events import record_change
from ..models import Category
from ..schemas import AllocationSummary, CategoryCreate, CategoryUpdate, validate_payload

logger = logging.getLogger(__name__)


def total_percentage(categories: Iterable[Category]) -> Decimal:
    """Sum the percentages of the active categories in ``categories``."""

    return sum(
        (Decimal(category.percentage) for category in categories if category.is_active),
        Decimal("0"),
    )


def allocation_summary(session: Session, user_id: str) -> AllocationSummary:
    """Compute total and unallocated percentage from the current active categories."""

    categories = list_categories(session, user_id)
    total = total_percentage(categories)
    return AllocationSummary(
        total_percentage=float(total),
        unallocated_percentage=float(max(Decimal("0"), MAX_TOTAL_PERCENTAGE - total)),
        category_count=len(categories),
    )


def next_palette_color(categories: Iterable[Category]) -> str:
    """First palette color not already used by an active category."""

    used = {category.color.upper() for category in categories if category.is_active}
    for color in CATEGORY_COLOR_PALETTE:
        if color not in used:
            return color
    return DEFAULT_CATEGORY_COLOR


def _ensure_within_budget(total: Decimal) -> None:
    if total > MAX_TOTAL_PERCENTAGE:
        raise ValidationError(
            f"Total allocation would be {total}%. Must not exceed {MAX_TOTAL_PERCENTAGE}%."
        )


def require_category(session: Session, category_id: int, user_id: str) -> Category:
    category = get_category_by_id(session, category_id, user_id)
    if category is None:
        raise NotFoundError(f"Category not found: {category_id}")
    return category


def add_category(
    session: Session,
    user_id: str,
    name: str,
    percentage: Decimal | float | int | str,
    color: str | None = None,
) -> Category:
    """Create a category, rejecting it when the active total would pass 100%."""

    active = list_categories(session, user_id, for_update=True)
    payload = validate_payload(
        CategoryCreate,
        {
            "name": name,
            "percentage": percentage,
            "color": color if color is not None else next_palette_color(active),
        },
    )
    _ensure_within_budget(total_percentage(active) + payload.percentage)

    category = Category(
        user_id=user_id,
        name=payload.name,
        percentage=payload.percentage,
        color=payload.color,
        is_active=True,
    )
    session.add(category)
    session.flush()
    session.refresh(category)
    record_change(session, "categories", "insert", user_id, category.id)
    logger.info("Category %s created for user %s (%s%%)", category.id, user_id, category.percentage)
    return category


def update_category(
    session: Session,
    user_id: str,
    category_id: int,
    *,
    name: str | None = None,
    percentage: Decimal | float | int | str | None = None,
    color: str | None = None,
) -> Category:
    """Patch a category; a new percentage replaces the old one in the total check."""

    values = {
        key: value
        for key, value in {"name": name, "percentage": percentage, "color": color}.items()
        if value is not None
    }
    patch = validate_payload(CategoryUpdate, values)

    active = list_categories(session, user_id, for_update=True)
    category = require_category(session, category_id, user_id)
    if not category.is_active:
        raise ValidationError(f"Category {category_id} is inactive and cannot be edited")

    if patch.percentage is not None:
        others = [item for item in active if item.id != category.id]
        _ensure_within_budget(total_percentage(others) + patch.percentage)
        category.percentage = patch.percentage
    if patch.name is not None:
        category.name = patch.name
    if patch.color is not None:
        category.color = patch.color

    session.add(category)
    session.flush()
    session.refresh(category)
    record_change(session, "categories", "update", user_id, category.id)
    logger.info("Category %s updated for user %s", category.id, user_id)
    return category


def deactivate_category(session: Session, user_id: str, category_id: int) -> Category:
    """Mark a category inactive; allocations keep their own name/color snapshot."""

    category = require_category(session, category_id, user_id)
    if category.is_active:
        category.is_active = False
        session.add(category)
        session.flush()
        record_change(session, "categories", "update", user_id, category.id)
        logger.info("Category %s deactivated for user %s", category.id, user_id)
    return category


def remove_category(session: Session, user_id: str, category_id: int) -> bool:
    """Delete an unreferenced category, otherwise deactivate it.

    Returns ``True`` when the row was deleted.
    """

    category = require_category(session, category_id, user_id)
    if count_category_references(session, category.id):
        deactivate_category(session, user_id, category_id)
        return False

    session.delete(category)
    session.flush()
    record_change(session, "categories", "delete", user_id, category_id)
    logger.info("Category %s deleted for user %s", category_id, user_id)
    return True
