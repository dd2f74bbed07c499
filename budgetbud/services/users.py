"""User identity, PIN authentication and profile helpers."""
from __future__ import annotations

import hashlib
import hmac
import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from ..config import DEFAULT_THEME, RESET_THEME, USER_ID_HEADER
from ..crud import (
    delete_user_categories,
    delete_user_paychecks,
    delete_user_transactions,
    find_profiles_by_pin_hash,
    get_profile,
)
from ..errors import NotAuthenticatedError, NotFoundError, ValidationError
from ..events import record_change
from ..models import Profile
from ..schemas import PinInput, ProfileUpdate, validate_payload

if TYPE_CHECKING:  # pragma: no cover
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)


def require_user_id(ctx: "Context | None") -> str:
    """Extract the user id from the request context."""

    if ctx is None:
        raise NotAuthenticatedError("Missing request context; cannot identify the user.")

    try:
        request_context = ctx.request_context
    except ValueError as exc:  # noqa: TRY003
        raise NotAuthenticatedError("Request context unavailable; cannot identify the user.") from exc

    request = getattr(request_context, "request", None)
    if request is None:
        raise NotAuthenticatedError("No request information; user identifier missing.")

    header_value = request.headers.get(USER_ID_HEADER)
    if not header_value:
        raise NotAuthenticatedError(f"Request is missing the {USER_ID_HEADER} header.")

    user_id = header_value.strip()
    if not user_id:
        raise NotAuthenticatedError(f"Request carries an empty {USER_ID_HEADER} header.")

    return user_id


def hash_pin(pin: str) -> str:
    """SHA-256 hex digest of the PIN."""

    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def _validated_pin(pin: str) -> str:
    return validate_payload(PinInput, {"pin": pin}).pin


def create_profile(
    session: Session, user_id: str, pin: str, display_name: str | None = None
) -> Profile:
    """Create the profile holding the user's PIN."""

    pin = _validated_pin(pin)
    if get_profile(session, user_id) is not None:
        raise ValidationError(f"Profile already exists: {user_id}")

    profile = Profile(
        id=user_id,
        pin_hash=hash_pin(pin),
        display_name=display_name,
        theme=DEFAULT_THEME,
    )
    session.add(profile)
    session.flush()
    session.refresh(profile)
    logger.info("Profile created for user %s", user_id)
    return profile


def verify_pin(session: Session, pin: str, user_id: str | None = None) -> str:
    """Return the id of the user the PIN belongs to."""

    pin = _validated_pin(pin)
    profiles = find_profiles_by_pin_hash(session, hash_pin(pin), user_id)
    if not profiles:
        logger.warning("PIN verification failed%s", f" for user {user_id}" if user_id else "")
        raise NotAuthenticatedError("Invalid PIN")
    if len(profiles) > 1:
        logger.warning(
            "PIN matches %d profiles; using the oldest, %s. Pass user_id to disambiguate.",
            len(profiles),
            profiles[0].id,
        )
    return profiles[0].id


def change_pin(session: Session, user_id: str, old_pin: str, new_pin: str) -> None:
    """Replace the user's PIN after checking the current one."""

    old_pin = _validated_pin(old_pin)
    new_pin = _validated_pin(new_pin)
    if old_pin == new_pin:
        raise ValidationError("New PIN must be different from old PIN")

    profile = get_profile(session, user_id)
    if profile is None:
        raise NotFoundError(f"Profile not found: {user_id}")
    if not hmac.compare_digest(profile.pin_hash, hash_pin(old_pin)):
        raise NotAuthenticatedError("Current PIN is incorrect")

    profile.pin_hash = hash_pin(new_pin)
    session.add(profile)
    session.flush()
    logger.info("PIN changed for user %s", user_id)


def update_profile(
    session: Session,
    user_id: str,
    *,
    display_name: str | None = None,
    theme: str | None = None,
) -> Profile:
    patch = validate_payload(ProfileUpdate, {"display_name": display_name, "theme": theme})
    profile = get_profile(session, user_id)
    if profile is None:
        raise NotFoundError(f"Profile not found: {user_id}")
    if patch.display_name is not None:
        profile.display_name = patch.display_name.strip() or None
    if patch.theme is not None:
        profile.theme = patch.theme
    session.add(profile)
    session.flush()
    record_change(session, "profiles", "update", user_id, user_id)
    return profile


def reset_user_data(session: Session, user_id: str) -> None:
    """Delete all budgeting data of the user and reset the profile; the PIN is kept."""

    transactions = delete_user_transactions(session, user_id)
    paychecks = delete_user_paychecks(session, user_id)
    categories = delete_user_categories(session, user_id)

    profile = get_profile(session, user_id)
    if profile is not None:
        profile.display_name = None
        profile.theme = RESET_THEME
        session.add(profile)
    session.flush()
    session.expire_all()

    for table in ("transactions", "paychecks", "categories"):
        record_change(session, table, "delete", user_id)
    logger.info(
        "Reset data for user %s: %d transactions, %d paychecks, %d categories",
        user_id,
        transactions,
        paychecks,
        categories,
    )
