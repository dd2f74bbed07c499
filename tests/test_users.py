from types import SimpleNamespace

import pytest

from budgetbud.crud import get_profile, list_categories, list_paychecks
from budgetbud.errors import NotAuthenticatedError, NotFoundError, ValidationError
from budgetbud.services import (
    add_category,
    change_pin,
    create_paycheck,
    create_profile,
    hash_pin,
    list_transactions,
    record_transaction,
    require_user_id,
    reset_user_data,
    update_profile,
    verify_pin,
)
from tests.conftest import OTHER_USER, TODAY, USER


def _context(headers):
    return SimpleNamespace(request_context=SimpleNamespace(request=SimpleNamespace(headers=headers)))


def test_hash_pin_is_sha256_hex():
    assert hash_pin("123456") == "8d969eef6ecad3c29a3a629280e686cf0c3f5d5a86aff3ca12020c923adc6c92"


def test_verify_pin_returns_owner(session):
    create_profile(session, USER, "123456")
    create_profile(session, OTHER_USER, "654321")

    assert verify_pin(session, "654321") == OTHER_USER
    assert verify_pin(session, "123456", USER) == USER


@pytest.mark.parametrize(
    "pin, error",
    [("000000", NotAuthenticatedError), ("12345", ValidationError), ("abcdef", ValidationError)],
)
def test_verify_pin_rejects(session, pin, error):
    create_profile(session, USER, "123456")

    with pytest.raises(error):
        verify_pin(session, pin)


def test_create_profile_twice(session):
    create_profile(session, USER, "123456")

    with pytest.raises(ValidationError):
        create_profile(session, USER, "111111")


def test_change_pin(session):
    create_profile(session, USER, "123456")

    with pytest.raises(NotAuthenticatedError):
        change_pin(session, USER, "999999", "111111")
    with pytest.raises(ValidationError):
        change_pin(session, USER, "123456", "123456")
    with pytest.raises(NotFoundError):
        change_pin(session, OTHER_USER, "123456", "111111")

    change_pin(session, USER, "123456", "111111")

    assert verify_pin(session, "111111") == USER
    with pytest.raises(NotAuthenticatedError):
        verify_pin(session, "123456")


def test_update_profile(session):
    create_profile(session, USER, "123456")

    profile = update_profile(session, USER, display_name=" Sam ", theme="dark")

    assert profile.display_name == "Sam"
    assert profile.theme == "dark"
    with pytest.raises(ValidationError):
        update_profile(session, USER, theme="neon")


def test_reset_user_data_keeps_pin_and_other_users(session, budget_categories):
    rent, food, fun = budget_categories
    create_profile(session, USER, "123456", display_name="Sam")
    update_profile(session, USER, theme="dark")
    create_paycheck(session, USER, 1000, TODAY, "monthly", today=TODAY)
    record_transaction(session, USER, food.id, 10, TODAY, today=TODAY)
    create_profile(session, OTHER_USER, "654321")
    add_category(session, OTHER_USER, "Rent", 40)

    reset_user_data(session, USER)

    assert list_categories(session, USER, active_only=False) == []
    assert list_paychecks(session, USER) == []
    assert list_transactions(session, USER) == []
    profile = get_profile(session, USER)
    assert profile.display_name is None
    assert profile.theme == "system"
    assert verify_pin(session, "123456") == USER
    assert len(list_categories(session, OTHER_USER)) == 1


def test_require_user_id_reads_header():
    assert require_user_id(_context({"x-budgetbud-user-id": " user-1 "})) == "user-1"


@pytest.mark.parametrize(
    "ctx",
    [
        None,
        SimpleNamespace(request_context=SimpleNamespace(request=None)),
        _context({}),
        _context({"x-budgetbud-user-id": "   "}),
    ],
)
def test_require_user_id_without_identity(ctx):
    with pytest.raises(NotAuthenticatedError):
        require_user_id(ctx)


def test_shared_pin_without_user_id_warns(session, caplog):
    create_profile(session, USER, "123456")
    create_profile(session, OTHER_USER, "123456")

    with caplog.at_level("WARNING", logger="budgetbud.services.users"):
        assert verify_pin(session, "123456") == USER

    assert "matches 2 profiles" in caplog.text
    assert verify_pin(session, "123456", OTHER_USER) == OTHER_USER
