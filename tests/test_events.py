import pytest

from budgetbud.events import ChangeEvent, ChangeNotifier
from budgetbud.services import add_category, create_paycheck, delete_paycheck
from tests.conftest import TODAY, USER


def test_changes_are_published_after_commit(database):
    received = []
    database.notifier.subscribe(received.append)

    with database.session_scope() as session:
        category = add_category(session, USER, "Rent", 50)
        assert received == []

    assert received == [ChangeEvent("categories", "insert", USER, category.id)]


def test_rolled_back_changes_are_discarded(database):
    received = []
    database.notifier.subscribe(received.append)

    with pytest.raises(RuntimeError):
        with database.session_scope() as session:
            add_category(session, USER, "Rent", 50)
            raise RuntimeError("boom")

    with database.session_scope() as session:
        paycheck = create_paycheck(session, USER, 100, TODAY, "weekly", today=TODAY)
        delete_paycheck(session, USER, paycheck.id)

    assert [(change.table, change.action) for change in received] == [
        ("paychecks", "insert"),
        ("paychecks", "delete"),
    ]


def test_failing_listener_does_not_stop_others():
    notifier = ChangeNotifier()
    received = []

    def broken(change):
        raise RuntimeError("listener down")

    notifier.subscribe(broken)
    unsubscribe = notifier.subscribe(received.append)
    change = ChangeEvent("transactions", "delete", USER, 7)

    notifier.publish(change)
    unsubscribe()
    notifier.publish(change)

    assert received == [change]
