import asyncio

import pytest
from mcp.server.fastmcp.exceptions import ToolError
from sqlalchemy import func, select

from budgetbud.errors import NotAuthenticatedError
from budgetbud.mcp_server import _failure, build_server
from budgetbud.models import Category, Paycheck
from budgetbud.services import require_user_id
from tests.conftest import TODAY


def _row_count(database, model):
    with database.session_scope() as session:
        return session.scalar(select(func.count(model.id)))


def test_server_registers_budget_tools(database):
    server = build_server(database)

    names = {tool.name for tool in asyncio.run(server.list_tools())}

    assert {
        "verify_pin",
        "change_pin",
        "add_category",
        "remove_category",
        "create_paycheck",
        "get_paycheck",
        "record_transaction",
        "delete_transaction",
        "get_dashboard",
        "get_analytics",
        "export_data",
        "delete_paycheck_data",
        "reset_data",
    } <= names


def test_require_user_id_without_context():
    with pytest.raises(NotAuthenticatedError):
        require_user_id(None)


@pytest.mark.parametrize(
    "tool, arguments, model",
    [
        ("add_category", {"name": "Rent", "percentage": 50}, Category),
        (
            "create_paycheck",
            {"amount": 1000, "date": TODAY.isoformat(), "frequency": "monthly"},
            Paycheck,
        ),
    ],
)
def test_tool_without_caller_identity_writes_nothing(database, tool, arguments, model):
    server = build_server(database)

    with pytest.raises(ToolError) as excinfo:
        asyncio.run(server.call_tool(tool, arguments))

    assert isinstance(excinfo.value.__cause__, NotAuthenticatedError)
    assert _row_count(database, model) == 0


def test_failure_wraps_unexpected_errors():
    error = _failure("Create paycheck", RuntimeError("disk full"))

    assert isinstance(error, ValueError)
    assert str(error) == "Create paycheck failed: disk full"
