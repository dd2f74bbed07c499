"""BudgetBud MCP server."""
from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Literal

from mcp.server.fastmcp import Context, FastMCP
from pydantic import Field as PydanticField, ValidationError as PydanticValidationError

from .config import MCP_HOST, MCP_PORT
from .database import Database
from .errors import BudgetError
from .schemas import (
    AnalyticsResult,
    CategoryListResult,
    CategoryRead,
    CategoryRemovalResult,
    DashboardResult,
    ExportResult,
    OperationResult,
    PaycheckDataDeletion,
    PaycheckDetail,
    PaycheckListResult,
    PinVerificationResult,
    ProfileRead,
    TransactionListResult,
    TransactionRead,
)
from .crud import list_categories as crud_list_categories
from .services import (
    add_category as add_category_service,
    allocation_summary,
    change_pin as change_pin_service,
    create_paycheck as create_paycheck_service,
    deactivate_category as deactivate_category_service,
    delete_all_paycheck_data,
    delete_paycheck as delete_paycheck_service,
    delete_transaction as delete_transaction_service,
    export_filename,
    export_json,
    get_analytics as get_analytics_service,
    get_dashboard as get_dashboard_service,
    get_paycheck_detail,
    list_paychecks as list_paychecks_service,
    list_transactions as list_transactions_service,
    record_transaction as record_transaction_service,
    remove_category as remove_category_service,
    require_user_id,
    reset_user_data,
    to_transaction_read,
    update_category as update_category_service,
    update_paycheck as update_paycheck_service,
    update_profile as update_profile_service,
    verify_pin as verify_pin_service,
)

logger = logging.getLogger(__name__)

Frequency = Literal["weekly", "bi-weekly", "monthly", "quarterly"]


def _failure(action: str, exc: Exception) -> ValueError:
    """Map an unexpected failure to the generic error returned to the caller."""

    if isinstance(exc, PydanticValidationError):
        logger.exception("%s returned malformed data: %s", action, exc)
        return ValueError(f"{action} returned malformed data, please retry.")
    logger.exception("%s failed: %s", action, exc)
    return ValueError(f"{action} failed: {exc}")


def build_server(database: Database) -> FastMCP:
    """Create the MCP server with every budget tool bound to ``database``."""

    mcp = FastMCP("BudgetBud", host=MCP_HOST, port=MCP_PORT)

    @mcp.tool(
        name="verify_pin",
        description="Verify a 6 digit PIN and return the user it belongs to.",
        structured_output=True,
    )
    async def verify_pin(
        pin: Annotated[str, PydanticField(description="6 digit PIN.")],
        user_id: Annotated[
            str | None,
            PydanticField(default=None, description="Restrict the check to this user, optional."),
        ] = None,
    ) -> PinVerificationResult:
        """Verify a PIN."""

        try:
            with database.session_scope() as session:
                found_user_id = verify_pin_service(session, pin, user_id)
            return PinVerificationResult(user_id=found_user_id, message="PIN verified successfully")
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("PIN verification", exc) from exc

    @mcp.tool(
        name="change_pin",
        description="Change the current user's PIN.",
        structured_output=True,
    )
    async def change_pin(
        old_pin: Annotated[str, PydanticField(description="Current 6 digit PIN.")],
        new_pin: Annotated[str, PydanticField(description="New 6 digit PIN.")],
        ctx: Context | None = None,
    ) -> OperationResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                change_pin_service(session, user_id, old_pin, new_pin)
            return OperationResult(message="PIN changed successfully")
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Changing PIN", exc) from exc

    @mcp.tool(
        name="update_profile",
        description="Update the display name or theme of the current user.",
        structured_output=True,
    )
    async def update_profile(
        display_name: Annotated[str | None, PydanticField(default=None)] = None,
        theme: Annotated[
            Literal["auto", "light", "dark", "system"] | None, PydanticField(default=None)
        ] = None,
        ctx: Context | None = None,
    ) -> ProfileRead:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                profile = update_profile_service(
                    session, user_id, display_name=display_name, theme=theme
                )
                return ProfileRead.model_validate(profile)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Updating profile", exc) from exc

    @mcp.tool(
        name="list_categories",
        description="List the active categories with total and unallocated percentage.",
        structured_output=True,
    )
    async def list_categories(ctx: Context | None = None) -> CategoryListResult:
        """List active categories."""

        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                categories = crud_list_categories(session, user_id)
                summary = allocation_summary(session, user_id)
                category_models = [
                    CategoryRead.model_validate(category) for category in categories
                ]
            return CategoryListResult(
                total=len(category_models), categories=category_models, summary=summary
            )
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Listing categories", exc) from exc

    @mcp.tool(
        name="add_category",
        description="Add a spending category. Active percentages may not exceed 100% in total.",
        structured_output=True,
    )
    async def add_category(
        name: Annotated[str, PydanticField(description="Category name, 1 to 50 characters.")],
        percentage: Annotated[
            float, PydanticField(description="Share of each paycheck, 0.1 to 100.")
        ],
        color: Annotated[
            str | None, PydanticField(default=None, description="Hex color such as #3B82F6.")
        ] = None,
        ctx: Context | None = None,
    ) -> CategoryRead:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                category = add_category_service(session, user_id, name, str(percentage), color)
                return CategoryRead.model_validate(category)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Adding category", exc) from exc

    @mcp.tool(
        name="update_category",
        description="Edit the name, percentage or color of an active category.",
        structured_output=True,
    )
    async def update_category(
        category_id: Annotated[int, PydanticField(ge=1, description="Category ID.")],
        name: Annotated[str | None, PydanticField(default=None)] = None,
        percentage: Annotated[float | None, PydanticField(default=None)] = None,
        color: Annotated[str | None, PydanticField(default=None)] = None,
        ctx: Context | None = None,
    ) -> CategoryRead:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                category = update_category_service(
                    session,
                    user_id,
                    category_id,
                    name=name,
                    percentage=str(percentage) if percentage is not None else None,
                    color=color,
                )
                return CategoryRead.model_validate(category)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Updating category", exc) from exc

    @mcp.tool(
        name="deactivate_category",
        description="Deactivate a category; past paychecks keep showing it.",
        structured_output=True,
    )
    async def deactivate_category(
        category_id: Annotated[int, PydanticField(ge=1, description="Category ID.")],
        ctx: Context | None = None,
    ) -> CategoryRead:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                category = deactivate_category_service(session, user_id, category_id)
                return CategoryRead.model_validate(category)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Deactivating category", exc) from exc

    @mcp.tool(
        name="remove_category",
        description="Delete a category, or deactivate it when paychecks or transactions use it.",
        structured_output=True,
    )
    async def remove_category(
        category_id: Annotated[int, PydanticField(ge=1, description="Category ID.")],
        ctx: Context | None = None,
    ) -> CategoryRemovalResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                deleted = remove_category_service(session, user_id, category_id)
            message = "Category deleted" if deleted else "Category is in use and was deactivated"
            return CategoryRemovalResult(category_id=category_id, deleted=deleted, message=message)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Removing category", exc) from exc

    @mcp.tool(
        name="create_paycheck",
        description="Log a paycheck and snapshot the current category percentages into allocations.",
        structured_output=True,
    )
    async def create_paycheck(
        amount: Annotated[float, PydanticField(description="Paycheck amount, must be positive.")],
        date: Annotated[date, PydanticField(description="Pay date, YYYY-MM-DD, not in the future.")],
        frequency: Annotated[Frequency, PydanticField(description="Pay frequency.")],
        description: Annotated[str | None, PydanticField(default=None)] = None,
        ctx: Context | None = None,
    ) -> PaycheckDetail:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                paycheck = create_paycheck_service(
                    session, user_id, str(amount), date, frequency, description
                )
                return get_paycheck_detail(session, user_id, paycheck.id)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Creating paycheck", exc) from exc

    @mcp.tool(
        name="update_paycheck",
        description="Edit a paycheck's date or description. Amount and frequency are fixed.",
        structured_output=True,
    )
    async def update_paycheck(
        paycheck_id: Annotated[int, PydanticField(ge=1, description="Paycheck ID.")],
        date: Annotated[date | None, PydanticField(default=None)] = None,
        description: Annotated[str | None, PydanticField(default=None)] = None,
        ctx: Context | None = None,
    ) -> PaycheckDetail:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                update_paycheck_service(
                    session, user_id, paycheck_id, date=date, description=description
                )
                return get_paycheck_detail(session, user_id, paycheck_id)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Updating paycheck", exc) from exc

    @mcp.tool(
        name="delete_paycheck",
        description="Delete a paycheck and all of its allocations. This cannot be undone.",
        structured_output=True,
    )
    async def delete_paycheck(
        paycheck_id: Annotated[int, PydanticField(ge=1, description="Paycheck ID.")],
        ctx: Context | None = None,
    ) -> OperationResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                delete_paycheck_service(session, user_id, paycheck_id)
            return OperationResult(message=f"Paycheck {paycheck_id} deleted")
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Deleting paycheck", exc) from exc

    @mcp.tool(
        name="get_paycheck",
        description="Get a paycheck with its allocations, spent and remaining amounts.",
        structured_output=True,
    )
    async def get_paycheck(
        paycheck_id: Annotated[int, PydanticField(ge=1, description="Paycheck ID.")],
        ctx: Context | None = None,
    ) -> PaycheckDetail:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                return get_paycheck_detail(session, user_id, paycheck_id)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Loading paycheck", exc) from exc

    @mcp.tool(
        name="list_paychecks",
        description="List paychecks, newest first.",
        structured_output=True,
    )
    async def list_paychecks(
        limit: Annotated[int | None, PydanticField(default=None, ge=1)] = None,
        ctx: Context | None = None,
    ) -> PaycheckListResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                paychecks = list_paychecks_service(session, user_id, limit=limit)
            return PaycheckListResult(total=len(paychecks), paychecks=paychecks)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Listing paychecks", exc) from exc

    @mcp.tool(
        name="record_transaction",
        description="Record an expense against an active category.",
        structured_output=True,
    )
    async def record_transaction(
        category_id: Annotated[int, PydanticField(ge=1, description="Category ID.")],
        amount: Annotated[float, PydanticField(description="Amount spent, must be positive.")],
        date: Annotated[date, PydanticField(description="Expense date, YYYY-MM-DD, not in the future.")],
        description: Annotated[str | None, PydanticField(default=None)] = None,
        ctx: Context | None = None,
    ) -> TransactionRead:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                transaction = record_transaction_service(
                    session, user_id, category_id, str(amount), date, description
                )
                return to_transaction_read(transaction)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Recording transaction", exc) from exc

    @mcp.tool(
        name="delete_transaction",
        description="Delete a transaction.",
        structured_output=True,
    )
    async def delete_transaction(
        transaction_id: Annotated[int, PydanticField(ge=1, description="Transaction ID.")],
        ctx: Context | None = None,
    ) -> OperationResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                delete_transaction_service(session, user_id, transaction_id)
            return OperationResult(message=f"Transaction {transaction_id} deleted")
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Deleting transaction", exc) from exc

    @mcp.tool(
        name="list_transactions",
        description="List transactions, newest first.",
        structured_output=True,
    )
    async def list_transactions(
        limit: Annotated[int | None, PydanticField(default=None, ge=1)] = None,
        ctx: Context | None = None,
    ) -> TransactionListResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                transactions = list_transactions_service(session, user_id, limit=limit)
            return TransactionListResult(total=len(transactions), transactions=transactions)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Listing transactions", exc) from exc

    @mcp.tool(
        name="get_dashboard",
        description=(
            "Get categories, allocated percentage, the latest paycheck breakdown, "
            "recent paychecks and lifetime allocations."
        ),
        structured_output=True,
    )
    async def get_dashboard(ctx: Context | None = None) -> DashboardResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                return get_dashboard_service(session, user_id)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Loading dashboard", exc) from exc

    @mcp.tool(
        name="get_analytics",
        description="Get lifetime spent versus budgeted for each active category.",
        structured_output=True,
    )
    async def get_analytics(ctx: Context | None = None) -> AnalyticsResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                return get_analytics_service(session, user_id)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Loading analytics", exc) from exc

    @mcp.tool(
        name="export_data",
        description="Export profile, categories, paychecks and transactions as JSON.",
        structured_output=True,
    )
    async def export_data(ctx: Context | None = None) -> ExportResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                content = export_json(session, user_id)
            return ExportResult(filename=export_filename(), content=content)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Exporting data", exc) from exc

    @mcp.tool(
        name="delete_paycheck_data",
        description="Delete every paycheck and allocation; categories and transactions stay.",
        structured_output=True,
    )
    async def delete_paycheck_data(ctx: Context | None = None) -> PaycheckDataDeletion:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                return delete_all_paycheck_data(session, user_id)
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Deleting paycheck data", exc) from exc

    @mcp.tool(
        name="reset_data",
        description="Delete all budgeting data and reset the profile. The PIN is kept.",
        structured_output=True,
    )
    async def reset_data(ctx: Context | None = None) -> OperationResult:
        user_id = require_user_id(ctx)
        try:
            with database.session_scope() as session:
                reset_user_data(session, user_id)
            return OperationResult(message="All user data has been reset successfully")
        except BudgetError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _failure("Resetting data", exc) from exc

    return mcp


def main() -> None:
    """Entry point."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    database = Database()
    try:
        database.init_schema()
        server = build_server(database)

        logger.info("BudgetBud MCP server started")
        server.run(transport="streamable-http")
    except KeyboardInterrupt:
        logger.info("Interrupt received, shutting down")
    except Exception as exc:  # noqa: BLE001
        logger.exception("Server error: %s", exc)
        raise
    finally:
        database.dispose()
        logger.info("BudgetBud MCP server stopped")


if __name__ == "__main__":
    main()
