"""Budget operations used by the MCP server."""

from .categories import (
    add_category,
    allocation_summary,
    deactivate_category,
    remove_category,
    update_category,
)
from .exporting import build_export, export_filename, export_json
from .paychecks import (
    budgeted_amount,
    create_paycheck,
    delete_all_paycheck_data,
    delete_paycheck,
    get_paycheck_detail,
    list_paychecks,
    update_paycheck,
)
from .spending import (
    delete_transaction,
    get_analytics,
    get_dashboard,
    lifetime_allocations,
    list_transactions,
    record_transaction,
    to_transaction_read,
)
from .users import (
    change_pin,
    create_profile,
    hash_pin,
    require_user_id,
    reset_user_data,
    update_profile,
    verify_pin,
)

__all__ = [
    "add_category",
    "allocation_summary",
    "budgeted_amount",
    "build_export",
    "change_pin",
    "create_paycheck",
    "create_profile",
    "deactivate_category",
    "delete_all_paycheck_data",
    "delete_paycheck",
    "delete_transaction",
    "export_filename",
    "export_json",
    "get_analytics",
    "get_dashboard",
    "get_paycheck_detail",
    "hash_pin",
    "lifetime_allocations",
    "list_paychecks",
    "list_transactions",
    "record_transaction",
    "remove_category",
    "require_user_id",
    "reset_user_data",
    "to_transaction_read",
    "update_category",
    "update_paycheck",
    "update_profile",
    "verify_pin",
]
