"""BudgetBud personal budgeting package."""

__all__ = [
    "config",
    "crud",
    "database",
    "errors",
    "events",
    "models",
    "schemas",
]
