"""Domain errors raised by budget operations."""


class BudgetError(ValueError):
    """Base class for every error raised by the budget services."""


class ValidationError(BudgetError):
    """Input rejected before any write took place."""


class NotAuthenticatedError(BudgetError):
    """The caller could not be identified."""


class NotFoundError(BudgetError):
    """The requested row does not exist for the caller."""


class ConflictError(BudgetError):
    """A concurrent change invalidated the operation; nothing was committed."""
