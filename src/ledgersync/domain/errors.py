"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class AccountingSetupError(DomainError):
    """The business chart of accounts is missing a required node."""


class InvariantViolation(DomainError):
    """Journal lines computed for a posting do not balance."""


class SyncError(DomainError):
    """Aggregator or commit failure during a sync run.

    Nothing from the failed run is committed, so a retryable error can be
    retried with the same inputs.
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


def account_not_found(account_id: str) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def category_not_found(category_id: str) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_code_not_found(code: str) -> str:
    """Return message for missing category by account code."""
    return f"Category with account code '{code}' not found"


def transaction_not_found(transaction_id: str) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def duplicate_external_id(external_id: str, business_id: str) -> str:
    """Return message for duplicate transaction external ID."""
    return f"Transaction with external_id '{external_id}' already exists for business {business_id}"


def duplicate_account_code(code: str, business_id: str) -> str:
    """Return message for duplicate account code."""
    return f"Account code '{code}' already exists for business {business_id}"


def cash_account_missing(business_id: str) -> str:
    """Return message when no cash/asset category can be resolved."""
    return (
        f"Cash account not found for business {business_id}. "
        "Please ensure the chart of accounts is set up."
    )


def opening_balance_equity_missing(business_id: str) -> str:
    """Return message when the opening balance equity category is missing."""
    return (
        f"Opening Balance Equity account not found for business {business_id}. "
        "Please ensure the chart of accounts is set up."
    )


def code_band_exhausted(account_type: str, high: int) -> str:
    """Return message when no code is left inside a type band."""
    return f"No free account codes left for {account_type} (band ends at {high})"


def code_outside_band(code: str, account_type: str, low: int, high: int) -> str:
    """Return message when an explicit code is outside its type band."""
    return f"Account code '{code}' is outside the {account_type} range {low}-{high}"
