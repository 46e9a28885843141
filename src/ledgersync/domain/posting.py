"""Double-entry postings for seeded and corrected account balances.

Every out-of-band change to a tracked balance is booked as one TRANSFER
transaction with two journal lines: one against the account's cash/asset
category and one against Opening Balance Equity. Lines are checked for
balance before anything is written, and each posting runs in one atomic unit.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from ledgersync.database.base import Database
from ledgersync.database.models import new_id
from ledgersync.domain.chart import ACCOUNT_CODES
from ledgersync.domain.entities import Account, Category, TransactionDraft, TransactionType
from ledgersync.domain.errors import (
    AccountingSetupError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
    account_not_found,
    cash_account_missing,
    opening_balance_equity_missing,
)

logger = logging.getLogger("ledgersync.posting")

OPENING_BALANCE_DESCRIPTION = "Opening Balance"
ADJUSTMENT_DESCRIPTION = "Balance Adjustment"
MAX_BALANCE = Decimal("999999999999.99")

_CENT = Decimal("0.01")


class PostingStatus(str, Enum):
    """Outcome of a posting request."""

    CREATED = "created"
    NO_CHANGE = "no_change"
    DUPLICATE_POSTING = "duplicate_posting"


@dataclass(frozen=True)
class PostingResult:
    """Result of a posting request.

    ``transaction_id`` is set when a posting was created, and for a duplicate
    opening balance it points at the posting that already exists.
    """

    status: PostingStatus
    transaction_id: Optional[str] = None
    amount: Decimal = Decimal("0.00")

    @property
    def created(self) -> bool:
        return self.status == PostingStatus.CREATED


def validate_balance(value) -> Decimal:
    """Validate a monetary balance and return it as a Decimal.

    Raises:
        ValidationError: If the value is not a finite number with at most two
            decimal places and a magnitude of at most MAX_BALANCE
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Invalid balance: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid balance: {value!r}") from e

    if not amount.is_finite():
        raise ValidationError(f"Balance must be a finite number, got {value!r}")
    if abs(amount) > MAX_BALANCE:
        raise ValidationError(f"Balance must not exceed {MAX_BALANCE} in magnitude, got {value!r}")
    if amount != amount.quantize(_CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"Balance must have at most two decimal places, got {value!r}")
    return amount.quantize(_CENT)


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def build_posting_lines(
    delta: Decimal,
    cash: Category,
    equity: Category,
    account_name: str,
    label: str,
) -> list[dict]:
    """Build the two journal lines for a signed balance change.

    An increase debits cash and credits equity. A decrease credits cash and
    debits equity.
    """
    amount = abs(delta)
    zero = Decimal("0.00")
    if delta > 0:
        return [
            {
                "category_id": cash.id,
                "debit_amount": amount,
                "credit_amount": zero,
                "description": f"{label} - {account_name} increase",
            },
            {
                "category_id": equity.id,
                "debit_amount": zero,
                "credit_amount": amount,
                "description": f"{label} - Equity increase",
            },
        ]
    return [
        {
            "category_id": cash.id,
            "debit_amount": zero,
            "credit_amount": amount,
            "description": f"{label} - {account_name} decrease (overdraft)",
        },
        {
            "category_id": equity.id,
            "debit_amount": amount,
            "credit_amount": zero,
            "description": f"{label} - Equity decrease",
        },
    ]


def verify_balanced(lines: list[dict]) -> None:
    """Check that journal lines balance and each has exactly one side.

    Raises:
        InvariantViolation: If the lines don't balance within 0.01
    """
    debits = sum((line["debit_amount"] for line in lines), Decimal("0"))
    credits = sum((line["credit_amount"] for line in lines), Decimal("0"))

    for line in lines:
        if (line["debit_amount"] > 0) == (line["credit_amount"] > 0):
            logger.error("Journal line with zero or two non-zero sides: %s", line)
            raise InvariantViolation(
                f"Journal line must have exactly one non-zero side: {line['description']}"
            )
        if line["debit_amount"] < 0 or line["credit_amount"] < 0:
            logger.error("Journal line with negative amount: %s", line)
            raise InvariantViolation(f"Journal line has a negative amount: {line['description']}")

    if abs(debits - credits) > _CENT:
        logger.error("Unbalanced posting: debits %s, credits %s", debits, credits)
        raise InvariantViolation(
            f"Journal entries are not balanced: debits {debits} != credits {credits}"
        )


class PostingService:
    """Service that books balance changes as balanced postings."""

    def __init__(self, db: Database):
        """Initialize posting service.

        Args:
            db: Database instance
        """
        self.db = db

    def validate_balance(self, value) -> Decimal:
        """Validate a monetary balance. See :func:`validate_balance`."""
        return validate_balance(value)

    def create_opening_balance(
        self, account_id: str, balance, business_id: str, user_id: str
    ) -> PostingResult:
        """Seed an account's balance with an opening posting.

        Also sets the account's tracked balance. An account gets at most one
        opening posting; later calls return DUPLICATE_POSTING and change
        nothing.

        Raises:
            ValidationError: If the balance is invalid
            NotFoundError: If the account doesn't exist in the business
            AccountingSetupError: If the cash or opening balance equity category is missing
            InvariantViolation: If the computed lines don't balance
        """
        amount = validate_balance(balance)

        with self.db.atomic():
            account = self._get_account(account_id, business_id)
            if round_cents(amount) == 0:
                logger.debug("Opening balance for account %s is zero; nothing to post", account_id)
                return PostingResult(status=PostingStatus.NO_CHANGE)

            existing = self.db.find_posting(
                account_id, TransactionType.TRANSFER, OPENING_BALANCE_DESCRIPTION
            )
            if existing is not None:
                logger.info("Opening balance already exists for account %s", account_id)
                return PostingResult(
                    status=PostingStatus.DUPLICATE_POSTING,
                    transaction_id=existing.id,
                    amount=existing.amount,
                )

            transaction_id = self._post(
                account,
                round_cents(amount),
                description=OPENING_BALANCE_DESCRIPTION,
                notes="Opening balance for bank account",
                label="Opening balance",
                user_id=user_id,
            )
            self.db.update_account_balance(account_id, amount)

        logger.info("Created opening balance %s for account %s", amount, account_id)
        return PostingResult(
            status=PostingStatus.CREATED, transaction_id=transaction_id, amount=abs(amount)
        )

    def adjust_balance(
        self,
        account_id: str,
        old_balance,
        new_balance,
        business_id: str,
        user_id: str,
    ) -> PostingResult:
        """Book the change between two balances as an adjustment posting.

        A change smaller than one cent returns NO_CHANGE.

        Raises:
            ValidationError: If either balance is invalid
            NotFoundError: If the account doesn't exist in the business
            AccountingSetupError: If the cash or opening balance equity category is missing
            InvariantViolation: If the computed lines don't balance
        """
        old_amount = validate_balance(old_balance)
        new_amount = validate_balance(new_balance)
        delta = round_cents(new_amount - old_amount)

        with self.db.atomic():
            account = self._get_account(account_id, business_id)
            if abs(delta) < _CENT:
                return PostingResult(status=PostingStatus.NO_CHANGE)

            transaction_id = self._post(
                account,
                delta,
                description=ADJUSTMENT_DESCRIPTION,
                notes=f"Manual balance adjustment from {old_amount} to {new_amount}",
                label="Balance adjustment",
                user_id=user_id,
            )

        logger.info(
            "Adjusted balance of account %s from %s to %s", account_id, old_amount, new_amount
        )
        return PostingResult(
            status=PostingStatus.CREATED, transaction_id=transaction_id, amount=abs(delta)
        )

    def set_balance(
        self, account_id: str, new_balance, business_id: str, user_id: str
    ) -> PostingResult:
        """Correct an account's tracked balance, posting the difference."""
        new_amount = validate_balance(new_balance)
        with self.db.atomic():
            account = self._get_account(account_id, business_id)
            result = self.adjust_balance(
                account_id, account.balance, new_amount, business_id, user_id
            )
            if result.created:
                self.db.update_account_balance(account_id, new_amount)
        return result

    def _get_account(self, account_id: str, business_id: str) -> Account:
        account = self.db.get_account(account_id)
        if account is None or account.business_id != business_id:
            raise NotFoundError(account_not_found(account_id))
        return account

    def _resolve_cash_category(self, account: Account) -> Category:
        if account.category_id is not None:
            category = self.db.get_category(account.category_id)
            if category is not None and category.is_active:
                return category
        category = self.db.get_category_by_code(
            account.business_id, ACCOUNT_CODES["CASH"], active_only=True
        )
        if category is None:
            raise AccountingSetupError(cash_account_missing(account.business_id))
        return category

    def _resolve_equity_category(self, account: Account) -> Category:
        category = self.db.get_category_by_code(
            account.business_id, ACCOUNT_CODES["OPENING_BALANCE_EQUITY"], active_only=True
        )
        if category is None:
            raise AccountingSetupError(opening_balance_equity_missing(account.business_id))
        return category

    def _post(
        self,
        account: Account,
        delta: Decimal,
        description: str,
        notes: str,
        label: str,
        user_id: str,
    ) -> str:
        """Create one TRANSFER transaction and its two verified journal lines."""
        cash = self._resolve_cash_category(account)
        equity = self._resolve_equity_category(account)

        lines = build_posting_lines(delta, cash, equity, account.name, label)
        verify_balanced(lines)

        transaction_id = self.db.create_transaction(
            TransactionDraft(
                id=new_id(),
                business_id=account.business_id,
                account_id=account.id,
                type=TransactionType.TRANSFER,
                amount=abs(delta),
                currency=account.currency,
                date=date.today(),
                description=description,
                category_id=equity.id,
                is_reconciled=True,
                notes=notes,
                created_by=user_id,
            )
        )
        self.db.create_journal_entries(transaction_id, lines)
        return transaction_id
