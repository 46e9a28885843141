"""Balance reconciliation between tracked balances and the journal."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ledgersync.database.base import Database
from ledgersync.domain.chart import ACCOUNT_CODES
from ledgersync.domain.entities import AccountType
from ledgersync.domain.errors import (
    AccountingSetupError,
    NotFoundError,
    account_not_found,
    cash_account_missing,
    transaction_not_found,
)

TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class BalanceReconciliation:
    """Tracked balance of an account compared with its journal balance."""

    account_id: str
    tracked_balance: Decimal
    journal_balance: Decimal
    difference: Decimal
    reconciled: bool
    possible_reasons: list[str] = field(default_factory=list)


class BalanceService:
    """Service for checking ledger balances."""

    def __init__(self, db: Database):
        self.db = db

    def journal_balance(
        self, category_id: str, liability: bool = False, account_id: Optional[str] = None
    ) -> Decimal:
        """Return the balance posted to a category.

        Debits minus credits, or credits minus debits for a liability.
        Pass ``account_id`` to count only that account's transactions.
        """
        debits, credits = self.db.sum_journal_entries(category_id, account_id=account_id)
        if liability:
            return credits - debits
        return debits - credits

    def reconcile_account(self, account_id: str) -> BalanceReconciliation:
        """Compare an account's tracked balance with its journal balance.

        Raises:
            NotFoundError: If the account doesn't exist
            AccountingSetupError: If the account has no cash category
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        category = None
        if account.category_id is not None:
            category = self.db.get_category(account.category_id)
        # The shared Cash category pools every account without its own category
        scope = None
        if category is None:
            category = self.db.get_category_by_code(account.business_id, ACCOUNT_CODES["CASH"])
            scope = account_id
        if category is None:
            raise AccountingSetupError(cash_account_missing(account.business_id))

        journal = self.journal_balance(
            category.id,
            liability=category.account_type == AccountType.LIABILITY,
            account_id=scope,
        )
        difference = account.balance - journal
        reconciled = abs(difference) <= TOLERANCE

        return BalanceReconciliation(
            account_id=account_id,
            tracked_balance=account.balance,
            journal_balance=journal,
            difference=difference,
            reconciled=reconciled,
            possible_reasons=[] if reconciled else _possible_reasons(difference),
        )

    def verify_transaction_balanced(self, transaction_id: str) -> bool:
        """Return whether a transaction's stored journal lines balance.

        A transaction without journal lines counts as balanced.
        """
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        lines = self.db.list_journal_entries(transaction_id)
        debits = sum((line.debit_amount for line in lines), Decimal("0"))
        credits = sum((line.credit_amount for line in lines), Decimal("0"))
        return abs(debits - credits) <= TOLERANCE


def _possible_reasons(difference: Decimal) -> list[str]:
    if difference > 0:
        return [
            "Missing expense transactions",
            "Pending transactions not yet imported",
            "Bank fees or charges not imported",
        ]
    return [
        "Missing income transactions",
        "Duplicate transactions imported",
        "Transactions imported with wrong amounts",
    ]
