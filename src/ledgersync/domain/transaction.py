"""Transaction domain service."""

from datetime import date
from typing import Optional

from ledgersync.database.base import Database
from ledgersync.database.models import new_id
from ledgersync.domain.entities import (
    JournalEntry,
    Transaction as TransactionEntity,
    TransactionDraft,
    TransactionStatus,
    TransactionType,
)
from ledgersync.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    category_not_found,
    transaction_not_found,
)
from ledgersync.domain.posting import validate_balance


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_transaction(
        self,
        business_id: str,
        account_id: str,
        type: TransactionType,
        amount,
        date: date,
        description: Optional[str] = None,
        category_id: Optional[str] = None,
        currency: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """Create a manual transaction.

        Args:
            business_id: Owning business
            account_id: Account ID
            type: Transaction type; the sign of the amount is implied by it
            amount: Non-negative magnitude
            date: Transaction date
            description: Optional description
            category_id: Optional category ID
            currency: Currency code; defaults to the account's currency
            notes: Optional notes
            user_id: Acting user

        Returns:
            Transaction ID

        Raises:
            ValidationError: If the amount is invalid or negative
            NotFoundError: If the account or category doesn't exist
        """
        magnitude = validate_balance(amount)
        if magnitude < 0:
            raise ValidationError(
                f"Transaction amount must be non-negative, got {amount}; use the type for direction"
            )

        account = self.db.get_account(account_id)
        if account is None or account.business_id != business_id:
            raise NotFoundError(account_not_found(account_id))
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

        return self.db.create_transaction(
            TransactionDraft(
                id=new_id(),
                business_id=business_id,
                account_id=account_id,
                type=type,
                amount=magnitude,
                currency=currency or account.currency,
                date=date,
                description=description,
                category_id=category_id,
                notes=notes,
                created_by=user_id,
            )
        )

    def get_transaction(self, transaction_id: str) -> Optional[TransactionEntity]:
        """Get transaction by ID."""
        return self.db.get_transaction(transaction_id)

    def list_transactions(
        self,
        business_id: str,
        account_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[TransactionStatus] = None,
    ) -> list[TransactionEntity]:
        """List transactions, newest first."""
        return self.db.list_transactions(
            business_id,
            account_id=account_id,
            start_date=start_date,
            end_date=end_date,
            status=status,
        )

    def update_category(self, transaction_id: str, category_id: Optional[str]) -> None:
        """Set or clear a transaction's category.

        Raises:
            NotFoundError: If the transaction or category doesn't exist
        """
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))
        self.db.update_transaction_category(transaction_id, category_id)

    def mark_reconciled(self, transaction_id: str, reconciled: bool = True) -> None:
        """Set a transaction's reconciled flag."""
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        self.db.mark_reconciled(transaction_id, reconciled)

    def journal_lines(self, transaction_id: str) -> list[JournalEntry]:
        """List the journal lines of a transaction."""
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return self.db.list_journal_entries(transaction_id)
