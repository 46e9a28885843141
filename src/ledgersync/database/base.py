"""Abstract ledger store interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Iterable
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from ledgersync.domain.entities import (
    Account,
    AccountType,
    Category,
    CategoryDraft,
    JournalEntry,
    Transaction,
    TransactionDraft,
    TransactionStatus,
    TransactionType,
)


class Database(ABC):
    """Abstract ledger store for ledgersync.

    Write methods commit immediately unless they run inside ``atomic()``,
    in which case they are committed (or rolled back) with the whole unit.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Run the enclosed writes as one all-or-nothing unit.

        Nested calls join the outermost unit.
        """
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        business_id: str,
        name: str,
        currency: str = "USD",
        sync_token: Optional[str] = None,
        category_id: Optional[str] = None,
    ) -> str:
        """Create a new account with a zero tracked balance. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self, business_id: str) -> list[Account]:
        """List all accounts of a business."""
        pass

    @abstractmethod
    def list_stale_accounts(self, business_id: str, synced_before: datetime) -> list[Account]:
        """List linked accounts never synced or last synced before the cutoff."""
        pass

    @abstractmethod
    def update_account_balance(self, account_id: str, balance: Decimal) -> None:
        """Set the tracked balance of an account."""
        pass

    @abstractmethod
    def set_account_category(self, account_id: str, category_id: Optional[str]) -> None:
        """Set the designated cash/asset category of an account."""
        pass

    @abstractmethod
    def advance_watermark(self, account_id: str, synced_at: datetime) -> None:
        """Move the last-sync watermark forward. Never moves it backward."""
        pass

    # Category operations
    @abstractmethod
    def create_category(
        self,
        business_id: str,
        account_code: str,
        name: str,
        account_type: AccountType,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> str:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: str) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_code(
        self, business_id: str, account_code: str, active_only: bool = False
    ) -> Optional[Category]:
        """Get category by account code."""
        pass

    @abstractmethod
    def find_category_by_name(
        self, business_id: str, account_type: AccountType, name: str
    ) -> Optional[Category]:
        """Get category by type and name."""
        pass

    @abstractmethod
    def list_categories(
        self,
        business_id: str,
        account_type: Optional[AccountType] = None,
        active_only: bool = False,
    ) -> list[Category]:
        """List categories ordered by account code."""
        pass

    @abstractmethod
    def list_category_codes(
        self, business_id: str, account_type: Optional[AccountType] = None
    ) -> list[str]:
        """List all account codes for a business, optionally of one type."""
        pass

    @abstractmethod
    def insert_categories_skip_existing(self, drafts: Iterable[CategoryDraft]) -> int:
        """Insert staged categories, skipping conflicting codes. Returns rows inserted."""
        pass

    @abstractmethod
    def get_existing_category_ids(self, category_ids: Iterable[str]) -> set[str]:
        """Return the subset of the given category IDs that exist."""
        pass

    @abstractmethod
    def deactivate_category(self, category_id: str) -> None:
        """Soft-deactivate a category."""
        pass

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        """Hard-delete a category."""
        pass

    @abstractmethod
    def count_category_references(self, category_id: str) -> int:
        """Count transactions, journal lines and accounts referencing a category."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(self, draft: TransactionDraft) -> str:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        business_id: str,
        account_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[TransactionStatus] = None,
    ) -> list[Transaction]:
        """List transactions with optional filters, newest first."""
        pass

    @abstractmethod
    def get_existing_external_ids(self, business_id: str, external_ids: Iterable[str]) -> set[str]:
        """Return the subset of the given external IDs already imported."""
        pass

    @abstractmethod
    def get_transactions_by_external_ids(
        self, business_id: str, external_ids: Iterable[str]
    ) -> dict[str, Transaction]:
        """Map external ID to transaction for the given IDs that exist."""
        pass

    @abstractmethod
    def insert_transactions_skip_existing(self, drafts: Iterable[TransactionDraft]) -> int:
        """Insert staged transactions, skipping duplicate external IDs. Returns rows inserted."""
        pass

    @abstractmethod
    def update_synced_fields(
        self,
        transaction_id: str,
        type: TransactionType,
        amount: Decimal,
        date: date,
        description: Optional[str],
        notes: Optional[str] = None,
    ) -> None:
        """Update the aggregator-owned mutable fields of a transaction."""
        pass

    @abstractmethod
    def flag_removed(self, transaction_id: str, note: str) -> None:
        """Mark a transaction removed upstream and append a note."""
        pass

    @abstractmethod
    def update_transaction_category(self, transaction_id: str, category_id: Optional[str]) -> None:
        """Update transaction category."""
        pass

    @abstractmethod
    def mark_reconciled(self, transaction_id: str, reconciled: bool = True) -> None:
        """Set the reconciled flag of a transaction."""
        pass

    @abstractmethod
    def find_posting(
        self, account_id: str, type: TransactionType, description: str
    ) -> Optional[Transaction]:
        """Find a transaction of an account by type and exact description."""
        pass

    # Journal operations
    @abstractmethod
    def create_journal_entries(self, transaction_id: str, lines: Iterable[dict]) -> list[str]:
        """Create journal lines for a transaction.

        Each line is a dict with ``category_id``, ``debit_amount``,
        ``credit_amount`` and ``description``.
        """
        pass

    @abstractmethod
    def list_journal_entries(self, transaction_id: str) -> list[JournalEntry]:
        """List journal lines of a transaction."""
        pass

    @abstractmethod
    def sum_journal_entries(
        self,
        category_id: str,
        as_of: Optional[date] = None,
        account_id: Optional[str] = None,
    ) -> tuple[Decimal, Decimal]:
        """Return (total debits, total credits) posted to a category.

        With ``account_id``, only lines of that account's transactions count.
        """
        pass
