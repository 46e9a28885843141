"""Domain model entities for ledgersync.

These are pure data classes representing ledger concepts, independent of
database schema. Services and the matching engine only ever see these, never
the ORM rows behind them.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class AccountType(str, Enum):
    """Chart-of-accounts node type."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionType(str, Enum):
    """Transaction type. The sign of a transaction is implied by its type."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class TransactionStatus(str, Enum):
    """Lifecycle state of a transaction."""

    ACTIVE = "ACTIVE"
    REMOVED = "REMOVED"


@dataclass(frozen=True)
class Account:
    """Bank account domain entity."""

    id: str
    business_id: str
    name: str
    currency: str
    balance: Decimal
    sync_token: Optional[str]
    category_id: Optional[str]
    last_synced_at: Optional[datetime]
    created_at: datetime

    @property
    def is_linked(self) -> bool:
        """Whether the account is connected to the aggregator."""
        return self.sync_token is not None


@dataclass(frozen=True)
class Category:
    """Chart-of-accounts node."""

    id: str
    business_id: str
    account_code: str
    name: str
    account_type: AccountType
    parent_id: Optional[str]
    description: Optional[str]
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity.

    ``amount`` is always a non-negative magnitude. ``category_id`` is None
    while the transaction is uncategorized, and ``confidence`` is None when
    no source supplied one.
    """

    id: str
    business_id: str
    account_id: str
    type: TransactionType
    amount: Decimal
    currency: str
    date: date
    description: Optional[str]
    external_id: Optional[str]
    category_id: Optional[str]
    confidence: Optional[float]
    is_reconciled: bool
    is_flagged: bool
    status: TransactionStatus
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime

    @property
    def is_categorized(self) -> bool:
        return self.category_id is not None

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type."""
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return self.amount


@dataclass(frozen=True)
class JournalEntry:
    """One debit-or-credit line of a transaction."""

    id: str
    transaction_id: str
    category_id: str
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class LineItem:
    """A line item extracted from a receipt or invoice."""

    description: str
    amount: Optional[Decimal] = None
    quantity: Optional[Decimal] = None


@dataclass
class CategoryDraft:
    """A category staged for insertion, with its ID assigned up front."""

    id: str
    business_id: str
    account_code: str
    name: str
    account_type: AccountType
    description: Optional[str] = None
    created_by: Optional[str] = None


@dataclass
class TransactionDraft:
    """A transaction staged for insertion, with its ID assigned up front."""

    id: str
    business_id: str
    account_id: str
    type: TransactionType
    amount: Decimal
    currency: str
    date: date
    description: Optional[str] = None
    external_id: Optional[str] = None
    category_id: Optional[str] = None
    confidence: Optional[float] = None
    is_reconciled: bool = False
    notes: Optional[str] = None
    created_by: Optional[str] = None


class DocumentType(str, Enum):
    """Document kinds reported by the extraction service."""

    RECEIPT = "receipt"
    INVOICE = "invoice"
    STATEMENT = "statement"
    OTHER = "other"


@dataclass(frozen=True)
class ExtractedDocument:
    """Structured fields returned by the document extraction service.

    ``OTHER`` is the extraction service's "not a financial document" result.
    """

    document_type: DocumentType = DocumentType.RECEIPT
    vendor: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "USD"
    date: Optional[date] = None
    tax: Optional[Decimal] = None
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)
    confidence: float = 0.0

    @property
    def is_financial(self) -> bool:
        return self.document_type != DocumentType.OTHER


@dataclass(frozen=True)
class DocumentMatch:
    """A candidate transaction for an extracted document."""

    transaction_id: str
    confidence: float
    reason: str
    partial: bool = False
