"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from ledgersync.domain import entities as domain
from ledgersync.database.models import (
    Account as ORMAccount,
    Category as ORMCategory,
    Transaction as ORMTransaction,
    JournalEntry as ORMJournalEntry,
)

_CENT = Decimal("0.01")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _money(value) -> Decimal:
    return Decimal(value if value is not None else 0).quantize(_CENT)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        business_id=orm_account.business_id,
        name=orm_account.name,
        currency=orm_account.currency,
        balance=_money(orm_account.balance),
        sync_token=orm_account.sync_token,
        category_id=orm_account.category_id,
        last_synced_at=as_utc(orm_account.last_synced_at),
        created_at=as_utc(orm_account.created_at),
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        business_id=orm_category.business_id,
        account_code=orm_category.account_code,
        name=orm_category.name,
        account_type=domain.AccountType(orm_category.account_type),
        parent_id=orm_category.parent_id,
        description=orm_category.description,
        is_active=bool(orm_category.is_active),
        created_at=as_utc(orm_category.created_at),
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    status = orm_transaction.status or domain.TransactionStatus.ACTIVE
    return domain.Transaction(
        id=orm_transaction.id,
        business_id=orm_transaction.business_id,
        account_id=orm_transaction.account_id,
        type=domain.TransactionType(orm_transaction.type),
        amount=_money(orm_transaction.amount),
        currency=orm_transaction.currency,
        date=orm_transaction.date,
        description=orm_transaction.description,
        external_id=orm_transaction.external_id,
        category_id=orm_transaction.category_id,
        confidence=orm_transaction.confidence,
        is_reconciled=bool(orm_transaction.is_reconciled),
        is_flagged=bool(orm_transaction.is_flagged),
        status=domain.TransactionStatus(status),
        notes=orm_transaction.notes,
        created_by=orm_transaction.created_by,
        created_at=as_utc(orm_transaction.created_at),
    )


def journal_entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model to domain JournalEntry entity."""
    return domain.JournalEntry(
        id=orm_entry.id,
        transaction_id=orm_entry.transaction_id,
        category_id=orm_entry.category_id,
        debit_amount=_money(orm_entry.debit_amount),
        credit_amount=_money(orm_entry.credit_amount),
        description=orm_entry.description,
        created_at=as_utc(orm_entry.created_at),
    )
