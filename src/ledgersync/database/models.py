"""SQLAlchemy models for the ledger store."""

import uuid
from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Float,
    Enum as SAEnum,
    UniqueConstraint,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

from ledgersync.domain.entities import AccountType, TransactionType, TransactionStatus

Base = declarative_base()


def new_id() -> str:
    """Generate a primary key that can be assigned before a row is flushed."""
    return uuid.uuid4().hex


class Account(Base):
    """Bank account model."""

    __tablename__ = "accounts"

    id = Column(String(32), primary_key=True, default=new_id)
    business_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    sync_token = Column(String, nullable=True)
    # Designated cash/asset node in the chart of accounts
    category_id = Column(String(32), ForeignKey("categories.id"), nullable=True)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    category = relationship("Category")
    transactions = relationship("Transaction", back_populates="account")


class Category(Base):
    """Chart-of-accounts node with optional parent."""

    __tablename__ = "categories"

    id = Column(String(32), primary_key=True, default=new_id)
    business_id = Column(String, nullable=False)
    account_code = Column(String(10), nullable=False)
    name = Column(String, nullable=False)
    account_type = Column(SAEnum(AccountType, native_enum=False), nullable=False)
    parent_id = Column(String(32), ForeignKey("categories.id"), nullable=True)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Code bands do not overlap, so a code is unique per business
    __table_args__ = (
        UniqueConstraint("business_id", "account_code", name="uq_category_business_code"),
        Index("ix_category_business_type", "business_id", "account_type"),
    )

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category")


class Transaction(Base):
    """Transaction model. ``amount`` is a non-negative magnitude."""

    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True, default=new_id)
    business_id = Column(String, nullable=False)
    account_id = Column(String(32), ForeignKey("accounts.id"), nullable=False)
    type = Column(SAEnum(TransactionType, native_enum=False), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    date = Column(Date, nullable=False)
    description = Column(String, nullable=True)
    external_id = Column(String, nullable=True)
    category_id = Column(String(32), ForeignKey("categories.id"), nullable=True)
    confidence = Column(Float, nullable=True)
    is_reconciled = Column(Boolean, default=False, nullable=False)
    is_flagged = Column(Boolean, default=False, nullable=False)
    status = Column(
        SAEnum(TransactionStatus, native_enum=False),
        default=TransactionStatus.ACTIVE,
        nullable=False,
    )
    notes = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, nullable=True)

    # NULL external ids never collide, so manual rows are unaffected
    __table_args__ = (
        UniqueConstraint("business_id", "external_id", name="uq_transaction_business_external_id"),
        Index("ix_transaction_account_date", "account_id", "date"),
    )

    # Relationships
    account = relationship("Account", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")
    journal_entries = relationship(
        "JournalEntry", back_populates="transaction", cascade="all, delete-orphan"
    )


class JournalEntry(Base):
    """Journal line. Exactly one of debit/credit is non-zero."""

    __tablename__ = "journal_entries"

    id = Column(String(32), primary_key=True, default=new_id)
    transaction_id = Column(String(32), ForeignKey("transactions.id"), nullable=False, index=True)
    category_id = Column(String(32), ForeignKey("categories.id"), nullable=False, index=True)
    debit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    credit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="journal_entries")
    category = relationship("Category")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
