"""Shared pytest fixtures for ledgersync tests."""

import tempfile
import os
from datetime import datetime, date, timedelta, UTC
from decimal import Decimal
from typing import Optional

import pytest

from ledgersync.aggregator.base import (
    AggregatorClient,
    AggregatorError,
    AggregatorTransaction,
    RemovedTransaction,
    SyncPage,
)
from ledgersync.database.factories import create_sqlite_database
from ledgersync.domain.account import AccountService
from ledgersync.domain.chart import CategoryService, ChartOfAccountsService
from ledgersync.domain.posting import PostingService
from ledgersync.domain.sync import SyncService
from ledgersync.domain.transaction import TransactionService

BUSINESS_ID = "biz-1"
USER_ID = "user-1"
FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


def plaid_txn(
    external_id: str,
    amount: str,
    days_ago: int = 1,
    pending: bool = False,
    detailed: Optional[str] = "FOOD_AND_DRINK_COFFEE",
    primary: Optional[str] = "FOOD_AND_DRINK",
    merchant: Optional[str] = "Coffee Shop",
    today: Optional[date] = None,
) -> AggregatorTransaction:
    """Build an aggregator record dated ``days_ago`` before ``today``."""
    today = today or FIXED_NOW.date()
    return AggregatorTransaction(
        external_id=external_id,
        amount=Decimal(amount),
        date=today - timedelta(days=days_ago),
        name=f"{merchant or 'Unknown'} POS",
        merchant_name=merchant,
        original_description=f"POS {merchant or 'UNKNOWN'} {external_id}",
        pending=pending,
        currency="USD",
        category_primary=primary,
        category_detailed=detailed,
        category_confidence=0.85 if detailed else None,
    )


def make_pages(*batches, modified=None, removed=None) -> list[SyncPage]:
    """Chain record batches into cursor-linked pages.

    Modified and removed notifications ride on the last page.
    """
    batches = batches or ([],)
    pages = []
    for index, records in enumerate(batches):
        last = index == len(batches) - 1
        pages.append(
            SyncPage(
                added=list(records),
                modified=list(modified or []) if last else [],
                removed=[RemovedTransaction(external_id=r) for r in (removed or [])] if last else [],
                next_cursor=f"cursor-{index + 1}",
                has_more=not last,
            )
        )
    return pages


class FakeAggregator(AggregatorClient):
    """In-memory aggregator serving pre-built pages."""

    def __init__(self, pages: Optional[list[SyncPage]] = None):
        self.pages = pages if pages is not None else make_pages()
        self.cursors: list[Optional[str]] = []
        self.refreshed: list[str] = []
        self.fail_at_page: Optional[int] = None
        self.failing_tokens: set[str] = set()
        self.broken_tokens: set[str] = set()

    def transactions_sync(self, access_token: str, cursor: Optional[str] = None) -> SyncPage:
        self.cursors.append(cursor)
        if access_token in self.failing_tokens:
            raise AggregatorError("connection reset")
        if access_token in self.broken_tokens:
            raise RuntimeError("malformed response")
        index = 0 if cursor is None else int(cursor.split("-")[1])
        if self.fail_at_page is not None and index == self.fail_at_page:
            raise AggregatorError("upstream timeout")
        return self.pages[index]

    def transactions_refresh(self, access_token: str) -> None:
        self.refreshed.append(access_token)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def chart(temp_db):
    """Initialize the default chart for the test business."""
    ChartOfAccountsService(temp_db).initialize_chart(BUSINESS_ID)
    return {cat.account_code: cat for cat in temp_db.list_categories(BUSINESS_ID)}


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def posting_service(temp_db):
    """Create a PostingService with a temporary database."""
    return PostingService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def linked_account(temp_db, chart):
    """Create an account linked to the aggregator."""
    account_id = temp_db.create_account(
        business_id=BUSINESS_ID, name="Checking", currency="USD", sync_token="access-token"
    )
    return temp_db.get_account(account_id)


@pytest.fixture
def aggregator():
    """Create an empty fake aggregator."""
    return FakeAggregator()


@pytest.fixture
def sync_service(temp_db, aggregator):
    """Create a SyncService with a fixed clock."""
    return SyncService(temp_db, aggregator, clock=lambda: FIXED_NOW)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
