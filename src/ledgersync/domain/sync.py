"""Sync reconciler: imports aggregator transaction deltas into the ledger.

A sync run fetches the complete delta first, then stages categories and
transactions in memory, and writes everything in a single atomic unit.
Nothing from a run is visible until that unit commits, and re-running the
same delta never creates new rows because imports are keyed by external ID.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from ledgersync.aggregator.base import (
    AggregatorClient,
    AggregatorError,
    AggregatorTransaction,
    RemovedTransaction,
)
from ledgersync.database.base import Database
from ledgersync.database.models import new_id
from ledgersync.domain.category_resolver import CategoryCache, load_category_cache, resolve_category
from ledgersync.domain.entities import (
    Account,
    AccountType,
    TransactionDraft,
    TransactionStatus,
    TransactionType,
)
from ledgersync.domain.errors import (
    DomainError,
    NotFoundError,
    SyncError,
    ValidationError,
    account_not_found,
)

logger = logging.getLogger("ledgersync.sync")

DEFAULT_HISTORY_DAYS = 90
DEFAULT_BATCH_SIZE = 100
REMOVED_NOTE = "Removed by bank"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class SyncResult:
    """Counters of one account sync run."""

    account_id: str
    added: int = 0
    modified: int = 0
    removed: int = 0
    skipped_duplicates: int = 0
    skipped_pending: int = 0
    skipped_out_of_window: int = 0
    categories_created: int = 0
    duration_ms: int = 0


@dataclass
class SweepResult:
    """Outcome of syncing every stale account of a business."""

    synced: list[SyncResult] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class _Delta:
    added: list[AggregatorTransaction] = field(default_factory=list)
    modified: dict[str, AggregatorTransaction] = field(default_factory=dict)
    removed: dict[str, RemovedTransaction] = field(default_factory=dict)
    pages: int = 0


def transaction_type_for(amount) -> TransactionType:
    """Positive aggregator amounts are money out."""
    return TransactionType.EXPENSE if amount > 0 else TransactionType.INCOME


def _batches(records: list, size: int) -> Iterator[list]:
    for start in range(0, len(records), size):
        yield records[start : start + size]


class SyncService:
    """Service that reconciles linked accounts with the aggregator."""

    def __init__(
        self,
        db: Database,
        client: AggregatorClient,
        history_days: int = DEFAULT_HISTORY_DAYS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize sync service.

        Args:
            db: Database instance
            client: Aggregator client used for every fetch
            history_days: Records dated before this many days ago are ignored
            batch_size: Number of records staged per batch
            clock: Returns the current aware UTC time
        """
        if history_days < 1:
            raise ValidationError("history_days must be at least 1")
        if batch_size < 1:
            raise ValidationError("batch_size must be at least 1")
        self.db = db
        self.client = client
        self.history_days = history_days
        self.batch_size = batch_size
        self.clock = clock

    def sync_account(
        self,
        account_id: str,
        business_id: str,
        user_id: str,
        access_token: Optional[str] = None,
    ) -> SyncResult:
        """Bring one account up to date with the aggregator.

        Args:
            account_id: Account to sync
            business_id: Owning business
            user_id: Acting user, recorded as creator of new rows
            access_token: Aggregator credential; defaults to the account's sync token

        Returns:
            SyncResult with counters for the run

        Raises:
            NotFoundError: If the account doesn't exist in the business
            ValidationError: If no credential is available
            SyncError: If fetching or committing fails; nothing is written
        """
        started = time.monotonic()
        account = self._get_linked_account(account_id, business_id)
        token = access_token or account.sync_token
        if not token:
            raise ValidationError(f"Account {account_id} is not linked to the aggregator")

        logger.info("Starting sync for account %s (business %s)", account_id, business_id)
        delta = self._fetch_delta(token)
        logger.info(
            "Fetched %d pages for account %s: %d added, %d modified, %d removed",
            delta.pages,
            account_id,
            len(delta.added),
            len(delta.modified),
            len(delta.removed),
        )

        result = SyncResult(account_id=account_id)
        records = self._filter_records(delta.added, result)

        try:
            with self.db.atomic():
                self._commit_run(account, business_id, user_id, records, delta, result)
        except SQLAlchemyError as e:
            logger.error("Commit failed for account %s: %s", account_id, e)
            raise SyncError(f"Could not commit sync of account {account_id}: {e}") from e

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Synced account %s in %d ms: %d added, %d modified, %d removed, %d categories created",
            account_id,
            result.duration_ms,
            result.added,
            result.modified,
            result.removed,
            result.categories_created,
        )
        return result

    def refresh_and_sync(
        self,
        account_id: str,
        business_id: str,
        user_id: str,
        access_token: Optional[str] = None,
    ) -> SyncResult:
        """Ask the aggregator for fresh data, then sync the account."""
        account = self._get_linked_account(account_id, business_id)
        token = access_token or account.sync_token
        if not token:
            raise ValidationError(f"Account {account_id} is not linked to the aggregator")

        try:
            self.client.transactions_refresh(token)
        except AggregatorError as e:
            logger.warning("Refresh failed for account %s: %s", account_id, e)
            raise SyncError(str(e), retryable=e.retryable) from e

        return self.sync_account(account_id, business_id, user_id, access_token=token)

    def sync_stale_accounts(
        self,
        business_id: str,
        user_id: str,
        stale_after: timedelta = timedelta(hours=24),
    ) -> SweepResult:
        """Sync every linked account not synced within ``stale_after``.

        A failure in one account is recorded and the sweep moves on.
        """
        cutoff = self.clock() - stale_after
        accounts = self.db.list_stale_accounts(business_id, cutoff)
        logger.info("Sweeping %d stale accounts for business %s", len(accounts), business_id)

        sweep = SweepResult()
        for account in accounts:
            try:
                sweep.synced.append(self.sync_account(account.id, business_id, user_id))
            except DomainError as e:
                logger.warning("Sync of account %s failed: %s", account.id, e)
                sweep.failed[account.id] = str(e)
            except Exception as e:
                logger.exception("Unexpected error syncing account %s", account.id)
                sweep.failed[account.id] = f"Unexpected error: {e}"
        return sweep

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _get_linked_account(self, account_id: str, business_id: str) -> Account:
        account = self.db.get_account(account_id)
        if account is None or account.business_id != business_id:
            raise NotFoundError(account_not_found(account_id))
        return account

    def _fetch_delta(self, access_token: str) -> _Delta:
        """Page through the aggregator until it reports no more pages."""
        delta = _Delta()
        seen: set[str] = set()
        cursor: Optional[str] = None

        while True:
            try:
                page = self.client.transactions_sync(access_token, cursor)
            except AggregatorError as e:
                logger.warning("Aggregator fetch failed after %d pages: %s", delta.pages, e)
                raise SyncError(str(e), retryable=e.retryable) from e
            delta.pages += 1

            for record in page.added:
                if record.external_id in seen:
                    logger.debug("Dropping repeated record %s", record.external_id)
                    continue
                seen.add(record.external_id)
                delta.added.append(record)
            for record in page.modified:
                delta.modified[record.external_id] = record
            for record in page.removed:
                delta.removed[record.external_id] = record

            if not page.has_more:
                return delta
            if not page.next_cursor or page.next_cursor == cursor:
                raise SyncError("Aggregator reported more pages without advancing the cursor")
            cursor = page.next_cursor

    def _filter_records(
        self, records: list[AggregatorTransaction], result: SyncResult
    ) -> list[AggregatorTransaction]:
        """Keep only settled records inside the history window."""
        cutoff = self.clock().date() - timedelta(days=self.history_days)
        kept = []
        for record in records:
            if record.pending:
                result.skipped_pending += 1
                logger.debug("Skipping pending record %s", record.external_id)
            elif record.date < cutoff:
                result.skipped_out_of_window += 1
                logger.debug("Skipping record %s dated %s", record.external_id, record.date)
            else:
                kept.append(record)
        return kept

    # ------------------------------------------------------------------
    # Staging and commit
    # ------------------------------------------------------------------

    def _commit_run(
        self,
        account: Account,
        business_id: str,
        user_id: str,
        records: list[AggregatorTransaction],
        delta: _Delta,
        result: SyncResult,
    ) -> None:
        imported = self.db.get_existing_external_ids(
            business_id, [record.external_id for record in records]
        )
        cache = load_category_cache(self.db, business_id, created_by=user_id)

        drafts: list[TransactionDraft] = []
        for batch in _batches(records, self.batch_size):
            drafts.extend(
                self._stage_batch(batch, account, business_id, user_id, imported, cache, result)
            )
        logger.info(
            "Staged %d transactions and %d categories for account %s",
            len(drafts),
            len(cache.staged),
            account.id,
        )

        result.categories_created = self._insert_categories(cache, drafts, business_id)
        result.added = self.db.insert_transactions_skip_existing(drafts)
        # Rows that lost a race with a concurrent run
        result.skipped_duplicates += len(drafts) - result.added

        self._apply_modified(business_id, delta.modified, result)
        self._apply_removed(business_id, delta.removed, result)
        self.db.advance_watermark(account.id, self.clock())

    def _stage_batch(
        self,
        batch: list[AggregatorTransaction],
        account: Account,
        business_id: str,
        user_id: str,
        imported: set[str],
        cache: CategoryCache,
        result: SyncResult,
    ) -> list[TransactionDraft]:
        drafts = []
        for record in batch:
            if record.external_id in imported:
                result.skipped_duplicates += 1
                continue
            imported.add(record.external_id)

            txn_type = transaction_type_for(record.amount)
            category_id = None
            if record.category_label:
                account_type = (
                    AccountType.EXPENSE if txn_type == TransactionType.EXPENSE else AccountType.INCOME
                )
                description = (
                    f"Imported from {record.category_primary}" if record.category_primary else None
                )
                category_id = resolve_category(cache, account_type, record.category_label, description)

            drafts.append(
                TransactionDraft(
                    id=new_id(),
                    business_id=business_id,
                    account_id=account.id,
                    type=txn_type,
                    amount=abs(record.amount),
                    currency=record.currency or account.currency,
                    date=record.date,
                    description=record.description,
                    external_id=record.external_id,
                    category_id=category_id,
                    confidence=record.category_confidence,
                    notes=record.original_description,
                    created_by=user_id,
                )
            )
        return drafts

    def _insert_categories(
        self, cache: CategoryCache, drafts: list[TransactionDraft], business_id: str
    ) -> int:
        """Insert staged categories and repoint drafts at any that were skipped."""
        if not cache.staged:
            return 0

        staged = list(cache.staged)
        created = self.db.insert_categories_skip_existing(staged)
        present = self.db.get_existing_category_ids(draft.id for draft in staged)

        replacements: dict[str, Optional[str]] = {}
        for category in staged:
            if category.id in present:
                continue
            # Its code was taken by a concurrent run; reuse that run's node if it has our label
            existing = self.db.find_category_by_name(
                business_id, category.account_type, category.name
            )
            replacements[category.id] = existing.id if existing else None
            logger.warning(
                "Category code %s for '%s' was already taken; using %s",
                category.account_code,
                category.name,
                existing.id if existing else "no category",
            )
            cache.forget(category.id)

        if replacements:
            for draft in drafts:
                if draft.category_id in replacements:
                    draft.category_id = replacements[draft.category_id]
        return created

    def _apply_modified(
        self,
        business_id: str,
        modified: dict[str, AggregatorTransaction],
        result: SyncResult,
    ) -> None:
        if not modified:
            return
        existing = self.db.get_transactions_by_external_ids(business_id, modified.keys())
        for external_id, record in modified.items():
            transaction = existing.get(external_id)
            if transaction is None:
                logger.debug("Ignoring modification of unknown record %s", external_id)
                continue
            if record.pending:
                logger.debug("Ignoring modification of pending record %s", external_id)
                continue
            self.db.update_synced_fields(
                transaction.id,
                type=transaction_type_for(record.amount),
                amount=abs(record.amount),
                date=record.date,
                description=record.description,
                notes=record.original_description,
            )
            result.modified += 1

    def _apply_removed(
        self,
        business_id: str,
        removed: dict[str, RemovedTransaction],
        result: SyncResult,
    ) -> None:
        if not removed:
            return
        existing = self.db.get_transactions_by_external_ids(business_id, removed.keys())
        for external_id in removed:
            transaction = existing.get(external_id)
            if transaction is None or transaction.status == TransactionStatus.REMOVED:
                continue
            self.db.flag_removed(transaction.id, REMOVED_NOTE)
            result.removed += 1
