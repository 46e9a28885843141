"""Aggregator boundary: records crossing it and the client interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional


class AggregatorError(Exception):
    """Failure talking to the bank-data aggregator."""

    def __init__(self, message: str, retryable: bool = True, code: Optional[str] = None):
        super().__init__(message)
        self.retryable = retryable
        self.code = code


@dataclass(frozen=True)
class AggregatorTransaction:
    """A transaction as reported by the aggregator.

    ``amount`` keeps the aggregator's sign: positive is money leaving the
    account, zero or negative is money coming in.
    """

    external_id: str
    amount: Decimal
    date: date
    name: Optional[str] = None
    merchant_name: Optional[str] = None
    original_description: Optional[str] = None
    pending: bool = False
    currency: Optional[str] = None
    category_primary: Optional[str] = None
    category_detailed: Optional[str] = None
    category_confidence: Optional[float] = None

    @property
    def description(self) -> Optional[str]:
        return self.merchant_name or self.name

    @property
    def category_label(self) -> Optional[str]:
        return self.category_detailed or self.category_primary


@dataclass(frozen=True)
class RemovedTransaction:
    """Notification that the aggregator no longer reports a transaction."""

    external_id: str


@dataclass(frozen=True)
class SyncPage:
    """One page of a cursor-paginated transaction delta."""

    added: list[AggregatorTransaction] = field(default_factory=list)
    modified: list[AggregatorTransaction] = field(default_factory=list)
    removed: list[RemovedTransaction] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class AggregatorClient(ABC):
    """Client for a bank-data aggregator."""

    @abstractmethod
    def transactions_sync(self, access_token: str, cursor: Optional[str] = None) -> SyncPage:
        """Fetch one page of the transaction delta after ``cursor``.

        Raises:
            AggregatorError: On any transport or API failure
        """
        pass

    @abstractmethod
    def transactions_refresh(self, access_token: str) -> None:
        """Ask the aggregator to pull fresh data from the institution.

        Raises:
            AggregatorError: On any transport or API failure
        """
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass
