"""Bank-data aggregator boundary."""

from ledgersync.aggregator.base import (
    AggregatorClient,
    AggregatorError,
    AggregatorTransaction,
    RemovedTransaction,
    SyncPage,
)
from ledgersync.aggregator.plaid import PlaidClient
from ledgersync.aggregator.factories import create_plaid_client

__all__ = [
    "AggregatorClient",
    "AggregatorError",
    "AggregatorTransaction",
    "RemovedTransaction",
    "SyncPage",
    "PlaidClient",
    "create_plaid_client",
]
