"""
Plaid client for the transaction delta endpoints.

Uses ``/transactions/sync`` (cursor pagination over added, modified and
removed records) and ``/transactions/refresh``.

Plaid API docs:
  https://plaid.com/docs/api/products/transactions/
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from ledgersync.aggregator.base import (
    AggregatorClient,
    AggregatorError,
    AggregatorTransaction,
    RemovedTransaction,
    SyncPage,
)

logger = logging.getLogger("ledgersync.aggregator.plaid")

# Plaid environments
PLAID_ENVIRONMENTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

# Errors that retrying with the same credential cannot fix
_NON_RETRYABLE_CODES = {
    "ITEM_LOGIN_REQUIRED",
    "INVALID_ACCESS_TOKEN",
    "INVALID_API_KEYS",
    "ITEM_NOT_FOUND",
    "INVALID_FIELD",
    "INVALID_CURSOR",
}

_CONFIDENCE_LEVELS = {
    "VERY_HIGH": 0.95,
    "HIGH": 0.85,
    "MEDIUM": 0.6,
    "LOW": 0.3,
}

_PAGE_SIZE = 500


class PlaidClient(AggregatorClient):
    """Fetch transaction deltas from the Plaid API.

    Usage::

        client = PlaidClient(client_id="...", secret="...", environment="sandbox")
        page = client.transactions_sync("access-sandbox-...")

    Environments: "sandbox" (default), "development", "production"
    """

    def __init__(
        self,
        client_id: str,
        secret: str,
        *,
        environment: str = "sandbox",
        timeout: float = 60.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if environment not in PLAID_ENVIRONMENTS:
            raise ValueError(
                f"Unknown Plaid environment '{environment}'. "
                f"Supported: {', '.join(PLAID_ENVIRONMENTS)}"
            )
        self.client_id = client_id
        self.secret = secret
        self.environment = environment
        self.timeout = timeout
        self._base_url = PLAID_ENVIRONMENTS[environment]
        self._http = http_client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.Client:
        """Get or create a reusable httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.Client(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._http

    def close(self) -> None:
        """Clean up HTTP client."""
        if self._http is not None and not self._http.is_closed:
            self._http.close()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def transactions_sync(self, access_token: str, cursor: str | None = None) -> SyncPage:
        """Fetch one page of the transaction delta."""
        payload: dict[str, Any] = {
            "access_token": access_token,
            "count": _PAGE_SIZE,
            "options": {"include_personal_finance_category": True},
        }
        if cursor:
            payload["cursor"] = cursor

        data = self._api_post("transactions/sync", payload)

        added = self._parse_records(data.get("added", []), "added")
        modified = self._parse_records(data.get("modified", []), "modified")
        removed = [
            RemovedTransaction(external_id=r["transaction_id"])
            for r in data.get("removed", [])
            if r.get("transaction_id")
        ]

        logger.debug(
            "Plaid page: %d added, %d modified, %d removed, has_more=%s",
            len(added),
            len(modified),
            len(removed),
            data.get("has_more", False),
        )
        return SyncPage(
            added=added,
            modified=modified,
            removed=removed,
            next_cursor=data.get("next_cursor"),
            has_more=bool(data.get("has_more", False)),
        )

    def transactions_refresh(self, access_token: str) -> None:
        """Request an on-demand refresh of the item's transactions."""
        self._api_post("transactions/refresh", {"access_token": access_token})
        logger.info("Plaid: refresh requested")

    # ------------------------------------------------------------------
    # API helpers
    # ------------------------------------------------------------------

    def _api_post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Make an authenticated POST request to the Plaid API."""
        client = self._get_client()
        url = f"{self._base_url}/{endpoint}"

        # Plaid uses client_id + secret in the body, not headers
        payload = {
            "client_id": self.client_id,
            "secret": self.secret,
            **payload,
        }

        try:
            resp = client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Plaid %s request failed: %s", endpoint, e)
            raise AggregatorError(f"Plaid request to {endpoint} failed: {e}") from e

        # Plaid returns errors as 4xx/5xx with JSON body
        if resp.status_code >= 400:
            try:
                error_data = resp.json()
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}
            error_code = error_data.get("error_code", "UNKNOWN")
            error_msg = error_data.get("error_message", resp.text)

            if error_code == "ITEM_LOGIN_REQUIRED":
                message = (
                    "Plaid: Bank connection needs re-authentication. "
                    f"Please re-link through Plaid Link. ({error_msg})"
                )
            else:
                message = f"Plaid API error [{error_code}]: {error_msg}"

            retryable = error_code not in _NON_RETRYABLE_CODES
            logger.warning("Plaid %s returned %d (%s)", endpoint, resp.status_code, error_code)
            raise AggregatorError(message, retryable=retryable, code=error_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise AggregatorError(f"Plaid returned a non-JSON body for {endpoint}") from e
        if not isinstance(data, dict):
            raise AggregatorError(f"Plaid returned an unexpected body for {endpoint}")
        return data

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse_records(self, records: list[dict[str, Any]], kind: str) -> list[AggregatorTransaction]:
        parsed: list[AggregatorTransaction] = []
        for txn in records:
            try:
                parsed.append(self._parse_plaid_transaction(txn))
            except (KeyError, ValueError, TypeError, InvalidOperation) as e:
                logger.debug("Skipping %s Plaid transaction: %s", kind, e)
        return parsed

    @staticmethod
    def _parse_plaid_transaction(txn: dict[str, Any]) -> AggregatorTransaction:
        """Parse a Plaid transaction record."""
        txn_date_str = txn.get("date") or txn.get("authorized_date")
        if not txn_date_str:
            raise ValueError(f"transaction {txn.get('transaction_id')} has no date")

        pfc = txn.get("personal_finance_category") or {}

        return AggregatorTransaction(
            external_id=txn["transaction_id"],
            amount=Decimal(str(txn["amount"])),
            date=datetime.strptime(txn_date_str, "%Y-%m-%d").date(),
            name=txn.get("name"),
            merchant_name=txn.get("merchant_name"),
            original_description=txn.get("original_description"),
            pending=bool(txn.get("pending", False)),
            currency=txn.get("iso_currency_code") or txn.get("unofficial_currency_code"),
            category_primary=pfc.get("primary"),
            category_detailed=pfc.get("detailed"),
            category_confidence=_parse_confidence(pfc.get("confidence_level")),
        )


def _parse_confidence(level: Any) -> float | None:
    """Map Plaid's confidence level to a score in [0, 1]."""
    if level is None:
        return None
    if isinstance(level, str):
        if level.upper() in _CONFIDENCE_LEVELS:
            return _CONFIDENCE_LEVELS[level.upper()]
        try:
            level = float(level)
        except ValueError:
            return None
    if isinstance(level, (int, float)) and 0 <= level <= 1:
        return float(level)
    return None
