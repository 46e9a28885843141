"""Tests for the Plaid aggregator client."""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from ledgersync.aggregator.base import AggregatorError
from ledgersync.aggregator.factories import create_plaid_client
from ledgersync.aggregator.plaid import PlaidClient
from ledgersync.domain.errors import ValidationError


def plaid_record(transaction_id, amount, **overrides):
    record = {
        "transaction_id": transaction_id,
        "amount": amount,
        "date": "2024-03-10",
        "name": "TIM HORTONS #4523",
        "merchant_name": "Tim Hortons",
        "original_description": "POS TIM HORTONS #4523 TORONTO",
        "pending": False,
        "iso_currency_code": "CAD",
        "personal_finance_category": {
            "primary": "FOOD_AND_DRINK",
            "detailed": "FOOD_AND_DRINK_COFFEE",
            "confidence_level": "VERY_HIGH",
        },
    }
    record.update(overrides)
    return record


def make_client(handler):
    """Create a PlaidClient whose requests are answered by ``handler``."""
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return PlaidClient("client-123", "secret-456", http_client=http)


class TestTransactionsSync:
    """Tests for fetching delta pages."""

    def test_parses_page(self):
        """Added, modified and removed records are parsed from the body."""

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "added": [plaid_record("t1", 4.35)],
                    "modified": [plaid_record("t2", -1200.0, pending=True)],
                    "removed": [{"transaction_id": "t3"}],
                    "next_cursor": "cursor-abc",
                    "has_more": True,
                },
            )

        page = make_client(handler).transactions_sync("access-token")

        assert page.next_cursor == "cursor-abc"
        assert page.has_more
        added = page.added[0]
        assert added.external_id == "t1"
        assert added.amount == Decimal("4.35")
        assert added.date == date(2024, 3, 10)
        assert added.description == "Tim Hortons"
        assert added.currency == "CAD"
        assert added.category_label == "FOOD_AND_DRINK_COFFEE"
        assert added.category_confidence == 0.95
        assert page.modified[0].pending
        assert page.modified[0].amount == Decimal("-1200.0")
        assert [r.external_id for r in page.removed] == ["t3"]

    def test_request_body(self):
        """Credentials and cursor travel in the JSON body."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"added": [], "has_more": False})

        make_client(handler).transactions_sync("access-token", cursor="cursor-1")

        assert seen["url"] == "https://sandbox.plaid.com/transactions/sync"
        assert seen["body"]["client_id"] == "client-123"
        assert seen["body"]["secret"] == "secret-456"
        assert seen["body"]["access_token"] == "access-token"
        assert seen["body"]["cursor"] == "cursor-1"

    def test_first_page_has_no_cursor(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        page = make_client(handler).transactions_sync("access-token")

        assert "cursor" not in seen["body"]
        assert not page.has_more
        assert page.added == []

    def test_malformed_records_skipped(self):
        """Records without an ID, date or amount are dropped."""

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "added": [
                        plaid_record("good", 10),
                        plaid_record("no-date", 10, date=None),
                        plaid_record("bad-amount", "ten"),
                        {"amount": 3, "date": "2024-03-10"},
                    ]
                },
            )

        page = make_client(handler).transactions_sync("access-token")

        assert [r.external_id for r in page.added] == ["good"]

    @pytest.mark.parametrize(
        "level,expected",
        [("VERY_HIGH", 0.95), ("high", 0.85), ("MEDIUM", 0.6), ("LOW", 0.3), ("UNKNOWN", None), (None, None)],
    )
    def test_confidence_levels(self, level, expected):
        record = plaid_record("t1", 1)
        record["personal_finance_category"]["confidence_level"] = level

        def handler(request):
            return httpx.Response(200, json={"added": [record]})

        page = make_client(handler).transactions_sync("access-token")

        assert page.added[0].category_confidence == expected

    def test_missing_category(self):
        """Records without a personal finance category have no label."""

        def handler(request):
            return httpx.Response(200, json={"added": [plaid_record("t1", 1, personal_finance_category=None)]})

        page = make_client(handler).transactions_sync("access-token")

        assert page.added[0].category_label is None
        assert page.added[0].category_confidence is None


class TestErrors:
    """Tests for error classification."""

    def test_login_required_not_retryable(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"error_code": "ITEM_LOGIN_REQUIRED", "error_message": "the login details have changed"},
            )

        with pytest.raises(AggregatorError) as exc_info:
            make_client(handler).transactions_sync("access-token")

        assert not exc_info.value.retryable
        assert exc_info.value.code == "ITEM_LOGIN_REQUIRED"
        assert "re-authentication" in str(exc_info.value)

    def test_server_error_retryable(self):
        def handler(request):
            return httpx.Response(500, json={"error_code": "INTERNAL_SERVER_ERROR", "error_message": "oops"})

        with pytest.raises(AggregatorError) as exc_info:
            make_client(handler).transactions_sync("access-token")

        assert exc_info.value.retryable
        assert "INTERNAL_SERVER_ERROR" in str(exc_info.value)

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(AggregatorError) as exc_info:
            make_client(handler).transactions_sync("access-token")

        assert exc_info.value.retryable
        assert exc_info.value.code == "UNKNOWN"

    def test_non_object_bodies(self):
        def error_handler(request):
            return httpx.Response(400, json=["unexpected"])

        def success_handler(request):
            return httpx.Response(200, json=["unexpected"])

        with pytest.raises(AggregatorError) as exc_info:
            make_client(error_handler).transactions_sync("access-token")
        assert exc_info.value.code == "UNKNOWN"

        with pytest.raises(AggregatorError):
            make_client(success_handler).transactions_sync("access-token")

    def test_transport_error_retryable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AggregatorError) as exc_info:
            make_client(handler).transactions_sync("access-token")

        assert exc_info.value.retryable

    def test_refresh_posts_token(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"request_id": "r1"})

        make_client(handler).transactions_refresh("access-token")

        assert seen["url"].endswith("/transactions/refresh")
        assert seen["body"]["access_token"] == "access-token"


class TestFactory:
    """Tests for building clients from the environment."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PLAID_CLIENT_ID", "env-client")
        monkeypatch.setenv("PLAID_SECRET", "env-secret")
        monkeypatch.setenv("PLAID_ENV", "production")

        client = create_plaid_client()

        assert client.client_id == "env-client"
        assert client.environment == "production"

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("PLAID_CLIENT_ID", raising=False)
        monkeypatch.delenv("PLAID_SECRET", raising=False)

        with pytest.raises(ValidationError):
            create_plaid_client()

    def test_unknown_environment(self):
        with pytest.raises(ValidationError):
            create_plaid_client("id", "secret", environment="staging")

        with pytest.raises(ValueError):
            PlaidClient("id", "secret", environment="staging")
