"""Tests for document-to-transaction matching."""

from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

import pytest

from conftest import BUSINESS_ID, USER_ID
from ledgersync.domain.entities import (
    DocumentType,
    ExtractedDocument,
    LineItem,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledgersync.domain.matching import (
    PARTIAL_CAP,
    MatchingService,
    find_transaction_matches,
    parse_document,
    string_similarity,
)

RECEIPT_DATE = date(2024, 3, 10)


def make_transaction(
    txn_id: str,
    amount: str,
    txn_date: date = RECEIPT_DATE,
    description: str = "TIM HORTONS #4523",
    status: TransactionStatus = TransactionStatus.ACTIVE,
) -> Transaction:
    return Transaction(
        id=txn_id,
        business_id=BUSINESS_ID,
        account_id="acc-1",
        type=TransactionType.EXPENSE,
        amount=Decimal(amount),
        currency="USD",
        date=txn_date,
        description=description,
        external_id=None,
        category_id=None,
        confidence=None,
        is_reconciled=False,
        is_flagged=False,
        status=status,
        notes=None,
        created_by=None,
        created_at=datetime(2024, 3, 10, tzinfo=UTC),
    )


def make_receipt(**overrides) -> ExtractedDocument:
    fields = {
        "document_type": DocumentType.RECEIPT,
        "vendor": "Tim Hortons",
        "amount": Decimal("54.32"),
        "date": RECEIPT_DATE,
    }
    fields.update(overrides)
    return ExtractedDocument(**fields)


class TestStringSimilarity:
    """Tests for the vendor similarity measure."""

    def test_identical_strings(self):
        assert string_similarity("Tim Hortons", "Tim Hortons") == 1.0

    def test_case_insensitive(self):
        assert string_similarity("TIM HORTONS", "tim hortons") == 1.0

    def test_disjoint_strings(self):
        assert string_similarity("abc", "xyz") == 0.0

    def test_ratio_over_longer_string(self):
        assert string_similarity("ab", "abcd") == 0.5

    def test_empty_strings(self):
        assert string_similarity("", "") == 1.0
        assert string_similarity("", "abc") == 0.0


class TestFindTransactionMatches:
    """Tests for the pure matching engine."""

    def test_non_finite_amounts_match_nothing(self):
        candidates = [make_transaction("t1", "54.32")]

        assert find_transaction_matches(make_receipt(amount=Decimal("NaN")), candidates) == []

        receipt = make_receipt(
            amount=Decimal("500.00"),
            line_items=(
                LineItem(description="Broken", amount=Decimal("Infinity")),
                LineItem(description="Lunch", amount=Decimal("54.32")),
            ),
        )
        matches = find_transaction_matches(receipt, candidates)
        assert [m.transaction_id for m in matches] == ["t1"]
        assert matches[0].partial

    def test_receipt_matches_bank_transaction(self):
        """A receipt for the same amount and date scores highly."""
        matches = find_transaction_matches(make_receipt(), [make_transaction("t1", "54.32")])

        assert len(matches) == 1
        match = matches[0]
        assert match.transaction_id == "t1"
        assert match.confidence >= 0.9
        assert not match.partial
        assert match.reason.startswith("Amount match: $54.32 vs $54.32, Same date")
        assert "Vendor similarity" in match.reason

    def test_exact_amount_same_date_without_vendor(self):
        """Exact amount on the same date scores at least 0.8 with no vendor."""
        document = make_receipt(vendor=None)

        matches = find_transaction_matches(document, [make_transaction("t1", "54.32")])

        assert matches[0].confidence >= 0.8
        assert "Vendor similarity" not in matches[0].reason

    @pytest.mark.parametrize("overrides", [{"date": None}, {"amount": None}, {"amount": Decimal("0")}])
    def test_missing_amount_or_date(self, overrides):
        """Documents without an amount or date never match."""
        document = make_receipt(**overrides)

        assert find_transaction_matches(document, [make_transaction("t1", "54.32")]) == []

    def test_non_financial_document(self):
        """A document the extractor marked as other never matches."""
        document = make_receipt(document_type=DocumentType.OTHER)

        assert find_transaction_matches(document, [make_transaction("t1", "54.32")]) == []

    def test_date_window(self):
        """Transactions more than seven days away are excluded."""
        candidates = [
            make_transaction("inside", "54.32", RECEIPT_DATE + timedelta(days=7)),
            make_transaction("outside", "54.32", RECEIPT_DATE - timedelta(days=8)),
        ]

        matches = find_transaction_matches(make_receipt(), candidates)

        assert [m.transaction_id for m in matches] == ["inside"]
        assert "7 days apart" in matches[0].reason

    def test_amount_tolerance(self):
        """Amounts within five percent of the total match; others do not."""
        candidates = [
            make_transaction("close", "57.00"),
            make_transaction("far", "58.00"),
            make_transaction("under", "51.00"),
        ]

        matches = find_transaction_matches(make_receipt(), candidates)

        assert {m.transaction_id for m in matches} == {"close"}

    def test_sorted_by_confidence(self):
        """Closer dates and amounts rank first."""
        candidates = [
            make_transaction("six-days", "54.32", RECEIPT_DATE + timedelta(days=6)),
            make_transaction("two-days", "54.32", RECEIPT_DATE - timedelta(days=2)),
            make_transaction("four-days", "54.32", RECEIPT_DATE + timedelta(days=4)),
        ]

        matches = find_transaction_matches(make_receipt(vendor=None), candidates)

        assert [m.transaction_id for m in matches] == ["two-days", "four-days", "six-days"]

    def test_confidence_bounds(self):
        """Confidence always stays within [0, 1]."""
        candidates = [
            make_transaction(f"t{i}", amount, RECEIPT_DATE + timedelta(days=i))
            for i, amount in enumerate(["54.32", "52.00", "56.50", "54.30", "55.00"])
        ]

        for match in find_transaction_matches(make_receipt(), candidates):
            assert 0.0 <= match.confidence <= 1.0

    def test_removed_transactions_ignored(self):
        """Transactions removed by the bank are not candidates."""
        removed = make_transaction("t1", "54.32", status=TransactionStatus.REMOVED)

        assert find_transaction_matches(make_receipt(), [removed]) == []

    def test_negative_document_total(self):
        """A refund receipt matches on magnitude."""
        matches = find_transaction_matches(
            make_receipt(amount=Decimal("-54.32")), [make_transaction("t1", "54.32")]
        )

        assert len(matches) == 1

    def test_line_item_match_is_partial(self):
        """A transaction matching one line item is a capped partial match."""
        document = make_receipt(
            vendor="Office Depot",
            amount=Decimal("100.00"),
            line_items=(
                LineItem(description="Printer paper", amount=Decimal("40.00")),
                LineItem(description="Toner", amount=Decimal("60.00")),
            ),
        )

        matches = find_transaction_matches(
            document, [make_transaction("t1", "40.00", description="OFFICE DEPOT 112")]
        )

        assert len(matches) == 1
        match = matches[0]
        assert match.partial
        assert match.confidence <= PARTIAL_CAP
        assert match.reason.startswith("Line item match: 'Printer paper' $40.00 vs $40.00")

    def test_full_match_not_repeated_as_partial(self):
        """A transaction matched on the total is not also a line-item match."""
        document = make_receipt(
            amount=Decimal("54.32"),
            line_items=(LineItem(description="Coffee and donuts", amount=Decimal("54.32")),),
        )

        matches = find_transaction_matches(document, [make_transaction("t1", "54.32")])

        assert len(matches) == 1
        assert not matches[0].partial

    def test_full_matches_rank_above_partial(self):
        """Partial matches never outrank a full match."""
        document = make_receipt(
            amount=Decimal("100.00"),
            line_items=(LineItem(description="Tim Hortons", amount=Decimal("25.00")),),
        )
        candidates = [
            make_transaction("item", "25.00"),
            make_transaction("total", "100.00", RECEIPT_DATE + timedelta(days=6)),
        ]

        matches = find_transaction_matches(document, candidates)

        assert [m.transaction_id for m in matches] == ["total", "item"]
        assert [m.partial for m in matches] == [False, True]

    def test_line_items_without_amounts_skipped(self):
        """Line items without an amount are ignored."""
        document = make_receipt(
            amount=Decimal("100.00"), line_items=(LineItem(description="Misc"),)
        )

        assert find_transaction_matches(document, [make_transaction("t1", "3.00")]) == []


class TestMatchingService:
    """Tests for matching against stored transactions."""

    def test_matches_stored_transactions(self, temp_db, chart, transaction_service):
        """Active transactions around the document date are candidates."""
        account_id = temp_db.create_account(BUSINESS_ID, "Checking")
        kept = transaction_service.create_transaction(
            BUSINESS_ID, account_id, TransactionType.EXPENSE, "54.32", RECEIPT_DATE,
            description="TIM HORTONS #4523", user_id=USER_ID,
        )
        removed = transaction_service.create_transaction(
            BUSINESS_ID, account_id, TransactionType.EXPENSE, "54.32", RECEIPT_DATE,
            description="TIM HORTONS #4523", user_id=USER_ID,
        )
        transaction_service.create_transaction(
            BUSINESS_ID, account_id, TransactionType.EXPENSE, "54.32", RECEIPT_DATE - timedelta(days=30),
        )
        temp_db.flag_removed(removed, "Removed by bank")

        matches = MatchingService(temp_db).match_document(make_receipt(), BUSINESS_ID)

        assert [m.transaction_id for m in matches] == [kept]

    def test_account_filter(self, temp_db, chart, transaction_service):
        """Matching can be limited to one account."""
        first = temp_db.create_account(BUSINESS_ID, "Checking")
        second = temp_db.create_account(BUSINESS_ID, "Savings")
        transaction_service.create_transaction(
            BUSINESS_ID, first, TransactionType.EXPENSE, "54.32", RECEIPT_DATE
        )
        wanted = transaction_service.create_transaction(
            BUSINESS_ID, second, TransactionType.EXPENSE, "54.32", RECEIPT_DATE
        )

        matches = MatchingService(temp_db).match_document(
            make_receipt(), BUSINESS_ID, account_id=second
        )

        assert [m.transaction_id for m in matches] == [wanted]

    def test_document_without_date(self, temp_db):
        """No lookup happens for a document without a date."""
        assert MatchingService(temp_db).match_document(make_receipt(date=None), BUSINESS_ID) == []


class TestParseDocument:
    """Tests for reading extraction-service JSON."""

    def test_snake_case_fields(self):
        document = parse_document(
            {
                "document_type": "receipt",
                "vendor": "Tim Hortons",
                "amount": 54.32,
                "date": "2024-03-10",
                "tax": "6.25",
                "line_items": [{"description": "Coffee", "amount": 3.5, "quantity": 2}],
                "confidence": 0.93,
            }
        )

        assert document.document_type == DocumentType.RECEIPT
        assert document.amount == Decimal("54.32")
        assert document.date == RECEIPT_DATE
        assert document.tax == Decimal("6.25")
        assert document.line_items == (
            LineItem(description="Coffee", amount=Decimal("3.5"), quantity=Decimal("2")),
        )
        assert document.confidence == pytest.approx(0.93)

    def test_camel_case_fields(self):
        document = parse_document(
            {"documentType": "INVOICE", "amount": "$1,200.00", "lineItems": [{"description": "Work"}]}
        )

        assert document.document_type == DocumentType.INVOICE
        assert document.amount == Decimal("1200.00")
        assert document.line_items[0].amount is None
        assert document.date is None

    def test_unknown_type_is_other(self):
        document = parse_document({"document_type": "selfie"})

        assert document.document_type == DocumentType.OTHER
        assert not document.is_financial

    def test_unparsable_amount(self):
        with pytest.raises(ValueError):
            parse_document({"amount": "lots"})

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-inf", float("nan")])
    def test_non_finite_amount_is_absent(self, amount):
        document = parse_document({"amount": amount, "date": "2024-03-10"})

        assert document.amount is None
        assert find_transaction_matches(document, [make_transaction("t1", "54.32")]) == []

    def test_non_string_fields(self):
        document = parse_document(
            {"document_type": 42, "vendor": 7, "amount": "54.32", "line_items": ["junk", {"amount": "3.50"}]}
        )

        assert document.document_type == DocumentType.OTHER
        assert document.vendor == "7"
        assert len(document.line_items) == 1

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_document(["receipt"])
