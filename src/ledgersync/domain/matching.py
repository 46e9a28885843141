"""Document matching: rank ledger transactions against an extracted document.

Scoring is pure and read-only. The full-document pass compares the document
total; transactions it does not match get a weaker line-item pass that
compares individual line amounts. The same transaction may be proposed for
several documents.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Optional

from ledgersync.database.base import Database
from ledgersync.domain.entities import (
    DocumentMatch,
    DocumentType,
    ExtractedDocument,
    LineItem,
    Transaction,
    TransactionStatus,
)
from ledgersync.utils.amount_parser import parse_optional_amount
from ledgersync.utils.date_parser import parse_optional_date

logger = logging.getLogger("ledgersync.matching")

MATCH_WINDOW_DAYS = 7
AMOUNT_TOLERANCE = Decimal("0.05")

# Full-document pass weights
FULL_BASE = 0.5
FULL_DATE_WEIGHT = 0.3
FULL_AMOUNT_WEIGHT = 0.3
FULL_TEXT_WEIGHT = 0.2

# Line-item pass weights
PARTIAL_BASE = 0.3
PARTIAL_DATE_WEIGHT = 0.2
PARTIAL_AMOUNT_WEIGHT = 0.2
PARTIAL_TEXT_WEIGHT = 0.15
PARTIAL_CAP = 0.8


def string_similarity(first: str, second: str) -> float:
    """Share of the shorter string's characters found in the longer one.

    Returns a ratio over the longer string's length, so identical strings
    score 1.0. Comparison is case-insensitive.
    """
    first, second = first.lower(), second.lower()
    longer, shorter = (first, second) if len(first) > len(second) else (second, first)
    if not longer:
        return 1.0
    matches = sum(1 for char in shorter if char in longer)
    return matches / len(longer)


def _money(value: Decimal) -> str:
    return f"${abs(value):.2f}"


def _days_phrase(days: int) -> str:
    if days == 0:
        return "Same date"
    return f"{days} day{'' if days == 1 else 's'} apart"


def _usable_amount(amount: Optional[Decimal]) -> bool:
    return amount is not None and amount.is_finite() and amount != 0


def _within_tolerance(amount: Decimal, target: Decimal) -> bool:
    return abs(amount - target) <= target * AMOUNT_TOLERANCE


def _accuracy(amount: Decimal, target: Decimal) -> float:
    return max(0.0, 1.0 - float(abs(amount - target) / target))


def _date_score(days: int) -> float:
    return (MATCH_WINDOW_DAYS - days) / MATCH_WINDOW_DAYS


def _score_document(
    document: ExtractedDocument, total: Decimal, transaction: Transaction, days: int
) -> Optional[DocumentMatch]:
    if not _within_tolerance(transaction.amount, total):
        return None

    confidence = FULL_BASE
    confidence += _date_score(days) * FULL_DATE_WEIGHT
    confidence += _accuracy(transaction.amount, total) * FULL_AMOUNT_WEIGHT

    reasons = [f"Amount match: {_money(total)} vs {_money(transaction.amount)}", _days_phrase(days)]
    if document.vendor and transaction.description:
        similarity = string_similarity(document.vendor, transaction.description)
        confidence += similarity * FULL_TEXT_WEIGHT
        reasons.append(f"Vendor similarity {similarity:.0%}")

    return DocumentMatch(
        transaction_id=transaction.id,
        confidence=min(confidence, 1.0),
        reason=", ".join(reasons),
    )


def _score_line_items(
    document: ExtractedDocument, transaction: Transaction, days: int
) -> Optional[DocumentMatch]:
    for item in document.line_items:
        if not _usable_amount(item.amount):
            continue
        item_amount = abs(item.amount)
        if not _within_tolerance(transaction.amount, item_amount):
            continue

        confidence = PARTIAL_BASE
        confidence += _date_score(days) * PARTIAL_DATE_WEIGHT
        confidence += _accuracy(transaction.amount, item_amount) * PARTIAL_AMOUNT_WEIGHT

        reasons = [
            f"Line item match: '{item.description}' {_money(item_amount)} vs {_money(transaction.amount)}",
            _days_phrase(days),
        ]
        text = document.vendor or item.description
        if text and transaction.description:
            similarity = string_similarity(text, transaction.description)
            confidence += similarity * PARTIAL_TEXT_WEIGHT
            reasons.append(f"Description similarity {similarity:.0%}")

        return DocumentMatch(
            transaction_id=transaction.id,
            confidence=min(confidence, PARTIAL_CAP),
            reason=", ".join(reasons),
            partial=True,
        )
    return None


def find_transaction_matches(
    document: ExtractedDocument, candidates: Iterable[Transaction]
) -> list[DocumentMatch]:
    """Rank candidate transactions for a document, best first.

    Returns an empty list when the document is not a financial document or
    lacks a usable total amount or a date.
    """
    if not document.is_financial or not _usable_amount(document.amount) or document.date is None:
        return []

    total = abs(document.amount)
    in_window: list[tuple[Transaction, int]] = []
    for transaction in candidates:
        if transaction.status == TransactionStatus.REMOVED:
            continue
        days = abs((transaction.date - document.date).days)
        if days > MATCH_WINDOW_DAYS:
            continue
        in_window.append((transaction, days))

    matches: list[DocumentMatch] = []
    matched: set[str] = set()
    for transaction, days in in_window:
        match = _score_document(document, total, transaction, days)
        if match is not None:
            matches.append(match)
            matched.add(transaction.id)

    if document.line_items:
        for transaction, days in in_window:
            if transaction.id in matched:
                continue
            match = _score_line_items(document, transaction, days)
            if match is not None:
                matches.append(match)

    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches


class MatchingService:
    """Service that loads candidate transactions and matches documents."""

    def __init__(self, db: Database):
        self.db = db

    def match_document(
        self,
        document: ExtractedDocument,
        business_id: str,
        window_days: int = MATCH_WINDOW_DAYS,
        account_id: Optional[str] = None,
    ) -> list[DocumentMatch]:
        """Match a document against active transactions around its date."""
        if document.date is None or not _usable_amount(document.amount):
            logger.debug("Document lacks amount or date; no matching attempted")
            return []

        window = timedelta(days=window_days)
        candidates = self.db.list_transactions(
            business_id,
            account_id=account_id,
            start_date=document.date - window,
            end_date=document.date + window,
            status=TransactionStatus.ACTIVE,
        )
        matches = find_transaction_matches(document, candidates)
        logger.info(
            "Matched document (%s, %s) against %d candidates: %d matches",
            document.vendor,
            document.date,
            len(candidates),
            len(matches),
        )
        return matches


def parse_document(data: dict) -> ExtractedDocument:
    """Build an ExtractedDocument from extraction-service JSON fields.

    Raises:
        ValueError: If the data is not a JSON object or holds an unparseable value
    """
    if not isinstance(data, dict):
        raise ValueError("Document must be a JSON object")
    vendor = data.get("vendor")
    raw_type = str(data.get("document_type") or data.get("documentType") or "receipt").lower()
    try:
        document_type = DocumentType(raw_type)
    except ValueError:
        document_type = DocumentType.OTHER

    items = tuple(
        LineItem(
            description=str(item.get("description", "")),
            amount=parse_optional_amount(item.get("amount")),
            quantity=parse_optional_amount(item.get("quantity")),
        )
        for item in data.get("line_items") or data.get("lineItems") or []
        if isinstance(item, dict)
    )

    return ExtractedDocument(
        document_type=document_type,
        vendor=str(vendor) if vendor else None,
        amount=parse_optional_amount(data.get("amount")),
        currency=data.get("currency") or "USD",
        date=parse_optional_date(data.get("date")),
        tax=parse_optional_amount(data.get("tax")),
        line_items=items,
        confidence=float(data.get("confidence") or 0.0),
    )
