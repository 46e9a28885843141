"""Utility functions for ledgersync."""

from ledgersync.utils.date_parser import parse_date, parse_optional_date
from ledgersync.utils.amount_parser import parse_amount, parse_optional_amount

__all__ = ["parse_date", "parse_optional_date", "parse_amount", "parse_optional_amount"]
