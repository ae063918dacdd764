"""Utility functions for feedledger."""

from feedledger.utils.date_parser import parse_date, parse_vendor_datetime, utcnow
from feedledger.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_vendor_datetime", "utcnow", "parse_amount"]
