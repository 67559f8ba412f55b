"""
Helper utilities for the Itinerary Planner system.

This module provides general utility functions used across the application.
"""

import re
import uuid
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from typing import TypeVar

T = TypeVar("T")

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with an optional prefix.

    Args:
        prefix: Optional prefix for the ID

    Returns:
        A unique ID string
    """
    unique_id = str(uuid.uuid4()).replace("-", "")
    if prefix:
        return f"{prefix}_{unique_id}"
    return unique_id


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def utc_now_iso() -> str:
    """Return the current time as an ISO-8601 UTC string."""
    return utc_now().isoformat()


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """
    Split an iterable into consecutive lists of at most `size` items.

    Args:
        items: Items to split
        size: Maximum chunk size (must be positive)

    Yields:
        Lists of consecutive items
    """
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    chunk: list[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def clean_json_response(text: str) -> str:
    """
    Strip markdown fences and surrounding prose from a model's JSON answer.

    Args:
        text: Raw model output

    Returns:
        The JSON object or array contained in the text
    """
    cleaned = _FENCE_PATTERN.sub("", text.strip()).strip()
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if not starts:
        return cleaned
    start = min(starts)
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if end < start:
        return cleaned[start:]
    return cleaned[start : end + 1]


def get_currency_symbol(currency_code: str) -> str:
    """
    Get the currency symbol for a currency code.

    Args:
        currency_code: ISO 4217 currency code

    Returns:
        Currency symbol or original code if not found
    """
    currency_symbols = {
        "USD": "$",
        "EUR": "€",
        "GBP": "£",
        "JPY": "¥",
        "INR": "₹",
        "AUD": "A$",
        "CAD": "C$",
        "CHF": "Fr",
    }
    return currency_symbols.get(currency_code, currency_code)


def format_price(amount: float, currency: str = "USD", decimal_places: int = 2) -> str:
    """
    Format a price with the appropriate currency symbol.

    Args:
        amount: Price amount
        currency: ISO 4217 currency code
        decimal_places: Number of decimal places to show

    Returns:
        Formatted price string
    """
    symbol = get_currency_symbol(currency)
    if currency in ["JPY"]:
        return f"{symbol}{int(amount)}"
    return f"{symbol}{amount:.{decimal_places}f}"

