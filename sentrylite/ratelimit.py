"""Rate limits imposed by the event ingestion pipeline.

A rate limit is a deadline per payload category. Until the deadline has
passed, payloads of that category should not be sent.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from enum import Enum

DEFAULT_RETRY_AFTER = timedelta(minutes=1)

_TOO_MANY_REQUESTS = 429
_MAX_DURATION_NS = 2**63 - 1
_NS_PER_SECOND = 1_000_000_000

_INTEGER = re.compile(r"[+-]?[0-9]+")
_RFC1123 = re.compile(
    r"([A-Za-z]{3}, [0-9]{2} [A-Za-z]{3} [0-9]{4} [0-9]{2}:[0-9]{2}:[0-9]{2}) [A-Z]{3,5}"
)


class Category(str, Enum):
    """Payload types that can be rate limited. ``ALL`` applies to every type."""

    ALL = ""
    ERROR = "error"
    TRANSACTION = "transaction"


_KNOWN_CATEGORIES = {category.value: category for category in Category}


def _normalize(category: Category | str) -> Category | str:
    if isinstance(category, Category):
        return category
    return _KNOWN_CATEGORIES.get(category, category)


def category_label(category: Category | str) -> str:
    """Return the category formatted for debugging, e.g. ``CategoryError``."""
    value = category.value if isinstance(category, Category) else str(category)
    if value == "":
        return "CategoryAll"
    return "Category" + "".join(word.title() for word in value.split())


class InvalidRetryAfter(ValueError):
    """A retry-after value could not be parsed.

    ``deadline`` holds a usable fallback deadline when one is defined.
    """

    def __init__(self, message: str, deadline: datetime | None = None) -> None:
        super().__init__(message)
        self.deadline = deadline


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


class RateLimits(dict):
    """Maps categories to the deadlines when their rate limits expire."""

    def deadline(self, category: Category | str) -> datetime | None:
        """Return the later of the category's deadline and the ``ALL`` deadline."""
        own = self.get(_normalize(category))
        everything = self.get(Category.ALL)
        if own is None:
            return everything
        if everything is None or own > everything:
            return own
        return everything

    def is_rate_limited(self, category: Category | str, now: datetime | None = None) -> bool:
        """Report whether the category is rate limited at ``now``."""
        deadline = self.deadline(category)
        return deadline is not None and deadline > _now(now)

    def merge(self, other: Mapping[Category | str, datetime]) -> None:
        """Merge ``other`` in, keeping the deadline furthest into the future."""
        for category, deadline in other.items():
            key = _normalize(category)
            current = self.get(key)
            if current is None or deadline > current:
                self[key] = deadline


def parse_xsrl_retry_after(value: str, now: datetime | None = None) -> datetime:
    """Parse a retry-after number of seconds from an X-Sentry-Rate-Limits entry.

    Negative, infinite, NaN and overflowing values count as zero; fractions
    round up to the next whole second.
    """
    now = _now(now)
    if not value or value != value.strip() or "_" in value:
        raise InvalidRetryAfter(f"invalid retry-after value: {value!r}")
    try:
        number = float(value)
    except ValueError:
        raise InvalidRetryAfter(f"invalid retry-after value: {value!r}") from None
    seconds = math.ceil(number) if math.isfinite(number) and number > 0 else 0
    if seconds * _NS_PER_SECOND > _MAX_DURATION_NS:
        seconds = 0
    return now + timedelta(seconds=seconds)


def parse_x_sentry_rate_limits(header: str, now: datetime | None = None) -> RateLimits:
    """Parse an X-Sentry-Rate-Limits header; unknown categories are ignored."""
    now = _now(now)
    limits = RateLimits()
    for limit in header.split(","):
        limit = limit.strip()
        if not limit:
            continue
        components = limit.split(":")
        try:
            retry_after = parse_xsrl_retry_after(components[0].strip(), now)
        except InvalidRetryAfter:
            continue
        categories = components[1] if len(components) > 1 else ""
        for name in categories.split(";"):
            category = _KNOWN_CATEGORIES.get(name.strip().lower())
            if category is None:
                continue
            current = limits.get(category)
            if current is None or retry_after > current:
                limits[category] = retry_after
    return limits


def _parse_rfc1123(value: str) -> datetime | None:
    match = _RFC1123.fullmatch(value)
    if match is None:
        return None
    try:
        parsed = datetime.strptime(match.group(1), "%a, %d %b %Y %H:%M:%S")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def parse_retry_after(value: str, now: datetime | None = None) -> datetime:
    """Parse a standard Retry-After header: whole seconds or an HTTP date.

    On invalid input raises InvalidRetryAfter whose ``deadline`` is one
    minute after ``now``.
    """
    now = _now(now)
    if value:
        if _INTEGER.fullmatch(value):
            seconds = int(value)
            if seconds >= 0:
                try:
                    return now + timedelta(seconds=seconds)
                except OverflowError:
                    pass
        else:
            date = _parse_rfc1123(value)
            if date is not None:
                return date
    raise InvalidRetryAfter(
        f"invalid retry-after input: {value!r}", deadline=now + DEFAULT_RETRY_AFTER
    )


def _header(headers: Mapping[str, object] | None, name: str) -> str:
    if not headers:
        return ""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() != wanted:
            continue
        if isinstance(value, str):
            return value
        if isinstance(value, Iterable):
            return next(iter(value), "")
        return str(value)
    return ""


def from_response(
    status_code: int,
    headers: Mapping[str, object] | None = None,
    now: datetime | None = None,
) -> RateLimits:
    """Build rate limits from an HTTP response's status code and headers."""
    now = _now(now)
    rate_limits = _header(headers, "X-Sentry-Rate-Limits")
    if rate_limits:
        return parse_x_sentry_rate_limits(rate_limits, now)
    if status_code == _TOO_MANY_REQUESTS:
        try:
            deadline = parse_retry_after(_header(headers, "Retry-After"), now)
        except InvalidRetryAfter as error:
            deadline = error.deadline
        return RateLimits({Category.ALL: deadline})
    return RateLimits()