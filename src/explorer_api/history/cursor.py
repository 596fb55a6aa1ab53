"""Request validation and the dateFrom + limit history window.

Callers page through history by re-issuing the query with date_from set
to the last_update of the newest entry of the previous page. With the
default inclusive lower bound a transaction sitting exactly on the
boundary is returned again at the start of the next page; callers that
need uniqueness across pages deduplicate by hash.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from explorer_api.exceptions import InvalidRequestError
from explorer_api.models import TxHistoryEntry


def validate_addresses(addresses: Sequence[str] | None, request_limit: int) -> list[str]:
    """Check the address list length is in (0, request_limit].

    Raises InvalidRequestError naming the limit otherwise.
    """
    if not addresses or len(addresses) > request_limit:
        raise InvalidRequestError(
            f"Addresses request length should be (0, {request_limit}]"
        )
    if any(not isinstance(address, str) or not address for address in addresses):
        raise InvalidRequestError("Addresses should be non-empty strings")
    return list(addresses)


def parse_date_from(value: str | datetime | None) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidRequestError("DateFrom should be a valid datetime") from exc
    else:
        raise InvalidRequestError("DateFrom should be a valid datetime")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class HistoryCursor:
    """One page request: transactions at or after date_from, at most limit."""

    date_from: datetime
    limit: int

    @classmethod
    def from_request(
        cls,
        date_from: str | datetime | None,
        limit: int | None,
        max_limit: int,
    ) -> HistoryCursor:
        """Validate caller input. limit defaults to, and is capped at, max_limit."""
        parsed = parse_date_from(date_from)
        if limit is None:
            limit = max_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidRequestError("Limit should be a positive integer")
        return cls(date_from=parsed, limit=min(limit, max_limit))

    def next_page(self, page: Sequence[TxHistoryEntry]) -> HistoryCursor | None:
        """Cursor for the page following page, or None when page is empty."""
        if not page:
            return None
        newest = max(entry.last_update for entry in page)
        return HistoryCursor(date_from=newest, limit=self.limit)
