"""Small request parsing helpers shared by the blueprints."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from flask import request


def get_pagination(default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """Read ``page``/``limit`` query args; raises ``ValueError`` on bad input."""
    page = max(1, int(request.args.get("page", 1)))
    limit = min(max_limit, max(1, int(request.args.get("limit", default_limit))))
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO date or datetime string into an aware UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_bool(value, default: bool | None = None) -> bool | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "t")


def parse_int(value, field: str, minimum: int | None = None, allow_none: bool = False) -> int | None:
    """Coerce a payload value to ``int``; raises ``ValueError`` naming ``field``."""
    if value is None or value == "":
        if allow_none:
            return None
        raise ValueError(f"{field} is required")
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number") from None
    if minimum is not None and number < minimum:
        raise ValueError(f"{field} must be at least {minimum}")
    return number


def period_start(period: str, now: datetime) -> datetime:
    """Start of a reporting window ending at ``now``."""
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "quarter":
        return now - timedelta(days=91)
    if period == "year":
        return now - timedelta(days=365)
    return now - timedelta(days=30)


def parse_date_range(args=None) -> tuple[datetime | None, datetime | None]:
    """Read ``start_date``/``end_date`` query args as a half-open UTC range.

    A bare ``YYYY-MM-DD`` end date covers that whole day.
    """
    args = request.args if args is None else args
    start = parse_datetime(args.get("start_date"))
    raw_end = (args.get("end_date") or "").strip()
    end = parse_datetime(raw_end)
    if end is not None and len(raw_end) == 10:
        end += timedelta(days=1)
    return start, end


def day_bounds(value: str | None, now: datetime) -> tuple[datetime, datetime]:
    """UTC midnight-to-midnight bounds for ``value`` (``YYYY-MM-DD``) or today."""
    start = parse_datetime(value) if value else now
    start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
