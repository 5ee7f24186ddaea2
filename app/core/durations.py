"""
Duration strings for token lifetimes.

Accepted form is ``<integer><unit>`` with unit one of s, m, h, d
("30s", "15m", "1h", "7d").  Anything else falls back to a fixed
20-second TTL.  The fallback is kept so a typo never yields an
unbounded lifetime, and it is logged at WARNING so the operator sees
that the configured value was ignored.
"""

import logging
import re
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

FALLBACK_TTL = timedelta(seconds=20)

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}


def parse_duration(value: str) -> timedelta:
    match = _DURATION_RE.match(value.strip()) if value else None
    if match is None:
        logger.warning(
            "Unparseable duration %r, falling back to %d seconds",
            value,
            FALLBACK_TTL.total_seconds(),
        )
        return FALLBACK_TTL

    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])


def expiration_from_now(ttl: str | timedelta, now: datetime | None = None) -> datetime:
    """Return ``now + ttl`` as an aware UTC datetime."""
    if isinstance(ttl, str):
        ttl = parse_duration(ttl)
    return (now or datetime.now(timezone.utc)) + ttl
