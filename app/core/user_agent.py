"""
Best-effort device title from the User-Agent header.

Only used to label sessions in the device list; never trusted for any
security decision.
"""

import re

UNKNOWN_DEVICE = "Unknown device"
_MAX_TITLE_LENGTH = 50

_AGENT_RE = re.compile(
    r"(Chrome|Firefox|Safari|Edge|Opera|node-superagent|python-httpx|curl)/(\d+)",
    re.IGNORECASE,
)


def parse_device_title(user_agent: str | None) -> str:
    """Return e.g. "Chrome 120" for known agents, else the raw header truncated."""
    if not user_agent or not user_agent.strip():
        return UNKNOWN_DEVICE

    match = _AGENT_RE.search(user_agent)
    if match:
        return f"{match.group(1)} {match.group(2)}"

    return user_agent.strip()[:_MAX_TITLE_LENGTH]
