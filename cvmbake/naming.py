"""Generated names and idempotency tokens."""

import secrets
import time


def time_ordered_uuid() -> str:
    """A UUID-shaped string whose first 8 hex digits are the current Unix time."""
    unix = int(time.time()) & 0xFFFFFFFF
    rand = secrets.token_hex(12)
    return f"{unix:08x}-{rand[0:4]}-{rand[4:8]}-{rand[8:12]}-{rand[12:24]}"


def temp_name(prefix="cvmbake") -> str:
    """Name for a temporary resource, e.g. ``cvmbake_6712ab3f9c41``.

    The first 8 hex digits sort by creation time; the rest are random.
    """
    return f"{prefix}_{time_ordered_uuid().replace('-', '')[:12]}"
