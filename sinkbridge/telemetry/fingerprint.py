"""Content and time derived fingerprints for telemetry records."""

from __future__ import annotations

import base64
import hashlib
from datetime import datetime, timezone

from ..const import FINGERPRINT_SEPARATOR


def render_timestamp(moment: datetime) -> str:
    """Render *moment* as canonical UTC text, e.g. ``2024-01-02T03:04:05.000006Z``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="microseconds").replace("+00:00", "Z")


def fingerprint(
    timestamp_text: str,
    raw_line: str,
    separator: str = FINGERPRINT_SEPARATOR,
) -> str:
    """Return the URL-safe base64 SHA-1 digest of ``timestamp_text|raw_line``.

    The sink echoes this value back as proof of receipt, so it must stay
    stable for a given pair of inputs.
    """
    material = separator.join((timestamp_text, raw_line)).encode("utf-8")
    digest = hashlib.sha1(material).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


__all__ = ["fingerprint", "render_timestamp"]
