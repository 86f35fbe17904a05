"""Utilities for hashing, timestamps and text normalization."""

import hashlib
import re
from datetime import datetime, timezone

_WS = re.compile(r"\s+")


def hash_text(text: str) -> str:
    """Compute SHA256 hash of text. Deterministic."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def normalize_whitespace(text: str) -> str:
    return _WS.sub(" ", text or "").strip()


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds, so it survives a to_iso round trip."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def iso_now() -> str:
    """Current UTC timestamp as ISO string."""
    return to_iso(utc_now())


def to_iso(moment: datetime) -> str:
    """Millisecond-precision UTC ISO string with a trailing Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def parse_iso(value: str) -> datetime:
    """Inverse of to_iso; also accepts offsets produced by datetime.isoformat()."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def safe_name(value: str) -> str:
    """Filesystem-safe identifier (alnum, dash, underscore)."""
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in value)
