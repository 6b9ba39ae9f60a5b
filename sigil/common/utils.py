"""
Helper signatures: now_utc, validity_window, max_validity_days, split_csv,
to_a_label, sha256_fingerprint.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

# Certificates are backdated so a peer whose clock lags still accepts them.
BACKDATE = timedelta(days=1)

# Latest notAfter an X.509 GeneralizedTime can hold.
MAX_NOT_AFTER = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def validity_window(days: int, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """(not_before, not_after) spanning exactly `days`, starting one day back."""
    not_before = (now or now_utc()) - BACKDATE
    return not_before, not_before + timedelta(days=days)


def max_validity_days(now: Optional[datetime] = None) -> int:
    """Largest `days` for which validity_window() stays within MAX_NOT_AFTER."""
    not_before = (now or now_utc()) - BACKDATE
    return (MAX_NOT_AFTER - not_before).days


def split_csv(raw: str) -> list[str]:
    """Split a comma-separated string, trimming tokens and dropping empties."""
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def to_a_label(name: str) -> str:
    """
    ASCII names pass through unchanged; internationalised names are
    IDNA-encoded (bücher.de -> xn--bcher-kva.de).
    Raises ValueError if the name cannot be encoded.
    """
    if name.isascii():
        return name
    try:
        return name.encode("idna").decode("ascii")
    except UnicodeError as exc:
        raise ValueError(f"{name!r} is not a valid internationalised domain name") from exc


def sha256_fingerprint(der: bytes) -> str:
    """Colon-separated upper-case SHA-256 digest, as `openssl x509 -fingerprint` prints it."""
    digest = hashlib.sha256(der).hexdigest().upper()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))
