"""License key and customer id derivation.

Keys are a truncated SHA-256 digest, so they cannot be turned back into the
customer email. Uniqueness is enforced by the store; the issuer retries on a
collision.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime

from corebridge_licensing.licensing.clock import to_naive_utc

KEY_GROUP_SIZE = 4
CUSTOMER_ID_LENGTH = 16


def generate_license_key(
    plugin_id: str,
    customer_email: str,
    *,
    prefix: str = "CB",
    length: int = 20,
    now: datetime | None = None,
    salt: str | None = None,
) -> str:
    """Generate a license key such as ``CB-1A2B-3C4D-5E6F-7A8B-9C0D``.

    Args:
        plugin_id: Plugin the license is bound to.
        customer_email: Customer the license is issued to.
        prefix: Fixed tag placed in front of the key.
        length: Number of hex characters kept from the digest.
        now: Timestamp mixed into the digest (defaults to the current time).
        salt: Random salt mixed into the digest (fresh per call by default).

    Returns:
        The formatted key.
    """
    # Naive values are UTC, not local time.
    now = to_naive_utc(now).replace(tzinfo=UTC) if now else datetime.now(UTC)
    salt = salt if salt is not None else secrets.token_hex(8)
    timestamp_ms = int(now.timestamp() * 1000)

    digest = hashlib.sha256(
        f"{plugin_id}-{customer_email}-{timestamp_ms}-{salt}".encode()
    ).hexdigest()
    body = digest[:length].upper()
    groups = [body[i : i + KEY_GROUP_SIZE] for i in range(0, len(body), KEY_GROUP_SIZE)]
    return "-".join([prefix, *groups])


def derive_customer_id(email: str) -> str:
    """Deterministic customer id: the same email always maps to the same id."""
    return hashlib.sha256(email.encode()).hexdigest()[:CUSTOMER_ID_LENGTH].upper()
