"""Canonical LNURL-pay metadata and its description-hash commitment.

The pay-request response carries the metadata string and the callback
commits to ``sha256(metadata)``. Both must come from ``build_metadata`` so the
bytes a payer hashes are exactly the bytes bound into the invoice.
"""

from __future__ import annotations

import hashlib
import json


def build_metadata(identifier: str, host_domain: str) -> str:
    """Return the compact JSON metadata array for ``identifier``."""
    pairs = [
        ["text/plain", f"Payment to {identifier}"],
        ["text/identifier", f"{identifier}@{host_domain}"],
    ]
    return json.dumps(pairs, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def metadata_hash(identifier: str, host_domain: str) -> str:
    return sha256_hex(build_metadata(identifier, host_domain))
