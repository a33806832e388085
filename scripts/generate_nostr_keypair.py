#!/usr/bin/env python3
"""Generate the Nostr keypair that signs zap receipts.

The public key goes into the LNURL server's environment as NOSTR_PUBKEY
(hex); it is advertised as ``nostrPubkey`` in pay-request responses and
turns on zap request handling. The secret key belongs to the settlement
notifier that publishes kind 9735 receipts, never to the LNURL server.

Requires: pip install nostr-sdk
"""

from __future__ import annotations

import sys

try:
    from nostr_sdk import Keys
except ImportError:
    print("Error: nostr-sdk not installed. Run: pip install nostr-sdk", file=sys.stderr)
    sys.exit(1)


def main() -> None:
    keys = Keys.generate()

    hex_pubkey = keys.public_key().to_hex()
    npub = keys.public_key().to_bech32()
    nsec = keys.secret_key().to_bech32()

    print("=== Zap receipt signing key ===")
    print()
    print("LNURL server (.env):")
    print(f"  NOSTR_PUBKEY={hex_pubkey}")
    print()
    print(f"npub (for display): {npub}")
    print()
    print("nsec (PRIVATE, settlement notifier only, never commit to git):")
    print(f"  {nsec}")


if __name__ == "__main__":
    main()
