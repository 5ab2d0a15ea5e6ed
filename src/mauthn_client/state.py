# src/mauthn_client/state.py

import secrets

STATE_BYTES = 16
STATE_LENGTH = STATE_BYTES * 2


def generate_state() -> str:
    """Returns a fresh CSRF state: 16 bytes from the OS CSPRNG, hex encoded."""
    return secrets.token_hex(STATE_BYTES)
