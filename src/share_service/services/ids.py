"""Item identifier generation."""

from __future__ import annotations

import secrets

ID_BYTES = 12


def generate_id() -> str:
    """
    Return a new 24-character lowercase hex identifier.

    The identifier is the only secret protecting anonymous reads, so it
    comes from the CSPRNG. Existing IDs are not checked: a collision in
    the 96-bit space silently overwrites.
    """
    return secrets.token_hex(ID_BYTES)
