"""PSK derivation from key exchange secrets using SHA-512/256."""

import base64
from typing import Iterable

from Crypto.Hash import SHA512

from .types import SharedSecret


def combine(secrets: Iterable[SharedSecret]) -> bytes:
    """
    Combine shared secrets into one key.

    PSK = SHA-512/256(secret_1 || secret_2 || ... || secret_n)

    Every secret is hashed in order, empty ones included, so the
    result depends on the order of ``secrets``.

    Args:
        secrets: Shared secrets from one exchange, in request order

    Returns:
        32 byte digest
    """
    h = SHA512.new(truncate="256")
    for secret in secrets:
        h.update(secret.payload)
    return h.digest()


def generate_psk(secrets: Iterable[SharedSecret]) -> str:
    """Combine secrets into a base64 encoded key, the format WireGuard expects."""
    return base64.b64encode(combine(secrets)).decode("ascii")
