"""Summary: Encoding for OAuth tokens kept in the credential table.

Importance: Keeps Google access and refresh tokens out of the database in plain text.
Alternatives: Use a dedicated secrets manager or the cryptography package.
"""

from __future__ import annotations

import base64
import hashlib
import hmac


TOKEN_PREFIX = "v1."


class TokenCodec:
    """Summary: Reversible, versioned token encoder.

    Importance: Lets the credential store persist tokens it must later replay to Google.
    Alternatives: Store only refresh tokens and mint access tokens on every request.
    """

    def __init__(self, secret: str) -> None:
        self._key = hashlib.sha256((secret or "akronom").encode("utf-8")).digest()

    def encode(self, plaintext: str) -> str:
        """Summary: Encode a token into a prefixed urlsafe string.

        Importance: The prefix lets future codec versions coexist with stored rows.
        Alternatives: Store the codec version in a separate column.
        """

        raw = plaintext.encode("utf-8")
        masked = _xor(raw, _keystream(self._key, len(raw)))
        return TOKEN_PREFIX + base64.urlsafe_b64encode(masked).decode("ascii")

    def decode(self, payload: str) -> str:
        """Summary: Decode a value produced by encode.

        Importance: Rejects rows written by an unknown codec instead of returning garbage.
        Alternatives: Attempt every known codec version in turn.
        """

        if not payload.startswith(TOKEN_PREFIX):
            raise ValueError("Unsupported token encoding")
        masked = base64.urlsafe_b64decode(payload[len(TOKEN_PREFIX):].encode("ascii"))
        return _xor(masked, _keystream(self._key, len(masked))).decode("utf-8")


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(left ^ right for left, right in zip(data, key))


def _keystream(key: bytes, length: int) -> bytes:
    """Derive `length` bytes by running HMAC-SHA256 over a block counter."""

    blocks: list[bytes] = []
    produced = 0
    counter = 0
    while produced < length:
        block = hmac.new(key, counter.to_bytes(4, "big"), hashlib.sha256).digest()
        blocks.append(block)
        produced += len(block)
        counter += 1
    return b"".join(blocks)[:length]
