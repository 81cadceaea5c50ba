"""Response Cipher - Fernet encryption of serialized response bodies.

Invariants:
    - decrypt(encrypt(body)) == body for every byte string (round-trip law)
    - The envelope is JSON: {"data": "<fernet token>"}
    - A key is always present: RESPONSE_ENCRYPTION_KEY, or one derived from SESSION_SECRET
"""

import base64
import hashlib
import json

from cryptography.fernet import Fernet

ENVELOPE_FIELD = "data"
ENCRYPTED_MARKER_HEADER = "x-content-encrypted"
ENCRYPTED_MARKER_VALUE = "fernet"


def derive_key(secret: str) -> bytes:
    """Derive a Fernet key (32 urlsafe-b64 bytes) from an arbitrary secret."""
    digest = hashlib.sha256(f"plataforma.response:{secret}".encode()).digest()
    return base64.urlsafe_b64encode(digest)


class ResponseCipher:
    """Encrypts outgoing bodies; decrypt() is the client-side inverse."""

    def __init__(self, key: bytes | str):
        self._fernet = Fernet(key)

    @classmethod
    def from_settings(cls, encryption_key: str, session_secret: str) -> "ResponseCipher":
        if encryption_key:
            return cls(encryption_key)
        return cls(derive_key(session_secret))

    def encrypt(self, body: bytes) -> str:
        return self._fernet.encrypt(body).decode("ascii")

    def decrypt(self, token: str | bytes) -> bytes:
        """Raises cryptography.fernet.InvalidToken on tampering or wrong key."""
        return self._fernet.decrypt(token)

    def seal(self, body: bytes) -> bytes:
        """Encrypt body and wrap it in the JSON response envelope."""
        return json.dumps({ENVELOPE_FIELD: self.encrypt(body)}).encode()

    def open_envelope(self, envelope: bytes) -> bytes:
        token = json.loads(envelope)[ENVELOPE_FIELD]
        return self.decrypt(token)
