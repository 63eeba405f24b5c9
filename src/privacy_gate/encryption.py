"""AES-GCM encryption for sovereign-tier local storage.

Ciphertext format: base64(iv || ciphertext+tag), 12-byte IV.
Password keys: PBKDF2-HMAC-SHA256, 100k iterations, 16-byte salt.

Keys are held by an explicit ``EncryptionSession`` rather than a
module-level manager.  The key bytes are zeroed when the session closes:

    with EncryptionSession.from_password("hunter2", salt) as session:
        blob = session.encrypt("hello")
        session.decrypt(blob)
"""

from __future__ import annotations
import base64
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

KEY_LENGTH = 32         # bytes, AES-256
IV_LENGTH = 12
SALT_LENGTH = 16
PBKDF2_ITERATIONS = 100_000


class EncryptionError(RuntimeError):
    """Key missing, session closed, or ciphertext failed authentication."""


def generate_key() -> bytes:
    return AESGCM.generate_key(bit_length=KEY_LENGTH * 8)


def derive_key_from_password(password: str, salt: bytes | None = None) -> tuple[bytes, bytes]:
    """Return (key, salt).  A random salt is generated when none is given."""
    salt = salt or os.urandom(SALT_LENGTH)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8")), salt


def export_key(key: bytes | bytearray) -> str:
    return base64.b64encode(key).decode("ascii")


def import_key(key_data: str) -> bytes:
    key = base64.b64decode(key_data)
    if len(key) != KEY_LENGTH:
        raise EncryptionError(f"expected a {KEY_LENGTH}-byte key, got {len(key)}")
    return key


def encrypt(plaintext: str, key: bytes | bytearray) -> str:
    iv = os.urandom(IV_LENGTH)
    ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return base64.b64encode(iv + ciphertext).decode("ascii")


def decrypt(ciphertext: str, key: bytes | bytearray) -> str:
    combined = base64.b64decode(ciphertext)
    iv, data = combined[:IV_LENGTH], combined[IV_LENGTH:]
    try:
        plaintext = AESGCM(key).decrypt(iv, data, None)
    except InvalidTag as e:
        raise EncryptionError("ciphertext failed authentication") from e
    return plaintext.decode("utf-8")


def hash_string(value: str) -> str:
    """Base64 SHA-256, used to check a key without storing it."""
    return base64.b64encode(hashlib.sha256(value.encode("utf-8")).digest()).decode("ascii")


class EncryptionSession:
    """Owns one key for the lifetime of a session scope.

    The session keeps its key in a private ``bytearray`` and zeroes it on
    ``close()``.  Only that buffer is wiped.  The ``bytes`` handed in by
    the caller (including those from ``generate_key`` and
    ``derive_key_from_password``) are immutable and stay in memory until
    collected, as does the copy each ``AESGCM`` object keeps internally.
    Pass a ``bytearray`` you wipe yourself if that matters.
    """

    __slots__ = ("_key", "salt")

    def __init__(self, key: bytes | bytearray, *, salt: bytes | None = None) -> None:
        if len(key) != KEY_LENGTH:
            raise EncryptionError(f"expected a {KEY_LENGTH}-byte key, got {len(key)}")
        self._key: bytearray | None = bytearray(key)
        self.salt = salt

    @classmethod
    def generate(cls) -> "EncryptionSession":
        return cls(generate_key())

    @classmethod
    def from_password(cls, password: str, salt: bytes | None = None) -> "EncryptionSession":
        key, salt = derive_key_from_password(password, salt)
        return cls(key, salt=salt)

    @property
    def is_open(self) -> bool:
        return self._key is not None

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self._require_key())

    def decrypt(self, ciphertext: str) -> str:
        return decrypt(ciphertext, self._require_key())

    def export(self) -> str:
        return export_key(self._require_key())

    def close(self) -> None:
        if self._key is not None:
            for i in range(len(self._key)):
                self._key[i] = 0
            self._key = None

    def _require_key(self) -> bytearray:
        if self._key is None:
            raise EncryptionError("encryption session is closed")
        return self._key

    def __enter__(self) -> "EncryptionSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
