"""
Pluggable encryption primitives.

The pipeline never assumes a specific cipher. It only relies on:

    encrypt(content: str, key: str) -> bytes   (raises on failure)

plus an availability check performed once before a run starts.
Primitives are looked up by the configured ``encryptor`` name.
"""

from __future__ import annotations

import hashlib
from typing import Callable, Dict, Optional, Protocol

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from .config import AES_NONCE_SIZE, AES_TAG_SIZE


class EncryptionError(RuntimeError):
    """Raised when a primitive cannot encrypt the given content."""


class EncryptionPrimitive(Protocol):
    name: str

    def is_available(self) -> bool:
        ...

    def encrypt(self, content: str, key: str) -> bytes:
        ...


def derive_key(key: str) -> bytes:
    """Normalize an arbitrary-length session key to 32 bytes."""
    return hashlib.sha256(key.encode("utf-8")).digest()


class AesGcmPrimitive:
    """
    AES-256-GCM via pycryptodome.

    Output layout: ``nonce | tag | ciphertext``.
    """

    name = "aes-gcm"

    def is_available(self) -> bool:
        return hasattr(AES, "MODE_GCM")

    def encrypt(self, content: str, key: str) -> bytes:
        if not key:
            raise EncryptionError("Encryption key is empty")

        cipher = AES.new(derive_key(key), AES.MODE_GCM, nonce=get_random_bytes(AES_NONCE_SIZE))
        ciphertext, tag = cipher.encrypt_and_digest(content.encode("utf-8"))
        return cipher.nonce + tag + ciphertext

    def decrypt(self, blob: bytes, key: str) -> str:
        nonce = blob[:AES_NONCE_SIZE]
        tag = blob[AES_NONCE_SIZE:AES_NONCE_SIZE + AES_TAG_SIZE]
        ciphertext = blob[AES_NONCE_SIZE + AES_TAG_SIZE:]

        cipher = AES.new(derive_key(key), AES.MODE_GCM, nonce=nonce)
        try:
            payload = cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError as e:
            raise EncryptionError(f"Decryption failed: {e}") from e
        return payload.decode("utf-8")


class IdentityPrimitive:
    """No-op primitive: returns the content UTF-8 encoded."""

    name = "identity"

    def is_available(self) -> bool:
        return True

    def encrypt(self, content: str, key: str) -> bytes:
        return content.encode("utf-8")


PRIMITIVES: Dict[str, Callable[[], EncryptionPrimitive]] = {
    AesGcmPrimitive.name: AesGcmPrimitive,
    IdentityPrimitive.name: IdentityPrimitive,
}


def load_primitive(name: str) -> Optional[EncryptionPrimitive]:
    """Return the primitive registered under ``name``, or None."""
    factory = PRIMITIVES.get(name.lower())
    if factory is None:
        return None
    return factory()
