from __future__ import annotations

import asyncio
import base64
import binascii
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import MIN_KDF_ITERATIONS
from .domain.entities import EncryptedBlob
from .domain.exceptions import WrongPasswordError

DEFAULT_KDF_ITERATIONS = 120_000
SALT_BYTES = 16
NONCE_BYTES = 12
KEY_BYTES = 32


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def derive_key(password: str, salt: bytes, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    if iterations < MIN_KDF_ITERATIONS:
        raise ValueError("kdf_iterations_too_low")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_payload(payload: Any, password: str, *, iterations: int = DEFAULT_KDF_ITERATIONS) -> EncryptedBlob:
    """
    Encrypt a JSON-serializable payload under a password.

    Salt and nonce are fresh per call, so the same password never reuses a
    (key, nonce) pair. The GCM tag is appended to the ciphertext.
    """
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    salt = os.urandom(SALT_BYTES)
    nonce = os.urandom(NONCE_BYTES)
    key = derive_key(password, salt, iterations)
    cipher = AESGCM(key).encrypt(nonce, data, None)
    return EncryptedBlob(cipher=_b64encode(cipher), iv=_b64encode(nonce), salt=_b64encode(salt))


def decrypt_payload(blob: EncryptedBlob, password: str, *, iterations: int = DEFAULT_KDF_ITERATIONS) -> Any:
    """
    Reverse `encrypt_payload`.

    Every failure mode (wrong password, tampered blob, malformed encoding)
    raises the same `WrongPasswordError`.
    """
    if iterations < MIN_KDF_ITERATIONS:
        raise ValueError("kdf_iterations_too_low")
    try:
        salt = _b64decode(blob.salt)
        nonce = _b64decode(blob.iv)
        cipher = _b64decode(blob.cipher)
        key = derive_key(password, salt, iterations)
        data = AESGCM(key).decrypt(nonce, cipher, None)
        return json.loads(data.decode("utf-8"))
    except (InvalidTag, binascii.Error, ValueError, UnicodeError) as e:
        raise WrongPasswordError("decryption_failed") from e


class CryptoEngine:
    def __init__(self, iterations: int = DEFAULT_KDF_ITERATIONS) -> None:
        if iterations < MIN_KDF_ITERATIONS:
            raise ValueError("kdf_iterations_too_low")
        self.iterations = iterations

    async def encrypt(self, payload: Any, password: str) -> EncryptedBlob:
        return await asyncio.to_thread(encrypt_payload, payload, password, iterations=self.iterations)

    async def decrypt(self, blob: EncryptedBlob, password: str) -> Any:
        return await asyncio.to_thread(decrypt_payload, blob, password, iterations=self.iterations)
