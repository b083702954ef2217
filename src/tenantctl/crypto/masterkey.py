"""Master-key encryption for secrets stored in connection profiles."""

from __future__ import annotations

import base64
import os
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_LEN = 12
KEY_LEN = 32


class MasterKeyError(ValueError):
    """Raised when the master key is unusable or a secret cannot be decrypted."""


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def load_or_create_master_key(path: Path) -> bytes:
    if path.exists():
        try:
            key = base64.b64decode(path.read_text(encoding="utf-8").strip(), validate=True)
        except Exception as exc:
            raise MasterKeyError(f"invalid master key file: {path}") from exc
        if len(key) != KEY_LEN:
            raise MasterKeyError(f"master key must decode to {KEY_LEN} bytes: {path}")
        return key

    path.parent.mkdir(parents=True, exist_ok=True)
    key = AESGCM.generate_key(bit_length=KEY_LEN * 8)
    path.write_text(base64.b64encode(key).decode("ascii") + "\n", encoding="utf-8")
    _chmod_owner_only(path)
    return key


def encrypt_secret(plaintext: str, key: bytes) -> str:
    nonce = os.urandom(NONCE_LEN)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt_secret(token: str, key: bytes) -> str:
    try:
        raw = base64.b64decode(token, validate=True)
    except Exception as exc:
        raise MasterKeyError("encrypted secret is not valid base64") from exc
    if len(raw) <= NONCE_LEN:
        raise MasterKeyError("encrypted secret is truncated")
    try:
        plaintext = AESGCM(key).decrypt(raw[:NONCE_LEN], raw[NONCE_LEN:], None)
    except InvalidTag as exc:
        raise MasterKeyError("secret was encrypted with a different master key") from exc
    return plaintext.decode("utf-8")
