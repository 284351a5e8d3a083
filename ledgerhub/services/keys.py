from __future__ import annotations

from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from ledgerhub.core.errors import InvalidRequest


@dataclass(frozen=True)
class GeneratedKey:
    public_key: str
    # Returned to the caller once at creation and never persisted.
    private_key: str


def generate_key() -> GeneratedKey:
    private = Ed25519PrivateKey.generate()
    private_raw = private.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_raw = private.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return GeneratedKey(public_key=public_raw.hex(), private_key=private_raw.hex())


def validate_public_key(value: str) -> str:
    # External keys must be raw Ed25519 public keys in hex; normalize casing.
    try:
        raw = bytes.fromhex(value)
        Ed25519PublicKey.from_public_bytes(raw)
    except ValueError as exc:
        raise InvalidRequest(f"invalid external key: {value[:16]}") from exc
    return raw.hex()
