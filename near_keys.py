import os
import json
import logging

import base58
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

logger = logging.getLogger("NearKeys")

KEY_TYPE_ED25519 = 0
ED25519_PREFIX = "ed25519:"


class KeyStoreError(Exception):
    """Raised when the signing key cannot be loaded."""


class PublicKey:
    def __init__(self, data, key_type=KEY_TYPE_ED25519):
        if len(data) != 32:
            raise ValueError(f"ed25519 public key must be 32 bytes, got {len(data)}")
        self.key_type = key_type
        self.data = bytes(data)

    @classmethod
    def from_string(cls, value):
        if value.startswith(ED25519_PREFIX):
            value = value[len(ED25519_PREFIX):]
        return cls(base58.b58decode(value))

    def __str__(self):
        return ED25519_PREFIX + base58.b58encode(self.data).decode()

    def __eq__(self, other):
        return isinstance(other, PublicKey) and (self.key_type, self.data) == (other.key_type, other.data)

    def __hash__(self):
        return hash((self.key_type, self.data))


class KeyPair:
    """
    Ed25519 key pair in NEAR encoding.
    Secret keys are 'ed25519:<base58>' of either seed+public (64 bytes) or a bare 32 byte seed.
    """
    def __init__(self, seed):
        self._private_key = Ed25519PrivateKey.from_private_bytes(seed)
        raw_public = self._private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.public_key = PublicKey(raw_public)

    @classmethod
    def from_string(cls, secret):
        if not secret.startswith(ED25519_PREFIX):
            raise KeyStoreError("Only ed25519 keys are supported")
        raw = base58.b58decode(secret[len(ED25519_PREFIX):])
        if len(raw) not in (32, 64):
            raise KeyStoreError(f"Unexpected secret key length: {len(raw)} bytes")
        key_pair = cls(raw[:32])
        if len(raw) == 64 and raw[32:] != key_pair.public_key.data:
            raise KeyStoreError("Secret key does not match its embedded public key")
        return key_pair

    def get_public_key(self):
        return self.public_key

    def sign(self, message):
        return self._private_key.sign(message)


def credentials_file(credentials_path, network_id, account_id):
    return os.path.join(credentials_path, network_id, f"{account_id}.json")


def load_key_pair(credentials_path, network_id, account_id):
    """Reads a NEAR CLI credentials file (<dir>/<network>/<account>.json)."""
    path = credentials_file(credentials_path, network_id, account_id)
    if not os.path.exists(path):
        raise KeyStoreError(f"No credentials for {account_id} at {path}")
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise KeyStoreError(f"Unreadable credentials file {path}: {e}") from e

    secret = data.get("private_key") or data.get("secret_key")
    if not secret:
        raise KeyStoreError(f"Credentials file {path} has no private_key")

    key_pair = KeyPair.from_string(secret)
    declared = data.get("public_key")
    if declared and PublicKey.from_string(declared) != key_pair.public_key:
        raise KeyStoreError(f"public_key in {path} does not match private_key")

    logger.info(f"🔑 Loaded key {key_pair.public_key} for {account_id}")
    return key_pair
