import json

import base58
import pytest

from near_keys import KeyPair, KeyStoreError, PublicKey, load_key_pair
from tests.helpers import TEST_SEED, make_key_pair


def _secret(key_pair):
    return "ed25519:" + base58.b58encode(TEST_SEED + key_pair.get_public_key().data).decode()


def test_key_pair_from_near_secret() -> None:
    expected = make_key_pair()
    loaded = KeyPair.from_string(_secret(expected))
    assert loaded.get_public_key() == expected.get_public_key()


def test_key_pair_from_bare_seed() -> None:
    secret = "ed25519:" + base58.b58encode(TEST_SEED).decode()
    assert KeyPair.from_string(secret).get_public_key() == make_key_pair().get_public_key()


def test_mismatched_embedded_public_key_rejected() -> None:
    secret = "ed25519:" + base58.b58encode(TEST_SEED + bytes(32)).decode()
    with pytest.raises(KeyStoreError):
        KeyPair.from_string(secret)


def test_non_ed25519_rejected() -> None:
    with pytest.raises(KeyStoreError):
        KeyPair.from_string("secp256k1:abc")


def test_public_key_string_round_trip() -> None:
    public_key = make_key_pair().get_public_key()
    text = str(public_key)
    assert text.startswith("ed25519:")
    assert PublicKey.from_string(text) == public_key


def test_load_key_pair_from_credentials_dir(tmp_path) -> None:
    key_pair = make_key_pair()
    network_dir = tmp_path / "testnet"
    network_dir.mkdir()
    (network_dir / "agent.testnet.json").write_text(json.dumps({
        "account_id": "agent.testnet",
        "public_key": str(key_pair.get_public_key()),
        "private_key": _secret(key_pair),
    }))

    loaded = load_key_pair(str(tmp_path), "testnet", "agent.testnet")
    assert loaded.get_public_key() == key_pair.get_public_key()


def test_missing_credentials_is_fatal(tmp_path) -> None:
    with pytest.raises(KeyStoreError):
        load_key_pair(str(tmp_path), "mainnet", "nobody.near")


def test_credentials_without_private_key(tmp_path) -> None:
    (tmp_path / "mainnet").mkdir()
    (tmp_path / "mainnet" / "agent.near.json").write_text(json.dumps({"account_id": "agent.near"}))
    with pytest.raises(KeyStoreError):
        load_key_pair(str(tmp_path), "mainnet", "agent.near")
