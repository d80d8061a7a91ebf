import json
import base64
import hashlib

import base58
from borsh_construct import CStruct, Enum, String, U8, U64, U128, Vec, Bytes
from construct import Bytes as FixedBytes

from near_keys import KEY_TYPE_ED25519

# NEAR transaction schema (Borsh)
PublicKeySchema = CStruct(
    "key_type" / U8,
    "data" / FixedBytes(32),
)

SignatureSchema = CStruct(
    "key_type" / U8,
    "data" / FixedBytes(64),
)

FunctionCallSchema = CStruct(
    "method_name" / String,
    "args" / Bytes,
    "gas" / U64,
    "deposit" / U128,
)

# Variant order is the on-chain enum index; FunctionCall is 2
ActionSchema = Enum(
    "CreateAccount",
    "DeployContract" / CStruct("code" / Bytes),
    "FunctionCall" / FunctionCallSchema,
    enum_name="Action",
)

TransactionSchema = CStruct(
    "signer_id" / String,
    "public_key" / PublicKeySchema,
    "nonce" / U64,
    "receiver_id" / String,
    "block_hash" / FixedBytes(32),
    "actions" / Vec(ActionSchema),
)

SignedTransactionSchema = CStruct(
    "transaction" / TransactionSchema,
    "signature" / SignatureSchema,
)


def _check_size(value, size, name):
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")


class FunctionCall:
    def __init__(self, method_name, args, gas, deposit):
        self.method_name = method_name
        self.args = args
        self.gas = gas
        self.deposit = deposit

    def to_schema(self):
        if self.deposit < 0 or self.deposit >= 1 << 128:
            raise ValueError(f"deposit out of u128 range: {self.deposit}")
        return ActionSchema.enum.FunctionCall(
            method_name=self.method_name,
            args=self.args,
            gas=self.gas,
            deposit=self.deposit,
        )

    def serialize(self):
        return ActionSchema.build(self.to_schema())


def function_call(method_name, args, gas, deposit):
    """Builds a FunctionCall action; dict args are sent as compact JSON."""
    if isinstance(args, dict):
        args = json.dumps(args, separators=(",", ":")).encode("utf-8")
    return FunctionCall(method_name, args, gas, deposit)


class Transaction:
    def __init__(self, signer_id, public_key, receiver_id, nonce, actions, block_hash):
        self.signer_id = signer_id
        self.public_key = public_key
        self.receiver_id = receiver_id
        self.nonce = nonce
        self.actions = actions
        self.block_hash = block_hash

    def to_schema(self):
        _check_size(self.block_hash, 32, "block_hash")
        return {
            "signer_id": self.signer_id,
            "public_key": {"key_type": self.public_key.key_type, "data": self.public_key.data},
            "nonce": self.nonce,
            "receiver_id": self.receiver_id,
            "block_hash": bytes(self.block_hash),
            "actions": [action.to_schema() for action in self.actions],
        }

    def serialize(self):
        return TransactionSchema.build(self.to_schema())


class SignedTransaction:
    def __init__(self, transaction, signature, key_type=KEY_TYPE_ED25519):
        self.transaction = transaction
        self.signature = signature
        self.key_type = key_type

    def serialize(self):
        _check_size(self.signature, 64, "signature")
        return SignedTransactionSchema.build({
            "transaction": self.transaction.to_schema(),
            "signature": {"key_type": self.key_type, "data": bytes(self.signature)},
        })

    def to_base64(self):
        return base64.b64encode(self.serialize()).decode()

    @property
    def hash(self):
        return tx_hash(self.transaction.serialize())


def tx_hash(serialized_tx):
    """Base58 transaction id, as shown by explorers."""
    return base58.b58encode(hashlib.sha256(serialized_tx).digest()).decode()


def sign_transaction(transaction, key_pair):
    """
    1) Serialize the transaction in Borsh
    2) Hash the serialized transaction using sha256
    3) Sign the hash and wrap signature + key type
    """
    serialized_tx = transaction.serialize()
    digest = hashlib.sha256(serialized_tx).digest()
    signature = key_pair.sign(digest)
    return SignedTransaction(transaction, signature, key_type=transaction.public_key.key_type)
