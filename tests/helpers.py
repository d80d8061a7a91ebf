import asyncio

import base58

from near_keys import KeyPair

TEST_SEED = bytes(range(32))
TEST_BLOCK_HASH = bytes([7] * 32)


def make_key_pair():
    return KeyPair(TEST_SEED)


class FakeContract:
    """In-memory OIN contract. `ratios` maps account -> int, or an Exception to raise."""
    def __init__(self, ratios, min_ratio=150, delays=None):
        self.ratios = dict(ratios)
        self.min_ratio = min_ratio
        self.delays = delays or {}
        self.ratio_calls = []

    async def get_liquidation_line(self):
        return self.min_ratio

    async def list_liquidations(self):
        return list(self.ratios)

    async def get_ratio(self, account_id):
        self.ratio_calls.append(account_id)
        if account_id in self.delays:
            await asyncio.sleep(self.delays[account_id])
        value = self.ratios[account_id]
        if isinstance(value, Exception):
            raise value
        return value


class FakeStatus:
    def __init__(self):
        self.watchlists = []
        self.liquidations = []

    async def reset(self):
        self.watchlists = []
        self.liquidations = []

    async def record_watchlist(self, accounts):
        self.watchlists.append(list(accounts))

    async def record_liquidations(self, accounts):
        self.liquidations.append(list(accounts))


class FakeRPC:
    def __init__(self, nonce=10, block_hash=None, fail_broadcast=False):
        self.nonce = nonce
        self.block_hash = block_hash or base58.b58encode(TEST_BLOCK_HASH).decode()
        self.fail_broadcast = fail_broadcast
        self.sent = []

    async def view_access_key(self, account_id, public_key):
        return {"nonce": self.nonce, "block_hash": self.block_hash, "permission": "FullAccess"}

    async def send_transaction_async(self, signed_tx_base64):
        if self.fail_broadcast:
            raise RuntimeError("InvalidNonce")
        self.sent.append(signed_tx_base64)
        return f"hash{len(self.sent)}"


class RecordingSigner:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def build_and_submit(self, account_id):
        if self.fail:
            raise RuntimeError("no access key")
        self.calls.append(account_id)
