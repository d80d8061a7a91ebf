import asyncio
import logging

import base58

from near_tx import Transaction, function_call, sign_transaction

logger = logging.getLogger("Liquidator")


class Broadcaster:
    """
    Bounded outbound queue to the RPC node.
    Submissions are fire-and-forget for the caller; results are only logged here.
    """
    def __init__(self, rpc, maxsize, on_result=None):
        self.rpc = rpc
        self.queue = asyncio.Queue(maxsize=maxsize)
        self.on_result = on_result
        self.sent = 0
        self.failed = 0

    def submit(self, signed_tx, account_id):
        """Returns False when the queue is full and the TX was dropped."""
        try:
            self.queue.put_nowait((signed_tx, account_id))
            return True
        except asyncio.QueueFull:
            logger.error(f"❌ Broadcast queue full. Dropped liquidation TX for {account_id}")
            return False

    async def send_one(self, signed_tx, account_id):
        try:
            tx_hash = await self.rpc.send_transaction_async(signed_tx.to_base64())
        except Exception as e:
            self.failed += 1
            logger.error(f"❌ Liquidation TX rejected for {account_id} (nonce {signed_tx.transaction.nonce}): {e}")
            if self.on_result:
                await self.on_result(account_id, None, e)
            return None

        self.sent += 1
        logger.info(f"🔥 TX SENT: {tx_hash} | target {account_id} | nonce {signed_tx.transaction.nonce}")
        if self.on_result:
            await self.on_result(account_id, tx_hash, None)
        return tx_hash

    async def run_forever(self):
        while True:
            signed_tx, account_id = await self.queue.get()
            try:
                await self.send_one(signed_tx, account_id)
            finally:
                self.queue.task_done()


class TransactionSigner:
    """
    Owns the signing context: account, key pair, nonce and recent block hash.
    The nonce only moves forward, under nonce_lock.
    """
    def __init__(self, rpc, account_id, key_pair, contract_id, broadcaster, gas, deposit=0):
        self.rpc = rpc
        self.account_id = account_id
        self.key_pair = key_pair
        self.public_key = key_pair.get_public_key()
        self.contract_id = contract_id
        self.broadcaster = broadcaster
        self.gas = gas
        self.deposit = deposit

        self.nonce = None
        self.recent_block_hash = None
        self.nonce_lock = asyncio.Lock()

    async def refresh_access_key_info(self):
        """Get access key information from the node."""
        access_key = await self.rpc.view_access_key(self.account_id, self.public_key)
        remote_nonce = int(access_key["nonce"])
        block_hash = base58.b58decode(access_key["block_hash"])

        async with self.nonce_lock:
            if self.nonce is not None and remote_nonce < self.nonce:
                # TXs signed here are not on-chain yet; keep counting from our side
                logger.info(f"🔢 Remote nonce {remote_nonce} behind local {self.nonce}, keeping local")
            else:
                self.nonce = remote_nonce
            self.recent_block_hash = block_hash
        logger.info(f"🔑 Access key refreshed | nonce {self.nonce} | block {access_key['block_hash']}")

    async def next_nonce(self):
        async with self.nonce_lock:
            if self.nonce is None:
                raise RuntimeError("Access key info not loaded")
            self.nonce += 1
            return self.nonce, self.recent_block_hash

    def build_liquidation(self, account_id, nonce, block_hash):
        actions = [function_call(
            "liquidation",
            {"account": account_id},
            self.gas,       # attached GAS
            self.deposit,   # attached deposit in yoctoNEAR
        )]
        transaction = Transaction(
            self.account_id,
            self.public_key,
            self.contract_id,
            nonce,
            actions,
            block_hash,
        )
        return sign_transaction(transaction, self.key_pair)

    async def build_and_submit(self, account_id):
        """Signs a liquidation for `account_id` and queues it. Does not wait for the node."""
        nonce, block_hash = await self.next_nonce()
        signed_tx = self.build_liquidation(account_id, nonce, block_hash)
        logger.info(f"⚔️ LIQUIDATING: {account_id} | nonce {nonce} | tx {signed_tx.hash}")
        self.broadcaster.submit(signed_tx, account_id)
        return signed_tx
