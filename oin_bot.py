import os
import time
import asyncio
import logging

import requests

import near_config
from near_config import get_config, get_rpc_endpoints, validate_config, NetworkConfigError
from near_keys import load_key_pair, KeyStoreError
from near_rpc import AsyncNearRPC
from oin_contract import OinContract
from oin_scanner import WatchlistEngine
from liquidator import Broadcaster, TransactionSigner
from scheduler import RefreshScheduler
from status_logger import StatusLogger
from watchlist import AgentState, AccountRatio

logger = logging.getLogger("OinBot")


class OinBot:
    """
    OIN liquidation bot.
    Watchlist refresh (slow), liquidation checks (fast) and access key refresh run as separate tasks.
    """
    def __init__(self, contract, signer, broadcaster, status,
                 list_size=near_config.LIST_SIZE,
                 watchlist_freq=near_config.WATCHLIST_FREQ,
                 bot_freq=near_config.BOT_FREQ,
                 access_key_freq=near_config.ACCESS_KEY_FREQ,
                 post_liquidation_delay=near_config.POST_LIQUIDATION_DELAY,
                 read_timeout=near_config.RATIO_READ_TIMEOUT,
                 fanout_limit=near_config.RATIO_FANOUT_LIMIT):
        self.contract = contract
        self.signer = signer
        self.broadcaster = broadcaster
        self.status = status

        self.state = AgentState(list_size)
        self.engine = WatchlistEngine(contract, self.state, status, read_timeout, fanout_limit)
        self.scheduler = RefreshScheduler(self.engine.refresh_watchlist, watchlist_freq, post_liquidation_delay)

        self.bot_freq = bot_freq
        self.access_key_freq = access_key_freq
        self.read_timeout = read_timeout
        self.total_liquidations = 0
        self._last_errors = {}

    async def log_system(self, msg, level="info"):
        if level == "error":
            logger.error(msg)
        elif level == "warning":
            logger.warning(msg)
        else:
            logger.info(msg)

        if level in ("success", "error"):
            await self.send_telegram_alert(msg, is_error=(level == "error"))

    async def send_telegram_alert(self, msg, is_error=False):
        if not near_config.TELEGRAM_BOT_TOKEN or not near_config.TELEGRAM_CHAT_ID:
            return

        # Anti-spam: skip duplicate error alerts within 5-minute cooldown
        if is_error:
            error_key = msg[:100]
            now = time.time()
            if error_key in self._last_errors and (now - self._last_errors[error_key]) < 300:
                return
            self._last_errors[error_key] = now

        try:
            url = f"https://api.telegram.org/bot{near_config.TELEGRAM_BOT_TOKEN}/sendMessage"
            payload = {"chat_id": near_config.TELEGRAM_CHAT_ID, "text": msg, "parse_mode": "HTML"}
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, lambda: requests.post(url, json=payload, timeout=10))
        except requests.RequestException as e:
            logger.warning(f"Telegram alert failed: {e}")

    async def on_broadcast_result(self, account_id, tx_hash, error):
        if error is not None:
            await self.log_system(f"Liquidation TX for {account_id} failed: {error}", "error")
        else:
            await self.log_system(f"🚀 Liquidation sent for {account_id}: {tx_hash}", "success")

    # ================================================================
    # LIQUIDATION DECISION LOOP
    # ================================================================

    async def check_account(self, account_id, min_ratio, liquidations):
        try:
            ratio = await asyncio.wait_for(self.contract.get_ratio(account_id), timeout=self.read_timeout)
        except Exception as e:
            logger.warning(f"⚠️ Ratio check failed for {account_id}: {e!r}")
            return

        # liquidate if ratio less than minimum and more than 0
        # ratio 0 is for accounts that repaid their debt
        if not 0 < ratio < min_ratio:
            return
        if not self.state.take(account_id):
            return
        # Quarantine before any await, so a due refresh cannot re-admit the account
        self.scheduler.on_liquidation()

        logger.info(f"💀 LIQUIDATABLE: {account_id} (ratio: {ratio} < {min_ratio})")
        try:
            await self.signer.build_and_submit(account_id)
        except Exception as e:
            self.state.restore(AccountRatio(account_id, ratio))
            # quarantine refresh stays armed and re-reads the ledger
            await self.log_system(f"TX Build Failed for {account_id}: {e}", "error")
            return
        liquidations.append(account_id)

    async def bot_logic(self):
        """One fast tick over a snapshot of the watchlist. Returns the accounts liquidated."""
        min_ratio = self.state.min_ratio
        accounts = self.state.accounts()
        if min_ratio is None or not accounts:
            return []

        liquidations = []
        await asyncio.gather(*(self.check_account(acc, min_ratio, liquidations) for acc in accounts))

        if liquidations:
            self.total_liquidations += len(liquidations)
            await self.status.record_liquidations(liquidations)
            self.scheduler.on_liquidation()
            logger.info(
                f"🎯 Tick liquidated {len(liquidations)} account(s): {', '.join(liquidations)} | "
                f"total {self.total_liquidations}"
            )
        return liquidations

    # ================================================================
    # LOOPS
    # ================================================================

    async def bot_loop(self):
        while True:
            try:
                await self.bot_logic()
            except Exception as e:
                await self.log_system(f"Bot tick error: {e}", "error")
            await asyncio.sleep(self.bot_freq)

    async def access_key_loop(self):
        while True:
            await asyncio.sleep(self.access_key_freq)
            try:
                await self.signer.refresh_access_key_info()
            except Exception as e:
                await self.log_system(f"Access key refresh failed: {e}", "warning")

    async def run_forever(self):
        await self.status.reset()
        await self.signer.refresh_access_key_info()
        await self.scheduler.run_once()

        await self.send_telegram_alert("🟢 <b>OIN Liquidation Bot Started</b>")
        logger.info(f"🚀 OIN Bot started. Watching {len(self.state.accounts())} account(s)")

        await asyncio.gather(
            self.scheduler.run_forever(),
            self.bot_loop(),
            self.access_key_loop(),
            self.broadcaster.run_forever(),
        )


def build_bot(env):
    """Resolves network config and credentials. Any failure here is fatal."""
    config = get_config(env)
    problems = validate_config(config)
    if problems:
        raise NetworkConfigError("; ".join(problems))

    account_id = config["accountId"]
    contract_id = config["contractNames"]["oin"]
    key_pair = load_key_pair(near_config.CREDENTIALS_PATH, config["networkId"], account_id)

    rpc = AsyncNearRPC(get_rpc_endpoints(config))
    broadcaster = Broadcaster(rpc, near_config.BROADCAST_QUEUE_SIZE)
    signer = TransactionSigner(
        rpc, account_id, key_pair, contract_id, broadcaster,
        gas=near_config.LIQUIDATION_GAS, deposit=near_config.LIQUIDATION_DEPOSIT,
    )
    bot = OinBot(OinContract(rpc, contract_id), signer, broadcaster, StatusLogger(near_config.STATUS_LOG_PATH))
    broadcaster.on_result = bot.on_broadcast_result
    logger.info(f"🌐 Network {config['networkId']} | agent {account_id} | contract {contract_id}")
    return bot, rpc


async def main():
    bot, rpc = build_bot(os.getenv("NEAR_ENV", "development"))
    try:
        await bot.run_forever()
    finally:
        await rpc.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s | %(levelname)s | %(message)s')
    try:
        asyncio.run(main())
    except (NetworkConfigError, KeyStoreError) as e:
        logger.error(f"❌ Critical Error: {e}")
        exit(1)
    except KeyboardInterrupt:
        print("🛑 OIN Bot Stopped.")
