import time
import asyncio
import logging

from watchlist import AccountRatio, build_watchlist

logger = logging.getLogger("OinScanner")


class WatchlistEngine:
    """
    1- get list of all depositors
    2- fetch every c-ratio concurrently (bounded, with a per-read timeout)
    3- watch the n accounts with the lowest c-ratio
    """
    def __init__(self, contract, state, status, read_timeout, fanout_limit):
        self.contract = contract
        self.state = state
        self.status = status
        self.read_timeout = read_timeout
        self._semaphore = asyncio.Semaphore(max(1, fanout_limit))

    async def fetch_ratio(self, account_id):
        """Returns AccountRatio, or None when the read fails or times out."""
        async with self._semaphore:
            try:
                ratio = await asyncio.wait_for(self.contract.get_ratio(account_id), timeout=self.read_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"⌛ Ratio read timed out for {account_id}")
                return None
            except Exception as e:
                logger.warning(f"⚠️ Ratio read failed for {account_id}: {e}")
                return None
        return AccountRatio(account_id, ratio)

    async def refresh_watchlist(self):
        start_time = time.time()
        epoch = self.state.liquidation_epoch

        # min c-ratio, then every account with a position
        min_ratio = await self.contract.get_liquidation_line()
        candidates = await self.contract.list_liquidations()

        results = await asyncio.gather(*(self.fetch_ratio(acc) for acc in candidates))
        ratios = [r for r in results if r is not None]
        skipped = len(results) - len(ratios)

        watchlist = build_watchlist(ratios, self.state.list_size)
        if not self.state.publish(watchlist, min_ratio, epoch):
            return self.state.watchlist

        elapsed = (time.time() - start_time) * 1000
        logger.info(
            f"🔭 Watchlist refreshed | {len(candidates)} accounts | {skipped} skipped | "
            f"min_ratio {min_ratio} | {elapsed:.0f}ms"
        )
        for entry in watchlist:
            logger.info(f"   👀 {entry.account_id} (ratio: {entry.ratio})")

        await self.status.record_watchlist([entry.account_id for entry in watchlist])
        return watchlist
