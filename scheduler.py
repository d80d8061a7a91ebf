import asyncio
import logging

logger = logging.getLogger("Scheduler")

NORMAL = "NORMAL"
QUARANTINED = "QUARANTINED"


class RefreshScheduler:
    """
    Drives the slow watchlist refresh.

    NORMAL       -> refresh every `interval` seconds
    on_liquidation() -> QUARANTINED: pending wait is dropped, one wait of `quarantine_delay` is armed
    QUARANTINED  -> after the delay exactly one refresh runs, then back to NORMAL
    """
    def __init__(self, refresh, interval, quarantine_delay):
        self.refresh = refresh
        self.interval = interval
        self.quarantine_delay = quarantine_delay
        self.state = NORMAL
        self.refresh_count = 0
        self._rearm = asyncio.Event()

    def on_liquidation(self):
        if self.state == NORMAL:
            logger.info(f"🧊 Liquidation sent. Next watchlist refresh in {self.quarantine_delay}s")
        self.state = QUARANTINED
        self._rearm.set()

    def current_delay(self):
        return self.quarantine_delay if self.state == QUARANTINED else self.interval

    async def wait_next(self):
        """Sleeps until the next refresh is due. Restarts whenever on_liquidation() fires."""
        while True:
            self._rearm.clear()
            try:
                await asyncio.wait_for(self._rearm.wait(), timeout=self.current_delay())
            except asyncio.TimeoutError:
                # a liquidation landed after the timer fired but before we resumed
                if self._rearm.is_set():
                    continue
                return

    async def run_once(self):
        was_quarantined = self.state == QUARANTINED
        self._rearm.clear()
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"⚠️ Watchlist refresh failed: {e}")
        finally:
            self.refresh_count += 1

        # A liquidation during the refresh keeps us quarantined
        if was_quarantined and not self._rearm.is_set():
            self.state = NORMAL
            logger.info(f"🔁 Quarantine over. Back to {self.interval}s cadence")

    async def run_forever(self):
        while True:
            await self.wait_next()
            await self.run_once()
