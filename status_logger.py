import os
import json
import asyncio
import logging
import datetime

import aiofiles

logger = logging.getLogger("StatusLogger")


def empty_status():
    return {
        "watchlist": {
            "last_update": "",
            "list": [],
        },
        "liquidations": {
            "last_update": "",
            "list": [],
        },
    }


def _timestamp():
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class StatusLogger:
    """Keeps status-logs.json with the last watchlist and the last liquidation batch."""
    def __init__(self, path):
        self.path = path
        self.status = empty_status()
        self._lock = asyncio.Lock()

    async def reset(self):
        """Re-initializes the file on process start."""
        async with self._lock:
            self.status = empty_status()
            await self._save_atomic()

    async def _save_atomic(self):
        temp_path = self.path + ".tmp"
        async with aiofiles.open(temp_path, mode="w") as f:
            await f.write(json.dumps(self.status, indent=2))
        os.replace(temp_path, self.path)

    async def _record(self, section, accounts):
        async with self._lock:
            self.status[section] = {
                "last_update": _timestamp(),
                "list": list(accounts),
            }
            try:
                await self._save_atomic()
            except OSError as e:
                logger.warning(f"⚠️ Failed to write {self.path}: {e}")

    async def record_watchlist(self, accounts):
        await self._record("watchlist", accounts)

    async def record_liquidations(self, accounts):
        await self._record("liquidations", accounts)
