import json
import time
import base64
import asyncio
import logging
import warnings

import aiohttp

warnings.filterwarnings("ignore", category=ResourceWarning, module="aiohttp")

logger = logging.getLogger("NearRPC")

REQUEST_TIMEOUT = 10


class NearRPCError(Exception):
    """JSON-RPC level failure. `error` holds the node's error payload."""
    def __init__(self, message, error=None):
        super().__init__(message)
        self.error = error


class AsyncNearRPC:
    """Manages NEAR RPC endpoints with automatic failover on 429/403 errors."""
    def __init__(self, endpoints, timeout=REQUEST_TIMEOUT):
        if not endpoints:
            raise ValueError("At least one RPC endpoint is required")
        self.endpoints = list(endpoints)
        self.timeout = timeout
        self.current_index = 0
        self.strike_count = 0
        self.last_rate_limit = 0
        self.session = None
        self._request_id = 0

    @property
    def url(self):
        return self.endpoints[self.current_index]

    async def connect(self):
        """Opens the shared HTTP session. Closes any existing session first."""
        await self.close()
        self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        logger.info(f"🟢 Connected to RPC [{self.current_index + 1}/{len(self.endpoints)}]: {self.url[:40]}")

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def is_rate_limit_error(self, error):
        err_str = str(error).lower()
        return any(k in err_str for k in ["429", "403", "rate", "forbidden", "quota", "too many requests"])

    def register_strike(self):
        """Counts a rate limit; switches to the next endpoint after 3 strikes."""
        self.strike_count += 1
        self.last_rate_limit = time.time()
        if self.strike_count >= 3:
            self.strike_count = 0
            self.current_index = (self.current_index + 1) % len(self.endpoints)
            logger.warning(f"🔄 3 strikes! Switching to RPC [{self.current_index + 1}/{len(self.endpoints)}]")
        else:
            logger.warning(f"⏳ Rate limited (Strike {self.strike_count}/3)")

    async def request(self, method, params):
        if self.session is None:
            await self.connect()

        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            async with self.session.post(self.url, json=payload) as resp:
                if resp.status in (403, 429):
                    raise NearRPCError(f"HTTP {resp.status} from {self.url[:40]}")
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        except NearRPCError as e:
            self.register_strike()
            raise e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if self.is_rate_limit_error(e):
                self.register_strike()
            raise NearRPCError(f"{method} failed: {e!r}") from e

        if "error" in data:
            raise NearRPCError(f"{method} error: {data['error']}", data["error"])
        return data["result"]

    async def query(self, params):
        result = await self.request("query", params)
        # Older nodes report contract errors inside result
        if isinstance(result, dict) and "error" in result:
            raise NearRPCError(f"query error: {result['error']}", result["error"])
        return result

    async def call_function(self, contract_id, method_name, args=None):
        """Read-only contract call. Returns the JSON-decoded return value."""
        args_json = json.dumps(args or {}, separators=(",", ":")).encode()
        result = await self.query({
            "request_type": "call_function",
            "finality": "final",
            "account_id": contract_id,
            "method_name": method_name,
            "args_base64": base64.b64encode(args_json).decode(),
        })
        raw = bytes(result["result"])
        return json.loads(raw) if raw else None

    async def view_access_key(self, account_id, public_key):
        return await self.query({
            "request_type": "view_access_key",
            "finality": "final",
            "account_id": account_id,
            "public_key": str(public_key),
        })

    async def send_transaction_async(self, signed_tx_base64):
        """broadcast_tx_async: returns the tx hash without waiting for execution."""
        return await self.request("broadcast_tx_async", [signed_tx_base64])
