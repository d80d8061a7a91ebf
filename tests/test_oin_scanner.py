import asyncio
import time

from oin_scanner import WatchlistEngine
from watchlist import AgentState
from tests.helpers import FakeContract, FakeStatus


def _engine(contract, list_size=5, read_timeout=1.0, fanout_limit=8):
    state = AgentState(list_size)
    status = FakeStatus()
    return WatchlistEngine(contract, state, status, read_timeout, fanout_limit), state, status


def test_refresh_builds_and_publishes_worst_accounts() -> None:
    contract = FakeContract({
        "a.near": 50, "b.near": 10, "c.near": 0, "d.near": 30,
        "e.near": 5, "f.near": 20, "g.near": 40,
    }, min_ratio=150)
    engine, state, status = _engine(contract)

    watchlist = asyncio.run(engine.refresh_watchlist())

    assert [e.ratio for e in watchlist] == [5, 10, 20, 30, 40]
    assert state.accounts() == ["e.near", "b.near", "f.near", "d.near", "g.near"]
    assert state.min_ratio == 150
    assert status.watchlists == [["e.near", "b.near", "f.near", "d.near", "g.near"]]


def test_refresh_is_idempotent() -> None:
    contract = FakeContract({"a.near": 3, "b.near": 1, "c.near": 2})
    engine, state, _ = _engine(contract)

    first = asyncio.run(engine.refresh_watchlist())
    second = asyncio.run(engine.refresh_watchlist())
    assert first == second


def test_failed_read_skips_account() -> None:
    contract = FakeContract({"a.near": 3, "b.near": RuntimeError("rpc down"), "c.near": 2})
    engine, state, _ = _engine(contract)

    asyncio.run(engine.refresh_watchlist())
    assert state.accounts() == ["c.near", "a.near"]


def test_stuck_read_does_not_block_refresh() -> None:
    contract = FakeContract({"a.near": 3, "slow.near": 1}, delays={"slow.near": 30})
    engine, state, _ = _engine(contract, read_timeout=0.05)

    start = time.monotonic()
    asyncio.run(engine.refresh_watchlist())
    assert time.monotonic() - start < 5
    assert state.accounts() == ["a.near"]


def test_fanout_is_bounded() -> None:
    in_flight = 0
    peak = 0

    class CountingContract(FakeContract):
        async def get_ratio(self, account_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return self.ratios[account_id]

    contract = CountingContract({f"u{i}.near": i + 1 for i in range(20)})
    engine, state, _ = _engine(contract, fanout_limit=3)

    asyncio.run(engine.refresh_watchlist())
    assert peak <= 3
    assert len(state.accounts()) == 5


def test_refresh_discarded_when_liquidation_happens_meanwhile() -> None:
    contract = FakeContract({"a.near": 3, "b.near": 1}, delays={"a.near": 0.05})
    engine, state, status = _engine(contract)
    state.publish([], 100, 0)

    async def scenario():
        task = asyncio.ensure_future(engine.refresh_watchlist())
        await asyncio.sleep(0.01)
        state.liquidation_epoch += 1
        return await task

    asyncio.run(scenario())
    assert state.accounts() == []
    assert status.watchlists == []
