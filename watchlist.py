import logging
from collections import namedtuple

logger = logging.getLogger("Watchlist")

AccountRatio = namedtuple("AccountRatio", ["account_id", "ratio"])


def insert_sorted(entry, entries):
    """Insertion sort step. The list is tiny, so scan back from the tail."""
    i = len(entries)
    while i > 0 and entry.ratio < entries[i - 1].ratio:
        i -= 1
    entries.insert(i, entry)


def build_watchlist(ratios, list_size):
    """
    Keeps the `list_size` worst accounts, ascending by ratio.
    Ratio 0 is a repaid account and never watched.
    """
    watchlist = []
    if list_size <= 0:
        return watchlist
    seen = set()
    for entry in ratios:
        if entry.ratio <= 0 or entry.account_id in seen:
            continue
        if len(watchlist) >= list_size:
            if entry.ratio >= watchlist[-1].ratio:
                continue
            # remove old "account with biggest ratio" on watchlist
            evicted = watchlist.pop()
            seen.discard(evicted.account_id)
        insert_sorted(entry, watchlist)
        seen.add(entry.account_id)
    return watchlist


class AgentState:
    """
    Process state shared by the watchlist refresh and the liquidation loop.
    All mutators run without awaiting, so on one event loop each call is atomic.
    """
    def __init__(self, list_size):
        self.list_size = list_size
        self.min_ratio = None
        self.liquidation_epoch = 0
        self._watchlist = ()

    @property
    def watchlist(self):
        return list(self._watchlist)

    def accounts(self):
        return [entry.account_id for entry in self._watchlist]

    def contains(self, account_id):
        return any(entry.account_id == account_id for entry in self._watchlist)

    def publish(self, entries, min_ratio, epoch):
        """
        Swaps in a freshly built watchlist.
        Refused when a liquidation happened after the refresh started (stale ledger reads).
        """
        if epoch != self.liquidation_epoch:
            logger.warning(f"🗑️ Discarding stale watchlist (epoch {epoch} != {self.liquidation_epoch})")
            return False
        self._watchlist = tuple(entries[:self.list_size])
        self.min_ratio = min_ratio
        return True

    def take(self, account_id):
        """Removes an account for liquidation. False if someone already took it."""
        remaining = tuple(e for e in self._watchlist if e.account_id != account_id)
        if len(remaining) == len(self._watchlist):
            return False
        self._watchlist = remaining
        self.liquidation_epoch += 1
        return True

    def restore(self, entry):
        """Puts back an account whose liquidation TX could not be built."""
        if self.contains(entry.account_id):
            return
        entries = list(self._watchlist)
        insert_sorted(entry, entries)
        self._watchlist = tuple(entries[:self.list_size])
