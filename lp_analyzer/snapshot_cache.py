"""
Snapshot Cache — read-through cache for static on-chain lookups
================================================================

Token metadata (decimals, symbol) and Factory.getPool() results never
change for a deployed contract, so the reader caches them. The cache is
an explicit object handed to each PositionReader; there is no
module-level state.

Keys:
  token  → (network, token_address)
  pool   → (network, factory, token0, token1, fee)

All addresses are lower-cased before use. Entries are non-authoritative:
expire them with ``ttl_seconds`` or drop them with the invalidate_*
methods (e.g. after a chain reorganisation).
"""

import time
from typing import Callable, Dict, Hashable, Optional, Tuple


class SnapshotCache:
    """
    In-memory cache of token metadata and pool addresses.

    Args:
        ttl_seconds: Entry lifetime. None = entries never expire.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive or None")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._tokens: Dict[Hashable, Tuple[float, dict]] = {}
        self._pools: Dict[Hashable, Tuple[float, str]] = {}
        self.hits = 0
        self.misses = 0

    # ── Keys ─────────────────────────────────────────────────────────

    @staticmethod
    def token_key(network: str, address: str) -> Tuple[str, str]:
        return (network, address.lower())

    @staticmethod
    def pool_key(network: str, factory: str, token0: str, token1: str, fee: int) -> Tuple:
        return (network, factory.lower(), token0.lower(), token1.lower(), fee)

    # ── Internal ─────────────────────────────────────────────────────

    def _get(self, store: dict, key: Hashable):
        entry = store.get(key)
        if entry is None:
            self.misses += 1
            return None
        stored_at, value = entry
        if self.ttl_seconds is not None and self._clock() - stored_at >= self.ttl_seconds:
            del store[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    def _put(self, store: dict, key: Hashable, value) -> None:
        store[key] = (self._clock(), value)

    # ── Token metadata ───────────────────────────────────────────────

    def get_token(self, network: str, address: str) -> Optional[dict]:
        """Cached {"decimals": int, "symbol": str} or None."""
        return self._get(self._tokens, self.token_key(network, address))

    def put_token(self, network: str, address: str, meta: dict) -> None:
        self._put(self._tokens, self.token_key(network, address), dict(meta))

    def invalidate_token(self, network: str, address: str) -> None:
        self._tokens.pop(self.token_key(network, address), None)

    # ── Pool addresses ───────────────────────────────────────────────

    def get_pool(self, network: str, factory: str, token0: str, token1: str, fee: int) -> Optional[str]:
        return self._get(self._pools, self.pool_key(network, factory, token0, token1, fee))

    def put_pool(self, network: str, factory: str, token0: str, token1: str, fee: int, pool: str) -> None:
        self._put(self._pools, self.pool_key(network, factory, token0, token1, fee), pool)

    def invalidate_pool(self, network: str, factory: str, token0: str, token1: str, fee: int) -> None:
        self._pools.pop(self.pool_key(network, factory, token0, token1, fee), None)

    # ── Housekeeping ─────────────────────────────────────────────────

    def clear(self) -> None:
        self._tokens.clear()
        self._pools.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._tokens) + len(self._pools)

    def stats(self) -> dict:
        return {
            "tokens": len(self._tokens),
            "pools": len(self._pools),
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.ttl_seconds,
        }
