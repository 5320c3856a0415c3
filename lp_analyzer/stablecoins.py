"""
Stablecoin Detection — Address-Based Token Classification
==========================================================

Decides which side of a V3 pair is the USD proxy ("stable") when valuing
a position. Classification is by contract ADDRESS, not symbol: anyone can
deploy a token called "USDC", but only the canonical contracts below are
treated as $1.

The set is a classification aid, not a price oracle — a depegged
stablecoin is still valued at exactly $1.

Address sources (canonical deployments, checked on each chain's explorer):
  BSC      : USDT (BSC-USD), USDC, BUSD, FDUSD
  Ethereum : USDC, USDT, DAI
  Arbitrum : USDC, USDC.e, USDT
  Polygon  : USDC, USDC.e, USDT
  Base     : USDC, USDbC
  Optimism : USDC, USDC.e, USDT
"""

from typing import Dict, Iterable, Iterator

# ── Known Stablecoin Addresses ──────────────────────────────────────────
# Stored in checksum case for readability; comparison is case-insensitive.

STABLECOIN_ADDRESSES: Dict[str, Dict[str, str]] = {
    "bsc": {
        "USDT": "0x55d398326f99059fF775485246999027B3197955",
        "USDC": "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
        "BUSD": "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56",
        "FDUSD": "0xc5f0f7b66764F6ec8C8Dff7BA683102295E16409",
    },
    "ethereum": {
        "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "USDT": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "DAI": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    },
    "arbitrum": {
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "USDC.e": "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8",
        "USDT": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
    },
    "polygon": {
        "USDC": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        "USDC.e": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "USDT": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
    },
    "base": {
        "USDC": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "USDbC": "0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA",
    },
    "optimism": {
        "USDC": "0x0b2C639c533813f4Aa9D7837cAf62653d097Ff85",
        "USDC.e": "0x7F5c764cBc14f9669B88837ca1490cCa17c31607",
        "USDT": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
    },
}


class StableSet:
    """
    Immutable, case-insensitive set of USD-pegged token addresses.

    >>> stables = StableSet(["0x55d398326f99059fF775485246999027B3197955"])
    >>> "0x55D398326F99059FF775485246999027B3197955" in stables
    True
    """

    __slots__ = ("_addresses",)

    def __init__(self, addresses: Iterable[str] = ()):
        self._addresses = frozenset(a.strip().lower() for a in addresses)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        return address.strip().lower() in self._addresses

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._addresses))

    def __len__(self) -> int:
        return len(self._addresses)

    def __repr__(self) -> str:
        return f"StableSet({len(self._addresses)} addresses)"

    def union(self, other: Iterable[str]) -> "StableSet":
        return StableSet(list(self._addresses) + list(other))


def stable_set_for_network(network: str) -> StableSet:
    """StableSet restricted to one network's canonical stablecoins."""
    return StableSet(STABLECOIN_ADDRESSES.get(network, {}).values())


def _all_addresses() -> Iterator[str]:
    for tokens in STABLECOIN_ADDRESSES.values():
        yield from tokens.values()


# Union over every network. Addresses are 160-bit hashes, so collisions
# across chains are not a practical concern.
DEFAULT_STABLE_SET = StableSet(_all_addresses())


def is_stablecoin(address: str, stable_set: StableSet = DEFAULT_STABLE_SET) -> bool:
    """
    Check if a token address is a known stablecoin.

    Examples:
        >>> is_stablecoin("0x55d398326f99059ff775485246999027b3197955")
        True
        >>> is_stablecoin("0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c")  # WBNB
        False
    """
    return address in stable_set


def stablecoin_side(
    token0: str, token1: str, stable_set: StableSet = DEFAULT_STABLE_SET
) -> int:
    """
    Identify which side of the pair is the stablecoin.

    Returns:
        0  — token0 is the stablecoin
        1  — token1 is the stablecoin
        -1 — neither or both are stablecoins
    """
    s0 = is_stablecoin(token0, stable_set)
    s1 = is_stablecoin(token1, stable_set)
    if s0 and not s1:
        return 0
    elif s1 and not s0:
        return 1
    return -1
