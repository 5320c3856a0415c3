#!/usr/bin/env python3
"""
On-Chain Position Reader for V3-compatible DEXes
================================================

Reads the snapshot that v3_valuation.value_position() consumes, directly
from the blockchain via public JSON-RPC. No web3.py dependency — raw
eth_call over httpx with hand-encoded calldata.

Data Sources (per RPC call):
─────────────────────────────
1. NonfungiblePositionManager.positions(tokenId) + ownerOf(tokenId)
   Returns: token0, token1, fee, tickLower, tickUpper, liquidity, …
   Ref: https://github.com/Uniswap/v3-periphery/blob/main/contracts/NonfungiblePositionManager.sol

2. Factory.getPool(token0, token1, fee)            [cached]
   Ref: https://github.com/Uniswap/v3-core/blob/main/contracts/UniswapV3Factory.sol

3. Pool.slot0()  +  NonfungiblePositionManager.collect(MAX, MAX)
   One JSON-RPC batch. collect() is simulated with eth_call from the
   owner's address, so nothing is sent on-chain; it returns exactly the
   fees a real collect would pay out (tokensOwed + fees accrued since the
   last checkpoint).

4. ERC-20.decimals(), ERC-20.symbol()               [cached]

Consistency: the block number is read first and every dynamic call
(positions, ownerOf, slot0, collect) is pinned to that block, so price
and fees describe the same chain state.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from lp_analyzer.central_config import settings
from lp_analyzer.dex_registry import resolve_deployment
from lp_analyzer.errors import InputError
from lp_analyzer.rpc_helpers import (
    SELECTORS, ZERO_ADDRESS,
    # Encoding
    encode_uint256 as _encode_uint256,
    encode_address as _encode_address,
    encode_uint24 as _encode_uint24,
    encode_collect_params as _encode_collect_params,
    # Decoding
    decode_uint as _decode_uint,
    decode_int as _decode_int,
    decode_address as _decode_address,
    decode_string as _decode_string,
    # RPC
    eth_call as _eth_call,
    eth_call_batch as _eth_call_batch,
    eth_block_number as _eth_block_number,
    # Symbol normalization
    normalize_symbol as _normalize_symbol,
)
from lp_analyzer.snapshot_cache import SnapshotCache
from lp_analyzer.stablecoins import stable_set_for_network
from v3_valuation import (
    FeeSnapshot,
    PoolSnapshot,
    PositionSnapshot,
    TokenMeta,
    value_position,
)


@dataclass(frozen=True)
class OnChainSnapshot:
    """Everything read for one position, at one block."""

    token_id: int
    network: str
    protocol: str
    dex_name: str
    pool_address: str
    owner: str
    block_number: int
    position: PositionSnapshot
    pool: PoolSnapshot
    fees: FeeSnapshot
    meta0: TokenMeta
    meta1: TokenMeta


# ── Position Reader ─────────────────────────────────────────────────────

class PositionReader:
    """
    Reads V3-compatible position snapshots from the blockchain.

    Usage:
        cache = SnapshotCache()
        reader = PositionReader("bsc", "pancake", cache=cache)
        snap = await reader.read_snapshot(1234567)

    Raises ConfigurationError on construction for an unsupported
    chain/protocol pair.
    """

    def __init__(
        self,
        network: str = "bsc",
        protocol: str = "pancake",
        cache: Optional[SnapshotCache] = None,
        rpc_url: Optional[str] = None,
        timeout: Optional[int] = None,
        verbose: bool = True,
    ):
        self.deployment = resolve_deployment(network, protocol)
        self.network = self.deployment.network
        self.protocol = self.deployment.protocol
        self.position_manager = self.deployment.position_manager
        self.factory = self.deployment.factory
        self.rpc_url = rpc_url or settings.rpc_url(self.network)
        self.timeout = timeout or settings.RPC_TIMEOUT
        self.cache = cache if cache is not None else SnapshotCache()
        self.verbose = verbose

    def log(self, message: str) -> None:
        if self.verbose:
            print(message)

    async def read_snapshot(self, token_id: int) -> OnChainSnapshot:
        """
        Read a complete, block-consistent snapshot of one position.

        Args:
            token_id: Position NFT token ID.

        Raises:
            InputError: invalid token ID or undecodable on-chain data.
            RuntimeError: RPC failure, missing pool, burned position.
        """
        # ── Step 0: Validate input ───────────────────────────────────
        if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
            raise InputError("tokenId must be a non-negative integer")

        # ── Step 1: Pin the block ────────────────────────────────────
        block_number = await _eth_block_number(self.rpc_url, timeout=self.timeout)

        # ── Step 2: Read position NFT + owner ────────────────────────
        self.log(f"  📖 Reading position #{token_id} from {self.network} ({self.deployment.name})...")
        pos, owner = await self._read_position_nft(token_id, block_number)

        if pos["liquidity"] == 0:
            self.log("  ⚠️  Position has zero liquidity (may be closed)")

        # ── Step 3: Static config (cached) ───────────────────────────
        pool_address = await self._resolve_pool_address(pos["token0"], pos["token1"], pos["fee"])
        self.log(f"  🎯 Pool: {pool_address}")
        meta0, meta1 = await asyncio.gather(
            self._read_token_meta(pos["token0"]),
            self._read_token_meta(pos["token1"]),
        )

        # ── Step 4: Price + fee simulation, one batch, same block ────
        self.log("  📊 Reading pool state & simulating fee collection...")
        slot0_data, collect_data = await _eth_call_batch(
            self.rpc_url,
            [
                (pool_address, SELECTORS["slot0"]),
                (self.position_manager, SELECTORS["collect"] + _encode_collect_params(token_id, owner)),
            ],
            timeout=self.timeout,
            block=block_number,
            sender=owner,
        )

        try:
            sqrt_price_x96 = _decode_uint(slot0_data, 0)
            current_tick = _decode_int(slot0_data, 1)
            owed0 = _decode_uint(collect_data, 0)
            owed1 = _decode_uint(collect_data, 1)
        except ValueError as e:
            raise InputError(f"Undecodable slot0()/collect() response: {e}") from e

        # Snapshot constructors run the checked int conversions
        pool = PoolSnapshot(sqrt_price_x96=sqrt_price_x96, current_tick=current_tick)
        fees = FeeSnapshot(amount0=owed0, amount1=owed1)
        position = PositionSnapshot(
            tick_lower=pos["tickLower"],
            tick_upper=pos["tickUpper"],
            liquidity=pos["liquidity"],
            token0=pos["token0"],
            token1=pos["token1"],
            fee_tier=pos["fee"],
        )

        self.log(f"  ✅ Snapshot captured at block {block_number:,}")

        return OnChainSnapshot(
            token_id=token_id,
            network=self.network,
            protocol=self.protocol,
            dex_name=self.deployment.name,
            pool_address=pool_address,
            owner=owner,
            block_number=block_number,
            position=position,
            pool=pool,
            fees=fees,
            meta0=meta0,
            meta1=meta1,
        )

    # ── Internal: Read position NFT ──────────────────────────────────

    async def _read_position_nft(self, token_id: int, block_number: int):
        """
        positions(uint256) + ownerOf(uint256) in one batch.

        positions() returns 12 words:
          (nonce, operator, token0, token1, fee, tickLower, tickUpper,
           liquidity, feeGrowthInside0LastX128, feeGrowthInside1LastX128,
           tokensOwed0, tokensOwed1)
        """
        encoded_id = _encode_uint256(token_id)
        pos_data, owner_data = await _eth_call_batch(
            self.rpc_url,
            [
                (self.position_manager, SELECTORS["positions"] + encoded_id),
                (self.position_manager, SELECTORS["ownerOf"] + encoded_id),
            ],
            timeout=self.timeout,
            block=block_number,
        )
        if not pos_data or not owner_data:
            raise RuntimeError(f"Position #{token_id} not found on {self.network} ({self.deployment.name})")

        try:
            pos = {
                "token0":    _decode_address(pos_data, 2),
                "token1":    _decode_address(pos_data, 3),
                "fee":       _decode_uint(pos_data, 4),
                "tickLower": _decode_int(pos_data, 5),
                "tickUpper": _decode_int(pos_data, 6),
                "liquidity": _decode_uint(pos_data, 7),
            }
        except ValueError as e:
            raise InputError(f"Undecodable positions() response: {e}") from e
        return pos, _decode_address(owner_data, 0)

    # ── Internal: Resolve pool address from Factory ──────────────────

    async def _resolve_pool_address(self, token0: str, token1: str, fee: int) -> str:
        """
        Factory.getPool(token0, token1, fee), through the cache.

        Pool addresses are CREATE2-derived and never change once deployed.
        """
        cached = self.cache.get_pool(self.network, self.factory, token0, token1, fee)
        if cached:
            return cached

        calldata = (
            SELECTORS["getPool"]
            + _encode_address(token0)
            + _encode_address(token1)
            + _encode_uint24(fee)
        )
        result = await _eth_call(self.rpc_url, self.factory, calldata, timeout=self.timeout)
        pool = _decode_address(result, 0)
        if pool == ZERO_ADDRESS:
            raise RuntimeError(
                f"Pool not found for {token0[:10]}.../{token1[:10]}... fee={fee}. "
                f"The position may be on a different network."
            )
        self.cache.put_pool(self.network, self.factory, token0, token1, fee, pool)
        return pool

    # ── Internal: Token metadata ─────────────────────────────────────

    async def _read_token_meta(self, address: str) -> TokenMeta:
        """ERC-20 decimals() + symbol(), through the cache."""
        cached = self.cache.get_token(self.network, address)
        if cached:
            return TokenMeta(decimals=cached["decimals"], symbol=cached["symbol"])

        dec_data, sym_data = await _eth_call_batch(
            self.rpc_url,
            [
                (address, SELECTORS["decimals"]),
                (address, SELECTORS["symbol"]),
            ],
            timeout=self.timeout,
        )
        if not dec_data:
            raise RuntimeError(f"decimals() returned nothing for {address}")
        try:
            decimals = _decode_uint(dec_data, 0)
        except ValueError as e:
            raise InputError(f"Undecodable decimals() response for {address}") from e
        symbol = _normalize_symbol(_decode_string(sym_data)) if sym_data else "UNK"

        meta = TokenMeta(decimals=decimals, symbol=symbol)
        self.cache.put_token(self.network, address, {"decimals": decimals, "symbol": symbol})
        return meta


# ── Snapshot → valuation ─────────────────────────────────────────────────


async def analyze_position(
    chain: str,
    protocol: str,
    token_id: int,
    cost_usd: Union[Decimal, int, float, str, None] = None,
    cache: Optional[SnapshotCache] = None,
    reader: Optional[PositionReader] = None,
) -> Dict[str, Any]:
    """
    Read a position from chain and value it.

    Returns:
        The public response shape (see ValuationResult.to_wire) plus
        ``blockNumber``, ``chain``, ``protocol`` and ``owner``.
    """
    if reader is None:
        reader = PositionReader(chain, protocol, cache=cache)
    snap = await reader.read_snapshot(token_id)

    stable_set = stable_set_for_network(snap.network).union(settings.EXTRA_STABLECOINS)
    result = value_position(
        snap.position,
        snap.pool,
        snap.fees,
        snap.meta0,
        snap.meta1,
        cost_usd=cost_usd,
        stable_set=stable_set,
    )
    if result.warning:
        reader.log(f"  ⚠️  {result.warning} — {snap.meta0.symbol} treated as the USD side")

    data = result.to_wire(token_id=snap.token_id, pool=snap.pool_address)
    data["blockNumber"] = snap.block_number
    data["chain"] = snap.network
    data["protocol"] = snap.protocol
    data["owner"] = snap.owner
    return data
