#!/usr/bin/env python3
"""
V3 Position Valuation Engine
============================

Values a concentrated-liquidity position (Uniswap V3 and its forks) from a
snapshot of on-chain state. Pure computation: no network, no clock, no
hidden state. The same snapshot always produces the same result.

Pipeline (data flows strictly forward):
──────────────────────────────────────
1. Price Converter       tick → √P,  sqrtPriceX96 → √P
2. Range Classifier      below / in / above range → (amount0, amount1)
3. Orientation Resolver  which token is the USD proxy, display prices
4. Valuation Aggregator  principal + fees → USD, optional PnL / ROI

FORMULA SOURCES:
────────────────
1. Uniswap V3 Core Whitepaper — https://uniswap.org/whitepaper-v3.pdf
   - §6.1  p(i) = 1.0001^i  →  √p(i) = 1.0001^(i/2)
   - §6.2  token amounts from L and the range boundaries
2. Uniswap V3 Periphery — LiquidityAmounts.sol (getAmountsForLiquidity)
   https://github.com/Uniswap/v3-periphery/blob/main/contracts/libraries/LiquidityAmounts.sol

Token amounts (L = liquidity, √Pl / √Pu = range bounds, √P = current):
  tick <= tickLower :  amount0 = L·(√Pu − √Pl) / (√Pu·√Pl)       amount1 = 0
  tick >= tickUpper :  amount0 = 0                                amount1 = L·(√Pu − √Pl)
  otherwise         :  amount0 = L·(√Pu − √P) / (√Pu·√P)          amount1 = L·(√P − √Pl)

Precision: every step runs in one decimal context (50 significant digits,
ROUND_HALF_UP). Tick exponentials compound rounding error, so the context
is never mixed. Display rounding happens only in ValuationResult.to_wire().
"""

import math
import re
from dataclasses import dataclass
from decimal import Context, Decimal, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from lp_analyzer.errors import DegenerateRangeError, InputError, UndefinedRatioError
from lp_analyzer.stablecoins import (
    DEFAULT_STABLE_SET,
    StableSet,
    is_stablecoin,
    stablecoin_side,
)

# ── Named Constants ──────────────────────────────────────────────────────

PRECISION = 50
VALUATION_CONTEXT = Context(prec=PRECISION, rounding=ROUND_HALF_UP)

TICK_BASE = Decimal("1.0001")
Q96 = Decimal(2 ** 96)  # exact: Decimal(int) never rounds

MIN_TICK = -887272
MAX_TICK = 887272

# Display precision (fractional digits)
AMOUNT_PLACES = Decimal("1e-8")   # principal, fees, USD totals, PnL
PRICE_PLACES = Decimal("1e-6")    # unit price, range bounds
ROI_PLACES = Decimal("1e-4")      # ROI percent

# Cost basis magnitude accepted for PnL / ROI: 1e-18 .. <1e31 USD
MIN_COST_EXPONENT = -18
MAX_COST_EXPONENT = 30

NO_STABLECOIN_WARNING = "No stablecoin identified"
BOTH_STABLECOINS_WARNING = "Both tokens are stablecoins"

# Inclusive bounds of the Solidity integer types found in a snapshot
SOLIDITY_RANGES: Dict[str, Tuple[int, int]] = {
    "int24": (-(2 ** 23), 2 ** 23 - 1),
    "uint8": (0, 2 ** 8 - 1),
    "uint24": (0, 2 ** 24 - 1),
    "uint128": (0, 2 ** 128 - 1),
    "uint160": (0, 2 ** 160 - 1),
}

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# ── Checked Conversion ───────────────────────────────────────────────────


def checked_int(value: Any, sol_type: str, field: str) -> int:
    """
    Validate that ``value`` is a plain int inside ``sol_type``'s range.

    Messages never echo the value itself: a malformed uint160 would
    otherwise leak a 49-digit integer into a user-facing error.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputError(f"{field} must be an integer ({sol_type})")
    low, high = SOLIDITY_RANGES[sol_type]
    if not low <= value <= high:
        raise InputError(f"{field} is out of {sol_type} range")
    return value


def to_decimal(value: Any, sol_type: str, field: str) -> Decimal:
    """Checked on-chain integer → Decimal. Exact for any width."""
    return Decimal(checked_int(value, sol_type, field))


def _check_address(value: Any, field: str) -> str:
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise InputError(f"{field} must be a 0x-prefixed 20-byte hex address")
    return value


# ── Snapshot Types ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class PositionSnapshot:
    """NonfungiblePositionManager.positions(tokenId), the fields we need."""

    tick_lower: int
    tick_upper: int
    liquidity: int
    token0: str
    token1: str
    fee_tier: int

    def __post_init__(self):
        checked_int(self.tick_lower, "int24", "tickLower")
        checked_int(self.tick_upper, "int24", "tickUpper")
        checked_int(self.liquidity, "uint128", "liquidity")
        checked_int(self.fee_tier, "uint24", "feeTier")
        _check_address(self.token0, "token0")
        _check_address(self.token1, "token1")
        if self.tick_lower > self.tick_upper:
            raise DegenerateRangeError("tickLower must not exceed tickUpper")


@dataclass(frozen=True)
class PoolSnapshot:
    """Pool.slot0() — price state at the read block."""

    sqrt_price_x96: int
    current_tick: int

    def __post_init__(self):
        checked_int(self.sqrt_price_x96, "uint160", "sqrtPriceX96")
        checked_int(self.current_tick, "int24", "currentTick")


@dataclass(frozen=True)
class FeeSnapshot:
    """Simulated collect() — raw fee amounts owed."""

    amount0: int
    amount1: int

    def __post_init__(self):
        checked_int(self.amount0, "uint128", "fees.amount0")
        checked_int(self.amount1, "uint128", "fees.amount1")


@dataclass(frozen=True)
class TokenMeta:
    decimals: int
    symbol: str

    def __post_init__(self):
        checked_int(self.decimals, "uint8", "decimals")
        if not isinstance(self.symbol, str):
            raise InputError("symbol must be a string")


# ── 1. Price Converter ───────────────────────────────────────────────────


def sqrt_price_from_tick(tick: int) -> Decimal:
    """
    √p(i) = 1.0001^(i/2)   (Whitepaper §6.1)

    >>> sqrt_price_from_tick(0)
    Decimal('1')
    """
    with localcontext(VALUATION_CONTEXT):
        return TICK_BASE ** (Decimal(tick) / 2)


def sqrt_price_from_x96(sqrt_price_x96: int) -> Decimal:
    """√P = sqrtPriceX96 / 2^96, divided in decimal, never in float."""
    with localcontext(VALUATION_CONTEXT):
        return Decimal(sqrt_price_x96) / Q96


def price_from_sqrt(sqrt_price: Decimal, decimals0: int, decimals1: int) -> Decimal:
    """
    Token1 per token0 in natural units.

    The pool stores price in raw units (token1_wei / token0_wei), so the
    human price is (√P)^2 × 10^dec0 / 10^dec1.
    """
    with localcontext(VALUATION_CONTEXT):
        return sqrt_price ** 2 * (Decimal(10) ** decimals0) / (Decimal(10) ** decimals1)


# ── 2. Range Classifier ──────────────────────────────────────────────────


class PriceRegion(Enum):
    """Which branch of the token-amount formula applies."""

    BELOW_RANGE = "below_range"
    IN_RANGE = "in_range"
    ABOVE_RANGE = "above_range"


def classify_range(current_tick: int, tick_lower: int, tick_upper: int) -> PriceRegion:
    """
    Three-way split, ticks compared the way the pool does.

    A tick equal to tickLower is treated as below range (all token0),
    a tick equal to tickUpper as above range (all token1).
    """
    if current_tick <= tick_lower:
        return PriceRegion.BELOW_RANGE
    if current_tick >= tick_upper:
        return PriceRegion.ABOVE_RANGE
    return PriceRegion.IN_RANGE


def is_in_range(current_tick: int, tick_lower: int, tick_upper: int) -> bool:
    """Position earns fees: tickLower <= tick < tickUpper."""
    return tick_lower <= current_tick < tick_upper


def amounts_for_liquidity(
    liquidity: Decimal,
    sqrt_lower: Decimal,
    sqrt_upper: Decimal,
    sqrt_current: Decimal,
    region: PriceRegion,
) -> Tuple[Decimal, Decimal]:
    """
    Principal split (amount0, amount1) in raw token units.

    A zero-width range (√Pu == √Pl) holds nothing and returns zeros.
    """
    with localcontext(VALUATION_CONTEXT):
        zero = Decimal(0)
        if sqrt_upper == sqrt_lower:
            return zero, zero

        if region is PriceRegion.BELOW_RANGE:
            amount0 = liquidity * (sqrt_upper - sqrt_lower) / (sqrt_upper * sqrt_lower)
            return amount0, zero

        if region is PriceRegion.ABOVE_RANGE:
            return zero, liquidity * (sqrt_upper - sqrt_lower)

        # slot0 tick and sqrtPrice agree on-chain; clamp anyway so a
        # skewed snapshot can never yield a negative amount
        sqrt_p = min(max(sqrt_current, sqrt_lower), sqrt_upper)
        amount0 = liquidity * (sqrt_upper - sqrt_p) / (sqrt_upper * sqrt_p)
        amount1 = liquidity * (sqrt_p - sqrt_lower)
        return amount0, amount1


# ── 3. Asset Orientation Resolver ────────────────────────────────────────


@dataclass(frozen=True)
class Orientation:
    """
    Token index of the USD proxy (stable) and the priced asset (volatile).

    ``warning`` is set when the split is a default rather than a match:
    the caller still gets a result, but should not trust the USD figure
    blindly.
    """

    stable: int
    volatile: int
    warning: Optional[str] = None

    @property
    def ambiguous(self) -> bool:
        return self.warning is not None

    @property
    def inverted(self) -> bool:
        """Pool price reads volatile-per-stable and must be flipped."""
        return self.stable == 0


def resolve_orientation(
    token0: str, token1: str, stable_set: StableSet = DEFAULT_STABLE_SET
) -> Orientation:
    """
    Exactly one stablecoin → it is the stable side.
    Neither or both → token0 by default, flagged.
    """
    side = stablecoin_side(token0, token1, stable_set)
    if side != -1:
        return Orientation(stable=side, volatile=1 - side)
    both = is_stablecoin(token0, stable_set)
    warning = BOTH_STABLECOINS_WARNING if both else NO_STABLECOIN_WARNING
    return Orientation(stable=0, volatile=1, warning=warning)


def display_range(
    sqrt_lower: Decimal,
    sqrt_upper: Decimal,
    decimals0: int,
    decimals1: int,
    orientation: Orientation,
) -> Tuple[Decimal, Decimal]:
    """
    (minPrice, maxPrice) as stable units per volatile unit.

    Inverting swaps the order: the upper tick gives the smaller bound.
    """
    with localcontext(VALUATION_CONTEXT):
        price_lower = price_from_sqrt(sqrt_lower, decimals0, decimals1)
        price_upper = price_from_sqrt(sqrt_upper, decimals0, decimals1)
        if orientation.inverted:
            return 1 / price_upper, 1 / price_lower
        return price_lower, price_upper


def volatile_price_usd(
    sqrt_current: Decimal, decimals0: int, decimals1: int, orientation: Orientation
) -> Decimal:
    """Unit price of the volatile asset in stable (≈ USD) units."""
    with localcontext(VALUATION_CONTEXT):
        price = price_from_sqrt(sqrt_current, decimals0, decimals1)
        if price == 0:
            raise InputError("pool price is zero (pool not initialized)")
        return 1 / price if orientation.inverted else price


# ── 4. Valuation Aggregator ──────────────────────────────────────────────


@dataclass(frozen=True)
class Holdings:
    stable_principal: Decimal
    volatile_principal: Decimal
    stable_fee: Decimal
    volatile_fee: Decimal


def split_holdings(
    principal0: Decimal,
    principal1: Decimal,
    fee0: Decimal,
    fee1: Decimal,
    orientation: Orientation,
) -> Holdings:
    """Re-key token0/token1 amounts as stable/volatile."""
    principals = (principal0, principal1)
    fees = (fee0, fee1)
    return Holdings(
        stable_principal=principals[orientation.stable],
        volatile_principal=principals[orientation.volatile],
        stable_fee=fees[orientation.stable],
        volatile_fee=fees[orientation.volatile],
    )


def fee_value_usd(holdings: Holdings, price_usd: Decimal) -> Decimal:
    with localcontext(VALUATION_CONTEXT):
        return holdings.stable_fee + holdings.volatile_fee * price_usd


def total_value_usd(holdings: Holdings, price_usd: Decimal) -> Decimal:
    with localcontext(VALUATION_CONTEXT):
        return (
            holdings.stable_principal
            + holdings.stable_fee
            + (holdings.volatile_principal + holdings.volatile_fee) * price_usd
        )


def parse_cost_basis(cost_usd: Union[Decimal, int, float, str]) -> Decimal:
    """
    Cost basis → Decimal.

    Floats go through str() so 0.1 becomes Decimal('0.1'), not the
    binary expansion.
    """
    if isinstance(cost_usd, bool):
        raise InputError("costUsd must be a number")
    if isinstance(cost_usd, float):
        if not math.isfinite(cost_usd):
            raise InputError("costUsd must be finite")
        cost_usd = str(cost_usd)
    if isinstance(cost_usd, str):
        try:
            cost = Decimal(cost_usd.strip())
        except ArithmeticError:
            raise InputError("costUsd must be a number") from None
    elif isinstance(cost_usd, (int, Decimal)):
        cost = Decimal(cost_usd)
    else:
        raise InputError("costUsd must be a number")
    if not cost.is_finite():
        raise InputError("costUsd must be finite")
    if cost < 0:
        raise InputError("costUsd must not be negative")
    if cost != 0 and not MIN_COST_EXPONENT <= cost.adjusted() <= MAX_COST_EXPONENT:
        raise InputError("costUsd is out of range")
    return cost


def profit_and_loss(total_usd: Decimal, cost_usd: Union[Decimal, int, float, str]) -> Tuple[Decimal, Decimal]:
    """
    pnl = total − cost,  roi = pnl / cost × 100

    Raises:
        UndefinedRatioError: cost basis is zero.
    """
    cost = parse_cost_basis(cost_usd)
    if cost == 0:
        raise UndefinedRatioError("ROI is undefined for a zero cost basis")
    try:
        with localcontext(VALUATION_CONTEXT):
            pnl = total_usd - cost
            roi = pnl / cost * 100
    except ArithmeticError:
        raise InputError("costUsd is out of range") from None
    return pnl, roi


# ── Result ───────────────────────────────────────────────────────────────


def _fixed(value: Decimal, places: Decimal) -> str:
    """Half-up rounding to a fixed number of places, no exponent notation."""
    with localcontext(VALUATION_CONTEXT) as ctx:
        # quantize needs room for every integer digit plus the fraction
        ctx.prec = max(PRECISION, value.adjusted() - places.as_tuple().exponent + 2)
        return format(value.quantize(places, rounding=ROUND_HALF_UP), "f")


@dataclass(frozen=True)
class ValuationResult:
    """
    Full-precision valuation of one position.

    Amounts are in natural token units (already divided by 10^decimals);
    prices are stable units per volatile unit.
    """

    region: PriceRegion
    in_range: bool
    orientation: Orientation
    stable_symbol: str
    volatile_symbol: str
    min_price: Decimal
    max_price: Decimal
    price_usd: Decimal
    holdings: Holdings
    fee_value_usd: Decimal
    total_value_usd: Decimal
    pnl_usd: Optional[Decimal] = None
    roi_percent: Optional[Decimal] = None

    @property
    def warning(self) -> Optional[str]:
        return self.orientation.warning

    def to_wire(self, token_id: Any = None, pool: Optional[str] = None) -> Dict[str, Any]:
        """
        JSON-ready dict in the public response shape.

        All numbers are fixed-point strings; pnlUsd / roiPercent are None
        when no cost basis was supplied.
        """
        h = self.holdings
        return {
            "tokenId": token_id,
            "pool": pool,
            "priceUsd": _fixed(self.price_usd, PRICE_PLACES),
            "inRange": self.in_range,
            "range": {
                "minPrice": _fixed(self.min_price, PRICE_PLACES),
                "maxPrice": _fixed(self.max_price, PRICE_PLACES),
            },
            "holdings": {
                "stableSymbol": self.stable_symbol,
                "volatileSymbol": self.volatile_symbol,
                "liquidity": {
                    "stable": _fixed(h.stable_principal, AMOUNT_PLACES),
                    "volatile": _fixed(h.volatile_principal, AMOUNT_PLACES),
                },
                "fees": {
                    "stable": _fixed(h.stable_fee, AMOUNT_PLACES),
                    "volatile": _fixed(h.volatile_fee, AMOUNT_PLACES),
                    "feeValueUsd": _fixed(self.fee_value_usd, AMOUNT_PLACES),
                },
            },
            "totalValueUsd": _fixed(self.total_value_usd, AMOUNT_PLACES),
            "pnlUsd": None if self.pnl_usd is None else _fixed(self.pnl_usd, AMOUNT_PLACES),
            "roiPercent": None if self.roi_percent is None else _fixed(self.roi_percent, ROI_PLACES),
            "warning": self.warning,
        }


# ── Entry Point ──────────────────────────────────────────────────────────


def value_position(
    position: PositionSnapshot,
    pool: PoolSnapshot,
    fees: FeeSnapshot,
    meta0: TokenMeta,
    meta1: TokenMeta,
    cost_usd: Union[Decimal, int, float, str, None] = None,
    stable_set: StableSet = DEFAULT_STABLE_SET,
) -> ValuationResult:
    """
    Value a V3 position from one consistent on-chain snapshot.

    Args:
        position: Tick range, liquidity and token addresses.
        pool: slot0 price state, read at the same block as ``fees``.
        fees: Simulated full collect(), raw units.
        meta0 / meta1: Decimals and symbol of token0 / token1.
        cost_usd: Optional cost basis for PnL / ROI.
        stable_set: Addresses treated as $1.

    Raises:
        InputError: malformed snapshot or uninitialized pool.
        UndefinedRatioError: ``cost_usd`` is zero.
    """
    for value, expected, name in (
        (position, PositionSnapshot, "position"),
        (pool, PoolSnapshot, "pool"),
        (fees, FeeSnapshot, "fees"),
        (meta0, TokenMeta, "meta0"),
        (meta1, TokenMeta, "meta1"),
    ):
        if not isinstance(value, expected):
            raise InputError(f"{name} must be a {expected.__name__}")
    if pool.sqrt_price_x96 == 0:
        raise InputError("sqrtPriceX96 is zero (pool not initialized)")

    with localcontext(VALUATION_CONTEXT):
        # 1. prices
        sqrt_lower = sqrt_price_from_tick(position.tick_lower)
        sqrt_upper = sqrt_price_from_tick(position.tick_upper)
        sqrt_current = sqrt_price_from_x96(pool.sqrt_price_x96)

        # 2. principal
        region = classify_range(pool.current_tick, position.tick_lower, position.tick_upper)
        liquidity = to_decimal(position.liquidity, "uint128", "liquidity")
        amount0, amount1 = amounts_for_liquidity(
            liquidity, sqrt_lower, sqrt_upper, sqrt_current, region
        )
        ten0 = Decimal(10) ** meta0.decimals
        ten1 = Decimal(10) ** meta1.decimals
        principal0 = amount0 / ten0
        principal1 = amount1 / ten1
        fee0 = to_decimal(fees.amount0, "uint128", "fees.amount0") / ten0
        fee1 = to_decimal(fees.amount1, "uint128", "fees.amount1") / ten1

        # 3. orientation
        orientation = resolve_orientation(position.token0, position.token1, stable_set)
        min_price, max_price = display_range(
            sqrt_lower, sqrt_upper, meta0.decimals, meta1.decimals, orientation
        )
        price_usd = volatile_price_usd(
            sqrt_current, meta0.decimals, meta1.decimals, orientation
        )

        # 4. aggregation
        holdings = split_holdings(principal0, principal1, fee0, fee1, orientation)
        fee_usd = fee_value_usd(holdings, price_usd)
        total_usd = total_value_usd(holdings, price_usd)

    pnl = roi = None
    if cost_usd is not None:
        pnl, roi = profit_and_loss(total_usd, cost_usd)

    metas = (meta0, meta1)
    return ValuationResult(
        region=region,
        in_range=is_in_range(pool.current_tick, position.tick_lower, position.tick_upper),
        orientation=orientation,
        stable_symbol=metas[orientation.stable].symbol,
        volatile_symbol=metas[orientation.volatile].symbol,
        min_price=min_price,
        max_price=max_price,
        price_usd=price_usd,
        holdings=holdings,
        fee_value_usd=fee_usd,
        total_value_usd=total_usd,
        pnl_usd=pnl,
        roi_percent=roi,
    )
