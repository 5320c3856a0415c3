"""
Unit Tests for LP Analyzer Modules
==================================

Covers the collaborators around the valuation engine:
  - stablecoins.py        (StableSet, address classification)
  - rpc_helpers.py        (ABI encoding/decoding, JSON-RPC client)
  - dex_registry.py       (chain/protocol resolution)
  - central_config.py     (Settings, RPC overrides)
  - snapshot_cache.py     (TTL, invalidation)
  - position_reader.py    (block pinning, cache reuse, analyze_position)
  - commands.py           (report formatting)
  - run.py                (argparse parser, exit codes)

All tests are offline — no network calls. Mock-based where needed.
"""

import asyncio
from unittest.mock import patch, MagicMock, AsyncMock

import pytest

from lp_analyzer.errors import ConfigurationError, InputError


# Real BSC addresses used across the suite
USDT_BSC = "0x55d398326f99059fF775485246999027B3197955"
WBNB_BSC = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
OWNER = "0x1111111111111111111111111111111111111111"
POOL = "0x36696169c63e42cd08ce11f5deebbcebae652050"


def mock_rpc(payload):
    """Patch httpx.AsyncClient so post() answers with ``payload``."""
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    patcher = patch("lp_analyzer.rpc_helpers.httpx.AsyncClient")
    MockClient = patcher.start()
    mock_client = AsyncMock()
    mock_client.post.return_value = mock_response
    MockClient.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    MockClient.return_value.__aexit__ = AsyncMock(return_value=False)
    return patcher, mock_client


# ═══════════════════════════════════════════════════════════════════════════
# 1. stablecoins.py
# ═══════════════════════════════════════════════════════════════════════════

from lp_analyzer.stablecoins import (
    DEFAULT_STABLE_SET,
    STABLECOIN_ADDRESSES,
    StableSet,
    is_stablecoin,
    stable_set_for_network,
    stablecoin_side,
)


class TestStableSet:
    def test_case_insensitive(self):
        s = StableSet([USDT_BSC])
        assert USDT_BSC.lower() in s
        assert USDT_BSC.upper().replace("0X", "0x") in s

    def test_non_string_not_member(self):
        assert None not in DEFAULT_STABLE_SET
        assert 42 not in DEFAULT_STABLE_SET

    def test_union(self):
        s = StableSet([USDT_BSC]).union([WBNB_BSC])
        assert len(s) == 2
        assert WBNB_BSC in s

    def test_default_covers_every_network(self):
        for tokens in STABLECOIN_ADDRESSES.values():
            for address in tokens.values():
                assert address in DEFAULT_STABLE_SET

    def test_network_set_is_restricted(self):
        bsc = stable_set_for_network("bsc")
        assert USDT_BSC in bsc
        assert STABLECOIN_ADDRESSES["ethereum"]["USDC"] not in bsc

    def test_unknown_network_is_empty(self):
        assert len(stable_set_for_network("fantom")) == 0


class TestClassification:
    def test_is_stablecoin(self):
        assert is_stablecoin(USDT_BSC) is True
        assert is_stablecoin(WBNB_BSC) is False

    def test_symbol_is_not_enough(self):
        # classification is by address; a symbol string never matches
        assert is_stablecoin("USDT") is False

    def test_stablecoin_side(self):
        assert stablecoin_side(USDT_BSC, WBNB_BSC) == 0
        assert stablecoin_side(WBNB_BSC, USDT_BSC) == 1
        assert stablecoin_side(WBNB_BSC, WBNB_BSC) == -1
        usdc = STABLECOIN_ADDRESSES["bsc"]["USDC"]
        assert stablecoin_side(USDT_BSC, usdc) == -1


# ═══════════════════════════════════════════════════════════════════════════
# 2. rpc_helpers.py
# ═══════════════════════════════════════════════════════════════════════════

from lp_analyzer.rpc_helpers import (
    MAX_UINT128,
    SELECTORS,
    decode_address,
    decode_int,
    decode_string,
    decode_uint,
    encode_address,
    encode_collect_params,
    encode_int24,
    encode_uint24,
    encode_uint256,
    eth_block_number,
    eth_call,
    eth_call_batch,
    normalize_symbol,
    to_block_tag,
)


def abi_string(text: str) -> str:
    raw = text.encode().hex()
    return encode_uint256(32) + encode_uint256(len(text.encode())) + raw.ljust(64, "0")


class TestEncoding:
    def test_uint256(self):
        assert encode_uint256(255) == "0" * 62 + "ff"
        assert len(encode_uint256(2 ** 256 - 1)) == 64

    def test_address(self):
        enc = encode_address(USDT_BSC)
        assert enc == "0" * 24 + USDT_BSC[2:].lower()

    def test_uint24(self):
        assert encode_uint24(500).endswith("1f4")

    def test_int24_negative_round_trips(self):
        assert decode_int(encode_int24(-887220)) == -887220
        assert decode_int(encode_int24(887220)) == 887220

    @pytest.mark.parametrize("encode,value", [
        (encode_uint24, 2 ** 24),
        (encode_uint256, -1),
        (encode_int24, 2 ** 23),
    ])
    def test_out_of_range_rejected(self, encode, value):
        with pytest.raises(ValueError):
            encode(value)

    def test_short_address_rejected(self):
        with pytest.raises(ValueError):
            encode_address("0x1234")

    def test_collect_params_layout(self):
        enc = encode_collect_params(7, OWNER)
        assert len(enc) == 4 * 64
        assert decode_uint(enc, 0) == 7
        assert decode_address(enc, 1) == OWNER
        assert decode_uint(enc, 2) == MAX_UINT128
        assert decode_uint(enc, 3) == MAX_UINT128

    def test_block_tag(self):
        assert to_block_tag(None) == "latest"
        assert to_block_tag(255) == "0xff"
        assert to_block_tag("safe") == "safe"

    def test_selectors_are_four_bytes(self):
        for sel in SELECTORS.values():
            assert sel.startswith("0x") and len(sel) == 10


class TestDecoding:
    def test_uint_slots(self):
        data = encode_uint256(1) + encode_uint256(2)
        assert decode_uint(data, 0) == 1
        assert decode_uint(data, 1) == 2

    def test_short_word_raises(self):
        with pytest.raises(ValueError):
            decode_uint("00ff", 0)
        with pytest.raises(ValueError):
            decode_uint(encode_uint256(1), 1)

    def test_address(self):
        assert decode_address(encode_address(WBNB_BSC)) == WBNB_BSC.lower()

    def test_dynamic_string(self):
        assert decode_string(abi_string("WBNB")) == "WBNB"

    def test_bytes32_string(self):
        # MKR-style bytes32 symbol
        assert decode_string("4d4b52".ljust(64, "0")) == "MKR"

    def test_garbage_string(self):
        assert decode_string("zz") == "UNK"

    @pytest.mark.parametrize("raw,expected", [
        ("USD₮0", "USDT"),
        ("USDT0", "USDT"),
        ("  WBNB\x00", "WBNB"),
        ("CAKE", "CAKE"),
    ])
    def test_normalize_symbol(self, raw, expected):
        assert normalize_symbol(raw) == expected


class TestEthCall:
    def test_success_strips_prefix(self):
        patcher, _ = mock_rpc({"jsonrpc": "2.0", "id": 1, "result": "0x" + "0" * 63 + "1"})
        try:
            result = asyncio.run(eth_call("http://fake", "0xAddr", "0xData"))
        finally:
            patcher.stop()
        assert result == "0" * 63 + "1"

    def test_pins_block_and_sender(self):
        patcher, client = mock_rpc({"jsonrpc": "2.0", "id": 1, "result": "0x" + "0" * 64})
        try:
            asyncio.run(eth_call("http://fake", "0xAddr", "0xData", block=123, sender=OWNER))
        finally:
            patcher.stop()
        sent = client.post.call_args.kwargs["json"]
        assert sent["params"] == [{"to": "0xAddr", "data": "0xData", "from": OWNER}, "0x7b"]

    def test_rpc_error_raises(self):
        patcher, _ = mock_rpc({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}})
        try:
            with pytest.raises(RuntimeError, match="RPC error"):
                asyncio.run(eth_call("http://fake", "0xAddr", "0xData"))
        finally:
            patcher.stop()

    def test_empty_result_raises(self):
        patcher, _ = mock_rpc({"jsonrpc": "2.0", "id": 1, "result": "0x"})
        try:
            with pytest.raises(RuntimeError, match="Empty response"):
                asyncio.run(eth_call("http://fake", "0xAddr", "0xData"))
        finally:
            patcher.stop()


class TestEthCallBatch:
    def test_results_ordered_by_id(self):
        patcher, client = mock_rpc([
            {"jsonrpc": "2.0", "id": 2, "result": "0xbb"},
            {"jsonrpc": "2.0", "id": 1, "result": "0xaa"},
        ])
        try:
            results = asyncio.run(eth_call_batch("http://fake", [("0xA", "0xD1"), ("0xB", "0xD2")], block=16))
        finally:
            patcher.stop()
        assert results == ["aa", "bb"]
        sent = client.post.call_args.kwargs["json"]
        assert all(p["params"][1] == "0x10" for p in sent)

    def test_error_in_batch_raises(self):
        patcher, _ = mock_rpc([{"jsonrpc": "2.0", "id": 1, "error": {"message": "boom"}}])
        try:
            with pytest.raises(RuntimeError, match="boom"):
                asyncio.run(eth_call_batch("http://fake", [("0xA", "0xD")]))
        finally:
            patcher.stop()

    def test_length_mismatch_raises(self):
        patcher, _ = mock_rpc([{"jsonrpc": "2.0", "id": 1, "result": "0xaa"}])
        try:
            with pytest.raises(RuntimeError, match="2 calls"):
                asyncio.run(eth_call_batch("http://fake", [("0xA", "0xD"), ("0xB", "0xD")]))
        finally:
            patcher.stop()

    def test_single_error_object(self):
        patcher, _ = mock_rpc({"jsonrpc": "2.0", "id": None, "error": {"message": "batch too large"}})
        try:
            with pytest.raises(RuntimeError, match="batch too large"):
                asyncio.run(eth_call_batch("http://fake", [("0xA", "0xD")]))
        finally:
            patcher.stop()


class TestBlockNumber:
    def test_hex_parsed(self):
        patcher, _ = mock_rpc({"jsonrpc": "2.0", "id": 1, "result": "0x2a"})
        try:
            assert asyncio.run(eth_block_number("http://fake")) == 42
        finally:
            patcher.stop()


# ═══════════════════════════════════════════════════════════════════════════
# 3. dex_registry.py
# ═══════════════════════════════════════════════════════════════════════════

from lp_analyzer.dex_registry import (
    DEX_REGISTRY,
    resolve_deployment,
    supported_pairs,
)


class TestDexRegistry:
    def test_pancake_bsc(self):
        dep = resolve_deployment("bsc", "pancake")
        assert dep.position_manager == "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364"
        assert dep.factory == "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865"

    def test_uniswap_bsc(self):
        dep = resolve_deployment("bsc", "uniswap")
        assert dep.position_manager == "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613"

    @pytest.mark.parametrize("net,proto", [
        ("BNB", "PancakeSwap_V3"),
        (" eth ", "uniswap_v3"),
        ("arb", "sushiswap"),
    ])
    def test_aliases(self, net, proto):
        dep = resolve_deployment(net, proto)
        assert dep.network in DEX_REGISTRY[dep.protocol]["networks"]

    def test_unsupported_pair(self):
        with pytest.raises(ConfigurationError, match="Unsupported chain/protocol: polygon/pancake"):
            resolve_deployment("polygon", "pancake")

    def test_unknown_protocol(self):
        with pytest.raises(ConfigurationError):
            resolve_deployment("bsc", "curve")

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            resolve_deployment("solana", "uniswap")

    def test_supported_pairs_complete(self):
        pairs = supported_pairs()
        expected = sum(len(d["networks"]) for d in DEX_REGISTRY.values())
        assert len(pairs) == expected


# ═══════════════════════════════════════════════════════════════════════════
# 4. central_config.py
# ═══════════════════════════════════════════════════════════════════════════

from lp_analyzer.central_config import PROJECT_VERSION, Settings


class TestSettings:
    def test_defaults(self):
        s = Settings(environ={})
        assert s.HOST == "0.0.0.0"
        assert s.PORT == 3000
        assert s.CORS_ORIGINS == ["*"]
        assert s.RPC_TIMEOUT == 20
        assert s.CACHE_TTL_SECONDS is None
        assert s.EXTRA_STABLECOINS == []

    def test_env_values(self):
        s = Settings(environ={
            "PORT": "8080",
            "CORS_ORIGINS": "https://a.example, https://b.example",
            "CACHE_TTL_SECONDS": "300",
            "EXTRA_STABLECOINS": WBNB_BSC,
        })
        assert s.PORT == 8080
        assert s.CORS_ORIGINS == ["https://a.example", "https://b.example"]
        assert s.CACHE_TTL_SECONDS == 300.0
        assert s.EXTRA_STABLECOINS == [WBNB_BSC]

    def test_rpc_default(self):
        assert Settings(environ={}).rpc_url("bsc") == "https://bsc-dataseed.binance.org"

    def test_rpc_override(self):
        s = Settings(environ={"RPC_URL_BSC": "https://my-node.example"})
        assert s.rpc_url("bsc") == "https://my-node.example"

    def test_rpc_unknown_network(self):
        with pytest.raises(ConfigurationError, match="No RPC endpoint"):
            Settings(environ={}).rpc_url("fantom")

    def test_version_is_string(self):
        assert isinstance(PROJECT_VERSION, str) and PROJECT_VERSION


# ═══════════════════════════════════════════════════════════════════════════
# 5. snapshot_cache.py
# ═══════════════════════════════════════════════════════════════════════════

from lp_analyzer.snapshot_cache import SnapshotCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestSnapshotCache:
    def test_token_round_trip_case_insensitive(self):
        cache = SnapshotCache()
        cache.put_token("bsc", USDT_BSC, {"decimals": 18, "symbol": "USDT"})
        assert cache.get_token("bsc", USDT_BSC.lower()) == {"decimals": 18, "symbol": "USDT"}
        assert cache.get_token("ethereum", USDT_BSC) is None

    def test_stored_copy(self):
        cache = SnapshotCache()
        meta = {"decimals": 18, "symbol": "USDT"}
        cache.put_token("bsc", USDT_BSC, meta)
        meta["symbol"] = "XXX"
        assert cache.get_token("bsc", USDT_BSC)["symbol"] == "USDT"

    def test_pool_round_trip(self):
        cache = SnapshotCache()
        cache.put_pool("bsc", "0xF", USDT_BSC, WBNB_BSC, 500, POOL)
        assert cache.get_pool("bsc", "0xf", USDT_BSC.lower(), WBNB_BSC, 500) == POOL
        assert cache.get_pool("bsc", "0xf", USDT_BSC, WBNB_BSC, 2500) is None

    def test_ttl_expiry(self):
        clock = FakeClock()
        cache = SnapshotCache(ttl_seconds=60, clock=clock)
        cache.put_pool("bsc", "0xf", USDT_BSC, WBNB_BSC, 500, POOL)
        clock.now += 59
        assert cache.get_pool("bsc", "0xf", USDT_BSC, WBNB_BSC, 500) == POOL
        clock.now += 1
        assert cache.get_pool("bsc", "0xf", USDT_BSC, WBNB_BSC, 500) is None
        assert len(cache) == 0

    def test_no_ttl_never_expires(self):
        clock = FakeClock()
        cache = SnapshotCache(clock=clock)
        cache.put_token("bsc", USDT_BSC, {"decimals": 18, "symbol": "USDT"})
        clock.now += 10 ** 9
        assert cache.get_token("bsc", USDT_BSC) is not None

    def test_invalidate(self):
        cache = SnapshotCache()
        cache.put_token("bsc", USDT_BSC, {"decimals": 18, "symbol": "USDT"})
        cache.put_pool("bsc", "0xf", USDT_BSC, WBNB_BSC, 500, POOL)
        cache.invalidate_token("bsc", USDT_BSC.upper().replace("0X", "0x"))
        cache.invalidate_pool("bsc", "0xF", USDT_BSC, WBNB_BSC, 500)
        assert len(cache) == 0

    def test_stats_and_clear(self):
        cache = SnapshotCache(ttl_seconds=5)
        cache.get_token("bsc", USDT_BSC)
        cache.put_token("bsc", USDT_BSC, {"decimals": 18, "symbol": "USDT"})
        cache.get_token("bsc", USDT_BSC)
        assert cache.stats() == {"tokens": 1, "pools": 0, "hits": 1, "misses": 1, "ttl_seconds": 5}
        cache.clear()
        assert cache.stats()["hits"] == 0
        assert len(cache) == 0

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_bad_ttl(self, ttl):
        with pytest.raises(ValueError):
            SnapshotCache(ttl_seconds=ttl)


# ═══════════════════════════════════════════════════════════════════════════
# 6. position_reader.py
# ═══════════════════════════════════════════════════════════════════════════

import position_reader
from position_reader import PositionReader, analyze_position
from v3_valuation import Q96, sqrt_price_from_tick

BLOCK = 40_000_000
TICK = -64000


def _positions_words(tick_lower=-66000, tick_upper=-62000, liquidity=10 ** 21):
    return (
        encode_uint256(0)                      # nonce
        + encode_address("0x" + "0" * 40)      # operator
        + encode_address(USDT_BSC)             # token0
        + encode_address(WBNB_BSC)             # token1
        + encode_uint24(500)                   # fee
        + encode_int24(tick_lower)
        + encode_int24(tick_upper)
        + encode_uint256(liquidity)
        + encode_uint256(0) * 4                # feeGrowth*, tokensOwed*
    )


def _slot0_words():
    sqrt_x96 = int(sqrt_price_from_tick(TICK) * Q96)
    return encode_uint256(sqrt_x96) + encode_int24(TICK) + encode_uint256(0) * 5


class FakeChain:
    """Answers the reader's batches by selector and records each call."""

    def __init__(self, positions=None):
        self.positions = positions if positions is not None else _positions_words()
        self.batches = []

    def batch(self, rpc_url, calls, timeout=20, block=None, sender=None):
        self.batches.append({"calls": calls, "block": block, "sender": sender})
        selector = calls[0][1][:10]
        if selector == SELECTORS["positions"]:
            return [self.positions, encode_address(OWNER)]
        if selector == SELECTORS["decimals"]:
            symbol = "USDT" if calls[0][0] == USDT_BSC.lower() else "WBNB"
            return [encode_uint256(18), abi_string(symbol)]
        if selector == SELECTORS["slot0"]:
            return [_slot0_words(), encode_uint256(3 * 10 ** 18) + encode_uint256(10 ** 16)]
        raise AssertionError(f"unexpected batch {selector}")


@pytest.fixture
def fake_chain():
    chain = FakeChain()
    with patch.object(position_reader, "_eth_block_number", AsyncMock(return_value=BLOCK)), \
         patch.object(position_reader, "_eth_call_batch", AsyncMock(side_effect=chain.batch)), \
         patch.object(position_reader, "_eth_call", AsyncMock(return_value=encode_address(POOL))) as getpool:
        chain.getpool = getpool
        yield chain


def _reader(cache=None):
    return PositionReader("bsc", "pancake", cache=cache if cache is not None else SnapshotCache(),
                          rpc_url="http://fake", verbose=False)


class TestPositionReader:
    def test_snapshot_fields(self, fake_chain):
        snap = asyncio.run(_reader().read_snapshot(123))
        assert snap.block_number == BLOCK
        assert snap.owner == OWNER
        assert snap.pool_address == POOL
        assert snap.position.tick_lower == -66000
        assert snap.position.liquidity == 10 ** 21
        assert snap.pool.current_tick == TICK
        assert snap.fees.amount0 == 3 * 10 ** 18
        assert snap.meta0.symbol == "USDT"
        assert snap.meta1.decimals == 18

    def test_dynamic_reads_pinned_to_one_block(self, fake_chain):
        asyncio.run(_reader().read_snapshot(123))
        by_selector = {b["calls"][0][1][:10]: b for b in fake_chain.batches}
        assert by_selector[SELECTORS["positions"]]["block"] == BLOCK
        assert by_selector[SELECTORS["slot0"]]["block"] == BLOCK

    def test_collect_simulated_from_owner(self, fake_chain):
        asyncio.run(_reader().read_snapshot(123))
        slot0_batch = next(b for b in fake_chain.batches if b["calls"][0][1] == SELECTORS["slot0"])
        assert slot0_batch["sender"] == OWNER
        collect_data = slot0_batch["calls"][1][1]
        assert collect_data.startswith(SELECTORS["collect"])
        assert collect_data == SELECTORS["collect"] + encode_collect_params(123, OWNER)

    def test_static_lookups_cached(self, fake_chain):
        cache = SnapshotCache()
        asyncio.run(_reader(cache).read_snapshot(123))
        asyncio.run(_reader(cache).read_snapshot(123))
        assert fake_chain.getpool.await_count == 1
        meta_batches = [b for b in fake_chain.batches if b["calls"][0][1] == SELECTORS["decimals"]]
        assert len(meta_batches) == 2
        assert cache.stats()["pools"] == 1
        assert cache.stats()["tokens"] == 2

    @pytest.mark.parametrize("bad", [-1, "5", 1.5, True])
    def test_bad_token_id(self, fake_chain, bad):
        with pytest.raises(InputError):
            asyncio.run(_reader().read_snapshot(bad))

    def test_truncated_positions_response(self):
        chain = FakeChain(positions=encode_uint256(0) * 3)
        with patch.object(position_reader, "_eth_block_number", AsyncMock(return_value=BLOCK)), \
             patch.object(position_reader, "_eth_call_batch", AsyncMock(side_effect=chain.batch)):
            with pytest.raises(InputError, match="positions"):
                asyncio.run(_reader().read_snapshot(1))

    def test_missing_pool(self):
        chain = FakeChain()
        with patch.object(position_reader, "_eth_block_number", AsyncMock(return_value=BLOCK)), \
             patch.object(position_reader, "_eth_call_batch", AsyncMock(side_effect=chain.batch)), \
             patch.object(position_reader, "_eth_call", AsyncMock(return_value=encode_address("0x" + "0" * 40))):
            with pytest.raises(RuntimeError, match="Pool not found"):
                asyncio.run(_reader().read_snapshot(1))

    def test_unsupported_pair(self):
        with pytest.raises(ConfigurationError):
            PositionReader("polygon", "pancake")


class TestAnalyzePosition:
    def test_wire_response(self, fake_chain):
        data = asyncio.run(analyze_position("bsc", "pancake", 123, cost_usd="1000", reader=_reader()))
        assert data["tokenId"] == 123
        assert data["pool"] == POOL
        assert data["blockNumber"] == BLOCK
        assert data["chain"] == "bsc"
        assert data["protocol"] == "pancake"
        assert data["owner"] == OWNER
        assert data["inRange"] is True
        assert data["holdings"]["stableSymbol"] == "USDT"
        assert data["holdings"]["volatileSymbol"] == "WBNB"
        assert data["holdings"]["fees"]["stable"] == "3.00000000"
        assert data["holdings"]["fees"]["volatile"] == "0.01000000"
        assert data["warning"] is None
        assert data["roiPercent"] is not None

    def test_extra_stablecoins_setting(self, fake_chain):
        # WBNB declared stable as well → both sides stable, flagged
        with patch.object(position_reader.settings, "EXTRA_STABLECOINS", [WBNB_BSC]):
            data = asyncio.run(analyze_position("bsc", "pancake", 123, reader=_reader()))
        assert data["warning"] == "Both tokens are stablecoins"


# ═══════════════════════════════════════════════════════════════════════════
# 7. commands.py
# ═══════════════════════════════════════════════════════════════════════════

from lp_analyzer.commands import cmd_chains, format_report


class TestFormatReport:
    def test_report_lines(self, fake_chain):
        data = asyncio.run(analyze_position("bsc", "pancake", 123, cost_usd="1000", reader=_reader()))
        text = format_report(data)
        assert "Position #123" in text
        assert "WBNB/USDT" in text
        assert "In Range" in text
        assert "PnL" in text
        assert f"{BLOCK:,}" in text

    def test_chains_lists_every_pair(self, capsys):
        cmd_chains()
        out = capsys.readouterr().out
        assert "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364" in out
        assert "sushi" in out


# ═══════════════════════════════════════════════════════════════════════════
# 8. run.py
# ═══════════════════════════════════════════════════════════════════════════

import run


class TestParser:
    def test_analyze_defaults(self):
        args = run.create_parser().parse_args(["analyze", "--position", "5"])
        assert args.command == "analyze"
        assert args.chain == "bsc"
        assert args.protocol == "pancake"
        assert args.position == 5
        assert args.cost_usd is None
        assert args.json is False

    def test_analyze_full(self):
        args = run.create_parser().parse_args([
            "analyze", "--chain", "arbitrum", "--protocol", "uniswap",
            "--position", "5260106", "--cost-usd", "1000.50", "--json",
        ])
        assert args.cost_usd == "1000.50"
        assert args.json is True

    def test_position_required(self):
        with pytest.raises(SystemExit):
            run.create_parser().parse_args(["analyze"])

    def test_serve(self):
        args = run.create_parser().parse_args(["serve", "--port", "8080"])
        assert args.port == 8080
        assert args.host is None


class TestMain:
    def test_chains_exit_zero(self, capsys):
        assert run.main(["chains"]) == 0
        assert "pancake" in capsys.readouterr().out

    def test_config_error_exit_two(self, capsys):
        failing = AsyncMock(side_effect=ConfigurationError("Unsupported chain/protocol: x/y"))
        with patch.object(run, "cmd_analyze", failing):
            assert run.main(["analyze", "--chain", "x", "--protocol", "y", "--position", "1"]) == 2
        assert "Unsupported chain/protocol" in capsys.readouterr().out

    def test_rpc_error_exit_one(self):
        with patch.object(run, "cmd_analyze", AsyncMock(side_effect=RuntimeError("RPC error: down"))):
            assert run.main(["analyze", "--position", "1"]) == 1

    def test_success_exit_zero(self):
        with patch.object(run, "cmd_analyze", AsyncMock(return_value={})) as cmd:
            assert run.main(["analyze", "--position", "9", "--cost-usd", "10"]) == 0
        assert cmd.await_args.kwargs["position_id"] == 9
        assert cmd.await_args.kwargs["cost_usd"] == "10"
