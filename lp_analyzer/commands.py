"""
V3 LP Analyzer — Command Implementations
========================================

All CLI command handlers live here, keeping run.py as a thin
argparse dispatcher. Each public function corresponds to a
subcommand (analyze, serve, chains, info).
"""

from __future__ import annotations

import json
from typing import Any, Dict

from lp_analyzer.central_config import PROJECT_NAME, PROJECT_VERSION
from lp_analyzer.dex_registry import DEX_REGISTRY, supported_pairs


# ── Formatting ───────────────────────────────────────────────────────────


def format_report(data: Dict[str, Any]) -> str:
    """Human-readable report for one valuation (wire-shaped dict)."""
    h = data["holdings"]
    stable, volatile = h["stableSymbol"], h["volatileSymbol"]
    lines = [
        "",
        "=" * 60,
        f"  Position #{data['tokenId']} — {volatile}/{stable}",
        f"  Chain: {data.get('chain', '?')} | Protocol: {data.get('protocol', '?')}",
        f"  Pool : {data['pool']}",
        "=" * 60,
        f"  Status     : {'🟢 In Range' if data['inRange'] else '🔴 Out of Range'}",
        f"  Price      : {data['priceUsd']} {stable}/{volatile}",
        f"  Range      : {data['range']['minPrice']} – {data['range']['maxPrice']}",
        "",
        f"  Principal  : {h['liquidity']['stable']} {stable}",
        f"               {h['liquidity']['volatile']} {volatile}",
        f"  Fees       : {h['fees']['stable']} {stable}",
        f"               {h['fees']['volatile']} {volatile}",
        f"  Fee Value  : ${h['fees']['feeValueUsd']}",
        "",
        f"  Total Value: ${data['totalValueUsd']}",
    ]
    if data.get("pnlUsd") is not None:
        lines.append(f"  PnL        : ${data['pnlUsd']} ({data['roiPercent']}%)")
    if data.get("warning"):
        lines.append(f"  ⚠️  {data['warning']} — USD figures assume {stable} ≈ $1")
    if data.get("blockNumber") is not None:
        lines.append(f"  Block      : {data['blockNumber']:,}")
    lines.append("=" * 60)
    return "\n".join(lines)


# ── Commands ─────────────────────────────────────────────────────────────


def cmd_info() -> None:
    """Display system and architecture information."""
    print(f"\n📊 {PROJECT_NAME} v{PROJECT_VERSION}")
    print("=" * 55)
    print("🔗 Protocol   : Uniswap V3 & compatible forks (concentrated liquidity)")
    print("📡 Data Source: On-chain JSON-RPC (positions, slot0, simulated collect)")
    print()
    print("📁 Files:")
    print("   run.py             — CLI entry point")
    print("   api_server.py      — HTTP API (GET /analyze)")
    print("   position_reader.py — On-chain snapshot reader")
    print("   v3_valuation.py    — Valuation engine (pure, 50-digit decimals)")
    print("   lp_analyzer/       — RPC codec, registry, stablecoins, cache, config")
    print()
    print("🔄 Supported DEXes (V3-compatible):")
    for dex in DEX_REGISTRY.values():
        nets = ", ".join(dex["networks"].keys())
        print(f"   {dex['icon']} {dex['name']:<16} — {nets}")
    print()
    print("🔗 Quick Start:")
    print("   python run.py analyze --chain bsc --protocol pancake --position 123456")
    print("   python run.py analyze --chain bsc --protocol pancake --position 123456 --cost-usd 1000")
    print("   python run.py serve --port 3000")
    print()
    print("📚 References:")
    print("   Uniswap V3 Whitepaper : https://uniswap.org/whitepaper-v3.pdf")
    print("   Uniswap V3 Docs       : https://docs.uniswap.org/")


def cmd_chains() -> None:
    """List every supported chain/protocol pair with its contracts."""
    print(f"\n{'chain':<10} {'protocol':<9} position manager")
    print("-" * 64)
    for dep in supported_pairs():
        print(f"{dep.network:<10} {dep.protocol:<9} {dep.position_manager}")


async def cmd_analyze(
    chain: str,
    protocol: str,
    position_id: int,
    cost_usd: str | None = None,
    as_json: bool = False,
) -> Dict[str, Any]:
    """Read one position from chain and print its valuation."""
    from position_reader import PositionReader, analyze_position

    # Progress lines would corrupt machine-readable output
    reader = PositionReader(chain, protocol, verbose=not as_json)
    data = await analyze_position(chain, protocol, position_id, cost_usd=cost_usd, reader=reader)
    if as_json:
        print(json.dumps(data, indent=2))
    else:
        print(format_report(data))
    return data


def cmd_serve(host: str | None = None, port: int | None = None) -> None:
    """Start the HTTP API (blocking)."""
    from api_server import serve

    serve(host=host, port=port)
