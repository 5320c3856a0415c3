#!/usr/bin/env python3
"""
V3 LP Analyzer -- Concentrated-Liquidity Position Valuation
===========================================================

Values Uniswap V3 / PancakeSwap V3 / SushiSwap V3 positions from on-chain
state: principal, uncollected fees, USD value and PnL.

Usage:
  python run.py analyze --chain bsc --protocol pancake --position <tokenId>
  python run.py analyze --chain bsc --protocol pancake --position <tokenId> --cost-usd 1000
  python run.py analyze ... --json                      Machine-readable output
  python run.py serve [--host 0.0.0.0] [--port 3000]    HTTP API (GET /analyze)
  python run.py chains                                  Supported chain/protocol pairs
  python run.py info                                    System overview

Sources:
  Uniswap V3 Whitepaper : https://uniswap.org/whitepaper-v3.pdf
  Uniswap V3 Docs       : https://docs.uniswap.org/
"""

import sys
import asyncio
import argparse
from pathlib import Path

import httpx

# ── Imports ───────────────────────────────────────────────────────────────

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from lp_analyzer.central_config import PROJECT_VERSION
from lp_analyzer.commands import cmd_analyze, cmd_chains, cmd_info, cmd_serve
from lp_analyzer.errors import ValuationError


# ── CLI Parser ────────────────────────────────────────────────────────────


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="v3-lp-analyzer",
        description=f"V3 LP Analyzer v{PROJECT_VERSION} — concentrated-liquidity position valuation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py analyze --chain bsc --protocol pancake --position 123456
  python run.py analyze --chain bsc --protocol uniswap --position 123456 --cost-usd 1000
  python run.py analyze --chain arbitrum --protocol uniswap --position 5260106 --json
  python run.py serve --port 3000
  python run.py chains

How to find your Position ID:
  The position page URL ends with the NFT token id, e.g.
  app.uniswap.org/positions/v3/<network>/<tokenId>
""",
    )
    parser.add_argument(
        "--version", action="version", version=f"V3 LP Analyzer v{PROJECT_VERSION}"
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")

    analyze_p = sub.add_parser("analyze", help="Value a position from on-chain state")
    analyze_p.add_argument(
        "--chain",
        type=str,
        default="bsc",
        help="Network: bsc, ethereum, arbitrum, polygon, base, optimism (default: bsc)",
    )
    analyze_p.add_argument(
        "--protocol",
        type=str,
        default="pancake",
        help="DEX: pancake, uniswap, sushi (default: pancake)",
    )
    analyze_p.add_argument(
        "--position",
        type=int,
        required=True,
        help="Position NFT tokenId (uint256)",
    )
    analyze_p.add_argument(
        "--cost-usd",
        type=str,
        default=None,
        help="Cost basis in USD, enables PnL / ROI",
    )
    analyze_p.add_argument(
        "--json", action="store_true", help="Print the raw JSON response"
    )

    serve_p = sub.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", type=str, default=None, help="Bind address (default: $HOST or 0.0.0.0)")
    serve_p.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 3000)")

    sub.add_parser("chains", help="List supported chain/protocol pairs")
    sub.add_parser("info", help="System & architecture info")

    return parser


# ── Main ──────────────────────────────────────────────────────────────────


def main(argv=None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "info":
        cmd_info()
        return 0
    if args.command == "chains":
        cmd_chains()
        return 0
    if args.command == "serve":
        cmd_serve(host=args.host, port=args.port)
        return 0

    if args.command == "analyze":
        try:
            asyncio.run(
                cmd_analyze(
                    chain=args.chain,
                    protocol=args.protocol,
                    position_id=args.position,
                    cost_usd=args.cost_usd,
                    as_json=args.json,
                )
            )
        except ValuationError as e:
            print(f"❌ {e}")
            return 2
        except (RuntimeError, httpx.HTTPError) as e:
            print(f"❌ {e}")
            return 1
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n❌ Cancelled.")
        sys.exit(130)
