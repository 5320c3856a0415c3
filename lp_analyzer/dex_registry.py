#!/usr/bin/env python3
"""
DEX Registry — Multi-Protocol V3 Contract Address Configuration
================================================================

Maps each supported V3-compatible DEX to its NonfungiblePositionManager
and Factory contract addresses per network.

Compatibility Rules:
  ✅ Compatible (same positions() / collect() ABI as Uniswap V3):
     - Uniswap V3
     - PancakeSwap V3
     - SushiSwap V3

Contract Address Sources:
  Uniswap V3  : https://docs.uniswap.org/contracts/v3/reference/deployments/
  PancakeSwap : https://developer.pancakeswap.finance/contracts/v3/addresses
  SushiSwap   : https://docs.sushi.com/docs/Products/V3%20AMM/Periphery/Deployment%20Addresses
"""

from dataclasses import dataclass
from typing import Dict, List

from lp_analyzer.errors import ConfigurationError

# ── DEX Registry ────────────────────────────────────────────────────────
#
# Structure:
#   DEX_REGISTRY[protocol_slug] = {
#       "name": str,                       # Display name
#       "icon": str,                       # Emoji for CLI
#       "networks": {
#           "network_slug": {
#               "position_manager": "0x...",
#               "factory": "0x...",
#           }
#       }
#   }

DEX_REGISTRY: Dict[str, dict] = {
    # ── Uniswap V3 ─────────────────────────────────────────────────
    # Same contract on most EVM chains via CREATE2; BSC and Base differ.
    "uniswap": {
        "name": "Uniswap V3",
        "icon": "🦄",
        "networks": {
            "ethereum": {
                "position_manager": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
            },
            "arbitrum": {
                "position_manager": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
            },
            "polygon": {
                "position_manager": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
            },
            "optimism": {
                "position_manager": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
            },
            "base": {
                "position_manager": "0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
                "factory": "0x33128a8fC17869897dcE68Ed026d694621f6FDfD",
            },
            "bsc": {
                "position_manager": "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613",
                "factory": "0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
            },
        },
    },
    # ── PancakeSwap V3 ──────────────────────────────────────────────
    # Fork of Uniswap V3 with identical positions() ABI.
    "pancake": {
        "name": "PancakeSwap V3",
        "icon": "🥞",
        "networks": {
            "bsc": {
                "position_manager": "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
                "factory": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            },
            "ethereum": {
                "position_manager": "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
                "factory": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            },
            "arbitrum": {
                "position_manager": "0x427bF5b37357632377eCbEC9de3626C71A5396c1",
                "factory": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            },
            "base": {
                "position_manager": "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
                "factory": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            },
        },
    },
    # ── SushiSwap V3 ────────────────────────────────────────────────
    # DIFFERENT addresses per chain — verified from sushi-labs/sushi source.
    "sushi": {
        "name": "SushiSwap V3",
        "icon": "🍣",
        "networks": {
            "ethereum": {
                "position_manager": "0x2214A42d8e2A1d20635C2cb0664422c528b6A432",
                "factory": "0xbACEB8eC6b9355Dfc0269C18bac9d6E2Bdc29C4F",
            },
            "arbitrum": {
                "position_manager": "0xF0cBce1942a68BEB3d1b73F0dd86c8DCc363eF49",
                "factory": "0x1af415a1EbA07a4986a52B6f2e7dE7003D82231e",
            },
            "polygon": {
                "position_manager": "0xb7402ee99F0A008e461098AC3a27F4957Df89a40",
                "factory": "0x917933899c6a5f8E37F31E19f92CdbFf7e8ff0e2",
            },
            "base": {
                "position_manager": "0x80C7DD17B01855a6D2347444a0FCC36136a314de",
                "factory": "0xc35DADB65012eC5796536bD9864eD8773aBc74C4",
            },
            "optimism": {
                "position_manager": "0x1af415a1EbA07a4986a52B6f2e7dE7003D82231e",
                "factory": "0x9c6522117e2ed1fE5bdb72bb0eD5E3f2bdE7DBe0",
            },
        },
    },
}

# Accepted spellings → canonical slug
PROTOCOL_ALIASES: Dict[str, str] = {
    "uniswap_v3": "uniswap",
    "univ3": "uniswap",
    "pancakeswap": "pancake",
    "pancakeswap_v3": "pancake",
    "sushiswap": "sushi",
    "sushiswap_v3": "sushi",
}

NETWORK_ALIASES: Dict[str, str] = {
    "bnb": "bsc",
    "eth": "ethereum",
    "arb": "arbitrum",
    "matic": "polygon",
    "op": "optimism",
}


@dataclass(frozen=True)
class Deployment:
    """Resolved contract addresses for one chain/protocol pair."""

    network: str
    protocol: str
    name: str
    icon: str
    position_manager: str
    factory: str


# ── Helper Functions ────────────────────────────────────────────────────


def normalize_network(network: str) -> str:
    key = network.strip().lower()
    return NETWORK_ALIASES.get(key, key)


def normalize_protocol(protocol: str) -> str:
    key = protocol.strip().lower()
    return PROTOCOL_ALIASES.get(key, key)


def resolve_deployment(network: str, protocol: str) -> Deployment:
    """
    Resolve the contracts for a chain/protocol pair.

    Raises:
        ConfigurationError: if the pair is not in the registry.
    """
    net = normalize_network(network)
    slug = normalize_protocol(protocol)
    dex = DEX_REGISTRY.get(slug)
    if not dex or net not in dex["networks"]:
        raise ConfigurationError(f"Unsupported chain/protocol: {network}/{protocol}")
    addrs = dex["networks"][net]
    return Deployment(
        network=net,
        protocol=slug,
        name=dex["name"],
        icon=dex["icon"],
        position_manager=addrs["position_manager"],
        factory=addrs["factory"],
    )


def supported_pairs() -> List[Deployment]:
    """Every supported chain/protocol pair, grouped by protocol."""
    return [
        resolve_deployment(net, slug)
        for slug, dex in DEX_REGISTRY.items()
        for net in dex["networks"]
    ]
