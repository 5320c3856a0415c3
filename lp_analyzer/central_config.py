"""
Project Configuration — version, server settings, RPC endpoints
================================================================

Settings are read from the environment (and a local .env file, if any):

  HOST / PORT           API bind address (default 0.0.0.0:3000)
  CORS_ORIGINS          comma-separated list (default "*")
  RPC_TIMEOUT           per-request HTTP timeout, seconds (default 20)
  RPC_URL_<CHAIN>       override the public endpoint, e.g. RPC_URL_BSC
  CACHE_TTL_SECONDS     token/pool cache expiry; unset = never expire
  EXTRA_STABLECOINS     comma-separated addresses added to the stable set
"""

import os
import re
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from lp_analyzer.errors import ConfigurationError
from lp_analyzer.rpc_helpers import RPC_URLS

# Version — single source of truth is pyproject.toml
try:
    PROJECT_VERSION = version("v3-lp-analyzer")
except PackageNotFoundError:
    # Dev / CI: package not installed — read pyproject.toml directly
    _toml = Path(__file__).resolve().parent.parent / "pyproject.toml"
    _m = (
        re.search(r'version\s*=\s*"([^"]+)"', _toml.read_text())
        if _toml.exists()
        else None
    )
    PROJECT_VERSION = _m.group(1) if _m else "0.0.0-dev"
PROJECT_NAME = "V3 LP Analyzer"

# Load environment variables from .env file
load_dotenv()


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Application settings"""

    API_TITLE: str = PROJECT_NAME
    API_DESCRIPTION: str = "Values Uniswap-V3-style LP positions from on-chain state"

    def __init__(self, environ: Optional[dict] = None):
        env = os.environ if environ is None else environ
        self.HOST: str = env.get("HOST", "0.0.0.0")
        self.PORT: int = int(env.get("PORT", 3000))
        self.CORS_ORIGINS: List[str] = _split_csv(env.get("CORS_ORIGINS", "*"))
        self.RPC_TIMEOUT: int = int(env.get("RPC_TIMEOUT", 20))
        ttl = env.get("CACHE_TTL_SECONDS", "").strip()
        self.CACHE_TTL_SECONDS: Optional[float] = float(ttl) if ttl else None
        self.EXTRA_STABLECOINS: List[str] = _split_csv(env.get("EXTRA_STABLECOINS", ""))
        self._env = env

    def rpc_url(self, network: str) -> str:
        """RPC endpoint for a network, honouring RPC_URL_<CHAIN> overrides."""
        override = self._env.get(f"RPC_URL_{network.upper()}")
        if override:
            return override
        if network not in RPC_URLS:
            raise ConfigurationError(
                f"No RPC endpoint for network: {network}. "
                f"Available: {list(RPC_URLS.keys())}"
            )
        return RPC_URLS[network]


# Global settings instance
settings = Settings()
