from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


# Chain key -> environment variables holding its RPC URL (first non-empty wins).
RPC_ENV_VARS: dict[str, tuple[str, ...]] = {
    "ethereum": ("ETHEREUM_RPC_URL", "ETH_RPC_URL"),
    "arbitrum": ("ARBITRUM_RPC_URL",),
    "optimism": ("OPTIMISM_RPC_URL",),
    "base": ("BASE_RPC_URL",),
    "polygon": ("POLYGON_RPC_URL",),
    "bsc": ("BSC_RPC_URL",),
}

DEFAULT_BLOCKS_TO_ANALYZE = 1000
DEFAULT_CHUNK_SIZE = 10
DEFAULT_PAIR = "WETH/USDC"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    rpc_urls: dict[str, str] = field(default_factory=dict)
    blocks_to_analyze: int = DEFAULT_BLOCKS_TO_ANALYZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    start_block: int | None = None
    debug: bool = False
    chain: str | None = None
    pair: str = DEFAULT_PAIR
    fork_port: int | None = None
    fork_block: int | None = None
    output_dir: Path = Path("output")
    http_timeout_s: float = 10.0
    request_delay_s: float = 0.5
    chunk_delay_s: float = 0.2
    etherscan_api_key: str | None = None

    def rpc_url(self, chain_key: str) -> str | None:
        if self.fork_port is not None and chain_key == (self.chain or "ethereum"):
            return f"http://127.0.0.1:{self.fork_port}"
        return self.rpc_urls.get(chain_key)

    def pair_symbols(self) -> tuple[str, str]:
        parts = [p.strip().upper() for p in self.pair.split("/") if p.strip()]
        if len(parts) != 2:
            raise ConfigError(f"PAIR must look like TOKEN0/TOKEN1, got {self.pair!r}")
        return parts[0], parts[1]


def _env_str(environ: Mapping[str, str], name: str) -> str | None:
    val = environ.get(name)
    if val is None:
        return None
    val = val.strip()
    return val or None


def _env_int(environ: Mapping[str, str], name: str, *, minimum: int = 0) -> int | None:
    raw = _env_str(environ, name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    raw = _env_str(environ, name)
    if raw is None:
        return False
    return raw.lower() not in {"0", "false", "no", "off"}


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read the process environment once into an immutable Settings record."""
    env = os.environ if environ is None else environ

    rpc_urls: dict[str, str] = {}
    for chain_key, names in RPC_ENV_VARS.items():
        for name in names:
            url = _env_str(env, name)
            if url:
                rpc_urls[chain_key] = url
                break

    blocks = _env_int(env, "BLOCKS_TO_ANALYZE", minimum=1)
    chunk = _env_int(env, "CHUNK_SIZE", minimum=1)
    chain = _env_str(env, "CHAIN")

    return Settings(
        rpc_urls=rpc_urls,
        blocks_to_analyze=blocks if blocks is not None else DEFAULT_BLOCKS_TO_ANALYZE,
        chunk_size=chunk if chunk is not None else DEFAULT_CHUNK_SIZE,
        start_block=_env_int(env, "START_BLOCK"),
        debug=_env_flag(env, "DEBUG"),
        chain=chain.lower() if chain else None,
        pair=_env_str(env, "PAIR") or DEFAULT_PAIR,
        fork_port=_env_int(env, "FORK_PORT", minimum=1),
        fork_block=_env_int(env, "FORK_BLOCK"),
        output_dir=Path(_env_str(env, "OUTPUT_DIR") or "output"),
        etherscan_api_key=_env_str(env, "ETHERSCAN_API_KEY"),
    )
