from __future__ import annotations

from dataclasses import dataclass

from dexreports.config import Settings


V4_POOL_MANAGER = "0x000000000004444c5dc75cB358380D2e3dE08A90"
V3_FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
V3_POSITION_MANAGER = "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"


@dataclass(frozen=True)
class ChainConfig:
    key: str
    name: str
    chain_id: int
    explorer: str
    v2_factory: str | None = None
    v3_factory: str | None = None
    v3_position_manager: str | None = None
    v4_pool_manager: str | None = None
    # V4 pools may hold the native coin (currency 0x0) instead of the wrapped token.
    wrapped_native: str | None = None

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer}/tx/{tx_hash}"


CHAINS: dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        key="ethereum",
        name="Ethereum",
        chain_id=1,
        explorer="https://etherscan.io",
        v2_factory="0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
        v3_factory=V3_FACTORY,
        v3_position_manager=V3_POSITION_MANAGER,
        v4_pool_manager=V4_POOL_MANAGER,
        wrapped_native="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    ),
    "arbitrum": ChainConfig(
        key="arbitrum",
        name="Arbitrum",
        chain_id=42161,
        explorer="https://arbiscan.io",
        v2_factory="0xf1D7CC64Fb4452F05c498126312eBE29f30Fbcf9",
        v3_factory=V3_FACTORY,
        v3_position_manager=V3_POSITION_MANAGER,
        v4_pool_manager=V4_POOL_MANAGER,
        wrapped_native="0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
    ),
    "optimism": ChainConfig(
        key="optimism",
        name="Optimism",
        chain_id=10,
        explorer="https://optimistic.etherscan.io",
        v2_factory="0x6eccab422D763aC031210895C81787E87B43A652",
        v3_factory=V3_FACTORY,
        v3_position_manager=V3_POSITION_MANAGER,
        v4_pool_manager=V4_POOL_MANAGER,
        wrapped_native="0x4200000000000000000000000000000000000006",
    ),
    "base": ChainConfig(
        key="base",
        name="Base",
        chain_id=8453,
        explorer="https://basescan.org",
        v2_factory="0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
        v3_factory="0x33128a8fC17869897dcE68Ed026d69B80cc6b6C0",
        v3_position_manager="0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
        v4_pool_manager=V4_POOL_MANAGER,
        wrapped_native="0x4200000000000000000000000000000000000006",
    ),
    "polygon": ChainConfig(
        key="polygon",
        name="Polygon",
        chain_id=137,
        explorer="https://polygonscan.com",
        v2_factory="0x5757371414417b8C6CAad45bAeF941aBc7d3Ab32",
        v3_factory=V3_FACTORY,
        v3_position_manager=V3_POSITION_MANAGER,
        v4_pool_manager=V4_POOL_MANAGER,
    ),
    "bsc": ChainConfig(
        key="bsc",
        name="BSC",
        chain_id=56,
        explorer="https://bscscan.com",
        v2_factory="0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
        v3_factory="0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
        v3_position_manager="0x7b8A07B6356C1ad843c34d0C5baD61160aC36FE3",
        v4_pool_manager=V4_POOL_MANAGER,
    ),
}

COMMON_TOKENS: dict[str, dict[str, str]] = {
    "WETH": {
        "ethereum": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "arbitrum": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        "optimism": "0x4200000000000000000000000000000000000006",
        "base": "0x4200000000000000000000000000000000000006",
        "polygon": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
        "bsc": "0x2170Ed0880ac9A755fd29B2688956BD959F933F8",
    },
    "USDC": {
        "ethereum": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "arbitrum": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "optimism": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        "base": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "polygon": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "bsc": "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
    },
    "USDT": {
        "ethereum": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "arbitrum": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
        "optimism": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        "base": "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2",
        "polygon": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
        "bsc": "0x55d398326f99059fF775485246999027B3197955",
    },
    "DAI": {
        "ethereum": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "arbitrum": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        "optimism": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        "base": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
        "polygon": "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
        "bsc": "0x1AF3F329e8BE154074D8769D1FFa4eE058B1DBc3",
    },
}

# DefiLlama chain names as used by the /protocol TVL payloads.
DEFILLAMA_TVL_CHAINS: dict[str, str] = {
    "ethereum": "Ethereum",
    "arbitrum": "Arbitrum",
    "optimism": "Optimism",
    "base": "Base",
    "polygon": "Polygon",
    "bsc": "Binance",
}

# DefiLlama chain names as used by the volume breakdown payloads.
DEFILLAMA_VOLUME_CHAINS: dict[str, str] = {
    "ethereum": "Ethereum",
    "arbitrum": "Arbitrum",
    "optimism": "OP Mainnet",
    "base": "Base",
    "polygon": "Polygon",
    "bsc": "BSC",
}


def token_address(symbol: str, chain_key: str) -> str | None:
    return COMMON_TOKENS.get(symbol.upper(), {}).get(chain_key)


def selected_chains(settings: Settings, default: tuple[str, ...] | None = None) -> list[str]:
    """Chain keys to process: the CHAIN override if set, otherwise the default list."""
    keys = list(default) if default is not None else list(CHAINS)
    if settings.chain:
        return [settings.chain] if settings.chain in CHAINS else []
    return keys
