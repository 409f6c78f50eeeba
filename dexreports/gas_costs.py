#!/usr/bin/env python3
"""
Gas cost comparison for common Uniswap V2, V3 and V4 operations.

Gas units are fixed estimates per operation; the gas price comes from the
Etherscan gas oracle and ETH/USD from CoinGecko, each with a static fallback.
Writes `gas-cost-comparison.csv`.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from pathlib import Path

from dexreports.config import Settings
from dexreports.utils import (
    FetchError,
    banner,
    coingecko_price,
    fetch_json,
    fetch_with_fallback,
    format_usd,
    run_main,
    write_csv,
)


ETHERSCAN_V2_API = "https://api.etherscan.io/v2/api"
DEFAULT_GAS_PRICE_GWEI = 30.0
DEFAULT_ETH_PRICE_USD = 2000.0


@dataclass(frozen=True)
class Benchmark:
    gas: int
    description: str


# Representative gas usage per operation and protocol version.
GAS_BENCHMARKS: dict[str, dict[str, Benchmark]] = {
    "Pool Creation": {
        "V2": Benchmark(2_500_000, "V2 Factory.createPair()"),
        "V3": Benchmark(5_200_000, "V3 Factory.createPool()"),
        "V4": Benchmark(431_000, "V4 Singleton.initialize()"),
    },
    "Single Swap": {
        "V2": Benchmark(120_000, "V2 Router.swapExactTokensForTokens()"),
        "V3": Benchmark(180_000, "V3 Router.exactInputSingle()"),
        "V4": Benchmark(95_000, "V4 PoolManager.swap() with hooks"),
    },
    "Multi Hop Swap": {
        "V2": Benchmark(220_000, "V2 3-hop swap"),
        "V3": Benchmark(350_000, "V3 3-hop swap"),
        "V4": Benchmark(180_000, "V4 3-hop swap (singleton)"),
    },
    "Add Liquidity": {
        "V2": Benchmark(130_000, "V2 add liquidity"),
        "V3": Benchmark(250_000, "V3 mint position"),
        "V4": Benchmark(150_000, "V4 add liquidity with hooks"),
    },
}


@dataclass(frozen=True)
class GasCost:
    eth: float
    usd: float


def calculate_gas_cost(gas_units: int, gas_price_gwei: float, eth_price_usd: float) -> GasCost:
    eth = gas_units * gas_price_gwei / 1e9
    return GasCost(eth=eth, usd=eth * eth_price_usd)


def savings_pct(old_cost: float, new_cost: float) -> float | None:
    if old_cost <= 0 or new_cost <= 0:
        return None
    return (old_cost - new_cost) / old_cost * 100


def fetch_gas_price_gwei(api_key: str | None = None, *, timeout_s: float = 10) -> float:
    params = {"chainid": 1, "module": "gastracker", "action": "gasoracle"}
    if api_key:
        params["apikey"] = api_key
    data = fetch_json(ETHERSCAN_V2_API, params=params, timeout_s=timeout_s)
    result = data.get("result") if isinstance(data, dict) else None
    if not isinstance(result, dict) or not result.get("ProposeGasPrice"):
        raise FetchError(f"gas oracle returned no price: {data!r}"[:200])
    return float(result["ProposeGasPrice"])


CSV_COLUMNS = [
    ("operation", "Operation"),
    ("version", "Version"),
    ("description", "Description"),
    ("gas_units", "Gas Units"),
    ("cost_eth", "Cost (ETH)"),
    ("cost_usd", "Cost (USD)"),
]


def cost_rows(gas_price_gwei: float, eth_price_usd: float) -> list[dict[str, object]]:
    rows = []
    for operation, versions in GAS_BENCHMARKS.items():
        for version, bench in versions.items():
            cost = calculate_gas_cost(bench.gas, gas_price_gwei, eth_price_usd)
            rows.append(
                {
                    "operation": operation,
                    "version": version,
                    "description": bench.description,
                    "gas_units": bench.gas,
                    "cost_eth": f"{cost.eth:.6f}",
                    "cost_usd": f"{cost.usd:.2f}",
                }
            )
    return rows


def render(gas_price_gwei: float, eth_price_usd: float) -> None:
    for operation, versions in GAS_BENCHMARKS.items():
        print(f"🔧 {operation}:\n")
        costs: dict[str, float] = {}
        for version, bench in versions.items():
            cost = calculate_gas_cost(bench.gas, gas_price_gwei, eth_price_usd)
            costs[version] = cost.usd
            print(f"   {version:<4}: {bench.description}")
            print(f"         Gas Used: {bench.gas:,} units")
            print(f"         Cost:     {cost.eth:.6f} ETH ({format_usd(cost.usd)})\n")

        vs_v2 = savings_pct(costs.get("V2", 0), costs.get("V4", 0))
        if vs_v2 is not None:
            print(f"   💰 V4 saves {vs_v2:.1f}% vs V2")
        vs_v3 = savings_pct(costs.get("V3", 0), costs.get("V4", 0))
        if vs_v3 is not None:
            print(f"   💰 V4 saves {vs_v3:.1f}% vs V3 ({costs['V3'] / costs['V4']:.1f}x cheaper)\n")

    print("\n📈 Key Takeaways:\n")
    for operation in ("Pool Creation", "Single Swap", "Multi Hop Swap"):
        v3 = GAS_BENCHMARKS[operation]["V3"].gas
        v4 = GAS_BENCHMARKS[operation]["V4"].gas
        saved = calculate_gas_cost(v3 - v4, gas_price_gwei, eth_price_usd)
        print(f"   {operation}: V4 uses {(v3 - v4) / v3 * 100:.0f}% less gas than V3 ({format_usd(saved.usd)} saved each)")
    print()


def parse_args(settings: Settings, argv: list[str] | None = None) -> tuple[Settings, argparse.Namespace]:
    parser = argparse.ArgumentParser(description="Compare Uniswap V2/V3/V4 gas costs at current prices.")
    parser.add_argument("--gas-price-gwei", type=float, default=None, help="Skip the gas oracle and use this price.")
    parser.add_argument("--eth-price-usd", type=float, default=None, help="Skip CoinGecko and use this price.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir)), args


def run(settings: Settings, gas_price_gwei: float | None = None, eth_price_usd: float | None = None) -> int:
    banner("⛽ Uniswap Gas Cost Comparison: V2 vs V3 vs V4")

    if gas_price_gwei is None:
        gas_price_gwei = fetch_with_fallback(
            lambda: fetch_gas_price_gwei(settings.etherscan_api_key, timeout_s=settings.http_timeout_s),
            DEFAULT_GAS_PRICE_GWEI,
            label="Could not fetch gas price",
        ).value
    if eth_price_usd is None:
        eth_price_usd = fetch_with_fallback(
            lambda: coingecko_price("ethereum", timeout_s=settings.http_timeout_s),
            DEFAULT_ETH_PRICE_USD,
            label="Could not fetch ETH price",
        ).value

    print("📊 Current Conditions:")
    print(f"   Gas Price: {gas_price_gwei} gwei")
    print(f"   ETH Price: {format_usd(eth_price_usd)}\n")

    render(gas_price_gwei, eth_price_usd)
    write_csv(settings.output_dir / "gas-cost-comparison.csv", CSV_COLUMNS, cost_rows(gas_price_gwei, eth_price_usd))
    return 0


def main(argv: list[str] | None = None) -> int:
    def _run(settings: Settings) -> int:
        settings, args = parse_args(settings, argv)
        return run(settings, args.gas_price_gwei, args.eth_price_usd)

    return run_main(_run)


if __name__ == "__main__":
    raise SystemExit(main())
