#!/usr/bin/env python3
"""
Cross-chain price discrepancy scanner.

Per-chain prices are modelled as a CoinGecko reference price scaled by a fixed
per-chain multiplier; the scanner reports the widest spread per pair and whether a
1/10/100 unit arbitrage clears gas. Writes `cross-chain-price-discrepancy.csv`.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from pathlib import Path

from dexreports.chains import CHAINS
from dexreports.config import Settings
from dexreports.utils import banner, coingecko_price, fetch_with_fallback, format_usd, pause, run_main, write_csv


@dataclass(frozen=True)
class MonitoredPair:
    name: str
    coin_id: str
    chains: tuple[str, ...]


MONITORED_PAIRS = (
    MonitoredPair("ETH/USDC", "ethereum", ("ethereum", "arbitrum", "base", "optimism")),
    MonitoredPair("WBTC/ETH", "wrapped-bitcoin", ("ethereum", "arbitrum", "optimism")),
    MonitoredPair("USDT/USDC", "tether", ("ethereum", "arbitrum", "base", "optimism", "polygon")),
)

FALLBACK_PRICES = {"ethereum": 2000.0, "wrapped-bitcoin": 43000.0, "tether": 1.0}

# Fixed per-chain multipliers standing in for venue-level price differences.
CHAIN_VARIATION = {
    "ethereum": 1.0,
    "arbitrum": 0.998,
    "base": 1.002,
    "optimism": 0.999,
    "polygon": 1.001,
}

TRADE_SIZES = (1, 10, 100)
ARB_GAS_UNITS = 300_000
ARB_GAS_PRICE_GWEI = 30


def apply_chain_variation(base_price: float, chain_key: str) -> float:
    return base_price * CHAIN_VARIATION.get(chain_key, 1.0)


@dataclass(frozen=True)
class ChainPrice:
    chain_key: str
    chain: str
    price: float


@dataclass(frozen=True)
class Spread:
    buy: ChainPrice
    sell: ChainPrice

    @property
    def price_diff(self) -> float:
        return self.sell.price - self.buy.price

    @property
    def pct(self) -> float:
        return self.price_diff / self.buy.price * 100 if self.buy.price > 0 else 0.0


def find_spread(prices: list[ChainPrice]) -> Spread | None:
    """Cheapest venue to buy and dearest to sell; None with fewer than two prices."""
    if len(prices) < 2:
        return None
    ordered = sorted(prices, key=lambda p: p.price)
    return Spread(buy=ordered[0], sell=ordered[-1])


@dataclass(frozen=True)
class ArbProfit:
    trade_size: float
    gross_profit: float
    gas_cost: float
    net_profit: float
    profit_pct: float

    @property
    def is_profitable(self) -> bool:
        return self.net_profit > 0


def calculate_arb_profitability(
    price_diff: float,
    trade_size: float,
    eth_price_usd: float,
    *,
    gas_units: int = ARB_GAS_UNITS,
    gas_price_gwei: float = ARB_GAS_PRICE_GWEI,
) -> ArbProfit:
    gross = price_diff * trade_size
    gas_cost = gas_units * gas_price_gwei / 1e9 * eth_price_usd
    net = gross - gas_cost
    pct = net / gross * 100 if gross != 0 else 0.0
    return ArbProfit(trade_size=trade_size, gross_profit=gross, gas_cost=gas_cost, net_profit=net, profit_pct=pct)


def best_trade(price_diff: float, eth_price_usd: float, sizes: tuple[float, ...] = TRADE_SIZES) -> ArbProfit:
    return max((calculate_arb_profitability(price_diff, s, eth_price_usd) for s in sizes), key=lambda p: p.net_profit)


@dataclass(frozen=True)
class PairScan:
    pair: MonitoredPair
    base_price: float
    used_fallback: bool
    prices: list[ChainPrice]
    spread: Spread | None
    trade: ArbProfit | None


def scan_pair(pair: MonitoredPair, base_price: float, eth_price_usd: float, *, used_fallback: bool = False) -> PairScan:
    prices = [
        ChainPrice(chain_key=c, chain=CHAINS[c].name, price=apply_chain_variation(base_price, c))
        for c in pair.chains
        if c in CHAINS
    ]
    prices = [p for p in prices if p.price > 0]
    spread = find_spread(prices)
    trade = best_trade(spread.price_diff, eth_price_usd) if spread is not None else None
    return PairScan(pair, base_price, used_fallback, prices, spread, trade)


CSV_COLUMNS = [
    ("pair", "Trading Pair"),
    ("buy_chain", "Buy Chain"),
    ("sell_chain", "Sell Chain"),
    ("buy_price", "Buy Price (USD)"),
    ("sell_price", "Sell Price (USD)"),
    ("spread", "Spread (%)"),
    ("trade_size", "Trade Size (units)"),
    ("gross_profit", "Gross Profit (USD)"),
    ("gas_cost", "Gas Cost (USD)"),
    ("net_profit", "Net Profit (USD)"),
    ("profitable", "Profitable"),
    ("price_source", "Price Source"),
]


def csv_row(s: PairScan) -> dict[str, object]:
    row: dict[str, object] = {
        "pair": s.pair.name,
        "price_source": "fallback" if s.used_fallback else "coingecko",
    }
    if s.spread is not None and s.trade is not None:
        row.update(
            buy_chain=s.spread.buy.chain,
            sell_chain=s.spread.sell.chain,
            buy_price=f"{s.spread.buy.price:.4f}",
            sell_price=f"{s.spread.sell.price:.4f}",
            spread=f"{s.spread.pct:.4f}",
            trade_size=s.trade.trade_size,
            gross_profit=f"{s.trade.gross_profit:.2f}",
            gas_cost=f"{s.trade.gas_cost:.2f}",
            net_profit=f"{s.trade.net_profit:.2f}",
            profitable="yes" if s.trade.is_profitable else "no",
        )
    return row


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Scan cross-chain price spreads and arbitrage profitability.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir))


def run(settings: Settings) -> int:
    banner("🔍 Cross-Chain Price Discrepancy Scanner")

    base_prices = {}
    for pair in MONITORED_PAIRS:
        base_prices[pair.coin_id] = fetch_with_fallback(
            lambda coin_id=pair.coin_id: coingecko_price(coin_id, timeout_s=settings.http_timeout_s),
            FALLBACK_PRICES.get(pair.coin_id, 1.0),
            label=f"Price for {pair.coin_id}",
        )
        pause(settings.request_delay_s)
    eth = base_prices.get("ethereum")
    eth_price = eth.value if eth is not None else FALLBACK_PRICES["ethereum"]

    scans: list[PairScan] = []
    for pair in MONITORED_PAIRS:
        fetched = base_prices[pair.coin_id]
        s = scan_pair(pair, fetched.value, eth_price, used_fallback=fetched.used_fallback)
        scans.append(s)

        print(f"📊 {pair.name} across {len(s.prices)} chains")
        if s.spread is None or s.trade is None:
            print("   not enough chains priced\n")
            continue
        print(f"   Lowest:  {s.spread.buy.chain} @ ${s.spread.buy.price:.4f}")
        print(f"   Highest: {s.spread.sell.chain} @ ${s.spread.sell.price:.4f}")
        print(f"   Spread:  {s.spread.pct:.4f}%")
        if s.trade.is_profitable:
            print(f"   💰 PROFITABLE! Best size: {s.trade.trade_size} units, net {format_usd(s.trade.net_profit)}\n")
        else:
            print(f"   ❌ Not profitable after gas ({format_usd(s.trade.gas_cost)})\n")

    if any(s.used_fallback for s in scans):
        print("📝 Note: some pairs used fallback prices.\n")

    profitable = sorted(
        (s for s in scans if s.trade is not None and s.trade.is_profitable),
        key=lambda s: s.trade.net_profit,
        reverse=True,
    )
    if profitable:
        print("🚨 Profitable Arbitrage Opportunities:\n")
        for i, s in enumerate(profitable, start=1):
            print(f"{i}. {s.pair.name}: {s.spread.buy.chain} → {s.spread.sell.chain}")
            print(f"   Gross {format_usd(s.trade.gross_profit)}, gas {format_usd(s.trade.gas_cost)}, net {format_usd(s.trade.net_profit)}\n")
    else:
        print("✅ No profitable arbitrage opportunities at current prices.\n")

    write_csv(settings.output_dir / "cross-chain-price-discrepancy.csv", CSV_COLUMNS, [csv_row(s) for s in scans])
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
