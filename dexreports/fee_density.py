#!/usr/bin/env python3
"""
Fee density ranking: fees earned per dollar of TVL.

Pulls current TVL (/protocol) and 24h/7d/30d fees (/summary/fees) from
DefiLlama for Uniswap V2-V4, Curve, Aave V3 and PancakeSwap, then ranks them by
30-day density. Writes `fee-density-analysis.csv`.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from pathlib import Path

from dexreports.config import Settings
from dexreports.llama import fetch_fees_summary, fetch_protocol
from dexreports.utils import banner, bar, fetch_with_fallback, format_usd, pause, run_main, signed, write_csv


@dataclass(frozen=True)
class Protocol:
    slug: str
    name: str
    category: str


PROTOCOLS = (
    Protocol("uniswap-v2", "Uniswap V2", "AMM"),
    Protocol("uniswap-v3", "Uniswap V3", "AMM"),
    Protocol("uniswap-v4", "Uniswap V4", "AMM"),
    Protocol("curve-dex", "Curve", "AMM"),
    Protocol("aave-v3", "Aave V3", "Lending"),
    Protocol("pancakeswap", "PancakeSwap", "AMM"),
)


@dataclass(frozen=True)
class FeeDensity:
    daily: float
    weekly: float
    monthly: float
    annualized: float


@dataclass(frozen=True)
class ProtocolMetrics:
    protocol: Protocol
    tvl: float
    fees_24h: float
    fees_7d: float
    fees_30d: float
    density: FeeDensity
    used_fallback: bool = False


def density_pct(fees: float, tvl: float) -> float:
    return fees / tvl * 100 if tvl > 0 else 0.0


def compute_fee_density(tvl: float, fees_24h: float, fees_7d: float, fees_30d: float) -> FeeDensity:
    daily = density_pct(fees_24h, tvl)
    return FeeDensity(
        daily=daily,
        weekly=density_pct(fees_7d, tvl),
        monthly=density_pct(fees_30d, tvl),
        annualized=daily * 365,
    )


def zero_metrics(protocol: Protocol) -> ProtocolMetrics:
    return ProtocolMetrics(protocol, 0.0, 0.0, 0.0, 0.0, compute_fee_density(0, 0, 0, 0), used_fallback=True)


def get_protocol_metrics(protocol: Protocol, *, timeout_s: float = 10) -> ProtocolMetrics:
    def _fetch() -> ProtocolMetrics:
        tvl = fetch_protocol(protocol.slug, timeout_s=timeout_s).latest_tvl()
        fees = fetch_fees_summary(protocol.slug, timeout_s=timeout_s)
        return ProtocolMetrics(
            protocol=protocol,
            tvl=tvl,
            fees_24h=fees.total_24h,
            fees_7d=fees.total_7d,
            fees_30d=fees.total_30d,
            density=compute_fee_density(tvl, fees.total_24h, fees.total_7d, fees.total_30d),
        )

    return fetch_with_fallback(_fetch, zero_metrics(protocol), label=f"Could not fetch data for {protocol.slug}").value


def rank_by_monthly_density(results: list[ProtocolMetrics]) -> list[ProtocolMetrics]:
    return sorted(results, key=lambda r: r.density.monthly, reverse=True)


def average_monthly_density(results: list[ProtocolMetrics]) -> float:
    if not results:
        return 0.0
    return sum(r.density.monthly for r in results) / len(results)


def efficiency_multiple(better: ProtocolMetrics | None, base: ProtocolMetrics | None) -> float | None:
    if better is None or base is None or base.density.monthly <= 0:
        return None
    return better.density.monthly / base.density.monthly


CSV_COLUMNS = [
    ("protocol", "Protocol"),
    ("category", "Category"),
    ("tvl", "TVL (USD)"),
    ("fees_24h", "24h Fees (USD)"),
    ("fees_7d", "7d Fees (USD)"),
    ("fees_30d", "30d Fees (USD)"),
    ("daily_density", "Daily Density (%)"),
    ("weekly_density", "Weekly Density (%)"),
    ("monthly_density", "Monthly Density (%)"),
    ("annualized_density", "Annualized Density (%)"),
    ("fallback", "Fallback"),
]


def csv_row(r: ProtocolMetrics) -> dict[str, object]:
    return {
        "protocol": r.protocol.name,
        "category": r.protocol.category,
        "tvl": round(r.tvl, 2),
        "fees_24h": round(r.fees_24h, 2),
        "fees_7d": round(r.fees_7d, 2),
        "fees_30d": round(r.fees_30d, 2),
        "daily_density": f"{r.density.daily:.4f}",
        "weekly_density": f"{r.density.weekly:.4f}",
        "monthly_density": f"{r.density.monthly:.4f}",
        "annualized_density": f"{r.density.annualized:.2f}",
        "fallback": "yes" if r.used_fallback else "",
    }


def render(results: list[ProtocolMetrics]) -> None:
    print("\n📈 Fee Density Rankings (30-Day):\n")
    print(f"{'Rank':<6} {'Protocol':<18} {'TVL':<20} {'30d Fees':<18} {'Density':>9}  {'Category':<10}")
    print("=" * 90)
    medals = {1: "🥇", 2: "🥈", 3: "🥉"}
    for i, r in enumerate(results, start=1):
        label = f"{medals.get(i, '  ')} {i}"
        print(
            f"{label:<6} {r.protocol.name:<18} {format_usd(r.tvl):<20} {format_usd(r.fees_30d):<18} "
            f"{r.density.monthly:>8.3f}%  {r.protocol.category:<10}"
        )
        print(f"       {'█' * int(r.density.monthly * 5)}\n")

    print("\n🔬 Uniswap Version Comparison:\n")
    for r in results:
        if not r.protocol.slug.startswith("uniswap-"):
            continue
        print(f"{r.protocol.name}:")
        print(f"   TVL:               {format_usd(r.tvl)}")
        print(f"   24h Fees:          {format_usd(r.fees_24h)}")
        print(f"   30d Fees:          {format_usd(r.fees_30d)}")
        print(f"   Daily Density:     {r.density.daily:.4f}%")
        print(f"   Monthly Density:   {r.density.monthly:.4f}%")
        print(f"   Annualized:        {r.density.annualized:.2f}%\n")

    avg = average_monthly_density(results)
    print("📊 Efficiency Analysis:\n")
    print(f"   Average Density (All Protocols): {avg:.3f}%\n")
    if avg > 0:
        for r in results:
            vs_avg = (r.density.monthly - avg) / avg * 100
            if abs(vs_avg) > 20:
                emoji = "🚀" if vs_avg > 0 else "📉"
                print(f"   {emoji} {r.protocol.name}: {signed(vs_avg, '{:.1f}')}% vs average")

    print("\n💡 Key Insights:\n")
    if results:
        top = results[0]
        print(f"   🏆 {top.protocol.name} has the highest fee density at {top.density.monthly:.3f}%")
    by_slug = {r.protocol.slug: r for r in results}
    multiple = efficiency_multiple(by_slug.get("uniswap-v3"), by_slug.get("uniswap-v2"))
    if multiple is not None:
        print(f"   ⚡ Uniswap V3 is {multiple:.2f}x more capital efficient than V2")
    max_density = max((r.density.monthly for r in results), default=0.0)
    print()
    for r in results:
        print(f"   {r.protocol.name:<14} {bar(r.density.monthly, max_density, width=40)}")
    print()


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Rank protocols by fees generated per dollar of TVL.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir))


def run(settings: Settings) -> int:
    banner("💎 Protocol Fee Density Analysis (Fees per $ of TVL)")

    results: list[ProtocolMetrics] = []
    for protocol in PROTOCOLS:
        print(f"📊 Fetching data for {protocol.name}...")
        results.append(get_protocol_metrics(protocol, timeout_s=settings.http_timeout_s))
        pause(settings.request_delay_s)

    results = rank_by_monthly_density(results)
    render(results)
    write_csv(settings.output_dir / "fee-density-analysis.csv", CSV_COLUMNS, [csv_row(r) for r in results])
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
