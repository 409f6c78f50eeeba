#!/usr/bin/env python3
"""Volume/TVL efficiency of Uniswap V2, V3 and V4; writes `uniswap-efficiency-comparison.csv`."""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

from dexreports.config import Settings
from dexreports.llama import fetch_protocol, fetch_volume_summary, is_chain_key, version_label
from dexreports.utils import banner, fetch_with_fallback, format_usd, pause, run_main, write_csv


VERSIONS = ("uniswap-v2", "uniswap-v3", "uniswap-v4")
TOP_CHAINS = 5


@dataclass(frozen=True)
class VersionEfficiency:
    slug: str
    volume_24h: float
    tvl: float
    top_chains: list[tuple[str, float]] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def version(self) -> str:
        return version_label(self.slug)

    @property
    def ratio(self) -> float:
        return efficiency_ratio(self.volume_24h, self.tvl)


def efficiency_ratio(volume: float, tvl: float) -> float:
    return volume / tvl * 100 if tvl > 0 else 0.0


def relative_efficiency(better: VersionEfficiency | None, base: VersionEfficiency | None) -> float | None:
    if better is None or base is None or base.ratio <= 0:
        return None
    return better.ratio / base.ratio


def get_version_data(slug: str, *, timeout_s: float = 10) -> VersionEfficiency:
    def _fetch() -> VersionEfficiency:
        volume = fetch_volume_summary(slug, timeout_s=timeout_s).total_24h
        snap = fetch_protocol(slug, timeout_s=timeout_s)
        chains = sorted(
            ((k, v) for k, v in snap.current_chain_tvls.items() if is_chain_key(k) and v > 0),
            key=lambda kv: kv[1],
            reverse=True,
        )
        return VersionEfficiency(slug=slug, volume_24h=volume, tvl=snap.latest_tvl(), top_chains=chains[:TOP_CHAINS])

    fallback = VersionEfficiency(slug=slug, volume_24h=0.0, tvl=0.0, used_fallback=True)
    return fetch_with_fallback(_fetch, fallback, label=f"Could not fetch data for {slug}").value


CSV_COLUMNS = [
    ("version", "Version"),
    ("volume_24h", "24h Volume (USD)"),
    ("tvl", "TVL (USD)"),
    ("ratio", "Efficiency Ratio (%)"),
    ("top_chain", "Top Chain"),
]


def csv_row(r: VersionEfficiency) -> dict[str, object]:
    return {
        "version": r.version,
        "volume_24h": round(r.volume_24h, 2),
        "tvl": round(r.tvl, 2),
        "ratio": f"{r.ratio:.2f}",
        "top_chain": r.top_chains[0][0] if r.top_chains else None,
    }


def render(results: list[VersionEfficiency]) -> None:
    print("\n💰 Capital Efficiency Comparison:\n")
    print(f"{'Version':<10} {'24h Volume':<20} {'TVL':<20} {'Efficiency':>10}  Bar")
    print("=" * 80)
    for r in results:
        print(f"{r.version:<10} {format_usd(r.volume_24h):<20} {format_usd(r.tvl):<20} {r.ratio:>9.2f}%  {'█' * int(r.ratio / 2)}")

    by_version = {r.version: r for r in results}
    print()
    for better, base in (("V3", "V2"), ("V4", "V3")):
        multiple = relative_efficiency(by_version.get(better), by_version.get(base))
        if multiple is not None:
            print(f"🚀 {better} is {multiple:.2f}x as efficient as {base}")

    for r in results:
        if not r.top_chains:
            continue
        print(f"\n🌐 Top {r.version} Chains by TVL:\n")
        for i, (chain, tvl) in enumerate(r.top_chains, start=1):
            print(f"   {i}. {chain:<15}: {format_usd(tvl)}")
    print()


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Compare 24h volume / TVL across Uniswap versions.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir))


def run(settings: Settings) -> int:
    banner("📊 Uniswap Efficiency Comparison: Volume/TVL Ratios")
    results = []
    for slug in VERSIONS:
        print(f"📈 Fetching data for {slug}...")
        results.append(get_version_data(slug, timeout_s=settings.http_timeout_s))
        pause(settings.request_delay_s)

    render(results)
    write_csv(settings.output_dir / "uniswap-efficiency-comparison.csv", CSV_COLUMNS, [csv_row(r) for r in results])
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
