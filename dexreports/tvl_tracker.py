#!/usr/bin/env python3
"""Current Uniswap V1-V4 TVL per chain from DefiLlama; writes `uniswap-tvl-current.csv`."""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from dexreports.chains import CHAINS, DEFILLAMA_TVL_CHAINS, selected_chains
from dexreports.config import Settings
from dexreports.llama import UNISWAP_VERSIONS, ProtocolSnapshot, fetch_protocols, version_label
from dexreports.utils import banner, bar, format_usd, run_main, share_pct, write_csv


@dataclass(frozen=True)
class ChainTvl:
    chain_key: str
    chain: str
    by_version: dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return sum(self.by_version.values())


def chain_tvls(protocols: dict[str, ProtocolSnapshot | None], chain_keys: list[str]) -> list[ChainTvl]:
    """Current TVL per chain and Uniswap version, largest chain first."""
    rows = []
    for key in chain_keys:
        llama_name = DEFILLAMA_TVL_CHAINS[key]
        by_version = {
            slug: (snap.current_chain_tvl(llama_name) if snap is not None else 0.0)
            for slug, snap in protocols.items()
        }
        rows.append(ChainTvl(chain_key=key, chain=CHAINS[key].name, by_version=by_version))
    return sorted(rows, key=lambda r: r.total, reverse=True)


@dataclass(frozen=True)
class TvlAggregates:
    total: float
    by_version: dict[str, float]

    def version_share(self, slug: str) -> float:
        return share_pct(self.by_version.get(slug, 0.0), self.total)


def aggregate_tvls(rows: list[ChainTvl], slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> TvlAggregates:
    by_version = {slug: sum(r.by_version.get(slug, 0.0) for r in rows) for slug in slugs}
    return TvlAggregates(total=sum(by_version.values()), by_version=by_version)


def render(rows: list[ChainTvl], agg: TvlAggregates) -> None:
    print("📊 EXECUTIVE SUMMARY\n")
    print(f"Total TVL Across All Chains: {format_usd(agg.total)}")
    print(f"Total Chains Analyzed: {len(rows)}")
    print(f"Data Timestamp: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC\n")

    print("Version Distribution:")
    for slug in UNISWAP_VERSIONS:
        share = agg.version_share(slug)
        filled = bar(share, 100, width=40)
        print(f"  {version_label(slug)}: {format_usd(agg.by_version.get(slug, 0.0)):<20} │{filled:░<40}│ {share:.1f}%")
    print()

    print("Chain Breakdown:\n")
    header = f"  {'Chain':<12} {'Total':>20}" + "".join(f" {version_label(s):>18}" for s in UNISWAP_VERSIONS) + f" {'Share':>8}"
    print(header)
    print("  " + "-" * (len(header) - 2))
    for r in rows:
        cells = "".join(f" {format_usd(r.by_version.get(s, 0.0)):>18}" for s in UNISWAP_VERSIONS)
        print(f"  {r.chain:<12} {format_usd(r.total):>20}{cells} {share_pct(r.total, agg.total):>7.1f}%")
    print()


def csv_columns() -> list[tuple[str, str]]:
    cols = [("chain", "Chain"), ("total", "Total TVL (USD)")]
    cols += [(slug, f"{version_label(slug)} TVL (USD)") for slug in UNISWAP_VERSIONS]
    cols += [("share", "Share of Total (%)"), ("date", "Date")]
    return cols


def csv_rows(rows: list[ChainTvl], agg: TvlAggregates) -> list[dict[str, object]]:
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    out = []
    for r in rows:
        row: dict[str, object] = {
            "chain": r.chain,
            "total": round(r.total, 2),
            "share": f"{share_pct(r.total, agg.total):.2f}",
            "date": today,
        }
        for slug in UNISWAP_VERSIONS:
            row[slug] = round(r.by_version.get(slug, 0.0), 2)
        out.append(row)
    return out


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Current Uniswap V1-V4 TVL per chain from DefiLlama.")
    parser.add_argument("--chain", default=settings.chain)
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, chain=args.chain.lower() if args.chain else None, output_dir=Path(args.out_dir))


def run(settings: Settings) -> int:
    chain_keys = selected_chains(settings, tuple(DEFILLAMA_TVL_CHAINS))
    banner(
        "💧 UNISWAP TVL TRACKER - CURRENT STATE",
        lines=[f"Chains: {', '.join(chain_keys)}", "Data source: DefiLlama protocol API"],
    )
    if not chain_keys:
        print(f"❌ Unknown chain: {settings.chain}")
        return 1

    protocols = fetch_protocols(UNISWAP_VERSIONS, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    rows = chain_tvls(protocols, chain_keys)
    agg = aggregate_tvls(rows)
    render(rows, agg)
    write_csv(settings.output_dir / "uniswap-tvl-current.csv", csv_columns(), csv_rows(rows, agg))
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
