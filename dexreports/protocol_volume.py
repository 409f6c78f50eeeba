#!/usr/bin/env python3
"""
Cross-chain 24h trading volume for Curve, SushiSwap and Balancer.

Reads each protocol's DefiLlama DEX volume summary and splits its latest day
across the tracked chains, with every chain's share of the protocol-wide 24h
total. Chains where the protocol reports no volume are left out.

Writes one `<protocol>-volume-crosschain.csv` per protocol.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from pathlib import Path

from dexreports.chains import CHAINS, DEFILLAMA_VOLUME_CHAINS
from dexreports.config import Settings
from dexreports.llama import VolumeSummary, breakdown_volume, fetch_volume_summaries
from dexreports.protocol_tvl import PROTOCOLS
from dexreports.utils import banner, bar, format_usd, run_main, share_pct, write_csv


@dataclass(frozen=True)
class ChainVolumeShare:
    chain_key: str
    chain: str
    volume_24h: float


def chain_breakdown(summary: VolumeSummary) -> list[ChainVolumeShare]:
    """Latest-day volume on each tracked chain, largest first."""
    rows = []
    for key, llama_name in DEFILLAMA_VOLUME_CHAINS.items():
        per_protocol = summary.latest_breakdown.get(llama_name)
        if not per_protocol:
            continue
        rows.append(ChainVolumeShare(chain_key=key, chain=CHAINS[key].name, volume_24h=breakdown_volume(per_protocol, summary.slug)))
    return sorted(rows, key=lambda r: r.volume_24h, reverse=True)


def protocol_total(summary: VolumeSummary, rows: list[ChainVolumeShare]) -> float:
    return summary.total_24h or sum(r.volume_24h for r in rows)


def render(title: str, rows: list[ChainVolumeShare], total: float) -> None:
    print(f"\n{title.upper()} - CROSS-CHAIN 24H VOLUME\n")
    print("24h Volume by Chain:")
    print("-" * 80)
    for r in rows:
        pct = share_pct(r.volume_24h, total)
        print(f"{r.chain:<15} {format_usd(r.volume_24h):>20} {f'({pct:.2f}%)':>10} {bar(pct, 100, width=50)}")
    print("-" * 80)
    print(f"{'Total 24h Volume:':<19} {format_usd(total):>16}\n")


CSV_COLUMNS = [
    ("chain", "Chain"),
    ("volume_24h", "24h Volume (USD)"),
    ("share", "Share of Total (%)"),
]


def csv_rows(rows: list[ChainVolumeShare], total: float) -> list[dict[str, object]]:
    return [{"chain": r.chain, "volume_24h": round(r.volume_24h, 2), "share": f"{share_pct(r.volume_24h, total):.2f}"} for r in rows]


def parse_args(settings: Settings, argv: list[str] | None = None) -> tuple[Settings, list[str]]:
    parser = argparse.ArgumentParser(description="Cross-chain 24h volume breakdown for Curve, SushiSwap and Balancer.")
    parser.add_argument("--protocol", action="append", choices=sorted(PROTOCOLS), help="Repeatable; default: all.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir)), args.protocol or list(PROTOCOLS)


def run(settings: Settings, slugs: list[str]) -> int:
    banner("🌐 PROTOCOL CROSS-CHAIN 24H VOLUME", lines=[f"Protocols: {', '.join(slugs)}", "Data source: DefiLlama DEX volume API"])

    summaries = fetch_volume_summaries(slugs, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    failed = 0
    for slug in slugs:
        summary = summaries.get(slug)
        if summary is None:
            print(f"❌ No volume data for {slug}")
            failed += 1
            continue
        rows = chain_breakdown(summary)
        total = protocol_total(summary, rows)
        render(PROTOCOLS.get(slug, slug), rows, total)
        if not rows:
            print("No chain-specific volume data available\n")
        write_csv(settings.output_dir / f"{slug}-volume-crosschain.csv", CSV_COLUMNS, csv_rows(rows, total))

    return 1 if failed == len(slugs) else 0


def main(argv: list[str] | None = None) -> int:
    def _run(settings: Settings) -> int:
        settings, slugs = parse_args(settings, argv)
        return run(settings, slugs)

    return run_main(_run)


if __name__ == "__main__":
    raise SystemExit(main())
