#!/usr/bin/env python3
"""
Latest 24h Uniswap volume and TVL per chain and version.

Volume comes from the newest day of DefiLlama's per-chain DEX volume breakdown,
TVL from the current /protocol chain TVLs. Writes `uniswap-volume-current.csv`.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

from dexreports.chains import CHAINS, DEFILLAMA_VOLUME_CHAINS, selected_chains
from dexreports.config import Settings
from dexreports.llama import (
    UNISWAP_VERSIONS,
    ProtocolSnapshot,
    VolumeSummary,
    breakdown_volume,
    fetch_protocols,
    fetch_volume_summaries,
    version_label,
)
from dexreports.utils import banner, bar, format_usd, run_main, share_pct, write_csv


def chain_volume(summary: VolumeSummary | None, chain_name: str) -> float:
    """Latest-day volume for one chain, keyed by the protocol display name ("Uniswap V3")."""
    if summary is None:
        return 0.0
    per_protocol = summary.latest_breakdown.get(chain_name)
    if not per_protocol:
        return 0.0
    return breakdown_volume(per_protocol, summary.slug)


@dataclass(frozen=True)
class ChainVolume:
    chain_key: str
    chain: str
    volume: dict[str, float] = field(default_factory=dict)
    tvl: dict[str, float] = field(default_factory=dict)

    @property
    def volume_24h(self) -> float:
        return sum(self.volume.values())

    @property
    def total_tvl(self) -> float:
        return sum(self.tvl.values())

    @property
    def turnover_pct(self) -> float:
        return share_pct(self.volume_24h, self.total_tvl)


def chain_volumes(
    summaries: dict[str, VolumeSummary | None],
    protocols: dict[str, ProtocolSnapshot | None],
    chain_keys: list[str],
) -> list[ChainVolume]:
    rows = []
    for key in chain_keys:
        llama_name = DEFILLAMA_VOLUME_CHAINS[key]
        volume = {slug: chain_volume(summaries.get(slug), llama_name) for slug in UNISWAP_VERSIONS}
        tvl = {
            slug: (protocols[slug].current_chain_tvl(llama_name) if protocols.get(slug) is not None else 0.0)
            for slug in UNISWAP_VERSIONS
        }
        rows.append(ChainVolume(chain_key=key, chain=CHAINS[key].name, volume=volume, tvl=tvl))
    return sorted(rows, key=lambda r: r.volume_24h, reverse=True)


def render(rows: list[ChainVolume]) -> None:
    total_volume = sum(r.volume_24h for r in rows)
    total_tvl = sum(r.total_tvl for r in rows)
    print("📊 SUMMARY\n")
    print(f"Total 24h Volume: {format_usd(total_volume)}")
    print(f"Total TVL:        {format_usd(total_tvl)}")
    print(f"Volume/TVL:       {share_pct(total_volume, total_tvl):.2f}%\n")

    print("Version Distribution (24h volume):")
    for slug in UNISWAP_VERSIONS:
        v = sum(r.volume.get(slug, 0.0) for r in rows)
        share = share_pct(v, total_volume)
        print(f"  {version_label(slug)}: {format_usd(v):<20} │{bar(share, 100, width=40):░<40}│ {share:.1f}%")
    print()

    print("Chain Breakdown:\n")
    print(f"  {'Chain':<12} {'24h Volume':>20} {'TVL':>20} {'Vol/TVL':>9} {'Share':>8}")
    for r in rows:
        print(
            f"  {r.chain:<12} {format_usd(r.volume_24h):>20} {format_usd(r.total_tvl):>20} "
            f"{r.turnover_pct:>8.2f}% {share_pct(r.volume_24h, total_volume):>7.1f}%"
        )
    print()


def csv_columns() -> list[tuple[str, str]]:
    cols = [("chain", "Chain"), ("volume_24h", "24h Volume (USD)")]
    cols += [(f"{s}_volume", f"{version_label(s)} Volume (USD)") for s in UNISWAP_VERSIONS]
    cols += [("tvl", "TVL (USD)")]
    cols += [(f"{s}_tvl", f"{version_label(s)} TVL (USD)") for s in UNISWAP_VERSIONS]
    cols += [("turnover", "Volume/TVL (%)")]
    return cols


def csv_rows(rows: list[ChainVolume]) -> list[dict[str, object]]:
    out = []
    for r in rows:
        row: dict[str, object] = {
            "chain": r.chain,
            "volume_24h": round(r.volume_24h, 2),
            "tvl": round(r.total_tvl, 2),
            "turnover": f"{r.turnover_pct:.2f}",
        }
        for s in UNISWAP_VERSIONS:
            row[f"{s}_volume"] = round(r.volume.get(s, 0.0), 2)
            row[f"{s}_tvl"] = round(r.tvl.get(s, 0.0), 2)
        out.append(row)
    return out


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Latest 24h Uniswap volume and TVL per chain and version.")
    parser.add_argument("--chain", default=settings.chain)
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, chain=args.chain.lower() if args.chain else None, output_dir=Path(args.out_dir))


def run(settings: Settings) -> int:
    chain_keys = selected_chains(settings, tuple(DEFILLAMA_VOLUME_CHAINS))
    banner(
        "📈 UNISWAP VOLUME TRACKER - 24H TRADING VOLUME",
        lines=[f"Chains: {', '.join(chain_keys)}", "Data source: DefiLlama DEX volume + protocol APIs"],
    )
    if not chain_keys:
        print(f"❌ Unknown chain: {settings.chain}")
        return 1

    summaries = fetch_volume_summaries(UNISWAP_VERSIONS, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    protocols = fetch_protocols(UNISWAP_VERSIONS, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    rows = chain_volumes(summaries, protocols, chain_keys)
    render(rows)
    write_csv(settings.output_dir / "uniswap-volume-current.csv", csv_columns(), csv_rows(rows))
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
