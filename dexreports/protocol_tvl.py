#!/usr/bin/env python3
"""
Cross-chain TVL breakdown for Curve, SushiSwap and Balancer.

Writes one `<protocol>-tvl-crosschain.csv` per protocol.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from pathlib import Path

from dexreports.chains import CHAINS, DEFILLAMA_TVL_CHAINS
from dexreports.config import Settings
from dexreports.llama import ProtocolSnapshot, fetch_protocols, point_total
from dexreports.utils import banner, bar, format_usd, run_main, share_pct, write_csv


PROTOCOLS = {
    "curve-dex": "Curve Finance",
    "sushiswap": "SushiSwap",
    "balancer-v2": "Balancer V2",
}


@dataclass(frozen=True)
class ChainShare:
    chain_key: str
    chain: str
    tvl: float


def latest_chain_tvl(snapshot: ProtocolSnapshot, chain_name: str) -> float:
    points = snapshot.chain_tvl_history.get(chain_name)
    if points:
        return point_total(max(points, key=lambda p: p.timestamp))
    return snapshot.current_chain_tvl(chain_name)


def chain_breakdown(snapshot: ProtocolSnapshot) -> list[ChainShare]:
    """Latest TVL on each tracked chain where the protocol is deployed, largest first."""
    rows = []
    for key, llama_name in DEFILLAMA_TVL_CHAINS.items():
        if llama_name not in snapshot.chain_tvl_history and llama_name not in snapshot.current_chain_tvls:
            continue
        rows.append(ChainShare(chain_key=key, chain=CHAINS[key].name, tvl=latest_chain_tvl(snapshot, llama_name)))
    return sorted(rows, key=lambda r: r.tvl, reverse=True)


def render(title: str, rows: list[ChainShare], total: float) -> None:
    print(f"\n{title.upper()} - CROSS-CHAIN TVL\n")
    print("TVL by Chain:")
    print("-" * 80)
    for r in rows:
        pct = share_pct(r.tvl, total)
        print(f"{r.chain:<15} {format_usd(r.tvl):>20} {f'({pct:.2f}%)':>10} {bar(pct, 100, width=50)}")
    print("-" * 80)
    tracked = sum(r.tvl for r in rows)
    print(f"{'Tracked chains:':<15} {format_usd(tracked):>20} {f'({share_pct(tracked, total):.2f}%)':>10}")
    print(f"{'Total TVL:':<15} {format_usd(total):>20}\n")


CSV_COLUMNS = [
    ("chain", "Chain"),
    ("tvl", "TVL (USD)"),
    ("share", "Share of Total (%)"),
]


def csv_rows(rows: list[ChainShare], total: float) -> list[dict[str, object]]:
    return [{"chain": r.chain, "tvl": round(r.tvl, 2), "share": f"{share_pct(r.tvl, total):.2f}"} for r in rows]


def parse_args(settings: Settings, argv: list[str] | None = None) -> tuple[Settings, list[str]]:
    parser = argparse.ArgumentParser(description="Cross-chain TVL breakdown for Curve, SushiSwap and Balancer.")
    parser.add_argument("--protocol", action="append", choices=sorted(PROTOCOLS), help="Repeatable; default: all.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir)), args.protocol or list(PROTOCOLS)


def run(settings: Settings, slugs: list[str]) -> int:
    banner("🌐 PROTOCOL CROSS-CHAIN TVL", lines=[f"Protocols: {', '.join(slugs)}", "Data source: DefiLlama protocol API"])

    protocols = fetch_protocols(slugs, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    failed = 0
    for slug in slugs:
        snap = protocols.get(slug)
        if snap is None:
            print(f"❌ No data for {slug}")
            failed += 1
            continue
        rows = chain_breakdown(snap)
        total = snap.latest_tvl()
        render(PROTOCOLS.get(slug, snap.name), rows, total)
        write_csv(settings.output_dir / f"{slug}-tvl-crosschain.csv", CSV_COLUMNS, csv_rows(rows, total))

    return 1 if failed == len(slugs) else 0


def main(argv: list[str] | None = None) -> int:
    def _run(settings: Settings) -> int:
        settings, slugs = parse_args(settings, argv)
        return run(settings, slugs)

    return run_main(_run)


if __name__ == "__main__":
    raise SystemExit(main())
