#!/usr/bin/env python3
"""
All-time highs and recent growth of Uniswap V2, V3 and V4 TVL.

Uses each version's DefiLlama /protocol total TVL history:
- ATH is the largest history point and its date,
- distance from ATH compares the latest TVL against it,
- 7d/30d growth compares the newest point with the one 7/30 points back
  (0 when the history is shorter than that).

Versions near their ATH, growing fast or above $3B are called out as
milestones. Writes `uniswap-milestones.csv`.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from dexreports.config import Settings
from dexreports.llama import DataPoint, ProtocolSnapshot, fetch_protocols, point_total, version_label
from dexreports.utils import banner, format_usd, pct_change, run_main, signed, write_csv


VERSIONS = ("uniswap-v2", "uniswap-v3", "uniswap-v4")

NEAR_ATH_PCT = 5.0
NEAR_ATH_MIN_TVL = 1e9
SURGE_GROWTH_7D_PCT = 20.0
LARGE_TVL = 3e9


@dataclass(frozen=True)
class AllTimeHigh:
    value: float
    date: str | None


def find_ath(history: list[DataPoint]) -> AllTimeHigh:
    best: DataPoint | None = None
    for p in history:
        if point_total(p) > 0 and (best is None or point_total(p) > point_total(best)):
            best = p
    if best is None:
        return AllTimeHigh(0.0, None)
    return AllTimeHigh(point_total(best), datetime.fromtimestamp(best.timestamp, tz=timezone.utc).date().isoformat())


def growth_pct(history: list[DataPoint], period: int) -> float:
    """Newest point against the one `period` points back, in %."""
    if period <= 0 or len(history) < period:
        return 0.0
    ordered = sorted(history, key=lambda p: p.timestamp)
    return pct_change(point_total(ordered[-1]), point_total(ordered[-period]))


@dataclass(frozen=True)
class VersionMilestones:
    slug: str
    current_tvl: float
    ath: AllTimeHigh
    growth_7d: float
    growth_30d: float

    @property
    def version(self) -> str:
        return version_label(self.slug)

    @property
    def distance_from_ath(self) -> float:
        return pct_change(self.current_tvl, self.ath.value)


def version_milestones(slug: str, snapshot: ProtocolSnapshot | None) -> VersionMilestones:
    if snapshot is None:
        return VersionMilestones(slug, 0.0, AllTimeHigh(0.0, None), 0.0, 0.0)
    return VersionMilestones(
        slug=slug,
        current_tvl=snapshot.latest_tvl(),
        ath=find_ath(snapshot.tvl_history),
        growth_7d=growth_pct(snapshot.tvl_history, 7),
        growth_30d=growth_pct(snapshot.tvl_history, 30),
    )


def milestone_messages(m: VersionMilestones) -> list[str]:
    out = []
    if m.current_tvl > NEAR_ATH_MIN_TVL and m.ath.value > 0 and abs(m.distance_from_ath) < NEAR_ATH_PCT:
        out.append(f"⭐ {m.version} is near ATH! Only {abs(m.distance_from_ath):.2f}% away")
    if m.growth_7d > SURGE_GROWTH_7D_PCT:
        out.append(f"🔥 {m.version} is surging! +{m.growth_7d:.2f}% in 7 days")
    if m.current_tvl > LARGE_TVL:
        out.append(f"💰 {m.version} has over $3B TVL!")
    return out


def render(results: list[VersionMilestones]) -> None:
    print("\n💎 All-Time Highs (ATH):\n")
    for m in results:
        emoji = "🚀" if m.distance_from_ath >= 0 else "📉"
        print(f"{m.version}:")
        print(f"   Current TVL:       {format_usd(m.current_tvl)}")
        print(f"   ATH:               {format_usd(m.ath.value)} ({m.ath.date or 'N/A'})")
        print(f"   Distance from ATH: {emoji} {signed(m.distance_from_ath, '{:.2f}')}%")
        print(f"   7-Day Growth:      {signed(m.growth_7d, '{:.2f}')}%")
        print(f"   30-Day Growth:     {signed(m.growth_30d, '{:.2f}')}%\n")

    print("📈 Ecosystem-Wide Stats:\n")
    print(f"   Total Current TVL: {format_usd(sum(m.current_tvl for m in results))}")
    print(f"   Combined ATH:      {format_usd(sum(m.ath.value for m in results))}\n")

    print("🎯 Recent Milestones:\n")
    messages = [msg for m in results for msg in milestone_messages(m)]
    for msg in messages:
        print(f"   {msg}")
    if not messages:
        print("   None this run")
    print()


CSV_COLUMNS = [
    ("version", "Version"),
    ("current_tvl", "Current TVL (USD)"),
    ("ath_value", "ATH Value (USD)"),
    ("ath_date", "ATH Date"),
    ("distance", "Distance from ATH (%)"),
    ("growth_7d", "7-Day Growth (%)"),
    ("growth_30d", "30-Day Growth (%)"),
]


def csv_row(m: VersionMilestones) -> dict[str, object]:
    return {
        "version": m.version,
        "current_tvl": round(m.current_tvl, 2),
        "ath_value": round(m.ath.value, 2),
        "ath_date": m.ath.date or "N/A",
        "distance": f"{m.distance_from_ath:.2f}",
        "growth_7d": f"{m.growth_7d:.2f}",
        "growth_30d": f"{m.growth_30d:.2f}",
    }


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Uniswap V2-V4 TVL all-time highs and recent growth.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    return dataclasses.replace(settings, output_dir=Path(args.out_dir))


def run(settings: Settings) -> int:
    banner("🏆 Uniswap Milestone & Record-Breaking Stats Tracker", lines=["Data source: DefiLlama protocol API"])

    snapshots = fetch_protocols(VERSIONS, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    if all(s is None for s in snapshots.values()):
        print("❌ No TVL history available")
        return 1

    results = [version_milestones(slug, snapshots.get(slug)) for slug in VERSIONS]
    render(results)
    write_csv(settings.output_dir / "uniswap-milestones.csv", CSV_COLUMNS, [csv_row(m) for m in results])
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
