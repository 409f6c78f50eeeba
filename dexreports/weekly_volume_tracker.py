#!/usr/bin/env python3
"""
Daily trading volume per chain for the current Monday-Sunday week.

For every day of the week (00:00 UTC) and every tracked chain:
- volume comes from the closest day of the protocol's DefiLlama DEX volume
  breakdown,
- TVL is estimated from the /protocol history the same way the weekly TVL
  tracker does it.

The report shows daily totals, day-over-day changes, each chain against its
Monday figure, volume/TVL turnover and a trend scaled to the busiest day.

Defaults to Uniswap V1-V4; `--protocol curve-dex` reports Curve instead.
Writes `<prefix>-weekly-volume.csv` with one row per day and chain.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path

from dexreports.chains import CHAINS, DEFILLAMA_TVL_CHAINS, DEFILLAMA_VOLUME_CHAINS, selected_chains
from dexreports.config import Settings
from dexreports.llama import (
    UNISWAP_VERSIONS,
    ProtocolSnapshot,
    VolumeSummary,
    estimate_chain_tvl,
    fetch_protocols,
    fetch_volume_summaries,
    report_prefix,
    series_label,
)
from dexreports.utils import banner, bar, debug, format_usd, pct_change, run_main, share_pct, write_csv
from dexreports.weekly_tvl_tracker import MAX_BAR_LENGTH, WeekDay, week_dates


@dataclass(frozen=True)
class ChainDayVolume:
    chain_key: str
    chain: str
    volume: dict[str, float] = field(default_factory=dict)
    tvl: dict[str, float] = field(default_factory=dict)

    @property
    def total_volume(self) -> float:
        return sum(self.volume.values())

    @property
    def total_tvl(self) -> float:
        return sum(self.tvl.values())

    @property
    def turnover_pct(self) -> float:
        return share_pct(self.total_volume, self.total_tvl)


@dataclass(frozen=True)
class DayVolume:
    day: WeekDay
    chains: list[ChainDayVolume]

    @property
    def total_volume(self) -> float:
        return sum(c.total_volume for c in self.chains)

    @property
    def total_tvl(self) -> float:
        return sum(c.total_tvl for c in self.chains)

    @property
    def turnover_pct(self) -> float:
        return share_pct(self.total_volume, self.total_tvl)

    def slug_volume(self, slug: str) -> float:
        return sum(c.volume.get(slug, 0.0) for c in self.chains)

    def chain(self, chain_key: str) -> ChainDayVolume | None:
        for c in self.chains:
            if c.chain_key == chain_key:
                return c
        return None


def chain_day_volume(
    summaries: dict[str, VolumeSummary | None],
    protocols: dict[str, ProtocolSnapshot | None],
    chain_key: str,
    target_ts: int,
    slugs: tuple[str, ...] = UNISWAP_VERSIONS,
) -> ChainDayVolume:
    volume_name = DEFILLAMA_VOLUME_CHAINS[chain_key]
    tvl_name = DEFILLAMA_TVL_CHAINS[chain_key]
    volume: dict[str, float] = {}
    tvl: dict[str, float] = {}
    for slug in slugs:
        summary = summaries.get(slug)
        volume[slug] = summary.chain_volume_at(volume_name, target_ts) if summary is not None else 0.0
        snap = protocols.get(slug)
        tvl[slug] = estimate_chain_tvl(snap, tvl_name, target_ts)[0] if snap is not None else 0.0
    return ChainDayVolume(chain_key=chain_key, chain=CHAINS[chain_key].name, volume=volume, tvl=tvl)


def collect_week(
    summaries: dict[str, VolumeSummary | None],
    protocols: dict[str, ProtocolSnapshot | None],
    days: list[WeekDay],
    chain_keys: list[str],
    slugs: tuple[str, ...] = UNISWAP_VERSIONS,
) -> list[DayVolume]:
    return [
        DayVolume(day=d, chains=[chain_day_volume(summaries, protocols, key, d.timestamp, slugs) for key in chain_keys])
        for d in days
    ]


@dataclass(frozen=True)
class VolumeWeekSummary:
    start: str
    end: str
    highest: DayVolume
    lowest: DayVolume
    average: float
    total: float
    turnover_pct: float

    @property
    def range(self) -> float:
        return self.highest.total_volume - self.lowest.total_volume

    @property
    def range_pct(self) -> float:
        return share_pct(self.range, self.lowest.total_volume)


def summarize_week(week: list[DayVolume]) -> VolumeWeekSummary:
    if not week:
        raise ValueError("empty week")
    total = sum(d.total_volume for d in week)
    avg_tvl = sum(d.total_tvl for d in week) / len(week)
    return VolumeWeekSummary(
        start=week[0].day.iso,
        end=week[-1].day.iso,
        highest=max(week, key=lambda d: d.total_volume),
        lowest=min(week, key=lambda d: d.total_volume),
        average=total / len(week),
        total=total,
        turnover_pct=share_pct(total / len(week), avg_tvl),
    )


def day_changes(week: list[DayVolume]) -> list[tuple[float, float] | None]:
    out: list[tuple[float, float] | None] = []
    prev: float | None = None
    for d in week:
        out.append(None if prev is None else (d.total_volume - prev, pct_change(d.total_volume, prev)))
        prev = d.total_volume
    return out


def share_of_busiest_day(week: list[DayVolume]) -> list[float]:
    peak = max((d.total_volume for d in week), default=0.0)
    return [share_pct(d.total_volume, peak) for d in week]


def _signed_usd(v: float) -> str:
    return ("+" if v >= 0 else "-") + format_usd(abs(v))


def render(week: list[DayVolume], slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> None:
    s = summarize_week(week)
    print("📊 WEEKLY SUMMARY\n")
    print(f"Week: {s.start} to {s.end}")
    print(f"Highest Volume: {format_usd(s.highest.total_volume)} ({s.highest.day.name}, {s.highest.day.iso})")
    print(f"Lowest Volume:  {format_usd(s.lowest.total_volume)} ({s.lowest.day.name}, {s.lowest.day.iso})")
    print(f"Weekly Range: {format_usd(s.range)} ({s.range_pct:.2f}%)")
    print(f"Average Daily Volume: {format_usd(s.average)}")
    print(f"Week Total: {format_usd(s.total)}")
    print(f"Average Volume/TVL: {s.turnover_pct:.2f}%\n")

    print("📅 DAILY VOLUME BREAKDOWN\n")
    labels = "".join(f" {series_label(v):>16}" for v in slugs)
    print(f"  {'Day':<10} {'Date':<10} {'Total Volume':>18}{labels} {'Vol/TVL':>9}  Day Change")
    for d, change in zip(week, day_changes(week)):
        cells = "".join(f" {format_usd(d.slug_volume(v)):>16}" for v in slugs)
        change_str = "-" if change is None else f"{_signed_usd(change[0])} ({change[1]:.2f}%)"
        print(f"  {d.day.name:<10} {d.day.iso:<10} {format_usd(d.total_volume):>18}{cells} {d.turnover_pct:>8.2f}%  {change_str}")
    print()

    print("💰 VOLUME BY CHAIN - DAILY BREAKDOWN\n")
    for c in week[0].chains:
        monday = c.total_volume
        print(f"{c.chain}:")
        for d in week:
            cd = d.chain(c.chain_key)
            if cd is None:
                continue
            print(f"  {d.day.name:<10} ({d.day.iso}): {format_usd(cd.total_volume):<20} ({pct_change(cd.total_volume, monday):+.2f}% vs Monday)")
        print()

    print("📈 WEEKLY VOLUME TREND\n")
    for d, share in zip(week, share_of_busiest_day(week)):
        filled = bar(share, 100, width=MAX_BAR_LENGTH)
        print(f"   {d.day.name:<10} {format_usd(d.total_volume):<20} │{filled:░<{MAX_BAR_LENGTH}}│ {share:.1f}%")
    print()


def csv_columns(slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> list[tuple[str, str]]:
    cols = [("date", "Date"), ("day_name", "Day"), ("chain", "Chain"), ("chain_key", "Chain Key")]
    cols += [(f"{s}_volume", f"{series_label(s)} 24h Volume (USD)") for s in slugs]
    cols += [("volume", "Total 24h Volume (USD)")]
    cols += [(f"{s}_tvl", f"{series_label(s)} TVL (USD)") for s in slugs]
    cols += [("tvl", "Total TVL (USD)"), ("turnover", "Volume/TVL (%)")]
    return cols


def csv_rows(week: list[DayVolume], slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> list[dict[str, object]]:
    rows = []
    for d in week:
        for c in d.chains:
            row: dict[str, object] = {
                "date": d.day.iso,
                "day_name": d.day.name,
                "chain": c.chain,
                "chain_key": c.chain_key,
                "volume": round(c.total_volume, 2),
                "tvl": round(c.total_tvl, 2),
                "turnover": f"{c.turnover_pct:.2f}",
            }
            for s in slugs:
                row[f"{s}_volume"] = round(c.volume.get(s, 0.0), 2)
                row[f"{s}_tvl"] = round(c.tvl.get(s, 0.0), 2)
            rows.append(row)
    return rows


def parse_args(settings: Settings, argv: list[str] | None = None) -> tuple[Settings, date, tuple[str, ...]]:
    parser = argparse.ArgumentParser(description="Daily DEX volume per chain for the current Monday-Sunday week.")
    parser.add_argument("--protocol", action="append", help="DefiLlama protocol slug, repeatable (default: Uniswap V1-V4).")
    parser.add_argument("--chain", default=settings.chain)
    parser.add_argument("--date", default=None, help="Any YYYY-MM-DD inside the week to report (default: today, UTC).")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    today = date.fromisoformat(args.date) if args.date else datetime.now(timezone.utc).date()
    settings = dataclasses.replace(settings, chain=args.chain.lower() if args.chain else None, output_dir=Path(args.out_dir))
    return settings, today, tuple(args.protocol or UNISWAP_VERSIONS)


def run(settings: Settings, today: date, slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> int:
    chain_keys = selected_chains(settings, tuple(DEFILLAMA_VOLUME_CHAINS))
    days = week_dates(today)
    banner(
        "📈 UNISWAP WEEKLY VOLUME TRACKER" if slugs == UNISWAP_VERSIONS else "📈 WEEKLY VOLUME TRACKER",
        lines=[
            f"Protocols: {', '.join(slugs)}",
            f"Chains: {', '.join(chain_keys)}",
            f"Period: {days[0].iso} (Monday) to {days[-1].iso} (Sunday)",
        ],
    )
    if not chain_keys:
        print(f"❌ Unknown chain: {settings.chain}")
        return 1

    summaries = fetch_volume_summaries(slugs, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    if all(s is None for s in summaries.values()):
        print("❌ No volume data available")
        return 1
    protocols = fetch_protocols(slugs, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)

    week = collect_week(summaries, protocols, days, chain_keys, slugs)
    for d in week:
        debug(settings, f"{d.day.name} ({d.day.iso}): {format_usd(d.total_volume)}")

    render(week, slugs)
    write_csv(settings.output_dir / f"{report_prefix(slugs)}-weekly-volume.csv", csv_columns(slugs), csv_rows(week, slugs))
    return 0


def main(argv: list[str] | None = None) -> int:
    def _run(settings: Settings) -> int:
        settings, today, slugs = parse_args(settings, argv)
        return run(settings, today, slugs)

    return run_main(_run)


if __name__ == "__main__":
    raise SystemExit(main())
