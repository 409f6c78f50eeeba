#!/usr/bin/env python3
"""
Daily TVL per chain for the current Monday-Sunday week.

For every day (00:00 UTC) and chain, each protocol's TVL is estimated from its
DefiLlama /protocol payload: the chain's own history first, then the total
history scaled by the chain's current share, then the current chain TVL. The
strategy used is kept as a "Source" column.

Defaults to Uniswap V1-V4; `--protocol balancer-v2` reports Balancer instead.
Writes `<prefix>-weekly-tvl.csv`.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

from dexreports.chains import CHAINS, DEFILLAMA_TVL_CHAINS, selected_chains
from dexreports.config import Settings
from dexreports.llama import (
    UNISWAP_VERSIONS,
    ProtocolSnapshot,
    estimate_chain_tvl,
    fetch_protocols,
    report_prefix,
    series_label,
)
from dexreports.utils import banner, bar, debug, format_usd, pct_change, run_main, write_csv


MAX_BAR_LENGTH = 50


@dataclass(frozen=True)
class WeekDay:
    day: date
    name: str
    timestamp: int

    @property
    def iso(self) -> str:
        return self.day.isoformat()


def week_dates(today: date) -> list[WeekDay]:
    """Monday..Sunday of the week containing `today`, each at 00:00 UTC."""
    monday = today - timedelta(days=today.weekday())
    out = []
    for i in range(7):
        d = monday + timedelta(days=i)
        ts = int(datetime.combine(d, time(0, 0), tzinfo=timezone.utc).timestamp())
        out.append(WeekDay(day=d, name=d.strftime("%A"), timestamp=ts))
    return out


@dataclass(frozen=True)
class ChainDay:
    chain_key: str
    chain: str
    by_version: dict[str, float] = field(default_factory=dict)
    strategies: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return sum(self.by_version.values())


@dataclass(frozen=True)
class DayTvl:
    day: WeekDay
    chains: list[ChainDay]

    @property
    def total(self) -> float:
        return sum(c.total for c in self.chains)

    def version_total(self, slug: str) -> float:
        return sum(c.by_version.get(slug, 0.0) for c in self.chains)

    def chain(self, chain_key: str) -> ChainDay | None:
        for c in self.chains:
            if c.chain_key == chain_key:
                return c
        return None


def chain_day(protocols: dict[str, ProtocolSnapshot | None], chain_key: str, target_ts: int) -> ChainDay:
    llama_name = DEFILLAMA_TVL_CHAINS[chain_key]
    by_version: dict[str, float] = {}
    strategies: dict[str, str] = {}
    for slug, snap in protocols.items():
        if snap is None:
            by_version[slug], strategies[slug] = 0.0, "unavailable"
            continue
        by_version[slug], strategies[slug] = estimate_chain_tvl(snap, llama_name, target_ts)
    return ChainDay(chain_key=chain_key, chain=CHAINS[chain_key].name, by_version=by_version, strategies=strategies)


def collect_week(protocols: dict[str, ProtocolSnapshot | None], days: list[WeekDay], chain_keys: list[str]) -> list[DayTvl]:
    return [DayTvl(day=d, chains=[chain_day(protocols, key, d.timestamp) for key in chain_keys]) for d in days]


@dataclass(frozen=True)
class WeekSummary:
    start: str
    end: str
    highest: DayTvl
    lowest: DayTvl
    average: float
    net_change: float
    net_change_pct: float

    @property
    def range(self) -> float:
        return self.highest.total - self.lowest.total

    @property
    def range_pct(self) -> float:
        return self.range / self.lowest.total * 100 if self.lowest.total > 0 else 0.0


def summarize_week(week: list[DayTvl]) -> WeekSummary:
    if not week:
        raise ValueError("empty week")
    first, last = week[0], week[-1]
    return WeekSummary(
        start=first.day.iso,
        end=last.day.iso,
        highest=max(week, key=lambda d: d.total),
        lowest=min(week, key=lambda d: d.total),
        average=sum(d.total for d in week) / len(week),
        net_change=last.total - first.total,
        net_change_pct=pct_change(last.total, first.total),
    )


def day_changes(week: list[DayTvl]) -> list[tuple[float, float] | None]:
    """(absolute, percent) change against the previous day; None for the first day."""
    out: list[tuple[float, float] | None] = []
    prev: float | None = None
    for d in week:
        out.append(None if prev is None else (d.total - prev, pct_change(d.total, prev)))
        prev = d.total
    return out


def normalized_trend(week: list[DayTvl]) -> list[float]:
    """Each day's total scaled into 0..100 between the week's min and max."""
    totals = [d.total for d in week]
    lo, hi = min(totals, default=0.0), max(totals, default=0.0)
    if hi - lo <= 0:
        return [0.0 for _ in totals]
    return [(t - lo) / (hi - lo) * 100 for t in totals]


def _signed_usd(v: float) -> str:
    return ("+" if v >= 0 else "-") + format_usd(abs(v))


def render(week: list[DayTvl], slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> None:
    s = summarize_week(week)
    print("📊 WEEKLY SUMMARY\n")
    print(f"Week Period: {s.start} to {s.end}")
    print(f"Highest TVL: {format_usd(s.highest.total)} ({s.highest.day.name}, {s.highest.day.iso})")
    print(f"Lowest TVL:  {format_usd(s.lowest.total)} ({s.lowest.day.name}, {s.lowest.day.iso})")
    print(f"Weekly Range: {format_usd(s.range)} ({s.range_pct:.2f}%)")
    print(f"Average Daily TVL: {format_usd(s.average)}")
    print(f"Net Weekly Change: {_signed_usd(s.net_change)} ({s.net_change_pct:.2f}%)\n")

    print("📅 DAILY TVL BREAKDOWN\n")
    versions = "".join(f" {series_label(v) + ' TVL':>16}" for v in slugs)
    print(f"  {'Day':<10} {'Date':<10} {'Total TVL':>18}{versions}  Day Change")
    for d, change in zip(week, day_changes(week)):
        cells = "".join(f" {format_usd(d.version_total(v)):>16}" for v in slugs)
        change_str = "-" if change is None else f"{_signed_usd(change[0])} ({change[1]:.2f}%)"
        print(f"  {d.day.name:<10} {d.day.iso:<10} {format_usd(d.total):>18}{cells}  {change_str}")
    print()

    print("💰 TVL BY CHAIN - DAILY BREAKDOWN\n")
    for c in week[0].chains:
        monday_total = c.total
        print(f"{c.chain}:")
        for d in week:
            cd = d.chain(c.chain_key)
            if cd is None:
                continue
            vs_monday = pct_change(cd.total, monday_total)
            print(f"  {d.day.name:<10} ({d.day.iso}): {format_usd(cd.total):<20} ({vs_monday:+.2f}% vs Monday)")
        print()

    print("📈 WEEKLY TVL TREND\n")
    for d, norm in zip(week, normalized_trend(week)):
        filled = bar(norm, 100, width=MAX_BAR_LENGTH)
        print(f"   {d.day.name:<10} {format_usd(d.total):<20} │{filled:░<{MAX_BAR_LENGTH}}│ {norm:.1f}%")
    print()


def csv_columns(slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> list[tuple[str, str]]:
    cols = [("date", "Date"), ("day_name", "Day"), ("timestamp", "Timestamp"), ("chain", "Chain"), ("chain_key", "Chain Key")]
    cols += [(slug, f"{series_label(slug)} TVL (USD)") for slug in slugs]
    cols += [("total", "Total TVL (USD)")]
    cols += [(f"{slug}_source", f"{series_label(slug)} Source") for slug in slugs]
    return cols


def csv_rows(week: list[DayTvl], slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> list[dict[str, object]]:
    rows = []
    for d in week:
        for c in d.chains:
            row: dict[str, object] = {
                "date": d.day.iso,
                "day_name": d.day.name,
                "timestamp": d.day.timestamp,
                "chain": c.chain,
                "chain_key": c.chain_key,
                "total": round(c.total, 2),
            }
            for slug in slugs:
                row[slug] = round(c.by_version.get(slug, 0.0), 2)
                row[f"{slug}_source"] = c.strategies.get(slug)
            rows.append(row)
    return rows


def parse_args(settings: Settings, argv: list[str] | None = None) -> tuple[Settings, date, tuple[str, ...]]:
    parser = argparse.ArgumentParser(description="Daily TVL per chain for the current Monday-Sunday week.")
    parser.add_argument("--protocol", action="append", help="DefiLlama protocol slug, repeatable (default: Uniswap V1-V4).")
    parser.add_argument("--chain", default=settings.chain)
    parser.add_argument("--date", default=None, help="Any YYYY-MM-DD inside the week to report (default: today, UTC).")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    today = date.fromisoformat(args.date) if args.date else datetime.now(timezone.utc).date()
    settings = dataclasses.replace(settings, chain=args.chain.lower() if args.chain else None, output_dir=Path(args.out_dir))
    return settings, today, tuple(args.protocol or UNISWAP_VERSIONS)


def run(settings: Settings, today: date, slugs: tuple[str, ...] = UNISWAP_VERSIONS) -> int:
    chain_keys = selected_chains(settings, tuple(DEFILLAMA_TVL_CHAINS))
    days = week_dates(today)
    banner(
        "📊 UNISWAP WEEKLY TVL TRACKER" if slugs == UNISWAP_VERSIONS else "📊 WEEKLY TVL TRACKER",
        lines=[
            f"Protocols: {', '.join(slugs)}",
            f"Chains: {', '.join(chain_keys)}",
            f"Period: {days[0].iso} (Monday) to {days[-1].iso} (Sunday)",
        ],
    )
    if not chain_keys:
        print(f"❌ Unknown chain: {settings.chain}")
        return 1

    protocols = fetch_protocols(slugs, timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    week = collect_week(protocols, days, chain_keys)
    for d in week:
        debug(settings, f"{d.day.name} ({d.day.iso}): {format_usd(d.total)}")

    render(week, slugs)
    write_csv(settings.output_dir / f"{report_prefix(slugs)}-weekly-tvl.csv", csv_columns(slugs), csv_rows(week, slugs))
    return 0


def main(argv: list[str] | None = None) -> int:
    def _run(settings: Settings) -> int:
        settings, today, slugs = parse_args(settings, argv)
        return run(settings, today, slugs)

    return run_main(_run)


if __name__ == "__main__":
    raise SystemExit(main())
