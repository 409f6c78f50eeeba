#!/usr/bin/env python3
"""
Daily fee density (fees per dollar of TVL) for the current Monday-Sunday week.

Each protocol's /protocol history and fees summary are fetched once. For every
day of the week (00:00 UTC):
- TVL is the sum of the closest point of each chain series, falling back to the
  total TVL history and then to the current chain TVLs,
- fees are the closest day of the fees chart, falling back to the latest 24h
  total.

Daily density is fees / TVL (%); annualized density is daily x 365. The report
shows weekly highs and lows, a per-day breakdown, each protocol's density day
by day and a trend scaled between the week's lowest and highest density.

Writes `uniswap-weekly-fee-density.csv` with one row per day and protocol.
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path

from dexreports.config import Settings
from dexreports.fee_density import PROTOCOLS, Protocol, density_pct
from dexreports.llama import FeesSummary, ProtocolSnapshot, estimate_total_tvl, fetch_fees_summary, fetch_protocol
from dexreports.utils import banner, bar, debug, fetch_with_fallback, format_usd, pause, pct_change, run_main, write_csv
from dexreports.weekly_tvl_tracker import MAX_BAR_LENGTH, WeekDay, week_dates


@dataclass(frozen=True)
class ProtocolHistory:
    protocol: Protocol
    snapshot: ProtocolSnapshot | None
    fees: FeesSummary | None

    @property
    def has_data(self) -> bool:
        return self.snapshot is not None or self.fees is not None


def fetch_histories(protocols=PROTOCOLS, *, timeout_s: float = 10, delay_s: float = 0.5) -> list[ProtocolHistory]:
    out = []
    for protocol in protocols:
        print(f"📊 Fetching data for {protocol.name}...")
        snapshot = fetch_with_fallback(
            lambda: fetch_protocol(protocol.slug, timeout_s=timeout_s),
            None,
            label=f"Could not fetch TVL history for {protocol.slug}",
        ).value
        fees = fetch_with_fallback(
            lambda: fetch_fees_summary(protocol.slug, timeout_s=timeout_s),
            None,
            label=f"Could not fetch fees for {protocol.slug}",
        ).value
        out.append(ProtocolHistory(protocol, snapshot, fees))
        pause(delay_s)
    return out


@dataclass(frozen=True)
class ProtocolDay:
    protocol: Protocol
    tvl: float
    fees_24h: float
    tvl_source: str

    @property
    def daily_density(self) -> float:
        return density_pct(self.fees_24h, self.tvl)

    @property
    def annualized_density(self) -> float:
        return self.daily_density * 365


def protocol_day(history: ProtocolHistory, target_ts: int) -> ProtocolDay:
    if history.snapshot is not None:
        tvl, source = estimate_total_tvl(history.snapshot, target_ts)
    else:
        tvl, source = 0.0, "missing"
    fees = history.fees.fees_at(target_ts) if history.fees is not None else 0.0
    return ProtocolDay(protocol=history.protocol, tvl=tvl, fees_24h=fees, tvl_source=source)


@dataclass(frozen=True)
class DayDensity:
    day: WeekDay
    protocols: list[ProtocolDay]

    @property
    def total_fees(self) -> float:
        return sum(p.fees_24h for p in self.protocols)

    @property
    def total_tvl(self) -> float:
        return sum(p.tvl for p in self.protocols)

    @property
    def avg_density(self) -> float:
        """Fees over TVL across every protocol, not a mean of per-protocol densities."""
        return density_pct(self.total_fees, self.total_tvl)

    def protocol(self, slug: str) -> ProtocolDay | None:
        for p in self.protocols:
            if p.protocol.slug == slug:
                return p
        return None


def collect_week(histories: list[ProtocolHistory], days: list[WeekDay]) -> list[DayDensity]:
    return [DayDensity(day=d, protocols=[protocol_day(h, d.timestamp) for h in histories]) for d in days]


@dataclass(frozen=True)
class DensityWeekSummary:
    start: str
    end: str
    highest_fees: DayDensity
    lowest_fees: DayDensity
    highest_density: DayDensity


def summarize_week(week: list[DayDensity]) -> DensityWeekSummary:
    if not week:
        raise ValueError("empty week")
    return DensityWeekSummary(
        start=week[0].day.iso,
        end=week[-1].day.iso,
        highest_fees=max(week, key=lambda d: d.total_fees),
        lowest_fees=min(week, key=lambda d: d.total_fees),
        highest_density=max(week, key=lambda d: d.avg_density),
    )


def density_changes(week: list[DayDensity]) -> list[tuple[float, float] | None]:
    """Day-over-day change of the average density: (points, percent)."""
    out: list[tuple[float, float] | None] = []
    prev: float | None = None
    for d in week:
        out.append(None if prev is None else (d.avg_density - prev, pct_change(d.avg_density, prev)))
        prev = d.avg_density
    return out


def protocol_changes(week: list[DayDensity], slug: str) -> list[tuple[ProtocolDay, float | None]]:
    out: list[tuple[ProtocolDay, float | None]] = []
    prev: float | None = None
    for d in week:
        p = d.protocol(slug)
        if p is None:
            continue
        out.append((p, None if prev is None else p.daily_density - prev))
        prev = p.daily_density
    return out


def trend_arrow(change: float | None) -> str:
    if change is None or change == 0:
        return "➡️"
    return "📈" if change > 0 else "📉"


def normalized_density(week: list[DayDensity]) -> list[float]:
    """Each day's density scaled to 0-100 between the week's lowest and highest."""
    densities = [d.avg_density for d in week]
    if not densities:
        return []
    low, high = min(densities), max(densities)
    if high - low <= 0:
        return [0.0 for _ in densities]
    return [(v - low) / (high - low) * 100 for v in densities]


def render(week: list[DayDensity]) -> None:
    s = summarize_week(week)
    print("📊 WEEKLY SUMMARY\n")
    print(f"Week: {s.start} to {s.end}")
    print(f"Highest Daily Fees:  {format_usd(s.highest_fees.total_fees)} ({s.highest_fees.day.name}, {s.highest_fees.day.iso})")
    print(f"Lowest Daily Fees:   {format_usd(s.lowest_fees.total_fees)} ({s.lowest_fees.day.name}, {s.lowest_fees.day.iso})")
    print(f"Highest Avg Density: {s.highest_density.avg_density:.4f}% ({s.highest_density.day.name}, {s.highest_density.day.iso})\n")

    print("📅 DAILY FEE DENSITY BREAKDOWN\n")
    print(f"  {'Day':<10} {'Date':<10} {'Total Fees':>16} {'Total TVL':>18} {'Avg Density':>12}  Change")
    for d, change in zip(week, density_changes(week)):
        change_str = "-" if change is None else f"{change[0]:+.4f}% ({change[1]:.2f}%)"
        print(f"  {d.day.name:<10} {d.day.iso:<10} {format_usd(d.total_fees):>16} {format_usd(d.total_tvl):>18} {d.avg_density:>11.4f}%  {change_str}")
    print()

    print("💰 FEE DENSITY BY PROTOCOL - DAILY BREAKDOWN\n")
    for p in (week[0].protocols if week else []):
        print(f"{p.protocol.name}:")
        for d, (pd, change) in zip(week, protocol_changes(week, p.protocol.slug)):
            change_str = "" if change is None else f" ({change:+.4f}%)"
            print(
                f"  {d.day.name:<10} ({d.day.iso}): Density {pd.daily_density:.4f}% {trend_arrow(change)}{change_str}"
                f" | Fees: {format_usd(pd.fees_24h)} | TVL: {format_usd(pd.tvl)}"
            )
        print()

    print("📈 WEEKLY FEE DENSITY TREND\n")
    for d, norm in zip(week, normalized_density(week)):
        filled = bar(norm, 100, width=MAX_BAR_LENGTH)
        print(f"   {d.day.name:<10} {d.avg_density:.4f}% {format_usd(d.total_fees):<16} │{filled:░<{MAX_BAR_LENGTH}}│")
    print()


CSV_COLUMNS = [
    ("date", "Date"),
    ("day_name", "Day"),
    ("protocol", "Protocol"),
    ("category", "Category"),
    ("fees_24h", "24h Fees (USD)"),
    ("tvl", "TVL (USD)"),
    ("daily_density", "Daily Density (%)"),
    ("annualized_density", "Annualized Density (%)"),
    ("tvl_source", "TVL Source"),
]


def csv_rows(week: list[DayDensity]) -> list[dict[str, object]]:
    return [
        {
            "date": d.day.iso,
            "day_name": d.day.name,
            "protocol": p.protocol.name,
            "category": p.protocol.category,
            "fees_24h": round(p.fees_24h, 2),
            "tvl": round(p.tvl, 2),
            "daily_density": f"{p.daily_density:.4f}",
            "annualized_density": f"{p.annualized_density:.2f}",
            "tvl_source": p.tvl_source,
        }
        for d in week
        for p in d.protocols
    ]


def parse_args(settings: Settings, argv: list[str] | None = None) -> tuple[Settings, date]:
    parser = argparse.ArgumentParser(description="Daily fee density per protocol for the current Monday-Sunday week.")
    parser.add_argument("--date", default=None, help="Any YYYY-MM-DD inside the week to report (default: today, UTC).")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    today = date.fromisoformat(args.date) if args.date else datetime.now(timezone.utc).date()
    return dataclasses.replace(settings, output_dir=Path(args.out_dir)), today


def run(settings: Settings, today: date) -> int:
    days = week_dates(today)
    banner(
        "💎 UNISWAP WEEKLY FEE DENSITY TRACKER",
        lines=[
            f"Protocols: {', '.join(p.name for p in PROTOCOLS)}",
            f"Period: {days[0].iso} (Monday) to {days[-1].iso} (Sunday)",
        ],
    )

    histories = fetch_histories(timeout_s=settings.http_timeout_s, delay_s=settings.request_delay_s)
    if not any(h.has_data for h in histories):
        print("❌ No weekly data available")
        return 1

    week = collect_week(histories, days)
    for d in week:
        debug(settings, f"{d.day.name} ({d.day.iso}): fees {format_usd(d.total_fees)}, TVL {format_usd(d.total_tvl)}")

    render(week)
    write_csv(settings.output_dir / "uniswap-weekly-fee-density.csv", CSV_COLUMNS, csv_rows(week))
    print("✅ Weekly fee density report generated")
    return 0


def main(argv: list[str] | None = None) -> int:
    def _run(settings: Settings) -> int:
        settings, today = parse_args(settings, argv)
        return run(settings, today)

    return run_main(_run)


if __name__ == "__main__":
    raise SystemExit(main())
