"""Tests for the weekly TVL tracker."""

from datetime import date

import pytest

from dexreports import weekly_tvl_tracker as wt
from dexreports.llama import PairPoint, ProtocolSnapshot


def day(d, totals_by_chain):
    week_day = wt.WeekDay(d, d.strftime("%A"), 0)
    chains = [wt.ChainDay(key, key.title(), {"uniswap-v3": v}) for key, v in totals_by_chain.items()]
    return wt.DayTvl(week_day, chains)


WEEK = [
    day(date(2024, 1, 1), {"ethereum": 60.0, "base": 40.0}),
    day(date(2024, 1, 2), {"ethereum": 80.0, "base": 40.0}),
    day(date(2024, 1, 3), {"ethereum": 50.0, "base": 40.0}),
]


class TestWeekDates:
    """Test Monday-Sunday week construction."""

    def test_midweek_date(self):
        days = wt.week_dates(date(2024, 1, 3))

        assert [d.iso for d in (days[0], days[-1])] == ["2024-01-01", "2024-01-07"]
        assert [d.name for d in days] == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
        assert days[0].timestamp == 1704067200

    def test_sunday_belongs_to_preceding_week(self):
        assert wt.week_dates(date(2024, 1, 7))[0].iso == "2024-01-01"

    def test_daily_spacing(self):
        days = wt.week_dates(date(2024, 3, 14))

        assert all(b.timestamp - a.timestamp == 86400 for a, b in zip(days, days[1:]))


class TestCollectWeek:
    """Test point-in-time collection."""

    def test_unavailable_protocol(self):
        cd = wt.chain_day({"uniswap-v2": None}, "ethereum", 0)

        assert cd.by_version == {"uniswap-v2": 0.0}
        assert cd.strategies == {"uniswap-v2": "unavailable"}

    def test_uses_chain_history(self):
        days = wt.week_dates(date(2024, 1, 3))
        history = [PairPoint(d.timestamp, 100.0 + i) for i, d in enumerate(days)]
        snap = ProtocolSnapshot("uniswap-v3", "Uniswap V3", [], {"Ethereum": history}, {})

        week = wt.collect_week({"uniswap-v3": snap}, days, ["ethereum"])

        assert [d.total for d in week] == [100.0 + i for i in range(7)]
        assert week[0].chain("ethereum").strategies["uniswap-v3"] == "chain-history"
        assert week[0].chain("base") is None


class TestSummary:
    """Test weekly statistics."""

    def test_summarize(self):
        s = wt.summarize_week(WEEK)

        assert (s.start, s.end) == ("2024-01-01", "2024-01-03")
        assert s.highest.total == 120.0
        assert s.lowest.total == 90.0
        assert s.range == 30.0
        assert s.range_pct == pytest.approx(30 / 90 * 100)
        assert s.average == pytest.approx(310 / 3)
        assert s.net_change == -10.0
        assert s.net_change_pct == pytest.approx(-10.0)

    def test_empty_week(self):
        with pytest.raises(ValueError):
            wt.summarize_week([])

    def test_day_changes(self):
        changes = wt.day_changes(WEEK)

        assert changes[0] is None
        assert changes[1] == (20.0, pytest.approx(20.0))
        assert changes[2][0] == -30.0

    def test_normalized_trend(self):
        assert wt.normalized_trend(WEEK) == [pytest.approx(100 / 3), 100.0, 0.0]

    def test_flat_week_trend(self):
        flat = [day(date(2024, 1, 1), {"ethereum": 5.0}), day(date(2024, 1, 2), {"ethereum": 5.0})]

        assert wt.normalized_trend(flat) == [0.0, 0.0]


class TestRows:
    def test_one_row_per_day_and_chain(self):
        rows = wt.csv_rows(WEEK)

        assert len(rows) == 6
        assert rows[0]["date"] == "2024-01-01"
        assert rows[0]["uniswap-v3"] == 60.0
        assert rows[0]["uniswap-v2"] == 0.0
        assert rows[0]["uniswap-v3_source"] is None


class TestRun:
    def test_writes_csv(self, settings, monkeypatch):
        monkeypatch.setattr(wt, "fetch_protocols", lambda *a, **k: {slug: None for slug in wt.UNISWAP_VERSIONS})

        assert wt.run(settings, date(2024, 1, 3)) == 0
        lines = (settings.output_dir / "uniswap-weekly-tvl.csv").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1 + 7 * 6
        assert lines[1].endswith("unavailable,unavailable,unavailable,unavailable")

    def test_other_protocol_names_file_and_columns(self, settings, monkeypatch):
        seen = []

        def fake_fetch(slugs, **k):
            seen.append(tuple(slugs))
            return {slug: None for slug in slugs}

        monkeypatch.setattr(wt, "fetch_protocols", fake_fetch)

        assert wt.run(settings, date(2024, 1, 3), ("balancer-v2",)) == 0
        assert seen == [("balancer-v2",)]
        lines = (settings.output_dir / "balancer-v2-weekly-tvl.csv").read_text(encoding="utf-8").splitlines()
        assert lines[0] == "Date,Day,Timestamp,Chain,Chain Key,Balancer V2 TVL (USD),Total TVL (USD),Balancer V2 Source"
        assert len(lines) == 1 + 7 * 6

    def test_parse_args_date(self, settings):
        s, today, slugs = wt.parse_args(settings, ["--date", "2024-02-29", "--chain", "BASE"])

        assert today == date(2024, 2, 29)
        assert s.chain == "base"
        assert slugs == wt.UNISWAP_VERSIONS

    def test_parse_args_protocol(self, settings):
        assert wt.parse_args(settings, ["--protocol", "balancer-v2"])[2] == ("balancer-v2",)
