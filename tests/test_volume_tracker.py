"""Tests for the 24h volume tracker."""

import pytest

from dexreports import volume_tracker as vt
from dexreports.llama import ProtocolSnapshot, VolumeSummary


def summary(slug, breakdown):
    return VolumeSummary(slug, sum(sum(v.values()) for v in breakdown.values()), breakdown, 1)


class TestChainVolume:
    """Test breakdown lookups."""

    def test_display_name_key(self):
        s = summary("uniswap-v3", {"Ethereum": {"Uniswap V3": 5.0, "Uniswap V2": 9.0}})

        assert vt.chain_volume(s, "Ethereum") == 5.0

    def test_slug_key(self):
        assert vt.chain_volume(summary("uniswap-v3", {"Base": {"uniswap-v3": 7.0}}), "Base") == 7.0

    def test_unknown_keys_are_summed(self):
        assert vt.chain_volume(summary("uniswap-v3", {"Base": {"a": 1.0, "b": 2.0}}), "Base") == 3.0

    def test_missing(self):
        assert vt.chain_volume(None, "Ethereum") == 0.0
        assert vt.chain_volume(summary("uniswap-v3", {}), "Ethereum") == 0.0


class TestChainVolumes:
    def test_rows(self):
        summaries = {
            "uniswap-v2": summary("uniswap-v2", {"Ethereum": {"Uniswap V2": 10.0}}),
            "uniswap-v3": summary("uniswap-v3", {"Ethereum": {"Uniswap V3": 90.0}, "BSC": {"Uniswap V3": 200.0}}),
        }
        protocols = {"uniswap-v3": ProtocolSnapshot("uniswap-v3", "Uniswap V3", [], {}, {"Ethereum": 1000.0})}

        rows = vt.chain_volumes(summaries, protocols, ["ethereum", "bsc"])

        assert [r.chain for r in rows] == ["BSC", "Ethereum"]
        eth = rows[1]
        assert eth.volume_24h == 100.0
        assert eth.total_tvl == 1000.0
        assert eth.turnover_pct == pytest.approx(10.0)
        assert rows[0].turnover_pct == 0.0


class TestRun:
    def test_writes_csv(self, settings, monkeypatch):
        monkeypatch.setattr(vt, "fetch_volume_summaries", lambda *a, **k: {})
        monkeypatch.setattr(vt, "fetch_protocols", lambda *a, **k: {})

        assert vt.run(settings) == 0
        lines = (settings.output_dir / "uniswap-volume-current.csv").read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("Chain,24h Volume (USD),V1 Volume (USD)")
        assert len(lines) == 7
