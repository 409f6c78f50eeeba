"""Tests for gas cost comparison."""

import pytest

from dexreports import gas_costs as gc
from dexreports.utils import FetchError


class TestCalculateGasCost:
    """Test gas unit → ETH → USD conversion."""

    def test_v4_single_swap(self):
        """95,000 gas at 30 gwei and $2,000 ETH."""
        cost = gc.calculate_gas_cost(95_000, 30, 2000)

        assert cost.eth == pytest.approx(0.00285)
        assert cost.usd == pytest.approx(5.7)

    def test_zero_gas(self):
        assert gc.calculate_gas_cost(0, 30, 2000).usd == 0.0

    def test_savings_pct(self):
        assert gc.savings_pct(100, 40) == pytest.approx(60.0)
        assert gc.savings_pct(0, 40) is None
        assert gc.savings_pct(100, 0) is None


class TestGasOracle:
    """Test Etherscan gas oracle parsing."""

    def test_propose_gas_price(self, monkeypatch):
        seen = {}

        def fake_fetch(url, params=None, timeout_s=10):
            seen.update(params)
            return {"status": "1", "result": {"SafeGasPrice": "10", "ProposeGasPrice": "12.5"}}

        monkeypatch.setattr(gc, "fetch_json", fake_fetch)

        assert gc.fetch_gas_price_gwei("key") == 12.5
        assert seen["apikey"] == "key"
        assert seen["action"] == "gasoracle"

    def test_error_payload(self, monkeypatch):
        monkeypatch.setattr(gc, "fetch_json", lambda url, params=None, timeout_s=10: {"status": "0", "result": "Invalid API Key"})

        with pytest.raises(FetchError):
            gc.fetch_gas_price_gwei()


class TestRun:
    """Test the report entry point."""

    def test_rows_cover_every_benchmark(self):
        rows = gc.cost_rows(30, 2000)

        assert len(rows) == sum(len(v) for v in gc.GAS_BENCHMARKS.values())
        swap_v4 = next(r for r in rows if r["operation"] == "Single Swap" and r["version"] == "V4")
        assert swap_v4["cost_usd"] == "5.70"
        assert swap_v4["cost_eth"] == "0.002850"

    def test_explicit_prices_skip_network(self, settings, monkeypatch):
        def no_network(*args, **kwargs):
            raise AssertionError("network used")

        monkeypatch.setattr(gc, "fetch_json", no_network)
        monkeypatch.setattr(gc, "coingecko_price", no_network)

        assert gc.run(settings, gas_price_gwei=30, eth_price_usd=2000) == 0
        lines = (settings.output_dir / "gas-cost-comparison.csv").read_text(encoding="utf-8").splitlines()
        assert lines[0] == "Operation,Version,Description,Gas Units,Cost (ETH),Cost (USD)"
        assert len(lines) == 13

    def test_fallback_prices(self, settings, monkeypatch, capsys):
        def fail(*args, **kwargs):
            raise FetchError("offline")

        monkeypatch.setattr(gc, "fetch_json", fail)
        monkeypatch.setattr(gc, "coingecko_price", fail)

        assert gc.run(settings) == 0
        out = capsys.readouterr()
        assert "Gas Price: 30.0 gwei" in out.out
        assert "using fallback" in out.err
