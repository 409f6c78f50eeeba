"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from dexreports.config import ConfigError, Settings, load_settings


class TestLoadSettings:
    """Test reading the environment into Settings."""

    def test_defaults_with_empty_environment(self):
        """No variables set → documented defaults."""
        s = load_settings({})

        assert s.rpc_urls == {}
        assert s.blocks_to_analyze == 1000
        assert s.chunk_size == 10
        assert s.start_block is None
        assert s.debug is False
        assert s.chain is None
        assert s.pair == "WETH/USDC"
        assert s.fork_port is None
        assert s.output_dir == Path("output")

    def test_first_non_empty_rpc_variable_wins(self):
        """Blank ETHEREUM_RPC_URL falls through to ETH_RPC_URL."""
        s = load_settings({"ETHEREUM_RPC_URL": "  ", "ETH_RPC_URL": "https://eth.example", "BASE_RPC_URL": "https://base.example"})

        assert s.rpc_urls == {"ethereum": "https://eth.example", "base": "https://base.example"}

    def test_numeric_overrides(self):
        s = load_settings({"BLOCKS_TO_ANALYZE": "250", "CHUNK_SIZE": "5", "START_BLOCK": "19000000", "FORK_PORT": "8546"})

        assert s.blocks_to_analyze == 250
        assert s.chunk_size == 5
        assert s.start_block == 19_000_000
        assert s.fork_port == 8546

    def test_non_integer_is_config_error(self):
        with pytest.raises(ConfigError, match="BLOCKS_TO_ANALYZE"):
            load_settings({"BLOCKS_TO_ANALYZE": "lots"})

    def test_zero_chunk_size_rejected(self):
        """CHUNK_SIZE must be at least 1."""
        with pytest.raises(ConfigError, match="CHUNK_SIZE"):
            load_settings({"CHUNK_SIZE": "0"})

    @pytest.mark.parametrize("raw,expected", [("1", True), ("true", True), ("false", False), ("0", False), ("off", False)])
    def test_debug_flag(self, raw, expected):
        assert load_settings({"DEBUG": raw}).debug is expected

    def test_chain_is_lowercased(self):
        assert load_settings({"CHAIN": "Arbitrum"}).chain == "arbitrum"


class TestSettings:
    """Test Settings helpers."""

    def test_fork_port_overrides_selected_chain_only(self):
        """FORK_PORT points the selected chain at the local fork."""
        s = Settings(rpc_urls={"ethereum": "https://eth.example", "base": "https://base.example"}, fork_port=8545)

        assert s.rpc_url("ethereum") == "http://127.0.0.1:8545"
        assert s.rpc_url("base") == "https://base.example"
        assert s.rpc_url("polygon") is None

    def test_fork_port_follows_chain(self):
        s = Settings(rpc_urls={"ethereum": "https://eth.example"}, chain="base", fork_port=9000)

        assert s.rpc_url("base") == "http://127.0.0.1:9000"
        assert s.rpc_url("ethereum") == "https://eth.example"

    def test_pair_symbols_normalized(self):
        assert Settings(pair=" weth / usdc ").pair_symbols() == ("WETH", "USDC")

    def test_malformed_pair_rejected(self):
        with pytest.raises(ConfigError):
            Settings(pair="WETH").pair_symbols()
