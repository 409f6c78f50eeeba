"""Tests for the static chain registry."""

from dexreports.chains import CHAINS, DEFILLAMA_TVL_CHAINS, DEFILLAMA_VOLUME_CHAINS, selected_chains, token_address
from dexreports.config import Settings


class TestChainRegistry:
    """Test chain lookups."""

    def test_tx_url(self):
        assert CHAINS["base"].tx_url("0xabc") == "https://basescan.org/tx/0xabc"

    def test_token_address_case_insensitive(self):
        assert token_address("weth", "ethereum") == "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

    def test_token_address_unknown(self):
        assert token_address("PEPE", "ethereum") is None
        assert token_address("WETH", "solana") is None

    def test_llama_name_tables_cover_every_chain(self):
        """Both DefiLlama name tables know every configured chain."""
        assert set(DEFILLAMA_TVL_CHAINS) == set(CHAINS)
        assert set(DEFILLAMA_VOLUME_CHAINS) == set(CHAINS)


class TestSelectedChains:
    """Test CHAIN filtering."""

    def test_default_list_without_override(self):
        assert selected_chains(Settings(), ("ethereum", "base")) == ["ethereum", "base"]

    def test_all_chains_without_default(self):
        assert selected_chains(Settings()) == list(CHAINS)

    def test_override_selects_one(self):
        assert selected_chains(Settings(chain="polygon"), ("ethereum",)) == ["polygon"]

    def test_unknown_override_selects_none(self):
        assert selected_chains(Settings(chain="solana")) == []
