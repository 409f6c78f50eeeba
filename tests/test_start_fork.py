"""Tests for the Anvil fork launcher."""

from types import SimpleNamespace

from dexreports import start_fork as sf
from dexreports.config import Settings
from dexreports.evm import ForkInfo


def args(**overrides):
    base = {"chain": "ethereum", "port": 8545, "fork_block": None, "check": False}
    base.update(overrides)
    return SimpleNamespace(**base)


class TestAnvilCommand:
    def test_without_block(self):
        assert sf.anvil_command("https://eth.example", 8545) == [
            "anvil", "--fork-url", "https://eth.example", "--port", "8545", "--host", "127.0.0.1",
        ]

    def test_with_block(self):
        assert sf.anvil_command("https://eth.example", 9000, 19_000_000)[-2:] == ["--fork-block-number", "19000000"]


class TestRun:
    """Test launcher exit codes."""

    def test_unknown_chain(self):
        assert sf.run(Settings(), args(chain="solana")) == 1

    def test_missing_rpc(self, capsys):
        assert sf.run(Settings(), args()) == 1
        assert "ETHEREUM_RPC_URL" in capsys.readouterr().err

    def test_anvil_not_installed(self, monkeypatch, capsys):
        def missing(cmd, check=False):
            raise FileNotFoundError("anvil")

        monkeypatch.setattr(sf.subprocess, "run", missing)

        assert sf.run(Settings(rpc_urls={"ethereum": "https://eth.example"}), args()) == 1
        assert "Install Foundry" in capsys.readouterr().err

    def test_forks_upstream_rpc_and_forwards_exit_code(self, monkeypatch):
        """FORK_PORT must not redirect the fork's own upstream to itself."""
        seen = []

        def fake_run(cmd, check=False):
            seen.append(cmd)
            return SimpleNamespace(returncode=3)

        monkeypatch.setattr(sf.subprocess, "run", fake_run)
        settings = Settings(rpc_urls={"ethereum": "https://eth.example"}, fork_port=8545)

        assert sf.run(settings, args(fork_block=100)) == 3
        assert seen[0][2] == "https://eth.example"
        assert seen[0][-1] == "100"

    def test_check_without_fork(self, monkeypatch):
        monkeypatch.setattr(sf, "detect_fork", lambda client: ForkInfo(False))

        assert sf.run(Settings(), args(check=True)) == 1

    def test_parse_args_defaults(self):
        ns = sf.parse_args(Settings(chain="base", fork_block=42), [])

        assert (ns.chain, ns.port, ns.fork_block, ns.check) == ("base", 8545, 42, False)
