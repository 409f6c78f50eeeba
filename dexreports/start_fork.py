#!/usr/bin/env python3
"""
Start a local Anvil fork of one configured chain, or check that one is running.

The upstream RPC URL comes from the chain's environment variable; `--check`
only talks to 127.0.0.1:<port>.
"""

from __future__ import annotations

import argparse
import subprocess
import sys

from dexreports.chains import CHAINS
from dexreports.config import RPC_ENV_VARS, Settings
from dexreports.evm import RpcClient, RpcError, detect_fork
from dexreports.utils import banner, run_main


DEFAULT_FORK_PORT = 8545


def anvil_command(rpc_url: str, port: int, fork_block: int | None = None) -> list[str]:
    cmd = ["anvil", "--fork-url", rpc_url, "--port", str(port), "--host", "127.0.0.1"]
    if fork_block is not None:
        cmd += ["--fork-block-number", str(fork_block)]
    return cmd


def check_fork(port: int, timeout_s: float = 10) -> int:
    client = RpcClient(f"http://127.0.0.1:{port}", timeout_s=timeout_s)
    info = detect_fork(client)
    if not info.is_fork:
        print(f"❌ No local fork detected on port {port}" + (f" ({info.detail})" if info.detail else ""))
        return 1
    try:
        head = client.block_number()
    except RpcError as e:
        print(f"⚠️  {info.kind} fork found but eth_blockNumber failed: {e}", file=sys.stderr)
        return 1
    print(f"✅ {info.kind} fork on port {port} at block {head:,}")
    return 0


def parse_args(settings: Settings, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start a local Anvil fork of a configured chain.")
    parser.add_argument("--chain", default=settings.chain or "ethereum")
    parser.add_argument("--port", type=int, default=settings.fork_port or DEFAULT_FORK_PORT)
    parser.add_argument("--fork-block", type=int, default=settings.fork_block)
    parser.add_argument("--check", action="store_true", help="Only check whether a fork is already listening.")
    return parser.parse_args(argv)


def run(settings: Settings, args: argparse.Namespace) -> int:
    if args.check:
        return check_fork(args.port, settings.http_timeout_s)

    chain_key = args.chain.lower()
    chain = CHAINS.get(chain_key)
    if chain is None:
        print(f"❌ Unknown chain: {args.chain}", file=sys.stderr)
        return 1

    # The upstream node, not the FORK_PORT override.
    rpc_url = settings.rpc_urls.get(chain_key)
    if not rpc_url:
        print(f"❌ RPC URL not configured for {chain.name}", file=sys.stderr)
        print(f"Set {RPC_ENV_VARS[chain_key][0]} in the environment", file=sys.stderr)
        return 1

    banner(
        "Starting Anvil Fork",
        lines=[
            f"Chain: {chain.name}",
            f"Local Port: {args.port}",
            *([f"Fork Block: {args.fork_block}"] if args.fork_block is not None else []),
        ],
    )
    try:
        proc = subprocess.run(anvil_command(rpc_url, args.port, args.fork_block), check=False)
    except FileNotFoundError:
        print("❌ Failed to start Anvil: `anvil` not found on PATH", file=sys.stderr)
        print("Install Foundry: https://book.getfoundry.sh/getting-started/installation", file=sys.stderr)
        return 1
    print(f"\nAnvil exited with code {proc.returncode}")
    return proc.returncode


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(settings, parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
