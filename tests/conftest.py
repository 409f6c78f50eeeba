from __future__ import annotations

import pytest

from dexreports.config import Settings
from dexreports.evm import RpcClient, RpcError


class FakeRpc(RpcClient):
    """RpcClient that answers from a method -> value/callable table instead of the network."""

    def __init__(self, handlers=None, rpc_url: str = "https://rpc.example"):
        super().__init__(rpc_url)
        self.handlers = dict(handlers or {})
        self.calls: list[tuple[str, list]] = []

    def call(self, method, params):
        self.calls.append((method, params))
        if method not in self.handlers:
            raise RpcError(f"method not available: {method}")
        handler = self.handlers[method]
        result = handler(params) if callable(handler) else handler
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def make_rpc():
    return FakeRpc


@pytest.fixture
def settings(tmp_path):
    return Settings(output_dir=tmp_path, request_delay_s=0, chunk_delay_s=0)
