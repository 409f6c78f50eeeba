from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from urllib.parse import urlparse

import requests
from Crypto.Hash import keccak

from dexreports.utils import USER_AGENT


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def keccak_hex(data: bytes) -> str:
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.hexdigest()


def keccak_selector(signature: str) -> str:
    return keccak_hex(signature.encode("utf-8"))[:8]


def keccak_topic(signature: str) -> str:
    return "0x" + keccak_hex(signature.encode("utf-8"))


def pad32(hex_str: str) -> str:
    return hex_str.rjust(64, "0")


def abi_encode_address(address: str) -> str:
    return pad32(address.lower().replace("0x", ""))


def abi_encode_uint(value: int) -> str:
    return pad32(hex(value)[2:])


def abi_encode_int(value: int, *, bits: int = 256) -> str:
    if value < 0:
        value = (1 << bits) + value
    return pad32(hex(value & ((1 << bits) - 1))[2:])


def decode_uint256(hex_str: str) -> int:
    return int(hex_str, 16)


def decode_int256(hex_str: str) -> int:
    value = int(hex_str, 16)
    if value >= 2**255:
        value -= 2**256
    return value


def decode_address_word(word_hex: str) -> str:
    return "0x" + word_hex[-40:]


def split_words(hexdata: str) -> list[str]:
    if hexdata.startswith("0x"):
        hexdata = hexdata[2:]
    return [hexdata[i : i + 64] for i in range(0, len(hexdata), 64)]


def decode_string(hexdata: str) -> str:
    """Decode an ABI `string` return value, or a right-padded bytes32 (old tokens like MKR)."""
    words = split_words(hexdata)
    if not words:
        return ""
    if len(words) == 1:
        return bytes.fromhex(words[0]).rstrip(b"\x00").decode("utf-8", errors="replace")
    offset = int(words[0], 16) // 32
    length = int(words[offset], 16)
    raw = "".join(words[offset + 1 :])[: length * 2]
    return bytes.fromhex(raw).decode("utf-8", errors="replace")


def same_address(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


# ------------------------------------------------------------------------------------------------
# JSON-RPC
# ------------------------------------------------------------------------------------------------


class RpcError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RpcClient:
    """Minimal JSON-RPC client: one POST per call, errors raised as RpcError."""

    def __init__(self, rpc_url: str, timeout_s: float = 30):
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s
        self._id = 0
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    def call(self, method: str, params: list) -> Any:
        self._id += 1
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        try:
            resp = self._session.post(self.rpc_url, json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise RpcError(f"RPC transport error: {e}") from e

        if resp.status_code >= 400:
            raise RpcError(f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(f"invalid JSON-RPC response: {resp.text[:200]!r}") from e

        if isinstance(data, dict) and data.get("error"):
            raise RpcError(str(data["error"]))
        return data.get("result") if isinstance(data, dict) else data

    def block_number(self) -> int:
        return int(self.call("eth_blockNumber", []), 16)

    def get_logs(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return self.call("eth_getLogs", [params]) or []

    def eth_call(self, to: str, data: str, block: int | str = "latest") -> str:
        tag = hex(block) if isinstance(block, int) else block
        return self.call("eth_call", [{"to": to, "data": data}, tag])

    def block_timestamp(self, block_number: int) -> int:
        blk = self.call("eth_getBlockByNumber", [hex(block_number), False])
        if not isinstance(blk, dict):
            raise RpcError(f"block {block_number} not found")
        ts = blk.get("timestamp")
        if not isinstance(ts, str):
            raise RpcError(f"block {block_number} has no timestamp")
        try:
            return int(ts, 16)
        except ValueError as e:
            raise RpcError(f"block {block_number} timestamp not hex: {ts!r}") from e


# ------------------------------------------------------------------------------------------------
# ERC-20 metadata
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    decimals: int


UNKNOWN_SYMBOL = "UNKNOWN"
DEFAULT_DECIMALS = 18


def read_token_info(client: RpcClient, token: str) -> TokenInfo:
    """Read symbol()/decimals(); either falls back to UNKNOWN / 18 when the call fails."""
    try:
        symbol = decode_string(client.eth_call(token, "0x" + keccak_selector("symbol()"))) or UNKNOWN_SYMBOL
    except (RpcError, ValueError, TypeError, IndexError):
        symbol = UNKNOWN_SYMBOL
    try:
        decimals = int(client.eth_call(token, "0x" + keccak_selector("decimals()")), 16)
    except (RpcError, ValueError, TypeError):
        decimals = DEFAULT_DECIMALS
    return TokenInfo(address=token, symbol=symbol, decimals=decimals)


def to_decimal_units(raw: int, decimals: int) -> Decimal:
    return Decimal(raw) / (Decimal(10) ** decimals)


# ------------------------------------------------------------------------------------------------
# local fork detection
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class ForkInfo:
    is_fork: bool
    kind: str | None = None
    detail: str | None = None


def _is_local_url(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return host in {"localhost", "127.0.0.1", "0.0.0.0", "::1"}


def detect_fork(client: RpcClient) -> ForkInfo:
    """Best-effort check whether `client` talks to a local anvil/hardhat fork."""
    if not _is_local_url(client.rpc_url):
        return ForkInfo(False)

    for method, kind in (("anvil_nodeInfo", "anvil"), ("hardhat_metadata", "hardhat")):
        try:
            info = client.call(method, [])
        except RpcError:
            continue
        if info:
            return ForkInfo(True, kind=kind, detail=str(info)[:200])

    try:
        version = str(client.call("web3_clientVersion", []))
    except RpcError:
        return ForkInfo(False)
    lowered = version.lower()
    for kind in ("anvil", "hardhat", "ganache"):
        if kind in lowered:
            return ForkInfo(True, kind=kind, detail=version)
    return ForkInfo(False, detail=version)
