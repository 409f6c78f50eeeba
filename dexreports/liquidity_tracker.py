#!/usr/bin/env python3
"""
Uniswap V2/V3/V4 liquidity flows from on-chain events.

For each configured chain the tracker scans the last BLOCKS_TO_ANALYZE blocks
(or from START_BLOCK) in chunks and decodes:
- V2 pair Mint/Burn events for the tracked token pairs,
- V3 NonfungiblePositionManager IncreaseLiquidity/DecreaseLiquidity events,
  matched to pools through the factory,
- V4 PoolManager ModifyLiquidity and Initialize events.

Token amounts are priced with CoinGecko (static fallbacks when it is down) and
aggregated into per-chain, per-version adds/removes and net flow.

A failed chunk, a malformed reply or a dead RPC abandons only that version or
chain; the rest of the report still runs.

Writes:
- `uniswap-liquidity-flows-all.csv` (one row per event)
- `uniswap-liquidity-summary.csv` (one row per chain and version)
- `uniswap-v4-initializations.csv` (when new V4 pools were found)
"""

from __future__ import annotations

import argparse
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Iterator

from dexreports.chains import CHAINS, ChainConfig, selected_chains, token_address
from dexreports.config import Settings
from dexreports.evm import (
    ZERO_ADDRESS,
    RpcClient,
    RpcError,
    TokenInfo,
    abi_encode_address,
    abi_encode_int,
    abi_encode_uint,
    decode_address_word,
    decode_int256,
    decode_uint256,
    keccak_hex,
    keccak_selector,
    keccak_topic,
    read_token_info,
    same_address,
    split_words,
    to_decimal_units,
)
from dexreports.utils import (
    Fetched,
    FetchError,
    bar,
    banner,
    coingecko_simple_price,
    debug,
    fetch_with_fallback,
    format_usd,
    pause,
    run_main,
    signed,
    warn,
    write_csv,
)


MINT_V2_TOPIC = keccak_topic("Mint(address,uint256,uint256)")
BURN_V2_TOPIC = keccak_topic("Burn(address,uint256,uint256,address)")
INCREASE_LIQUIDITY_TOPIC = keccak_topic("IncreaseLiquidity(uint256,uint128,uint256,uint256)")
DECREASE_LIQUIDITY_TOPIC = keccak_topic("DecreaseLiquidity(uint256,uint128,uint256,uint256)")
MODIFY_LIQUIDITY_TOPIC = keccak_topic("ModifyLiquidity(bytes32,address,int24,int24,int256,bytes32)")
INITIALIZE_TOPIC = keccak_topic("Initialize(bytes32,address,address,uint24,int24,address,uint160,int24)")

V3_FEE_TIERS = (500, 3000, 10000)
# fee (hundredths of a bip) -> standard tick spacing
V4_FEE_TIERS = {100: 1, 500: 10, 3000: 60, 10000: 200}

DEFAULT_CHAINS = ("ethereum", "arbitrum", "optimism", "base", "polygon", "bsc")
VERSIONS = ("V2", "V3", "V4")
MAX_EVENTS_PER_RUN = 10_000

# RPC failures and malformed replies; each abandons one version or chain.
TRACK_ERRORS = (RpcError, ValueError, IndexError, KeyError, TypeError, AttributeError)

PRICE_IDS = {"WETH": "ethereum", "USDC": "usd-coin", "USDT": "tether", "DAI": "dai"}
FALLBACK_PRICES = {"WETH": 3000.0, "USDC": 1.0, "USDT": 1.0, "DAI": 1.0}
SYMBOL_ALIASES = {"ETH": "WETH", "USDC.E": "USDC", "USDBC": "USDC"}

NATIVE_TOKEN_SYMBOL = "ETH"


@dataclass(frozen=True)
class LiquidityEvent:
    chain: str
    chain_id: int
    version: str
    event_type: str  # mint | burn | increase | decrease
    direction: str  # add | remove
    pair: str
    token0: str
    token1: str
    amount0: Decimal | None
    amount1: Decimal | None
    liquidity: int | None
    pool: str
    tx_hash: str
    block: int
    log_index: int
    timestamp: int | None
    explorer_link: str
    fee_tier: float | None = None
    token_id: int | None = None


@dataclass(frozen=True)
class PoolInitialization:
    chain: str
    pool_id: str
    token0: str
    token1: str
    token0_address: str
    token1_address: str
    fee: int
    tick_spacing: int
    hooks: str
    tx_hash: str
    block: int
    timestamp: int | None


@dataclass(frozen=True)
class PoolContext:
    """What a decoder needs to know about the pool a log belongs to."""

    chain: ChainConfig
    version: str
    pair: str
    token0: TokenInfo
    token1: TokenInfo
    pool: str
    fee_tier: float | None = None


# ------------------------------------------------------------------------------------------------
# block windows + chunked log fetch
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class BlockWindow:
    start: int
    end: int

    @classmethod
    def resolve(cls, head: int, blocks: int, start_block: int | None = None) -> "BlockWindow":
        if start_block is not None:
            return cls(start=start_block, end=min(start_block + blocks, head))
        return cls(start=max(0, head - blocks), end=head)

    def chunks(self, size: int) -> Iterator[tuple[int, int]]:
        cur = self.start
        while cur < self.end:
            yield cur, min(cur + size - 1, self.end)
            cur += size


def fetch_logs_chunked(
    client: RpcClient,
    *,
    window: BlockWindow,
    chunk_size: int,
    address: str,
    topics: list[Any],
    delay_s: float = 0.2,
) -> list[dict[str, Any]]:
    """Scan `window` in fixed chunks; a failed chunk is reported and skipped."""
    logs: list[dict[str, Any]] = []
    for from_block, to_block in window.chunks(chunk_size):
        params = {"fromBlock": hex(from_block), "toBlock": hex(to_block), "address": address, "topics": topics}
        try:
            chunk = client.get_logs(params)
        except RpcError as e:
            warn(f"Error querying blocks {from_block}-{to_block}: {e}")
            continue
        logs.extend(chunk)
        pause(delay_s)
    return logs


def _log_int(log: dict[str, Any], key: str) -> int:
    v = log.get(key)
    if isinstance(v, int):
        return v
    return int(str(v), 16) if v else 0


# ------------------------------------------------------------------------------------------------
# decoding
# ------------------------------------------------------------------------------------------------


def _event(
    ctx: PoolContext,
    log: dict[str, Any],
    *,
    event_type: str,
    direction: str,
    amount0: Decimal | None,
    amount1: Decimal | None,
    liquidity: int | None,
    timestamp: int | None,
    token_id: int | None = None,
) -> LiquidityEvent:
    tx_hash = str(log.get("transactionHash") or "")
    return LiquidityEvent(
        chain=ctx.chain.name,
        chain_id=ctx.chain.chain_id,
        version=ctx.version,
        event_type=event_type,
        direction=direction,
        pair=ctx.pair,
        token0=ctx.token0.symbol,
        token1=ctx.token1.symbol,
        amount0=amount0,
        amount1=amount1,
        liquidity=liquidity,
        pool=ctx.pool,
        tx_hash=tx_hash,
        block=_log_int(log, "blockNumber"),
        log_index=_log_int(log, "logIndex"),
        timestamp=timestamp,
        explorer_link=ctx.chain.tx_url(tx_hash),
        fee_tier=ctx.fee_tier,
        token_id=token_id,
    )


def decode_v2_log(log: dict[str, Any], ctx: PoolContext, timestamp: int | None = None) -> LiquidityEvent:
    topic0 = log["topics"][0].lower()
    if topic0 == MINT_V2_TOPIC:
        event_type, direction = "mint", "add"
    elif topic0 == BURN_V2_TOPIC:
        event_type, direction = "burn", "remove"
    else:
        raise ValueError(f"not a V2 Mint/Burn log: {topic0}")
    words = split_words(log["data"])
    return _event(
        ctx,
        log,
        event_type=event_type,
        direction=direction,
        amount0=to_decimal_units(decode_uint256(words[0]), ctx.token0.decimals),
        amount1=to_decimal_units(decode_uint256(words[1]), ctx.token1.decimals),
        liquidity=None,
        timestamp=timestamp,
    )


def decode_v3_log(log: dict[str, Any], ctx: PoolContext, timestamp: int | None = None) -> LiquidityEvent:
    topic0 = log["topics"][0].lower()
    if topic0 == INCREASE_LIQUIDITY_TOPIC:
        event_type, direction = "increase", "add"
    elif topic0 == DECREASE_LIQUIDITY_TOPIC:
        event_type, direction = "decrease", "remove"
    else:
        raise ValueError(f"not a V3 Increase/DecreaseLiquidity log: {topic0}")
    words = split_words(log["data"])
    return _event(
        ctx,
        log,
        event_type=event_type,
        direction=direction,
        amount0=to_decimal_units(decode_uint256(words[1]), ctx.token0.decimals),
        amount1=to_decimal_units(decode_uint256(words[2]), ctx.token1.decimals),
        liquidity=decode_uint256(words[0]),
        timestamp=timestamp,
        token_id=decode_uint256(log["topics"][1]),
    )


def decode_v4_log(log: dict[str, Any], ctx: PoolContext, timestamp: int | None = None) -> LiquidityEvent | None:
    """Decode a ModifyLiquidity log; None for zero-delta modifications (fee pokes)."""
    if log["topics"][0].lower() != MODIFY_LIQUIDITY_TOPIC:
        raise ValueError(f"not a V4 ModifyLiquidity log: {log['topics'][0]}")
    words = split_words(log["data"])
    delta = decode_int256(words[2])
    if delta == 0:
        return None
    increase = delta > 0
    return _event(
        ctx,
        log,
        event_type="increase" if increase else "decrease",
        direction="add" if increase else "remove",
        amount0=None,
        amount1=None,
        liquidity=delta,
        timestamp=timestamp,
    )


def decode_initialize_log(
    log: dict[str, Any],
    chain: ChainConfig,
    token0: TokenInfo,
    token1: TokenInfo,
    timestamp: int | None = None,
) -> PoolInitialization:
    words = split_words(log["data"])
    return PoolInitialization(
        chain=chain.name,
        pool_id=log["topics"][1],
        token0=token0.symbol,
        token1=token1.symbol,
        token0_address=decode_address_word(log["topics"][2]),
        token1_address=decode_address_word(log["topics"][3]),
        fee=decode_uint256(words[0]),
        tick_spacing=decode_int256(words[1]),
        hooks=decode_address_word(words[2]),
        tx_hash=str(log.get("transactionHash") or ""),
        block=_log_int(log, "blockNumber"),
        timestamp=timestamp,
    )


def v4_pool_id(currency0: str, currency1: str, fee: int, tick_spacing: int, hooks: str = ZERO_ADDRESS) -> str:
    """keccak256(abi.encode(PoolKey)); currencies must already be sorted."""
    encoded = (
        abi_encode_address(currency0)
        + abi_encode_address(currency1)
        + abi_encode_uint(fee)
        + abi_encode_int(tick_spacing)
        + abi_encode_address(hooks)
    )
    return "0x" + keccak_hex(bytes.fromhex(encoded))


def sort_tokens(a: TokenInfo, b: TokenInfo) -> tuple[TokenInfo, TokenInfo]:
    return (a, b) if int(a.address, 16) < int(b.address, 16) else (b, a)


# ------------------------------------------------------------------------------------------------
# per-chain scan
# ------------------------------------------------------------------------------------------------


@dataclass
class ChainScan:
    """Per-chain, per-run state: one RPC client, the block window and the lookup caches."""

    settings: Settings
    chain: ChainConfig
    client: RpcClient
    window: BlockWindow
    token0: TokenInfo
    token1: TokenInfo
    pair: str
    _timestamps: dict[int, int | None] = field(default_factory=dict)
    _tokens: dict[str, TokenInfo] = field(default_factory=dict)
    _positions: dict[int, tuple[str, str, int] | None] = field(default_factory=dict)

    def logs(self, address: str, topics: list[Any]) -> list[dict[str, Any]]:
        return fetch_logs_chunked(
            self.client,
            window=self.window,
            chunk_size=self.settings.chunk_size,
            address=address,
            topics=topics,
            delay_s=self.settings.chunk_delay_s,
        )

    def timestamp(self, block: int) -> int | None:
        if block not in self._timestamps:
            try:
                self._timestamps[block] = self.client.block_timestamp(block)
            except RpcError as e:
                warn(f"{self.chain.name}: no timestamp for block {block}: {e}")
                self._timestamps[block] = None
        return self._timestamps[block]

    def token(self, address: str) -> TokenInfo:
        key = address.lower()
        if key not in self._tokens:
            if key == ZERO_ADDRESS:
                self._tokens[key] = TokenInfo(address=ZERO_ADDRESS, symbol=NATIVE_TOKEN_SYMBOL, decimals=18)
            else:
                self._tokens[key] = read_token_info(self.client, address)
        return self._tokens[key]

    def ctx(self, version: str, pool: str, token0: TokenInfo, token1: TokenInfo, fee: int | None = None) -> PoolContext:
        return PoolContext(
            chain=self.chain,
            version=version,
            pair=self.pair,
            token0=token0,
            token1=token1,
            pool=pool,
            fee_tier=fee / 10000 if fee is not None else None,
        )

    def position_key(self, token_id: int, block: int) -> tuple[str, str, int] | None:
        """(token0, token1, fee) of a V3 position NFT, read at latest and then just before `block`."""
        if token_id in self._positions:
            return self._positions[token_id]
        data = "0x" + keccak_selector("positions(uint256)") + abi_encode_uint(token_id)
        key: tuple[str, str, int] | None = None
        for tag in ("latest", max(0, block - 1)):
            try:
                words = split_words(self.client.eth_call(self.chain.v3_position_manager, data, tag))
            except RpcError:
                continue
            if len(words) >= 5:
                key = (decode_address_word(words[2]).lower(), decode_address_word(words[3]).lower(), decode_uint256(words[4]))
                break
        self._positions[token_id] = key
        return key


def track_v2(scan: ChainScan) -> list[LiquidityEvent]:
    chain = scan.chain
    if not chain.v2_factory:
        print(f"      [info] V2 not configured for {chain.name}")
        return []

    data = "0x" + keccak_selector("getPair(address,address)") + abi_encode_address(scan.token0.address) + abi_encode_address(scan.token1.address)
    pair_address = decode_address_word(split_words(scan.client.eth_call(chain.v2_factory, data))[0])
    if same_address(pair_address, ZERO_ADDRESS):
        print(f"      [info] No V2 pair for {scan.pair} on {chain.name}")
        return []
    debug(scan.settings, f"V2 pair {pair_address}")

    ctx = scan.ctx("V2", pair_address, scan.token0, scan.token1)
    logs = scan.logs(pair_address, [[MINT_V2_TOPIC, BURN_V2_TOPIC]])
    return [decode_v2_log(log, ctx, scan.timestamp(_log_int(log, "blockNumber"))) for log in logs]


def track_v3(scan: ChainScan) -> list[LiquidityEvent]:
    chain = scan.chain
    if not chain.v3_factory or not chain.v3_position_manager:
        print(f"      [info] V3 not configured for {chain.name}")
        return []

    pools: dict[tuple[str, str, int], PoolContext] = {}
    for fee in V3_FEE_TIERS:
        data = (
            "0x"
            + keccak_selector("getPool(address,address,uint24)")
            + abi_encode_address(scan.token0.address)
            + abi_encode_address(scan.token1.address)
            + abi_encode_uint(fee)
        )
        pool = decode_address_word(split_words(scan.client.eth_call(chain.v3_factory, data))[0])
        if same_address(pool, ZERO_ADDRESS):
            continue
        print(f"      📍 V3 pool {pool} (fee {fee / 10000}%)")
        key = (scan.token0.address.lower(), scan.token1.address.lower(), fee)
        pools[key] = scan.ctx("V3", pool, scan.token0, scan.token1, fee)

    if not pools:
        print(f"      [info] No V3 pools for {scan.pair} on {chain.name}")
        return []

    logs = scan.logs(chain.v3_position_manager, [[INCREASE_LIQUIDITY_TOPIC, DECREASE_LIQUIDITY_TOPIC]])

    events: list[LiquidityEvent] = []
    unresolved = 0
    for log in logs:
        block = _log_int(log, "blockNumber")
        key = scan.position_key(decode_uint256(log["topics"][1]), block)
        if key is None:
            unresolved += 1
            continue
        ctx = pools.get(key)
        if ctx is None:
            continue
        events.append(decode_v3_log(log, ctx, scan.timestamp(block)))

    if unresolved:
        warn(f"{chain.name}: {unresolved} V3 position events could not be matched to a pool")
    return events


def v4_pool_contexts(scan: ChainScan) -> dict[str, PoolContext]:
    """Pool id -> context for every standard fee tier, plus native-currency variants."""
    variants = [(scan.token0, scan.token1)]
    wrapped = scan.chain.wrapped_native
    if wrapped:
        native = scan.token(ZERO_ADDRESS)
        if same_address(scan.token0.address, wrapped):
            variants.append(sort_tokens(native, scan.token1))
        elif same_address(scan.token1.address, wrapped):
            variants.append(sort_tokens(scan.token0, native))

    out: dict[str, PoolContext] = {}
    for t0, t1 in variants:
        for fee, spacing in V4_FEE_TIERS.items():
            pool_id = v4_pool_id(t0.address, t1.address, fee, spacing)
            out[pool_id] = scan.ctx("V4", pool_id, t0, t1, fee)
    return out


def track_v4(scan: ChainScan) -> tuple[list[LiquidityEvent], list[PoolInitialization]]:
    chain = scan.chain
    if not chain.v4_pool_manager:
        print(f"      [info] V4 not configured for {chain.name}")
        return [], []

    pools = v4_pool_contexts(scan)
    pool_ids = list(pools)

    events: list[LiquidityEvent] = []
    inits: list[PoolInitialization] = []
    for from_block, to_block in scan.window.chunks(scan.settings.chunk_size):
        params = {"fromBlock": hex(from_block), "toBlock": hex(to_block), "address": chain.v4_pool_manager}
        try:
            modify_logs = scan.client.get_logs({**params, "topics": [MODIFY_LIQUIDITY_TOPIC, pool_ids]})
        except RpcError as e:
            warn(f"Error querying blocks {from_block}-{to_block}: {e}")
            modify_logs = []
        try:
            init_logs = scan.client.get_logs({**params, "topics": [INITIALIZE_TOPIC]})
        except RpcError as e:
            warn(f"Error querying V4 initializations in blocks {from_block}-{to_block}: {e}")
            init_logs = []

        for log in modify_logs:
            ctx = pools.get(log["topics"][1].lower())
            if ctx is None:
                continue
            ev = decode_v4_log(log, ctx, scan.timestamp(_log_int(log, "blockNumber")))
            if ev is not None:
                events.append(ev)

        for log in init_logs:
            t0 = scan.token(decode_address_word(log["topics"][2]))
            t1 = scan.token(decode_address_word(log["topics"][3]))
            inits.append(decode_initialize_log(log, chain, t0, t1, scan.timestamp(_log_int(log, "blockNumber"))))

        pause(scan.settings.chunk_delay_s)

    return events, inits


@dataclass
class ChainResult:
    events: list[LiquidityEvent] = field(default_factory=list)
    initializations: list[PoolInitialization] = field(default_factory=list)


def track_chain(settings: Settings, chain_key: str, *, client: RpcClient | None = None) -> ChainResult:
    chain = CHAINS.get(chain_key)
    if chain is None:
        print(f"⏭️  Skipping {chain_key} (unknown chain)")
        return ChainResult()

    rpc_url = settings.rpc_url(chain_key)
    if client is None and not rpc_url:
        print(f"⏭️  Skipping {chain.name} (no RPC configured)")
        return ChainResult()

    sym0, sym1 = settings.pair_symbols()
    addr0, addr1 = token_address(sym0, chain_key), token_address(sym1, chain_key)
    if not addr0 or not addr1:
        print(f"⏭️  Skipping {chain.name} (tokens not configured)")
        return ChainResult()

    client = client or RpcClient(rpc_url, timeout_s=settings.http_timeout_s)
    print(f"\n   🔄 Processing {chain.name}...")

    head = client.block_number()
    window = BlockWindow.resolve(head, settings.blocks_to_analyze, settings.start_block)
    debug(settings, f"{chain.name}: blocks {window.start}-{window.end}")

    token0, token1 = sort_tokens(read_token_info(client, addr0), read_token_info(client, addr1))
    scan = ChainScan(
        settings=settings,
        chain=chain,
        client=client,
        window=window,
        token0=token0,
        token1=token1,
        pair=f"{sym0}/{sym1}",
    )

    result = ChainResult()
    for version, tracker in (("V2", track_v2), ("V3", track_v3)):
        print(f"      📦 {version}...")
        try:
            found = tracker(scan)
        except TRACK_ERRORS as e:
            warn(f"{version} error on {chain.name}: {e}")
            continue
        result.events.extend(found)
        print(f"      ✅ {version}: {len(found)} events")

    print("      📦 V4...")
    try:
        v4_events, inits = track_v4(scan)
    except TRACK_ERRORS as e:
        warn(f"V4 error on {chain.name}: {e}")
    else:
        result.events.extend(v4_events)
        result.initializations.extend(inits)
        print(f"      ✅ V4: {len(v4_events)} events, {len(inits)} pool initializations")

    return result


# ------------------------------------------------------------------------------------------------
# pricing + aggregation
# ------------------------------------------------------------------------------------------------


def canonical_symbol(symbol: str) -> str:
    s = symbol.upper()
    return SYMBOL_ALIASES.get(s, s)


def fetch_prices(symbols: Iterable[str], *, timeout_s: float = 10) -> Fetched[dict[str, float]]:
    wanted = sorted({canonical_symbol(s) for s in symbols if canonical_symbol(s) in PRICE_IDS})
    fallback = {s: FALLBACK_PRICES[s] for s in wanted}

    def _fetch() -> dict[str, float]:
        by_id = coingecko_simple_price([PRICE_IDS[s] for s in wanted], timeout_s=timeout_s)
        return {s: by_id.get(PRICE_IDS[s], FALLBACK_PRICES[s]) for s in wanted}

    if not wanted:
        return Fetched({})
    return fetch_with_fallback(_fetch, fallback, label="CoinGecko prices")


def event_value_usd(event: LiquidityEvent, prices: dict[str, float]) -> float | None:
    if event.amount0 is None or event.amount1 is None:
        return None
    p0 = prices.get(canonical_symbol(event.token0), 0.0)
    p1 = prices.get(canonical_symbol(event.token1), 0.0)
    return float(event.amount0) * p0 + float(event.amount1) * p1


@dataclass
class FlowBucket:
    add: int = 0
    remove: int = 0
    added_usd: float = 0.0
    removed_usd: float = 0.0

    @property
    def total(self) -> int:
        return self.add + self.remove

    @property
    def net(self) -> int:
        return self.add - self.remove

    @property
    def net_usd(self) -> float:
        return self.added_usd - self.removed_usd

    @property
    def volume_usd(self) -> float:
        return self.added_usd + self.removed_usd

    def record(self, direction: str, usd: float | None) -> None:
        if direction == "add":
            self.add += 1
            self.added_usd += usd or 0.0
        else:
            self.remove += 1
            self.removed_usd += usd or 0.0


@dataclass
class FlowStats:
    overall: FlowBucket = field(default_factory=FlowBucket)
    by_version: dict[str, FlowBucket] = field(default_factory=dict)
    by_chain: dict[str, FlowBucket] = field(default_factory=dict)
    by_chain_version: dict[tuple[str, str], FlowBucket] = field(default_factory=dict)
    by_day: dict[str, FlowBucket] = field(default_factory=dict)
    priced_events: int = 0


def utc_day(ts: int | None) -> str:
    if ts is None:
        return "unknown"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


def utc_iso(ts: int | None) -> str:
    if ts is None:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def aggregate_flows(events: Iterable[LiquidityEvent], prices: dict[str, float]) -> FlowStats:
    stats = FlowStats()
    for ev in events:
        usd = event_value_usd(ev, prices)
        if usd is not None:
            stats.priced_events += 1
        for bucket in (
            stats.overall,
            stats.by_version.setdefault(ev.version, FlowBucket()),
            stats.by_chain.setdefault(ev.chain, FlowBucket()),
            stats.by_chain_version.setdefault((ev.chain, ev.version), FlowBucket()),
            stats.by_day.setdefault(utc_day(ev.timestamp), FlowBucket()),
        ):
            bucket.record(ev.direction, usd)
    return stats


# ------------------------------------------------------------------------------------------------
# rendering + CSV
# ------------------------------------------------------------------------------------------------


def _print_bucket(name: str, b: FlowBucket) -> None:
    print(f"   {name}:")
    print(f"      Events: {b.total}")
    print(f"      Add: {b.add}, Remove: {b.remove}")
    print(f"      Net: {signed(b.net)}  ({format_usd(b.net_usd)} net USD)\n")


def render_report(stats: FlowStats, prices: dict[str, float]) -> None:
    if prices:
        print("\n💰 Prices: " + ", ".join(f"{s} {format_usd(p)}" for s, p in sorted(prices.items())) + "\n")

    o = stats.overall
    print("\n📈 Liquidity Flow Summary:\n")
    print(f"   Total Events: {o.total}")
    print(f"   Add Liquidity: {o.add}")
    print(f"   Remove Liquidity: {o.remove}")
    print(f"   Net Flow: {signed(o.net)}")
    print(f"   Added: {format_usd(o.added_usd)}  Removed: {format_usd(o.removed_usd)}  Net: {format_usd(o.net_usd)}")
    print(f"   Priced events: {stats.priced_events} (V4 events are counted without USD value)\n")

    print("📊 By Uniswap Version:\n")
    for version in VERSIONS:
        if version in stats.by_version:
            _print_bucket(version, stats.by_version[version])

    print("🌐 By Chain:\n")
    for chain, b in sorted(stats.by_chain.items(), key=lambda kv: kv[1].total, reverse=True):
        _print_bucket(chain, b)

    print("📋 Version × Chain Matrix:\n")
    print(f"   {'Chain':<12}" + "".join(f"{v:>8}" for v in VERSIONS))
    for chain in stats.by_chain:
        counts = [stats.by_chain_version.get((chain, v), FlowBucket()).total for v in VERSIONS]
        print(f"   {chain:<12}" + "".join(f"{c:>8}" for c in counts))

    print("\n📊 Events per chain:\n")
    max_events = max((b.total for b in stats.by_chain.values()), default=0)
    for chain, b in sorted(stats.by_chain.items(), key=lambda kv: kv[1].total, reverse=True):
        print(f"   {chain:<12} {bar(b.total, max_events, width=40)} {b.total}")
    print()


FLOW_COLUMNS = [
    ("chain", "Chain"),
    ("chain_id", "Chain ID"),
    ("version", "Version"),
    ("pair", "Pair"),
    ("type", "Type"),
    ("direction", "Direction"),
    ("token0", "Token0"),
    ("token1", "Token1"),
    ("amount0", "Amount0"),
    ("amount1", "Amount1"),
    ("liquidity", "Liquidity"),
    ("fee_tier", "Fee Tier"),
    ("token_id", "Token ID"),
    ("pool_id", "Pool ID"),
    ("pair_address", "Pair/Pool Address"),
    ("tx_hash", "Tx Hash"),
    ("block", "Block"),
    ("timestamp", "Timestamp"),
    ("explorer_link", "Explorer Link"),
]

SUMMARY_COLUMNS = [
    ("category", "Category"),
    ("name", "Name"),
    ("add", "Add Liquidity"),
    ("remove", "Remove Liquidity"),
    ("net", "Net Flow"),
    ("total", "Total Events"),
    ("added_usd", "Added USD"),
    ("removed_usd", "Removed USD"),
    ("net_usd", "Net USD"),
]

INIT_COLUMNS = [
    ("chain", "Chain"),
    ("pool_id", "Pool ID"),
    ("token0", "Token0"),
    ("token1", "Token1"),
    ("token0_address", "Token0 Address"),
    ("token1_address", "Token1 Address"),
    ("fee", "Fee"),
    ("fee_tier", "Fee Tier"),
    ("tick_spacing", "Tick Spacing"),
    ("hooks", "Hooks"),
    ("tx_hash", "Tx Hash"),
    ("block", "Block"),
    ("timestamp", "Timestamp"),
]


def _dec(v: Decimal | None) -> str | None:
    return None if v is None else format(v, "f")


def event_row(ev: LiquidityEvent) -> dict[str, Any]:
    v4 = ev.version == "V4"
    return {
        "chain": ev.chain,
        "chain_id": ev.chain_id,
        "version": ev.version,
        "pair": ev.pair,
        "type": ev.event_type,
        "direction": ev.direction,
        "token0": ev.token0,
        "token1": ev.token1,
        "amount0": _dec(ev.amount0),
        "amount1": _dec(ev.amount1),
        "liquidity": ev.liquidity,
        "fee_tier": ev.fee_tier,
        "token_id": ev.token_id,
        "pool_id": ev.pool if v4 else None,
        "pair_address": None if v4 else ev.pool,
        "tx_hash": ev.tx_hash,
        "block": ev.block,
        "timestamp": utc_iso(ev.timestamp),
        "explorer_link": ev.explorer_link,
    }


def _summary_row(category: str, name: str, b: FlowBucket) -> dict[str, Any]:
    return {
        "category": category,
        "name": name,
        "add": b.add,
        "remove": b.remove,
        "net": b.net,
        "total": b.total,
        "added_usd": round(b.added_usd, 2),
        "removed_usd": round(b.removed_usd, 2),
        "net_usd": round(b.net_usd, 2),
    }


def summary_rows(stats: FlowStats) -> list[dict[str, Any]]:
    rows = [_summary_row("Chain", k, b) for k, b in stats.by_chain.items()]
    rows += [_summary_row("Version", k, b) for k, b in sorted(stats.by_version.items())]
    rows += [_summary_row("Day", k, b) for k, b in sorted(stats.by_day.items())]
    return rows


def init_row(p: PoolInitialization) -> dict[str, Any]:
    row = dataclasses.asdict(p)
    row["fee_tier"] = p.fee / 10000
    row["timestamp"] = utc_iso(p.timestamp)
    return row


# ------------------------------------------------------------------------------------------------
# entry point
# ------------------------------------------------------------------------------------------------


def parse_args(settings: Settings, argv: list[str] | None = None) -> Settings:
    parser = argparse.ArgumentParser(description="Track Uniswap V2/V3/V4 liquidity flows from on-chain events.")
    parser.add_argument("--blocks", type=int, default=settings.blocks_to_analyze, help="Blocks to analyze per chain.")
    parser.add_argument("--chunk-size", type=int, default=settings.chunk_size)
    parser.add_argument("--start-block", type=int, default=settings.start_block)
    parser.add_argument("--chain", default=settings.chain, help="Only track this chain key.")
    parser.add_argument("--pair", default=settings.pair, help="Token pair, e.g. WETH/USDC.")
    parser.add_argument("--out-dir", default=str(settings.output_dir))
    args = parser.parse_args(argv)
    if args.blocks < 1 or args.chunk_size < 1:
        parser.error("--blocks and --chunk-size must be >= 1")
    return dataclasses.replace(
        settings,
        blocks_to_analyze=args.blocks,
        chunk_size=args.chunk_size,
        start_block=args.start_block,
        chain=args.chain.lower() if args.chain else None,
        pair=args.pair,
        output_dir=Path(args.out_dir),
    )


def run(settings: Settings) -> int:
    settings.pair_symbols()
    banner(
        "🦄 UNISWAP LIQUIDITY TRACKER - ON-CHAIN ANALYSIS",
        lines=[
            "Protocols: Uniswap V2, V3, V4",
            "Data source: JSON-RPC event logs",
            f"Pair: {settings.pair}",
            f"Window: {settings.blocks_to_analyze} blocks"
            + (f" from block {settings.start_block}" if settings.start_block is not None else " back from latest"),
        ],
    )

    events: list[LiquidityEvent] = []
    inits: list[PoolInitialization] = []
    for chain_key in selected_chains(settings, DEFAULT_CHAINS):
        try:
            result = track_chain(settings, chain_key)
        except TRACK_ERRORS + (FetchError,) as e:
            warn(f"Error on {chain_key}: {e}")
            continue
        events.extend(result.events)
        inits.extend(result.initializations)
        print(f"   ✅ {CHAINS[chain_key].name}: {len(result.events)} total liquidity events\n")

    if len(events) > MAX_EVENTS_PER_RUN:
        warn(f"{len(events)} events found; keeping the first {MAX_EVENTS_PER_RUN}")
        events = events[:MAX_EVENTS_PER_RUN]

    out_dir = settings.output_dir
    if inits:
        write_csv(out_dir / "uniswap-v4-initializations.csv", INIT_COLUMNS, [init_row(p) for p in inits])

    if not events:
        print("\n✅ No liquidity flows detected in analyzed blocks.")
        print("💡 Try increasing BLOCKS_TO_ANALYZE or using START_BLOCK to analyze a different period.\n")
        return 0

    symbols = {ev.token0 for ev in events} | {ev.token1 for ev in events}
    prices = fetch_prices(symbols, timeout_s=settings.http_timeout_s).value
    stats = aggregate_flows(events, prices)
    render_report(stats, prices)

    write_csv(out_dir / "uniswap-liquidity-flows-all.csv", FLOW_COLUMNS, [event_row(ev) for ev in events])
    write_csv(out_dir / "uniswap-liquidity-summary.csv", SUMMARY_COLUMNS, summary_rows(stats))
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_main(lambda settings: run(parse_args(settings, argv)))


if __name__ == "__main__":
    raise SystemExit(main())
