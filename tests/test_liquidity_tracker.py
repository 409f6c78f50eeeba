"""Tests for the on-chain liquidity tracker: chunked log fetch, decoding and aggregation."""

import dataclasses
from decimal import Decimal

import pytest

from dexreports import liquidity_tracker as lt
from dexreports.chains import CHAINS
from dexreports.config import Settings
from dexreports.evm import ZERO_ADDRESS, RpcError, TokenInfo, abi_encode_address, abi_encode_int, abi_encode_uint, pad32
from dexreports.utils import Fetched, FetchError


USDC = TokenInfo("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6)
WETH = TokenInfo("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18)
PAIR_ADDRESS = "0xb4e16d0168e52d35cacd2c6185b44281ec28c9dc"


def ctx(version="V2", pool=PAIR_ADDRESS, fee_tier=None):
    return lt.PoolContext(
        chain=CHAINS["ethereum"],
        version=version,
        pair="WETH/USDC",
        token0=USDC,
        token1=WETH,
        pool=pool,
        fee_tier=fee_tier,
    )


def v2_log(topic, amount0, amount1, block=16):
    return {
        "topics": [topic, "0x" + abi_encode_address("0x7a250d5630b4cf539739df2c5dacb4c659f2488d")],
        "data": "0x" + abi_encode_uint(amount0) + abi_encode_uint(amount1),
        "transactionHash": "0xabc",
        "blockNumber": hex(block),
        "logIndex": "0x1",
    }


def v4_log(pool_id, delta, block=20):
    return {
        "topics": [lt.MODIFY_LIQUIDITY_TOPIC, pool_id, "0x" + abi_encode_address("0x1111111111111111111111111111111111111111")],
        "data": "0x" + abi_encode_int(-600) + abi_encode_int(600) + abi_encode_int(delta) + pad32("0"),
        "transactionHash": "0xdef",
        "blockNumber": hex(block),
        "logIndex": "0x0",
    }


def event(version="V2", direction="add", amount0=None, amount1=None, timestamp=1_700_000_000, chain="Ethereum"):
    return lt.LiquidityEvent(
        chain=chain,
        chain_id=1,
        version=version,
        event_type="mint" if direction == "add" else "burn",
        direction=direction,
        pair="WETH/USDC",
        token0="USDC",
        token1="WETH",
        amount0=amount0,
        amount1=amount1,
        liquidity=None,
        pool=PAIR_ADDRESS,
        tx_hash="0xabc",
        block=1,
        log_index=0,
        timestamp=timestamp,
        explorer_link="https://etherscan.io/tx/0xabc",
    )


def scan(rpc, settings, start=0, end=10):
    return lt.ChainScan(
        settings=settings,
        chain=CHAINS["ethereum"],
        client=rpc,
        window=lt.BlockWindow(start, end),
        token0=USDC,
        token1=WETH,
        pair="WETH/USDC",
    )


class TestBlockWindow:
    """Test block window resolution and chunking."""

    def test_resolve_back_from_head(self):
        assert lt.BlockWindow.resolve(1000, 100) == lt.BlockWindow(900, 1000)

    def test_resolve_never_negative(self):
        assert lt.BlockWindow.resolve(50, 100) == lt.BlockWindow(0, 50)

    def test_resolve_from_start_block_capped_at_head(self):
        assert lt.BlockWindow.resolve(1000, 100, start_block=950) == lt.BlockWindow(950, 1000)
        assert lt.BlockWindow.resolve(1000, 100, start_block=500) == lt.BlockWindow(500, 600)

    def test_chunks(self):
        assert list(lt.BlockWindow(0, 25).chunks(10)) == [(0, 9), (10, 19), (20, 25)]

    def test_empty_window(self):
        assert list(lt.BlockWindow(10, 10).chunks(10)) == []


class TestFetchLogsChunked:
    """Test the chunked eth_getLogs loop."""

    def test_failed_chunk_is_skipped(self, make_rpc, capsys):
        """A failing chunk is warned about; the others still contribute."""

        def get_logs(params):
            if params[0]["fromBlock"] == hex(10):
                return RpcError("query returned more than 10000 results")
            return [{"blockNumber": params[0]["fromBlock"]}]

        rpc = make_rpc({"eth_getLogs": get_logs})
        logs = lt.fetch_logs_chunked(
            rpc, window=lt.BlockWindow(0, 30), chunk_size=10, address=PAIR_ADDRESS, topics=[], delay_s=0
        )

        assert [log["blockNumber"] for log in logs] == [hex(0), hex(20)]
        assert len(rpc.calls) == 3
        assert "Error querying blocks 10-19" in capsys.readouterr().err

    def test_query_shape(self, make_rpc):
        rpc = make_rpc({"eth_getLogs": []})
        lt.fetch_logs_chunked(rpc, window=lt.BlockWindow(100, 105), chunk_size=10, address="0xpool", topics=["0xt"], delay_s=0)

        assert rpc.calls[0][1] == [{"fromBlock": "0x64", "toBlock": "0x69", "address": "0xpool", "topics": ["0xt"]}]


class TestDecoding:
    """Test event decoding per protocol version."""

    def test_v2_mint(self):
        ev = lt.decode_v2_log(v2_log(lt.MINT_V2_TOPIC, 3000 * 10**6, 2 * 10**18), ctx(), timestamp=100)

        assert (ev.event_type, ev.direction) == ("mint", "add")
        assert ev.amount0 == Decimal(3000)
        assert ev.amount1 == Decimal(2)
        assert ev.block == 16
        assert ev.log_index == 1
        assert ev.timestamp == 100
        assert ev.explorer_link == "https://etherscan.io/tx/0xabc"

    def test_v2_burn(self):
        ev = lt.decode_v2_log(v2_log(lt.BURN_V2_TOPIC, 1, 1), ctx())

        assert (ev.event_type, ev.direction) == ("burn", "remove")

    def test_v2_rejects_other_topics(self):
        with pytest.raises(ValueError):
            lt.decode_v2_log(v2_log(lt.INCREASE_LIQUIDITY_TOPIC, 1, 1), ctx())

    def test_v3_decrease(self):
        log = {
            "topics": [lt.DECREASE_LIQUIDITY_TOPIC, "0x" + abi_encode_uint(42)],
            "data": "0x" + abi_encode_uint(777) + abi_encode_uint(5 * 10**6) + abi_encode_uint(10**18),
            "transactionHash": "0x01",
            "blockNumber": "0x1",
            "logIndex": "0x0",
        }
        ev = lt.decode_v3_log(log, ctx("V3", fee_tier=0.05))

        assert (ev.event_type, ev.direction) == ("decrease", "remove")
        assert ev.token_id == 42
        assert ev.liquidity == 777
        assert ev.amount0 == Decimal(5)
        assert ev.amount1 == Decimal(1)
        assert ev.fee_tier == 0.05

    def test_v4_negative_delta_is_removal(self):
        ev = lt.decode_v4_log(v4_log("0x" + "ab" * 32, -5000), ctx("V4"))

        assert (ev.event_type, ev.direction) == ("decrease", "remove")
        assert ev.liquidity == -5000
        assert ev.amount0 is None and ev.amount1 is None

    def test_v4_zero_delta_dropped(self):
        assert lt.decode_v4_log(v4_log("0x" + "ab" * 32, 0), ctx("V4")) is None

    def test_initialize(self):
        pool_id = "0x" + "cd" * 32
        log = {
            "topics": [lt.INITIALIZE_TOPIC, pool_id, "0x" + abi_encode_address(ZERO_ADDRESS), "0x" + abi_encode_address(USDC.address)],
            "data": "0x" + abi_encode_uint(3000) + abi_encode_int(60) + abi_encode_address(ZERO_ADDRESS) + abi_encode_uint(2**96) + abi_encode_int(-1),
            "transactionHash": "0x02",
            "blockNumber": "0x2",
        }
        native = TokenInfo(ZERO_ADDRESS, "ETH", 18)
        init = lt.decode_initialize_log(log, CHAINS["ethereum"], native, USDC, timestamp=5)

        assert init.pool_id == pool_id
        assert (init.token0, init.token1) == ("ETH", "USDC")
        assert init.token1_address == USDC.address.lower()
        assert (init.fee, init.tick_spacing) == (3000, 60)
        assert init.hooks == ZERO_ADDRESS
        assert init.block == 2


class TestPoolIds:
    """Test V4 pool id derivation."""

    def test_deterministic_and_fee_sensitive(self):
        a = lt.v4_pool_id(USDC.address, WETH.address, 3000, 60)

        assert a == lt.v4_pool_id(USDC.address.lower(), WETH.address.lower(), 3000, 60)
        assert a != lt.v4_pool_id(USDC.address, WETH.address, 500, 10)
        assert a.startswith("0x") and len(a) == 66

    def test_sort_tokens(self):
        assert lt.sort_tokens(WETH, USDC) == (USDC, WETH)
        assert lt.sort_tokens(USDC, WETH) == (USDC, WETH)

    def test_native_variant_added_for_wrapped_native(self, make_rpc, settings):
        """ETH/USDC pools (currency 0x0) are tracked next to WETH/USDC."""
        pools = lt.v4_pool_contexts(scan(make_rpc(), settings))

        assert len(pools) == 2 * len(lt.V4_FEE_TIERS)
        assert {c.token0.symbol for c in pools.values()} == {"ETH", "USDC"}


class TestTrackers:
    """Test per-version trackers against a fake RPC."""

    def test_v2_without_pair(self, make_rpc, settings):
        rpc = make_rpc({"eth_call": "0x" + pad32("0")})

        assert lt.track_v2(scan(rpc, settings)) == []

    def test_v2_events(self, make_rpc, settings):
        rpc = make_rpc(
            {
                "eth_call": "0x" + abi_encode_address(PAIR_ADDRESS),
                "eth_getLogs": [v2_log(lt.MINT_V2_TOPIC, 10**6, 10**15, block=3)],
                "eth_getBlockByNumber": {"timestamp": hex(1_700_000_000)},
            }
        )
        events = lt.track_v2(scan(rpc, settings))

        assert len(events) == 1
        assert events[0].pool == PAIR_ADDRESS
        assert events[0].timestamp == 1_700_000_000

    def test_v3_filters_positions_by_pool(self, make_rpc, settings):
        """Only position-manager events whose position matches a tracked pool are kept."""
        pool = "0x88e6a0c2ddd26feeb64f039a2c41296fcb3f5640"
        foreign = USDC.address.lower().replace("a0b8", "dead")

        def eth_call(params):
            data = params[0]["data"]
            if data.startswith("0x" + lt.keccak_selector("getPool(address,address,uint24)")):
                fee = int(data[-64:], 16)
                return "0x" + abi_encode_address(pool if fee == 500 else ZERO_ADDRESS)
            token_id = int(data[-64:], 16)
            token0 = USDC.address if token_id == 1 else foreign
            return "0x" + pad32("0") * 2 + abi_encode_address(token0) + abi_encode_address(WETH.address) + abi_encode_uint(500) + pad32("0") * 7

        def log(token_id):
            return {
                "topics": [lt.INCREASE_LIQUIDITY_TOPIC, "0x" + abi_encode_uint(token_id)],
                "data": "0x" + abi_encode_uint(1) + abi_encode_uint(10**6) + abi_encode_uint(10**18),
                "transactionHash": "0x03",
                "blockNumber": "0x5",
                "logIndex": "0x0",
            }

        rpc = make_rpc({"eth_call": eth_call, "eth_getLogs": [log(1), log(2)], "eth_getBlockByNumber": {"timestamp": "0x1"}})
        events = lt.track_v3(scan(rpc, settings))

        assert len(events) == 1
        assert events[0].token_id == 1
        assert events[0].pool == pool
        assert events[0].fee_tier == 0.05

    def test_v4_events_and_initializations(self, make_rpc, settings):
        s = scan(make_rpc(), settings)
        pool_id = next(iter(lt.v4_pool_contexts(s)))
        queries = []

        def get_logs(params):
            queries.append(params[0])
            if params[0]["topics"][0] == lt.MODIFY_LIQUIDITY_TOPIC:
                return [v4_log(pool_id, 1000), v4_log(pool_id, 0), v4_log("0x" + "ee" * 32, 1000)]
            return []

        s.client = make_rpc({"eth_getLogs": get_logs, "eth_getBlockByNumber": {"timestamp": "0x1"}})
        events, inits = lt.track_v4(s)

        assert len(events) == 1
        assert events[0].direction == "add"
        assert inits == []
        assert len(queries[0]["topics"][1]) == 2 * len(lt.V4_FEE_TIERS)

    def test_v4_initialize_failure_keeps_modify_events(self, make_rpc, settings, capsys):
        """Each V4 query in a chunk fails on its own."""
        s = scan(make_rpc(), settings)
        pool_id = next(iter(lt.v4_pool_contexts(s)))

        def get_logs(params):
            if params[0]["topics"][0] == lt.MODIFY_LIQUIDITY_TOPIC:
                return [v4_log(pool_id, 1000)]
            raise RpcError("rate limited")

        s.client = make_rpc({"eth_getLogs": get_logs, "eth_getBlockByNumber": {"timestamp": "0x1"}})
        events, inits = lt.track_v4(s)

        assert len(events) == 1
        assert inits == []
        assert "V4 initializations" in capsys.readouterr().err

    def test_block_without_timestamp_keeps_event(self, make_rpc, settings):
        rpc = make_rpc(
            {
                "eth_call": "0x" + abi_encode_address(PAIR_ADDRESS),
                "eth_getLogs": [v2_log(lt.MINT_V2_TOPIC, 10**6, 10**15, block=3)],
                "eth_getBlockByNumber": {"number": "0x3"},
            }
        )
        events = lt.track_v2(scan(rpc, settings))

        assert len(events) == 1
        assert events[0].timestamp is None

    def test_timestamp_failure_is_none(self, make_rpc, settings, capsys):
        s = scan(make_rpc({"eth_getBlockByNumber": RpcError("boom")}), settings)

        assert s.timestamp(7) is None
        assert "no timestamp for block 7" in capsys.readouterr().err


class TestTrackChain:
    """Test per-chain short circuits."""

    def test_missing_rpc_returns_empty(self, capsys):
        result = lt.track_chain(Settings(), "ethereum")

        assert result.events == [] and result.initializations == []
        assert "no RPC configured" in capsys.readouterr().out

    def test_unknown_chain(self):
        assert lt.track_chain(Settings(rpc_urls={"solana": "x"}), "solana").events == []

    def test_tokens_not_configured(self, capsys):
        result = lt.track_chain(Settings(rpc_urls={"ethereum": "https://x"}, pair="PEPE/USDC"), "ethereum")

        assert result.events == []
        assert "tokens not configured" in capsys.readouterr().out

    def test_version_failure_does_not_stop_others(self, make_rpc, settings, monkeypatch):
        def v3_down(scan):
            raise RpcError("v3 down")

        monkeypatch.setattr(lt, "track_v2", lambda scan: [event()])
        monkeypatch.setattr(lt, "track_v3", v3_down)
        monkeypatch.setattr(lt, "track_v4", lambda scan: ([event("V4")], []))
        monkeypatch.setattr(lt, "read_token_info", lambda client, addr: TokenInfo(addr, "T", 18))
        rpc = make_rpc({"eth_blockNumber": "0x3e8"})

        result = lt.track_chain(settings, "ethereum", client=rpc)

        assert [e.version for e in result.events] == ["V2", "V4"]

    def test_malformed_log_does_not_stop_others(self, make_rpc, settings, monkeypatch, capsys):
        def v2_bad_log(scan):
            raise KeyError("topics")

        monkeypatch.setattr(lt, "track_v2", v2_bad_log)
        monkeypatch.setattr(lt, "track_v3", lambda scan: [event("V3")])
        monkeypatch.setattr(lt, "track_v4", lambda scan: ([event("V4")], []))
        monkeypatch.setattr(lt, "read_token_info", lambda client, addr: TokenInfo(addr, "T", 18))
        rpc = make_rpc({"eth_blockNumber": "0x3e8"})

        result = lt.track_chain(settings, "ethereum", client=rpc)

        assert [e.version for e in result.events] == ["V3", "V4"]
        assert "V2 error on Ethereum" in capsys.readouterr().err


class TestPricing:
    """Test USD valuation."""

    def test_aliases_share_a_price(self):
        ev = dataclasses.replace(event(amount0=Decimal(1), amount1=Decimal(1)), token0="USDbC", token1="ETH")

        assert lt.event_value_usd(ev, {"USDC": 1.0, "WETH": 2000.0}) == pytest.approx(2001.0)

    def test_unpriced_event(self):
        assert lt.event_value_usd(event("V4"), {"WETH": 2000.0}) is None

    def test_fetch_prices_fallback(self, monkeypatch):
        def fail(ids, vs_currency="usd", timeout_s=10):
            raise FetchError("HTTP 429")

        monkeypatch.setattr(lt, "coingecko_simple_price", fail)
        got = lt.fetch_prices({"ETH", "USDC", "PEPE"})

        assert got.used_fallback
        assert got.value == {"USDC": 1.0, "WETH": 3000.0}

    def test_fetch_prices_nothing_to_price(self):
        assert lt.fetch_prices({"PEPE"}) == Fetched({})


class TestAggregation:
    """Test flow aggregation."""

    EVENTS = [
        event(amount0=Decimal(2000), amount1=Decimal(1)),
        event(direction="remove", amount0=Decimal(1000), amount1=Decimal("0.5"), chain="Base"),
        event("V4", timestamp=None),
    ]
    PRICES = {"USDC": 1.0, "WETH": 2000.0}

    def test_counts_and_usd(self):
        stats = lt.aggregate_flows(self.EVENTS, self.PRICES)

        assert (stats.overall.add, stats.overall.remove, stats.overall.net) == (2, 1, 1)
        assert stats.overall.added_usd == pytest.approx(4000.0)
        assert stats.overall.removed_usd == pytest.approx(2000.0)
        assert stats.overall.net_usd == pytest.approx(2000.0)
        assert stats.priced_events == 2

    def test_breakdowns(self):
        stats = lt.aggregate_flows(self.EVENTS, self.PRICES)

        assert stats.by_version["V2"].total == 2
        assert stats.by_version["V4"].total == 1
        assert stats.by_chain["Base"].remove == 1
        assert stats.by_chain_version[("Ethereum", "V4")].add == 1
        assert set(stats.by_day) == {"2023-11-14", "unknown"}

    def test_idempotent(self):
        assert lt.aggregate_flows(self.EVENTS, self.PRICES) == lt.aggregate_flows(self.EVENTS, self.PRICES)

    def test_empty(self):
        assert lt.aggregate_flows([], {}).overall.total == 0


class TestRows:
    """Test CSV row builders."""

    def test_event_row_v2(self):
        row = lt.event_row(event(amount0=Decimal("1.50"), amount1=Decimal(2)))

        assert row["pair_address"] == PAIR_ADDRESS
        assert row["pool_id"] is None
        assert row["amount0"] == "1.50"
        assert row["timestamp"] == "2023-11-14T22:13:20Z"

    def test_event_row_v4_uses_pool_id(self):
        row = lt.event_row(event("V4", timestamp=None))

        assert row["pool_id"] == PAIR_ADDRESS
        assert row["pair_address"] is None
        assert row["amount0"] is None
        assert row["timestamp"] == ""

    def test_summary_rows_categories(self):
        stats = lt.aggregate_flows(TestAggregation.EVENTS, TestAggregation.PRICES)
        categories = [r["category"] for r in lt.summary_rows(stats)]

        assert categories.count("Chain") == 2
        assert categories.count("Version") == 2
        assert categories.count("Day") == 2


class TestRun:
    """Test the report entry point."""

    def test_no_events(self, settings, monkeypatch, capsys):
        monkeypatch.setattr(lt, "track_chain", lambda s, key: lt.ChainResult())

        assert lt.run(dataclasses.replace(settings, chain="base")) == 0
        assert "No liquidity flows detected" in capsys.readouterr().out
        assert list(settings.output_dir.iterdir()) == []

    def test_writes_reports(self, settings, monkeypatch):
        monkeypatch.setattr(lt, "track_chain", lambda s, key: lt.ChainResult(events=[event(amount0=Decimal(1), amount1=Decimal(1))]))
        monkeypatch.setattr(lt, "fetch_prices", lambda symbols, timeout_s=10: Fetched({"USDC": 1.0, "WETH": 2000.0}))

        assert lt.run(dataclasses.replace(settings, chain="ethereum")) == 0
        flows = (settings.output_dir / "uniswap-liquidity-flows-all.csv").read_text(encoding="utf-8").splitlines()
        assert flows[0].startswith("Chain,Chain ID,Version,Pair")
        assert len(flows) == 2
        assert (settings.output_dir / "uniswap-liquidity-summary.csv").exists()

    def test_chain_error_is_contained(self, settings, monkeypatch, capsys):
        def boom(s, key):
            raise RpcError("HTTP 401")

        monkeypatch.setattr(lt, "track_chain", boom)

        assert lt.run(dataclasses.replace(settings, chain="ethereum")) == 0
        assert "Error on ethereum" in capsys.readouterr().err

    def test_malformed_reply_on_one_chain_does_not_stop_the_rest(self, settings, monkeypatch, capsys):
        attempted = []

        def track(s, key):
            attempted.append(key)
            if key == "ethereum":
                raise TypeError("'NoneType' object is not subscriptable")
            return lt.ChainResult()

        monkeypatch.setattr(lt, "track_chain", track)

        assert lt.run(settings) == 0
        assert attempted == list(lt.DEFAULT_CHAINS)
        assert "Error on ethereum" in capsys.readouterr().err

    def test_parse_args(self, settings):
        s = lt.parse_args(settings, ["--blocks", "50", "--chain", "Base", "--pair", "USDT/USDC"])

        assert (s.blocks_to_analyze, s.chain, s.pair) == (50, "base", "USDT/USDC")
