from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Union

from dexreports.utils import FetchError, fetch_json, fetch_with_fallback, pause


DEFILLAMA_API = "https://api.llama.fi"

UNISWAP_VERSIONS = ("uniswap-v1", "uniswap-v2", "uniswap-v3", "uniswap-v4")

DAY_S = 86400

# currentChainTvls also carries composite entries ("Ethereum-staking", "borrowed", ...)
# that double count when summed with the plain chain entries.
_NON_CHAIN_KEYS = {"borrowed", "staking", "pool2", "vesting", "doublecounted", "liquidstaking", "offers"}


# ------------------------------------------------------------------------------------------------
# historical data points
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class PairPoint:
    timestamp: int
    value: float
    kind: Literal["pair"] = "pair"


@dataclass(frozen=True)
class ObjectPoint:
    timestamp: int
    total: float
    by_chain: dict[str, float] = field(default_factory=dict)
    kind: Literal["object"] = "object"


DataPoint = Union[PairPoint, ObjectPoint]


def _num(v: Any) -> float:
    if isinstance(v, bool) or v is None:
        return 0.0
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        try:
            return float(v)
        except ValueError:
            return 0.0
    return 0.0


def parse_data_point(raw: Any) -> DataPoint | None:
    """Decode one DefiLlama series entry; None when it carries no usable timestamp."""
    if isinstance(raw, (list, tuple)):
        if not raw:
            return None
        ts = int(_num(raw[0]))
        if ts <= 0:
            return None
        value = raw[1] if len(raw) > 1 else 0
        if isinstance(value, dict):
            by_chain = {str(k): _num(v) for k, v in value.items()}
            return ObjectPoint(timestamp=ts, total=sum(by_chain.values()), by_chain=by_chain)
        return PairPoint(timestamp=ts, value=_num(value))

    if isinstance(raw, dict):
        ts = int(_num(raw.get("date")))
        if ts <= 0:
            return None
        total = _num(raw.get("totalLiquidityUSD") or raw.get("value") or raw.get("tvl"))
        nested = raw.get("data") if isinstance(raw.get("data"), dict) else raw.get("chainTvls")
        by_chain = {str(k): _num(v) for k, v in nested.items()} if isinstance(nested, dict) else {}
        return ObjectPoint(timestamp=ts, total=total, by_chain=by_chain)

    return None


def parse_series(raw: Any) -> list[DataPoint]:
    if not isinstance(raw, list):
        return []
    out: list[DataPoint] = []
    for item in raw:
        p = parse_data_point(item)
        if p is not None:
            out.append(p)
    return out


def point_total(point: DataPoint) -> float:
    return point.value if isinstance(point, PairPoint) else point.total


def point_chain_value(point: DataPoint, chain_name: str) -> float:
    if isinstance(point, PairPoint):
        return 0.0
    return point.by_chain.get(chain_name, 0.0)


def find_closest_data_point(points: list[DataPoint], target_ts: int, tolerance_s: int = DAY_S) -> DataPoint | None:
    """Closest point to `target_ts`, preferring points no later than target + tolerance.

    Falls back to the absolute closest point when every point is later than that,
    so any non-empty series yields a point.
    """
    if not points:
        return None

    best: DataPoint | None = None
    best_diff: float = float("inf")
    for p in points:
        diff = abs(p.timestamp - target_ts)
        if p.timestamp <= target_ts + tolerance_s and diff < best_diff:
            best, best_diff = p, diff

    if best is None:
        for p in points:
            diff = abs(p.timestamp - target_ts)
            if diff < best_diff:
                best, best_diff = p, diff
    return best


# ------------------------------------------------------------------------------------------------
# /protocol payloads
# ------------------------------------------------------------------------------------------------


def is_chain_key(key: str) -> bool:
    return "-" not in key and key.lower() not in _NON_CHAIN_KEYS


@dataclass(frozen=True)
class ProtocolSnapshot:
    slug: str
    name: str
    tvl_history: list[DataPoint]
    chain_tvl_history: dict[str, list[DataPoint]]
    current_chain_tvls: dict[str, float]

    def current_chain_tvl(self, chain_name: str) -> float:
        return self.current_chain_tvls.get(chain_name, 0.0)

    def current_total_tvl(self) -> float:
        return sum(v for k, v in self.current_chain_tvls.items() if is_chain_key(k))

    def latest_tvl(self) -> float:
        """Most recent total TVL from the history, else the sum of current chain TVLs."""
        if self.tvl_history:
            latest = max(self.tvl_history, key=lambda p: p.timestamp)
            value = point_total(latest)
            if value > 0:
                return value
        return self.current_total_tvl()


def parse_protocol(slug: str, data: Any) -> ProtocolSnapshot:
    if not isinstance(data, dict):
        raise FetchError(f"unexpected /protocol/{slug} payload: {type(data).__name__}")

    chain_history: dict[str, list[DataPoint]] = {}
    raw_chain_tvls = data.get("chainTvls")
    if isinstance(raw_chain_tvls, dict):
        for chain_name, entry in raw_chain_tvls.items():
            # Current API shape: {"Ethereum": {"tvl": [...], "tokens": ...}}; older: {"Ethereum": [...]}.
            series = entry.get("tvl") if isinstance(entry, dict) else entry
            points = parse_series(series)
            if points:
                chain_history[str(chain_name)] = points

    current: dict[str, float] = {}
    raw_current = data.get("currentChainTvls")
    if isinstance(raw_current, dict):
        for k, v in raw_current.items():
            if isinstance(v, (int, float)) and not isinstance(v, bool):
                current[str(k)] = float(v)

    return ProtocolSnapshot(
        slug=slug,
        name=str(data.get("name") or slug),
        tvl_history=parse_series(data.get("tvl")),
        chain_tvl_history=chain_history,
        current_chain_tvls=current,
    )


def fetch_protocol(slug: str, *, timeout_s: float = 10) -> ProtocolSnapshot:
    return parse_protocol(slug, fetch_json(f"{DEFILLAMA_API}/protocol/{slug}", timeout_s=timeout_s))


# ------------------------------------------------------------------------------------------------
# chain TVL at a point in time
# ------------------------------------------------------------------------------------------------


def chain_tvl_from_history(snapshot: ProtocolSnapshot, chain_name: str, target_ts: int) -> float:
    points = snapshot.chain_tvl_history.get(chain_name)
    if not points:
        return 0.0
    p = find_closest_data_point(points, target_ts)
    if p is None:
        return 0.0
    if isinstance(p, PairPoint):
        return p.value
    return p.total or point_chain_value(p, chain_name)


def chain_tvl_proportional(snapshot: ProtocolSnapshot, chain_name: str, target_ts: int) -> float:
    p = find_closest_data_point(snapshot.tvl_history, target_ts)
    if p is None:
        return 0.0
    total = point_total(p)
    if total == 0:
        return 0.0
    current_chain = snapshot.current_chain_tvl(chain_name)
    current_total = snapshot.current_total_tvl()
    if current_total == 0:
        return current_chain
    return total * (current_chain / current_total)


def estimate_total_tvl(snapshot: ProtocolSnapshot, target_ts: int) -> tuple[float, str]:
    """Protocol-wide TVL at `target_ts` plus the strategy that produced it.

    Sums the closest point of every plain chain series first, then falls back to
    the total history and finally to the current chain TVLs.
    """
    summed = 0.0
    for chain_name, points in snapshot.chain_tvl_history.items():
        if not is_chain_key(chain_name):
            continue
        p = find_closest_data_point(points, target_ts)
        if p is not None:
            summed += point_total(p)
    if summed > 0:
        return summed, "chain-history"

    p = find_closest_data_point(snapshot.tvl_history, target_ts)
    if p is not None and point_total(p) > 0:
        return point_total(p), "total-history"
    return snapshot.current_total_tvl(), "current"


def estimate_chain_tvl(snapshot: ProtocolSnapshot, chain_name: str, target_ts: int) -> tuple[float, str]:
    """Chain TVL at `target_ts` plus the strategy that produced it.

    Strategies in order: the chain's own history, total history scaled by the
    chain's current share, then the current chain TVL.
    """
    v = chain_tvl_from_history(snapshot, chain_name, target_ts)
    if v > 0:
        return v, "chain-history"
    v = chain_tvl_proportional(snapshot, chain_name, target_ts)
    if v > 0:
        return v, "proportional"
    return snapshot.current_chain_tvl(chain_name), "current"


# ------------------------------------------------------------------------------------------------
# /summary endpoints
# ------------------------------------------------------------------------------------------------


@dataclass(frozen=True)
class FeesSummary:
    total_24h: float
    total_7d: float
    total_30d: float
    daily: list[DataPoint] = field(default_factory=list)

    def fees_at(self, target_ts: int) -> float:
        """Daily fees closest to `target_ts`, else the latest 24h total."""
        p = find_closest_data_point(self.daily, target_ts)
        value = point_total(p) if p is not None else 0.0
        return value or self.total_24h


def parse_fees_summary(data: Any) -> FeesSummary:
    if not isinstance(data, dict):
        raise FetchError("unexpected fees summary payload")
    return FeesSummary(
        total_24h=_num(data.get("total24h")),
        total_7d=_num(data.get("total7d")),
        total_30d=_num(data.get("total30d")),
        daily=parse_series(data.get("totalDataChart")),
    )


def fetch_fees_summary(slug: str, *, timeout_s: float = 10) -> FeesSummary:
    url = f"{DEFILLAMA_API}/summary/fees/{slug}"
    return parse_fees_summary(fetch_json(url, params={"dataType": "dailyFees"}, timeout_s=timeout_s))


@dataclass(frozen=True)
class VolumeSummary:
    slug: str
    total_24h: float
    # Latest day of totalDataChartBreakdown: chain -> {protocol display name -> volume}.
    latest_breakdown: dict[str, dict[str, float]]
    latest_timestamp: int | None
    # One point per day: chain -> this protocol's volume.
    history: list[ObjectPoint] = field(default_factory=list)

    def chain_volume_at(self, chain_name: str, target_ts: int) -> float:
        p = find_closest_data_point(self.history, target_ts)
        return point_chain_value(p, chain_name) if p is not None else 0.0


def breakdown_volume(per_protocol: dict[str, float], slug: str) -> float:
    """This protocol's share of one chain's breakdown, keyed by display name or slug."""
    name = display_name(slug)
    if name in per_protocol:
        return per_protocol[name]
    if slug in per_protocol:
        return per_protocol[slug]
    return sum(per_protocol.values())


def _breakdown_day(slug: str, raw: Any) -> dict[str, dict[str, float]]:
    out: dict[str, dict[str, float]] = {}
    for chain_name, per_protocol in raw.items():
        if isinstance(per_protocol, dict):
            out[str(chain_name)] = {str(k): _num(v) for k, v in per_protocol.items()}
        else:
            out[str(chain_name)] = {slug: _num(per_protocol)}
    return out


def parse_volume_summary(slug: str, data: Any) -> VolumeSummary:
    if not isinstance(data, dict):
        raise FetchError(f"unexpected /summary/dexs/{slug} payload")

    latest_ts: int | None = None
    breakdown: dict[str, dict[str, float]] = {}
    history: list[ObjectPoint] = []
    chart = data.get("totalDataChartBreakdown")
    for entry in chart if isinstance(chart, list) else []:
        if not (isinstance(entry, (list, tuple)) and len(entry) >= 2 and isinstance(entry[1], dict)):
            continue
        ts = int(_num(entry[0]))
        if ts <= 0:
            continue
        day = _breakdown_day(slug, entry[1])
        by_chain = {chain: breakdown_volume(v, slug) for chain, v in day.items()}
        history.append(ObjectPoint(timestamp=ts, total=sum(by_chain.values()), by_chain=by_chain))
        latest_ts, breakdown = ts, day

    return VolumeSummary(
        slug=slug,
        total_24h=_num(data.get("total24h")),
        latest_breakdown=breakdown,
        latest_timestamp=latest_ts,
        history=history,
    )


def fetch_volume_summary(slug: str, *, timeout_s: float = 10) -> VolumeSummary:
    url = f"{DEFILLAMA_API}/summary/dexs/{slug}"
    params = {"excludeTotalDataChart": "true", "excludeTotalDataChartBreakdown": "false"}
    return parse_volume_summary(slug, fetch_json(url, params=params, timeout_s=timeout_s))


def version_label(slug: str) -> str:
    """uniswap-v3 -> V3."""
    return slug.rsplit("-", 1)[-1].upper()


def display_name(slug: str) -> str:
    """uniswap-v3 -> Uniswap V3, the key DefiLlama uses inside volume breakdowns."""
    return " ".join(part.upper() if part[:1] == "v" and part[1:].isdigit() else part.capitalize() for part in slug.split("-"))


def series_label(slug: str) -> str:
    """Column label for one tracked protocol: "V3" inside the Uniswap family, else its display name."""
    return version_label(slug) if slug.startswith("uniswap-") else display_name(slug)


def report_prefix(slugs: Iterable[str]) -> str:
    slugs = tuple(slugs)
    return "uniswap" if slugs == UNISWAP_VERSIONS else "-".join(slugs)


def fetch_protocols(slugs: Iterable[str], *, timeout_s: float = 10, delay_s: float = 0.5) -> dict[str, ProtocolSnapshot | None]:
    """Fetch each protocol once; a failed fetch maps to None after a warning."""
    out: dict[str, ProtocolSnapshot | None] = {}
    for slug in slugs:
        out[slug] = fetch_with_fallback(
            lambda slug=slug: fetch_protocol(slug, timeout_s=timeout_s),
            None,
            label=f"Failed to fetch {slug}",
        ).value
        pause(delay_s)
    return out


def fetch_volume_summaries(slugs: Iterable[str], *, timeout_s: float = 10, delay_s: float = 0.5) -> dict[str, VolumeSummary | None]:
    """Volume counterpart of `fetch_protocols`."""
    out: dict[str, VolumeSummary | None] = {}
    for slug in slugs:
        out[slug] = fetch_with_fallback(
            lambda slug=slug: fetch_volume_summary(slug, timeout_s=timeout_s),
            None,
            label=f"Failed to fetch {slug} volume",
        ).value
        pause(delay_s)
    return out
