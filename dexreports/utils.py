from __future__ import annotations

import csv
import sys
import time
import traceback
from dataclasses import dataclass
from decimal import getcontext
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, Mapping, Sequence, TypeVar

import requests

from dexreports.config import ConfigError, Settings, load_settings

getcontext().prec = 80


USER_AGENT = "dex-reports/1.0"
COINGECKO_API = "https://api.coingecko.com/api/v3"

T = TypeVar("T")

Column = tuple[str, str]


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def write_csv(path: Path, columns: Sequence[Column], rows: Iterable[Mapping[str, Any]]) -> int:
    """Write `rows` under a header of column titles; returns the number of data rows.

    Each column is an `(id, title)` pair. Values are looked up by id; a missing
    or None value is written as an empty string.
    """
    ensure_dir(path.parent)
    n = 0
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow([title for _, title in columns])
        for row in rows:
            w.writerow([_cell(row.get(col_id)) for col_id, _ in columns])
            n += 1
    print(f"✅ CSV written to {path} ({n} rows)")
    return n


# ------------------------------------------------------------------------------------------------
# console output
# ------------------------------------------------------------------------------------------------


def warn(message: str) -> None:
    print(f"⚠️  {message}", file=sys.stderr, flush=True)


def debug(settings: Settings, message: str) -> None:
    if settings.debug:
        print(f"[debug] {message}", flush=True)


def banner(title: str, *, width: int = 72, lines: Sequence[str] = ()) -> None:
    print()
    print("=" * width)
    print(f"  {title}")
    print("=" * width)
    for line in lines:
        print(line)
    if lines:
        print()


def bar(value: float, max_value: float, *, width: int = 50, char: str = "█") -> str:
    if max_value <= 0 or value <= 0:
        return ""
    n = int(min(value, max_value) / max_value * width)
    return char * n


def format_usd(value: float) -> str:
    if value < 0:
        return f"-${abs(value):,.2f}"
    return f"${value:,.2f}"


def signed(value: float, fmt: str = "{:,.0f}") -> str:
    text = fmt.format(value)
    return f"+{text}" if value > 0 else text


def pct_change(new: float, old: float) -> float:
    if old <= 0:
        return 0.0
    return (new - old) / old * 100


def share_pct(part: float, total: float) -> float:
    return part / total * 100 if total > 0 else 0.0


# ------------------------------------------------------------------------------------------------
# HTTP + fallbacks
# ------------------------------------------------------------------------------------------------


class FetchError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def http_get(url: str, *, params: dict[str, Any] | None = None, timeout_s: float = 10) -> requests.Response:
    return requests.get(
        url,
        params=params,
        timeout=timeout_s,
        headers={"User-Agent": USER_AGENT},
    )


def fetch_json(url: str, *, params: dict[str, Any] | None = None, timeout_s: float = 10) -> Any:
    try:
        resp = http_get(url, params=params, timeout_s=timeout_s)
    except requests.RequestException as e:
        raise FetchError(f"request failed: {e} ({url})") from e

    if resp.status_code >= 400:
        raise FetchError(f"HTTP {resp.status_code} ({url})", status_code=resp.status_code)

    try:
        return resp.json()
    except ValueError as e:
        raise FetchError(f"invalid JSON from {url}: {resp.text[:200]!r}") from e


@dataclass(frozen=True)
class Fetched(Generic[T]):
    value: T
    error: FetchError | None = None

    @property
    def used_fallback(self) -> bool:
        return self.error is not None


def fetch_with_fallback(fn: Callable[[], T], fallback: T, *, label: str, quiet: bool = False) -> Fetched[T]:
    """Call `fn`; on any upstream failure return `fallback` tagged with the error.

    Malformed payloads (missing keys, wrong types) count as upstream failures.
    """
    try:
        return Fetched(fn())
    except (FetchError, requests.RequestException, ValueError, KeyError, TypeError, IndexError) as e:
        err = e if isinstance(e, FetchError) else FetchError(f"{type(e).__name__}: {e}")
        if not quiet:
            warn(f"{label}: {err}; using fallback {fallback!r}")
        return Fetched(fallback, error=err)


def coingecko_simple_price(ids: Iterable[str], vs_currency: str = "usd", *, timeout_s: float = 10) -> dict[str, float]:
    ids = list(ids)
    data = fetch_json(
        f"{COINGECKO_API}/simple/price",
        params={"ids": ",".join(ids), "vs_currencies": vs_currency},
        timeout_s=timeout_s,
    )
    if not isinstance(data, dict):
        raise FetchError(f"unexpected CoinGecko response: {data!r}")
    out: dict[str, float] = {}
    for coin_id in ids:
        entry = data.get(coin_id)
        if isinstance(entry, dict) and entry.get(vs_currency) is not None:
            out[coin_id] = float(entry[vs_currency])
    if not out:
        raise FetchError(f"CoinGecko returned no prices for {', '.join(ids)}")
    return out


def coingecko_price(coin_id: str, *, timeout_s: float = 10) -> float:
    return coingecko_simple_price([coin_id], timeout_s=timeout_s)[coin_id]


def pause(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)


# ------------------------------------------------------------------------------------------------
# entry points
# ------------------------------------------------------------------------------------------------


def run_main(report: Callable[[Settings], int], settings: Settings | None = None) -> int:
    """Run a report with the top-level error boundary shared by every script."""
    try:
        settings = settings or load_settings()
    except ConfigError as e:
        print(f"❌ configuration error: {e}", file=sys.stderr)
        return 1

    try:
        return report(settings)
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        if settings.debug:
            traceback.print_exc()
        return 1
