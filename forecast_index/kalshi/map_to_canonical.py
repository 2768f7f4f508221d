import math
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple
from pydantic import ValidationError
from forecast_index.common.errors import MalformedInputError
from forecast_index.common.schema import (
    Candlestick, DateRange, KalshiSeries, Source, TimePoint, from_unix_seconds, parse_iso, to_unix_millis,
)


def market_date_range(market: Dict[str, Any]) -> Optional[DateRange]:
    """Derive the chart window from a market's open_time/close_time."""
    open_time, close_time = market.get("open_time"), market.get("close_time")
    if not open_time or not close_time:
        return None
    start = to_unix_millis(parse_iso(open_time))
    end = to_unix_millis(parse_iso(close_time))
    if start >= end:
        return None
    return DateRange(start=start, end=end)


def parse_kalshi_payload(payload: Dict[str, Any]) -> KalshiSeries:
    """
    Validate a combined {marketData, candlesticks} payload.

    The candlesticks endpoint nests its list as candlesticks.candlesticks.
    """
    try:
        raw_sticks = payload["candlesticks"]["candlesticks"]
    except (KeyError, TypeError):
        raise MalformedInputError(Source.KALSHI.value, "missing 'candlesticks.candlesticks'") from None
    if not isinstance(raw_sticks, list):
        raise MalformedInputError(Source.KALSHI.value, "'candlesticks.candlesticks' is not a list")

    market = (payload.get("marketData") or {}).get("market") or {}
    try:
        candlesticks = [Candlestick(**c) for c in raw_sticks]
    except (ValidationError, TypeError) as e:
        raise MalformedInputError(Source.KALSHI.value, str(e)) from e

    return KalshiSeries(
        ticker=market.get("ticker"),
        candlesticks=candlesticks,
        date_range=market_date_range(market),
    )


def _round_half_up(x: float) -> int:
    # Kalshi quotes in whole cents; the chart rounds .5 up rather than to even
    return int(math.floor(x + 0.5))


def _midpoint(stick: Candlestick) -> int:
    if stick.yes_bid is None or stick.yes_ask is None:
        raise MalformedInputError(
            Source.KALSHI.value,
            f"candlestick at {stick.end_period_ts} has no mean price and no yes_bid/yes_ask to fall back on",
        )
    return _round_half_up((stick.yes_bid.close + stick.yes_ask.close) / 2)


class ResampleState(NamedTuple):
    """Accumulator threaded through the tick walk."""
    cursor: int
    last_valid_mean: Optional[float]


def _ticks(start: int, end: int, step: int) -> Iterator[int]:
    tick = start
    while tick <= end:
        yield tick
        tick += step


def _step(
    state: ResampleState, tick: int, candlesticks: Sequence[Candlestick]
) -> Tuple[ResampleState, Optional[TimePoint]]:
    cursor = state.cursor
    while cursor < len(candlesticks) and candlesticks[cursor].end_period_ts < tick:
        cursor += 1
    if cursor == len(candlesticks):
        return state, None

    stick = candlesticks[cursor]
    last_valid_mean = stick.price.mean if stick.price.mean is not None else state.last_valid_mean
    value = last_valid_mean if last_valid_mean is not None else _midpoint(stick)

    point = TimePoint(date=from_unix_seconds(tick), value=float(value))
    return ResampleState(cursor=cursor, last_valid_mean=last_valid_mean), point


def resample_candlesticks(candlesticks: Sequence[Candlestick], interval_minutes: int) -> List[TimePoint]:
    """
    Resample candlesticks onto a fixed clock from the first to the last end_period_ts.

    Each tick reads the first candlestick closing at or after it. The last non-null
    mean price is carried forward; until one has been seen, the yes bid/ask close
    midpoint is used instead. Candlesticks must already be sorted by end_period_ts.

    Args:
        candlesticks: candlesticks in ascending end_period_ts order
        interval_minutes: clock step

    Returns:
        One TimePoint per tick that has a candlestick at or after it
    """
    if interval_minutes <= 0:
        raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
    if not candlesticks:
        return []

    step_seconds = int(interval_minutes * 60)
    state = ResampleState(cursor=0, last_valid_mean=None)
    points: List[TimePoint] = []

    for tick in _ticks(candlesticks[0].end_period_ts, candlesticks[-1].end_period_ts, step_seconds):
        state, point = _step(state, tick, candlesticks)
        if point is not None:
            points.append(point)

    return points

# --- LESSONS LEARNED ---
# 1. Prices: candlestick price.mean is null for periods with no trades. Carrying the
#    last mean forward keeps the line continuous; the bid/ask midpoint only covers the
#    stretch before the first trade.
# 2. Ordering: the candlesticks endpoint returns ascending end_period_ts. The resampler
#    relies on that and never re-sorts, so the cursor only moves forward.
