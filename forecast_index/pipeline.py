from typing import Dict, List, Optional, Sequence
from forecast_index.common.config import Config, config
from forecast_index.common.errors import UnknownQuestionError
from forecast_index.common.logging import logger
from forecast_index.common.schema import (
    ChartBar, ComposedIndex, DailyAggregation, KalshiSeries, ManifoldMarketInfo, ScalingParameters, TimePoint,
)
from forecast_index.index.compose import compose_index_many
from forecast_index.kalshi.grabber import KalshiGrabber
from forecast_index.kalshi.map_to_canonical import parse_kalshi_payload, resample_candlesticks
from forecast_index.manifold.grabber import ManifoldGrabber
from forecast_index.manifold.map_to_canonical import (
    grouped_answers_to_bars, parse_grouped_market, parse_manifold_market,
)
from forecast_index.metaculus.grabber import MetaculusGrabber
from forecast_index.metaculus.map_to_canonical import normalize_metaculus_history, parse_metaculus_question
from forecast_index.polymarket.grabber import PolymarketGrabber
from forecast_index.polymarket.map_to_canonical import first_clob_token_id, price_history_to_series


def load_metaculus_series(
    question_id: int,
    as_percentage: bool = False,
    aggregation: DailyAggregation = DailyAggregation.MEAN,
    grabber: Optional[MetaculusGrabber] = None,
) -> List[TimePoint]:
    """
    Fetch a Metaculus question and normalize its history to a daily series.

    With as_percentage the question's own scaling is ignored and values are the
    raw probability-space position in percent, which is what the index composer
    projects through a DateRange.
    """
    grabber = grabber or MetaculusGrabber()
    scaling, history = parse_metaculus_question(grabber.fetch_question(question_id))
    if as_percentage:
        scaling = ScalingParameters.percentage()
    series = normalize_metaculus_history(history, scaling, aggregation=aggregation)
    logger.info(f"Metaculus {question_id}: {len(history)} samples -> {len(series)} daily points")
    return series


def load_kalshi_series(
    market_ticker: str,
    market_id: str,
    series_ticker: Optional[str] = None,
    interval_minutes: Optional[int] = None,
    grabber: Optional[KalshiGrabber] = None,
) -> KalshiSeries:
    """Fetch candlesticks for a Kalshi market; returns the parsed series (see resample_kalshi)."""
    grabber = grabber or KalshiGrabber()
    interval = interval_minutes or config.kalshi_candle_interval
    payload = grabber.fetch_market_history(market_ticker, market_id, series_ticker, period_interval=interval)
    return parse_kalshi_payload(payload)


def resample_kalshi(series: KalshiSeries, interval_minutes: Optional[int] = None) -> List[TimePoint]:
    points = resample_candlesticks(series.candlesticks, interval_minutes or config.kalshi_candle_interval)
    logger.info(f"Kalshi {series.ticker}: {len(series.candlesticks)} candlesticks -> {len(points)} points")
    return points


def load_manifold_market(slug: str, grabber: Optional[ManifoldGrabber] = None) -> ManifoldMarketInfo:
    grabber = grabber or ManifoldGrabber()
    market = grabber.fetch_market(slug)
    bets = grabber.fetch_bets(slug)
    return parse_manifold_market(market, bets)


def load_manifold_grouped(slug: str, grabber: Optional[ManifoldGrabber] = None) -> List[ChartBar]:
    grabber = grabber or ManifoldGrabber()
    return grouped_answers_to_bars(parse_grouped_market(grabber.fetch_grouped_market(slug)))


def load_polymarket_series(slug: str, grabber: Optional[PolymarketGrabber] = None) -> List[TimePoint]:
    grabber = grabber or PolymarketGrabber()
    market = grabber.fetch_market(slug)
    token_id = first_clob_token_id(market)
    return price_history_to_series(grabber.fetch_market_history(market, token_id))


def build_index(
    question_keys: Optional[Sequence[str]] = None,
    cfg: Config = config,
    grabber: Optional[MetaculusGrabber] = None,
) -> ComposedIndex:
    """
    Compose the configured Metaculus questions into one index.

    Args:
        question_keys: keys from the question registry; defaults to the configured index components
        cfg: configuration holding the question registry and their DateRanges
        grabber: Metaculus grabber (shared across questions)
    """
    keys = list(question_keys or cfg.index_components)
    unknown = [k for k in keys if k not in cfg.questions]
    if unknown:
        raise UnknownQuestionError(unknown)

    grabber = grabber or MetaculusGrabber()
    inputs = []
    for key in keys:
        question = cfg.questions[key]
        series = load_metaculus_series(question.metaculus_id, as_percentage=True, grabber=grabber)
        inputs.append((series, question.date_range))

    composed = compose_index_many(inputs, resolution_ms=cfg.resolution_ms)
    logger.info(f"Composed index from {keys}: {len(composed.index)} points ({composed.min_date} .. {composed.max_date})")
    return composed


def question_summary(cfg: Config = config) -> Dict[str, Dict[str, object]]:
    return {
        key: {"title": q.title, "metaculus_id": q.metaculus_id, "date_range": q.date_range.model_dump()}
        for key, q in cfg.questions.items()
    }
