import sys
import json
from pathlib import Path

# Add project root to sys.path
sys.path.append(str(Path(__file__).parent.parent))

from forecast_index.common.errors import ForecastIndexError
from forecast_index.common.logging import logger
from forecast_index.common.schema import DailyAggregation
from forecast_index import pipeline


def _dump(obj) -> str:
    if isinstance(obj, list):
        return json.dumps([item.model_dump(mode="json") for item in obj], indent=2)
    if hasattr(obj, "model_dump"):
        return json.dumps(obj.model_dump(mode="json"), indent=2)
    return json.dumps(obj, indent=2)


def run(args) -> object:
    if args.command == "index":
        return pipeline.build_index(args.questions or None)
    if args.command == "questions":
        return pipeline.question_summary()
    if args.command == "metaculus":
        return pipeline.load_metaculus_series(
            args.question_id,
            as_percentage=args.percentage,
            aggregation=DailyAggregation(args.aggregation),
        )
    if args.command == "kalshi":
        series = pipeline.load_kalshi_series(
            args.market_ticker, args.market_id, series_ticker=args.series_ticker, interval_minutes=args.interval
        )
        return pipeline.resample_kalshi(series, args.interval)
    if args.command == "manifold":
        return pipeline.load_manifold_market(args.slug)
    if args.command == "manifold-grouped":
        return pipeline.load_manifold_grouped(args.slug)
    if args.command == "polymarket":
        return pipeline.load_polymarket_series(args.slug)
    raise ValueError(f"Unknown command: {args.command}")


def build_parser():
    import argparse
    parser = argparse.ArgumentParser(description="Fetch forecasts and print normalized series as JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("index", help="Compose configured Metaculus questions into one index")
    p.add_argument("--questions", nargs="+", default=None, help="Question keys from config/questions.yaml")

    sub.add_parser("questions", help="List the configured questions")

    p = sub.add_parser("metaculus", help="Daily series for one Metaculus question")
    p.add_argument("question_id", type=int)
    p.add_argument("--percentage", action="store_true", help="Ignore the question's scaling; output 0-100")
    p.add_argument("--aggregation", choices=[a.value for a in DailyAggregation], default=DailyAggregation.MEAN.value)

    p = sub.add_parser("kalshi", help="Resampled Kalshi candlesticks")
    p.add_argument("market_ticker")
    p.add_argument("market_id")
    p.add_argument("--series-ticker", default=None)
    p.add_argument("--interval", type=int, default=None, help="Minutes between points")

    p = sub.add_parser("manifold", help="Manifold market info with bet history")
    p.add_argument("slug")

    p = sub.add_parser("manifold-grouped", help="Manifold grouped answers as bars")
    p.add_argument("slug")

    p = sub.add_parser("polymarket", help="Polymarket price history")
    p.add_argument("slug")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        result = run(args)
    except ForecastIndexError as e:
        logger.error(str(e))
        return 1
    print(_dump(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
