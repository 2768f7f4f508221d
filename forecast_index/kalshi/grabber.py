from typing import Any, Dict, Optional
from forecast_index.common.config import config
from forecast_index.common.errors import MalformedInputError
from forecast_index.common.http import HttpClient, get_kalshi_client
from forecast_index.common.logging import logger
from forecast_index.common.schema import Source, parse_iso


class KalshiGrabber:
    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or get_kalshi_client()

    def fetch_market(self, ticker: str) -> Dict[str, Any]:
        logger.info(f"Fetching Kalshi market {ticker}...")
        return self.client.get_json(f"/markets/{ticker}")

    def fetch_candlesticks(
        self,
        series_ticker: str,
        market_id: str,
        start_ts: int,
        end_ts: int,
        period_interval: int = config.kalshi_candle_interval,
    ) -> Dict[str, Any]:
        logger.info(f"Fetching Kalshi candlesticks for {series_ticker}/{market_id} (interval={period_interval}m)...")
        params = {"start_ts": start_ts, "end_ts": end_ts, "period_interval": period_interval}
        return self.client.get_json(f"/series/{series_ticker}/markets/{market_id}/candlesticks", params=params)

    def fetch_market_history(
        self,
        market_ticker: str,
        market_id: str,
        series_ticker: Optional[str] = None,
        period_interval: int = config.kalshi_candle_interval,
    ) -> Dict[str, Any]:
        """Fetch market metadata plus candlesticks over the market's open..close window."""
        market_data = self.fetch_market(market_ticker)
        market = market_data.get("market") or {}
        if not market.get("open_time") or not market.get("close_time"):
            raise MalformedInputError(Source.KALSHI.value, f"market {market_ticker} has no open_time/close_time")
        start_ts = int(parse_iso(market["open_time"]).timestamp())
        end_ts = int(parse_iso(market["close_time"]).timestamp())

        candlesticks = self.fetch_candlesticks(
            series_ticker or market_ticker, market_id, start_ts, end_ts, period_interval
        )
        return {
            "marketData": market_data,
            "candlesticks": candlesticks,
            "dateRange": {
                "start": market["open_time"],
                "end": market["close_time"],
                "interval": period_interval,
            },
        }

# --- LESSONS LEARNED ---
# 1. Candlesticks: period_interval only accepts 1, 60 or 1440 minutes.
# 2. Window: start_ts/end_ts are unix seconds; the market's own open/close bounds
#    are the widest window the endpoint will serve.
