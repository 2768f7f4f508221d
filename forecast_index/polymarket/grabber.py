from typing import Any, Dict, Optional
from forecast_index.common.config import config
from forecast_index.common.errors import MalformedInputError
from forecast_index.common.http import HttpClient, get_polymarket_client
from forecast_index.common.logging import logger
from forecast_index.common.schema import Source, parse_iso


class PolymarketGrabber:
    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or get_polymarket_client()

    def fetch_market(self, slug: str) -> Dict[str, Any]:
        logger.info(f"Fetching Polymarket market {slug}...")
        markets = self.client.get_json(f"{config.polymarket_gamma_url}/markets", params={"slug": slug})
        if not markets:
            raise MalformedInputError(Source.POLYMARKET.value, f"no market with slug '{slug}'")
        return markets[0]

    def fetch_price_history(
        self,
        token_id: str,
        start_ts: Optional[int] = None,
        end_ts: Optional[int] = None,
        fidelity: int = 60,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"market": token_id, "fidelity": fidelity}
        if start_ts is not None and end_ts is not None:
            params["startTs"] = start_ts
            params["endTs"] = end_ts
        else:
            params["interval"] = "1m"
        logger.info(f"Fetching Polymarket price history for token {token_id}...")
        return self.client.get_json("/prices-history", params=params)

    def fetch_market_history(self, market: Dict[str, Any], token_id: str) -> Dict[str, Any]:
        """Closed markets need an explicit window; open ones use the rolling interval."""
        if market.get("closed") and market.get("startDate") and market.get("endDate"):
            start_ts = int(parse_iso(market["startDate"]).timestamp())
            end_ts = int(parse_iso(market["endDate"]).timestamp())
            return self.fetch_price_history(token_id, start_ts=start_ts, end_ts=end_ts)
        return self.fetch_price_history(token_id)
