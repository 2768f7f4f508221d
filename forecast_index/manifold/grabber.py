from typing import Any, Dict, List, Optional
from forecast_index.common.http import HttpClient, get_manifold_client
from forecast_index.common.logging import logger


class ManifoldGrabber:
    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or get_manifold_client()

    def fetch_market(self, slug: str) -> Dict[str, Any]:
        logger.info(f"Fetching Manifold market {slug}...")
        return self.client.get_json(f"/v0/slug/{slug}")

    def fetch_bets(self, slug: str, limit: int = 1000) -> List[Dict[str, Any]]:
        logger.info(f"Fetching Manifold bets for {slug} (limit={limit})...")
        return self.client.get_json("/v0/bets", params={"contractSlug": slug, "limit": limit})

    def fetch_grouped_market(self, slug: str) -> Dict[str, Any]:
        """Resolve slug -> id, then fetch the full market (with answers) by id."""
        market_id = self.fetch_market(slug)["id"]
        logger.info(f"Fetching Manifold grouped market {market_id}...")
        detailed = self.client.get_json("/markets-by-ids", params={"ids[]": market_id})
        return detailed[0] if detailed else {}

# --- LESSONS LEARNED ---
# 1. Grouped markets: /v0/slug/{slug} omits answer probabilities for some multi-choice
#    markets; /markets-by-ids returns the full answer list.
