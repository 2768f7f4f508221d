from typing import Any, Dict, Optional
from forecast_index.common.http import HttpClient, get_metaculus_client
from forecast_index.common.logging import logger


class MetaculusGrabber:
    def __init__(self, client: Optional[HttpClient] = None):
        self.client = client or get_metaculus_client()

    def fetch_question(self, post_id: int) -> Dict[str, Any]:
        """Fetch a post with its question, scaling and aggregation history."""
        logger.info(f"Fetching Metaculus post {post_id}...")
        return self.client.get_json(f"/api/posts/{post_id}/")

# --- LESSONS LEARNED ---
# 1. Endpoint: /api/posts/{id}/ embeds the question with aggregations.recency_weighted
#    already populated; no separate prediction-history call is needed.
# 2. Auth: anonymous reads work but are rate limited hard. Set METACULUS_TOKEN.
