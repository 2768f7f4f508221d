import json
from typing import Any, Dict, List
from pydantic import ValidationError
from forecast_index.common.errors import MalformedInputError
from forecast_index.common.schema import PricePoint, Source, TimePoint, from_unix_seconds


def price_history_to_series(payload: Dict[str, Any]) -> List[TimePoint]:
    """Map CLOB prices-history {t, p} points 1:1 onto percentage TimePoints."""
    history = payload.get("history") if isinstance(payload, dict) else None
    if not isinstance(history, list):
        raise MalformedInputError(Source.POLYMARKET.value, "missing 'history'")
    try:
        points = [PricePoint(**p) for p in history]
    except (ValidationError, TypeError) as e:
        raise MalformedInputError(Source.POLYMARKET.value, str(e)) from e

    return [TimePoint(date=from_unix_seconds(p.t), value=p.p * 100) for p in points]


def first_clob_token_id(market: Dict[str, Any]) -> str:
    """The Gamma API encodes clobTokenIds as a JSON string; the first id is the YES outcome."""
    raw = market.get("clobTokenIds")
    if not raw:
        raise MalformedInputError(Source.POLYMARKET.value, "market has no 'clobTokenIds'")
    try:
        token_ids = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        raise MalformedInputError(Source.POLYMARKET.value, f"bad 'clobTokenIds': {e}") from e
    if not token_ids:
        raise MalformedInputError(Source.POLYMARKET.value, "'clobTokenIds' is empty")
    return str(token_ids[0])

# --- LESSONS LEARNED ---
# 1. Token ids: prices-history takes a CLOB token id (the 'market' param), not the
#    Gamma market id or condition id.
# 2. Closed markets: the default interval window returns nothing once a market has
#    closed; pass startTs/endTs from the market's own dates instead.
