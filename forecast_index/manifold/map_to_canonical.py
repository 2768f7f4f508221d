from typing import Any, Dict, Iterable, List, Optional
from pydantic import ValidationError
from forecast_index.common.errors import MalformedInputError
from forecast_index.common.schema import (
    ChartBar, GroupedAnswer, ManifoldBet, ManifoldMarketInfo, Source, TimePoint, from_unix_millis,
)

LABEL_SEPARATOR = "-"


def parse_grouped_market(payload: Dict[str, Any]) -> List[GroupedAnswer]:
    answers = payload.get("answers") if isinstance(payload, dict) else None
    if not isinstance(answers, list):
        raise MalformedInputError(Source.MANIFOLD.value, "missing 'answers'")
    try:
        return [GroupedAnswer(**a) for a in answers]
    except (ValidationError, TypeError) as e:
        raise MalformedInputError(Source.MANIFOLD.value, str(e)) from e


def grouped_answers_to_bars(answers: Iterable[GroupedAnswer]) -> List[ChartBar]:
    """
    Turn a grouped (multiple-choice) market into bars, one per answer.

    Answers like "2030-2035" are labelled by their first year. Labels without the
    separator are used whole. Source order is kept.
    """
    return [
        ChartBar(label=answer.text.split(LABEL_SEPARATOR)[0], value=answer.prob * 100)
        for answer in answers
    ]


def bets_to_series(bets: Iterable[ManifoldBet]) -> List[TimePoint]:
    """Map each bet to the market probability (in percent) right after it was placed."""
    # /v0/bets returns newest first
    ordered = sorted(bets, key=lambda b: b.created_time)
    return [
        TimePoint(date=from_unix_millis(bet.created_time), value=bet.prob_after * 100)
        for bet in ordered
    ]


def _first_paragraph_text(description: Any) -> Optional[str]:
    # Rich-text descriptions are TipTap documents: {type: doc, content: [{type: paragraph, content: [...]}]}
    if not isinstance(description, dict):
        return description if isinstance(description, str) and description else None
    content = description.get("content") or []
    if not content:
        return None
    first = content[0].get("content") or []
    if not first:
        return None
    return first[0].get("text") or None


def parse_manifold_market(market: Dict[str, Any], bets: List[Dict[str, Any]]) -> ManifoldMarketInfo:
    if not isinstance(market, dict) or "question" not in market:
        raise MalformedInputError(Source.MANIFOLD.value, "missing 'question'")
    if not isinstance(bets, list):
        raise MalformedInputError(Source.MANIFOLD.value, "bet history is not a list")

    try:
        parsed_bets = [ManifoldBet(**b) for b in bets]
    except (ValidationError, TypeError) as e:
        raise MalformedInputError(Source.MANIFOLD.value, str(e)) from e

    last_updated = market.get("lastUpdatedTime")
    return ManifoldMarketInfo(
        title=market["question"],
        description=_first_paragraph_text(market.get("description")),
        probability=market.get("probability"),
        last_updated_time=from_unix_millis(last_updated) if last_updated else None,
        history=bets_to_series(parsed_bets),
    )
