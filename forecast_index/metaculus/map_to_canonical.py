from typing import Any, Dict, List, Sequence, Tuple
import pandas as pd
from pydantic import ValidationError
from forecast_index.common.errors import MalformedInputError
from forecast_index.common.logging import logger
from forecast_index.common.schema import (
    DailyAggregation, RawHistorySample, ScalingParameters, Source, TimePoint,
)
from forecast_index.transforms.interpolate import DAY_MS, fill_gaps
from forecast_index.transforms.scaling import scale_to_native


def parse_metaculus_question(payload: Dict[str, Any]) -> Tuple[ScalingParameters, List[RawHistorySample]]:
    """Pull scaling parameters and the recency-weighted history out of a post payload."""
    question = payload.get("question") if isinstance(payload, dict) else None
    if not isinstance(question, dict):
        raise MalformedInputError(Source.METACULUS.value, "missing 'question'")

    try:
        history = question["aggregations"]["recency_weighted"]["history"]
    except (KeyError, TypeError):
        raise MalformedInputError(
            Source.METACULUS.value, "missing 'question.aggregations.recency_weighted.history'"
        ) from None
    if not isinstance(history, list):
        raise MalformedInputError(Source.METACULUS.value, "'history' is not a list")

    try:
        scaling = ScalingParameters(**(question.get("scaling") or {}))
        samples = [RawHistorySample(**point) for point in history]
    except (ValidationError, TypeError) as e:
        raise MalformedInputError(Source.METACULUS.value, str(e)) from e

    return scaling, samples


def _samples_frame(history: Sequence[RawHistorySample]) -> pd.DataFrame:
    rows = []
    for sample in history:
        lower = sample.interval_lower_bounds
        upper = sample.interval_upper_bounds
        has_band = bool(lower) and bool(upper)
        rows.append({
            "start_time": sample.start_time,
            # Multi-entry arrays are cumulative snapshots; the last entry is the current one
            "center": sample.centers[-1],
            "lower": lower[-1] if has_band else float("nan"),
            "upper": upper[-1] if has_band else float("nan"),
            "has_band": has_band,
        })

    df = pd.DataFrame(rows)
    df = df.sort_values("start_time", kind="stable").reset_index(drop=True)
    df["day"] = pd.to_datetime(df["start_time"], unit="s", utc=True).dt.floor("D")
    return df


def _aggregate_days(df: pd.DataFrame, aggregation: DailyAggregation) -> pd.DataFrame:
    if aggregation == DailyAggregation.LAST:
        return df.drop_duplicates("day", keep="last").set_index("day")[["center", "lower", "upper", "has_band"]]

    grouped = df.groupby("day", sort=True)
    daily = grouped[["center", "lower", "upper"]].mean()
    # A day only carries a band when every sample that day reported one
    daily["has_band"] = grouped["has_band"].all()
    return daily


def normalize_metaculus_history(
    history: Sequence[RawHistorySample],
    params: ScalingParameters,
    aggregation: DailyAggregation = DailyAggregation.MEAN,
) -> List[TimePoint]:
    """
    Collapse a Metaculus forecast history into one point per UTC day, in native units.

    Samples sharing a calendar day are averaged (MEAN) or reduced to the latest
    one (LAST). Center and bounds are scaled independently, then missing days
    between the first and last observed day are interpolated.

    Args:
        history: raw samples from question.aggregations.recency_weighted.history
        params: the question's scaling parameters
        aggregation: same-day reduction strategy

    Returns:
        Daily series ordered by date; empty if history is empty
    """
    if not history:
        logger.debug("Empty Metaculus history, nothing to normalize")
        return []

    daily = _aggregate_days(_samples_frame(history), aggregation)

    points = []
    for day, row in daily.iterrows():
        band = None
        if row["has_band"]:
            low = scale_to_native(float(row["lower"]), params)
            high = scale_to_native(float(row["upper"]), params)
            band = (min(low, high), max(low, high))
        points.append(TimePoint(
            date=day.to_pydatetime(),
            value=scale_to_native(float(row["center"]), params),
            range=band,
        ))

    return fill_gaps(points, DAY_MS)

# --- LESSONS LEARNED ---
# 1. History Location: history lives in question -> aggregations -> recency_weighted -> history.
# 2. Same-day samples: the API can emit several aggregation updates per day. Averaging them
#    is smoother than last-wins, but both are kept (DailyAggregation) since older revisions
#    of this dashboard charted the last sample.
# 3. Pandas groupby().last() skips NaNs column-by-column and can stitch a band from one
#    sample onto the center of another. drop_duplicates(keep="last") keeps rows intact.
