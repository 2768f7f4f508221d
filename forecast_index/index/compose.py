from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import numpy as np
from forecast_index.common.logging import logger
from forecast_index.common.schema import (
    ComposedIndex, DateRange, TimePoint, from_unix_millis, to_unix_millis,
)
from forecast_index.transforms.interpolate import DAY_MS


def percentage_to_date(fraction: float, date_range: DateRange) -> float:
    """Project a fraction of a question's axis (0..1) onto unix millis."""
    return date_range.start + fraction * date_range.span


def date_to_percentage(millis: float, date_range: DateRange) -> float:
    """Inverse of percentage_to_date; returns a fraction, not a percent."""
    return (millis - date_range.start) / date_range.span


@dataclass(frozen=True)
class ProjectedSeries:
    """A percentage series re-expressed as forecast dates (unix millis)."""
    times: np.ndarray
    dates: np.ndarray
    bands: Tuple[Optional[Tuple[float, float]], ...]

    def nearest(self, t: int, resolution_ms: int) -> Optional[int]:
        """Index of the sample observed closest to t, if it is within one resolution step."""
        i = int(np.searchsorted(self.times, t))
        best = None
        for j in (i - 1, i):
            if 0 <= j < len(self.times):
                distance = abs(int(self.times[j]) - t)
                if best is None or distance < best[1]:
                    best = (j, distance)
        if best is None or best[1] >= resolution_ms:
            return None
        return best[0]


def project_series(series: Sequence[TimePoint], date_range: DateRange) -> ProjectedSeries:
    times = np.array([to_unix_millis(p.date) for p in series], dtype=np.int64)
    dates = np.array([percentage_to_date(p.value / 100, date_range) for p in series], dtype=float)
    bands = tuple(
        (percentage_to_date(p.range[0] / 100, date_range), percentage_to_date(p.range[1] / 100, date_range))
        if p.range is not None else None
        for p in series
    )
    # searchsorted needs ascending observation times
    order = np.argsort(times, kind="stable")
    return ProjectedSeries(times=times[order], dates=dates[order], bands=tuple(bands[k] for k in order))


def compose_index_many(
    inputs: Sequence[Tuple[Sequence[TimePoint], DateRange]],
    resolution_ms: int = DAY_MS,
) -> ComposedIndex:
    """
    Blend several percentage series into one index.

    Each series is projected onto forecast dates through its own DateRange. For
    every day in the window where all series have observations, the projected
    dates are averaged and mapped back to a percentage of the union DateRange.
    Bands are combined as the union of all available projected bounds.

    Args:
        inputs: (series, date_range) pairs; series values are percentages
        resolution_ms: step between index points and nearest-sample tolerance

    Returns:
        ComposedIndex; empty (with blank min/max dates) if any series is empty or
        the series never overlap in time
    """
    if len(inputs) < 2:
        raise ValueError(f"compose_index_many needs at least two series, got {len(inputs)}")
    if resolution_ms <= 0:
        raise ValueError(f"resolution_ms must be positive, got {resolution_ms}")
    if any(len(series) == 0 for series, _ in inputs):
        logger.warning("Cannot compose index: at least one input series is empty")
        return ComposedIndex()

    projected = [project_series(series, date_range) for series, date_range in inputs]
    union_range = DateRange.union(*(date_range for _, date_range in inputs))

    window_start = max(int(p.times[0]) for p in projected)
    window_end = min(int(p.times[-1]) for p in projected)
    if window_start > window_end:
        logger.warning("Cannot compose index: input series do not overlap in time")
        return ComposedIndex()

    index: List[TimePoint] = []
    for t in range(window_start, window_end + 1, resolution_ms):
        hits = [p.nearest(t, resolution_ms) for p in projected]
        if any(h is None for h in hits):
            continue

        combined_date = float(np.mean([p.dates[h] for p, h in zip(projected, hits)]))

        bounds = [b for p, h in zip(projected, hits) if p.bands[h] is not None for b in p.bands[h]]
        band = None
        if bounds:
            # Stretch to cover the average when only some inputs carry a band
            low = min(min(bounds), combined_date)
            high = max(max(bounds), combined_date)
            band = (date_to_percentage(low, union_range) * 100, date_to_percentage(high, union_range) * 100)

        index.append(TimePoint(
            date=from_unix_millis(t),
            value=date_to_percentage(combined_date, union_range) * 100,
            range=band,
        ))

    return ComposedIndex(
        index=index,
        min_date=from_unix_millis(window_start).isoformat(),
        max_date=from_unix_millis(window_end).isoformat(),
    )


def compose_index(
    series_a: Sequence[TimePoint],
    range_a: DateRange,
    series_b: Sequence[TimePoint],
    range_b: DateRange,
    resolution_ms: int = DAY_MS,
) -> ComposedIndex:
    """Blend two percentage series; see compose_index_many."""
    return compose_index_many([(series_a, range_a), (series_b, range_b)], resolution_ms=resolution_ms)
