from datetime import timedelta
from typing import List, Optional, Sequence, Tuple
from forecast_index.common.errors import UnorderedSeriesError
from forecast_index.common.schema import TimePoint

DAY_MS = 24 * 60 * 60 * 1000


def _lerp(a: float, b: float, fraction: float) -> float:
    return a + (b - a) * fraction


def _lerp_band(a: TimePoint, b: TimePoint, fraction: float) -> Optional[Tuple[float, float]]:
    # A band on only one side gives nothing to interpolate towards; leave it off
    if a.range is None or b.range is None:
        return None
    return (
        _lerp(a.range[0], b.range[0], fraction),
        _lerp(a.range[1], b.range[1], fraction),
    )


def fill_gaps(points: Sequence[TimePoint], resolution_ms: int = DAY_MS) -> List[TimePoint]:
    """
    Insert linearly interpolated points wherever two neighbours are more than
    one resolution step apart.

    Synthetic points sit at a.date + i * resolution, so a daily series stays on
    its original time of day. Existing points are passed through untouched.

    Args:
        points: series ordered by date (non-decreasing)
        resolution_ms: target spacing in milliseconds

    Returns:
        New list with the gaps filled
    """
    if resolution_ms <= 0:
        raise ValueError(f"resolution_ms must be positive, got {resolution_ms}")
    if len(points) < 2:
        return list(points)

    step = timedelta(milliseconds=resolution_ms)
    filled: List[TimePoint] = [points[0]]

    for a, b in zip(points, points[1:]):
        gap = b.date - a.date
        if gap < timedelta(0):
            raise UnorderedSeriesError(f"dates out of order: {a.date.isoformat()} > {b.date.isoformat()}")

        if gap > step:
            # timedelta // timedelta is exact integer arithmetic on microseconds
            missing = gap // step - 1
            for i in range(1, missing + 1):
                offset = step * i
                fraction = offset / gap
                filled.append(TimePoint(
                    date=a.date + offset,
                    value=_lerp(a.value, b.value, fraction),
                    range=_lerp_band(a, b, fraction),
                ))

        filled.append(b)

    return filled
