from forecast_index.common.errors import DegenerateScalingError
from forecast_index.common.schema import ScalingParameters


def scale_to_native(v: float, params: ScalingParameters) -> float:
    """
    Map a probability-space value v in [0, 1] onto the question's native unit.

    Questions without a range are unscaled and return v as-is. A null zero_point
    means a linear axis; otherwise the axis is logarithmic with ratio
    n = (range_max - zero_point) / (range_min - zero_point).

    Raises:
        DegenerateScalingError: if the logarithmic map is singular or not real
            for these parameters.
    """
    range_min, range_max, zero_point = params.range_min, params.range_max, params.zero_point
    if range_min is None or range_max is None:
        return v

    if zero_point is None:
        return range_min + (range_max - range_min) * v

    if range_min == zero_point:
        raise DegenerateScalingError(f"zero_point {zero_point} equals range_min; log ratio undefined")

    n = (range_max - zero_point) / (range_min - zero_point)
    if n == 1:
        raise DegenerateScalingError(f"log ratio is 1 for {params!r}; scaling is singular")
    if n <= 0:
        # zero_point inside [range_min, range_max]: n**v has no real value
        raise DegenerateScalingError(f"log ratio {n} is not positive for {params!r}")

    return range_min + (range_max - range_min) * (n ** v - 1) / (n - 1)
