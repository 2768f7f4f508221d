"""
Metaculus history parsing and daily normalization.
"""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import DAY_S, JAN_1_2024, day
from forecast_index.common.errors import DegenerateScalingError, MalformedInputError
from forecast_index.common.schema import DailyAggregation, RawHistorySample, ScalingParameters
from forecast_index.metaculus.map_to_canonical import normalize_metaculus_history, parse_metaculus_question

UNIT = ScalingParameters(range_min=0, range_max=1, zero_point=None)


def sample(start_time, center, lower=None, upper=None):
    return RawHistorySample(
        start_time=start_time,
        centers=[center],
        interval_lower_bounds=[lower] if lower is not None else None,
        interval_upper_bounds=[upper] if upper is not None else None,
    )


def test_same_day_samples_are_averaged():
    history = [sample(JAN_1_2024, 0.4), sample(JAN_1_2024 + 3600 * 12, 0.6)]
    series = normalize_metaculus_history(history, UNIT)

    assert len(series) == 1
    assert series[0].date == day(0)
    assert series[0].value == pytest.approx(0.5)


def test_same_day_samples_last_wins():
    history = [sample(JAN_1_2024, 0.4), sample(JAN_1_2024 + 3600 * 12, 0.6)]
    series = normalize_metaculus_history(history, UNIT, aggregation=DailyAggregation.LAST)

    assert len(series) == 1
    assert series[0].value == pytest.approx(0.6)


def test_percentage_convention():
    history = [sample(JAN_1_2024, 0.4), sample(JAN_1_2024 + 60, 0.6)]
    series = normalize_metaculus_history(history, ScalingParameters.percentage())
    assert series[0].value == pytest.approx(50.0)


def test_missing_days_are_interpolated():
    history = [sample(JAN_1_2024, 0.2), sample(JAN_1_2024 + 3 * DAY_S + 600, 0.5)]
    series = normalize_metaculus_history(history, UNIT)

    assert [p.date for p in series] == [day(0), day(1), day(2), day(3)]
    assert [p.value for p in series] == pytest.approx([0.2, 0.3, 0.4, 0.5])


def test_bounds_are_averaged_and_scaled(metaculus_payload):
    scaling, history = parse_metaculus_question(metaculus_payload)
    series = normalize_metaculus_history(history, ScalingParameters(range_min=0, range_max=100))

    first, middle, last = series
    assert first.value == pytest.approx(50.0)
    assert first.range == pytest.approx((40.0, 60.0))
    # day 1 has no samples: interpolated between day 0 and day 2
    assert middle.date == day(1)
    assert middle.value == pytest.approx(65.0)
    assert middle.range == pytest.approx((55.0, 75.0))
    assert last.range == pytest.approx((70.0, 90.0))


def test_day_without_band_on_every_sample_has_no_band():
    history = [sample(JAN_1_2024, 0.4, 0.3, 0.5), sample(JAN_1_2024 + 60, 0.6)]
    series = normalize_metaculus_history(history, UNIT)
    assert series[0].range is None


def test_last_wins_keeps_band_from_same_sample():
    history = [sample(JAN_1_2024, 0.4, 0.3, 0.5), sample(JAN_1_2024 + 60, 0.6)]
    series = normalize_metaculus_history(history, UNIT, aggregation=DailyAggregation.LAST)

    assert series[0].value == pytest.approx(0.6)
    assert series[0].range is None


def test_uses_last_entry_of_multi_value_centers():
    history = [RawHistorySample(start_time=JAN_1_2024, centers=[0.1, 0.2, 0.9])]
    series = normalize_metaculus_history(history, UNIT)
    assert series[0].value == pytest.approx(0.9)


def test_log_scaled_date_question():
    params = ScalingParameters(range_min=1, range_max=1000, zero_point=0)
    series = normalize_metaculus_history([sample(JAN_1_2024, 0.0), sample(JAN_1_2024 + DAY_S, 1.0)], params)
    assert [p.value for p in series] == pytest.approx([1.0, 1000.0])


def test_unsorted_history_is_ordered():
    history = [sample(JAN_1_2024 + DAY_S, 0.6), sample(JAN_1_2024, 0.4)]
    series = normalize_metaculus_history(history, UNIT)
    assert [p.value for p in series] == pytest.approx([0.4, 0.6])


def test_empty_history_returns_empty_series():
    assert normalize_metaculus_history([], UNIT) == []


def test_degenerate_scaling_propagates():
    params = ScalingParameters(range_min=5, range_max=5, zero_point=0)
    with pytest.raises(DegenerateScalingError):
        normalize_metaculus_history([sample(JAN_1_2024, 0.5)], params)


def test_parse_reads_scaling_and_history(metaculus_payload):
    scaling, history = parse_metaculus_question(metaculus_payload)
    assert scaling == UNIT
    assert len(history) == 3
    assert history[0].centers == [0.4]


def test_parse_accepts_empty_history(metaculus_payload):
    metaculus_payload["question"]["aggregations"]["recency_weighted"]["history"] = []
    _, history = parse_metaculus_question(metaculus_payload)
    assert history == []


def test_parse_missing_scaling_gives_unscaled(metaculus_payload):
    del metaculus_payload["question"]["scaling"]
    scaling, _ = parse_metaculus_question(metaculus_payload)
    assert scaling == ScalingParameters()


@pytest.mark.parametrize("mutate", [
    lambda p: p.pop("question"),
    lambda p: p["question"].pop("aggregations"),
    lambda p: p["question"]["aggregations"].pop("recency_weighted"),
    lambda p: p["question"]["aggregations"]["recency_weighted"].pop("history"),
    lambda p: p["question"]["aggregations"]["recency_weighted"].update(history=None),
])
def test_parse_missing_history_raises(metaculus_payload, mutate):
    mutate(metaculus_payload)
    with pytest.raises(MalformedInputError):
        parse_metaculus_question(metaculus_payload)


def test_parse_sample_without_centers_raises(metaculus_payload):
    metaculus_payload["question"]["aggregations"]["recency_weighted"]["history"][0]["centers"] = []
    with pytest.raises(MalformedInputError):
        parse_metaculus_question(metaculus_payload)
