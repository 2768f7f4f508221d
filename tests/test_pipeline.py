"""
End-to-end pipeline runs against stub grabbers.
"""
import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import DAY_MS, JAN_1_2024, day
from forecast_index import pipeline
from forecast_index.common.config import QuestionConfig
from forecast_index.common.errors import ForecastIndexError, UnknownQuestionError
from forecast_index.common.schema import DailyAggregation, DateRange


class StubMetaculus:
    def __init__(self, payload):
        self.payload = payload
        self.requested = []

    def fetch_question(self, post_id):
        self.requested.append(post_id)
        return self.payload


class StubManifold:
    def fetch_market(self, slug):
        return {"question": "AGI by 2030?", "probability": 0.3, "lastUpdatedTime": JAN_1_2024 * 1000}

    def fetch_bets(self, slug):
        return [
            {"createdTime": (JAN_1_2024 + 60) * 1000, "probAfter": 0.35},
            {"createdTime": JAN_1_2024 * 1000, "probAfter": 0.3},
        ]

    def fetch_grouped_market(self, slug):
        return {"answers": [{"text": "2030-2035", "prob": 0.6}, {"text": "2035-2040", "prob": 0.4}]}


class StubPolymarket:
    def fetch_market(self, slug):
        return {"slug": slug, "closed": False, "clobTokenIds": '["111", "222"]'}

    def fetch_market_history(self, market, token_id):
        assert token_id == "111"
        return {"history": [{"t": JAN_1_2024, "p": 0.12}, {"t": JAN_1_2024 + 60, "p": 0.13}]}


class StubKalshi:
    def __init__(self, payload):
        self.payload = payload
        self.intervals = []

    def fetch_market_history(self, market_ticker, market_id, series_ticker=None, period_interval=60):
        self.intervals.append(period_interval)
        return self.payload


def make_cfg(*keys):
    date_range = DateRange.from_iso("2024-01-01", "2124-01-01")
    questions = {
        key: QuestionConfig(key=key, title=key, metaculus_id=100 + i, date_range=date_range)
        for i, key in enumerate(keys)
    }
    return SimpleNamespace(questions=questions, index_components=list(keys), resolution_ms=DAY_MS)


def test_metaculus_series_in_native_units(metaculus_payload):
    series = pipeline.load_metaculus_series(3479, grabber=StubMetaculus(metaculus_payload))

    assert [p.date for p in series] == [day(0), day(1), day(2)]
    assert [p.value for p in series] == pytest.approx([0.5, 0.65, 0.8])


def test_metaculus_series_as_percentage(metaculus_payload):
    series = pipeline.load_metaculus_series(
        3479, as_percentage=True, aggregation=DailyAggregation.LAST, grabber=StubMetaculus(metaculus_payload)
    )
    assert [p.value for p in series] == pytest.approx([60.0, 70.0, 80.0])


def test_build_index_blends_identical_questions(metaculus_payload):
    grabber = StubMetaculus(metaculus_payload)
    result = pipeline.build_index(cfg=make_cfg("a", "b"), grabber=grabber)

    assert grabber.requested == [100, 101]
    assert [p.date for p in result.index] == [day(0), day(1), day(2)]
    assert [p.value for p in result.index] == pytest.approx([50.0, 65.0, 80.0])
    assert result.index[0].range == pytest.approx((40.0, 60.0))
    assert result.min_date == "2024-01-01T00:00:00+00:00"
    assert result.max_date == "2024-01-03T00:00:00+00:00"


def test_build_index_subset_of_questions(metaculus_payload):
    grabber = StubMetaculus(metaculus_payload)
    pipeline.build_index(["c", "a"], cfg=make_cfg("a", "b", "c"), grabber=grabber)
    assert grabber.requested == [102, 100]


def test_build_index_unknown_question():
    grabber = StubMetaculus({})
    with pytest.raises(UnknownQuestionError) as exc:
        pipeline.build_index(["a", "nope"], cfg=make_cfg("a", "b"), grabber=grabber)

    assert exc.value.keys == ["nope"]
    assert str(exc.value) == "Unknown question keys: ['nope']"
    assert isinstance(exc.value, ForecastIndexError)
    assert isinstance(exc.value, KeyError)
    assert grabber.requested == []


def test_kalshi_load_and_resample(kalshi_payload):
    grabber = StubKalshi(kalshi_payload)
    series = pipeline.load_kalshi_series("KXAGI-30", "KXAGI-30", interval_minutes=60, grabber=grabber)

    assert grabber.intervals == [60]
    points = pipeline.resample_kalshi(series, 60)
    assert [p.value for p in points] == pytest.approx([62.0, 70.0])


def test_manifold_market():
    info = pipeline.load_manifold_market("agi", grabber=StubManifold())
    assert info.title == "AGI by 2030?"
    assert [p.value for p in info.history] == pytest.approx([30.0, 35.0])


def test_manifold_grouped():
    bars = pipeline.load_manifold_grouped("agi", grabber=StubManifold())
    assert [(b.label, b.value) for b in bars] == [("2030", pytest.approx(60.0)), ("2035", pytest.approx(40.0))]


def test_polymarket_series():
    series = pipeline.load_polymarket_series("agi", grabber=StubPolymarket())
    assert [p.value for p in series] == pytest.approx([12.0, 13.0])


def test_question_summary():
    summary = pipeline.question_summary(make_cfg("a"))
    assert summary["a"]["metaculus_id"] == 100
    assert summary["a"]["date_range"]["start"] == JAN_1_2024 * 1000
