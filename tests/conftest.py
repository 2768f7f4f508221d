"""
Pytest configuration and fixtures for forecast_index testing.
"""
import pytest
import sys
import json
import requests
from pathlib import Path
from datetime import datetime, timezone

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from forecast_index.common.schema import TimePoint

DAY_S = 24 * 60 * 60
DAY_MS = DAY_S * 1000
JAN_1_2024 = 1704067200  # 2024-01-01T00:00:00Z


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: longer property sweeps")


def day(n: int, hour: int = 0) -> datetime:
    """Midnight UTC n days after 2024-01-01, plus an optional hour offset."""
    return datetime.fromtimestamp(JAN_1_2024 + n * DAY_S + hour * 3600, tz=timezone.utc)


def point(n, value, band=None) -> TimePoint:
    return TimePoint(date=day(n), value=value, range=band)


def make_response(status_code: int = 200, body=None, url: str = "https://example.test/") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body if body is not None else {}).encode()
    response.url = url
    return response


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.headers = {}
        self.calls = []

    def request(self, method, url, auth=None, **kwargs):
        self.calls.append({"method": method, "url": url, "auth": auth, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClient:
    """Stands in for HttpClient in grabber tests; returns canned JSON keyed by path."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get_json(self, path, **kwargs):
        self.calls.append((path, kwargs.get("params")))
        return self.responses[path]


@pytest.fixture
def metaculus_payload():
    """A post payload shaped like /api/posts/{id}/ with two samples on day 0 and one on day 2."""
    return {
        "id": 3479,
        "question": {
            "id": 3479,
            "scaling": {"range_min": 0.0, "range_max": 1.0, "zero_point": None},
            "aggregations": {
                "recency_weighted": {
                    "history": [
                        {
                            "start_time": JAN_1_2024,
                            "end_time": JAN_1_2024 + 3600,
                            "means": None,
                            "centers": [0.4],
                            "interval_lower_bounds": [0.3],
                            "interval_upper_bounds": [0.5],
                        },
                        {
                            "start_time": JAN_1_2024 + 12 * 3600,
                            "end_time": None,
                            "means": None,
                            "centers": [0.6],
                            "interval_lower_bounds": [0.5],
                            "interval_upper_bounds": [0.7],
                        },
                        {
                            "start_time": JAN_1_2024 + 2 * DAY_S,
                            "end_time": None,
                            "means": None,
                            "centers": [0.8],
                            "interval_lower_bounds": [0.7],
                            "interval_upper_bounds": [0.9],
                        },
                    ]
                }
            },
        },
    }


@pytest.fixture
def kalshi_payload():
    """Combined {marketData, candlesticks} payload as assembled by KalshiGrabber."""
    return {
        "marketData": {
            "market": {
                "ticker": "KXAGI-30",
                "title": "AGI before 2030?",
                "open_time": "2024-01-01T00:00:00Z",
                "close_time": "2030-01-01T00:00:00Z",
                "status": "active",
            }
        },
        "candlesticks": {
            "candlesticks": [
                {
                    "end_period_ts": 3600,
                    "yes_bid": {"open": 58, "low": 57, "high": 61, "close": 60},
                    "yes_ask": {"open": 63, "low": 62, "high": 66, "close": 64},
                    "price": {"open": None, "low": None, "high": None, "close": None,
                              "mean": None, "mean_centi": None, "previous": None},
                    "volume": 0,
                    "open_interest": 10,
                },
                {
                    "end_period_ts": 7200,
                    "yes_bid": {"close": 68},
                    "yes_ask": {"close": 72},
                    "price": {"mean": 70, "close": 71},
                    "volume": 5,
                    "open_interest": 12,
                },
            ]
        },
    }
