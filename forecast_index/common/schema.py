from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Relative slack for band checks; interpolated and re-projected floats drift by an ulp or two
_BAND_TOLERANCE = 1e-9


class Source(str, Enum):
    METACULUS = "metaculus"
    KALSHI = "kalshi"
    MANIFOLD = "manifold"
    POLYMARKET = "polymarket"


class DailyAggregation(str, Enum):
    """How several Metaculus samples recorded on the same UTC day collapse into one."""
    MEAN = "mean"
    LAST = "last"


def from_unix_seconds(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def from_unix_millis(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def to_unix_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string (trailing 'Z' allowed) into an aware UTC datetime."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class TimePoint(BaseModel):
    """One observation of a chartable series.

    `range` is an optional [low, high] uncertainty band around `value`.
    """
    model_config = ConfigDict(frozen=True)

    date: datetime
    value: float
    range: Optional[Tuple[float, float]] = None

    @field_validator("date")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _value_inside_band(self) -> "TimePoint":
        if self.range is None:
            return self
        low, high = self.range
        tol = _BAND_TOLERANCE * max(1.0, abs(low), abs(high), abs(self.value))
        if low > high + tol or not (low - tol <= self.value <= high + tol):
            raise ValueError(f"band [{low}, {high}] does not contain value {self.value}")
        return self


class ScalingParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    range_min: Optional[float] = None
    range_max: Optional[float] = None
    zero_point: Optional[float] = None

    @classmethod
    def percentage(cls) -> "ScalingParameters":
        """Linear 0..100 scale used by the charts and the index composer."""
        return cls(range_min=0.0, range_max=100.0, zero_point=None)


class DateRange(BaseModel):
    """Calendar window, in unix millis, that a question's 0..100% axis spans."""
    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.start >= self.end:
            raise ValueError(f"DateRange start {self.start} must precede end {self.end}")
        return self

    @property
    def span(self) -> int:
        return self.end - self.start

    @classmethod
    def from_iso(cls, start: str, end: str) -> "DateRange":
        return cls(start=to_unix_millis(parse_iso(start)), end=to_unix_millis(parse_iso(end)))

    @classmethod
    def union(cls, *ranges: "DateRange") -> "DateRange":
        if not ranges:
            raise ValueError("union() needs at least one DateRange")
        return cls(start=min(r.start for r in ranges), end=max(r.end for r in ranges))


class RawHistorySample(BaseModel):
    start_time: float
    end_time: Optional[float] = None
    centers: List[float] = Field(min_length=1)
    means: Optional[List[float]] = None
    interval_lower_bounds: Optional[List[float]] = None
    interval_upper_bounds: Optional[List[float]] = None


class BidAskSummary(BaseModel):
    open: Optional[float] = None
    low: Optional[float] = None
    high: Optional[float] = None
    close: float


class PriceSummary(BaseModel):
    open: Optional[float] = None
    low: Optional[float] = None
    high: Optional[float] = None
    close: Optional[float] = None
    mean: Optional[float] = None
    mean_centi: Optional[float] = None
    previous: Optional[float] = None


class Candlestick(BaseModel):
    end_period_ts: int
    yes_bid: Optional[BidAskSummary] = None
    yes_ask: Optional[BidAskSummary] = None
    price: PriceSummary = Field(default_factory=PriceSummary)
    volume: Optional[float] = None
    open_interest: Optional[float] = None


class KalshiSeries(BaseModel):
    ticker: Optional[str] = None
    candlesticks: List[Candlestick]
    date_range: Optional[DateRange] = None


class GroupedAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    prob: float
    prob_changes: Optional[dict] = Field(default=None, alias="probChanges")


class ManifoldBet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created_time: int = Field(alias="createdTime")
    prob_before: Optional[float] = Field(default=None, alias="probBefore")
    prob_after: float = Field(alias="probAfter")


class ManifoldMarketInfo(BaseModel):
    title: str
    description: Optional[str] = None
    probability: Optional[float] = None
    last_updated_time: Optional[datetime] = None
    history: List[TimePoint]


class PricePoint(BaseModel):
    t: float
    p: float


class ChartBar(BaseModel):
    label: str
    value: float


class ComposedIndex(BaseModel):
    index: List[TimePoint] = Field(default_factory=list)
    min_date: str = ""
    max_date: str = ""

# --- LESSONS LEARNED ---
# 1. Pydantic V2: frozen models give us value equality for free, which is what
#    the gap-filling idempotency checks compare against.
# 2. Timestamps: every source uses a different epoch unit (Metaculus/Kalshi/Polymarket
#    seconds, Manifold and DateRange millis). Convert to aware UTC datetimes at the edge.
# 3. Enums: (str, Enum) keeps log lines and JSON output readable.
