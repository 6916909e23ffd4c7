# -*- coding: utf-8 -*-
"""
Value types shared by every pipeline stage.

Everything here is a frozen dataclass holding tuples, so an ``AnalysisResult``
can be handed to consumers without copying.  Missing values are ``None`` in the
public tuples; the numeric stages work on numpy arrays with ``NaN`` and convert
at their boundaries via ``to_array`` / ``from_array``.
"""

from __future__ import annotations

import enum
import hashlib
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from droughtwatch.errors import InvalidCoordinate

LatLng = Tuple[float, float]


class IndicatorKind(str, enum.Enum):
    # declaration order is the canonical ordering used for summation
    SNDVI = "SNDVI"
    SPI = "SPI"
    VHI = "VHI"
    RAINFALL = "RAINFALL"
    TEMPERATURE = "TEMPERATURE"
    HUMIDITY = "HUMIDITY"
    WIND_SPEED = "WIND_SPEED"
    WIND_DIRECTION = "WIND_DIRECTION"

    @classmethod
    def parse(cls, value: "str | IndicatorKind") -> "IndicatorKind":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"unknown indicator kind: {value!r}") from None


ALL_KINDS: Tuple[IndicatorKind, ...] = tuple(IndicatorKind)


class SeverityClass(str, enum.Enum):
    NONE = "NONE"
    MILD = "MILD"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"
    EXTREME = "EXTREME"


# upper bounds (exclusive); anything >= 0.8 is EXTREME
SEVERITY_BOUNDS: Tuple[Tuple[float, SeverityClass], ...] = (
    (0.2, SeverityClass.NONE),
    (0.4, SeverityClass.MILD),
    (0.6, SeverityClass.MODERATE),
    (0.8, SeverityClass.SEVERE),
)


def classify_score(score: Optional[float]) -> Optional[SeverityClass]:
    if score is None:
        return None
    for bound, cls in SEVERITY_BOUNDS:
        if score < bound:
            return cls
    return SeverityClass.EXTREME


def to_array(values: Sequence[Optional[float]]) -> np.ndarray:
    """``None`` → ``NaN``"""
    return np.array([np.nan if v is None else float(v) for v in values], dtype=float)


def from_array(arr: np.ndarray) -> Tuple[Optional[float], ...]:
    """``NaN`` → ``None``"""
    return tuple(None if not np.isfinite(v) else float(v) for v in arr)


# ---------- location ----------
@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    name: Optional[str] = None
    polygon: Optional[Tuple[LatLng, ...]] = None

    def __post_init__(self) -> None:
        if not (is_finite_number(self.lat) and -90.0 <= float(self.lat) <= 90.0):
            raise InvalidCoordinate(f"latitude out of range: {self.lat!r}", context={"lat": self.lat})
        if not (is_finite_number(self.lng) and -180.0 <= float(self.lng) <= 180.0):
            raise InvalidCoordinate(f"longitude out of range: {self.lng!r}", context={"lng": self.lng})

    @property
    def point(self) -> LatLng:
        return (self.lat, self.lng)

    @property
    def key(self) -> str:
        """Stable identity of the place; the display name does not take part."""
        parts = [f"{self.lat:.6f},{self.lng:.6f}"]
        if self.polygon:
            parts.extend(f"{a:.6f},{b:.6f}" for a, b in self.polygon)
        return hashlib.sha256(";".join(parts).encode("utf-8")).hexdigest()

    def label(self) -> str:
        return self.name or f"{self.lat:.4f}, {self.lng:.4f}"


# ---------- time window ----------
_PERIOD_FREQ = {"M": "M", "W": "W", "D": "D"}
_LABEL_FMT = {"M": "%Y-%m", "W": "%Y-%m-%d", "D": "%Y-%m-%d"}


@dataclass(frozen=True)
class AnalysisWindow:
    """Inclusive date range plus the bucket size of the canonical period grid."""

    start: date
    end: date
    freq: str = "M"

    def __post_init__(self) -> None:
        freq = str(self.freq).upper()
        if freq not in _PERIOD_FREQ:
            raise ValueError(f"freq must be one of {sorted(_PERIOD_FREQ)}, got {self.freq!r}")
        object.__setattr__(self, "freq", freq)
        object.__setattr__(self, "start", pd.Timestamp(self.start).date())
        object.__setattr__(self, "end", pd.Timestamp(self.end).date())
        if self.end < self.start:
            raise ValueError("window end precedes start")

    @classmethod
    def for_year(cls, year: int, freq: str = "M") -> "AnalysisWindow":
        return cls(date(year, 1, 1), date(year, 12, 31), freq)

    def periods(self) -> pd.PeriodIndex:
        return pd.period_range(
            pd.Timestamp(self.start), pd.Timestamp(self.end), freq=_PERIOD_FREQ[self.freq]
        )

    @property
    def period_labels(self) -> Tuple[str, ...]:
        fmt = _LABEL_FMT[self.freq]
        return tuple(p.start_time.strftime(fmt) for p in self.periods())

    @property
    def period_span(self) -> pd.DateOffset:
        if self.freq == "M":
            return pd.DateOffset(months=1)
        if self.freq == "W":
            return pd.DateOffset(weeks=1)
        return pd.DateOffset(days=1)


# ---------- series ----------
@dataclass(frozen=True)
class IndicatorSeries:
    kind: IndicatorKind
    period_labels: Tuple[str, ...]
    values: Tuple[Optional[float], ...]

    def __post_init__(self) -> None:
        if len(self.period_labels) < 1:
            raise ValueError("series must cover at least one period")
        if len(self.values) != len(self.period_labels):
            raise ValueError(
                f"{self.kind.value}: {len(self.values)} values for {len(self.period_labels)} periods"
            )

    @property
    def present_fraction(self) -> float:
        return sum(v is not None for v in self.values) / len(self.values)

    def to_series(self) -> pd.Series:
        return pd.Series(to_array(self.values), index=list(self.period_labels), name=self.kind.value)


@dataclass(frozen=True)
class NormalizedIndicator:
    kind: IndicatorKind
    period_labels: Tuple[str, ...]
    scores: Tuple[Optional[float], ...]
    classes: Tuple[Optional[SeverityClass], ...]

    def to_series(self) -> pd.Series:
        return pd.Series(to_array(self.scores), index=list(self.period_labels), name=self.kind.value)


@dataclass(frozen=True)
class CompositeScore:
    period_labels: Tuple[str, ...]
    values: Tuple[Optional[float], ...]
    contributing_weights: Mapping[IndicatorKind, Tuple[float, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not isinstance(self.contributing_weights, MappingProxyType):
            object.__setattr__(
                self, "contributing_weights", MappingProxyType(dict(self.contributing_weights))
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompositeScore):
            return NotImplemented
        return (
            self.period_labels == other.period_labels
            and self.values == other.values
            and dict(self.contributing_weights) == dict(other.contributing_weights)
        )

    __hash__ = None  # type: ignore[assignment]

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({"composite": to_array(self.values)}, index=list(self.period_labels))
        for kind, weights in self.contributing_weights.items():
            df[f"w_{kind.value}"] = weights
        return df


@dataclass(frozen=True)
class Hotspot:
    start_period: str
    end_period: str
    start_index: int
    end_index: int
    peak_value: float
    trigger_kinds: frozenset = frozenset()
    region: Optional[str] = None

    @property
    def length(self) -> int:
        return self.end_index - self.start_index + 1


@dataclass(frozen=True)
class AnalysisResult:
    location: Location
    window: AnalysisWindow
    normalized_indicators: Tuple[NormalizedIndicator, ...]
    composite: CompositeScore
    hotspots: Tuple[Hotspot, ...]
    generated_at: datetime

    def indicator(self, kind: IndicatorKind) -> Optional[NormalizedIndicator]:
        for ind in self.normalized_indicators:
            if ind.kind == kind:
                return ind
        return None

    def to_frame(self) -> pd.DataFrame:
        """Period-indexed table of every severity score plus the composite."""
        df = pd.concat([n.to_series() for n in self.normalized_indicators], axis=1)
        df["composite"] = to_array(self.composite.values)
        df.index.name = "period"
        return df


def is_finite_number(x: object) -> bool:
    try:
        return math.isfinite(float(x))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
