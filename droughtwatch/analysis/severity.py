# -*- coding: utf-8 -*-
"""
Per-indicator severity scales.

Raw indicators come in different units and point in different directions
(high VHI is healthy vegetation, high temperature is stress), so each kind gets
its own piecewise-linear mapping from raw value to a [0, 1] severity score,
1 being the most severe drought signal.  Breakpoints outside the table clamp
to the end values.

Default tables (raw: severity):

- SNDVI  (std. anomaly)  -2:1.0  -1.5:0.8  -1:0.6  -0.5:0.4  0:0.2  0.5:0.0
- SPI    (std. index)    -2:1.0  -1.5:0.8  -1:0.6  -0.5:0.4  0:0.2  1:0.0
- VHI    (0-100)          0:1.0  10:0.8  20:0.6  30:0.4  40:0.2  60:0.0
- RAINFALL (mm/period)    0:1.0  10:0.8  25:0.6  50:0.4  100:0.2  150:0.0
- TEMPERATURE (°C)       15:0.0  20:0.2  25:0.4  30:0.6  35:0.8  40:1.0
- HUMIDITY (%)           20:1.0  30:0.8  40:0.6  50:0.4  60:0.2  80:0.0
- WIND_SPEED (m/s)        0:0.0   5:0.2  10:0.4  15:0.6  20:0.8  25:1.0
- WIND_DIRECTION: angular distance (deg) from the dry bearing
                          0:1.0  45:0.6  90:0.2  180:0.0

VHI thresholds follow Kogan's drought classes, SPI/SNDVI the usual
-1 / -1.5 / -2 standardized-anomaly cut-offs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from droughtwatch.models import (
    IndicatorKind,
    IndicatorSeries,
    NormalizedIndicator,
    classify_score,
    from_array,
    to_array,
)

logger = logging.getLogger(__name__)

Breakpoints = Tuple[Tuple[float, float], ...]


@dataclass(frozen=True)
class PiecewiseScale:
    breakpoints: Breakpoints
    # set only for WIND_DIRECTION: raw degrees become distance from this bearing
    bearing: Optional[float] = None

    def __post_init__(self) -> None:
        pts = tuple((float(x), float(y)) for x, y in self.breakpoints)
        if len(pts) < 2:
            raise ValueError("a severity scale needs at least two breakpoints")
        xs = [x for x, _ in pts]
        if any(b <= a for a, b in zip(xs, xs[1:])):
            raise ValueError(f"breakpoints must be strictly increasing in raw value: {xs}")
        if any(not 0.0 <= y <= 1.0 for _, y in pts):
            raise ValueError("breakpoint severities must lie in [0, 1]")
        object.__setattr__(self, "breakpoints", pts)

    def apply(self, raw: np.ndarray) -> np.ndarray:
        x = np.asarray(raw, dtype=float)
        if self.bearing is not None:
            # an infinite bearing has no direction
            x = np.where(np.isfinite(x), x, np.nan)
            d = np.abs((x - self.bearing) % 360.0)
            x = np.minimum(d, 360.0 - d)
        xp = np.array([p[0] for p in self.breakpoints])
        fp = np.array([p[1] for p in self.breakpoints])
        return np.clip(np.interp(x, xp, fp), 0.0, 1.0)


DEFAULT_BREAKPOINTS: Dict[IndicatorKind, Breakpoints] = {
    IndicatorKind.SNDVI: ((-2.0, 1.0), (-1.5, 0.8), (-1.0, 0.6), (-0.5, 0.4), (0.0, 0.2), (0.5, 0.0)),
    IndicatorKind.SPI: ((-2.0, 1.0), (-1.5, 0.8), (-1.0, 0.6), (-0.5, 0.4), (0.0, 0.2), (1.0, 0.0)),
    IndicatorKind.VHI: ((0.0, 1.0), (10.0, 0.8), (20.0, 0.6), (30.0, 0.4), (40.0, 0.2), (60.0, 0.0)),
    IndicatorKind.RAINFALL: ((0.0, 1.0), (10.0, 0.8), (25.0, 0.6), (50.0, 0.4), (100.0, 0.2), (150.0, 0.0)),
    IndicatorKind.TEMPERATURE: ((15.0, 0.0), (20.0, 0.2), (25.0, 0.4), (30.0, 0.6), (35.0, 0.8), (40.0, 1.0)),
    IndicatorKind.HUMIDITY: ((20.0, 1.0), (30.0, 0.8), (40.0, 0.6), (50.0, 0.4), (60.0, 0.2), (80.0, 0.0)),
    IndicatorKind.WIND_SPEED: ((0.0, 0.0), (5.0, 0.2), (10.0, 0.4), (15.0, 0.6), (20.0, 0.8), (25.0, 1.0)),
    IndicatorKind.WIND_DIRECTION: ((0.0, 1.0), (45.0, 0.6), (90.0, 0.2), (180.0, 0.0)),
}


def build_scales(
    dry_wind_bearing: float = 90.0,
    overrides: Optional[Mapping[IndicatorKind, Sequence[Tuple[float, float]]]] = None,
) -> Dict[IndicatorKind, PiecewiseScale]:
    """Default scale per kind, with optional breakpoint overrides from config."""
    table = dict(DEFAULT_BREAKPOINTS)
    for kind, pts in (overrides or {}).items():
        table[kind] = tuple(tuple(p) for p in pts)  # type: ignore[misc]
    return {
        kind: PiecewiseScale(
            pts, bearing=(dry_wind_bearing % 360.0) if kind is IndicatorKind.WIND_DIRECTION else None
        )
        for kind, pts in table.items()
    }


class IndicatorNormalizer:
    def __init__(self, scales: Optional[Mapping[IndicatorKind, PiecewiseScale]] = None) -> None:
        self.scales = dict(scales) if scales is not None else build_scales()
        missing = [k.value for k in IndicatorKind if k not in self.scales]
        if missing:
            raise ValueError(f"no severity scale for {missing}")

    def score(self, kind: IndicatorKind, raw: np.ndarray) -> np.ndarray:
        """Severity for raw values; ``NaN`` stays ``NaN``, ``±inf`` clamps like any out-of-table value."""
        raw = np.asarray(raw, dtype=float)
        out = np.full(raw.shape, np.nan)
        present = ~np.isnan(raw)
        if present.any():
            out[present] = self.scales[kind].apply(raw[present])
        return out

    def normalize(self, series: IndicatorSeries) -> NormalizedIndicator:
        scores = from_array(self.score(series.kind, to_array(series.values)))
        return NormalizedIndicator(
            kind=series.kind,
            period_labels=series.period_labels,
            scores=scores,
            classes=tuple(classify_score(s) for s in scores),
        )

    def normalize_all(self, series: Sequence[IndicatorSeries]) -> Tuple[NormalizedIndicator, ...]:
        return tuple(self.normalize(s) for s in series)


__all__ = ["PiecewiseScale", "DEFAULT_BREAKPOINTS", "build_scales", "IndicatorNormalizer"]
