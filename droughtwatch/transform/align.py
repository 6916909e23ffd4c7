# -*- coding: utf-8 -*-
"""
Resample raw provider samples onto the canonical period grid.

This module defines ``SeriesAligner``, which takes whatever the data provider
returned (irregular timestamps, unordered samples, some kinds missing
altogether) and produces one ``IndicatorSeries`` per indicator kind, all
sharing the period labels of the analysis window.  The steps are:

1.  Drop samples whose value is missing and sort the rest by time (stable, so
    duplicates keep provider order).
2.  Bucket samples into periods and keep the last sample of each period.
3.  Fill an empty period with the previous sample's value only if that
    sample is less than one period older than the empty period's start.
    Staleness is measured from that start, not from the gap between the
    sample and the next one.  A stale sample leaves the period missing.
    Samples before the window may seed this carry-forward.
4.  Check coverage: any required kind below ``min_fraction`` present periods,
    or no kind reaching it at all, raises ``IncompleteData``.

Missing periods are kept as ``None``; nothing is ever dropped, so the
cross-series alignment invariant holds by construction and is re-checked by
``check_aligned`` before the series leave this module.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from droughtwatch.errors import IncompleteData
from droughtwatch.fetch.base import RawSamples, Sample
from droughtwatch.models import (
    ALL_KINDS,
    AnalysisWindow,
    IndicatorKind,
    IndicatorSeries,
    from_array,
)

logger = logging.getLogger(__name__)


def check_aligned(series: Sequence) -> Tuple[str, ...]:
    """Return the shared period labels or raise ``ValueError`` if they differ."""
    if not series:
        raise ValueError("no series to align")
    labels = series[0].period_labels
    for s in series[1:]:
        if s.period_labels != labels:
            raise ValueError(
                f"{s.kind.value} period labels differ from {series[0].kind.value}; series are not aligned"
            )
    return labels


def _to_series(samples: Sequence[Sample]) -> pd.Series:
    if not samples:
        return pd.Series(dtype=float, index=pd.DatetimeIndex([]))
    ts = pd.to_datetime([t for t, _ in samples])
    if ts.tz is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    vals = pd.to_numeric(pd.Series([v for _, v in samples], dtype=object), errors="coerce")
    s = pd.Series(vals.to_numpy(dtype=float), index=ts)
    s = s[np.isfinite(s.to_numpy())]
    return s.sort_index(kind="mergesort")


def resample_to_grid(samples: Sequence[Sample], window: AnalysisWindow) -> np.ndarray:
    """Bucket raw samples onto the window's periods (``NaN`` = missing)."""
    periods = window.periods()
    s = _to_series(samples)
    if s.empty:
        return np.full(len(periods), np.nan)

    # 1) last sample inside each period
    bucketed = s.groupby(s.index.to_period(periods.freq)).last()
    aligned = bucketed.reindex(periods).to_numpy(dtype=float, copy=True)

    # 2) carry forward while the last sample is less than one period stale
    times = s.index
    span = window.period_span
    for i, p in enumerate(periods):
        if not np.isnan(aligned[i]):
            continue
        k = times.searchsorted(p.start_time, side="left")
        if k == 0:
            continue
        prev_ts, prev_val = times[k - 1], s.iloc[k - 1]
        if prev_ts + span > p.start_time:
            aligned[i] = prev_val
    return aligned


class SeriesAligner:
    def __init__(self, min_fraction: float = 0.5, required_kinds: Iterable[IndicatorKind] = ()) -> None:
        if not 0.0 <= min_fraction <= 1.0:
            raise ValueError(f"min_fraction must be within [0, 1], got {min_fraction}")
        self.min_fraction = min_fraction
        self.required_kinds = tuple(IndicatorKind.parse(k) for k in required_kinds)

    def align(
        self,
        raw: RawSamples,
        window: AnalysisWindow,
        kinds: Optional[Iterable[IndicatorKind]] = None,
    ) -> Tuple[IndicatorSeries, ...]:
        wanted = set(kinds) if kinds is not None else set(ALL_KINDS)
        wanted |= set(self.required_kinds)
        ordered = [k for k in ALL_KINDS if k in wanted]
        labels = window.period_labels

        out = []
        coverage: Dict[str, float] = {}
        for kind in ordered:
            values = resample_to_grid(raw.get(kind, ()), window)
            series = IndicatorSeries(kind=kind, period_labels=labels, values=from_array(values))
            coverage[kind.value] = round(series.present_fraction, 4)
            out.append(series)

        short = [k for k in self.required_kinds if coverage[k.value] < self.min_fraction]
        if short:
            raise IncompleteData(
                f"required indicators below {self.min_fraction:.0%} coverage: {[k.value for k in short]}",
                context={"coverage": coverage, "min_fraction": self.min_fraction},
            )
        if not any(c >= self.min_fraction and c > 0 for c in coverage.values()):
            raise IncompleteData(
                f"no indicator reaches {self.min_fraction:.0%} coverage",
                context={"coverage": coverage, "min_fraction": self.min_fraction},
            )
        sparse = [k for k, c in coverage.items() if 0 < c < self.min_fraction]
        if sparse:
            logger.warning("Sparse indicators kept with missing periods: %s", sparse)
        absent = [k for k, c in coverage.items() if c == 0]
        if absent:
            logger.info("Indicators absent for the whole window: %s", absent)

        check_aligned(out)
        return tuple(out)


__all__ = ["SeriesAligner", "check_aligned", "resample_to_grid"]
