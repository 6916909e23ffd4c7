# -*- coding: utf-8 -*-
"""
Sustained high-severity runs ("hotspots") in a composite series.

- a run is a maximal stretch of consecutive periods with composite >= threshold
  (missing periods break a run)
- runs shorter than ``min_duration`` are dropped as single-period noise
- each hotspot records its peak composite value and the indicator kinds whose
  own severity crossed the same threshold somewhere inside the run
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from droughtwatch.models import CompositeScore, Hotspot, NormalizedIndicator, to_array

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionSeries:
    """Per-sub-region inputs for ``HotspotDetector.detect_regions``."""

    region_id: str
    composite: CompositeScore
    normalized: Tuple[NormalizedIndicator, ...]


def find_runs(mask: np.ndarray, min_run: int) -> List[Tuple[int, int]]:
    """Index pairs ``(start, end)`` (inclusive) of True-runs of length >= min_run."""
    runs: List[Tuple[int, int]] = []
    start = None
    for i, v in enumerate(mask):
        if v and start is None:
            start = i
        elif not v and start is not None:
            if i - start >= min_run:
                runs.append((start, i - 1))
            start = None
    # tail
    if start is not None and len(mask) - start >= min_run:
        runs.append((start, len(mask) - 1))
    return runs


class HotspotDetector:
    def __init__(self, min_duration: int = 2, severity_threshold: float = 0.6) -> None:
        if int(min_duration) < 1:
            raise ValueError(f"min_duration must be >= 1, got {min_duration}")
        if not 0.0 <= float(severity_threshold) <= 1.0:
            raise ValueError(f"severity_threshold must be within [0, 1], got {severity_threshold}")
        self.min_duration = int(min_duration)
        self.severity_threshold = float(severity_threshold)

    def _exceeds(self, values: Sequence) -> np.ndarray:
        arr = to_array(values)
        # NaN compares False, so missing never exceeds
        return np.greater_equal(arr, self.severity_threshold, where=np.isfinite(arr), out=np.zeros(arr.shape, bool))

    def detect(
        self,
        composite: CompositeScore,
        normalized: Sequence[NormalizedIndicator],
        region: str | None = None,
    ) -> Tuple[Hotspot, ...]:
        labels = composite.period_labels
        for n in normalized:
            if n.period_labels != labels:
                raise ValueError(f"{n.kind.value} is not aligned with the composite series")

        values = to_array(composite.values)
        runs = find_runs(self._exceeds(composite.values), self.min_duration)
        per_kind = [(n.kind, self._exceeds(n.scores)) for n in normalized]

        hotspots = []
        for s, e in runs:
            triggers = frozenset(kind for kind, hit in per_kind if hit[s : e + 1].any())
            hotspots.append(
                Hotspot(
                    start_period=labels[s],
                    end_period=labels[e],
                    start_index=s,
                    end_index=e,
                    peak_value=float(np.nanmax(values[s : e + 1])),
                    trigger_kinds=triggers,
                    region=region,
                )
            )
        if hotspots:
            logger.info(
                "%d hotspot(s)%s: %s",
                len(hotspots),
                f" in region {region}" if region else "",
                ", ".join(f"{h.start_period}→{h.end_period} peak={h.peak_value:.3f}" for h in hotspots),
            )
        return tuple(hotspots)

    def detect_regions(self, regions: Iterable[RegionSeries]) -> Tuple[Hotspot, ...]:
        out: List[Hotspot] = []
        for r in regions:
            out.extend(self.detect(r.composite, r.normalized, region=r.region_id))
        return tuple(out)


__all__ = ["HotspotDetector", "RegionSeries", "find_runs"]
