# -*- coding: utf-8 -*-
"""
Composite drought index.

For every period the configured weights of the indicators that actually have a
score are renormalised to 1.0 and the weighted sum of their severities is the
composite value.  A period where no weighted indicator is present has no
composite value (``None``), never 0.0, since 0.0 is a legitimate "no drought"
score.

Caveat: renormalising per period keeps every value on [0, 1], but two periods
backed by very different indicator sets are not strictly comparable.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence

import numpy as np

from droughtwatch.models import (
    ALL_KINDS,
    CompositeScore,
    IndicatorKind,
    NormalizedIndicator,
    from_array,
    to_array,
)
from droughtwatch.transform.align import check_aligned

logger = logging.getLogger(__name__)

WEIGHT_TOL = 1e-6

DEFAULT_WEIGHTS: Mapping[IndicatorKind, float] = MappingProxyType(
    {
        IndicatorKind.SNDVI: 0.20,
        IndicatorKind.SPI: 0.25,
        IndicatorKind.VHI: 0.25,
        IndicatorKind.RAINFALL: 0.10,
        IndicatorKind.TEMPERATURE: 0.10,
        IndicatorKind.HUMIDITY: 0.05,
        IndicatorKind.WIND_SPEED: 0.05,
        IndicatorKind.WIND_DIRECTION: 0.00,
    }
)


def validate_weights(weights: Mapping) -> Dict[IndicatorKind, float]:
    parsed: Dict[IndicatorKind, float] = {}
    for k, w in weights.items():
        kind = IndicatorKind.parse(k)
        w = float(w)
        if not np.isfinite(w) or w < 0:
            raise ValueError(f"weight for {kind.value} must be a non-negative number, got {w}")
        parsed[kind] = w
    total = sum(parsed.values())
    if abs(total - 1.0) > WEIGHT_TOL:
        raise ValueError(f"indicator weights must sum to 1.0, got {total:.6f}")
    return parsed


class CompositeIndexEngine:
    def __init__(self, weights: Optional[Mapping] = None) -> None:
        self.weights = validate_weights(weights if weights is not None else DEFAULT_WEIGHTS)

    def composite(self, normalized: Sequence[NormalizedIndicator]) -> CompositeScore:
        labels = check_aligned(list(normalized))
        by_kind = {n.kind: n for n in normalized}
        if len(by_kind) != len(normalized):
            raise ValueError("duplicate indicator kinds in composite input")

        # canonical kind order fixes the summation order
        kinds = [k for k in ALL_KINDS if k in by_kind and self.weights.get(k, 0.0) > 0]
        n_periods = len(labels)
        if not kinds:
            logger.warning("No weighted indicator supplied; composite is missing everywhere")
            return CompositeScore(
                period_labels=labels,
                values=(None,) * n_periods,
                contributing_weights={k: (0.0,) * n_periods for k in by_kind},
            )

        scores = np.vstack([to_array(by_kind[k].scores) for k in kinds])  # kinds × periods
        present = np.isfinite(scores)
        w = np.array([self.weights[k] for k in kinds])[:, None] * present
        total = w.sum(axis=0)

        applied = np.zeros_like(w)
        has_any = total > 0
        applied[:, has_any] = w[:, has_any] / total[has_any]

        values = np.full(n_periods, np.nan)
        for j in np.flatnonzero(has_any):
            acc = 0.0
            for i in range(len(kinds)):
                if present[i, j]:
                    acc += applied[i, j] * scores[i, j]
            values[j] = min(max(acc, 0.0), 1.0)

        weights_out = {k: (0.0,) * n_periods for k in ALL_KINDS if k in by_kind}
        for i, k in enumerate(kinds):
            weights_out[k] = tuple(float(x) for x in applied[i])

        missing = int((~has_any).sum())
        if missing:
            logger.info("Composite missing for %d of %d periods (no indicator present)", missing, n_periods)
        return CompositeScore(period_labels=labels, values=from_array(values), contributing_weights=weights_out)


__all__ = ["DEFAULT_WEIGHTS", "CompositeIndexEngine", "validate_weights"]
