"""
Analysis package for the drought indicator pipeline.

This package turns aligned indicator series into drought signals: every raw
indicator is mapped onto a [0, 1] severity score with a per-kind
piecewise-linear scale (``severity``), the scores are combined into a composite
drought index with per-period weight renormalisation (``composite``), and
sustained runs of high composite severity are reported as hotspots
(``hotspots``).  Everything here is pure computation on numpy arrays; no stage
performs I/O.

Usage example::

    from droughtwatch.analysis import CompositeIndexEngine, HotspotDetector, IndicatorNormalizer

    normalized = IndicatorNormalizer().normalize_all(series)
    composite = CompositeIndexEngine().composite(normalized)
    hotspots = HotspotDetector(min_duration=2, severity_threshold=0.6).detect(composite, normalized)

The default severity scales and weights are documented in ``severity`` and
``composite`` and can be tuned through ``config/config.yml``.
"""

from .composite import CompositeIndexEngine  # noqa: F401
from .hotspots import HotspotDetector, RegionSeries  # noqa: F401
from .severity import IndicatorNormalizer  # noqa: F401
