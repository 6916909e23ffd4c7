"""
DroughtWatch: drought indicator pipeline.

Resolve a location, fetch indicator series, align them on a period grid,
score drought severity per indicator, combine the scores into a composite
index and flag sustained hotspots.  ``PipelineOrchestrator.analyze`` is the
single entry point for applications.
"""

from droughtwatch.errors import (  # noqa: F401
    Cancelled,
    DroughtWatchError,
    IncompleteData,
    InvalidCoordinate,
    InvalidGeometry,
    LookupFailed,
    ProviderTimeout,
    ProviderUnavailable,
)
from droughtwatch.models import (  # noqa: F401
    AnalysisResult,
    AnalysisWindow,
    CompositeScore,
    Hotspot,
    IndicatorKind,
    IndicatorSeries,
    Location,
    NormalizedIndicator,
    SeverityClass,
)
from droughtwatch.pipeline import PipelineOrchestrator  # noqa: F401

__version__ = "0.3.0"
