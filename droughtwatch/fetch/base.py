"""
Abstract interfaces for the collaborators the pipeline consumes.

The core never talks to satellites, weather archives or geocoding services
directly; it goes through these three seams so tests and deployments can plug
in whatever source they have.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from droughtwatch.models import AnalysisWindow, IndicatorKind, LatLng, Location

Sample = Tuple[datetime, Optional[float]]
RawSamples = Mapping[IndicatorKind, Sequence[Sample]]


class DataProvider(ABC):
    """
    Supplier of raw indicator samples at a point.

    Implementations may return only some of the requested kinds and may use
    irregular timestamps; the aligner copes with both.
    """

    @abstractmethod
    def fetch(
        self,
        point: LatLng,
        window: AnalysisWindow,
        kinds: Iterable[IndicatorKind],
    ) -> Dict[IndicatorKind, Sequence[Sample]]:
        """
        Retrieve raw samples.

        Args:
            point: ``(lat, lng)`` representative point of the location
            window: analysis window; samples shortly before ``window.start``
                are welcome (they seed carry-forward)
            kinds: indicator kinds wanted

        Returns:
            ``{kind: [(timestamp, value), ...]}``

        Raises:
            ProviderUnavailable, ProviderTimeout
        """

    @property
    def source_name(self) -> str:
        return type(self).__name__


class Geocoder(ABC):
    @abstractmethod
    def search(self, name: str) -> Sequence[Tuple[Location, float]]:
        """Candidate locations for a place name with a confidence in [0, 1]."""


class SubRegionSource(ABC):
    """Decomposes a polygon location into identifiable sub-regions."""

    @abstractmethod
    def split(self, location: Location) -> Sequence[Tuple[str, Location]]:
        """``[(region_id, region_location), ...]``; empty when not decomposable."""


__all__ = ["Sample", "RawSamples", "DataProvider", "Geocoder", "SubRegionSource"]
