# fetch/geocode.py
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import requests

from droughtwatch.errors import InvalidCoordinate, LookupFailed
from droughtwatch.fetch.base import Geocoder
from droughtwatch.models import Location

logger = logging.getLogger(__name__)

GEOCODING_API = "https://geocoding-api.open-meteo.com/v1/search"


def name_confidence(query: str, candidate: str) -> float:
    """Exact name match 1.0, prefix match 0.7, anything else 0.4."""
    q = query.strip().casefold()
    c = (candidate or "").strip().casefold()
    if c == q:
        return 1.0
    if c.startswith(q) or q.startswith(c):
        return 0.7
    return 0.4


class OpenMeteoGeocoder(Geocoder):
    def __init__(
        self,
        language: str = "en",
        count: int = 10,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.language = language
        self.count = count
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_cfg(cls, cfg: dict) -> "OpenMeteoGeocoder":
        g = cfg.get("geocoder", {})
        return cls(
            language=g.get("language", "en"),
            count=int(g.get("count", 10)),
            timeout=float(g.get("timeout_s", 10.0)),
        )

    def search(self, name: str) -> List[Tuple[Location, float]]:
        """
        Geocode a place name using the Open-Meteo Geocoding API.
        Returns ``[(Location, confidence), ...]``; raises LookupFailed on network errors.
        """
        params = {"name": name, "language": self.language, "count": self.count, "format": "json"}
        try:
            r = self.session.get(GEOCODING_API, params=params, timeout=self.timeout)
            r.raise_for_status()
            data = r.json() or {}
        except requests.exceptions.Timeout as e:
            raise LookupFailed(f"geocode timeout for {name!r}", context={"name": name}) from e
        except requests.exceptions.RequestException as e:
            raise LookupFailed(f"geocode request failed: {e}", context={"name": name}) from e

        out: List[Tuple[Location, float]] = []
        for result in data.get("results", []) or []:
            lat, lng = result.get("latitude"), result.get("longitude")
            if lat is None or lng is None:
                continue
            label = ", ".join(
                p for p in (result.get("name"), result.get("admin1"), result.get("country")) if p
            )
            try:
                loc = Location(lat=float(lat), lng=float(lng), name=label or name)
            except InvalidCoordinate:
                logger.warning("Geocoder returned out-of-range point for %r: (%s, %s)", label or name, lat, lng)
                continue
            out.append((loc, name_confidence(name, result.get("name", ""))))
        logger.debug("Geocoder %r → %d candidates", name, len(out))
        return out
