"""Shared fixtures: scripted collaborators and sample series."""

import threading
from datetime import datetime, timezone

import pytest

from droughtwatch.fetch.base import DataProvider, Geocoder
from droughtwatch.models import AnalysisWindow, IndicatorKind, Location


def monthly(year, values, day=1):
    """Samples stamped on ``day`` of each month, starting in January."""
    return [(datetime(year, m + 1, day), v) for m, v in enumerate(values)]


class FakeProvider(DataProvider):
    """Returns canned data; can fail a number of times or block until released."""

    def __init__(self, data=None, failures=(), block=None):
        self.data = data or {}
        self.failures = list(failures)
        self.block = block
        self.calls = []
        self.entered = threading.Event()

    def fetch(self, point, window, kinds):
        self.calls.append((point, window, tuple(kinds)))
        failure = self.failures.pop(0) if self.failures else None
        self.entered.set()
        if failure is not None:
            raise failure
        if self.block is not None:
            self.block.wait(5)
        return {k: list(v) for k, v in self.data.items()}


class FakeGeocoder(Geocoder):
    def __init__(self, results):
        self.results = results
        self.queries = []

    def search(self, name):
        self.queries.append(name)
        return list(self.results.get(name, []))


FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def window_2024():
    return AnalysisWindow.for_year(2024)


@pytest.fixture
def nairobi():
    return Location(lat=-1.2864, lng=36.8172, name="Nairobi")


@pytest.fixture
def vhi_only_provider():
    return FakeProvider({IndicatorKind.VHI: monthly(2024, [20.0] * 12)})


@pytest.fixture
def full_provider():
    """Twelve months of every indicator, drought building from May to August."""
    return FakeProvider(
        {
            IndicatorKind.SNDVI: monthly(2024, [0.3, 0.2, 0.1, -0.5, -1.2, -1.6, -1.8, -1.4, -0.4, 0.0, 0.2, 0.3]),
            IndicatorKind.SPI: monthly(2024, [0.5, 0.4, 0.0, -0.8, -1.5, -2.1, -2.0, -1.6, -0.6, 0.2, 0.6, 0.8]),
            IndicatorKind.VHI: monthly(2024, [55, 52, 48, 35, 22, 14, 12, 18, 33, 45, 50, 56]),
            IndicatorKind.RAINFALL: monthly(2024, [80, 95, 60, 30, 12, 4, 2, 9, 40, 70, 110, 90]),
            IndicatorKind.TEMPERATURE: monthly(2024, [18, 19, 22, 26, 31, 35, 37, 34, 28, 24, 20, 18]),
            IndicatorKind.HUMIDITY: monthly(2024, [65, 62, 58, 45, 35, 28, 25, 30, 44, 55, 63, 68]),
            IndicatorKind.WIND_SPEED: monthly(2024, [6, 7, 8, 10, 12, 14, 15, 13, 9, 7, 6, 5]),
            IndicatorKind.WIND_DIRECTION: monthly(2024, [270, 260, 250, 180, 120, 95, 90, 100, 200, 240, 260, 270]),
        }
    )


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def json(self):
        return self._payload


class FakeSession:
    """Stands in for ``requests.Session``; records every GET."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response
