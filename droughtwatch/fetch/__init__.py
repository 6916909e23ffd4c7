"""Collaborator interfaces plus the Open-Meteo reference implementations."""

from .base import DataProvider, Geocoder, SubRegionSource  # noqa: F401
from .geocode import OpenMeteoGeocoder  # noqa: F401
from .open_meteo import OpenMeteoProvider  # noqa: F401
