"""
open_meteo.py
--------------
Reference ``DataProvider`` backed by the Open-Meteo ERA5 archive API.

Daily reanalysis variables are pulled for the requested point and aggregated
onto the analysis period grid (rainfall summed, temperature and humidity
averaged, wind direction averaged on the circle).  SPI is derived from the
same precipitation: each month's total is standardised against that calendar
month over the preceding baseline years, so the request reaches back that far.
SNDVI and VHI come back absent, which the aligner represents as all-missing
series.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
import requests

from droughtwatch.errors import ProviderTimeout, ProviderUnavailable
from droughtwatch.fetch.base import DataProvider, Sample
from droughtwatch.models import AnalysisWindow, IndicatorKind, LatLng

logger = logging.getLogger(__name__)

ARCHIVE_API = "https://archive-api.open-meteo.com/v1/era5"

# daily variable → (indicator kind, period aggregation)
DAILY_VARS: Dict[str, tuple] = {
    "precipitation_sum": (IndicatorKind.RAINFALL, "sum"),
    "temperature_2m_mean": (IndicatorKind.TEMPERATURE, "mean"),
    "relative_humidity_2m_mean": (IndicatorKind.HUMIDITY, "mean"),
    "wind_speed_10m_max": (IndicatorKind.WIND_SPEED, "mean"),
    "wind_direction_10m_dominant": (IndicatorKind.WIND_DIRECTION, "circular"),
}

_RESAMPLE_RULE = {"M": "MS", "W": "W-MON", "D": "D"}

SPI_SOURCE_VAR = "precipitation_sum"
# fewer baseline totals than this for a calendar month leave its SPI missing
MIN_BASELINE_YEARS = 3


def _circular_mean(deg: pd.Series) -> float:
    deg = deg.dropna()
    if deg.empty:
        return np.nan
    rad = np.deg2rad(deg.to_numpy(dtype=float))
    ang = np.rad2deg(np.arctan2(np.sin(rad).mean(), np.cos(rad).mean()))
    return float(ang % 360.0)


def _json_to_df(payload: Dict[str, Any]) -> pd.DataFrame:
    if "daily" not in payload or "time" not in payload["daily"]:
        raise ProviderUnavailable(
            "response lacks daily/time fields; check variable names or date range",
            context={"keys": sorted(payload)},
        )
    df = pd.DataFrame(payload["daily"]).rename(columns={"time": "date"})
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values("date").set_index("date")


def aggregate_daily(df: pd.DataFrame, freq: str) -> Dict[IndicatorKind, List[Sample]]:
    """Aggregate a daily frame onto period-start-stamped samples per kind."""
    rule = _RESAMPLE_RULE[freq]
    out: Dict[IndicatorKind, List[Sample]] = {}
    for var, (kind, how) in DAILY_VARS.items():
        if var not in df.columns:
            continue
        col = pd.to_numeric(df[var], errors="coerce")
        grouped = col.resample(rule, label="left", closed="left")
        if how == "sum":
            # min_count keeps all-NaN periods missing instead of 0 mm
            agg = grouped.sum(min_count=1)
        elif how == "circular":
            agg = grouped.apply(_circular_mean)
        else:
            agg = grouped.mean()
        out[kind] = [
            (ts.to_pydatetime(), None if pd.isna(v) else float(v)) for ts, v in agg.items()
        ]
    return out


def monthly_spi(precip: pd.Series, start: date, end: date, baseline_years: int) -> pd.Series:
    """
    Standardized precipitation index per month of ``[start, end]``.

    Daily precipitation is summed per calendar month.  Each month from the one
    containing ``start`` onwards is scored as ``(total - mean) / std``, where
    mean and std (sample) come from the same calendar month over the
    ``baseline_years`` before it.  A flat baseline scores 0.0.  Months that end
    after ``end``, have no total, or have fewer than ``MIN_BASELINE_YEARS``
    baseline totals stay missing.
    """
    totals = pd.to_numeric(precip, errors="coerce").resample("MS").sum(min_count=1)
    first = pd.Timestamp(start).to_period("M").start_time
    base = totals[(totals.index < first) & (totals.index >= first - pd.DateOffset(years=baseline_years))]
    stats = base.groupby(base.index.month).agg(["mean", "std", "count"])
    target = totals[(totals.index >= first) & (totals.index + pd.offsets.MonthEnd(0) <= pd.Timestamp(end))]

    out = pd.Series(np.nan, index=target.index, dtype=float)
    for ts, total in target.items():
        m = ts.month
        if pd.isna(total) or m not in stats.index or stats.at[m, "count"] < MIN_BASELINE_YEARS:
            continue
        mean, std = stats.at[m, "mean"], stats.at[m, "std"]
        out.loc[ts] = 0.0 if std == 0 else (total - mean) / std
    return out


def spi_samples(precip: pd.Series, window: AnalysisWindow, baseline_years: int) -> List[Sample]:
    """SPI stamped on the window's period starts; every period takes its month's value."""
    spi = monthly_spi(precip, window.start, window.end, baseline_years)
    daily = precip[precip.index >= pd.Timestamp(window.start)]
    stamps = daily.resample(_RESAMPLE_RULE[window.freq], label="left", closed="left").size().index
    out: List[Sample] = []
    for ts in stamps:
        v = spi.get(ts.to_period("M").start_time, np.nan)
        out.append((ts.to_pydatetime(), None if pd.isna(v) else float(v)))
    return out


class OpenMeteoProvider(DataProvider):
    def __init__(
        self,
        daily_vars: Optional[Sequence[str]] = None,
        timezone: str = "auto",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
        spi_baseline_years: int = 10,
    ) -> None:
        self.daily_vars = list(daily_vars or DAILY_VARS)
        unknown = [v for v in self.daily_vars if v not in DAILY_VARS]
        if unknown:
            raise ValueError(f"unsupported Open-Meteo daily variables: {unknown}")
        if spi_baseline_years < 0:
            raise ValueError(f"spi_baseline_years must be >= 0, got {spi_baseline_years}")
        self.timezone = timezone
        self.timeout = timeout
        self.spi_baseline_years = int(spi_baseline_years)
        self.session = session or requests.Session()

    @classmethod
    def from_cfg(cls, cfg: dict, timeout: float = 60.0) -> "OpenMeteoProvider":
        om = cfg.get("open_meteo", {})
        return cls(
            daily_vars=om.get("daily_vars"),
            timezone=om.get("timezone", "auto"),
            timeout=timeout,
            spi_baseline_years=int(om.get("spi_baseline_years", 10)),
        )

    @property
    def source_name(self) -> str:
        return "open-meteo/era5"

    def _request_daily(self, lat: float, lng: float, start: date, end: date, daily_vars: List[str]) -> Dict[str, Any]:
        params = {
            "latitude": lat,
            "longitude": lng,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "daily": ",".join(daily_vars),
            "timezone": self.timezone,
        }
        try:
            r = self.session.get(ARCHIVE_API, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderTimeout(f"Open-Meteo request timed out: {e}", context={"api": ARCHIVE_API}) from e
        except requests.RequestException as e:
            raise ProviderUnavailable(f"Open-Meteo request failed: {e}", context={"api": ARCHIVE_API}) from e
        if r.status_code != 200:
            raise ProviderUnavailable(
                f"HTTP {r.status_code}: {r.text[:300]}",
                context={"api": ARCHIVE_API, "status_code": r.status_code},
            )
        return r.json()

    def fetch(
        self,
        point: LatLng,
        window: AnalysisWindow,
        kinds: Iterable[IndicatorKind],
    ) -> Dict[IndicatorKind, List[Sample]]:
        wanted = set(kinds)
        want_spi = (
            IndicatorKind.SPI in wanted and self.spi_baseline_years > 0 and SPI_SOURCE_VAR in self.daily_vars
        )
        daily_vars = [
            v for v in self.daily_vars if DAILY_VARS[v][0] in wanted or (want_spi and v == SPI_SOURCE_VAR)
        ]
        if not daily_vars:
            logger.info("Open-Meteo supplies none of %s", sorted(k.value for k in wanted))
            return {}
        start = window.start
        if want_spi:
            first = pd.Timestamp(window.start).to_period("M").start_time
            start = (first - pd.DateOffset(years=self.spi_baseline_years)).date()
        lat, lng = point
        logger.info("Open-Meteo fetch lat=%s lng=%s %s → %s vars=%s", lat, lng, start, window.end, daily_vars)
        payload = self._request_daily(lat, lng, start, window.end, daily_vars)
        df = _json_to_df(payload)
        samples = aggregate_daily(df[df.index >= pd.Timestamp(window.start)], window.freq)
        if IndicatorKind.RAINFALL not in wanted:
            samples.pop(IndicatorKind.RAINFALL, None)
        if want_spi:
            samples[IndicatorKind.SPI] = spi_samples(df[SPI_SOURCE_VAR], window, self.spi_baseline_years)
        logger.info("Open-Meteo returned %d days for %d kinds", len(df), len(samples))
        return samples


__all__ = ["ARCHIVE_API", "DAILY_VARS", "OpenMeteoProvider", "aggregate_daily", "monthly_spi", "spi_samples"]
