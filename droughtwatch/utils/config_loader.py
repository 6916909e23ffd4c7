# -*- coding: utf-8 -*-
"""
config_loader.py
=================

This helper centralises reading of the ``config/config.yml`` file and turns
it into the typed ``PipelineSettings`` consumed by the orchestrator factory.
Every key in the YAML file is optional: the parsed document is deep-merged
over ``DEFAULTS`` so that a partial file (or no file at all, as when the
package is installed without the repository checkout) still yields a working
pipeline.  Set ``DROUGHTWATCH_CONFIG`` to point at another file.

Usage::

    from droughtwatch.utils.config_loader import CFG, load_settings
    settings = load_settings(CFG)
    print(settings.weights)

"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from droughtwatch.models import IndicatorKind

logger = logging.getLogger(__name__)

# Determine the project root (two levels above this file)
ROOT = Path(__file__).resolve().parents[2]

DEFAULTS: Dict[str, Any] = {
    "alignment": {"min_fraction": 0.5, "required_kinds": []},
    "weights": {
        "SNDVI": 0.20,
        "SPI": 0.25,
        "VHI": 0.25,
        "RAINFALL": 0.10,
        "TEMPERATURE": 0.10,
        "HUMIDITY": 0.05,
        "WIND_SPEED": 0.05,
        "WIND_DIRECTION": 0.00,
    },
    "hotspots": {"min_duration": 2, "severity_threshold": 0.6},
    "fetch": {"timeout_s": 60.0, "max_retries": 2, "backoff_s": 0.5},
    "normalization": {"dry_wind_bearing": 90.0, "breakpoints": {}},
    "geocoder": {"confidence_threshold": 0.8, "language": "en", "count": 10, "timeout_s": 10.0},
    "open_meteo": {
        "timezone": "auto",
        "spi_baseline_years": 10,
        "daily_vars": [
            "precipitation_sum",
            "temperature_2m_mean",
            "relative_humidity_2m_mean",
            "wind_speed_10m_max",
            "wind_direction_10m_dominant",
        ],
    },
    "logging": {"level": "INFO", "dir": "logs", "rotate": "daily", "to_console": True, "to_file": False},
}


def _deep_merge(base: dict, override: Mapping[str, Any]) -> dict:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Path | None = None) -> dict:
    """Read and parse the YAML configuration file.

    Parameters
    ----------
    path : pathlib.Path or None, optional
        Path to a YAML configuration file.  If ``None``, defaults to
        ``$DROUGHTWATCH_CONFIG`` or ``ROOT / 'config/config.yml'``.

    Returns
    -------
    dict
        ``DEFAULTS`` deep-merged with the parsed file, with the log directory
        made absolute.
    """
    if path is None:
        env_path = os.environ.get("DROUGHTWATCH_CONFIG")
        path = Path(env_path) if env_path else ROOT / "config" / "config.yml"
    raw: dict = {}
    if Path(path).exists():
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: top level of the config must be a mapping")
    cfg = _deep_merge(DEFAULTS, raw)
    if raw.get("weights"):
        cfg["weights"] = dict(raw["weights"])
    log_dir = Path(cfg["logging"].get("dir", "logs"))
    if not log_dir.is_absolute():
        cfg["logging"]["dir"] = str((ROOT / log_dir).resolve())
    return cfg


@dataclass(frozen=True)
class PipelineSettings:
    """Runtime knobs for one orchestrator instance."""

    min_fraction: float = 0.5
    required_kinds: Tuple[IndicatorKind, ...] = ()
    weights: Mapping[IndicatorKind, float] = field(default_factory=dict)
    min_duration: int = 2
    severity_threshold: float = 0.6
    fetch_timeout_s: float = 60.0
    max_retries: int = 2
    backoff_s: float = 0.5
    dry_wind_bearing: float = 90.0
    breakpoints: Mapping[IndicatorKind, List[Tuple[float, float]]] = field(default_factory=dict)
    confidence_threshold: float = 0.8


def _parse_kind_map(raw: Optional[Mapping[str, Any]]) -> Dict[IndicatorKind, Any]:
    return {IndicatorKind.parse(k): v for k, v in (raw or {}).items()}


def load_settings(cfg: dict | None = None) -> PipelineSettings:
    """Build ``PipelineSettings`` from a config dict (``CFG`` when omitted)."""
    cfg = cfg if cfg is not None else CFG
    # a weights table replaces the default one as a whole
    raw_weights = cfg.get("weights") or DEFAULTS["weights"]
    cfg = _deep_merge(DEFAULTS, cfg)
    align = cfg["alignment"]
    hot = cfg["hotspots"]
    fetch = cfg["fetch"]
    norm = cfg["normalization"]

    min_fraction = float(align.get("min_fraction", 0.5))
    if not 0.0 <= min_fraction <= 1.0:
        raise ValueError(f"alignment.min_fraction must be within [0, 1], got {min_fraction}")

    weights = {k: float(v) for k, v in _parse_kind_map(raw_weights).items()}
    breakpoints = {
        k: [(float(x), float(y)) for x, y in pts]
        for k, pts in _parse_kind_map(norm.get("breakpoints")).items()
    }
    settings = PipelineSettings(
        min_fraction=min_fraction,
        required_kinds=tuple(IndicatorKind.parse(k) for k in align.get("required_kinds") or []),
        weights=weights,
        min_duration=int(hot.get("min_duration", 2)),
        severity_threshold=float(hot.get("severity_threshold", 0.6)),
        fetch_timeout_s=float(fetch.get("timeout_s", 60.0)),
        max_retries=int(fetch.get("max_retries", 2)),
        backoff_s=float(fetch.get("backoff_s", 0.5)),
        dry_wind_bearing=float(norm.get("dry_wind_bearing", 90.0)),
        breakpoints=breakpoints,
        confidence_threshold=float(cfg["geocoder"].get("confidence_threshold", 0.8)),
    )
    logger.debug("Pipeline settings: %s", settings)
    return settings


# Load the configuration on import
CFG = load_config()
