# -*- coding: utf-8 -*-
"""
Pipeline orchestrator: resolve → fetch → align → normalize → score.

Only the fetch stage talks to the outside world, so it is the only stage that
runs off the caller's thread, honours a timeout and is retried.  Everything
after it is pure computation on in-memory data and runs to completion.

A new request for a location that already has a run in flight cancels the old
run (last request wins); the cancelled caller gets ``None`` back.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from droughtwatch.analysis.composite import CompositeIndexEngine
from droughtwatch.analysis.hotspots import HotspotDetector, RegionSeries
from droughtwatch.analysis.severity import IndicatorNormalizer, build_scales
from droughtwatch.errors import (
    TRANSIENT_ERRORS,
    Cancelled,
    DroughtWatchError,
    ProviderTimeout,
    ProviderUnavailable,
)
from droughtwatch.fetch.base import DataProvider, Geocoder, Sample, SubRegionSource
from droughtwatch.models import (
    ALL_KINDS,
    AnalysisResult,
    AnalysisWindow,
    IndicatorKind,
    LatLng,
    Location,
)
from droughtwatch.pipeline.cancellation import ActiveRunTable, PipelineRun, PipelineState
from droughtwatch.transform.align import SeriesAligner
from droughtwatch.transform.location import LocationInput, LocationResolver
from droughtwatch.utils.config_loader import PipelineSettings

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.05

RawResponse = Dict[IndicatorKind, Sequence[Sample]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineOrchestrator:
    def __init__(
        self,
        provider: DataProvider,
        resolver: Optional[LocationResolver] = None,
        aligner: Optional[SeriesAligner] = None,
        normalizer: Optional[IndicatorNormalizer] = None,
        engine: Optional[CompositeIndexEngine] = None,
        detector: Optional[HotspotDetector] = None,
        sub_regions: Optional[SubRegionSource] = None,
        kinds: Iterable[IndicatorKind] = ALL_KINDS,
        fetch_timeout: float = 60.0,
        max_retries: int = 2,
        backoff: float = 0.5,
        clock: Callable[[], datetime] = _utc_now,
        max_workers: int = 8,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self.provider = provider
        self.resolver = resolver or LocationResolver()
        self.aligner = aligner or SeriesAligner()
        self.normalizer = normalizer or IndicatorNormalizer()
        self.engine = engine or CompositeIndexEngine()
        self.detector = detector or HotspotDetector()
        self.sub_regions = sub_regions
        self.kinds = tuple(k for k in ALL_KINDS if k in set(kinds))
        self.fetch_timeout = float(fetch_timeout)
        self.max_retries = int(max_retries)
        self.backoff = float(backoff)
        self.clock = clock
        self._table = ActiveRunTable()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="droughtwatch-fetch")

    @classmethod
    def from_settings(
        cls,
        settings: PipelineSettings,
        provider: DataProvider,
        geocoder: Optional[Geocoder] = None,
        sub_regions: Optional[SubRegionSource] = None,
        **kwargs,
    ) -> "PipelineOrchestrator":
        return cls(
            provider=provider,
            resolver=LocationResolver(geocoder, confidence_threshold=settings.confidence_threshold),
            aligner=SeriesAligner(settings.min_fraction, settings.required_kinds),
            normalizer=IndicatorNormalizer(build_scales(settings.dry_wind_bearing, settings.breakpoints)),
            engine=CompositeIndexEngine(settings.weights or None),
            detector=HotspotDetector(settings.min_duration, settings.severity_threshold),
            sub_regions=sub_regions,
            fetch_timeout=settings.fetch_timeout_s,
            max_retries=settings.max_retries,
            backoff=settings.backoff_s,
            **kwargs,
        )

    # ---------- public ----------
    def analyze(
        self, location: Union[Location, LocationInput], window: AnalysisWindow
    ) -> Optional[AnalysisResult]:
        """
        Run the whole pipeline for one location and window.

        Returns the result, or ``None`` when a newer request for the same
        location superseded this one.  Resolution, fetch and alignment
        failures raise the matching ``DroughtWatchError``.
        """
        run = PipelineRun(window=window)
        run.advance(PipelineState.RESOLVING)
        try:
            loc = self.resolver.resolve(location)
        except Exception as e:
            run.fail(e)
            logger.error("run=%s resolution failed: %s", run.run_id, e)
            raise

        run.location_key = loc.key
        self._table.replace(loc.key, run)
        logger.info("run=%s analysing %s %s → %s (%s)", run.run_id, loc.label(), window.start, window.end, window.freq)
        try:
            result = self._execute(run, loc, window)
        except Cancelled:
            run.state = PipelineState.CANCELLED
            logger.info("run=%s cancelled; result dropped", run.run_id)
            self._table.release(loc.key, run)
            return None
        except Exception as e:
            stage = run.state.value
            run.fail(e)
            logger.error("run=%s failed while %s (%s): %s", run.run_id, stage, run.failure, e)
            self._table.release(loc.key, run)
            raise

        if not self._table.release(loc.key, run):
            run.state = PipelineState.CANCELLED
            logger.info("run=%s superseded after scoring; result dropped", run.run_id)
            return None
        run.advance(PipelineState.DONE)
        logger.info(
            "run=%s done: %d periods, %d hotspot(s)", run.run_id, len(result.composite.period_labels), len(result.hotspots)
        )
        return result

    def active_runs(self) -> List[PipelineRun]:
        return self._table.snapshot()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "PipelineOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- stages ----------
    def _execute(self, run: PipelineRun, loc: Location, window: AnalysisWindow) -> AnalysisResult:
        token = run.token

        token.raise_if_cancelled("fetching")
        run.advance(PipelineState.FETCHING)
        raw = self._fetch_with_retry(loc.point, window, run)
        regional_raw: List[Tuple[str, RawResponse]] = []
        if self.sub_regions is not None and loc.polygon:
            for region_id, region_loc in self.sub_regions.split(loc):
                regional_raw.append((region_id, self._fetch_with_retry(region_loc.point, window, run)))

        token.raise_if_cancelled("aligning")
        run.advance(PipelineState.ALIGNING)
        series = self.aligner.align(raw, window, self.kinds)

        token.raise_if_cancelled("normalizing")
        run.advance(PipelineState.NORMALIZING)
        normalized = self.normalizer.normalize_all(series)

        token.raise_if_cancelled("scoring")
        run.advance(PipelineState.SCORING)
        composite = self.engine.composite(normalized)
        hotspots = self.detector.detect(composite, normalized)
        if regional_raw:
            hotspots += self.detector.detect_regions(self._regional_series(regional_raw, window))

        token.raise_if_cancelled("delivery")
        return AnalysisResult(
            location=loc,
            window=window,
            normalized_indicators=normalized,
            composite=composite,
            hotspots=hotspots,
            generated_at=self.clock(),
        )

    def _regional_series(self, regional_raw: List[Tuple[str, RawResponse]], window: AnalysisWindow) -> List[RegionSeries]:
        out = []
        for region_id, raw in regional_raw:
            try:
                series = self.aligner.align(raw, window, self.kinds)
            except DroughtWatchError as e:
                # one thin sub-region must not sink the whole location
                logger.warning("Sub-region %s skipped: %s", region_id, e)
                continue
            normalized = self.normalizer.normalize_all(series)
            out.append(RegionSeries(region_id, self.engine.composite(normalized), normalized))
        return out

    def _fetch_with_retry(self, point: LatLng, window: AnalysisWindow, run: PipelineRun) -> RawResponse:
        attempts = 1 + self.max_retries
        last_err: Optional[DroughtWatchError] = None
        for attempt in range(1, attempts + 1):
            run.token.raise_if_cancelled("fetching")
            try:
                return self._fetch_once(point, window, run)
            except TRANSIENT_ERRORS as e:
                last_err = e
                logger.warning(
                    "run=%s fetch attempt %d/%d from %s failed: %s",
                    run.run_id, attempt, attempts, self.provider.source_name, e,
                )
            if attempt < attempts and run.token.wait(self.backoff):
                raise Cancelled("run superseded during fetch backoff", context={"stage": "fetching"})
        raise ProviderUnavailable(
            f"data provider failed after {attempts} attempts: {last_err}",
            context={"attempts": attempts, "last_error": last_err.kind if last_err else None},
        ) from last_err

    def _fetch_once(self, point: LatLng, window: AnalysisWindow, run: PipelineRun) -> RawResponse:
        future: Future = self._executor.submit(self.provider.fetch, point, window, self.kinds)
        deadline = time.monotonic() + self.fetch_timeout
        while True:
            remaining = deadline - time.monotonic()
            done, _ = wait([future], timeout=max(0.0, min(POLL_INTERVAL_S, remaining)))
            if done:
                break
            if run.token.cancelled:
                future.cancel()
                raise Cancelled("run superseded while fetching", context={"stage": "fetching"})
            if time.monotonic() >= deadline:
                future.cancel()
                raise ProviderTimeout(
                    f"provider did not answer within {self.fetch_timeout:g}s",
                    context={"timeout_s": self.fetch_timeout},
                )

        try:
            raw = future.result()
        except DroughtWatchError:
            raise
        except Exception as e:
            raise ProviderUnavailable(f"provider error: {e}", context={"error_type": type(e).__name__}) from e
        # suspension point: a newer request may have arrived meanwhile
        run.token.raise_if_cancelled("aligning")
        return dict(raw or {})


__all__ = ["PipelineOrchestrator"]
