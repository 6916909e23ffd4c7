import threading

import pytest

from droughtwatch.analysis.hotspots import HotspotDetector
from droughtwatch.errors import (
    IncompleteData,
    InvalidCoordinate,
    LookupFailed,
    ProviderTimeout,
    ProviderUnavailable,
)
from droughtwatch.models import IndicatorKind, Location
from droughtwatch.pipeline import PipelineOrchestrator
from droughtwatch.pipeline.cancellation import PipelineState
from droughtwatch.transform.location import CoordinatePair, NameQuery
from droughtwatch.transform.regions import GridSubRegions
from droughtwatch.utils.config_loader import load_settings
from tests.conftest import FIXED_NOW, FakeProvider, monthly


def _vhi_year():
    return monthly(2024, [20.0] * 12)


def make(provider, **kwargs):
    kwargs.setdefault("backoff", 0.0)
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    return PipelineOrchestrator(provider, **kwargs)


class TestAnalyze:
    def test_constant_vhi_year_is_one_long_hotspot(self, vhi_only_provider, nairobi, window_2024):
        with make(vhi_only_provider) as orch:
            result = orch.analyze(nairobi, window_2024)
        assert result.composite.values == (0.6,) * 12
        assert result.composite.period_labels == window_2024.period_labels
        (h,) = result.hotspots
        assert (h.start_period, h.end_period) == ("2024-01", "2024-12")
        assert h.trigger_kinds == frozenset({IndicatorKind.VHI})
        assert result.indicator(IndicatorKind.SPI).scores == (None,) * 12
        assert result.generated_at == FIXED_NOW

    def test_every_indicator_is_reported(self, full_provider, nairobi, window_2024):
        with make(full_provider) as orch:
            result = orch.analyze(nairobi, window_2024)
        assert len(result.normalized_indicators) == 8
        frame = result.to_frame()
        assert list(frame.index) == list(window_2024.period_labels)
        assert "composite" in frame.columns
        # drought months May-August stand out
        assert any(h.start_period <= "2024-06" <= h.end_period for h in result.hotspots)

    def test_same_inputs_give_equal_results(self, full_provider, nairobi, window_2024):
        with make(full_provider) as orch:
            first = orch.analyze(nairobi, window_2024)
            second = orch.analyze(nairobi, window_2024)
        assert first == second

    def test_coordinate_input_is_resolved(self, vhi_only_provider, window_2024):
        with make(vhi_only_provider) as orch:
            result = orch.analyze(CoordinatePair(-1.2864, 36.8172), window_2024)
        assert result.location.point == (-1.2864, 36.8172)
        assert vhi_only_provider.calls[0][0] == (-1.2864, 36.8172)

    def test_no_active_runs_after_completion(self, vhi_only_provider, nairobi, window_2024):
        with make(vhi_only_provider) as orch:
            orch.analyze(nairobi, window_2024)
            assert orch.active_runs() == []


class TestFailures:
    def test_invalid_coordinate_never_fetches(self, vhi_only_provider, window_2024):
        with make(vhi_only_provider) as orch:
            with pytest.raises(InvalidCoordinate):
                orch.analyze(CoordinatePair(100.0, 0.0), window_2024)
        assert vhi_only_provider.calls == []

    def test_name_without_geocoder_fails_lookup(self, vhi_only_provider, window_2024):
        with make(vhi_only_provider) as orch:
            with pytest.raises(LookupFailed):
                orch.analyze(NameQuery("Nairobi"), window_2024)

    def test_transient_failures_are_retried(self, nairobi, window_2024):
        provider = FakeProvider(
            {IndicatorKind.VHI: _vhi_year()},
            failures=[ProviderUnavailable("502"), ProviderTimeout("slow")],
        )
        with make(provider, max_retries=2) as orch:
            result = orch.analyze(nairobi, window_2024)
        assert len(provider.calls) == 3
        assert result.composite.values == (0.6,) * 12

    def test_exhausted_retries_surface_provider_unavailable(self, nairobi, window_2024):
        last = ProviderTimeout("slow")
        provider = FakeProvider(failures=[ProviderUnavailable("502"), ProviderUnavailable("503"), last])
        with make(provider, max_retries=2) as orch:
            with pytest.raises(ProviderUnavailable) as exc:
                orch.analyze(nairobi, window_2024)
        assert exc.value.__cause__ is last
        assert exc.value.context["attempts"] == 3
        assert len(provider.calls) == 3
        assert orch.active_runs() == []

    def test_unexpected_provider_error_is_wrapped_and_retried(self, nairobi, window_2024):
        provider = FakeProvider({IndicatorKind.VHI: _vhi_year()}, failures=[ConnectionResetError("reset")])
        with make(provider, max_retries=1) as orch:
            result = orch.analyze(nairobi, window_2024)
        assert len(provider.calls) == 2
        assert result is not None

    def test_slow_provider_times_out(self, nairobi, window_2024):
        gate = threading.Event()
        provider = FakeProvider({IndicatorKind.VHI: _vhi_year()}, block=gate)
        try:
            with make(provider, fetch_timeout=0.1, max_retries=0) as orch:
                with pytest.raises(ProviderUnavailable) as exc:
                    orch.analyze(nairobi, window_2024)
        finally:
            gate.set()
        assert isinstance(exc.value.__cause__, ProviderTimeout)

    def test_incomplete_data_is_not_retried(self, nairobi, window_2024):
        provider = FakeProvider({})
        with make(provider, max_retries=2) as orch:
            with pytest.raises(IncompleteData):
                orch.analyze(nairobi, window_2024)
        assert len(provider.calls) == 1


class TestSupersession:
    def test_newer_request_wins(self, nairobi, window_2024):
        gate = threading.Event()
        provider = FakeProvider({IndicatorKind.VHI: _vhi_year()}, block=gate)
        results = {}

        with make(provider) as orch:
            first = threading.Thread(target=lambda: results.setdefault("first", orch.analyze(nairobi, window_2024)))
            first.start()
            assert provider.entered.wait(2)

            second = threading.Thread(target=lambda: results.setdefault("second", orch.analyze(nairobi, window_2024)))
            second.start()
            first.join(2)
            assert not first.is_alive()
            gate.set()
            second.join(5)

            assert results["first"] is None
            assert results["second"] is not None
            assert orch.active_runs() == []

    def test_superseding_cuts_retry_backoff_short(self, nairobi, window_2024):
        provider = FakeProvider({IndicatorKind.VHI: _vhi_year()}, failures=[ProviderUnavailable("502")])
        results = {}

        with make(provider, backoff=30.0, max_retries=1) as orch:
            first = threading.Thread(target=lambda: results.setdefault("first", orch.analyze(nairobi, window_2024)))
            first.start()
            assert provider.entered.wait(2)
            (run,) = orch.active_runs()

            results["second"] = orch.analyze(nairobi, window_2024)
            first.join(2)
            assert not first.is_alive()

        assert results["first"] is None
        assert results["second"] is not None
        # the superseded run never made its retry attempt
        assert len(provider.calls) == 2
        assert run.state is PipelineState.CANCELLED

    def test_result_dropped_when_superseded_after_scoring(self, vhi_only_provider, nairobi, window_2024):
        newer = {}

        def clock():
            # runs after the last cancellation check of the outer call
            if "result" not in newer:
                newer["result"] = None
                newer["result"] = orch.analyze(nairobi, window_2024)
            return FIXED_NOW

        with make(vhi_only_provider, clock=clock) as orch:
            result = orch.analyze(nairobi, window_2024)
            assert orch.active_runs() == []

        assert result is None
        assert newer["result"] is not None
        assert newer["result"].generated_at == FIXED_NOW
        assert len(vhi_only_provider.calls) == 2

    def test_different_locations_do_not_interfere(self, window_2024):
        gate = threading.Event()
        provider = FakeProvider({IndicatorKind.VHI: _vhi_year()}, block=gate)
        a, b = Location(1.0, 1.0), Location(2.0, 2.0)
        results = {}
        with make(provider) as orch:
            threads = [
                threading.Thread(target=lambda loc=loc: results.setdefault(loc, orch.analyze(loc, window_2024)))
                for loc in (a, b)
            ]
            for t in threads:
                t.start()
            gate.set()
            for t in threads:
                t.join(5)
        assert results[a] is not None and results[b] is not None


class TestSubRegions:
    def test_polygon_hotspots_are_tagged_per_region(self, full_provider, window_2024):
        square = Location(
            -1.0, 36.0, name="farm", polygon=((-1.5, 35.5), (-1.5, 36.5), (-0.5, 36.5), (-0.5, 35.5))
        )
        with make(full_provider, sub_regions=GridSubRegions(2, 2)) as orch:
            result = orch.analyze(square, window_2024)
        whole = [h for h in result.hotspots if h.region is None]
        regional = [h for h in result.hotspots if h.region is not None]
        assert len(full_provider.calls) == 5
        assert {h.region for h in regional} == {"r0c0", "r0c1", "r1c0", "r1c1"}
        assert len(regional) == 4 * len(whole)

    def test_point_location_skips_sub_regions(self, full_provider, nairobi, window_2024):
        with make(full_provider, sub_regions=GridSubRegions(2, 2)) as orch:
            result = orch.analyze(nairobi, window_2024)
        assert len(full_provider.calls) == 1
        assert all(h.region is None for h in result.hotspots)


def test_from_settings_applies_config(vhi_only_provider, nairobi, window_2024):
    settings = load_settings({"hotspots": {"min_duration": 13}})
    with PipelineOrchestrator.from_settings(settings, vhi_only_provider, clock=lambda: FIXED_NOW) as orch:
        assert isinstance(orch.detector, HotspotDetector)
        result = orch.analyze(nairobi, window_2024)
    # a twelve-month run is shorter than the configured minimum
    assert result.hotspots == ()


def test_invalid_construction():
    with pytest.raises(ValueError):
        PipelineOrchestrator(FakeProvider(), max_retries=-1)
    with pytest.raises(ValueError):
        PipelineOrchestrator(FakeProvider(), fetch_timeout=0)
