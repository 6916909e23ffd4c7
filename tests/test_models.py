from datetime import date

import pytest

from droughtwatch.errors import InvalidCoordinate
from droughtwatch.models import (
    AnalysisWindow,
    CompositeScore,
    IndicatorKind,
    IndicatorSeries,
    Location,
    SeverityClass,
    classify_score,
)


class TestAnalysisWindow:
    def test_calendar_year_has_twelve_monthly_labels(self):
        w = AnalysisWindow.for_year(2024)
        assert w.period_labels == tuple(f"2024-{m:02d}" for m in range(1, 13))

    def test_daily_window_is_inclusive(self):
        w = AnalysisWindow(date(2024, 2, 27), date(2024, 3, 1), "D")
        assert w.period_labels == ("2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01")

    def test_rejects_reversed_range(self):
        with pytest.raises(ValueError):
            AnalysisWindow(date(2024, 5, 1), date(2024, 1, 1))

    def test_rejects_unknown_freq(self):
        with pytest.raises(ValueError):
            AnalysisWindow(date(2024, 1, 1), date(2024, 2, 1), "Q")

    def test_calendar_year_in_weeks(self):
        w = AnalysisWindow.for_year(2024, "w")
        assert w.freq == "W"
        assert (w.start, w.end) == (date(2024, 1, 1), date(2024, 12, 31))
        assert w.period_labels[0] == "2024-01-01"
        assert w.period_labels[-1] == "2024-12-30"
        assert len(w.period_labels) == 53


class TestLocation:
    def test_key_ignores_display_name(self):
        a = Location(10.0, 20.0, name="Somewhere")
        b = Location(10.0, 20.0)
        assert a.key == b.key

    def test_key_depends_on_polygon(self):
        poly = ((0.0, 0.0), (0.0, 1.0), (1.0, 1.0))
        assert Location(0.5, 0.5).key != Location(0.5, 0.5, polygon=poly).key

    @pytest.mark.parametrize(
        "lat,lng", [(90.5, 0.0), (-91.0, 0.0), (0.0, 181.0), (0.0, -180.01), (float("nan"), 0.0), (0.0, float("inf")), ("north", 0.0)]
    )
    def test_out_of_range_coordinates_rejected(self, lat, lng):
        with pytest.raises(InvalidCoordinate):
            Location(lat, lng)

    def test_poles_and_antimeridian_accepted(self):
        assert Location(-90.0, 180.0).point == (-90.0, 180.0)
        assert Location(90, -180).point == (90, -180)


class TestClassifyScore:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.0, SeverityClass.NONE),
            (0.1999, SeverityClass.NONE),
            (0.2, SeverityClass.MILD),
            (0.4, SeverityClass.MODERATE),
            (0.6, SeverityClass.SEVERE),
            (0.7999, SeverityClass.SEVERE),
            (0.8, SeverityClass.EXTREME),
            (1.0, SeverityClass.EXTREME),
        ],
    )
    def test_boundaries(self, score, expected):
        assert classify_score(score) is expected

    def test_missing_stays_missing(self):
        assert classify_score(None) is None


def test_series_length_must_match_labels():
    with pytest.raises(ValueError):
        IndicatorSeries(IndicatorKind.SPI, ("2024-01", "2024-02"), (1.0,))


def test_series_must_not_be_empty():
    with pytest.raises(ValueError):
        IndicatorSeries(IndicatorKind.SPI, (), ())


def test_indicator_kind_parse_accepts_lowercase():
    assert IndicatorKind.parse("wind_speed") is IndicatorKind.WIND_SPEED
    with pytest.raises(ValueError):
        IndicatorKind.parse("NDMI")


def test_composite_weights_are_read_only():
    c = CompositeScore(("2024-01",), (0.5,), {IndicatorKind.VHI: (1.0,)})
    with pytest.raises(TypeError):
        c.contributing_weights[IndicatorKind.SPI] = (1.0,)
