import pytest

from droughtwatch.analysis.composite import DEFAULT_WEIGHTS, CompositeIndexEngine, validate_weights
from droughtwatch.models import IndicatorKind, NormalizedIndicator, classify_score

LABELS = ("2024-01", "2024-02", "2024-03")


def scored(kind, scores, labels=LABELS):
    return NormalizedIndicator(kind, labels, tuple(scores), tuple(classify_score(s) for s in scores))


class TestValidateWeights:
    def test_defaults_sum_to_one(self):
        assert sum(validate_weights(DEFAULT_WEIGHTS).values()) == pytest.approx(1.0)

    def test_string_keys_are_parsed(self):
        assert validate_weights({"vhi": 0.5, "SPI": 0.5}) == {IndicatorKind.VHI: 0.5, IndicatorKind.SPI: 0.5}

    @pytest.mark.parametrize(
        "weights",
        [
            {"VHI": 0.5, "SPI": 0.4},
            {"VHI": 1.2, "SPI": -0.2},
            {"VHI": float("nan"), "SPI": 1.0},
            {"NDMI": 1.0},
        ],
    )
    def test_invalid_weights(self, weights):
        with pytest.raises(ValueError):
            CompositeIndexEngine(weights)


class TestComposite:
    def test_single_indicator_equals_its_score(self):
        result = CompositeIndexEngine().composite([scored(IndicatorKind.VHI, (0.6, 0.1, 0.95))])
        assert result.values == (0.6, 0.1, 0.95)
        assert result.contributing_weights[IndicatorKind.VHI] == (1.0, 1.0, 1.0)

    def test_weighted_mean_of_present_indicators(self):
        engine = CompositeIndexEngine({"VHI": 0.75, "SPI": 0.25})
        result = engine.composite([scored(IndicatorKind.VHI, (0.4, 0.4, 0.4)), scored(IndicatorKind.SPI, (0.8, None, 0.0))])
        assert result.values[0] == pytest.approx(0.75 * 0.4 + 0.25 * 0.8)
        # SPI missing: VHI carries the full weight
        assert result.values[1] == pytest.approx(0.4)
        assert result.contributing_weights[IndicatorKind.SPI][1] == 0.0
        assert result.contributing_weights[IndicatorKind.VHI][1] == pytest.approx(1.0)
        assert result.values[2] == pytest.approx(0.3)

    def test_applied_weights_sum_to_one_where_present(self, window_2024, full_provider):
        from droughtwatch.analysis.severity import IndicatorNormalizer
        from droughtwatch.transform.align import SeriesAligner

        normalized = IndicatorNormalizer().normalize_all(SeriesAligner().align(full_provider.data, window_2024))
        result = CompositeIndexEngine().composite(normalized)
        for j, v in enumerate(result.values):
            assert v is not None and 0.0 <= v <= 1.0
            assert sum(w[j] for w in result.contributing_weights.values()) == pytest.approx(1.0)

    def test_no_indicator_present_is_missing_not_zero(self):
        result = CompositeIndexEngine().composite(
            [scored(IndicatorKind.VHI, (None, 0.5, None)), scored(IndicatorKind.SPI, (None, None, None))]
        )
        assert result.values[0] is None
        assert result.values[2] is None
        assert result.values[1] == pytest.approx(0.5)

    def test_zero_weight_kind_does_not_count_as_present(self):
        result = CompositeIndexEngine().composite([scored(IndicatorKind.WIND_DIRECTION, (1.0, 1.0, 1.0))])
        assert result.values == (None, None, None)
        assert result.contributing_weights[IndicatorKind.WIND_DIRECTION] == (0.0, 0.0, 0.0)

    def test_same_input_gives_identical_output(self):
        inputs = [
            scored(IndicatorKind.SNDVI, (0.33, 0.71, None)),
            scored(IndicatorKind.HUMIDITY, (0.12, None, 0.9)),
            scored(IndicatorKind.TEMPERATURE, (0.57, 0.61, 0.2)),
        ]
        engine = CompositeIndexEngine()
        assert engine.composite(inputs) == engine.composite(list(reversed(inputs)))

    def test_misaligned_inputs_rejected(self):
        with pytest.raises(ValueError):
            CompositeIndexEngine().composite(
                [scored(IndicatorKind.VHI, (0.1, 0.2, 0.3)), scored(IndicatorKind.SPI, (0.1, 0.2), LABELS[:2])]
            )

    def test_duplicate_kind_rejected(self):
        with pytest.raises(ValueError):
            CompositeIndexEngine().composite([scored(IndicatorKind.VHI, (0.1, 0.2, 0.3))] * 2)

    def test_to_frame_has_weight_columns(self):
        frame = CompositeIndexEngine().composite([scored(IndicatorKind.VHI, (0.6, 0.1, None))]).to_frame()
        assert list(frame.columns) == ["composite", "w_VHI"]
        assert list(frame.index) == list(LABELS)
