"""Unit tests for PredictionService conviction and position prediction."""
import pytest

from core.prediction import PredictionParameters, PredictionService
from domain.models import UNKNOWN_POINT


@pytest.fixture
def service():
    return PredictionService(PredictionParameters())


class TestPrediction:
    """Test suite for the one-step-ahead prediction."""

    def test_linear_history_extrapolates_next_frame(self, service):
        for index, value in enumerate((0.0, 0.2, 0.4)):
            service.append_position((value, value))
            service.append_frame_index(index)
        service.current_frame_index = 2

        predicted = service.predict_next_position()

        assert predicted.x == pytest.approx(0.6)
        assert predicted.y == pytest.approx(0.6)

    def test_fewer_than_three_samples_gives_none(self, service):
        service.append_position((0.1, 0.1))
        service.append_frame_index(1)
        service.append_position((0.2, 0.2))
        service.append_frame_index(2)

        assert service.predict_next_position() is None

    def test_identical_frame_indices_give_none(self, service):
        for value in (0.1, 0.2, 0.3):
            service.append_position((value, value))
            service.append_frame_index(4)

        assert service.predict_next_position() is None

    def test_prediction_is_clamped_to_unit_square(self, service):
        for index, value in enumerate((0.6, 0.8, 1.0)):
            service.append_position((value, 1.0 - value))
            service.append_frame_index(index)
        service.current_frame_index = 2

        predicted = service.predict_next_position()

        assert predicted.x == 1.0
        assert predicted.y == 0.0


class TestConviction:
    """Test suite for the conviction counter."""

    def test_clamp_keeps_conviction_in_range(self, service):
        service.detection_conviction = 42
        service.clamp_detection_conviction()
        assert service.detection_conviction == 10

        service.detection_conviction = -5
        service.clamp_detection_conviction()
        assert service.detection_conviction == 0

    def test_hit_raises_conviction_and_sets_position(self, service):
        service.register_hit((0.3, 0.7))
        service.clamp_detection_conviction()

        assert service.detection_conviction == 4
        assert service.smooth_position == (0.3, 0.7)
        assert service.current_frame_index == 1
        assert service.position_history.count == service.frame_index_history.count == 1
        assert service.is_confident

    def test_smoothing_blends_previous_position(self, service):
        service.register_hit((0.0, 0.0))
        service.register_hit((1.0, 1.0))

        assert service.smooth_position.x == pytest.approx(0.9)
        assert service.smooth_position.y == pytest.approx(0.9)

    def test_misses_at_zero_clear_history(self, service):
        service.register_hit((0.5, 0.5))
        service.clamp_detection_conviction()
        for _ in range(4):
            service.register_miss()
            service.clamp_detection_conviction()

        assert service.detection_conviction == 0
        assert service.position_history.count == 0
        assert service.frame_index_history.count == 0
        assert service.current_frame_index == 0
        assert not service.is_confident

    def test_reset_restores_sentinel(self, service):
        service.register_hit((0.5, 0.5))
        service.reset()

        assert service.smooth_position == UNKNOWN_POINT
        assert service.detection_conviction == 0
        assert not service.has_position

    def test_feedback_point_prefers_prediction(self, service):
        for value in (0.1, 0.2, 0.3):
            service.register_hit((value, 0.5))
        assert service.feedback_point() == service.predict_next_position()

        service.use_prediction = False
        assert service.feedback_point() == service.smooth_position
