"""
PredictionService — per-session detection conviction, smoothed position
and one-step-ahead position prediction.

Raw detector output is noisy and intermittent; the conviction counter
works as a leaky integrator and a 3-sample linear regression predicts
where the target will be on the next frame.

Conviction updates are caller-driven: after every increment/decrement
the caller invokes ``clamp_detection_conviction()``.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from domain.models import Point, UNKNOWN_POINT
from utils.geometry import clamp, linear_fit_at
from utils.ring_buffer import RingBuffer

HISTORY_SIZE = 3


@dataclass(frozen=True)
class PredictionParameters:
    """Immutable tuning for one kind of search."""
    center: Point = Point(0.5, 0.5)
    center_radius: float = 0.1
    conviction_max: int = 10
    conviction_in_on_detect: int = 4
    conviction_out_no_detect: int = 1
    smooth_factor: float = 0.1

    def with_changes(self, **changes) -> "PredictionParameters":
        return replace(self, **changes)


class SearchSession:
    """
    Mutable runtime state of one search. ``position_history`` and
    ``frame_index_history`` are parallel buffers and always hold the
    same number of samples.
    """

    def __init__(self, parameters: PredictionParameters = PredictionParameters()) -> None:
        self.parameters = parameters
        self.detection_conviction: int = 0
        self.smooth_position: Point = UNKNOWN_POINT
        self.current_frame_index: int = 0
        self.use_prediction: bool = True
        self.position_history: RingBuffer[Point] = RingBuffer(HISTORY_SIZE)
        self.frame_index_history: RingBuffer[int] = RingBuffer(HISTORY_SIZE)

    def reset(self) -> None:
        self.detection_conviction = 0
        self.smooth_position = UNKNOWN_POINT
        self.position_history.remove_all()
        self.frame_index_history.remove_all()
        self.current_frame_index = 0

    def predict_next_position(self) -> Optional[Point]:
        """
        Least-squares extrapolation of x and y against frame index,
        evaluated at ``current_frame_index + 1`` and clamped to [0, 1].
        None with fewer than 3 samples or when all frame indices coincide.
        """
        if self.position_history.count < HISTORY_SIZE:
            return None

        frames = [float(i) for i in self.frame_index_history]
        positions = self.position_history.elements
        target = float(self.current_frame_index + 1)

        px = linear_fit_at(frames, [p.x for p in positions], target)
        py = linear_fit_at(frames, [p.y for p in positions], target)
        if px is None or py is None:
            return None
        return Point(clamp(px, 0.0, 1.0), clamp(py, 0.0, 1.0))


class PredictionService:
    """Facade over a SearchSession used by the search use-cases."""

    def __init__(self, parameters: PredictionParameters = PredictionParameters()) -> None:
        self._session = SearchSession(parameters)

    # ---- forwarded state ----------------------------------------------
    @property
    def parameters(self) -> PredictionParameters:
        return self._session.parameters

    @property
    def detection_conviction(self) -> int:
        return self._session.detection_conviction

    @detection_conviction.setter
    def detection_conviction(self, value: int) -> None:
        self._session.detection_conviction = value

    @property
    def smooth_position(self) -> Point:
        return self._session.smooth_position

    @smooth_position.setter
    def smooth_position(self, value: Tuple[float, float]) -> None:
        self._session.smooth_position = Point(*value)

    @property
    def current_frame_index(self) -> int:
        return self._session.current_frame_index

    @current_frame_index.setter
    def current_frame_index(self, value: int) -> None:
        self._session.current_frame_index = value

    @property
    def use_prediction(self) -> bool:
        return self._session.use_prediction

    @use_prediction.setter
    def use_prediction(self, value: bool) -> None:
        self._session.use_prediction = value

    @property
    def position_history(self) -> RingBuffer[Point]:
        return self._session.position_history

    @property
    def frame_index_history(self) -> RingBuffer[int]:
        return self._session.frame_index_history

    @property
    def has_position(self) -> bool:
        return self._session.smooth_position.x >= 0

    @property
    def is_confident(self) -> bool:
        """Enough conviction (and a known position) to emit feedback."""
        return (
            self.detection_conviction >= self.parameters.conviction_in_on_detect
            and self.has_position
        )

    # ---- lifecycle -----------------------------------------------------
    def reset(self) -> None:
        self._session.reset()

    def clear_history(self) -> None:
        self._session.position_history.remove_all()
        self._session.frame_index_history.remove_all()

    def append_position(self, point: Tuple[float, float]) -> None:
        self._session.position_history.append(Point(*point))

    def append_frame_index(self, index: int) -> None:
        self._session.frame_index_history.append(index)

    def predict_next_position(self) -> Optional[Point]:
        return self._session.predict_next_position()

    def clamp_detection_conviction(self) -> None:
        self.detection_conviction = int(
            clamp(self.detection_conviction, 0, self.parameters.conviction_max)
        )

    # ---- conviction policy helpers ------------------------------------
    def update_smooth_position(self, point: Tuple[float, float]) -> Point:
        """Exponential smoothing; the first sample replaces the sentinel."""
        if not self.has_position:
            self.smooth_position = point
        else:
            f = self.parameters.smooth_factor
            sp = self.smooth_position
            self.smooth_position = (
                sp.x * f + point[0] * (1 - f),
                sp.y * f + point[1] * (1 - f),
            )
        return self.smooth_position

    def register_hit(self, point: Tuple[float, float]) -> None:
        """Positive detection at ``point``. Caller clamps afterwards."""
        self.detection_conviction += self.parameters.conviction_in_on_detect
        self.update_smooth_position(point)
        self.current_frame_index += 1
        self.append_position(self.smooth_position)
        self.append_frame_index(self.current_frame_index)

    def register_miss(self) -> None:
        """
        Target absent from a batch. Once conviction reaches zero the
        history is dropped so stale samples cannot fake continuity.
        Caller clamps afterwards.
        """
        if self.detection_conviction > 0:
            self.detection_conviction -= self.parameters.conviction_out_no_detect
        if self.detection_conviction <= 0:
            self.clear_history()
            self.current_frame_index = 0

    def feedback_point(self) -> Point:
        """Predicted position when available, else the smoothed one."""
        if self.use_prediction:
            predicted = self.predict_next_position()
            if predicted is not None:
                return predicted
        return self.smooth_position
