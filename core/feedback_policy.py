"""
Feedback policy — turns a target position into a haptic pattern,
an intensity and an optional spoken phrase.

Two-phase alignment: first bring the target into the central vertical
corridor (left / right), then fine-tune vertically (up / down) until it
is centred.
"""
from __future__ import annotations
import math
from typing import Callable, Iterable, Optional, Tuple, TypeVar

from core.prediction import PredictionParameters
from domain.enums import HapticPattern, SearchType
from domain.interfaces import FeedbackSink
from domain.models import FeedbackDirective
from domain.phrases import AlignmentPhrases
from utils.geometry import clamp, dist

T = TypeVar("T")

# Distance from centre at which intensity bottoms out
FULL_RANGE = 0.5


class CentreAlignmentEvaluator:
    """Pure maths: no state besides the immutable parameters."""

    def __init__(
        self,
        parameters: PredictionParameters = PredictionParameters(),
        phrases: AlignmentPhrases = AlignmentPhrases(),
    ) -> None:
        self._params = parameters
        self._phrases = phrases

    @property
    def parameters(self) -> PredictionParameters:
        return self._params

    # ------------------------------------------------------------------
    def calculate_haptic_feedback(self, point: Tuple[float, float]) -> Tuple[HapticPattern, float]:
        """
        Returns ``(pattern, intensity)`` with intensity in [0.1, 1.0].
        A fully centred target always plays CONTINUOUS at 1.0.
        """
        center = self._params.center
        radius = self._params.center_radius
        x, y = point[0], point[1]

        proximity = 1.0 - min(1.0, dist(point, center) / FULL_RANGE)
        intensity = clamp(0.3 + 0.7 * proximity, 0.1, 1.0)

        # Phase 1 - horizontal guidance until inside the central corridor
        if abs(x - center.x) >= radius:
            pattern = HapticPattern.DOT_PAUSE if x < center.x - radius else HapticPattern.DASH_PAUSE
            return pattern, intensity

        # Phase 2 - vertical guidance
        if y < center.y - radius:
            return HapticPattern.DASH_DOT_PAUSE, intensity
        if y > center.y + radius:
            return HapticPattern.DOT_DASH_PAUSE, intensity
        return HapticPattern.CONTINUOUS, 1.0

    def build_speech_guidance(self, point: Tuple[float, float], search_type: SearchType) -> str:
        """Directional phrase following the same two-phase branching."""
        center = self._params.center
        radius = self._params.center_radius
        phrases = self._phrases
        x, y = point[0], point[1]

        if y < center.y - radius:
            text_y = phrases.down
        elif y > center.y + radius:
            text_y = phrases.up
        else:
            text_y = None

        if abs(x - center.x) >= radius:
            text_x = phrases.left if x < center.x - radius else phrases.right
            return text_x + (text_y if text_y is not None else phrases.placeholder)

        if text_y is not None:
            return text_y
        if search_type is SearchType.OBJECT:
            return phrases.object_centred
        return phrases.text_centred

    def nearest_to_centre(self, items: Iterable[T], centre_of: Callable[[T], Tuple[float, float]]) -> Optional[T]:
        """
        Item whose centre is closest to the configured centre.
        On exact ties the first item encountered wins.
        """
        nearest: Optional[T] = None
        best = math.inf
        for item in items:
            d = dist(centre_of(item), self._params.center)
            if d < best:
                best = d
                nearest = item
        return nearest


class CentreAlignmentFeedbackPolicy:
    """
    Default feedback policy. The phrase is left out while the sink is
    already speaking so guidance never talks over itself.
    """

    def __init__(self, evaluator: CentreAlignmentEvaluator, search_type: SearchType) -> None:
        self._evaluator = evaluator
        self._search_type = search_type

    @property
    def evaluator(self) -> CentreAlignmentEvaluator:
        return self._evaluator

    def feedback(self, point: Tuple[float, float], sink: FeedbackSink) -> FeedbackDirective:
        pattern, intensity = self._evaluator.calculate_haptic_feedback(point)
        phrase: Optional[str] = None
        if not sink.is_speaking:
            text = self._evaluator.build_speech_guidance(point, self._search_type)
            phrase = text or None
        return FeedbackDirective(pattern=pattern, intensity=intensity, phrase=phrase)
