from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Generic, NamedTuple, Optional, Tuple, TypeVar
import time

from domain.enums import DomainEventType, HapticPattern, SearchPhase
from utils.geometry import winding_number


class Point(NamedTuple):
    """Normalised 2D point, origin bottom-left."""
    x: float
    y: float


# Sentinel meaning "position unknown"
UNKNOWN_POINT = Point(-1.0, -1.0)


@dataclass(frozen=True)
class Rect:
    """Normalised axis-aligned box (origin bottom-left, like the detector framework)."""
    x: float
    y: float
    width: float
    height: float

    # ---- convenience accessors ----------------------------------------
    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)


@dataclass(frozen=True)
class ObjectObservation:
    """One detector hit: class label, normalised box and confidence."""
    label: str
    box: Rect
    confidence: float = 1.0


@dataclass(frozen=True)
class TextObservation:
    """One recognised text line."""
    text: str
    box: Rect
    confidence: float = 1.0


@dataclass(frozen=True)
class TextBlock:
    text: str
    box: Rect

    @classmethod
    def from_observation(cls, observation: TextObservation) -> "TextBlock":
        return cls(text=observation.text, box=observation.box)


@dataclass(frozen=True)
class Sentence:
    text: str
    start_block: int = 0
    end_block: int = 0


@dataclass(frozen=True)
class BoundingQuad:
    """
    Convex quadrilateral in normalised coordinates, clockwise from top-left.
    """
    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    @property
    def points(self) -> Tuple[Point, Point, Point, Point]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def contains(self, point: Tuple[float, float]) -> bool:
        return winding_number(point, self.points) != 0


@dataclass(frozen=True)
class FeedbackDirective:
    """Haptic pattern + intensity + optional phrase for one feedback cycle."""
    pattern: HapticPattern
    intensity: float
    phrase: Optional[str] = None


@dataclass
class CameraFrame:
    """
    A captured frame. ``image`` is whatever the camera adapter produces
    (a BGR np.ndarray for the OpenCV adapter).
    """
    image: Any
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class FrameSharpnessData:
    """Per-cell sharpness flags (row-major) and the cached count of sharp cells."""
    sharpness_grid: Tuple[Tuple[bool, ...], ...]
    sharp_cell_count: int

    @property
    def total_cells(self) -> int:
        if not self.sharpness_grid:
            return 0
        return len(self.sharpness_grid) * len(self.sharpness_grid[0])


@dataclass(frozen=True)
class Transcript:
    """Partial or final speech-to-text result."""
    text: str
    is_final: bool = False


@dataclass(frozen=True)
class CatalogItem:
    """A searchable object class known to the detector model."""
    class_name: str
    display_name: str
    alternative_names: Tuple[str, ...] = ()
    model_name: str = "default"

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.display_name,) + self.alternative_names


P = TypeVar("P")


@dataclass(frozen=True)
class SearchState(Generic[P]):
    """
    Search lifecycle state: a phase plus an optional payload
    (recognised text while processing, the target while searching).
    """
    phase: SearchPhase
    payload: Optional[P] = None

    @classmethod
    def idle(cls) -> "SearchState":
        return cls(SearchPhase.IDLE)

    @classmethod
    def listening(cls) -> "SearchState":
        return cls(SearchPhase.LISTENING)

    @classmethod
    def processing_speech(cls, text: str) -> "SearchState":
        return cls(SearchPhase.PROCESSING_SPEECH, text)

    @classmethod
    def announcing(cls) -> "SearchState":
        return cls(SearchPhase.ANNOUNCING)

    @classmethod
    def searching(cls, target: P) -> "SearchState":
        return cls(SearchPhase.SEARCHING, target)

    @property
    def is_active(self) -> bool:
        return self.phase is not SearchPhase.IDLE

    def __str__(self) -> str:
        if self.payload is None:
            return self.phase.value
        return f"{self.phase.value}({self.payload})"


@dataclass(frozen=True)
class DomainEvent:
    """Application-wide event published on the EventBus."""
    type: DomainEventType
    feature: str = ""
    message: str = ""
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def error(cls, feature: str, message: str) -> "DomainEvent":
        return cls(DomainEventType.ERROR, feature, message)

    @classmethod
    def feature_started(cls, feature: str) -> "DomainEvent":
        return cls(DomainEventType.FEATURE_STARTED, feature)

    @classmethod
    def feature_stopped(cls, feature: str) -> "DomainEvent":
        return cls(DomainEventType.FEATURE_STOPPED, feature)

