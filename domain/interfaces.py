"""
Collaborator interfaces the guidance core talks to.

Platform adapters (camera, detector, OCR, speech, haptics, settings)
implement these; the core never imports a concrete adapter.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence

from domain.enums import HapticPattern, TextRecognitionAccuracy
from domain.models import (
    CameraFrame,
    FrameSharpnessData,
    ObjectObservation,
    TextObservation,
    Transcript,
)


class DetectionSource(ABC):
    """Object detector fed with frames, publishing observation batches."""

    @abstractmethod
    def initialize(self, model_name: str) -> None:
        """Load (or switch to) the named detection model."""

    def set_confidence_threshold(self, threshold: float) -> None:
        pass

    @abstractmethod
    def process_frame(self, frame: CameraFrame) -> None:
        """Submit a frame; results arrive on detections_stream()."""

    @abstractmethod
    def detections_stream(self) -> AsyncIterator[List[ObjectObservation]]:
        """
        Async sequence of observation batches, in arrival order.
        Raising from the iterator means the stream failed.
        """


class TextRecognizer(ABC):
    """OCR engine fed with frames, publishing recognised text batches."""

    def set_languages(self, languages: Sequence[str]) -> None:
        pass

    def set_minimum_text_height(self, height: float) -> None:
        pass

    @abstractmethod
    def process_frame(
        self,
        frame: CameraFrame,
        accuracy: TextRecognitionAccuracy = TextRecognitionAccuracy.ACCURATE,
    ) -> None:
        """Submit a frame; results arrive on recognized_text_stream()."""

    @abstractmethod
    def recognized_text_stream(self) -> AsyncIterator[List[TextObservation]]:
        """Async sequence of text observation batches, in arrival order."""


class CameraSource(ABC):
    """Frame provider with torch / zoom control."""

    @abstractmethod
    async def single_frame(self) -> CameraFrame:
        """Pull the next available frame."""

    @abstractmethod
    def frames(self) -> AsyncIterator[CameraFrame]:
        """Continuous frame stream (unthrottled; consumers throttle)."""

    @property
    def torch_available(self) -> bool:
        return False

    def set_torch(self, active: bool, level: float = 1.0) -> bool:
        """Returns True when the torch state actually changed."""
        return False

    def set_zoom(self, factor: float) -> None:
        pass


class SpeechRecognizer(ABC):
    """Speech-to-text engine publishing partial and final transcripts."""

    @abstractmethod
    def start_recognition(self, use_partial_results: bool = True) -> None:
        ...

    @abstractmethod
    def transcripts(self) -> AsyncIterator[Transcript]:
        """
        Async sequence of transcripts for the current recognition run.
        Raising from the iterator means recognition failed.
        """

    @abstractmethod
    def force_finalization(self) -> None:
        ...

    @abstractmethod
    def stop_recognition(self) -> None:
        ...


class FeedbackSink(ABC):
    """
    Haptic + speech output.

    ``suspend_output`` / ``resume_output`` are part of the contract so
    use-cases never need to know which concrete sink they hold.
    """

    @abstractmethod
    def play(self, pattern: HapticPattern, intensity: float) -> None:
        ...

    @abstractmethod
    def announce(self, message: str) -> None:
        """Short system message (may be routed to a screen reader)."""

    @abstractmethod
    def speak(self, text: str) -> None:
        """Long-form text-to-speech."""

    @abstractmethod
    def stop_all(self) -> None:
        """Stop haptics and any utterance in progress."""

    @property
    @abstractmethod
    def is_speaking(self) -> bool:
        ...

    @abstractmethod
    def pause_speaking(self) -> Optional[str]:
        """Stop speaking and return the not-yet-spoken remainder, if any."""

    @abstractmethod
    def suspend_output(self) -> None:
        """Stop everything and ignore further output until resume_output()."""

    @abstractmethod
    def resume_output(self) -> None:
        ...

    @abstractmethod
    def add_speech_finished_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback fired after each utterance; returns an unsubscribe handle."""


class FrameQualityEvaluator(ABC):
    """Scores frame sharpness on a grid of cells."""

    @abstractmethod
    def evaluate(self, frame: CameraFrame) -> Optional[FrameSharpnessData]:
        """None when the frame cannot be evaluated."""


class SettingsStore(ABC):
    """Persistent key-value store for user preferences."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...
