"""
In-process adapters for the collaborator interfaces.

They are driven by asyncio queues instead of real hardware, which makes
them usable for the scripted demo in ``app.main`` and as test doubles.
"""
from __future__ import annotations
import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from domain.enums import HapticPattern, TextRecognitionAccuracy
from domain.interfaces import (
    CameraSource,
    DetectionSource,
    FeedbackSink,
    SettingsStore,
    SpeechRecognizer,
    TextRecognizer,
)
from domain.models import CameraFrame, ObjectObservation, TextObservation, Transcript

logger = logging.getLogger(__name__)

_END = object()


class _BatchQueue:
    """Unbounded queue consumed through an async iterator; ``close()`` ends the iteration."""

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()

    def put(self, item: Any) -> None:
        self._queue.put_nowait(item)

    def close(self) -> None:
        self._queue.put_nowait(_END)

    async def __aiter__(self) -> AsyncIterator[Any]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class QueueDetectionSource(DetectionSource):
    """Detector whose batches are pushed by the caller with ``push()``."""

    def __init__(self) -> None:
        self._batches = _BatchQueue()
        self.model_name: Optional[str] = None
        self.confidence_threshold: Optional[float] = None
        self.frames_seen = 0

    def initialize(self, model_name: str) -> None:
        self.model_name = model_name
        logger.info("Detector model %r loaded", model_name)

    def set_confidence_threshold(self, threshold: float) -> None:
        self.confidence_threshold = threshold

    def process_frame(self, frame: CameraFrame) -> None:
        self.frames_seen += 1

    def push(self, batch: Sequence[ObjectObservation]) -> None:
        self._batches.put(list(batch))

    def fail(self, error: BaseException) -> None:
        self._batches.put(error)

    def close(self) -> None:
        self._batches.close()

    def detections_stream(self) -> AsyncIterator[List[ObjectObservation]]:
        return self._batches.__aiter__()


class QueueTextRecognizer(TextRecognizer):
    """OCR stand-in: batches are pushed with ``push()``; submitted frames are counted."""

    def __init__(self) -> None:
        self._batches = _BatchQueue()
        self.languages: Tuple[str, ...] = ()
        self.minimum_text_height: float = 0.0
        self.submitted: List[Tuple[CameraFrame, TextRecognitionAccuracy]] = []

    def set_languages(self, languages: Sequence[str]) -> None:
        self.languages = tuple(languages)

    def set_minimum_text_height(self, height: float) -> None:
        self.minimum_text_height = height

    def process_frame(
        self,
        frame: CameraFrame,
        accuracy: TextRecognitionAccuracy = TextRecognitionAccuracy.ACCURATE,
    ) -> None:
        self.submitted.append((frame, accuracy))

    def push(self, batch: Sequence[TextObservation]) -> None:
        self._batches.put(list(batch))

    def fail(self, error: BaseException) -> None:
        self._batches.put(error)

    def close(self) -> None:
        self._batches.close()

    def recognized_text_stream(self) -> AsyncIterator[List[TextObservation]]:
        return self._batches.__aiter__()


class QueueSpeechRecognizer(SpeechRecognizer):
    """
    Speech-to-text stand-in. Transcripts queued with ``say()`` are
    delivered to the next recognition run.
    """

    def __init__(self) -> None:
        self._transcripts = _BatchQueue()
        self.running = False
        self.finalized = 0

    def start_recognition(self, use_partial_results: bool = True) -> None:
        self.running = True

    def say(self, text: str, is_final: bool = False) -> None:
        self._transcripts.put(Transcript(text, is_final))

    def fail(self, error: BaseException) -> None:
        self._transcripts.put(error)

    def transcripts(self) -> AsyncIterator[Transcript]:
        return self._transcripts.__aiter__()

    def force_finalization(self) -> None:
        self.finalized += 1

    def stop_recognition(self) -> None:
        self.running = False


class StaticCamera(CameraSource):
    """Camera returning the same (or a scripted sequence of) images."""

    def __init__(
        self,
        images: Optional[Iterable[Any]] = None,
        interval: float = 1 / 30,
        torch_available: bool = False,
    ) -> None:
        self._images = list(images) if images is not None else [np.zeros((120, 160, 3), np.uint8)]
        self._index = 0
        self._interval = interval
        self._torch_available = torch_available
        self.torch_on = False
        self.torch_level = 0.0
        self.zoom = 1.0

    def _next_image(self) -> Any:
        image = self._images[min(self._index, len(self._images) - 1)]
        self._index += 1
        return image

    async def single_frame(self) -> CameraFrame:
        await asyncio.sleep(0)
        return CameraFrame(self._next_image())

    async def frames(self) -> AsyncIterator[CameraFrame]:
        while True:
            await asyncio.sleep(self._interval)
            yield CameraFrame(self._next_image())

    @property
    def torch_available(self) -> bool:
        return self._torch_available

    def set_torch(self, active: bool, level: float = 1.0) -> bool:
        if not self._torch_available or self.torch_on == active:
            return False
        self.torch_on = active
        self.torch_level = level if active else 0.0
        return True

    def set_zoom(self, factor: float) -> None:
        self.zoom = factor


class LoggingFeedbackSink(FeedbackSink):
    """
    Feedback sink that logs and records everything it is asked to do.

    Speech is simulated: ``speak()`` marks the sink as speaking and
    ``finish_speaking()`` (or the optional auto-finish delay) completes
    the utterance and notifies the speech-finished listeners.
    """

    def __init__(self, auto_finish_after: Optional[float] = None) -> None:
        self._auto_finish_after = auto_finish_after
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._suspended = False
        self._speaking: Optional[str] = None
        self._finish_handle: Optional[asyncio.TimerHandle] = None
        self.haptics: List[Tuple[HapticPattern, float]] = []
        self.announcements: List[str] = []
        self.spoken: List[str] = []
        self.stop_count = 0
        self.suspend_count = 0

    # ---- output --------------------------------------------------------
    def play(self, pattern: HapticPattern, intensity: float) -> None:
        if self._suspended:
            return
        logger.debug("Haptic %s @ %.2f", pattern.value, intensity)
        self.haptics.append((pattern, intensity))

    def announce(self, message: str) -> None:
        if self._suspended:
            return
        logger.info("Announce: %s", message)
        self.announcements.append(message)

    def speak(self, text: str) -> None:
        if self._suspended:
            return
        logger.info("Speak: %s", text)
        self.spoken.append(text)
        self._speaking = text
        self._schedule_auto_finish()

    def stop_all(self) -> None:
        self.stop_count += 1
        self._cancel_auto_finish()
        self._speaking = None

    @property
    def is_speaking(self) -> bool:
        return self._speaking is not None

    def pause_speaking(self) -> Optional[str]:
        self._cancel_auto_finish()
        remaining, self._speaking = self._speaking, None
        return remaining

    def suspend_output(self) -> None:
        self.suspend_count += 1
        self.stop_all()
        self._suspended = True

    def resume_output(self) -> None:
        self._suspended = False

    @property
    def suspended(self) -> bool:
        return self._suspended

    # ---- speech completion --------------------------------------------
    def add_speech_finished_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def remove() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return remove

    def finish_speaking(self) -> None:
        """Complete the current utterance and notify listeners."""
        self._cancel_auto_finish()
        if self._speaking is None:
            return
        self._speaking = None
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            callback()

    def _schedule_auto_finish(self) -> None:
        if self._auto_finish_after is None:
            return
        self._cancel_auto_finish()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._finish_handle = loop.call_later(self._auto_finish_after, self.finish_speaking)

    def _cancel_auto_finish(self) -> None:
        if self._finish_handle is not None:
            self._finish_handle.cancel()
            self._finish_handle = None


class InMemorySettingsStore(SettingsStore):
    """Dictionary-backed settings store."""

    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = dict(values or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
