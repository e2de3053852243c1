"""Pytest configuration and shared fixtures for the navigator core.

Use-cases are wired against the in-process adapters from ``app.adapters``
with a configuration tuned for fast tests (short timeouts, no auto-off).
"""
import asyncio
import logging
from dataclasses import replace
from typing import Callable, List, Optional

import pytest

from app.adapters import (
    InMemorySettingsStore,
    LoggingFeedbackSink,
    QueueDetectionSource,
    QueueSpeechRecognizer,
    QueueTextRecognizer,
    StaticCamera,
)
from app.config import AppConfig, SettingsKeys
from app.container import Adapters, AppContext, build_use_cases
from core.lifecycle import EventBus, FeatureRegistry, StopController
from domain.interfaces import FrameQualityEvaluator
from domain.models import CameraFrame, DomainEvent, FrameSharpnessData, Rect


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)


class ScriptedQuality(FrameQualityEvaluator):
    """Returns a 10x10 sharpness grid with a scripted number of sharp cells."""

    def __init__(self, counts: Optional[List[int]] = None, default: int = 80) -> None:
        self._counts = list(counts or [])
        self._default = default
        self.calls = 0

    def script(self, counts: List[int]) -> None:
        self._counts = list(counts)

    def evaluate(self, frame: CameraFrame) -> Optional[FrameSharpnessData]:
        self.calls += 1
        count = self._counts.pop(0) if self._counts else self._default
        cells = [i < count for i in range(100)]
        grid = tuple(tuple(cells[r * 10:(r + 1) * 10]) for r in range(10))
        return FrameSharpnessData(sharpness_grid=grid, sharp_cell_count=count)


@pytest.fixture
def config():
    """Configuration with short timeouts so async tests finish quickly."""
    return AppConfig(
        frame_processor_fps=100.0,
        item_speech_timeout=0.3,
        text_speech_timeout=0.3,
        trailing_silence=0.05,
        capture_interval=0.001,
        speech_overlap_delay=0.01,
    ).validate()


@pytest.fixture
def settings():
    return InMemorySettingsStore({
        SettingsKeys.ITEM_SEARCH_AUTO_OFF: 0,
        SettingsKeys.TEXT_SEARCH_AUTO_OFF: 0,
        SettingsKeys.READING_METHOD: 0,
        SettingsKeys.READING_NAVIGATION: 1,
    })


@pytest.fixture
def feedback():
    return LoggingFeedbackSink()


@pytest.fixture
def detector():
    return QueueDetectionSource()


@pytest.fixture
def recognizer():
    return QueueTextRecognizer()


@pytest.fixture
def speech():
    return QueueSpeechRecognizer()


@pytest.fixture
def camera():
    return StaticCamera(interval=0.005, torch_available=True)


@pytest.fixture
def quality():
    return ScriptedQuality()


@pytest.fixture
def context(settings, config):
    return AppContext(settings=settings, config=config)


@pytest.fixture
def events(context) -> List[DomainEvent]:
    received: List[DomainEvent] = []
    context.events.subscribe(received.append)
    return received


@pytest.fixture
def adapters(camera, detector, recognizer, speech, feedback, quality):
    return Adapters(
        camera=camera,
        detector=detector,
        text_recognizer=recognizer,
        speech=speech,
        feedback=feedback,
        quality=quality,
    )


@pytest.fixture
def use_cases(context, adapters):
    built = build_use_cases(context, adapters)
    yield built
    for use_case in (built.search_item, built.search_text, built.read_text):
        use_case.dispose()


@pytest.fixture
def lifecycle():
    registry = FeatureRegistry()
    return EventBus(), registry, StopController(registry)


@pytest.fixture
def wait_until():
    """Poll ``predicate`` on the running loop until it holds or the timeout expires."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async def _poll() -> None:
            while not predicate():
                await asyncio.sleep(0.005)
        await asyncio.wait_for(_poll(), timeout)

    return _wait


def box_at(cx: float, cy: float, size: float = 0.1) -> Rect:
    """Square box centred on (cx, cy)."""
    return Rect(cx - size / 2, cy - size / 2, size, size)


@pytest.fixture
def make_box():
    return box_at


@pytest.fixture
def fast_auto_off(config):
    return replace(config, auto_off_secondary=0.05)
