"""
main.py — Application entry point.

Runs a scripted item-search session against the in-process adapters:

    StaticCamera → QueueDetectionSource → SearchItemUseCase
          → PredictionService → FeedbackPolicy → LoggingFeedbackSink

A cup drifts from the top-left corner towards the centre of the frame
while the guidance directives are printed.
"""
from __future__ import annotations
import asyncio
import logging
import sys

from app.adapters import (
    InMemorySettingsStore,
    LoggingFeedbackSink,
    QueueDetectionSource,
    QueueSpeechRecognizer,
    QueueTextRecognizer,
    StaticCamera,
)
from app.config import AppConfig, SettingsKeys, default_config
from app.container import Adapters, AppContext, build_use_cases
from app.logging_config import setup_logging
from core.camera import OpenCVCamera
from core.frame_quality import LaplacianSharpnessEvaluator
from domain.enums import SearchPhase
from domain.models import ObjectObservation, Rect

logger = logging.getLogger(__name__)

# (x, y) of the cup's box origin on successive frames
CUP_TRACK = [
    (0.05, 0.75), (0.10, 0.70), (0.15, 0.66), (0.22, 0.62),
    (0.30, 0.58), (0.36, 0.52), (0.40, 0.48), (0.44, 0.45),
]
CUP_SIZE = 0.12


async def _wait_for_phase(use_case, phase: SearchPhase, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while use_case.state.phase is not phase:
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout)


async def demo(config: AppConfig, use_camera: bool = False) -> None:
    camera = OpenCVCamera(config.camera_device, config.fps_limit) if use_camera else StaticCamera()
    feedback = LoggingFeedbackSink(auto_finish_after=0.1)
    detector = QueueDetectionSource()
    adapters = Adapters(
        camera=camera,
        detector=detector,
        text_recognizer=QueueTextRecognizer(),
        speech=QueueSpeechRecognizer(),
        feedback=feedback,
        quality=LaplacianSharpnessEvaluator(config.sharpness_grid_size, config.blur_threshold),
    )
    context = AppContext(
        settings=InMemorySettingsStore({SettingsKeys.ITEM_SEARCH_AUTO_OFF: 0}),
        config=config,
    )
    use_cases = build_use_cases(context, adapters)
    search = use_cases.search_item

    search.start_with_item("mug")
    await _wait_for_phase(search, SearchPhase.SEARCHING)

    for x, y in CUP_TRACK:
        detector.push([ObjectObservation("cup", Rect(x, y, CUP_SIZE, CUP_SIZE), 0.9)])
        await asyncio.sleep(0.05)
        directive = search.last_directive
        if directive is not None:
            print(f"[GUIDE] {directive.pattern.value:<15} {directive.intensity:.2f}  {directive.phrase or ''}")

    context.stop_controller.stop_all()
    search.dispose()
    use_cases.search_text.dispose()
    use_cases.read_text.dispose()
    if isinstance(camera, OpenCVCamera):
        camera.release()


def run(config: AppConfig = default_config, use_camera: bool = False) -> None:
    setup_logging(config.log_level, config.log_file or None)
    print("=" * 55)
    print("  CAMERA NAVIGATOR — scripted item search")
    print("=" * 55)
    print(f"  Frame processor : {config.frame_processor_fps:g} fps")
    print(f"  Centre radius   : {config.item_prediction.center_radius}")
    print(f"  Camera          : {'webcam ' + str(config.camera_device) if use_camera else 'static'}")
    print("=" * 55 + "\n")

    try:
        asyncio.run(demo(config, use_camera))
    finally:
        print("\n✓ Session closed cleanly")


if __name__ == "__main__":
    run(use_camera="--camera" in sys.argv)
