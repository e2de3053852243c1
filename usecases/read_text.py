"""
ReadTextUseCase — capture a sharp frame of a page, recognise its text
and read it aloud sentence by sentence (or line by line).

Flow:  CAPTURING -> RECOGNIZING -> PROCESSED <-> PAUSED

* Capturing keeps a small buffer of candidate frames and relaxes the
  sharp-cell requirement after every failed round, so a frame is always
  chosen eventually.
* Recognition results with a low median confidence send the session back
  to capturing.
* When page mode is on, only the central text cluster is read.
"""
from __future__ import annotations
import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from app.config import AppConfig, SettingsKeys
from core.auto_off import AutoOffTimer
from core.broadcast import ValueChannel
from core.lifecycle import EventBus, FeatureRegistry, StopController
from core.operation_bag import Disposable
from core.sentences import (
    blocks_top_to_bottom,
    convert_text_for_speech,
    group_into_sentences,
    median_confidence,
)
from core.session_orchestrator import SessionOrchestrator
from core.text_cluster import CentralTextClusterDetector
from core.text_grid import TextGrid
from domain.enums import HapticPattern, NavigationType, ReadingState, TextRecognitionAccuracy
from domain.interfaces import (
    CameraSource,
    FeedbackSink,
    FrameQualityEvaluator,
    SettingsStore,
    TextRecognizer,
)
from domain.models import (
    BoundingQuad,
    CameraFrame,
    FrameSharpnessData,
    Sentence,
    TextBlock,
    TextObservation,
)
from domain.phrases import Announcements
from usecases.base import LoopBoundFeature

logger = logging.getLogger(__name__)

READING_TRANSITIONS = frozenset({
    (ReadingState.IDLE, ReadingState.CAPTURING),
    (ReadingState.CAPTURING, ReadingState.RECOGNIZING),
    (ReadingState.CAPTURING, ReadingState.IDLE),
    (ReadingState.RECOGNIZING, ReadingState.PROCESSED),
    (ReadingState.RECOGNIZING, ReadingState.IDLE),
    (ReadingState.RECOGNIZING, ReadingState.CAPTURING),
    (ReadingState.PROCESSED, ReadingState.IDLE),
    (ReadingState.PROCESSED, ReadingState.CAPTURING),
    (ReadingState.PROCESSED, ReadingState.PAUSED),
    (ReadingState.PAUSED, ReadingState.PROCESSED),
    (ReadingState.PAUSED, ReadingState.IDLE),
})

# How long the central cluster overlay stays visible
CLUSTER_OVERLAY_SECONDS = 2.0


def reading_transition_allowed(from_state: ReadingState, to_state: ReadingState) -> bool:
    return (from_state, to_state) in READING_TRANSITIONS


class ReadTextUseCase(LoopBoundFeature):
    """
    Parameters
    ----------
    camera : CameraSource
    recognizer : TextRecognizer
    quality : FrameQualityEvaluator
        Scores candidate frames; runs in a worker thread.
    feedback : FeedbackSink
    settings, config, events, registry, stop_controller
        Shared application services.
    cluster_debug : bool
        Keep capturing and only refresh the cluster overlay (no speech).
    """

    NAME = "ReadText"

    def __init__(
        self,
        *,
        camera: CameraSource,
        recognizer: TextRecognizer,
        quality: FrameQualityEvaluator,
        feedback: FeedbackSink,
        settings: SettingsStore,
        config: AppConfig,
        events: EventBus,
        registry: FeatureRegistry,
        stop_controller: StopController,
        announcements: Announcements = Announcements(),
        cluster_debug: bool = False,
    ) -> None:
        super().__init__(
            feedback=feedback,
            settings=settings,
            config=config,
            events=events,
            registry=registry,
            stop_controller=stop_controller,
        )
        self._camera = camera
        self._recognizer = recognizer
        self._quality = quality
        self._announcements = announcements
        self._cluster_debug = cluster_debug

        self._orchestrator: SessionOrchestrator[ReadingState] = SessionOrchestrator(
            ReadingState.IDLE, "read-text.state", reading_transition_allowed
        )
        self._grid = TextGrid(config.grid_size)
        self._navigation_enabled: ValueChannel[bool] = ValueChannel(False)
        self._cluster_channel: ValueChannel[Optional[BoundingQuad]] = ValueChannel(None)
        self._overlay_timer = AutoOffTimer(lambda: self._cluster_channel.send(None))

        self._text_blocks: List[TextBlock] = []
        self._sentences: List[Sentence] = []
        self._current_index = -1
        self._last_navigation_was_rewind = False
        self._has_provided_end_feedback = False
        self._paused_remaining: Optional[str] = None
        self._pending_finish_ignores = 0
        self._central_cluster: Optional[BoundingQuad] = None

        self._candidates: List[Tuple[CameraFrame, FrameSharpnessData]] = []
        self._min_sharp_cells = 0.0
        self._torch: Optional[Disposable] = None
        self._navigation = NavigationType.SENTENCES
        self._use_central_cluster = True

    # ---- observation ---------------------------------------------------
    @property
    def state(self) -> ReadingState:
        return self._orchestrator.state

    @property
    def orchestrator(self) -> SessionOrchestrator[ReadingState]:
        return self._orchestrator

    @property
    def is_running(self) -> bool:
        return self.state is not ReadingState.IDLE

    @property
    def is_paused(self) -> bool:
        return self.state is ReadingState.PAUSED

    @property
    def sentences(self) -> List[Sentence]:
        return list(self._sentences)

    @property
    def current_sentence_index(self) -> int:
        return self._current_index

    @property
    def central_cluster(self) -> Optional[BoundingQuad]:
        return self._central_cluster

    @property
    def navigation_enabled(self) -> ValueChannel[bool]:
        return self._navigation_enabled

    @property
    def central_cluster_channel(self) -> ValueChannel[Optional[BoundingQuad]]:
        return self._cluster_channel

    @property
    def grid(self) -> TextGrid:
        return self._grid

    # ---- FeatureLifecycle ----------------------------------------------
    def start(self) -> None:
        self._start_reading()
        self._announce_started()
        self._registry.feature_state_did_change()

    def pause(self) -> None:
        if self.state is not ReadingState.PROCESSED:
            return
        self._paused_remaining = self._feedback.pause_speaking()
        self._update_pause_state(True)
        self._registry.feature_state_did_change()

    def resume(self) -> None:
        if self.state is not ReadingState.PAUSED:
            return
        self._update_pause_state(False)
        if self._paused_remaining:
            fragment, self._paused_remaining = self._paused_remaining, None
            self._feedback.speak(fragment)
        elif self._last_navigation_was_rewind:
            self._last_navigation_was_rewind = False
            self._speak_at_offset(1)
        else:
            self._speak_current()
        self._registry.feature_state_did_change()

    def stop(self) -> None:
        if not self._stop_reading():
            return
        self._announce_stopped()

    # ---- navigation ----------------------------------------------------
    def speak_next(self) -> None:
        self._leave_pause()
        self._has_provided_end_feedback = False
        self._last_navigation_was_rewind = False
        self._speak_at_offset(1)

    def speak_previous(self) -> None:
        self._leave_pause()
        self._has_provided_end_feedback = False
        self._last_navigation_was_rewind = True
        self._speak_at_offset(-1)

    # ---- session -------------------------------------------------------
    def _start_reading(self) -> None:
        if self.is_running:
            logger.info("Active reading session, restarting")
            self._stop_reading()
        self._bind_loop()
        self._pending_finish_ignores = 0
        self._navigation_enabled.send(False)
        self._feedback.resume_output()
        if not self._orchestrator.transition(ReadingState.CAPTURING):
            return
        self._feedback.speak(self._announcements.read_text_start)

        self._text_blocks = []
        self._sentences = []
        self._current_index = -1
        self._last_navigation_was_rewind = False
        self._has_provided_end_feedback = False
        self._paused_remaining = None

        self._recognizer.set_languages(self._config.recognizer_languages)
        self._recognizer.set_minimum_text_height(self._config.reading_min_text_height)
        self._enable_reading_torch()

        self._min_sharp_cells = 0.0
        self._navigation = (
            NavigationType.LINES
            if self._settings.get(SettingsKeys.READING_NAVIGATION, 1) == 0
            else NavigationType.SENTENCES
        )
        self._use_central_cluster = self._settings.get(SettingsKeys.READING_METHOD, 1) == 1

        self._spawn(self._consume_recognition(self._generation))
        self._spawn(self._capture_loop(self._generation))

    def _stop_reading(self) -> bool:
        if self.state is ReadingState.IDLE:
            logger.debug("Reading already idle, ignoring duplicate stop")
            return False
        self._pending_finish_ignores += 1
        self._feedback.suspend_output()
        self._invalidate_session()
        self._bag.cancel_all()
        self._reset_state()
        return True

    def _reset_state(self) -> None:
        if not self._orchestrator.transition(ReadingState.IDLE):
            logger.debug("Could not reset reading session to idle")
            return
        self._orchestrator.resume()
        self._text_blocks = []
        self._sentences = []
        self._current_index = 0
        self._last_navigation_was_rewind = False
        self._has_provided_end_feedback = False
        self._paused_remaining = None
        self._grid.clear()
        self._central_cluster = None
        self._overlay_timer.cancel()
        self._cluster_channel.send(None)
        self._candidates.clear()
        self._min_sharp_cells = 0.0
        self._release_torch()
        self._navigation_enabled.send(False)

    def _update_pause_state(self, paused: bool) -> None:
        if paused:
            if self._orchestrator.transition(ReadingState.PAUSED):
                self._orchestrator.pause()
        else:
            if self._orchestrator.transition(ReadingState.PROCESSED):
                self._orchestrator.resume()

    def _leave_pause(self) -> None:
        if self.state is ReadingState.PAUSED:
            self._update_pause_state(False)
            self._paused_remaining = None

    def _enable_reading_torch(self) -> None:
        camera = self._camera
        if self._settings.get(SettingsKeys.READING_FLASHLIGHT, 0) != 1 or not camera.torch_available:
            return
        if camera.set_torch(True, self._config.reading_torch_level):
            self._torch = Disposable(lambda: camera.set_torch(False, 0.0))
            self._bag.add(self._torch)

    def _release_torch(self) -> None:
        if self._torch is not None:
            self._torch.cancel()
            self._torch = None

    # ---- capture -------------------------------------------------------
    async def _capture_loop(self, generation: int) -> None:
        try:
            while self._is_current(generation) and self.state is ReadingState.CAPTURING:
                frame = await self._camera.single_frame()
                data = await asyncio.to_thread(self._quality.evaluate, frame)
                if not self._is_current(generation) or self.state is not ReadingState.CAPTURING:
                    return
                if data is not None and self._handle_candidate(frame, data):
                    return
                await asyncio.sleep(self._config.capture_interval)
        except Exception as exc:
            logger.exception("Frame capture failed")
            if self._is_current(generation):
                self._fail(f"Frame capture failed: {exc}")

    def _handle_candidate(self, frame: CameraFrame, data: FrameSharpnessData) -> bool:
        """
        Pick the sharpest frame meeting the current requirement, or buffer
        this one and relax the requirement. Returns True once a frame was
        sent for recognition.
        """
        if self.state is not ReadingState.CAPTURING:
            return False
        if self._min_sharp_cells == 0.0:
            self._min_sharp_cells = max(1.0, data.total_cells / 2.0)
            logger.debug("Sharp-cell requirement initialised to %.1f", self._min_sharp_cells)

        required = self._min_sharp_cells
        best_count = -1
        best: Optional[CameraFrame] = None
        for candidate, candidate_data in self._candidates:
            count = candidate_data.sharp_cell_count
            if count >= required and count > best_count:
                best_count, best = count, candidate
        if data.sharp_cell_count >= required and data.sharp_cell_count > best_count:
            best_count, best = data.sharp_cell_count, frame

        if best is not None:
            logger.info("Frame accepted with %d sharp cells (needed %.1f)", best_count, required)
            self._orchestrator.transition(ReadingState.RECOGNIZING)
            self._recognizer.process_frame(best, TextRecognitionAccuracy.ACCURATE)
            self._candidates.clear()
            self._min_sharp_cells = 0.0
            self._release_torch()
            return True

        if len(self._candidates) < self._config.candidate_buffer_size:
            self._candidates.append((frame, data))
        else:
            worst_index = min(
                range(len(self._candidates)),
                key=lambda i: self._candidates[i][1].sharp_cell_count,
            )
            if self._candidates[worst_index][1].sharp_cell_count < data.sharp_cell_count:
                self._candidates[worst_index] = (frame, data)

        self._min_sharp_cells = max(1.0, required / self._config.sharp_cells_reducing_factor)
        logger.debug(
            "No frame met %.1f sharp cells, relaxing to %.1f", required, self._min_sharp_cells
        )
        return False

    def _restart_capture(self) -> None:
        self._candidates.clear()
        self._min_sharp_cells = 0.0
        self._spawn(self._capture_loop(self._generation))

    # ---- recognition ---------------------------------------------------
    async def _consume_recognition(self, generation: int) -> None:
        try:
            async for observations in self._recognizer.recognized_text_stream():
                if not self._is_current(generation):
                    return
                await self._process_recognition(list(observations), generation)
        except Exception as exc:
            logger.exception("Text recognition stream failed")
            if self._is_current(generation):
                self._fail(f"Text recognition failed: {exc}")

    def _fail(self, message: str) -> None:
        self._report_error(message)
        if self._stop_reading():
            self._announce_stopped()

    async def _process_recognition(self, observations: List[TextObservation], generation: int) -> None:
        if self.state is not ReadingState.RECOGNIZING:
            logger.debug("Ignoring recognition batch in %s", self.state.value)
            return
        logger.debug("Recognised %d observations", len(observations))

        median = median_confidence(observations)
        if median is not None and median < self._config.median_confidence_veto:
            logger.info("Median confidence %.2f below veto, capturing again", median)
            if self._orchestrator.transition(ReadingState.CAPTURING):
                self._restart_capture()
            return

        run_cluster = (
            self._use_central_cluster
            and len(observations) >= self._config.min_observations_for_clustering
        )
        quad: Optional[BoundingQuad] = None
        if run_cluster:
            quad = await asyncio.to_thread(self._detect_cluster, observations)
            if not self._is_current(generation) or self.state is not ReadingState.RECOGNIZING:
                return
        self._central_cluster = quad
        self._cluster_channel.send(quad)
        if quad is not None:
            self._overlay_timer.start(CLUSTER_OVERLAY_SECONDS)
        else:
            self._overlay_timer.cancel()

        kept = filter_to_quad(quad, observations)
        logger.debug("Kept %d of %d observations", len(kept), len(observations))
        self._text_blocks = blocks_top_to_bottom(kept)
        self._sentences = group_into_sentences(self._text_blocks, self._navigation)
        self._navigation_enabled.send(bool(self._sentences))
        self._orchestrator.transition(ReadingState.PROCESSED)

        if self._cluster_debug:
            if self._orchestrator.transition(ReadingState.CAPTURING):
                self._restart_capture()
            return

        if self._feedback.is_speaking:
            await asyncio.sleep(self._config.speech_overlap_delay)
            if not self._is_current(generation) or self.state is not ReadingState.PROCESSED:
                return
        if self._sentences:
            self._current_index = 0
            self._speak_current()
        else:
            self._feedback.play(HapticPattern.CONTINUOUS, 1.0)
            self._feedback.speak(self._announcements.text_not_detected)

    def _detect_cluster(self, observations: Sequence[TextObservation]) -> Optional[BoundingQuad]:
        self._grid.clear()
        self._grid.mark(observations)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Text grid:\n%s", self._grid.render())
        grid: np.ndarray = self._grid.snapshot()
        return CentralTextClusterDetector(grid, self._config.cluster).detect()

    # ---- speech --------------------------------------------------------
    def _speak_at_offset(self, offset: int) -> None:
        if not self._sentences or not self.is_running:
            return
        if self._feedback.is_speaking:
            self._feedback.stop_all()

        index = self._current_index + offset
        if index < 0:
            self._feedback.play(HapticPattern.CONTINUOUS, 1.0)
            self._current_index = 0
            self._has_provided_end_feedback = False
            self._last_navigation_was_rewind = False
        elif index >= len(self._sentences):
            self._feedback.play(HapticPattern.CONTINUOUS, 1.0)
            self._current_index = len(self._sentences) - 1
            self._has_provided_end_feedback = True
            return
        else:
            self._current_index = index
            self._has_provided_end_feedback = False
        self._speak_current()

    def _speak_current(self) -> None:
        if not 0 <= self._current_index < len(self._sentences):
            return
        sentence = self._sentences[self._current_index]
        if not sentence.text:
            return
        text = convert_text_for_speech(sentence.text)
        logger.debug(
            "Speaking %d/%d: %r", self._current_index + 1, len(self._sentences), text
        )
        self._feedback.speak(text)

    def _handle_speech_finished(self) -> None:
        if not self.is_running:
            return
        if self._pending_finish_ignores > 0:
            self._pending_finish_ignores -= 1
            return
        if self._last_navigation_was_rewind:
            self._update_pause_state(True)
            return
        if self._current_index < len(self._sentences) - 1:
            self._current_index += 1
            self._has_provided_end_feedback = False
            self._speak_current()
        elif not self._sentences and self.state is ReadingState.PROCESSED:
            self.stop()
        elif not self._has_provided_end_feedback and self.state is ReadingState.PROCESSED:
            self._feedback.play(HapticPattern.CONTINUOUS, 1.0)
            self._has_provided_end_feedback = True
            self._update_pause_state(True)


def filter_to_quad(
    quad: Optional[BoundingQuad], observations: Sequence[TextObservation]
) -> List[TextObservation]:
    """Observations whose box centre lies inside ``quad`` (all of them without one)."""
    if quad is None:
        return list(observations)
    return [o for o in observations if quad.contains(o.box.center)]
