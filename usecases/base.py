"""
Shared plumbing for the user-facing features.

``LoopBoundFeature`` binds a feature to the asyncio loop it was started
on, owns the operation bag and the session generation counter, and
wires the feature into the registry / event bus / stop controller.

``BaseSearchUseCase`` is the common control loop of item and text
search: listen for a query, announce it, then turn every detection
batch into prediction updates and haptic / spoken guidance.
"""
from __future__ import annotations
import asyncio
import logging
from abc import abstractmethod
from typing import (
    Any, AsyncIterator, Callable, Coroutine, Generic, List, Optional, Sequence, Tuple, TypeVar,
)

from app.config import AppConfig
from core.auto_off import AutoOffTimer, auto_off_seconds
from core.feedback_policy import CentreAlignmentEvaluator, CentreAlignmentFeedbackPolicy
from core.frame_processor import ContinuousFrameProcessor
from core.lifecycle import EventBus, FeatureLifecycle, FeatureRegistry, StopController, StopReason
from core.operation_bag import Disposable, OperationBag
from core.prediction import PredictionParameters, PredictionService
from core.query_acquisition import QueryAcquirer
from core.session_orchestrator import SessionOrchestrator
from domain.enums import HapticPattern, SearchPhase, SearchType
from domain.exceptions import AcquisitionError
from domain.interfaces import CameraSource, FeedbackSink, SettingsStore
from domain.models import CameraFrame, DomainEvent, FeedbackDirective, SearchState
from domain.phrases import AlignmentPhrases, Announcements

logger = logging.getLogger(__name__)

O = TypeVar("O")

_SEARCH_TRANSITIONS = frozenset({
    (SearchPhase.IDLE, SearchPhase.LISTENING),
    (SearchPhase.IDLE, SearchPhase.PROCESSING_SPEECH),
    (SearchPhase.LISTENING, SearchPhase.PROCESSING_SPEECH),
    (SearchPhase.PROCESSING_SPEECH, SearchPhase.ANNOUNCING),
    (SearchPhase.ANNOUNCING, SearchPhase.SEARCHING),
    (SearchPhase.PROCESSING_SPEECH, SearchPhase.SEARCHING),
})


def search_transition_allowed(from_state: SearchState, to_state: SearchState) -> bool:
    """Search lifecycle table; going back to IDLE is always legal."""
    if to_state.phase is SearchPhase.IDLE:
        return True
    return (from_state.phase, to_state.phase) in _SEARCH_TRANSITIONS


class LoopBoundFeature(FeatureLifecycle):
    """
    Parameters
    ----------
    feedback : FeedbackSink
    settings : SettingsStore
    config : AppConfig
    events, registry, stop_controller
        Application lifecycle services.
    """

    def __init__(
        self,
        *,
        feedback: FeedbackSink,
        settings: SettingsStore,
        config: AppConfig,
        events: EventBus,
        registry: FeatureRegistry,
        stop_controller: StopController,
    ) -> None:
        self._feedback = feedback
        self._settings = settings
        self._config = config
        self._events = events
        self._registry = registry
        self._bag = OperationBag()
        self._generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._unsubscribers: List[Callable[[], None]] = [
            feedback.add_speech_finished_listener(
                lambda: self._call_soon(self._handle_speech_finished)
            ),
            stop_controller.subscribe(self._on_global_stop),
        ]

    # ---- loop affinity -------------------------------------------------
    def _bind_loop(self) -> None:
        self._loop = asyncio.get_running_loop()

    def _call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn`` on the feature's loop, directly when already on it."""
        loop = self._loop
        if loop is None or loop.is_closed():
            fn(*args)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            fn(*args)
        else:
            loop.call_soon_threadsafe(fn, *args)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Start a task owned by the current session."""
        task = asyncio.get_running_loop().create_task(coro)
        self._bag.add(task)
        task.add_done_callback(self._bag.discard)
        return task

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _invalidate_session(self) -> None:
        self._generation += 1

    # ---- lifecycle bookkeeping -----------------------------------------
    def _announce_started(self) -> None:
        self._registry.register(self)
        self._events.send(DomainEvent.feature_started(self.name))

    def _announce_stopped(self) -> None:
        self._registry.unregister(self)
        self._events.send(DomainEvent.feature_stopped(self.name))

    def _report_error(self, message: str) -> None:
        self._events.send(DomainEvent.error(self.name, message))

    def _on_global_stop(self, reason: StopReason) -> None:
        self._call_soon(self.stop)

    def _enable_torch(self, camera: CameraSource, settings_key: str, level: float) -> None:
        """Switch the torch on when the user asked for it; turned off when the bag drains."""
        if self._settings.get(settings_key, 0) != 1 or not camera.torch_available:
            return
        if camera.set_torch(True, level):
            self._bag.add(Disposable(lambda: camera.set_torch(False, 0.0)))

    def dispose(self) -> None:
        """Detach from the sink and the stop controller (owner is going away)."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    @abstractmethod
    def _handle_speech_finished(self) -> None:
        ...


class BaseSearchUseCase(LoopBoundFeature, Generic[O]):
    """
    Search control loop shared by item and text search.

    Subclasses plug in the query processing (catalogue lookup or text
    validation), the target preparation (model / recogniser setup), the
    batch source and the matching rule.
    """

    SEARCH_TYPE: SearchType = SearchType.OBJECT
    TORCH_SETTING: str = ""
    AUTO_OFF_SETTING: str = ""

    def __init__(
        self,
        *,
        camera: CameraSource,
        feedback: FeedbackSink,
        query_acquirer: QueryAcquirer,
        prediction_parameters: PredictionParameters,
        speech_timeout: float,
        settings: SettingsStore,
        config: AppConfig,
        events: EventBus,
        registry: FeatureRegistry,
        stop_controller: StopController,
        phrases: AlignmentPhrases = AlignmentPhrases(),
        announcements: Announcements = Announcements(),
        label: str = "search",
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
        self._query_acquirer = query_acquirer
        self._speech_timeout = speech_timeout
        self._announcements = announcements

        self._prediction = PredictionService(prediction_parameters)
        self._evaluator = CentreAlignmentEvaluator(prediction_parameters, phrases)
        self._policy = CentreAlignmentFeedbackPolicy(self._evaluator, self.SEARCH_TYPE)
        self._orchestrator: SessionOrchestrator[SearchState] = SessionOrchestrator(
            SearchState.idle(), label, search_transition_allowed
        )
        self._frame_processor = ContinuousFrameProcessor(camera, config.frame_processor_fps)
        self._auto_off = AutoOffTimer(self._handle_auto_off_expired)
        self._stream_task: Optional[asyncio.Task] = None
        self._target: Optional[str] = None
        self._last_directive: Optional[FeedbackDirective] = None

    # ---- observation ---------------------------------------------------
    @property
    def state(self) -> SearchState:
        return self._orchestrator.state

    @property
    def orchestrator(self) -> SessionOrchestrator[SearchState]:
        return self._orchestrator

    @property
    def prediction(self) -> PredictionService:
        return self._prediction

    @property
    def is_running(self) -> bool:
        return self.state.is_active

    @property
    def is_paused(self) -> bool:
        return self._orchestrator.is_paused

    @property
    def last_directive(self) -> Optional[FeedbackDirective]:
        return self._last_directive

    # ---- FeatureLifecycle ----------------------------------------------
    def start(self) -> None:
        """Listen for a spoken query, then search for it."""
        if self.is_running:
            logger.info("%s already running, start ignored", self.name)
            return
        self._prepare_session()
        if not self._orchestrator.transition(SearchState.listening()):
            return
        self._announce_started()
        self._spawn(self._acquire_query(self._generation))

    def pause(self) -> None:
        if self.state.phase is not SearchPhase.SEARCHING or self.is_paused:
            return
        self._camera.set_torch(False, 0.0)
        self._frame_processor.stop()
        self._feedback.stop_all()
        self._cancel_stream()
        self._auto_off.cancel()
        self._orchestrator.pause()
        self._registry.feature_state_did_change()
        logger.info("%s paused on %s", self.name, self.state)

    def resume(self) -> None:
        if self.state.phase is not SearchPhase.SEARCHING or not self.is_paused:
            return
        self._enable_torch(self._camera, self.TORCH_SETTING, self._config.search_torch_level)
        self._start_pipeline()
        self._orchestrator.resume()
        self._registry.feature_state_did_change()
        logger.info("%s resumed on %s", self.name, self.state)

    def stop(self) -> None:
        if not self._stop_search():
            return
        self._announce_stopped()

    # ---- session setup -------------------------------------------------
    def _prepare_session(self) -> None:
        self._bind_loop()
        self._feedback.resume_output()
        self._prediction.reset()
        self._target = None
        self._last_directive = None

    async def _acquire_query(self, generation: int) -> None:
        try:
            text = await self._query_acquirer.acquire_query(self._speech_timeout)
        except AcquisitionError as exc:
            if self._is_current(generation):
                self._abort(str(exc))
            return
        if not self._is_current(generation):
            logger.debug("Dropping query %r from a finished session", text)
            return
        self._process_query(text)

    def _begin_announcing(self, target: str, announcement: str) -> None:
        """Speak what is being searched for and prepare the target in the background."""
        self._query_acquirer.cancel()
        self._feedback.speak(announcement)
        if not self._orchestrator.transition(SearchState.announcing()):
            return
        self._spawn(self._activate(target, self._generation))

    async def _activate(self, target: str, generation: int) -> None:
        try:
            await self._prepare_target(target)
        except Exception as exc:
            logger.exception("Preparing %r failed", target)
            if self._is_current(generation):
                self._abort(f"Could not prepare search for {target}: {exc}")
            return
        phase = self.state.phase
        if not self._is_current(generation) or phase not in (
            SearchPhase.PROCESSING_SPEECH, SearchPhase.ANNOUNCING
        ):
            logger.info("Search for %r abandoned while preparing (%s)", target, phase.value)
            return
        self._target = target
        self._enter_searching()

    def _enter_searching(self) -> bool:
        if self._target is None:
            return False
        if not self._orchestrator.transition(SearchState.searching(self._target)):
            return False
        self._orchestrator.resume()
        self._enable_torch(self._camera, self.TORCH_SETTING, self._config.search_torch_level)
        self._start_pipeline()
        self._registry.feature_state_did_change()
        return True

    def _handle_speech_finished(self) -> None:
        if self.state.phase is SearchPhase.ANNOUNCING and self._target is not None:
            self._enter_searching()

    # ---- detection pipeline --------------------------------------------
    def _start_pipeline(self) -> None:
        generation = self._generation
        self._frame_processor.start(
            self._submit_frame, lambda exc: self._handle_camera_failure(exc, generation)
        )
        self._cancel_stream()
        self._stream_task = self._spawn(self._consume_batches(generation))
        self._start_auto_off()

    def _cancel_stream(self) -> None:
        if self._stream_task is not None:
            self._stream_task.cancel()
            self._stream_task = None

    def _handle_camera_failure(self, exc: Exception, generation: int) -> None:
        if self._is_current(generation):
            self._abort(f"Camera stream failed: {exc}")

    async def _consume_batches(self, generation: int) -> None:
        try:
            async for batch in self._batches():
                if not self._is_current(generation):
                    return
                self._apply_matches(batch)
        except Exception as exc:
            logger.exception("%s detection stream failed", self.name)
            if self._is_current(generation):
                self._abort(f"Detection stream failed: {exc}")
            return
        logger.info("%s detection stream ended", self.name)

    def _apply_matches(self, batch: Sequence[O]) -> Optional[FeedbackDirective]:
        """
        Feed one detection batch through prediction and the feedback policy.
        Batches arriving outside an unpaused SEARCHING state are ignored.
        """
        state = self.state
        if state.phase is not SearchPhase.SEARCHING or self.is_paused:
            logger.debug("Ignoring batch in %s (paused=%s)", state, self.is_paused)
            return None
        target = state.payload
        matches = [o for o in batch if self._matches(o, target)]
        if not matches:
            self._prediction.register_miss()
        else:
            nearest = self._evaluator.nearest_to_centre(
                matches, lambda o: self._target_centre(o, target)
            )
            self._prediction.register_hit(self._target_centre(nearest, target))
        self._prediction.clamp_detection_conviction()
        return self._emit_feedback()

    def _emit_feedback(self) -> Optional[FeedbackDirective]:
        if not self._prediction.is_confident:
            if not self._feedback.is_speaking:
                self._feedback.stop_all()
            return None
        directive = self._policy.feedback(self._prediction.feedback_point(), self._feedback)
        self._feedback.play(directive.pattern, directive.intensity)
        if directive.phrase and not self._feedback.is_speaking:
            self._feedback.announce(directive.phrase)
        self._last_directive = directive
        return directive

    # ---- auto-off ------------------------------------------------------
    def _start_auto_off(self) -> None:
        index = self._settings.get(self.AUTO_OFF_SETTING, self._config.default_auto_off_index)
        seconds = auto_off_seconds(
            int(index), self._config.auto_off_primary, self._config.auto_off_secondary
        )
        if seconds is None:
            return
        self._auto_off.start(seconds)

    def _handle_auto_off_expired(self) -> None:
        if self.state.phase is not SearchPhase.SEARCHING:
            return
        self._feedback.announce(self._auto_off_phrase())
        self._feedback.play(HapticPattern.DASH_PAUSE, self._config.haptic_error_intensity)
        self.pause()

    # ---- teardown ------------------------------------------------------
    def _stop_search(self) -> bool:
        """Tear the session down. Returns False when there was nothing to stop."""
        if self.state.phase is SearchPhase.IDLE:
            logger.debug("%s already idle, nothing to stop", self.name)
            return False
        self._invalidate_session()
        self._orchestrator.transition(SearchState.idle())
        cancelled = self._bag.cancel_all()
        self._stream_task = None
        self._frame_processor.stop()
        self._feedback.suspend_output()
        self._prediction.reset()
        self._orchestrator.resume()
        self._query_acquirer.cancel()
        self._auto_off.cancel()
        self._target = None
        logger.info("%s stopped (%d pending operations cancelled)", self.name, cancelled)
        return True

    def _finish_unresolved(self, announcement: str) -> None:
        """The query led nowhere: say so and end the session."""
        self._invalidate_session()
        self._orchestrator.transition(SearchState.idle())
        self._bag.cancel_all()
        self._query_acquirer.cancel()
        self._feedback.announce(announcement)
        self._announce_stopped()

    def _abort(self, message: str) -> None:
        self._report_error(message)
        if self._stop_search():
            self._announce_stopped()

    # ---- subclass hooks ------------------------------------------------
    @abstractmethod
    def _process_query(self, text: str) -> None:
        """Turn the recognised query into a target (or give up)."""

    async def _prepare_target(self, target: str) -> None:
        pass

    @abstractmethod
    def _submit_frame(self, frame: CameraFrame) -> None:
        ...

    @abstractmethod
    def _batches(self) -> AsyncIterator[Sequence[O]]:
        ...

    @abstractmethod
    def _matches(self, observation: O, target: str) -> bool:
        ...

    @abstractmethod
    def _target_centre(self, observation: O, target: str) -> Tuple[float, float]:
        ...

    @abstractmethod
    def _auto_off_phrase(self) -> str:
        ...
