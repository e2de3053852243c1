"""
SearchTextUseCase — find a word or phrase in the camera view.

Recognised text lines containing the query are matched case-insensitively
and guidance aims at the query occurrence itself, not at the centre of
the whole line.
"""
from __future__ import annotations
import logging
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from app.config import AppConfig, SettingsKeys
from core.lifecycle import EventBus, FeatureRegistry, StopController
from core.query_acquisition import QueryAcquirer
from domain.enums import SearchType, TextRecognitionAccuracy
from domain.interfaces import CameraSource, FeedbackSink, SettingsStore, TextRecognizer
from domain.models import CameraFrame, Point, SearchState, TextObservation
from domain.phrases import AlignmentPhrases, Announcements
from usecases.base import BaseSearchUseCase

logger = logging.getLogger(__name__)

# Minimum recognised text height (fraction of the frame) while searching
SEARCH_MIN_TEXT_HEIGHT = 0.0


def text_query_centre(observation: TextObservation, query: str) -> Point:
    """
    Horizontal position of the ``query`` occurrence inside the line,
    assuming evenly wide characters. With several occurrences the one
    closest to the middle of the box is used; without any, the box centre.
    """
    box = observation.box
    text = observation.text.lower()
    query = query.lower()
    if not text or not query:
        return box.center

    best = None
    start = text.find(query)
    while start != -1:
        mid = (start + start + len(query)) / 2 / len(text)
        if best is None or abs(mid - 0.5) < abs(best - 0.5):
            best = mid
        start = text.find(query, start + 1)
    if best is None:
        return box.center
    return Point(box.min_x + best * box.width, box.center.y)


class SearchTextUseCase(BaseSearchUseCase[TextObservation]):
    """
    Parameters
    ----------
    camera : CameraSource
    recognizer : TextRecognizer
    feedback : FeedbackSink
    query_acquirer : QueryAcquirer
        Usually a TextQueryAcquirer.
    settings, config, events, registry, stop_controller
        Shared application services.
    """

    NAME = "SearchText"
    SEARCH_TYPE = SearchType.TEXT
    TORCH_SETTING = SettingsKeys.TEXT_SEARCH_FLASHLIGHT
    AUTO_OFF_SETTING = SettingsKeys.TEXT_SEARCH_AUTO_OFF

    def __init__(
        self,
        *,
        camera: CameraSource,
        recognizer: TextRecognizer,
        feedback: FeedbackSink,
        query_acquirer: QueryAcquirer,
        settings: SettingsStore,
        config: AppConfig,
        events: EventBus,
        registry: FeatureRegistry,
        stop_controller: StopController,
        phrases: AlignmentPhrases = AlignmentPhrases(),
        announcements: Announcements = Announcements(),
    ) -> None:
        super().__init__(
            camera=camera,
            feedback=feedback,
            query_acquirer=query_acquirer,
            prediction_parameters=config.text_prediction,
            speech_timeout=config.text_speech_timeout,
            settings=settings,
            config=config,
            events=events,
            registry=registry,
            stop_controller=stop_controller,
            phrases=phrases,
            announcements=announcements,
            label="search-text.state",
        )
        self._recognizer = recognizer

    # ---- entry points --------------------------------------------------
    def start_with_text(self, text: str) -> bool:
        """
        Search for typed text. Returns False (and publishes an error
        event) when the text is rejected.
        """
        error = self.validate_query(text)
        if error is not None:
            self._report_error(error)
            return False
        if self.is_running:
            logger.info("%s already running, start ignored", self.name)
            return False
        self._prepare_session()
        self._announce_started()
        self._process_query(text.strip())
        return self.is_running

    def validate_query(self, text: str) -> Optional[str]:
        stripped = text.strip()
        if not stripped:
            return "Search text cannot be empty"
        if len(stripped) > self._config.max_query_length:
            return f"Search text is too long (max {self._config.max_query_length} characters)"
        if not any(ch.isalnum() for ch in stripped):
            return "Search text must contain letters or digits"
        return None

    # ---- recent searches -----------------------------------------------
    def recent_searches(self) -> List[str]:
        return list(self._settings.get(SettingsKeys.RECENT_TEXT_SEARCHES, []) or [])

    def add_recent_search(self, text: str) -> None:
        """Most recent first, without duplicates, capped at max_recent_searches."""
        recent = [t for t in self.recent_searches() if t.lower() != text.lower()]
        recent.insert(0, text)
        self._settings.set(
            SettingsKeys.RECENT_TEXT_SEARCHES, recent[: self._config.max_recent_searches]
        )

    def clear_recent_searches(self) -> None:
        self._settings.set(SettingsKeys.RECENT_TEXT_SEARCHES, [])

    # ---- query ---------------------------------------------------------
    def _process_query(self, text: str) -> None:
        if not self._orchestrator.transition(SearchState.processing_speech(text)):
            return
        query = text.lower().strip()
        if not query:
            self._report_error("No meaningful text provided")
            self._finish_unresolved(self._announcements.text_not_detected)
            return
        self.add_recent_search(query)
        self._begin_announcing(query, self._announcements.text_search_prefix + query)

    async def _prepare_target(self, target: str) -> None:
        self._recognizer.set_languages(self._config.recognizer_languages)
        self._recognizer.set_minimum_text_height(SEARCH_MIN_TEXT_HEIGHT)
        logger.info("Text recogniser ready for %r", target)

    # ---- recognition ---------------------------------------------------
    def _submit_frame(self, frame: CameraFrame) -> None:
        self._recognizer.process_frame(frame, TextRecognitionAccuracy.FAST)

    def _batches(self) -> AsyncIterator[Sequence[TextObservation]]:
        return self._recognizer.recognized_text_stream()

    def _matches(self, observation: TextObservation, target: str) -> bool:
        return target in observation.text.lower()

    def _target_centre(self, observation: TextObservation, target: str) -> Tuple[float, float]:
        return text_query_centre(observation, target)

    def _auto_off_phrase(self) -> str:
        return self._announcements.text_search_auto_off
