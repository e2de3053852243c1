"""
SearchItemUseCase — find a physical object by name.

The user says an object name (or the caller supplies one), the name is
resolved against the item catalogue, the matching detector model is
loaded and every detection batch is turned into guidance towards the
detected object nearest to the frame centre.
"""
from __future__ import annotations
import asyncio
import logging
from typing import AsyncIterator, Optional, Sequence, Tuple

from app.config import AppConfig, SettingsKeys
from core.item_catalog import ItemCatalog
from core.lifecycle import EventBus, FeatureRegistry, StopController
from core.query_acquisition import QueryAcquirer
from domain.enums import SearchType
from domain.interfaces import CameraSource, DetectionSource, FeedbackSink, SettingsStore
from domain.models import CameraFrame, CatalogItem, ObjectObservation, SearchState
from domain.phrases import AlignmentPhrases, Announcements
from usecases.base import BaseSearchUseCase

logger = logging.getLogger(__name__)


class SearchItemUseCase(BaseSearchUseCase[ObjectObservation]):
    """
    Parameters
    ----------
    camera : CameraSource
    detector : DetectionSource
    feedback : FeedbackSink
    query_acquirer : QueryAcquirer
        Usually an ItemQueryAcquirer bound to the same catalogue.
    catalog : ItemCatalog
    settings, config, events, registry, stop_controller
        Shared application services.
    """

    NAME = "SearchItem"
    SEARCH_TYPE = SearchType.OBJECT
    TORCH_SETTING = SettingsKeys.ITEM_SEARCH_FLASHLIGHT
    AUTO_OFF_SETTING = SettingsKeys.ITEM_SEARCH_AUTO_OFF

    def __init__(
        self,
        *,
        camera: CameraSource,
        detector: DetectionSource,
        feedback: FeedbackSink,
        query_acquirer: QueryAcquirer,
        catalog: ItemCatalog,
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
            prediction_parameters=config.item_prediction,
            speech_timeout=config.item_speech_timeout,
            settings=settings,
            config=config,
            events=events,
            registry=registry,
            stop_controller=stop_controller,
            phrases=phrases,
            announcements=announcements,
            label="search-item.state",
        )
        self._detector = detector
        self._catalog = catalog
        self._item: Optional[CatalogItem] = None

    @property
    def current_item(self) -> Optional[CatalogItem]:
        return self._item

    def start_with_item(self, name: str) -> None:
        """Skip listening and search directly for ``name``."""
        if self.is_running:
            logger.info("%s already running, start ignored", self.name)
            return
        self._prepare_session()
        self._announce_started()
        self._process_query(name)

    # ---- query ---------------------------------------------------------
    def _process_query(self, text: str) -> None:
        if not self._orchestrator.transition(SearchState.processing_speech(text)):
            return
        item = self._catalog.resolve(text)
        if item is None:
            logger.info("No catalogue item for %r", text)
            self._finish_unresolved(self._announcements.object_not_supported)
            return
        self._item = item
        self._begin_announcing(
            item.class_name, self._announcements.item_search_prefix + item.display_name
        )

    async def _prepare_target(self, target: str) -> None:
        model = self._item.model_name if self._item is not None else self._config.default_model
        await asyncio.to_thread(self._detector.initialize, model)
        self._detector.set_confidence_threshold(self._config.detector_confidence)
        logger.info("Detector ready: model=%s target=%s", model, target)

    # ---- detection -----------------------------------------------------
    def _submit_frame(self, frame: CameraFrame) -> None:
        self._detector.process_frame(frame)

    def _batches(self) -> AsyncIterator[Sequence[ObjectObservation]]:
        return self._detector.detections_stream()

    def _matches(self, observation: ObjectObservation, target: str) -> bool:
        return observation.label == target

    def _target_centre(self, observation: ObjectObservation, target: str) -> Tuple[float, float]:
        return observation.box.center

    def _auto_off_phrase(self) -> str:
        return self._announcements.item_search_auto_off
