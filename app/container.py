"""
Composition root: builds the shared application services and wires
every use-case with explicit constructor injection.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from app.config import AppConfig, default_config
from core.item_catalog import DEFAULT_ITEMS, ItemCatalog
from core.lifecycle import EventBus, FeatureRegistry, StopController
from core.query_acquisition import ItemQueryAcquirer, TextQueryAcquirer
from domain.interfaces import (
    CameraSource,
    DetectionSource,
    FeedbackSink,
    FrameQualityEvaluator,
    SettingsStore,
    SpeechRecognizer,
    TextRecognizer,
)
from domain.phrases import AlignmentPhrases, Announcements
from usecases.read_text import ReadTextUseCase
from usecases.search_item import SearchItemUseCase
from usecases.search_text import SearchTextUseCase


@dataclass
class AppContext:
    """Application-wide services shared by all features."""
    settings: SettingsStore
    config: AppConfig = field(default_factory=lambda: default_config)
    events: EventBus = field(default_factory=EventBus)
    registry: FeatureRegistry = field(default_factory=FeatureRegistry)
    stop_controller: Optional[StopController] = None
    phrases: AlignmentPhrases = field(default_factory=AlignmentPhrases)
    announcements: Announcements = field(default_factory=Announcements)

    def __post_init__(self) -> None:
        self.config.validate()
        if self.stop_controller is None:
            self.stop_controller = StopController(self.registry)


@dataclass
class Adapters:
    """Platform collaborators (camera, detector, OCR, speech, output)."""
    camera: CameraSource
    detector: DetectionSource
    text_recognizer: TextRecognizer
    speech: SpeechRecognizer
    feedback: FeedbackSink
    quality: FrameQualityEvaluator


@dataclass
class UseCases:
    search_item: SearchItemUseCase
    search_text: SearchTextUseCase
    read_text: ReadTextUseCase


def build_use_cases(
    context: AppContext,
    adapters: Adapters,
    catalog: Optional[ItemCatalog] = None,
) -> UseCases:
    catalog = catalog or ItemCatalog(DEFAULT_ITEMS)
    shared = dict(
        settings=context.settings,
        config=context.config,
        events=context.events,
        registry=context.registry,
        stop_controller=context.stop_controller,
    )

    search_item = SearchItemUseCase(
        camera=adapters.camera,
        detector=adapters.detector,
        feedback=adapters.feedback,
        query_acquirer=ItemQueryAcquirer(
            adapters.speech,
            catalog,
            adapters.feedback,
            context.announcements.await_object_name,
        ),
        catalog=catalog,
        phrases=context.phrases,
        announcements=context.announcements,
        **shared,
    )
    search_text = SearchTextUseCase(
        camera=adapters.camera,
        recognizer=adapters.text_recognizer,
        feedback=adapters.feedback,
        query_acquirer=TextQueryAcquirer(adapters.speech, context.config.trailing_silence),
        phrases=context.phrases,
        announcements=context.announcements,
        **shared,
    )
    read_text = ReadTextUseCase(
        camera=adapters.camera,
        recognizer=adapters.text_recognizer,
        quality=adapters.quality,
        feedback=adapters.feedback,
        announcements=context.announcements,
        **shared,
    )
    return UseCases(search_item=search_item, search_text=search_text, read_text=read_text)
