"""
Application-wide lifecycle services: the feature contract, the event
bus, the registry of running features and the global "stop everything"
controller.

None of these are module-level singletons; one instance of each lives
in the application context and is handed to every use-case.
"""
from __future__ import annotations
import logging
import threading
import weakref
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List

from domain.enums import DomainEventType
from domain.models import DomainEvent

logger = logging.getLogger(__name__)


class FeatureLifecycle(ABC):
    """Contract shared by every user-facing feature."""

    NAME: str = "UNNAMED_FEATURE"

    @abstractmethod
    def start(self) -> None:
        ...

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        ...

    @property
    @abstractmethod
    def is_running(self) -> bool:
        ...

    @property
    def name(self) -> str:
        return self.NAME

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.NAME!r} running={self.is_running}>"


class _Listeners:
    """Thread-safe list of callbacks with unsubscribe handles."""

    def __init__(self) -> None:
        self._items: List[Callable] = []
        self._lock = threading.Lock()

    def add(self, callback: Callable) -> Callable[[], None]:
        with self._lock:
            self._items.append(callback)

        def remove() -> None:
            with self._lock:
                if callback in self._items:
                    self._items.remove(callback)

        return remove

    def snapshot(self) -> List[Callable]:
        with self._lock:
            return list(self._items)


class EventBus:
    """Broadcasts DomainEvents (errors, feature started/stopped) to subscribers."""

    def __init__(self) -> None:
        self._listeners = _Listeners()

    def subscribe(self, callback: Callable[[DomainEvent], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def send(self, event: DomainEvent) -> None:
        if event.type is DomainEventType.ERROR:
            logger.error("[%s] %s", event.feature or "app", event.message)
        else:
            logger.info("Event %s %s", event.type.value, event.feature)
        for callback in self._listeners.snapshot():
            callback(event)


class FeatureRegistry:
    """Weakly tracks registered features and reports which are running."""

    def __init__(self) -> None:
        self._features: "weakref.WeakSet[FeatureLifecycle]" = weakref.WeakSet()
        self._lock = threading.Lock()
        self._listeners = _Listeners()

    def register(self, feature: FeatureLifecycle) -> None:
        with self._lock:
            self._features.add(feature)
        self.feature_state_did_change()

    def unregister(self, feature: FeatureLifecycle) -> None:
        with self._lock:
            self._features.discard(feature)
        self.feature_state_did_change()

    def running(self) -> List[FeatureLifecycle]:
        with self._lock:
            features = list(self._features)
        return [f for f in features if f.is_running]

    def on_change(self, callback: Callable[[List[FeatureLifecycle]], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def feature_state_did_change(self) -> None:
        active = self.running()
        for callback in self._listeners.snapshot():
            callback(active)


class StopReason(str, Enum):
    USER = "user"
    PROGRAMMATIC = "programmatic"


class StopController:
    """Stops every running feature, then tells subscribers it did."""

    def __init__(self, registry: FeatureRegistry) -> None:
        self._registry = registry
        self._listeners = _Listeners()

    def subscribe(self, callback: Callable[[StopReason], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def stop_all(self, reason: StopReason = StopReason.USER) -> None:
        running = self._registry.running()
        logger.info("Stopping all features (%s): %s", reason.value, [f.name for f in running])
        for feature in running:
            feature.stop()
        for callback in self._listeners.snapshot():
            callback(reason)
