from enum import Enum


class HapticPattern(str, Enum):
    """Discrete haptic patterns emitted by the feedback policy."""
    DOT_PAUSE      = "dot_pause"        # move left
    DASH_PAUSE     = "dash_pause"       # move right
    DOT_DASH_PAUSE = "dot_dash_pause"   # move up
    DASH_DOT_PAUSE = "dash_dot_pause"   # move down
    CONTINUOUS     = "continuous"       # target centred
    NONE           = "none"


class SearchType(str, Enum):
    OBJECT = "object"
    TEXT   = "text"


class NavigationType(str, Enum):
    """How recognised text is split for spoken navigation."""
    LINES     = "lines"
    SENTENCES = "sentences"


class TextRecognitionAccuracy(str, Enum):
    FAST     = "fast"
    ACCURATE = "accurate"


class SearchPhase(str, Enum):
    """Lifecycle phases shared by item and text search."""
    IDLE              = "idle"
    LISTENING         = "listening"
    PROCESSING_SPEECH = "processing_speech"
    ANNOUNCING        = "announcing"
    SEARCHING         = "searching"


class ReadingState(str, Enum):
    IDLE        = "idle"
    CAPTURING   = "capturing"
    RECOGNIZING = "recognizing"
    PROCESSED   = "processed"
    PAUSED      = "paused"


class DomainEventType(str, Enum):
    """Events broadcast on the application event bus."""
    ERROR            = "error"
    FEATURE_STARTED  = "feature_started"
    FEATURE_STOPPED  = "feature_stopped"
