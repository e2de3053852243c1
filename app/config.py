from __future__ import annotations
from dataclasses import dataclass, field
from typing import Tuple

from core.prediction import PredictionParameters
from core.text_cluster import ClusterParameters
from domain.exceptions import ConfigError


class SettingsKeys:
    """Keys of the persistent user preferences (SettingsStore)."""
    ITEM_SEARCH_AUTO_OFF    = "settings.itemSearchAutooff"
    TEXT_SEARCH_AUTO_OFF    = "settings.textSearchAutooff"
    READING_NAVIGATION      = "settings.textReadingNavigation"     # 0 = lines, 1 = sentences
    READING_METHOD          = "settings.textReadingMethod"         # 0 = whole frame, 1 = page
    ITEM_SEARCH_FLASHLIGHT  = "settings.itemSearchFlashlight"
    TEXT_SEARCH_FLASHLIGHT  = "settings.textSearchFlashlight"
    READING_FLASHLIGHT      = "settings.textReadingFlashlight"
    RECENT_TEXT_SEARCHES    = "settings.recentTextSearches"


@dataclass
class AppConfig:
    """
    Central configuration injected into all components.
    No scattered module-level constants.
    """
    # ---- camera --------------------------------------------------------
    camera_device: int = 0
    fps_limit: int = 30
    frame_processor_fps: float = 16.0

    # ---- prediction / feedback ----------------------------------------
    item_prediction: PredictionParameters = field(default_factory=PredictionParameters)
    text_prediction: PredictionParameters = field(
        default_factory=lambda: PredictionParameters(conviction_out_no_detect=2)
    )
    haptic_error_intensity: float = 1.0

    # ---- speech --------------------------------------------------------
    item_speech_timeout: float = 7.0
    text_speech_timeout: float = 10.0
    trailing_silence: float = 1.2

    # ---- auto-off (seconds) -------------------------------------------
    auto_off_primary: float = 300.0
    auto_off_secondary: float = 120.0
    default_auto_off_index: int = 1

    # ---- torch levels --------------------------------------------------
    search_torch_level: float = 1.0
    reading_torch_level: float = 0.3

    # ---- object detector ----------------------------------------------
    default_model: str = "default"
    detector_confidence: float = 0.25

    # ---- text search ---------------------------------------------------
    max_query_length: int = 100
    max_recent_searches: int = 10
    recognizer_languages: Tuple[str, ...] = ("en-US",)

    # ---- reading -------------------------------------------------------
    grid_size: int = 60
    sharpness_grid_size: int = 10
    blur_threshold: float = 100.0
    sharp_cells_reducing_factor: float = 1.5
    candidate_buffer_size: int = 3
    capture_interval: float = 0.1
    min_observations_for_clustering: int = 6
    median_confidence_veto: float = 0.4
    reading_min_text_height: float = 0.0
    speech_overlap_delay: float = 1.0
    cluster: ClusterParameters = field(default_factory=ClusterParameters)

    # ---- logging -------------------------------------------------------
    log_level: str = "INFO"
    log_file: str = ""

    def validate(self) -> "AppConfig":
        """Raise ConfigError on values that would break the core."""
        if self.grid_size <= 0 or self.grid_size > 200:
            raise ConfigError(f"grid_size must be in 1..200, got {self.grid_size}")
        if self.sharpness_grid_size <= 0:
            raise ConfigError("sharpness_grid_size must be > 0")
        if self.sharp_cells_reducing_factor <= 1.0:
            raise ConfigError("sharp_cells_reducing_factor must be > 1 so capture always progresses")
        if self.frame_processor_fps <= 0 or self.fps_limit <= 0:
            raise ConfigError("FPS limits must be > 0")
        if self.candidate_buffer_size <= 0:
            raise ConfigError("candidate_buffer_size must be > 0")
        for name in ("item_prediction", "text_prediction"):
            params: PredictionParameters = getattr(self, name)
            if params.conviction_max <= 0 or params.conviction_in_on_detect <= 0:
                raise ConfigError(f"{name}: conviction limits must be > 0")
            if not 0.0 <= params.smooth_factor < 1.0:
                raise ConfigError(f"{name}: smooth_factor must be in [0, 1)")
        if not 0.0 <= self.median_confidence_veto <= 1.0:
            raise ConfigError("median_confidence_veto must be in [0, 1]")
        return self


# Default instance: import and use directly, or override in tests.
default_config = AppConfig()
