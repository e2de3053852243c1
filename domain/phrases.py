"""
User-facing phrases spoken by the core.

Localisation is handled outside the core; adapters construct these
dataclasses with translated strings and inject them.
"""
from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AlignmentPhrases:
    left: str = "left "
    right: str = "right "
    up: str = "up"
    down: str = "down"
    # used when no vertical adjustment is needed
    placeholder: str = ""
    object_centred: str = "object in the centre"
    text_centred: str = "text in the centre"


@dataclass(frozen=True)
class Announcements:
    await_object_name: str = "Say the name of the object"
    item_search_prefix: str = "Searching for "
    object_not_supported: str = "This object is not supported"
    item_search_auto_off: str = "Item search paused after inactivity"
    text_search_prefix: str = "Searching for text "
    text_search_auto_off: str = "Text search paused after inactivity"
    read_text_start: str = "Hold the camera over the text"
    text_not_detected: str = "Text not detected"
