"""
Sentence grouping for the reading flow.

Recognised text blocks (usually lines) are either read one by one or
joined and re-split into sentences on terminal punctuation.
"""
from __future__ import annotations
import re
import statistics
from typing import List, Optional, Sequence

from domain.enums import NavigationType
from domain.models import Sentence, TextBlock, TextObservation

SENTENCE_ENDERS = frozenset(".!?。！？")

# Normalised vertical distance between blocks treated as a section break
VERTICAL_GAP_THRESHOLD = 0.02

COMMON_ABBREVIATIONS = frozenset({
    "Mr.", "Dr.", "Mrs.", "Ms.", "Prof.", "Inc.", "Ltd.", "Co.", "etc.", "vs.", "Jr.", "Sr.",
})

_SINGLE_CAPITAL = re.compile(r"\b[A-Z]\b")


def group_into_sentences(blocks: Sequence[TextBlock], navigation: NavigationType) -> List[Sentence]:
    """
    ``blocks`` must already be ordered top-to-bottom.

    LINES     -> one sentence per block
    SENTENCES -> blocks joined and split on terminal punctuation
    """
    if not blocks:
        return []

    if navigation is NavigationType.LINES:
        return [Sentence(block.text, i, i) for i, block in enumerate(blocks)]

    combined = ""
    previous: Optional[TextBlock] = None
    for block in blocks:
        text = block.text.strip()
        if not text:
            continue
        if previous is not None:
            gap = abs(previous.box.min_y - block.box.max_y)
            if gap > VERTICAL_GAP_THRESHOLD:
                if combined and combined[-1] not in SENTENCE_ENDERS:
                    combined += "."
                if not combined.endswith(" "):
                    combined += " "
        if combined and not combined.endswith(" "):
            combined += " "
        combined += text
        previous = block

    last = len(blocks) - 1
    return [Sentence(text, 0, last) for text in split_into_sentences(combined) if text]


def split_into_sentences(text: str) -> List[str]:
    """Split on runs of terminal punctuation, keeping abbreviations attached."""
    text = text.strip()
    if not text:
        return []

    sentences: List[str] = []
    current = ""
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        current += ch
        i += 1
        if ch not in SENTENCE_ENDERS:
            continue

        # swallow "..." / "?!"
        while i < n and text[i] in SENTENCE_ENDERS:
            current += text[i]
            i += 1

        candidate = current.strip()
        last_word = candidate.rsplit(None, 1)[-1] if candidate else ""
        if candidate and not is_likely_abbreviation(last_word):
            sentences.append(candidate)
            current = ""

        while i < n and text[i].isspace():
            if current:
                current += " "
            i += 1

    remaining = current.strip()
    if remaining:
        sentences.append(remaining)
    return sentences


def is_likely_abbreviation(text: str) -> bool:
    text = text.strip()
    if text.endswith(".") and len(text) <= 5 and any(ch.isupper() for ch in text):
        return True
    return text in COMMON_ABBREVIATIONS


def convert_text_for_speech(text: str) -> str:
    """
    Tweak text for TTS: guillemets become commas and a lone capital
    letter is spelled as `` x,``.
    """
    converted = text.replace("«", ",").replace("»", ",")
    converted = _SINGLE_CAPITAL.sub(lambda m: f" {m.group(0).lower()},", converted)
    converted = converted.replace("  ", " ").replace(",,", ",")
    return converted.strip()


def median_confidence(observations: Sequence[TextObservation]) -> Optional[float]:
    """Upper median of the observation confidences, None when empty."""
    if not observations:
        return None
    return statistics.median_high(o.confidence for o in observations)


def blocks_top_to_bottom(observations: Sequence[TextObservation]) -> List[TextBlock]:
    ordered = sorted(observations, key=lambda o: o.box.max_y, reverse=True)
    return [TextBlock.from_observation(o) for o in ordered]
