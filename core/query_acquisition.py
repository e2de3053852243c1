"""
Query acquisition — waits on the speech-to-text stream for what the
user wants to find.

Timeouts degrade gracefully: when time runs out the best partial result
is returned instead of failing. Only a failing recogniser raises
(AcquisitionError).
"""
from __future__ import annotations
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from core.item_catalog import ItemCatalog
from domain.exceptions import AcquisitionError
from domain.interfaces import FeedbackSink, SpeechRecognizer
from domain.models import Transcript

logger = logging.getLogger(__name__)


class QueryAcquirer(ABC):

    @abstractmethod
    async def acquire_query(self, timeout: float) -> str:
        """Listen until a query is recognised or ``timeout`` seconds elapse (0 = no limit)."""

    @abstractmethod
    def cancel(self) -> None:
        ...

    @abstractmethod
    def force_finalization(self) -> None:
        ...


class _SpeechQueryAcquirer(QueryAcquirer):
    """Shared plumbing: start recognition, apply the timeout, wrap recogniser errors."""

    def __init__(self, recognizer: SpeechRecognizer) -> None:
        self._recognizer = recognizer

    async def acquire_query(self, timeout: float) -> str:
        self._begin()
        self._recognizer.start_recognition(use_partial_results=True)
        try:
            if timeout > 0:
                return await asyncio.wait_for(self._listen(self._recognizer.transcripts()), timeout)
            return await self._listen(self._recognizer.transcripts())
        except asyncio.TimeoutError:
            self._recognizer.force_finalization()
            result = self._fallback()
            logger.info("Query acquisition timed out, using %r", result)
            return result
        except asyncio.CancelledError:
            raise
        except AcquisitionError:
            raise
        except Exception as exc:
            raise AcquisitionError(f"Speech recognition error: {exc}") from exc

    def cancel(self) -> None:
        self._recognizer.stop_recognition()

    def force_finalization(self) -> None:
        self._recognizer.force_finalization()

    # ---- hooks ---------------------------------------------------------
    def _begin(self) -> None:
        pass

    @abstractmethod
    async def _listen(self, transcripts: AsyncIterator[Transcript]) -> str:
        ...

    @abstractmethod
    def _fallback(self) -> str:
        ...


class TextQueryAcquirer(_SpeechQueryAcquirer):
    """
    Free-text query. After the first non-empty partial, a trailing
    silence of ``trailing_silence`` seconds finalises the utterance.

    Parameters
    ----------
    recognizer : SpeechRecognizer
    trailing_silence : float
    """

    def __init__(self, recognizer: SpeechRecognizer, trailing_silence: float = 1.2) -> None:
        super().__init__(recognizer)
        self._trailing_silence = trailing_silence
        self._latest = ""

    @property
    def latest_transcript(self) -> str:
        return self._latest

    def _begin(self) -> None:
        self._latest = ""

    def _fallback(self) -> str:
        return self._latest

    async def _listen(self, transcripts: AsyncIterator[Transcript]) -> str:
        stream = transcripts.__aiter__()
        while True:
            wait = self._trailing_silence if self._latest else None
            try:
                transcript = await asyncio.wait_for(stream.__anext__(), wait)
            except asyncio.TimeoutError:
                logger.debug("Trailing silence reached, finalising %r", self._latest)
                self._recognizer.force_finalization()
                return self._latest
            except StopAsyncIteration:
                return self._latest

            text = transcript.text.strip()
            if not text:
                continue
            self._latest = text
            if transcript.is_final:
                return text


class ItemQueryAcquirer(_SpeechQueryAcquirer):
    """
    Listens for a catalogue item name. An unambiguous match finishes
    immediately; an ambiguous one ("cell" while "cell phone" exists) is
    kept as provisional and returned on timeout.

    Parameters
    ----------
    recognizer : SpeechRecognizer
    catalog : ItemCatalog
    feedback : FeedbackSink, optional
        Used to prompt the user for an object name.
    prompt : str
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        catalog: ItemCatalog,
        feedback: Optional[FeedbackSink] = None,
        prompt: str = "",
    ) -> None:
        super().__init__(recognizer)
        self._catalog = catalog
        self._feedback = feedback
        self._prompt = prompt
        self._names: List[str] = []
        self._provisional: Optional[str] = None

    def _begin(self) -> None:
        self._names = self._catalog.all_names()
        self._provisional = None
        if self._feedback is not None and self._prompt:
            self._feedback.announce(self._prompt)

    def _fallback(self) -> str:
        return self._provisional or ""

    async def _listen(self, transcripts: AsyncIterator[Transcript]) -> str:
        async for transcript in transcripts:
            match = self.definitive_match(transcript.text)
            if match is not None:
                self._recognizer.force_finalization()
                return match
        return self._fallback()

    def definitive_match(self, text: str) -> Optional[str]:
        """
        Longest name heard in ``text`` that is not the prefix of a longer
        name the user may still be saying. Ambiguous hits become provisional.
        """
        lower = text.lower()
        matches = sorted((n for n in self._names if n in lower), key=len, reverse=True)
        if not matches:
            return None
        for candidate in matches:
            longer_unspoken = any(
                other != candidate and candidate in other and other not in lower
                for other in self._names
            )
            if not longer_unspoken:
                return candidate
        self._provisional = matches[0]
        return None
