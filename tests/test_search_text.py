"""Tests for SearchTextUseCase: query validation, recent searches and guidance."""
import pytest

from domain.enums import DomainEventType, HapticPattern, SearchPhase, TextRecognitionAccuracy
from domain.models import Rect, TextObservation
from usecases.search_text import text_query_centre


class TestQueryCentre:
    """Test suite for locating the query inside a recognised line."""

    def test_single_occurrence(self):
        observation = TextObservation("emergency exit", Rect(0.2, 0.4, 0.4, 0.1))

        x, y = text_query_centre(observation, "exit")

        assert x == pytest.approx(0.2 + 0.4 * 12 / 14)
        assert y == pytest.approx(0.45)

    def test_occurrence_closest_to_the_middle_wins(self):
        observation = TextObservation("ab ab ab", Rect(0.0, 0.0, 0.8, 0.2))

        x, _ = text_query_centre(observation, "AB")

        assert x == pytest.approx(0.4)

    def test_missing_query_falls_back_to_box_centre(self):
        observation = TextObservation("entrance", Rect(0.2, 0.4, 0.4, 0.1))

        assert tuple(text_query_centre(observation, "exit")) == pytest.approx((0.4, 0.45))


class TestValidation:
    """Test suite for typed query validation."""

    @pytest.mark.parametrize("text, message", [
        ("", "Search text cannot be empty"),
        ("   ", "Search text cannot be empty"),
        ("x" * 101, "Search text is too long (max 100 characters)"),
        ("?!...", "Search text must contain letters or digits"),
    ])
    def test_rejected_queries(self, use_cases, text, message):
        assert use_cases.search_text.validate_query(text) == message

    def test_accepted_query(self, use_cases):
        assert use_cases.search_text.validate_query("  Exit 3 ") is None

    @pytest.mark.asyncio
    async def test_rejected_start_reports_error(self, use_cases, events):
        search = use_cases.search_text

        assert search.start_with_text("   ") is False

        assert search.state.phase is SearchPhase.IDLE
        assert [e.type for e in events] == [DomainEventType.ERROR]


class TestRecentSearches:
    """Test suite for the recent search list."""

    def test_newest_first_without_duplicates(self, use_cases):
        search = use_cases.search_text

        search.add_recent_search("exit")
        search.add_recent_search("pharmacy")
        search.add_recent_search("EXIT")

        assert search.recent_searches() == ["EXIT", "pharmacy"]

    def test_list_is_capped(self, use_cases):
        search = use_cases.search_text

        for i in range(15):
            search.add_recent_search(f"query {i}")

        recent = search.recent_searches()
        assert len(recent) == 10
        assert recent[0] == "query 14"

    def test_clear(self, use_cases):
        search = use_cases.search_text
        search.add_recent_search("exit")

        search.clear_recent_searches()

        assert search.recent_searches() == []


class TestSearchTextSession:
    """Test suite for a running text search."""

    @pytest.mark.asyncio
    async def test_typed_query_starts_searching(self, use_cases, recognizer, feedback, wait_until):
        search = use_cases.search_text

        assert search.start_with_text("  Exit ") is True
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        assert search.state.payload == "exit"
        assert feedback.spoken == ["Searching for text exit"]
        assert search.recent_searches() == ["exit"]
        assert recognizer.languages == ("en-US",)

    @pytest.mark.asyncio
    async def test_frames_are_recognised_in_fast_mode(self, use_cases, recognizer, wait_until):
        search = use_cases.search_text
        search.start_with_text("exit")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        await wait_until(lambda: len(recognizer.submitted) > 0)

        assert recognizer.submitted[0][1] is TextRecognitionAccuracy.FAST

    @pytest.mark.asyncio
    async def test_spoken_query(self, use_cases, speech, wait_until):
        search = use_cases.search_text

        search.start()
        speech.say("Pharmacy", is_final=True)
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        assert search.state.payload == "pharmacy"

    @pytest.mark.asyncio
    async def test_silence_ends_with_text_not_detected(self, use_cases, feedback, events, wait_until):
        search = use_cases.search_text

        search.start()
        await wait_until(lambda: search.state.phase is SearchPhase.IDLE)

        assert feedback.announcements[-1] == "Text not detected"
        assert events[-1].type is DomainEventType.FEATURE_STOPPED

    @pytest.mark.asyncio
    async def test_substring_match_guides_towards_the_query(self, use_cases, recognizer, wait_until):
        search = use_cases.search_text
        search.start_with_text("exit")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        recognizer.push([
            TextObservation("Pharmacy", Rect(0.3, 0.45, 0.4, 0.1)),
            TextObservation("Emergency EXIT", Rect(0.3, 0.45, 0.4, 0.1)),
        ])
        await wait_until(lambda: search.last_directive is not None)

        assert search.prediction.smooth_position.x == pytest.approx(0.3 + 0.4 * 12 / 14)
        assert search.last_directive.pattern is HapticPattern.DASH_PAUSE

    @pytest.mark.asyncio
    async def test_text_conviction_drops_faster(self, use_cases, recognizer, wait_until):
        search = use_cases.search_text
        search.start_with_text("exit")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        recognizer.push([TextObservation("exit", Rect(0.45, 0.45, 0.1, 0.1))])
        recognizer.push([])
        await wait_until(lambda: search.prediction.detection_conviction == 2)
