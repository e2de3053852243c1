"""End-to-end tests for SearchItemUseCase against the in-process adapters."""
import asyncio

import pytest

from app.config import SettingsKeys
from app.container import AppContext, build_use_cases
from domain.enums import DomainEventType, HapticPattern, SearchPhase
from domain.models import ObjectObservation


def cup(box, confidence=0.9):
    return ObjectObservation("cup", box, confidence)


def event_types(events):
    return [e.type for e in events]


class TestSearchItemStart:
    """Test suite for starting an item search."""

    @pytest.mark.asyncio
    async def test_start_with_item_reaches_searching(self, use_cases, detector, feedback, events, wait_until):
        search = use_cases.search_item

        search.start_with_item("mug")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        assert search.state.payload == "cup"
        assert search.current_item.display_name == "cup"
        assert feedback.spoken == ["Searching for cup"]
        assert detector.model_name == "default"
        assert detector.confidence_threshold == pytest.approx(0.25)
        assert event_types(events) == [DomainEventType.FEATURE_STARTED]
        assert search.is_running

    @pytest.mark.asyncio
    async def test_unknown_item_is_announced_and_session_ends(self, use_cases, feedback, events):
        search = use_cases.search_item

        search.start_with_item("giraffe")

        assert search.state.phase is SearchPhase.IDLE
        assert feedback.announcements == ["This object is not supported"]
        assert event_types(events) == [
            DomainEventType.FEATURE_STARTED,
            DomainEventType.FEATURE_STOPPED,
        ]

    @pytest.mark.asyncio
    async def test_spoken_query_is_resolved(self, use_cases, speech, feedback, wait_until):
        search = use_cases.search_item

        search.start()
        assert search.state.phase is SearchPhase.LISTENING
        speech.say("find my mug", is_final=True)
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        assert feedback.announcements[0] == "Say the name of the object"
        assert speech.finalized >= 1
        assert not speech.running

    @pytest.mark.asyncio
    async def test_silence_times_out_to_not_supported(self, use_cases, feedback, wait_until):
        search = use_cases.search_item

        search.start()
        await wait_until(lambda: search.state.phase is SearchPhase.IDLE)

        assert feedback.announcements[-1] == "This object is not supported"

    @pytest.mark.asyncio
    async def test_speech_failure_reports_error(self, use_cases, speech, events, wait_until):
        search = use_cases.search_item

        search.start()
        speech.fail(RuntimeError("microphone unavailable"))
        await wait_until(lambda: search.state.phase is SearchPhase.IDLE)

        errors = [e for e in events if e.type is DomainEventType.ERROR]
        assert len(errors) == 1
        assert "microphone unavailable" in errors[0].message
        assert event_types(events)[-1] is DomainEventType.FEATURE_STOPPED


class TestSearchItemGuidance:
    """Test suite for turning detections into guidance."""

    @pytest.mark.asyncio
    async def test_misses_then_hit_gives_first_directive(self, use_cases, detector, feedback, make_box, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        for _ in range(5):
            detector.push([])
        detector.push([cup(make_box(0.2, 0.5))])
        await wait_until(lambda: search.last_directive is not None)

        assert search.prediction.detection_conviction == 4
        assert search.last_directive.pattern is HapticPattern.DOT_PAUSE
        assert feedback.haptics[-1][0] is HapticPattern.DOT_PAUSE

    @pytest.mark.asyncio
    async def test_other_labels_do_not_count(self, use_cases, detector, make_box, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        detector.push([ObjectObservation("bottle", make_box(0.5, 0.5))])
        detector.push([cup(make_box(0.8, 0.5))])
        await wait_until(lambda: search.last_directive is not None)

        assert search.last_directive.pattern is HapticPattern.DASH_PAUSE

    @pytest.mark.asyncio
    async def test_centred_target_plays_continuous_with_phrase(self, use_cases, detector, feedback, make_box, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)
        feedback.finish_speaking()

        detector.push([cup(make_box(0.5, 0.5))])
        await wait_until(lambda: search.last_directive is not None)

        assert search.last_directive.pattern is HapticPattern.CONTINUOUS
        assert search.last_directive.intensity == pytest.approx(1.0)
        assert feedback.announcements[-1] == "object in the centre"

    @pytest.mark.asyncio
    async def test_nearest_match_to_centre_wins(self, use_cases, detector, make_box, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        detector.push([cup(make_box(0.1, 0.5)), cup(make_box(0.55, 0.5))])
        await wait_until(lambda: search.last_directive is not None)

        assert search.prediction.smooth_position.x == pytest.approx(0.55)

    @pytest.mark.asyncio
    async def test_detection_stream_failure_aborts(self, use_cases, detector, events, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        detector.fail(RuntimeError("model crashed"))
        await wait_until(lambda: search.state.phase is SearchPhase.IDLE)

        assert any(e.type is DomainEventType.ERROR for e in events)

    @pytest.mark.asyncio
    async def test_camera_stream_failure_aborts(self, use_cases, camera, events, wait_until):
        opened = []

        async def unplugged():
            opened.append(True)
            await asyncio.sleep(0.01)
            raise RuntimeError("camera unplugged")
            yield

        camera.frames = unplugged
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: opened)
        await wait_until(lambda: search.state.phase is SearchPhase.IDLE)

        errors = [e for e in events if e.type is DomainEventType.ERROR]
        assert len(errors) == 1
        assert "camera unplugged" in errors[0].message
        assert event_types(events)[-1] is DomainEventType.FEATURE_STOPPED
        assert not search.is_running


class TestSearchItemLifecycle:
    """Test suite for pause, resume, stop and auto-off."""

    @pytest.mark.asyncio
    async def test_pause_resume_keeps_prediction(self, use_cases, detector, make_box, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)
        detector.push([cup(make_box(0.3, 0.6))])
        await wait_until(lambda: search.last_directive is not None)
        position = search.prediction.smooth_position
        conviction = search.prediction.detection_conviction

        search.pause()
        assert search.is_paused
        assert search.state.phase is SearchPhase.SEARCHING
        search.resume()

        assert not search.is_paused
        assert search.prediction.smooth_position == position
        assert search.prediction.detection_conviction == conviction

    @pytest.mark.asyncio
    async def test_pause_outside_searching_is_ignored(self, use_cases):
        search = use_cases.search_item
        search.start()

        search.pause()

        assert not search.is_paused
        assert search.state.phase is SearchPhase.LISTENING

    @pytest.mark.asyncio
    async def test_stop_twice_is_idempotent(self, use_cases, feedback, events, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        search.stop()
        search.stop()

        assert search.state.phase is SearchPhase.IDLE
        assert feedback.suspend_count == 1
        assert event_types(events).count(DomainEventType.FEATURE_STOPPED) == 1

    @pytest.mark.asyncio
    async def test_stop_silences_late_detections(self, use_cases, detector, feedback, make_box, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        search.stop()
        detector.push([cup(make_box(0.5, 0.5))])

        assert search.last_directive is None
        assert feedback.haptics == []
        assert feedback.suspended

    @pytest.mark.asyncio
    async def test_global_stop_stops_running_search(self, use_cases, context, events, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        context.stop_controller.stop_all()

        assert search.state.phase is SearchPhase.IDLE
        assert context.registry.running() == []
        assert event_types(events).count(DomainEventType.FEATURE_STOPPED) == 1

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, use_cases, feedback, wait_until):
        search = use_cases.search_item
        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)
        search.stop()

        search.start_with_item("bottle")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)

        assert not feedback.suspended
        assert search.state.payload == "bottle"

    @pytest.mark.asyncio
    async def test_torch_follows_the_session(self, use_cases, settings, camera, wait_until):
        settings.set(SettingsKeys.ITEM_SEARCH_FLASHLIGHT, 1)
        search = use_cases.search_item

        search.start_with_item("cup")
        await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)
        assert camera.torch_on

        search.stop()
        assert not camera.torch_on

    @pytest.mark.asyncio
    async def test_auto_off_pauses_the_search(self, settings, fast_auto_off, adapters, feedback, wait_until):
        settings.set(SettingsKeys.ITEM_SEARCH_AUTO_OFF, 1)
        built = build_use_cases(AppContext(settings=settings, config=fast_auto_off), adapters)
        search = built.search_item
        try:
            search.start_with_item("cup")
            await wait_until(lambda: search.state.phase is SearchPhase.SEARCHING)
            await wait_until(lambda: search.is_paused)

            assert feedback.announcements[-1] == "Item search paused after inactivity"
            assert (HapticPattern.DASH_PAUSE, 1.0) in feedback.haptics
        finally:
            search.stop()
            for use_case in (built.search_item, built.search_text, built.read_text):
                use_case.dispose()
