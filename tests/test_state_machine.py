"""Unit tests for StateMachine and SessionOrchestrator."""
import asyncio
import logging

import pytest

from core.session_orchestrator import SessionOrchestrator
from core.state_machine import StateMachine
from domain.enums import ReadingState, SearchPhase
from domain.models import SearchState
from usecases.base import search_transition_allowed


ALLOWED = [
    (ReadingState.IDLE, ReadingState.CAPTURING),
    (ReadingState.CAPTURING, ReadingState.RECOGNIZING),
    (ReadingState.RECOGNIZING, ReadingState.IDLE),
]


def table_validator(from_state, to_state):
    return (from_state, to_state) in ALLOWED


class TestStateMachine:
    """Test suite for StateMachine."""

    def test_without_validator_everything_is_allowed(self):
        machine = StateMachine("a")
        assert machine.transition("b")
        assert machine.current() == "b"

    def test_rejected_transition_keeps_state(self):
        machine = StateMachine(ReadingState.IDLE, table_validator)

        assert not machine.transition(ReadingState.PROCESSED)
        assert machine.current() is ReadingState.IDLE

    def test_from_table_allows_listed_pairs_and_reentry(self):
        machine = StateMachine.from_table(ReadingState.IDLE, ALLOWED)

        assert machine.transition(ReadingState.IDLE)
        assert machine.transition(ReadingState.CAPTURING)
        assert not machine.transition(ReadingState.PAUSED)
        assert machine.state is ReadingState.CAPTURING


class TestSessionOrchestrator:
    """Test suite for SessionOrchestrator."""

    def test_same_state_transition_never_broadcasts(self, caplog):
        orchestrator = SessionOrchestrator(ReadingState.IDLE, "test", table_validator)
        seen = []
        orchestrator.subscribe(seen.append)

        with caplog.at_level(logging.DEBUG, logger="core.session_orchestrator"):
            assert not orchestrator.transition(ReadingState.IDLE)

        assert seen == [ReadingState.IDLE]
        assert any("no-op" in r.getMessage() for r in caplog.records)

    def test_accepted_transition_is_broadcast_after_commit(self):
        orchestrator = SessionOrchestrator(ReadingState.IDLE, "test", table_validator)
        seen = []

        def on_state(state):
            seen.append((state, orchestrator.state))

        orchestrator.subscribe(on_state)
        assert orchestrator.transition(ReadingState.CAPTURING)

        assert seen[-1] == (ReadingState.CAPTURING, ReadingState.CAPTURING)

    def test_rejected_transition_logs_warning(self, caplog):
        orchestrator = SessionOrchestrator(ReadingState.IDLE, "test", table_validator)
        seen = []
        orchestrator.subscribe(seen.append)

        with caplog.at_level(logging.WARNING, logger="core.session_orchestrator"):
            assert not orchestrator.transition(ReadingState.PAUSED)

        assert seen == [ReadingState.IDLE]
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_pause_resume_always_broadcast(self):
        orchestrator = SessionOrchestrator(ReadingState.IDLE, "test")
        flags = []
        orchestrator.subscribe_paused(flags.append)

        orchestrator.pause()
        orchestrator.pause()
        orchestrator.resume()

        assert flags == [False, True, True, False]
        assert not orchestrator.is_paused

    @pytest.mark.asyncio
    async def test_stream_yields_current_then_changes_in_order(self):
        orchestrator = SessionOrchestrator(ReadingState.IDLE, "test", table_validator)
        received = []

        async def consume():
            async for state in orchestrator.state_stream():
                received.append(state)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        orchestrator.transition(ReadingState.CAPTURING)
        orchestrator.transition(ReadingState.RECOGNIZING)
        orchestrator.transition(ReadingState.IDLE)
        orchestrator.close()
        await asyncio.wait_for(task, 1.0)

        assert received == [
            ReadingState.IDLE,
            ReadingState.CAPTURING,
            ReadingState.RECOGNIZING,
            ReadingState.IDLE,
        ]

    @pytest.mark.asyncio
    async def test_stream_ends_when_closed(self):
        orchestrator = SessionOrchestrator("a", "test")
        orchestrator.close()

        received = [state async for state in orchestrator.state_stream()]

        assert received == ["a"]


class TestSearchTransitions:
    """Test suite for the search lifecycle table."""

    def test_searching_only_leaves_to_idle(self):
        searching = SearchState.searching("cup")

        assert search_transition_allowed(searching, SearchState.idle())
        for phase in SearchPhase:
            if phase is not SearchPhase.IDLE:
                assert not search_transition_allowed(searching, SearchState(phase))

    def test_every_phase_but_idle_is_active(self):
        assert [p for p in SearchPhase if SearchState(p).is_active] == [
            SearchPhase.LISTENING,
            SearchPhase.PROCESSING_SPEECH,
            SearchPhase.ANNOUNCING,
            SearchPhase.SEARCHING,
        ]
