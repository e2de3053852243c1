"""Unit tests for the fixed-capacity RingBuffer."""
import pytest

from utils.ring_buffer import RingBuffer


class TestRingBuffer:
    """Test suite for RingBuffer."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            RingBuffer(0)
        with pytest.raises(ValueError):
            RingBuffer(-3)

    def test_elements_are_chronological_before_wrap(self):
        buffer = RingBuffer(3)
        buffer.append(1)
        buffer.append(2)

        assert buffer.elements == [1, 2]
        assert buffer.count == 2
        assert not buffer.is_full

    def test_oldest_entry_is_overwritten(self):
        buffer = RingBuffer(3)
        for value in range(5):
            buffer.append(value)

        assert buffer.elements == [2, 3, 4]
        assert buffer.count == 3
        assert buffer.is_full

    def test_count_never_exceeds_capacity(self):
        buffer = RingBuffer(4)
        for value in range(100):
            buffer.append(value)
            assert 0 <= buffer.count <= buffer.capacity

    def test_remove_all_resets_and_keeps_capacity(self):
        buffer = RingBuffer(2)
        buffer.append("a")
        buffer.append("b")
        buffer.remove_all()

        assert buffer.count == 0
        assert buffer.elements == []
        assert buffer.capacity == 2

        buffer.append("c")
        assert buffer.elements == ["c"]

    def test_map_and_iteration(self):
        buffer = RingBuffer(3)
        for value in (1, 2, 3, 4):
            buffer.append(value)

        assert buffer.map(lambda v: v * 10) == [20, 30, 40]
        assert list(buffer) == [2, 3, 4]
        assert len(buffer) == 3
