"""Unit tests for the fixed-capacity history ring."""

import pytest

from voidweaver.core.history import IMAGE_HISTORY_CAPACITY, HistoryRing


@pytest.mark.unit
class TestHistoryRing:
    def test_empty_ring(self):
        ring: HistoryRing[str] = HistoryRing(3)
        assert len(ring) == 0
        assert ring.index == -1
        assert ring.current is None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryRing(0)

    def test_push_points_cursor_at_newest(self):
        ring = HistoryRing(3, ["a", "b"])
        assert ring.index == 1
        assert ring.current == "b"

    def test_push_evicts_oldest_past_capacity(self):
        ring = HistoryRing(IMAGE_HISTORY_CAPACITY)
        for item in "abcd":
            ring.push(item)
        assert ring.items == ("b", "c", "d")
        assert ring.index == 2

    def test_remove_before_cursor_shifts_cursor(self):
        ring = HistoryRing(3, ["a", "b", "c"])
        ring.remove_at(0)
        assert ring.items == ("b", "c")
        assert ring.current == "c"

    def test_remove_after_cursor_keeps_cursor(self):
        ring = HistoryRing(3, ["a", "b", "c"], index=0)
        ring.remove_at(2)
        assert ring.current == "a"

    def test_remove_at_cursor_selects_next_entry(self):
        ring = HistoryRing(3, ["a", "b", "c"], index=1)
        ring.remove_at(1)
        assert ring.current == "c"

    def test_remove_last_at_cursor_selects_new_last(self):
        ring = HistoryRing(3, ["a", "b", "c"])
        ring.remove_at(2)
        assert ring.current == "b"

    def test_remove_only_entry_empties_ring(self):
        ring = HistoryRing(3, ["a"])
        ring.remove_at(0)
        assert ring.index == -1
        assert ring.current is None

    def test_remove_out_of_range_is_ignored(self):
        ring = HistoryRing(3, ["a", "b"])
        ring.remove_at(5)
        ring.remove_at(-1)
        assert ring.items == ("a", "b")
        assert ring.index == 1

    def test_set_index_bounds(self):
        ring = HistoryRing(3, ["a", "b", "c"])
        ring.set_index(0)
        assert ring.current == "a"
        ring.set_index(3)
        assert ring.index == 0

    def test_previous_and_next_stop_at_ends(self):
        ring = HistoryRing(2, ["a", "b"])
        ring.next()
        assert ring.index == 1
        ring.previous()
        ring.previous()
        assert ring.index == 0

    def test_clear(self):
        ring = HistoryRing(2, ["a", "b"])
        ring.clear()
        assert len(ring) == 0
        assert ring.index == -1

    def test_items_is_a_snapshot(self):
        ring = HistoryRing(2, ["a"])
        items = ring.items
        ring.push("b")
        assert items == ("a",)
