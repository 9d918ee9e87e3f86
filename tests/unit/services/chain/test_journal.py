"""Unit tests for TransactionJournal all-or-nothing execution."""

import pytest

from basketlever.services.chain.journal import TransactionJournal


class Box:
    def __init__(self, value: int = 0) -> None:
        self.value = value
        self.snapshots = 0

    def snapshot(self) -> int:
        self.snapshots += 1
        return self.value

    def restore(self, state: int) -> None:
        self.value = state


class TestAtomic:
    def test_success_keeps_changes(self):
        # Arrange
        box = Box()
        journal = TransactionJournal([box])

        # Act
        with journal.atomic():
            box.value = 5

        # Assert
        assert box.value == 5
        assert not journal.in_transaction

    def test_failure_restores_every_participant(self):
        # Arrange
        first, second = Box(1), Box(2)
        journal = TransactionJournal([first, second])

        # Act
        with pytest.raises(RuntimeError):
            with journal.atomic():
                first.value = 10
                second.value = 20
                raise RuntimeError("boom")

        # Assert
        assert (first.value, second.value) == (1, 2)
        assert not journal.in_transaction

    def test_nested_blocks_join_outermost(self):
        box = Box()
        journal = TransactionJournal([box])

        with pytest.raises(ValueError):
            with journal.atomic():
                box.value = 1
                with journal.atomic():
                    assert journal.in_transaction
                    box.value = 2
                raise ValueError("outer fails")

        assert box.value == 0
        assert box.snapshots == 1

    def test_inner_failure_caught_by_outer_does_not_restore(self):
        box = Box()
        journal = TransactionJournal([box])

        with journal.atomic():
            box.value = 1
            try:
                with journal.atomic():
                    box.value = 2
                    raise ValueError("inner")
            except ValueError:
                pass

        assert box.value == 2


class TestParticipants:
    def test_add_ignores_duplicates(self):
        box = Box()
        journal = TransactionJournal([box])

        journal.add(box)
        with journal.atomic():
            pass

        assert box.snapshots == 1


class TestDefer:
    def test_outside_block_runs_immediately(self):
        journal = TransactionJournal()
        calls = []

        journal.defer(lambda: calls.append("now"))

        assert calls == ["now"]

    def test_runs_after_outermost_commit(self):
        # Arrange
        journal = TransactionJournal([Box()])
        calls = []

        # Act
        with journal.atomic():
            with journal.atomic():
                journal.defer(lambda: calls.append("inner"))
            journal.defer(lambda: calls.append("outer"))
            seen_inside = list(calls)

        # Assert
        assert seen_inside == []
        assert calls == ["inner", "outer"]

    def test_dropped_on_rollback(self):
        # Arrange
        journal = TransactionJournal([Box()])
        calls = []

        # Act
        with pytest.raises(RuntimeError):
            with journal.atomic():
                journal.defer(lambda: calls.append("lost"))
                raise RuntimeError("boom")
        with journal.atomic():
            pass

        # Assert
        assert calls == []

    def test_callback_may_open_a_new_block(self):
        box = Box()
        journal = TransactionJournal([box])

        def reenter():
            with journal.atomic():
                box.value = 7

        with journal.atomic():
            journal.defer(reenter)

        assert box.value == 7
        assert box.snapshots == 2
