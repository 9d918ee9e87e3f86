"""All-or-nothing execution across in-memory participants."""

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol

from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


class ISnapshotable(Protocol):
    def snapshot(self) -> Any: ...

    def restore(self, state: Any) -> None: ...


class TransactionJournal:
    """
    Snapshots every participant before a call and restores them on failure.

    Nested atomic() blocks join the outermost one, so only the outermost
    block snapshots and restores. Callbacks passed to defer() inside a block
    run once the outermost block commits and are dropped if it rolls back.

    Example:
        >>> journal = TransactionJournal([bank, basket, market])
        >>> with journal.atomic():
        ...     engine.lever(...)  # any exception rolls every participant back
    """

    def __init__(self, participants: list[ISnapshotable] | None = None) -> None:
        self._participants: list[ISnapshotable] = list(participants or [])
        self._depth = 0
        self._pending: list[Callable[[], None]] = []

    def add(self, participant: ISnapshotable) -> None:
        if any(p is participant for p in self._participants):
            return
        self._participants.append(participant)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def defer(self, callback: Callable[[], None]) -> None:
        """Run callback after the outermost commit, or now when no block is open."""
        if self.in_transaction:
            self._pending.append(callback)
        else:
            callback()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshots = [(p, p.snapshot()) for p in self._participants]
        self._depth = 1
        try:
            yield
        except BaseException as e:
            for participant, state in snapshots:
                participant.restore(state)
            self._pending.clear()
            logger.debug(
                "chain.transaction.rolled_back",
                participants=len(snapshots),
                error=type(e).__name__,
            )
            raise
        finally:
            self._depth = 0

        pending, self._pending = self._pending, []
        for callback in pending:
            callback()
