from __future__ import annotations

import time
from typing import Callable, Iterator, List, Optional, Tuple, Type

from logic.ledger import Notice


class NotificationFeed:
    """Lazy, restartable view over a ledger's notification log.

    ``poll(since)`` must return the notices with ``seq > since`` in order.
    Iterating yields whatever is available past the cursor and then stops;
    iterate again later to pick up newer notices, or use :meth:`follow`.
    """

    def __init__(self, poll: Callable[[int], List[Notice]], cursor: int = 0) -> None:
        self._poll = poll
        self.cursor = cursor

    def __iter__(self) -> Iterator[Notice]:
        while True:
            batch = self._poll(self.cursor)
            if not batch:
                return
            for notice in batch:
                self.cursor = notice.seq
                yield notice

    def restart(self, cursor: int = 0) -> 'NotificationFeed':
        self.cursor = cursor
        return self

    def of_type(self, *types: Type) -> Iterator[Notice]:
        wanted: Tuple[Type, ...] = types
        return (notice for notice in self if isinstance(notice.event, wanted))

    def follow(
        self,
        interval: float = 0.5,
        timeout: Optional[float] = None,
        stop: Optional[Callable[[Notice], bool]] = None,
    ) -> Iterator[Notice]:
        """Keep polling until ``stop(notice)`` is true or ``timeout`` expires."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while deadline is None or time.monotonic() < deadline:
            for notice in self:
                yield notice
                if stop is not None and stop(notice):
                    return
            time.sleep(interval)
