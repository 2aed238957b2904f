"""Sequence numbers for search requests and the admission watermark."""

from __future__ import annotations

import itertools
import logging

logger = logging.getLogger(__name__)


class RequestSequencer:
    """Tags outgoing requests and decides which responses may be shown.

    Requests complete in any order.  A response is admitted only if its
    sequence number is not older than the newest response admitted so far,
    so the result list always reflects the most recent query that has
    answered.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._high_water_mark = 0

    @property
    def high_water_mark(self) -> int:
        return self._high_water_mark

    def next_sequence_number(self) -> int:
        return next(self._counter)

    def admit(self, sequence_number: int) -> bool:
        if sequence_number < self._high_water_mark:
            logger.debug(
                "Dropping stale response #%d (watermark #%d)",
                sequence_number, self._high_water_mark,
            )
            return False
        self._high_water_mark = sequence_number
        return True
