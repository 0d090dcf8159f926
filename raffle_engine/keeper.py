"""Upkeep trigger that polls a raffle and starts draws when they are due."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .errors import UpkeepNotNeeded
from .raffle import Raffle, RaffleState

logger = logging.getLogger(__name__)


class Keeper:
    def __init__(
        self,
        raffle: Raffle,
        poll_interval: float = 1.0,
        fulfill: Optional[Callable[[int], object]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.raffle = raffle
        self.poll_interval = poll_interval
        self.fulfill = fulfill
        self._sleep = sleep

    def tick(self) -> Optional[int]:
        """Run one polling step.

        Returns the request id when a draw was started, otherwise None. While
        the raffle is calculating, the pending request is handed to the
        ``fulfill`` relay if one was given.
        """
        if self.raffle.get_raffle_state() == RaffleState.CALCULATING:
            request_id = self.raffle.get_pending_request_id()
            if self.fulfill is not None and request_id is not None:
                logger.debug("Relaying fulfillment for request %d", request_id)
                self.fulfill(request_id)
            return None

        if not self.raffle.check_upkeep():
            logger.debug("Upkeep not needed")
            return None
        try:
            request_id = self.raffle.perform_upkeep()
        except UpkeepNotNeeded as e:
            # Another caller got there between the check and the call.
            logger.info("Upkeep no longer needed: %s", e)
            return None
        logger.info("Performed upkeep, request_id=%d", request_id)
        return request_id

    def run(
        self,
        max_ticks: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> int:
        """Poll until ``max_ticks`` is reached or ``stop_event`` is set.

        Returns the number of draws started.
        """
        ticks = 0
        draws = 0
        while max_ticks is None or ticks < max_ticks:
            if stop_event is not None and stop_event.is_set():
                break
            if self.tick() is not None:
                draws += 1
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            if stop_event is not None:
                if stop_event.wait(self.poll_interval):
                    break
            else:
                self._sleep(self.poll_interval)
        return draws
