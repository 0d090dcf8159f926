"""The raffle: entries, the upkeep gate, and winner settlement."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Sequence, Type

from .env import Env, normalize_address
from .errors import (
    InsufficientPayment,
    InvalidRandomWords,
    NotOpen,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    TransferError,
    UnknownRequest,
    UpkeepNotNeeded,
)
from .vrf import VRFCoordinator

logger = logging.getLogger(__name__)

REQUEST_CONFIRMATIONS = 3
NUM_WORDS = 1


class RaffleState(IntEnum):
    OPEN = 0
    CALCULATING = 1


@dataclass(frozen=True)
class Entered:
    player: str


@dataclass(frozen=True)
class DrawRequested:
    request_id: int


@dataclass(frozen=True)
class WinnerPicked:
    winner: str


Listener = Callable[[object], None]


class Raffle:
    """A recurring raffle paid out from randomness supplied by a VRF coordinator.

    Every public method holds the instance lock for its whole duration, so
    entries, draws and settlements never interleave.
    """

    def __init__(
        self,
        entrance_fee: int,
        interval: int,
        vrf_coordinator: VRFCoordinator,
        gas_lane: bytes,
        subscription_id: int,
        callback_gas_limit: int,
        *,
        env: Env,
        request_confirmations: int = REQUEST_CONFIRMATIONS,
        num_words: int = NUM_WORDS,
    ) -> None:
        if entrance_fee < 0:
            raise ValueError("entrance_fee cannot be negative")
        if interval < 0:
            raise ValueError("interval cannot be negative")

        self.env = env
        self.address = env.generate_address("raffle")
        self._lock = threading.RLock()

        self._entrance_fee = int(entrance_fee)
        self._interval = int(interval)
        self._vrf_coordinator = vrf_coordinator
        self._gas_lane = gas_lane
        self._subscription_id = subscription_id
        self._callback_gas_limit = callback_gas_limit
        self._request_confirmations = request_confirmations
        self._num_words = num_words

        self._state = RaffleState.OPEN
        self._players: List[str] = []
        self._pot = 0
        self._last_timestamp = env.timestamp
        self._recent_winner: Optional[str] = None
        self._pending_request_id: Optional[int] = None

        self._logs: List[object] = []
        self._listeners: List[tuple] = []

    # Entry

    def enter_raffle(self, value: int, sender: Optional[str] = None) -> None:
        sender = normalize_address(sender or self.env.msg_sender)
        with self._lock:
            if value < self._entrance_fee:
                raise InsufficientPayment(value, self._entrance_fee)
            if self._state != RaffleState.OPEN:
                raise NotOpen()

            self.env.transfer(sender, self.address, value)
            self._players.append(sender)
            self._pot += value
            logger.info("Player %s entered with %d (players=%d)", sender, value, len(self._players))
            self._emit(Entered(sender))

    # Upkeep

    def check_upkeep(self) -> bool:
        with self._lock:
            is_open = self._state == RaffleState.OPEN
            time_passed = self.env.timestamp - self._last_timestamp > self._interval
            has_players = len(self._players) > 0
            has_balance = self._pot > 0
            return is_open and time_passed and has_players and has_balance

    def request_winner(self) -> int:
        """Close entry and ask the coordinator for randomness.

        Returns the request id the coordinator will answer with.
        """
        with self._lock:
            if not self.check_upkeep():
                logger.debug(
                    "Upkeep not needed: pot=%d players=%d state=%s",
                    self._pot,
                    len(self._players),
                    self._state.name,
                )
                raise UpkeepNotNeeded(self._pot, len(self._players), self._state)

            request_id = self._vrf_coordinator.request_random_words(
                self._gas_lane,
                self._subscription_id,
                self._request_confirmations,
                self._callback_gas_limit,
                self._num_words,
                self,
            )
            self._state = RaffleState.CALCULATING
            self._pending_request_id = request_id
            logger.info("Requested raffle winner: request_id=%d", request_id)
            self._emit(DrawRequested(request_id))
            return request_id

    perform_upkeep = request_winner

    # Settlement

    def fulfill_random_words(
        self,
        request_id: int,
        random_words: Sequence[int],
        sender: Optional[str] = None,
    ) -> str:
        sender = normalize_address(sender or self.env.msg_sender)
        coordinator = normalize_address(self._vrf_coordinator.address)
        with self._lock:
            if sender != coordinator:
                raise OnlyCoordinatorCanFulfill(sender, coordinator)
            if (
                self._state != RaffleState.CALCULATING
                or self._pending_request_id is None
                or request_id != self._pending_request_id
            ):
                raise UnknownRequest(request_id, self._pending_request_id)
            if not random_words:
                raise InvalidRandomWords(request_id)

            index = random_words[0] % len(self._players)
            winner = self._players[index]
            amount = self._pot
            try:
                self.env.transfer(self.address, winner, amount)
            except TransferError as e:
                logger.error("Payout of %d to %s failed: %s", amount, winner, e)
                raise PayoutFailed(winner, amount) from e

            self._recent_winner = winner
            self._players = []
            self._pot = 0
            self._last_timestamp = self.env.timestamp
            self._state = RaffleState.OPEN
            self._pending_request_id = None
            logger.info("Winner picked: %s (index=%d, payout=%d)", winner, index, amount)
            self._emit(WinnerPicked(winner))
            return winner

    # Events

    def add_listener(
        self, callback: Listener, event_type: Optional[Type] = None
    ) -> Callable[[], None]:
        """Call ``callback`` for every event (or every event of ``event_type``).

        Returns a function that removes the listener.
        """
        entry = (callback, event_type, False)
        with self._lock:
            self._listeners.append(entry)

        def remove() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return remove

    def once(self, event_type: Type, callback: Listener) -> None:
        with self._lock:
            self._listeners.append((callback, event_type, True))

    def get_logs(self, event_type: Optional[Type] = None) -> List[object]:
        with self._lock:
            if event_type is None:
                return list(self._logs)
            return [e for e in self._logs if isinstance(e, event_type)]

    def _emit(self, event: object) -> None:
        # Called after the state change is committed; a listener cannot undo it.
        self._logs.append(event)
        for entry in list(self._listeners):
            callback, event_type, one_shot = entry
            if event_type is not None and not isinstance(event, event_type):
                continue
            if one_shot:
                self._listeners.remove(entry)
            try:
                callback(event)
            except Exception:
                logger.exception("Listener %r failed on %s", callback, event)

    # Views

    def get_entrance_fee(self) -> int:
        return self._entrance_fee

    def get_interval(self) -> int:
        return self._interval

    def get_gas_lane(self) -> bytes:
        return self._gas_lane

    def get_subscription_id(self) -> int:
        return self._subscription_id

    def get_callback_gas_limit(self) -> int:
        return self._callback_gas_limit

    def get_request_confirmations(self) -> int:
        return self._request_confirmations

    def get_num_words(self) -> int:
        return self._num_words

    def get_vrf_coordinator(self) -> VRFCoordinator:
        return self._vrf_coordinator

    def get_raffle_state(self) -> RaffleState:
        with self._lock:
            return self._state

    def get_player(self, index: int) -> str:
        with self._lock:
            return self._players[index]

    def get_player_count(self) -> int:
        with self._lock:
            return len(self._players)

    get_number_of_players = get_player_count

    def get_recent_winner(self) -> Optional[str]:
        with self._lock:
            return self._recent_winner

    def get_last_timestamp(self) -> int:
        with self._lock:
            return self._last_timestamp

    def get_pot(self) -> int:
        with self._lock:
            return self._pot

    def get_pending_request_id(self) -> Optional[int]:
        with self._lock:
            return self._pending_request_id
