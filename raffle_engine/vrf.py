"""Randomness oracles the raffle can request random words from."""

from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from eth_utils import keccak, to_wei

from .env import Env, normalize_address
from .errors import (
    InsufficientSubscriptionBalance,
    InvalidConsumer,
    InvalidRequestParams,
    InvalidSubscription,
    NonexistentRequest,
)

logger = logging.getLogger(__name__)

BASE_FEE = to_wei("0.25", "ether")  # premium charged per fulfillment, in LINK
MAX_NUM_WORDS = 500


class VRFCoordinator(abc.ABC):
    """Accepts randomness requests and answers them later, once per request.

    The answer is delivered by calling
    ``consumer.fulfill_random_words(request_id, words, sender=self.address)``.
    """

    address: str

    @abc.abstractmethod
    def request_random_words(
        self,
        key_hash: bytes,
        sub_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: Any,
    ) -> int:
        """Register a request and return its id without waiting for the words."""


def random_words_for(request_id: int, num_words: int) -> List[int]:
    """Deterministic words: keccak256(abi.encode(request_id, i)) for each index."""
    return [
        int.from_bytes(
            keccak(request_id.to_bytes(32, "big") + i.to_bytes(32, "big")), "big"
        )
        for i in range(num_words)
    ]


@dataclass
class Subscription:
    owner: str
    balance: int = 0
    consumers: List[str] = field(default_factory=list)
    request_count: int = 0


@dataclass(frozen=True)
class RandomWordsRequest:
    request_id: int
    sub_id: int
    key_hash: bytes
    request_confirmations: int
    callback_gas_limit: int
    num_words: int
    consumer: Any


class MockVRFCoordinator(VRFCoordinator):
    """In-process coordinator for development networks and tests.

    Requests stay pending until someone calls ``fulfill_random_words``.
    """

    def __init__(self, env: Env, base_fee: int = BASE_FEE) -> None:
        self.env = env
        self.address = env.generate_address("vrf_coordinator")
        self.base_fee = base_fee
        self._lock = threading.RLock()
        self._subscriptions: Dict[int, Subscription] = {}
        self._requests: Dict[int, RandomWordsRequest] = {}
        self._in_flight: Set[int] = set()
        self._next_sub_id = 1
        self._next_request_id = 1
        self._last_request_id = 0

    # Subscriptions

    def create_subscription(self, owner: Optional[str] = None) -> int:
        with self._lock:
            sub_id = self._next_sub_id
            self._next_sub_id += 1
            self._subscriptions[sub_id] = Subscription(
                owner=normalize_address(owner or self.env.msg_sender)
            )
        logger.info("Created VRF subscription %d", sub_id)
        return sub_id

    def fund_subscription(self, sub_id: int, amount: int) -> int:
        with self._lock:
            sub = self._get_subscription(sub_id)
            sub.balance += amount
            return sub.balance

    def add_consumer(self, sub_id: int, consumer: str) -> None:
        consumer = normalize_address(consumer)
        with self._lock:
            sub = self._get_subscription(sub_id)
            if consumer not in sub.consumers:
                sub.consumers.append(consumer)
        logger.info("Added consumer %s to subscription %d", consumer, sub_id)

    def remove_consumer(self, sub_id: int, consumer: str) -> None:
        consumer = normalize_address(consumer)
        with self._lock:
            sub = self._get_subscription(sub_id)
            if consumer not in sub.consumers:
                raise InvalidConsumer(sub_id, consumer)
            sub.consumers.remove(consumer)

    def consumer_is_added(self, sub_id: int, consumer: str) -> bool:
        with self._lock:
            return normalize_address(consumer) in self._get_subscription(sub_id).consumers

    def get_subscription(self, sub_id: int) -> Subscription:
        with self._lock:
            sub = self._get_subscription(sub_id)
            return Subscription(
                owner=sub.owner,
                balance=sub.balance,
                consumers=list(sub.consumers),
                request_count=sub.request_count,
            )

    def _get_subscription(self, sub_id: int) -> Subscription:
        sub = self._subscriptions.get(sub_id)
        if sub is None:
            raise InvalidSubscription(sub_id)
        return sub

    # Requests

    def request_random_words(
        self,
        key_hash: bytes,
        sub_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: Any,
    ) -> int:
        consumer_address = normalize_address(consumer.address)
        with self._lock:
            sub = self._get_subscription(sub_id)
            if consumer_address not in sub.consumers:
                raise InvalidConsumer(sub_id, consumer_address)
            if not 1 <= num_words <= MAX_NUM_WORDS:
                raise InvalidRequestParams(
                    f"num_words must be between 1 and {MAX_NUM_WORDS}, got {num_words}"
                )
            if callback_gas_limit <= 0:
                raise InvalidRequestParams("callback_gas_limit must be positive")

            request_id = self._next_request_id
            self._next_request_id += 1
            self._last_request_id = request_id
            sub.request_count += 1
            self._requests[request_id] = RandomWordsRequest(
                request_id=request_id,
                sub_id=sub_id,
                key_hash=key_hash,
                request_confirmations=request_confirmations,
                callback_gas_limit=callback_gas_limit,
                num_words=num_words,
                consumer=consumer,
            )
        logger.info(
            "Random words requested: request_id=%d sub_id=%d consumer=%s",
            request_id,
            sub_id,
            consumer_address,
        )
        return request_id

    def last_request_id(self) -> int:
        return self._last_request_id

    def request_id_to_consumer(self, request_id: int) -> str:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                raise NonexistentRequest(request_id)
            return normalize_address(request.consumer.address)

    def pending_requests(self) -> List[int]:
        with self._lock:
            return sorted(self._requests)

    def fulfill_random_words(self, request_id: int, consumer: Any = None) -> int:
        return self.fulfill_random_words_with_override(request_id, consumer)

    def fulfill_random_words_with_override(
        self,
        request_id: int,
        consumer: Any = None,
        words: Optional[Sequence[int]] = None,
    ) -> int:
        """Deliver words for ``request_id`` and return the payment charged.

        If the consumer raises, the request stays pending and the subscription
        is not charged, so the fulfillment can be retried.
        """
        with self._lock:
            request = self._requests.get(request_id)
            if request is None or request_id in self._in_flight:
                raise NonexistentRequest(request_id)
            if consumer is not None and normalize_address(
                consumer.address
            ) != normalize_address(request.consumer.address):
                raise InvalidConsumer(request.sub_id, consumer.address)

            sub = self._get_subscription(request.sub_id)
            payment = self.base_fee
            if sub.balance < payment:
                raise InsufficientSubscriptionBalance(request.sub_id, sub.balance, payment)

            if words is None:
                words = random_words_for(request_id, request.num_words)
            elif len(words) != request.num_words:
                raise InvalidRequestParams(
                    f"Expected {request.num_words} words, got {len(words)}"
                )
            self._in_flight.add(request_id)

        # The consumer takes its own lock; never call it while holding ours.
        try:
            request.consumer.fulfill_random_words(
                request_id, list(words), sender=self.address
            )
        except BaseException:
            with self._lock:
                self._in_flight.discard(request_id)
            raise

        with self._lock:
            self._in_flight.discard(request_id)
            del self._requests[request_id]
            sub.balance -= payment
        logger.info("Fulfilled request %d, charged %d", request_id, payment)
        return payment
