"""Simulated chain environment: clock, balance ledger and caller identity.

The raffle never reads the wall clock or moves funds on its own; it asks an
``Env``. Tests drive the clock with ``time_travel`` and impersonate callers
with ``prank``, the same way they would against a local dev chain.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Set

from eth_account import Account
from eth_utils import is_address, to_checksum_address

from .errors import InsufficientBalance, PaymentRejected


def normalize_address(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"Not a valid address: {address!r}")
    return to_checksum_address(address)


class Env:
    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        eoa: Optional[str] = None,
    ) -> None:
        self._clock = clock or time.time
        self._offset = 0
        self._lock = threading.RLock()
        self._balances: Dict[str, int] = defaultdict(int)
        self._rejecting: Set[str] = set()
        self._aliases: Dict[str, str] = {}
        self._local = threading.local()
        self.eoa = normalize_address(eoa) if eoa else self.generate_address("eoa")

    # Clock

    @property
    def timestamp(self) -> int:
        return int(self._clock()) + self._offset

    def time_travel(self, seconds: int) -> int:
        """Move the clock forward and return the new timestamp."""
        if seconds < 0:
            raise ValueError("Cannot travel back in time")
        with self._lock:
            self._offset += int(seconds)
        return self.timestamp

    # Identity

    def generate_address(self, alias: Optional[str] = None) -> str:
        address = Account.create().address
        if alias is not None:
            with self._lock:
                self._aliases[address] = alias
        return address

    def alias_of(self, address: str) -> Optional[str]:
        with self._lock:
            return self._aliases.get(normalize_address(address))

    @property
    def msg_sender(self) -> str:
        stack: List[str] = getattr(self._local, "senders", [])
        return stack[-1] if stack else self.eoa

    @contextmanager
    def prank(self, address: str) -> Iterator[str]:
        """Make ``address`` the default caller for the duration of the block."""
        address = normalize_address(address)
        if not hasattr(self._local, "senders"):
            self._local.senders = []
        self._local.senders.append(address)
        try:
            yield address
        finally:
            self._local.senders.pop()

    # Ledger

    def get_balance(self, address: str) -> int:
        with self._lock:
            return self._balances.get(normalize_address(address), 0)

    def set_balance(self, address: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Balance cannot be negative")
        with self._lock:
            self._balances[normalize_address(address)] = int(amount)

    def reject_payments(self, address: str, reject: bool = True) -> None:
        """Make ``address`` refuse incoming transfers, like a contract without a receive hook."""
        address = normalize_address(address)
        with self._lock:
            if reject:
                self._rejecting.add(address)
            else:
                self._rejecting.discard(address)

    def transfer(self, sender: str, receiver: str, amount: int) -> None:
        """Move ``amount`` from ``sender`` to ``receiver``, all or nothing."""
        if amount < 0:
            raise ValueError("Transfer amount cannot be negative")
        sender = normalize_address(sender)
        receiver = normalize_address(receiver)
        with self._lock:
            if receiver in self._rejecting:
                raise PaymentRejected(receiver)
            balance = self._balances.get(sender, 0)
            if balance < amount:
                raise InsufficientBalance(sender, balance, amount)
            self._balances[sender] = balance - amount
            self._balances[receiver] += amount
