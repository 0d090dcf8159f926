"""Exceptions raised by the raffle, the ledger and the randomness oracles."""

from __future__ import annotations

from typing import Any


class RaffleEngineError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(RaffleEngineError):
    pass


# Ledger


class TransferError(RaffleEngineError):
    """A value transfer between two addresses could not be made."""


class InsufficientBalance(TransferError):
    def __init__(self, address: str, balance: int, amount: int) -> None:
        super().__init__(
            f"Insufficient balance: {address} has {balance}, needs {amount}"
        )
        self.address = address
        self.balance = balance
        self.amount = amount


class PaymentRejected(TransferError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Payment rejected by {address}")
        self.address = address


# Raffle


class RaffleError(RaffleEngineError):
    pass


class InsufficientPayment(RaffleError):
    def __init__(self, value: int, entrance_fee: int) -> None:
        super().__init__(
            f"Not enough ETH entered: sent {value}, entrance fee is {entrance_fee}"
        )
        self.value = value
        self.entrance_fee = entrance_fee


class NotOpen(RaffleError):
    def __init__(self) -> None:
        super().__init__("Raffle not open")


class UpkeepNotNeeded(RaffleError):
    """The upkeep gate failed; carries the values it was evaluated on."""

    def __init__(self, pot: int, player_count: int, state: Any) -> None:
        super().__init__(
            f"Upkeep not needed (pot={pot}, players={player_count}, "
            f"state={getattr(state, 'name', state)})"
        )
        self.pot = pot
        self.player_count = player_count
        self.state = state


class UnknownRequest(RaffleError):
    def __init__(self, request_id: int, pending_request_id: int | None) -> None:
        if pending_request_id is None:
            message = f"Unknown request {request_id}: not calculating winner"
        else:
            message = (
                f"Unknown request {request_id}: "
                f"pending request is {pending_request_id}"
            )
        super().__init__(message)
        self.request_id = request_id
        self.pending_request_id = pending_request_id


class InvalidRandomWords(RaffleError):
    def __init__(self, request_id: int) -> None:
        super().__init__(f"No random words delivered for request {request_id}")
        self.request_id = request_id


class PayoutFailed(RaffleError):
    def __init__(self, winner: str, amount: int) -> None:
        super().__init__(f"Transfer of {amount} to winner {winner} failed")
        self.winner = winner
        self.amount = amount


class OnlyCoordinatorCanFulfill(RaffleError):
    def __init__(self, have: str, want: str) -> None:
        super().__init__(f"Only coordinator can fulfill: have {have}, want {want}")
        self.have = have
        self.want = want


# Randomness oracle


class VRFError(RaffleEngineError):
    pass


class NonexistentRequest(VRFError):
    def __init__(self, request_id: int) -> None:
        super().__init__(f"nonexistent request: {request_id}")
        self.request_id = request_id


class InvalidSubscription(VRFError):
    def __init__(self, sub_id: int) -> None:
        super().__init__(f"Invalid subscription: {sub_id}")
        self.sub_id = sub_id


class InvalidConsumer(VRFError):
    def __init__(self, sub_id: int, consumer: str) -> None:
        super().__init__(f"Invalid consumer {consumer} for subscription {sub_id}")
        self.sub_id = sub_id
        self.consumer = consumer


class InvalidRequestParams(VRFError):
    pass


class InsufficientSubscriptionBalance(VRFError):
    def __init__(self, sub_id: int, balance: int, payment: int) -> None:
        super().__init__(
            f"Insufficient balance on subscription {sub_id}: "
            f"has {balance}, payment is {payment}"
        )
        self.sub_id = sub_id
        self.balance = balance
        self.payment = payment


class RpcError(VRFError):
    pass
