"""Recurring raffle settled with externally supplied randomness."""

from .env import Env
from .errors import (
    InsufficientPayment,
    InvalidRandomWords,
    NotOpen,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    RaffleEngineError,
    RaffleError,
    UnknownRequest,
    UpkeepNotNeeded,
)
from .raffle import DrawRequested, Entered, Raffle, RaffleState, WinnerPicked
from .vrf import MockVRFCoordinator, VRFCoordinator

__version__ = "0.1.0"
