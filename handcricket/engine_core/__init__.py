"""
Engine Core - Deterministic hand cricket rules.

The engine:
1. Resolves a single ball (resolve_turn)
2. Decides the result once the player is out (PayoutDecisionEngine)
3. Draws all randomness through an injectable DiceSource
"""

from .dice import DiceSource, RandomDice
from .errors import (
    ErrorKind,
    GameError,
    InvalidAccount,
    InvalidChoice,
    PaymentNotConfirmed,
    NoActiveGame,
    GameAlreadyInProgress,
    UnknownOperation,
)
from .turn import TurnOutcome, resolve_turn, parse_move, validate_move
from .payout import GameResult, PayoutDecisionEngine

__all__ = [
    "DiceSource",
    "RandomDice",
    "ErrorKind",
    "GameError",
    "InvalidAccount",
    "InvalidChoice",
    "PaymentNotConfirmed",
    "NoActiveGame",
    "GameAlreadyInProgress",
    "UnknownOperation",
    "TurnOutcome",
    "resolve_turn",
    "parse_move",
    "validate_move",
    "GameResult",
    "PayoutDecisionEngine",
]
