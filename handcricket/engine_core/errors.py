"""
Game Errors - Typed rejections raised by the engine.

Every error carries an ErrorKind so the API boundary can turn it into a
structured rejection without inspecting message text. None of these are
fatal: they describe why one request for one player was refused.
"""

from __future__ import annotations
from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable rejection kinds."""
    INVALID_ACCOUNT = "InvalidAccount"
    INVALID_CHOICE = "InvalidChoice"
    PAYMENT_NOT_CONFIRMED = "PaymentNotConfirmed"
    NO_ACTIVE_GAME = "NoActiveGame"
    GAME_ALREADY_IN_PROGRESS = "GameAlreadyInProgress"
    UNKNOWN_OPERATION = "UnknownOperation"


class GameError(Exception):
    """Base class for all engine rejections."""
    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidAccount(GameError):
    kind = ErrorKind.INVALID_ACCOUNT


class InvalidChoice(GameError):
    kind = ErrorKind.INVALID_CHOICE


class PaymentNotConfirmed(GameError):
    kind = ErrorKind.PAYMENT_NOT_CONFIRMED

    def __init__(self, message: str, status: str | None = None):
        super().__init__(message)
        self.status = status


class NoActiveGame(GameError):
    kind = ErrorKind.NO_ACTIVE_GAME


class GameAlreadyInProgress(GameError):
    kind = ErrorKind.GAME_ALREADY_IN_PROGRESS


class UnknownOperation(GameError):
    kind = ErrorKind.UNKNOWN_OPERATION
