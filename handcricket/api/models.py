"""
API Models - Framework-agnostic request and response shapes.

The service speaks these; the FastAPI layer converts them to the
Actions-style JSON envelope in schemas.py.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..engine_core.errors import ErrorKind


class Operation(Enum):
    START = "start"
    PLAY = "play"


@dataclass
class StartRequest:
    account: str


@dataclass
class PlayRequest:
    account: str
    move: Any = None  # Raw value from the transport, usually a string


@dataclass
class GameResponse:
    """
    Outcome of a start or play request.

    `transfer_request` is the unsigned transfer the client must sign: the
    entry fee after start, the reward after a win. Absent otherwise.
    """
    outcome_message: str
    state: str
    game_over: bool = False
    updated_score: int | None = None
    transfer_request: dict[str, Any] | None = None
    payment_reference: str | None = None

    # Ball and result details
    player_move: int | None = None
    computer_move: int | None = None
    computer_score: int | None = None
    player_won: bool | None = None


@dataclass
class ErrorResponse:
    """A structured rejection. Never carries a transfer."""
    error_kind: ErrorKind
    message: str


@dataclass
class SessionStatusResponse:
    account: str
    state: str
    score: int | None = None
