"""
Turn Resolution - One ball of hand cricket.

The player bats by picking a number from 1 to 6; the computer bowls a
number from the same range. Matching numbers mean the player is out and
the score freezes. Otherwise the player's number is added to the score.

Pure given its dice: resolve_turn never touches session state, the caller
decides what to do with the outcome.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from .dice import DiceSource
from .errors import InvalidChoice

MIN_MOVE = 1
MAX_MOVE = 6


@dataclass(frozen=True)
class TurnOutcome:
    """Result of a single ball."""
    player_move: int
    computer_move: int
    is_out: bool
    updated_score: int

    def describe(self) -> str:
        text = f"You played {self.player_move}, computer played {self.computer_move}."
        if self.is_out:
            return f"{text} OUT! Final Score: {self.updated_score}."
        return f"{text} Score: {self.updated_score}. Not out yet!"


def validate_move(move: int) -> int:
    """Check that a move is an integer in [1, 6]."""
    if isinstance(move, bool) or not isinstance(move, int):
        raise InvalidChoice(f"Move must be an integer, got {move!r}")
    if move < MIN_MOVE or move > MAX_MOVE:
        raise InvalidChoice(f"Invalid choice {move}: pick a number from {MIN_MOVE} to {MAX_MOVE}")
    return move


def parse_move(raw: Any) -> int:
    """
    Parse a move as it arrives from the transport.

    Accepts ints and base-10 integer strings ("4", " 4 "). Anything else,
    including "4.5" and "four", is an InvalidChoice.
    """
    if isinstance(raw, int) and not isinstance(raw, bool):
        return validate_move(raw)
    if not isinstance(raw, str):
        raise InvalidChoice("Missing or invalid move")

    text = raw.strip()
    if not text:
        raise InvalidChoice("Missing or invalid move")
    try:
        value = int(text, 10)
    except ValueError:
        raise InvalidChoice(f"Move {raw!r} is not a number")
    return validate_move(value)


def resolve_turn(player_move: int, old_score: int, dice: DiceSource) -> TurnOutcome:
    """
    Resolve one ball.

    Raises InvalidChoice before drawing anything if the move is out of
    range, so a rejected move consumes no randomness.
    """
    validate_move(player_move)
    if old_score < 0:
        raise ValueError(f"Score cannot be negative: {old_score}")

    computer_move = dice.roll(MIN_MOVE, MAX_MOVE)
    is_out = player_move == computer_move

    return TurnOutcome(
        player_move=player_move,
        computer_move=computer_move,
        is_out=is_out,
        updated_score=old_score if is_out else old_score + player_move,
    )
