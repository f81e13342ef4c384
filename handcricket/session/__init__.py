"""
Session Module - Per-player game sessions and the game loop.

A session represents one paid game:
- Created when the player asks to start (awaiting payment)
- Opened once the entry fee is confirmed on the ledger
- Destroyed when the player is out, or when it expires

Sessions are EPHEMERAL: in-memory only, never persisted.
"""

from .store import SessionStore, PlayerSession, SessionPhase
from .game_loop import GameLoop, LoopState, PlayResult

__all__ = [
    "SessionStore",
    "PlayerSession",
    "SessionPhase",
    "GameLoop",
    "LoopState",
    "PlayResult",
]
