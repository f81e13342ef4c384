"""
API Module - HTTP interface for wallets.

The wallet:
1. Fetches the action metadata
2. Posts start and signs the entry fee transfer
3. Posts play once per ball
4. Signs the reward transfer if the player wins

All state is session-scoped. No persistent user accounts.
"""

from .models import (
    Operation,
    StartRequest,
    PlayRequest,
    GameResponse,
    ErrorResponse,
    SessionStatusResponse,
)
from .service import APIService, build_verifier
from .app import create_app

__all__ = [
    "Operation",
    "StartRequest",
    "PlayRequest",
    "GameResponse",
    "ErrorResponse",
    "SessionStatusResponse",
    "APIService",
    "build_verifier",
    "create_app",
]
