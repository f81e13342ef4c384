"""
API Service - Business logic layer between the HTTP routes and the game.

The service:
1. Translates requests to game loop calls
2. Catches engine rejections and returns structured errors
3. Formats results for the transport

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass
import logging

from .models import (
    Operation,
    StartRequest,
    PlayRequest,
    GameResponse,
    ErrorResponse,
    SessionStatusResponse,
)
from ..config import GameConfig
from ..engine_core.errors import GameError, UnknownOperation
from ..ledger.verifier import InMemoryLedger, PaymentVerifier, RpcPaymentVerifier
from ..session import GameLoop, PlayResult

logger = logging.getLogger(__name__)


def build_verifier(config: GameConfig) -> PaymentVerifier:
    """Create the payment verifier the config asks for."""
    if config.ledger == "memory":
        return InMemoryLedger(treasury=config.treasury)
    return RpcPaymentVerifier(
        rpc_url=config.rpc_url,
        treasury=config.treasury,
        timeout=config.rpc_timeout,
    )


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService.from_config(GameConfig.from_env())

        response = service.start(StartRequest(account=player))
        response = service.play(PlayRequest(account=player, move="4"))
        if isinstance(response, ErrorResponse):
            ...
    """
    game_loop: GameLoop

    @classmethod
    def from_config(cls, config: GameConfig, verifier: PaymentVerifier | None = None) -> APIService:
        verifier = verifier or build_verifier(config)
        return cls(game_loop=GameLoop.from_config(config, verifier=verifier))

    def start(self, request: StartRequest) -> GameResponse | ErrorResponse:
        try:
            result = self.game_loop.start(request.account)
        except GameError as e:
            return self._reject(Operation.START, request.account, e)
        return self._to_response(result)

    def play(self, request: PlayRequest) -> GameResponse | ErrorResponse:
        try:
            result = self.game_loop.play(request.account, request.move)
        except GameError as e:
            return self._reject(Operation.PLAY, request.account, e)
        return self._to_response(result)

    def handle(self, operation: str, account: str, move=None) -> GameResponse | ErrorResponse:
        """Dispatch an operation named by the transport (a path segment)."""
        name = (operation or "").strip().lower()
        if name == Operation.START.value:
            return self.start(StartRequest(account=account))
        if name == Operation.PLAY.value:
            return self.play(PlayRequest(account=account, move=move))
        return ErrorResponse(
            error_kind=UnknownOperation.kind,
            message=f"Unknown operation {operation!r}: expected 'start' or 'play'",
        )

    def get_status(self, account: str) -> SessionStatusResponse | ErrorResponse:
        try:
            state, score = self.game_loop.state_of(account)
        except GameError as e:
            return ErrorResponse(error_kind=e.kind, message=e.message)
        return SessionStatusResponse(account=account, state=state.value, score=score)

    def sweep(self) -> list[str]:
        """Evict expired sessions."""
        return self.game_loop.store.sweep()

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _reject(self, operation: Operation, account: str, error: GameError) -> ErrorResponse:
        logger.info("Rejected %s for %s: %s (%s)", operation.value, account, error.kind.value, error.message)
        return ErrorResponse(error_kind=error.kind, message=error.message)

    def _to_response(self, result: PlayResult) -> GameResponse:
        response = GameResponse(
            outcome_message=result.outcome_message,
            state=result.loop_state.value,
            game_over=result.game_over,
            updated_score=result.updated_score,
            transfer_request=(
                result.transfer_request.to_dict() if result.transfer_request else None
            ),
            payment_reference=result.payment_reference,
        )
        if result.turn:
            response.player_move = result.turn.player_move
            response.computer_move = result.turn.computer_move
        if result.result:
            response.computer_score = result.result.computer_score
            response.player_won = result.result.player_won
        return response
