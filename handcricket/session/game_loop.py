"""
Game Loop - The payment-gated hand cricket state machine.

    NO_SESSION --start--> AWAITING_PAYMENT --play (fee confirmed)--> ACTIVE
    ACTIVE --play (not out)--> ACTIVE
    ACTIVE --play (out)--> ENDED (session removed, payout if won)

Rules enforced here:
- A session becomes paid only when the verifier reports CONFIRMED, and
  that check happens on play, never on start
- start on an ACTIVE session is rejected rather than overwriting it
- start on a session still awaiting payment re-issues the same reference,
  unless the ledger reports that payment as failed
- Every transition for a player runs under that player's lock
- A rejected request leaves the session exactly as it was
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING
import logging

from ..engine_core.dice import DiceSource, RandomDice
from ..engine_core.errors import (
    GameAlreadyInProgress,
    NoActiveGame,
    PaymentNotConfirmed,
)
from ..engine_core.payout import GameResult, PayoutDecisionEngine
from ..engine_core.turn import TurnOutcome, parse_move, resolve_turn
from ..ledger.transfer import (
    TransferBuilder,
    TransferRequest,
    lamports_to_sol,
    new_reference,
    validate_address,
)
from ..ledger.verifier import PaymentStatus, PaymentVerifier
from .store import PlayerSession, SessionStore

if TYPE_CHECKING:
    from ..config import GameConfig

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Where a player stands after a request."""
    NO_SESSION = "no_session"
    AWAITING_PAYMENT = "awaiting_payment"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class PlayResult:
    """
    Result of a start or play request.

    Carries the transfer the client must sign, if any: the entry fee after
    start, the reward after a winning final ball.
    """
    outcome_message: str
    loop_state: LoopState
    game_over: bool = False
    updated_score: int | None = None
    transfer_request: TransferRequest | None = None
    payment_reference: str | None = None

    # Details of the ball just played and, at game end, the result
    turn: TurnOutcome | None = None
    result: GameResult | None = None


class GameLoop:
    """
    The game driver.

    Usage:
        loop = GameLoop(store, verifier, treasury=treasury, entry_fee=fee, reward=reward)

        result = loop.start(player)          # sign result.transfer_request
        result = loop.play(player, "4")      # fee verified, first ball
        while not result.game_over:
            result = loop.play(player, next_move())
        if result.transfer_request:
            ...                               # the reward
    """

    def __init__(
        self,
        store: SessionStore,
        verifier: PaymentVerifier,
        treasury: str,
        entry_fee: int,
        reward: int,
        dice: DiceSource | None = None,
        transfer_builder: TransferBuilder | None = None,
    ):
        self.store = store
        self.verifier = verifier
        self.treasury = validate_address(treasury)
        self.entry_fee = entry_fee
        self.dice = dice or RandomDice()
        self.payout_engine = PayoutDecisionEngine(reward_amount=reward, dice=self.dice)
        self.transfer_builder = transfer_builder or TransferBuilder()

    @classmethod
    def from_config(
        cls,
        config: GameConfig,
        verifier: PaymentVerifier,
        dice: DiceSource | None = None,
        store: SessionStore | None = None,
    ) -> GameLoop:
        return cls(
            store=store or SessionStore(
                ttl=config.session_ttl,
                paid_grace_period=config.paid_grace_period,
            ),
            verifier=verifier,
            treasury=config.treasury,
            entry_fee=config.entry_fee,
            reward=config.reward,
            dice=dice or RandomDice(config.seed),
        )

    def start(self, player_id: str) -> PlayResult:
        """
        Begin a game: open a session awaiting payment and request the fee.

        The session is NOT paid afterwards. The fee is checked on play.
        """
        player_id = validate_address(player_id)

        with self.store.locked(player_id):
            session = self.store.get(player_id)

            if session is not None and session.paid:
                raise GameAlreadyInProgress(
                    f"A game is already in progress (score {session.score}). "
                    "Finish it before starting a new one."
                )

            if session is not None:
                status = self._verify(session)
                if status == PaymentStatus.CONFIRMED:
                    # Already settled: asking again could only charge twice.
                    return PlayResult(
                        outcome_message="Your entry fee is confirmed. Play your first ball!",
                        loop_state=LoopState.AWAITING_PAYMENT,
                        payment_reference=session.payment_reference,
                    )
                if status == PaymentStatus.FAILED:
                    # Nothing settled under the old reference, so a fresh
                    # one cannot double-charge.
                    logger.info("Entry fee for %s failed, issuing a new reference", player_id)
                    self.store.clear(player_id)
                    session = None

            if session is not None:
                # Keep verification bound to the one outstanding reference.
                reference = session.payment_reference
                amount = session.expected_amount
                logger.info("Re-issuing pending entry fee for %s", player_id)
            else:
                reference = new_reference()
                amount = self.entry_fee
                self.store.create(player_id, reference, amount)

            transfer = self.transfer_builder.build_transfer(
                player_id, self.treasury, amount, reference=reference,
            )

        return PlayResult(
            outcome_message=f"Sign to pay {lamports_to_sol(amount):g} SOL and start the game!",
            loop_state=LoopState.AWAITING_PAYMENT,
            transfer_request=transfer,
            payment_reference=reference,
        )

    def play(self, player_id: str, move: Any) -> PlayResult:
        """
        Play one ball.

        On a session still awaiting payment the fee is verified first; only
        a CONFIRMED payment opens the game, and the first ball is then
        played in the same call.
        """
        player_id = validate_address(player_id)

        with self.store.locked(player_id):
            session = self.store.get(player_id)
            if session is None:
                raise NoActiveGame("No active game. Start a new game first.")

            if not session.paid:
                status = self._verify(session)
                if status != PaymentStatus.CONFIRMED:
                    raise PaymentNotConfirmed(
                        self._payment_message(status, session.expected_amount),
                        status=status.value,
                    )

                player_move = parse_move(move)
                try:
                    self.store.mark_paid(player_id)
                except KeyError:
                    raise NoActiveGame("No active game. Start a new game first.")
                old_score = 0
            else:
                player_move = parse_move(move)
                old_score = session.score

            outcome = resolve_turn(player_move, old_score, self.dice)
            logger.debug(
                "%s played %d, computer %d, out=%s",
                player_id, outcome.player_move, outcome.computer_move, outcome.is_out,
            )

            if not outcome.is_out:
                score = self.store.apply_score(player_id, outcome.player_move)
                return PlayResult(
                    outcome_message=outcome.describe(),
                    loop_state=LoopState.ACTIVE,
                    updated_score=score,
                    turn=outcome,
                )

            result = self.payout_engine.decide(outcome.updated_score)
            self.store.clear(player_id)

        return self._finish(player_id, outcome, result)

    def state_of(self, player_id: str) -> tuple[LoopState, int | None]:
        """Current state and score for a player, without side effects."""
        session = self.store.get(validate_address(player_id))
        if session is None:
            return LoopState.NO_SESSION, None
        if session.paid:
            return LoopState.ACTIVE, session.score
        return LoopState.AWAITING_PAYMENT, None

    def _finish(self, player_id: str, outcome: TurnOutcome, result: GameResult) -> PlayResult:
        transfer = None
        message = f"{outcome.describe()} {result.describe()}"

        if result.player_won:
            transfer = self.transfer_builder.build_transfer(
                self.treasury, player_id, result.payout_amount,
            )
            message += f" {lamports_to_sol(result.payout_amount):g} SOL transfer built."
            logger.info(
                "%s won with %d against %d, payout %d",
                player_id, result.final_score, result.computer_score, result.payout_amount,
            )
        else:
            logger.info(
                "%s lost with %d against %d",
                player_id, result.final_score, result.computer_score,
            )

        return PlayResult(
            outcome_message=message,
            loop_state=LoopState.ENDED,
            game_over=True,
            updated_score=result.final_score,
            transfer_request=transfer,
            turn=outcome,
            result=result,
        )

    def _verify(self, session: PlayerSession) -> PaymentStatus:
        """Check the session's entry fee. The caller holds the player's lock."""
        # Verification can take several RPC round trips; the idle clock
        # restarts first so the session cannot expire mid-check.
        self.store.touch(session.player_id)
        return self.verifier.verify(
            session.player_id, session.expected_amount, session.payment_reference,
        )

    def _payment_message(self, status: PaymentStatus, amount: int) -> str:
        if status == PaymentStatus.PENDING:
            return (
                f"Your {lamports_to_sol(amount):g} SOL entry fee has not been "
                "confirmed yet. Try again shortly."
            )
        return "Your entry fee payment failed or did not match. Start a new game."
