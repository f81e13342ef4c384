"""
Payout Decision - Decides the winner once the player is out.

The computer's total is drawn uniformly from [0, final_score + 10). The
player wins only with a strictly higher score: a tie goes to the computer.
A player out on 0 faces a computer total of 0 and so can never win.
A win pays a fixed reward, a loss pays nothing, with no partial payouts.

The engine knows nothing about the ledger; it returns an amount and the
caller builds the transfer.
"""

from __future__ import annotations
from dataclasses import dataclass

from .dice import DiceSource

COMPUTER_TOTAL_HEADROOM = 10


@dataclass(frozen=True)
class GameResult:
    """Final result of a finished game."""
    final_score: int
    computer_score: int
    player_won: bool
    payout_amount: int

    def describe(self) -> str:
        text = f"Computer total: {self.computer_score}."
        if self.player_won:
            return f"{text} You beat the computer!"
        return f"{text} Computer wins. No payout."


class PayoutDecisionEngine:
    """
    Decides game results.

    Usage:
        engine = PayoutDecisionEngine(reward_amount=200_000_000, dice=RandomDice())
        result = engine.decide(final_score=12)
        if result.player_won:
            pay(result.payout_amount)
    """

    def __init__(self, reward_amount: int, dice: DiceSource):
        if reward_amount <= 0:
            raise ValueError(f"Reward must be positive, got {reward_amount}")
        self.reward_amount = reward_amount
        self.dice = dice

    def decide(self, final_score: int) -> GameResult:
        if final_score < 0:
            raise ValueError(f"Final score cannot be negative: {final_score}")

        # Out for a duck: nothing to beat, the computer total is 0 and the
        # tie goes to the computer.
        if final_score == 0:
            computer_score = 0
        else:
            computer_score = self.dice.below(final_score + COMPUTER_TOTAL_HEADROOM)
        player_won = computer_score < final_score

        return GameResult(
            final_score=final_score,
            computer_score=computer_score,
            player_won=player_won,
            payout_amount=self.reward_amount if player_won else 0,
        )
