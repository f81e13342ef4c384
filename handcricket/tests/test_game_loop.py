"""
Tests for the game loop state machine.

Tests:
- start: fee request, idempotence, collision guard
- play: payment gating, turn resolution, game end
- Full game scenarios
- Per-player sequential consistency under concurrent plays
"""

import threading

import pytest

from ..engine_core.errors import (
    GameAlreadyInProgress,
    InvalidAccount,
    InvalidChoice,
    NoActiveGame,
    PaymentNotConfirmed,
)
from ..ledger import PaymentStatus, PaymentVerifier
from ..session import GameLoop, LoopState, SessionStore
from .conftest import ENTRY_FEE, REWARD, FakeClock, ScriptedDice, start_and_pay


class SlowVerifier(PaymentVerifier):
    """Verifier whose ledger lookup takes `delay` seconds of clock time."""

    def __init__(self, treasury, clock, delay, status=PaymentStatus.CONFIRMED):
        super().__init__(treasury)
        self.clock = clock
        self.delay = delay
        self.status = status

    def verify(self, player_id, expected_amount, payment_reference):
        self.clock.advance(self.delay)
        return self.status


class TestStart:

    def test_start_requests_entry_fee(self, game_loop, store, player, treasury):
        result = game_loop.start(player)

        assert result.loop_state == LoopState.AWAITING_PAYMENT
        assert not result.game_over
        assert result.updated_score is None
        assert result.payment_reference is not None

        transfer = result.transfer_request
        assert transfer.sender == player
        assert transfer.recipient == treasury
        assert transfer.amount == ENTRY_FEE
        assert transfer.reference == result.payment_reference
        assert "0.1 SOL" in result.outcome_message

    def test_start_does_not_mark_paid(self, game_loop, store, player):
        game_loop.start(player)

        session = store.get(player)
        assert not session.paid
        assert session.expected_amount == ENTRY_FEE

    def test_start_twice_reuses_reference(self, game_loop, store, player):
        """A repeated start re-issues the same obligation."""
        first = game_loop.start(player)
        second = game_loop.start(player)

        assert second.payment_reference == first.payment_reference
        assert second.transfer_request == first.transfer_request
        assert store.get(player).payment_reference == first.payment_reference

    def test_start_after_confirmed_payment_asks_for_nothing(self, game_loop, ledger, store, player):
        first = start_and_pay(game_loop, ledger, player)

        second = game_loop.start(player)

        assert second.transfer_request is None
        assert second.payment_reference == first.payment_reference
        assert not store.get(player).paid

    def test_start_after_failed_payment_issues_new_reference(self, game_loop, ledger, player, treasury):
        first = game_loop.start(player)
        ledger.submit(player, treasury, ENTRY_FEE, first.payment_reference)
        ledger.reject(first.payment_reference)

        second = game_loop.start(player)

        assert second.payment_reference != first.payment_reference
        assert second.transfer_request is not None

    def test_start_while_active_rejected(self, game_loop, ledger, store, player):
        game_loop.dice.rolls = [6]
        start_and_pay(game_loop, ledger, player)
        game_loop.play(player, "2")

        with pytest.raises(GameAlreadyInProgress):
            game_loop.start(player)

        session = store.get(player)
        assert session.paid
        assert session.score == 2

    def test_start_invalid_account(self, game_loop, store):
        with pytest.raises(InvalidAccount):
            game_loop.start("not an address")
        assert len(store) == 0


class TestPlayGating:

    def test_play_without_session(self, game_loop, player):
        with pytest.raises(NoActiveGame):
            game_loop.play(player, "3")

    def test_play_invalid_account(self, game_loop):
        with pytest.raises(InvalidAccount):
            game_loop.play("", "3")

    @pytest.mark.parametrize("move", ["3", "0", "9", "abc", None])
    def test_unpaid_play_rejected_regardless_of_move(self, game_loop, store, player, move):
        game_loop.start(player)

        with pytest.raises(PaymentNotConfirmed) as exc_info:
            game_loop.play(player, move)

        assert exc_info.value.status == PaymentStatus.PENDING.value
        session = store.get(player)
        assert not session.paid
        assert session.score == 0
        assert game_loop.dice.roll_calls == []

    def test_submitted_but_not_finalized(self, game_loop, ledger, store, player, treasury):
        result = game_loop.start(player)
        ledger.submit(player, treasury, ENTRY_FEE, result.payment_reference)

        with pytest.raises(PaymentNotConfirmed):
            game_loop.play(player, "3")
        assert not store.get(player).paid

    def test_failed_payment_rejected(self, game_loop, ledger, store, player, treasury):
        result = game_loop.start(player)
        ledger.settle(player, treasury, ENTRY_FEE - 1, result.payment_reference)

        with pytest.raises(PaymentNotConfirmed) as exc_info:
            game_loop.play(player, "3")

        assert exc_info.value.status == PaymentStatus.FAILED.value
        assert not store.get(player).paid

    def test_confirmed_payment_plays_first_ball(self, game_loop, ledger, store, player):
        game_loop.dice.rolls = [5]
        start_and_pay(game_loop, ledger, player)

        result = game_loop.play(player, "3")

        assert result.loop_state == LoopState.ACTIVE
        assert result.updated_score == 3
        assert result.turn.computer_move == 5
        session = store.get(player)
        assert session.paid
        assert session.score == 3

    def test_invalid_move_after_confirmation_leaves_session(self, game_loop, ledger, store, player):
        start_and_pay(game_loop, ledger, player)

        with pytest.raises(InvalidChoice):
            game_loop.play(player, "7")

        assert not store.get(player).paid

        game_loop.dice.rolls = [1]
        result = game_loop.play(player, "4")
        assert result.updated_score == 4

    def test_invalid_move_while_active(self, game_loop, ledger, store, player):
        game_loop.dice.rolls = [1]
        start_and_pay(game_loop, ledger, player)
        game_loop.play(player, "5")

        for bad in ["0", "7", "-1", "x"]:
            with pytest.raises(InvalidChoice):
                game_loop.play(player, bad)

        assert store.get(player).score == 5


class TestGameEnd:

    def test_scenario_loss(self, game_loop, ledger, store, player):
        """3 vs 5, then 4 vs 4: out on 3; computer total 3 wins the tie."""
        game_loop.dice.rolls = [5, 4]
        game_loop.dice.totals = [3]
        start_and_pay(game_loop, ledger, player)

        first = game_loop.play(player, "3")
        assert first.updated_score == 3
        assert not first.game_over

        last = game_loop.play(player, "4")

        assert last.game_over
        assert last.loop_state == LoopState.ENDED
        assert last.updated_score == 3
        assert last.result.computer_score == 3
        assert not last.result.player_won
        assert last.result.payout_amount == 0
        assert last.transfer_request is None
        assert game_loop.dice.below_calls == [13]
        assert not store.exists(player)

    def test_scenario_win(self, game_loop, ledger, store, player, treasury):
        game_loop.dice.rolls = [5, 4]
        game_loop.dice.totals = [2]
        start_and_pay(game_loop, ledger, player)

        game_loop.play(player, "3")
        last = game_loop.play(player, "4")

        assert last.game_over
        assert last.result.player_won
        assert last.result.payout_amount == REWARD
        payout = last.transfer_request
        assert payout.sender == treasury
        assert payout.recipient == player
        assert payout.amount == REWARD
        assert payout.reference is None
        assert "You beat the computer!" in last.outcome_message
        assert not store.exists(player)

    def test_out_on_first_ball(self, game_loop, ledger, store, player):
        game_loop.dice.rolls = [2]
        start_and_pay(game_loop, ledger, player)

        result = game_loop.play(player, "2")

        assert result.game_over
        assert result.updated_score == 0
        assert result.result.computer_score == 0
        assert not result.result.player_won
        assert game_loop.dice.below_calls == []
        assert not store.exists(player)

    def test_play_after_game_over(self, game_loop, ledger, player):
        game_loop.dice.rolls = [2]
        game_loop.dice.totals = []
        start_and_pay(game_loop, ledger, player)
        game_loop.play(player, "2")

        with pytest.raises(NoActiveGame):
            game_loop.play(player, "3")

    def test_new_game_after_game_over_needs_new_payment(self, game_loop, ledger, player):
        game_loop.dice.rolls = [2]
        first = start_and_pay(game_loop, ledger, player)
        game_loop.play(player, "2")

        second = game_loop.start(player)

        assert second.payment_reference != first.payment_reference
        with pytest.raises(PaymentNotConfirmed):
            game_loop.play(player, "3")

    def test_state_of(self, game_loop, ledger, player):
        assert game_loop.state_of(player) == (LoopState.NO_SESSION, None)

        game_loop.start(player)
        assert game_loop.state_of(player) == (LoopState.AWAITING_PAYMENT, None)

        ledger_reference = game_loop.store.get(player).payment_reference
        ledger.settle(player, game_loop.treasury, ENTRY_FEE, ledger_reference)
        game_loop.dice.rolls = [1]
        game_loop.play(player, "6")
        assert game_loop.state_of(player) == (LoopState.ACTIVE, 6)


class TestExpiredSessions:

    def test_expired_unpaid_session_is_no_active_game(self, game_loop, clock, player):
        game_loop.start(player)
        clock.advance(1801)

        with pytest.raises(NoActiveGame):
            game_loop.play(player, "3")

    @pytest.mark.parametrize("delay", [2, 2000])
    def test_slow_confirmation_near_ttl_still_opens_game(self, store, clock, treasury, player, delay):
        """A fee confirmed while the verifier runs past the TTL is not lost."""
        loop = GameLoop(
            store=store,
            verifier=SlowVerifier(treasury, clock, delay),
            treasury=treasury,
            entry_fee=ENTRY_FEE,
            reward=REWARD,
            dice=ScriptedDice(rolls=[1]),
        )
        loop.start(player)
        clock.advance(1799)

        result = loop.play(player, "3")

        assert result.loop_state == LoopState.ACTIVE
        assert result.updated_score == 3
        assert store.get(player).paid

    def test_slow_pending_check_keeps_session(self, store, clock, treasury, player):
        loop = GameLoop(
            store=store,
            verifier=SlowVerifier(treasury, clock, 2, status=PaymentStatus.PENDING),
            treasury=treasury,
            entry_fee=ENTRY_FEE,
            reward=REWARD,
            dice=ScriptedDice(),
        )
        first = loop.start(player)
        clock.advance(1799)

        with pytest.raises(PaymentNotConfirmed):
            loop.play(player, "3")

        assert store.get(player).payment_reference == first.payment_reference

    def test_paid_session_recoverable_within_grace(self, game_loop, ledger, clock, player):
        game_loop.dice.rolls = [1, 1]
        start_and_pay(game_loop, ledger, player)
        game_loop.play(player, "4")

        clock.advance(1800 + 300)
        result = game_loop.play(player, "2")

        assert result.updated_score == 6


class TestConcurrentPlays:

    def test_concurrent_plays_are_sequentially_consistent(self, treasury, player, ledger):
        """Every accepted move is counted exactly once."""
        dice = ScriptedDice(default_roll=6)
        loop = GameLoop(
            store=SessionStore(clock=FakeClock()),
            verifier=ledger,
            treasury=treasury,
            entry_fee=ENTRY_FEE,
            reward=REWARD,
            dice=dice,
        )
        start_and_pay(loop, ledger, player)

        moves = [(i % 5) + 1 for i in range(40)]
        barrier = threading.Barrier(len(moves))
        accepted = []
        accepted_lock = threading.Lock()

        def worker(move):
            barrier.wait()
            result = loop.play(player, str(move))
            with accepted_lock:
                accepted.append((move, result.updated_score))

        threads = [threading.Thread(target=worker, args=(m,)) for m in moves]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(accepted) == len(moves)
        assert loop.store.get(player).score == sum(moves)
        # Each call observed a distinct running total
        scores = sorted(score for _, score in accepted)
        assert len(set(scores)) == len(scores)
        assert scores[-1] == sum(moves)

    def test_concurrent_start_creates_one_reference(self, game_loop, player):
        barrier = threading.Barrier(8)
        references = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            result = game_loop.start(player)
            with lock:
                references.append(result.payment_reference)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(references)) == 1
