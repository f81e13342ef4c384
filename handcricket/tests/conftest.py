"""
Pytest fixtures for Hand Cricket tests.
"""

import threading

import base58
import pytest

from ..config import GameConfig
from ..engine_core.dice import DiceSource
from ..ledger.verifier import InMemoryLedger
from ..session import GameLoop, SessionStore

ENTRY_FEE = 100_000_000
REWARD = 200_000_000


def make_address(n: int) -> str:
    """A valid, deterministic 32-byte base58 address."""
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


class ScriptedDice(DiceSource):
    """
    Dice that return scripted values.

    `rolls` feed roll() (the computer's move), `totals` feed below() (the
    computer's total). When a queue runs dry the default is used, or the
    test fails if there is none.
    """

    def __init__(self, rolls=(), totals=(), default_roll=None, default_total=None):
        self.rolls = list(rolls)
        self.totals = list(totals)
        self.default_roll = default_roll
        self.default_total = default_total
        self.roll_calls = []
        self.below_calls = []
        self._lock = threading.Lock()

    def roll(self, low, high):
        with self._lock:
            self.roll_calls.append((low, high))
            if self.rolls:
                return self.rolls.pop(0)
            if self.default_roll is None:
                raise AssertionError("Unexpected roll")
            return self.default_roll

    def below(self, bound):
        with self._lock:
            self.below_calls.append(bound)
            if self.totals:
                value = self.totals.pop(0)
            elif self.default_total is None:
                raise AssertionError("Unexpected draw of the computer total")
            else:
                value = self.default_total
            assert 0 <= value < bound, f"scripted total {value} outside [0, {bound})"
            return value


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def start_and_pay(loop: GameLoop, ledger: InMemoryLedger, player: str):
    """Start a game and settle its entry fee on the ledger."""
    result = loop.start(player)
    fee = result.transfer_request
    ledger.settle(fee.sender, fee.recipient, fee.amount, result.payment_reference)
    return result


@pytest.fixture
def treasury() -> str:
    return make_address(1)


@pytest.fixture
def player() -> str:
    return make_address(2)


@pytest.fixture
def other_player() -> str:
    return make_address(3)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(ttl=1800, paid_grace_period=600, clock=clock)


@pytest.fixture
def ledger(treasury: str) -> InMemoryLedger:
    return InMemoryLedger(treasury=treasury)


@pytest.fixture
def dice() -> ScriptedDice:
    return ScriptedDice()


@pytest.fixture
def game_loop(store, ledger, treasury, dice) -> GameLoop:
    return GameLoop(
        store=store,
        verifier=ledger,
        treasury=treasury,
        entry_fee=ENTRY_FEE,
        reward=REWARD,
        dice=dice,
    )


@pytest.fixture
def config(treasury: str) -> GameConfig:
    return GameConfig(
        treasury=treasury,
        entry_fee=ENTRY_FEE,
        reward=REWARD,
        ledger="memory",
    )
