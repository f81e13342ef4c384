"""
Session Store - Owns per-player game sessions.

LIFECYCLE:
1. Player calls start -> session created AWAITING_PAYMENT with a reference
2. Player calls play, fee verified -> mark_paid, session ACTIVE, score 0
3. Each ball not out -> apply_score
4. Player out -> clear (session removed, never zeroed)

CONCURRENCY:
- One re-entrant lock per player id; every mutation runs under it
- locked(player_id) lets the game loop hold the lock across a whole
  read-verify-resolve-write sequence
- Different players never wait on each other; the lock table guard is
  held only long enough to look up a lock

EXPIRY:
- Sessions idle longer than `ttl` are evicted lazily on lookup and by sweep()
- Unpaid sessions simply disappear: no payment was confirmed, nothing is owed
- Paid sessions stay playable for an extra `paid_grace_period`, after which
  they are forfeited and logged
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator
import logging
import threading
import time

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_PAID_GRACE_SECONDS = 24 * 60 * 60


class SessionPhase(Enum):
    """Phase of a live session. Ended sessions are removed, not stored."""
    AWAITING_PAYMENT = "awaiting_payment"
    ACTIVE = "active"


@dataclass
class PlayerSession:
    """
    One player's game in progress.

    `paid` is true only once the entry fee has been verified as settled.
    """
    player_id: str
    payment_reference: str
    expected_amount: int
    created_at: float
    last_activity_at: float
    phase: SessionPhase = SessionPhase.AWAITING_PAYMENT
    score: int = 0

    @property
    def paid(self) -> bool:
        return self.phase == SessionPhase.ACTIVE

    def idle_for(self, now: float) -> float:
        return now - self.last_activity_at


class SessionStore:
    """
    In-memory store of player sessions.

    Sessions handed out by get() are copies: changes go through the store
    methods so they stay serialized per player.

    Usage:
        store = SessionStore(ttl=1800)
        with store.locked(player_id):
            session = store.get(player_id)
            ...
            store.apply_score(player_id, 4)
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        paid_grace_period: float = DEFAULT_PAID_GRACE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if ttl <= 0:
            raise ValueError(f"Session TTL must be positive, got {ttl}")
        if paid_grace_period < 0:
            raise ValueError(f"Grace period cannot be negative, got {paid_grace_period}")
        self.ttl = ttl
        self.paid_grace_period = paid_grace_period
        self.clock = clock

        self._sessions: dict[str, PlayerSession] = {}
        # Per-player locks are kept for the process lifetime. Dropping one
        # while a waiter holds a reference would let two writers in.
        self._locks: dict[str, threading.RLock] = {}
        self._table_lock = threading.Lock()

    # =========================================================================
    # Locking
    # =========================================================================

    def _lock_for(self, player_id: str) -> threading.RLock:
        with self._table_lock:
            lock = self._locks.get(player_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[player_id] = lock
            return lock

    @contextmanager
    def locked(self, player_id: str) -> Iterator[None]:
        """Hold the player's lock for a multi-step transition."""
        with self._lock_for(player_id):
            yield

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, player_id: str) -> PlayerSession | None:
        """Get a copy of the player's session, evicting it if expired."""
        with self.locked(player_id):
            session = self._live_session(player_id)
            return replace(session) if session else None

    def exists(self, player_id: str) -> bool:
        with self.locked(player_id):
            return self._live_session(player_id) is not None

    def list_active(self) -> list[str]:
        """List ids of sessions that have not expired."""
        return [pid for pid in list(self._sessions) if self.exists(pid)]

    def __len__(self) -> int:
        return len(self._sessions)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(
        self,
        player_id: str,
        payment_reference: str,
        expected_amount: int,
    ) -> PlayerSession:
        """Create a session awaiting its entry fee."""
        with self.locked(player_id):
            if self._live_session(player_id) is not None:
                raise ValueError(f"Session already exists for {player_id}")

            now = self.clock()
            session = PlayerSession(
                player_id=player_id,
                payment_reference=payment_reference,
                expected_amount=expected_amount,
                created_at=now,
                last_activity_at=now,
            )
            self._sessions[player_id] = session
            logger.info("Session created for %s (reference %s)", player_id, payment_reference)
            return replace(session)

    def mark_paid(self, player_id: str) -> PlayerSession:
        """
        Mark the entry fee as settled and open the game.

        Only call this after the payment verifier has confirmed settlement.
        A confirmed fee is never lost to expiry, so the session is not
        re-checked for idleness here.
        """
        with self.locked(player_id):
            session = self._require(player_id, evict=False)
            if session.phase != SessionPhase.AWAITING_PAYMENT:
                raise ValueError(f"Session for {player_id} is not awaiting payment")

            session.phase = SessionPhase.ACTIVE
            session.score = 0
            session.last_activity_at = self.clock()
            logger.info("Entry fee confirmed for %s", player_id)
            return replace(session)

    def apply_score(self, player_id: str, delta: int) -> int:
        """Add runs to a paid session and return the new score."""
        if delta < 0:
            raise ValueError(f"Score delta cannot be negative, got {delta}")

        with self.locked(player_id):
            session = self._require(player_id)
            if not session.paid:
                raise ValueError(f"Session for {player_id} has not been paid for")

            session.score += delta
            session.last_activity_at = self.clock()
            return session.score

    def touch(self, player_id: str):
        """Record activity without changing state."""
        with self.locked(player_id):
            self._require(player_id).last_activity_at = self.clock()

    def clear(self, player_id: str) -> bool:
        """Remove a session. Returns whether one existed."""
        with self.locked(player_id):
            return self._sessions.pop(player_id, None) is not None

    def sweep(self) -> list[str]:
        """
        Evict every expired session.

        Called periodically to free memory. Returns the evicted player ids.
        """
        evicted = []
        for player_id in list(self._sessions):
            with self.locked(player_id):
                if player_id in self._sessions and self._live_session(player_id) is None:
                    evicted.append(player_id)
        return evicted

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, player_id: str, evict: bool = True) -> PlayerSession:
        if evict:
            session = self._live_session(player_id)
        else:
            session = self._sessions.get(player_id)
        if session is None:
            raise KeyError(player_id)
        return session

    def _live_session(self, player_id: str) -> PlayerSession | None:
        """Return the stored session, evicting it first if it has expired."""
        session = self._sessions.get(player_id)
        if session is None:
            return None

        idle = session.idle_for(self.clock())
        if not session.paid:
            if idle > self.ttl:
                del self._sessions[player_id]
                logger.info("Unpaid session for %s expired after %.0fs", player_id, idle)
                return None
            return session

        if idle > self.ttl + self.paid_grace_period:
            del self._sessions[player_id]
            logger.warning(
                "Paid session for %s forfeited after %.0fs idle (score %d, entry fee %d)",
                player_id, idle, session.score, session.expected_amount,
            )
            return None
        return session
