"""
Payment Verifier - Confirms that an entry fee actually settled.

Building a fee transfer proves nothing: the player may never sign it, or
the transaction may fail. Access is granted only once the ledger shows a
finalized transfer that carries the session's reference key, comes from
the player, goes to the treasury, and covers the expected amount.

Verification never polls. A verifier answers from one look at the ledger:
- CONFIRMED: finalized and matching
- PENDING: not finalized yet (or the ledger could not be reached)
- FAILED: rejected, insufficient, wrong parties, or malformed reference
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any
import logging
import threading

import requests

from .transfer import validate_address
from ..engine_core.errors import InvalidAccount

logger = logging.getLogger(__name__)


class PaymentStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    FAILED = "failed"


class PaymentVerifier(ABC):
    """Interface for payment verification."""

    def __init__(self, treasury: str):
        self.treasury = validate_address(treasury)

    @abstractmethod
    def verify(
        self,
        player_id: str,
        expected_amount: int,
        payment_reference: str,
    ) -> PaymentStatus:
        """Check whether the referenced entry fee has settled."""


# =============================================================================
# In-memory ledger
# =============================================================================

class LedgerTransferState(Enum):
    SUBMITTED = "submitted"
    FINALIZED = "finalized"
    REJECTED = "rejected"


@dataclass
class LedgerTransfer:
    """A transfer as seen by the in-memory ledger."""
    sender: str
    recipient: str
    amount: int
    reference: str
    state: LedgerTransferState = LedgerTransferState.SUBMITTED


class InMemoryLedger(PaymentVerifier):
    """
    A ledger that lives in process memory.

    Used for tests and local play. Transfers move through the same
    submitted -> finalized/rejected lifecycle a real ledger has, so the
    game sees PENDING until something finalizes them.

    Usage:
        ledger = InMemoryLedger(treasury=treasury)
        ledger.submit(player, treasury, fee, reference)   # verify -> PENDING
        ledger.finalize(reference)                        # verify -> CONFIRMED
    """

    def __init__(self, treasury: str):
        super().__init__(treasury)
        self._transfers: dict[str, LedgerTransfer] = {}
        self._lock = threading.Lock()

    def submit(self, sender: str, recipient: str, amount: int, reference: str) -> LedgerTransfer:
        transfer = LedgerTransfer(
            sender=sender,
            recipient=recipient,
            amount=amount,
            reference=reference,
        )
        with self._lock:
            self._transfers[reference] = transfer
        return transfer

    def finalize(self, reference: str):
        with self._lock:
            self._transfers[reference].state = LedgerTransferState.FINALIZED

    def reject(self, reference: str):
        with self._lock:
            self._transfers[reference].state = LedgerTransferState.REJECTED

    def settle(self, sender: str, recipient: str, amount: int, reference: str) -> LedgerTransfer:
        """Submit and finalize in one step."""
        transfer = self.submit(sender, recipient, amount, reference)
        self.finalize(reference)
        return transfer

    def verify(
        self,
        player_id: str,
        expected_amount: int,
        payment_reference: str,
    ) -> PaymentStatus:
        with self._lock:
            transfer = self._transfers.get(payment_reference)
            if transfer is None:
                return PaymentStatus.PENDING
            if transfer.state == LedgerTransferState.REJECTED:
                return PaymentStatus.FAILED
            if transfer.state == LedgerTransferState.SUBMITTED:
                return PaymentStatus.PENDING

            if (
                transfer.sender != player_id
                or transfer.recipient != self.treasury
                or transfer.amount < expected_amount
            ):
                return PaymentStatus.FAILED
            return PaymentStatus.CONFIRMED


# =============================================================================
# JSON-RPC verifier
# =============================================================================

class LedgerUnavailable(Exception):
    """The RPC node could not answer."""


class RpcPaymentVerifier(PaymentVerifier):
    """
    Verifies entry fees against a JSON-RPC node.

    Looks up signatures that touched the reference key at finalized
    commitment, then inspects each parsed transaction for a System
    Program transfer from the player to the treasury.
    """

    FINALIZED = "finalized"
    SIGNATURE_LIMIT = 10

    def __init__(
        self,
        rpc_url: str,
        treasury: str,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        super().__init__(treasury)
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._request_id = 0
        self._id_lock = threading.Lock()

    def verify(
        self,
        player_id: str,
        expected_amount: int,
        payment_reference: str,
    ) -> PaymentStatus:
        try:
            validate_address(payment_reference)
        except InvalidAccount:
            return PaymentStatus.FAILED

        try:
            return self._verify(player_id, expected_amount, payment_reference)
        except LedgerUnavailable as e:
            logger.warning("Ledger unavailable while verifying %s: %s", payment_reference, e)
            return PaymentStatus.PENDING

    def _verify(self, player_id: str, expected_amount: int, reference: str) -> PaymentStatus:
        signatures = self._call(
            "getSignaturesForAddress",
            [reference, {"commitment": self.FINALIZED, "limit": self.SIGNATURE_LIMIT}],
        )
        if not signatures:
            return PaymentStatus.PENDING

        pending = False
        for entry in signatures:
            if entry.get("err") is not None:
                continue

            tx = self._call(
                "getTransaction",
                [
                    entry["signature"],
                    {
                        "encoding": "jsonParsed",
                        "commitment": self.FINALIZED,
                        "maxSupportedTransactionVersion": 0,
                    },
                ],
            )
            if tx is None:
                pending = True
                continue
            if (tx.get("meta") or {}).get("err") is not None:
                continue

            for info in self._system_transfers(tx):
                if (
                    info.get("source") == player_id
                    and info.get("destination") == self.treasury
                    and int(info.get("lamports", 0)) >= expected_amount
                ):
                    return PaymentStatus.CONFIRMED

            logger.info(
                "Transaction %s references %s but does not pay %d from %s",
                entry["signature"], reference, expected_amount, player_id,
            )

        return PaymentStatus.PENDING if pending else PaymentStatus.FAILED

    def _system_transfers(self, tx: dict[str, Any]) -> list[dict[str, Any]]:
        """Extract parsed System Program transfer infos from a transaction."""
        message = (tx.get("transaction") or {}).get("message") or {}
        transfers = []
        for instruction in message.get("instructions", []):
            if instruction.get("program") != "system":
                continue
            parsed = instruction.get("parsed")
            if isinstance(parsed, dict) and parsed.get("type") == "transfer":
                transfers.append(parsed.get("info", {}))
        return transfers

    def _call(self, method: str, params: list[Any]) -> Any:
        with self._id_lock:
            self._request_id += 1
            request_id = self._request_id

        try:
            response = self.session.post(
                self.rpc_url,
                json={
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "method": method,
                    "params": params,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise LedgerUnavailable(f"{method} failed: {e}") from e

        if "error" in body:
            raise LedgerUnavailable(f"{method} returned error: {body['error']}")
        return body.get("result")
