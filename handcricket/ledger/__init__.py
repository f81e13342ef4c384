"""
Ledger Module - The game's view of the payment ledger.

Two capabilities, both kept outside the game rules:
- Build unsigned transfers (entry fee in, reward out)
- Verify that an entry fee settled before a game may start
"""

from .transfer import (
    AccountMeta,
    TransferRequest,
    TransferBuilder,
    validate_address,
    new_reference,
    lamports_to_sol,
    LAMPORTS_PER_SOL,
    SYSTEM_PROGRAM_ID,
)
from .verifier import (
    PaymentStatus,
    PaymentVerifier,
    InMemoryLedger,
    RpcPaymentVerifier,
    LedgerUnavailable,
)

__all__ = [
    "AccountMeta",
    "TransferRequest",
    "TransferBuilder",
    "validate_address",
    "new_reference",
    "lamports_to_sol",
    "LAMPORTS_PER_SOL",
    "SYSTEM_PROGRAM_ID",
    "PaymentStatus",
    "PaymentVerifier",
    "InMemoryLedger",
    "RpcPaymentVerifier",
    "LedgerUnavailable",
]
