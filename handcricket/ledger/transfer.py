"""
Transfer Builder - Unsigned System Program transfer instructions.

The game never signs or submits anything. It describes the transfer it
needs (entry fee in, reward out) and hands the description to the client's
wallet, which builds, signs and sends the transaction.

An entry-fee transfer carries a reference key: a random public key added
as a read-only, non-signer account. The key is never a real account, it
only makes the payment findable on the ledger afterwards.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import base64
import os
import struct

import base58

from ..engine_core.errors import InvalidAccount

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TRANSFER_INSTRUCTION_INDEX = 2
PUBKEY_LENGTH = 32
LAMPORTS_PER_SOL = 1_000_000_000


def validate_address(address: Any) -> str:
    """
    Check that an account address is a base58 encoded 32-byte public key.

    Returns the address unchanged so callers can validate inline.
    """
    if not isinstance(address, str) or not address.strip():
        raise InvalidAccount("Missing 'account'")
    address = address.strip()
    try:
        raw = base58.b58decode(address)
    except ValueError:
        raise InvalidAccount(f"Account {address!r} is not valid base58")
    if len(raw) != PUBKEY_LENGTH:
        raise InvalidAccount(f"Account {address!r} is not a {PUBKEY_LENGTH}-byte public key")
    return address


def new_reference() -> str:
    """Generate a fresh random reference key."""
    return base58.b58encode(os.urandom(PUBKEY_LENGTH)).decode("ascii")


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


@dataclass(frozen=True)
class AccountMeta:
    """An account referenced by an instruction."""
    pubkey: str
    is_signer: bool
    is_writable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "pubkey": self.pubkey,
            "isSigner": self.is_signer,
            "isWritable": self.is_writable,
        }


@dataclass(frozen=True)
class TransferRequest:
    """
    An unsigned transfer of lamports from sender to recipient.

    `data` is the System Program Transfer instruction payload: a
    little-endian u32 instruction index followed by a u64 amount.
    """
    sender: str
    recipient: str
    amount: int
    reference: str | None = None
    program_id: str = SYSTEM_PROGRAM_ID
    accounts: tuple[AccountMeta, ...] = field(default_factory=tuple)
    data: bytes = b""

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.recipient,
            "lamports": self.amount,
            "sol": lamports_to_sol(self.amount),
            "reference": self.reference,
            "instruction": {
                "programId": self.program_id,
                "keys": [meta.to_dict() for meta in self.accounts],
                "data": base64.b64encode(self.data).decode("ascii"),
            },
        }


class TransferBuilder:
    """
    Builds unsigned System Program transfers.

    Usage:
        builder = TransferBuilder()
        fee = builder.build_transfer(player, treasury, 100_000_000, reference=ref)
        payload = fee.to_dict()
    """

    def build_transfer(
        self,
        sender: str,
        recipient: str,
        amount: int,
        reference: str | None = None,
    ) -> TransferRequest:
        validate_address(sender)
        validate_address(recipient)
        if amount <= 0:
            raise ValueError(f"Transfer amount must be positive, got {amount}")

        accounts = [
            AccountMeta(pubkey=sender, is_signer=True, is_writable=True),
            AccountMeta(pubkey=recipient, is_signer=False, is_writable=True),
        ]
        if reference is not None:
            validate_address(reference)
            accounts.append(AccountMeta(pubkey=reference, is_signer=False, is_writable=False))

        return TransferRequest(
            sender=sender,
            recipient=recipient,
            amount=amount,
            reference=reference,
            accounts=tuple(accounts),
            data=struct.pack("<IQ", TRANSFER_INSTRUCTION_INDEX, amount),
        )
