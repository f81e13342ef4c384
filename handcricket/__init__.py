"""
Hand Cricket - Payment-gated hand cricket game server.

A player pays an entry fee on the ledger, bats against a computer bowler
until they are out, and is paid a fixed reward if their score beats a
computer-generated total. The package provides:
- Turn and payout engines (pure, seedable)
- A per-player session store with expiry
- Payment verification against the ledger
- An Actions-style HTTP API
"""

__version__ = "0.1.0"
