"""
Configuration - Game settings read from the environment.

Environment variables:
    HANDCRICKET_TREASURY             Treasury address (required outside tests)
    HANDCRICKET_ENTRY_FEE_LAMPORTS   Entry fee (default 0.1 SOL)
    HANDCRICKET_REWARD_LAMPORTS      Winner's reward (default 0.2 SOL)
    HANDCRICKET_LEDGER               "rpc" or "memory" (default rpc)
    HANDCRICKET_RPC_URL              JSON-RPC endpoint (default devnet)
    HANDCRICKET_RPC_TIMEOUT          Seconds per RPC call (default 5)
    HANDCRICKET_SESSION_TTL          Idle seconds before a session expires
    HANDCRICKET_PAID_GRACE           Extra seconds a paid session survives
    HANDCRICKET_SWEEP_INTERVAL       Seconds between background sweeps
    HANDCRICKET_SEED                 Seed for the computer's dice
    HANDCRICKET_LOG_LEVEL            Logging level (default INFO)
    HANDCRICKET_LOG_FILE             Optional log file
    ALLOWED_ORIGINS                  Comma-separated CORS origins (default *)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Mapping
import os

from .engine_core.errors import InvalidAccount
from .ledger.transfer import validate_address, LAMPORTS_PER_SOL
from .session.store import DEFAULT_TTL_SECONDS, DEFAULT_PAID_GRACE_SECONDS

DEVNET_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_ENTRY_FEE = LAMPORTS_PER_SOL // 10
DEFAULT_REWARD = LAMPORTS_PER_SOL // 5
LEDGER_MODES = ("rpc", "memory")


class ConfigError(ValueError):
    """Invalid configuration."""


@dataclass
class GameConfig:
    """Settings for one game server."""
    treasury: str
    entry_fee: int = DEFAULT_ENTRY_FEE
    reward: int = DEFAULT_REWARD
    ledger: str = "rpc"
    rpc_url: str = DEVNET_RPC_URL
    rpc_timeout: float = 5.0
    session_ttl: float = DEFAULT_TTL_SECONDS
    paid_grace_period: float = DEFAULT_PAID_GRACE_SECONDS
    sweep_interval: float = 60.0
    seed: int | None = None
    log_level: str = "INFO"
    log_file: str | None = None
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self):
        self.validate()

    def validate(self):
        try:
            validate_address(self.treasury)
        except InvalidAccount as e:
            raise ConfigError(f"Invalid treasury address: {e.message}")
        if self.entry_fee <= 0:
            raise ConfigError("Entry fee must be positive")
        if self.reward <= self.entry_fee:
            raise ConfigError("Reward must be greater than the entry fee")
        if self.ledger not in LEDGER_MODES:
            raise ConfigError(f"Ledger must be one of {LEDGER_MODES}, got {self.ledger!r}")
        if self.session_ttl <= 0:
            raise ConfigError("Session TTL must be positive")
        if self.paid_grace_period < 0:
            raise ConfigError("Paid grace period cannot be negative")
        if self.sweep_interval <= 0:
            raise ConfigError("Sweep interval must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GameConfig:
        env = os.environ if environ is None else environ

        treasury = env.get("HANDCRICKET_TREASURY")
        if not treasury:
            raise ConfigError("HANDCRICKET_TREASURY is not set")

        try:
            seed = env.get("HANDCRICKET_SEED")
            return cls(
                treasury=treasury,
                entry_fee=int(env.get("HANDCRICKET_ENTRY_FEE_LAMPORTS", DEFAULT_ENTRY_FEE)),
                reward=int(env.get("HANDCRICKET_REWARD_LAMPORTS", DEFAULT_REWARD)),
                ledger=env.get("HANDCRICKET_LEDGER", "rpc").lower(),
                rpc_url=env.get("HANDCRICKET_RPC_URL", DEVNET_RPC_URL),
                rpc_timeout=float(env.get("HANDCRICKET_RPC_TIMEOUT", 5.0)),
                session_ttl=float(env.get("HANDCRICKET_SESSION_TTL", DEFAULT_TTL_SECONDS)),
                paid_grace_period=float(env.get("HANDCRICKET_PAID_GRACE", DEFAULT_PAID_GRACE_SECONDS)),
                sweep_interval=float(env.get("HANDCRICKET_SWEEP_INTERVAL", 60.0)),
                seed=int(seed) if seed else None,
                log_level=env.get("HANDCRICKET_LOG_LEVEL", "INFO").upper(),
                log_file=env.get("HANDCRICKET_LOG_FILE") or None,
                allowed_origins=env.get("ALLOWED_ORIGINS", "*").split(","),
            )
        except ValueError as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid numeric setting: {e}")
