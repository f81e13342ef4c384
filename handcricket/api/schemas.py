"""
Pydantic Schemas for API - Actions-style request/response models.

The HTTP surface follows the shape wallets expect from an action:
GET returns metadata with links, POST takes the player's account and
returns a message, a transfer to sign, and the next action to show.

Error kinds:
- InvalidAccount: account missing or not a 32-byte base58 key
- InvalidChoice: move missing, unparsable or outside 1-6
- PaymentNotConfirmed: entry fee not (yet) settled on the ledger
- NoActiveGame: play without a started game
- GameAlreadyInProgress: start while a paid game is running
- UnknownOperation: neither start nor play
"""

from typing import Optional, Any
from pydantic import BaseModel, Field

from ..engine_core.errors import ErrorKind


# =============================================================================
# Action metadata
# =============================================================================

class ParameterOption(BaseModel):
    label: str
    value: str
    selected: bool = False


class ActionParameter(BaseModel):
    """An input the wallet collects before posting."""
    type: str = "radio"
    name: str
    label: Optional[str] = None
    required: bool = True
    options: list[ParameterOption] = Field(default_factory=list)


class LinkedAction(BaseModel):
    type: str = "transaction"
    label: str
    href: str
    parameters: list[ActionParameter] = Field(default_factory=list)


class ActionLinks(BaseModel):
    actions: list[LinkedAction] = Field(default_factory=list)


class Action(BaseModel):
    """Action metadata shown by the wallet."""
    type: str = "action"
    icon: str
    title: str
    description: str
    label: str
    disabled: bool = False
    links: Optional[ActionLinks] = None


class InlineNextLink(BaseModel):
    type: str = "inline"
    action: Action


class PostLinks(BaseModel):
    next: InlineNextLink


class ActionRule(BaseModel):
    pathPattern: str
    apiPath: str


class ActionsJson(BaseModel):
    rules: list[ActionRule]


# =============================================================================
# Request Models
# =============================================================================

class ActionPostRequest(BaseModel):
    """
    Body of a POST to start or play.

    The move arrives as `data.options` (wallet radio parameter) or as a
    top-level `move` field.
    """
    account: Optional[str] = Field(None, description="Player's public key")
    data: Optional[dict[str, Any]] = Field(None, description="Wallet-collected parameters")
    move: Optional[Any] = Field(None, description="Move from 1 to 6")

    def raw_move(self) -> Any:
        if self.data and "options" in self.data:
            return self.data["options"]
        return self.move


# =============================================================================
# Response Models
# =============================================================================

class AccountMetaPayload(BaseModel):
    pubkey: str
    isSigner: bool
    isWritable: bool


class InstructionPayload(BaseModel):
    programId: str
    keys: list[AccountMetaPayload]
    data: str = Field(..., description="Base64 instruction data")


class TransferPayload(BaseModel):
    """An unsigned transfer for the wallet to build, sign and send."""
    model_config = {"populate_by_name": True}

    sender: str = Field(..., alias="from")
    to: str
    lamports: int
    sol: float
    reference: Optional[str] = None
    instruction: InstructionPayload


class ActionPostResponse(BaseModel):
    """Response from start or play."""
    type: str = "transaction"
    message: str
    state: str
    score: Optional[int] = None
    game_over: bool = False
    transfer: Optional[TransferPayload] = None
    payment_reference: Optional[str] = None
    player_move: Optional[int] = None
    computer_move: Optional[int] = None
    computer_score: Optional[int] = None
    player_won: Optional[bool] = None
    links: Optional[PostLinks] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    error_kind: ErrorKind = Field(..., description="Machine-readable error kind")
    message: str = Field(..., description="Human-readable error message")


class SessionStatusResponse(BaseModel):
    account: str
    state: str
    score: Optional[int] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
