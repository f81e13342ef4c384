"""
FastAPI Application - Actions-style HTTP surface for the game.

Endpoints:
    GET     /actions.json                        Action path rules
    GET     /api/actions/hand-cricket            Action metadata
    POST    /api/actions/hand-cricket/start      Request the entry fee
    POST    /api/actions/hand-cricket/play       Play one ball
    OPTIONS /api/actions/hand-cricket[/...]      CORS preflight
    GET     /api/v1/sessions/{account}           Session state for a player
    GET     /health                              Health check

Game Flow:
    1. POST /start returns the entry fee transfer (with a reference key)
    2. The wallet signs and sends it
    3. POST /play verifies the fee on the ledger and plays the first ball
    4. POST /play until out; a win returns the reward transfer

Rejections are JSON `{error_kind, message}` with a 4xx status, including
bodies that fail schema validation.

Run with: uvicorn handcricket.api.app:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional, Union
import asyncio
import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import GameConfig
from ..engine_core.errors import ErrorKind
from ..ledger.transfer import lamports_to_sol
from ..logger import setup_logger
from .models import ErrorResponse as ServiceError, GameResponse
from .service import APIService
from .schemas import (
    Action,
    ActionLinks,
    ActionParameter,
    ActionPostRequest,
    ActionPostResponse,
    ActionRule,
    ActionsJson,
    ErrorResponse,
    HealthResponse,
    InlineNextLink,
    LinkedAction,
    ParameterOption,
    PostLinks,
    SessionStatusResponse,
    TransferPayload,
)

logger = logging.getLogger(__name__)

ACTION_PATH = "/api/actions/hand-cricket"
ICON_URL = "https://i.postimg.cc/52hr198Z/mainblink.png"
DEVNET_CHAIN_ID = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"
ACTION_HEADERS = {
    "X-Action-Version": "2.1.3",
    "X-Blockchain-Ids": DEVNET_CHAIN_ID,
}

# Body fields whose validation failures are move errors rather than account errors
MOVE_FIELDS = ("data", "move")

ERROR_STATUS = {
    ErrorKind.INVALID_ACCOUNT: 400,
    ErrorKind.INVALID_CHOICE: 400,
    ErrorKind.UNKNOWN_OPERATION: 400,
    ErrorKind.PAYMENT_NOT_CONFIRMED: 402,
    ErrorKind.NO_ACTIVE_GAME: 404,
    ErrorKind.GAME_ALREADY_IN_PROGRESS: 409,
}


def create_app(
    service: Optional[APIService] = None,
    config: Optional[GameConfig] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (built from config if not provided)
        config: Optional GameConfig (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    config = config or GameConfig.from_env()
    setup_logger("handcricket", log_file=config.log_file, level=config.log_level)

    api_service = service or APIService.from_config(config)
    entry_fee_sol = lamports_to_sol(api_service.game_loop.entry_fee)
    reward_sol = lamports_to_sol(api_service.game_loop.payout_engine.reward_amount)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_sweep_forever(api_service, config.sweep_interval))
        try:
            yield
        finally:
            task.cancel()

    app = FastAPI(
        title="Hand Cricket API",
        description=f"Pay {entry_fee_sol:g} SOL, bat against the computer, win {reward_sol:g} SOL.",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_action_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in ACTION_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    # =========================================================================
    # Helpers
    # =========================================================================

    def make_error_response(error: ServiceError) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=ERROR_STATUS.get(error.error_kind, 400),
            content=ErrorResponse(
                error_kind=error.error_kind,
                message=error.message,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Map malformed bodies onto the same error kinds the game uses."""
        locations = [tuple(err.get("loc", ())) for err in exc.errors()]
        if locations and all(
            len(loc) > 1 and loc[0] == "body" and loc[1] in MOVE_FIELDS
            for loc in locations
        ):
            error = ServiceError(
                error_kind=ErrorKind.INVALID_CHOICE,
                message="Move must be a number from 1 to 6",
            )
        else:
            error = ServiceError(
                error_kind=ErrorKind.INVALID_ACCOUNT,
                message="Request body must be a JSON object with a base58 account",
            )
        logger.info("Rejected malformed request to %s: %s", request.url.path, error.error_kind.value)
        return make_error_response(error)

    def move_action(label: str, title: str, description: str) -> Action:
        return Action(
            icon=ICON_URL,
            title=title,
            description=description,
            label=label,
            links=ActionLinks(actions=[
                LinkedAction(
                    label="Play Turn",
                    href=f"{ACTION_PATH}/play",
                    parameters=[
                        ActionParameter(
                            name="options",
                            label="Your number",
                            options=[
                                ParameterOption(label=str(n), value=str(n))
                                for n in range(1, 7)
                            ],
                        ),
                    ],
                ),
            ]),
        )

    def start_action(label: str) -> LinkedAction:
        return LinkedAction(label=label, href=f"{ACTION_PATH}/start")

    def next_action(response: GameResponse) -> Action:
        if not response.game_over:
            if response.updated_score is None:
                return move_action(
                    "Play Turn",
                    "Choose your move",
                    "Once your payment is confirmed, pick a number from 1 to 6.",
                )
            return move_action(
                "Next Ball",
                "Hand Cricket",
                f"Score: {response.updated_score}. Keep playing!",
            )

        if response.player_won:
            return Action(
                icon=ICON_URL,
                title="Congrats",
                description=f"You earned {reward_sol:g} SOL (pending signature).",
                label="Game Over!",
                disabled=True,
            )
        return Action(
            icon=ICON_URL,
            title="Hand Cricket",
            description="Computer won. No payout. Start a new game.",
            label="Game Over",
            links=ActionLinks(actions=[start_action(f"Start New Game ({entry_fee_sol:g} SOL)")]),
        )

    def to_post_response(response: GameResponse) -> ActionPostResponse:
        return ActionPostResponse(
            message=response.outcome_message,
            state=response.state,
            score=response.updated_score,
            game_over=response.game_over,
            transfer=(
                TransferPayload.model_validate(response.transfer_request)
                if response.transfer_request else None
            ),
            payment_reference=response.payment_reference,
            player_move=response.player_move,
            computer_move=response.computer_move,
            computer_score=response.computer_score,
            player_won=response.player_won,
            links=PostLinks(next=InlineNextLink(action=next_action(response))),
        )

    # =========================================================================
    # Action Endpoints
    # =========================================================================

    @app.get("/actions.json", response_model=ActionsJson, tags=["Actions"])
    def actions_json() -> ActionsJson:
        return ActionsJson(rules=[
            ActionRule(pathPattern="/hand-cricket", apiPath=ACTION_PATH),
            ActionRule(pathPattern=f"{ACTION_PATH}/**", apiPath=f"{ACTION_PATH}/**"),
        ])

    @app.get(ACTION_PATH, response_model=Action, tags=["Actions"], summary="Action metadata")
    def get_action() -> Action:
        return Action(
            icon=ICON_URL,
            label="Hand Cricket ☝️ ✌️ 🖐️",
            title=f"Pay {entry_fee_sol:g} SOL, then beat the computer!",
            description="Click Start to pay the entry fee and begin the game",
            links=ActionLinks(actions=[start_action(f"Start Game ({entry_fee_sol:g} SOL)")]),
        )

    @app.options(ACTION_PATH, tags=["Actions"])
    @app.options(ACTION_PATH + "/{operation}", tags=["Actions"])
    def action_options() -> Response:
        return Response(status_code=200, headers=ACTION_HEADERS)

    @app.post(
        ACTION_PATH + "/{operation}",
        response_model=ActionPostResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid account, move or operation"},
            402: {"model": ErrorResponse, "description": "Entry fee not confirmed"},
            404: {"model": ErrorResponse, "description": "No active game"},
            409: {"model": ErrorResponse, "description": "Game already in progress"},
        },
        tags=["Actions"],
        summary="Start a game or play a ball",
    )
    def post_action(
        operation: str,
        body: ActionPostRequest,
    ) -> Union[ActionPostResponse, JSONResponse]:
        """
        `start` returns the entry fee transfer. `play` verifies the fee on
        the first call, then resolves one ball per call.

        **Request Body:**
        ```json
        {"account": "<public key>", "data": {"options": "4"}}
        ```
        """
        response = api_service.handle(operation, body.account, body.raw_move())
        if isinstance(response, ServiceError):
            return make_error_response(response)
        return to_post_response(response)

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{account}",
        response_model=SessionStatusResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get a player's session state",
    )
    def get_session(account: str) -> Union[SessionStatusResponse, JSONResponse]:
        response = api_service.get_status(account)
        if isinstance(response, ServiceError):
            return make_error_response(response)
        return SessionStatusResponse(
            account=response.account,
            state=response.state,
            score=response.score,
        )

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"], summary="Health check")
    def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="hand-cricket",
            version=__version__,
        )

    return app


async def _sweep_forever(service: APIService, interval: float):
    """Periodically evict expired sessions."""
    while True:
        await asyncio.sleep(interval)
        evicted = await asyncio.to_thread(service.sweep)
        if evicted:
            logger.info("Swept %d expired session(s)", len(evicted))
