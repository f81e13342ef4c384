"""
Hand Cricket CLI - Command-line interface for the game server.

Usage:
    handcricket serve [--host H] [--port P]    Run the HTTP API
    handcricket play [--account A] [--seed N]  Play a local game in the terminal
"""

import argparse
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Hand Cricket - payment-gated hand cricket server",
        prog="handcricket",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    play_parser = subparsers.add_parser("play", help="Play a local game against an in-memory ledger")
    play_parser.add_argument("--account", help="Player address (random if omitted)")
    play_parser.add_argument("--seed", type=int, help="Seed for the computer's dice")

    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "play":
        cmd_play(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "handcricket.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


def cmd_play(args, input_fn=input):
    """Play one game in the terminal. The entry fee settles instantly."""
    from .config import GameConfig
    from .engine_core.errors import GameError
    from .ledger import InMemoryLedger, new_reference, lamports_to_sol
    from .session import GameLoop

    config = GameConfig(treasury=new_reference(), ledger="memory", seed=args.seed)
    ledger = InMemoryLedger(treasury=config.treasury)
    loop = GameLoop.from_config(config, verifier=ledger)
    account = args.account or new_reference()

    try:
        result = loop.start(account)
    except GameError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print(f"Player: {account}")
    print(result.outcome_message)
    fee = result.transfer_request
    ledger.settle(fee.sender, fee.recipient, fee.amount, result.payment_reference)
    print(f"(local ledger) {lamports_to_sol(fee.amount):g} SOL entry fee settled.\n")

    while True:
        raw = input_fn("Your move (1-6): ")
        try:
            result = loop.play(account, raw)
        except GameError as e:
            print(f"{e.kind.value}: {e.message}")
            continue

        print(result.outcome_message)
        if result.game_over:
            break

    if result.transfer_request:
        print(f"Payout transfer: {result.transfer_request.to_dict()}")
    return result


if __name__ == "__main__":
    main()
