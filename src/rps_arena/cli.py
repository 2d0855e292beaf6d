"""RPS Arena CLI — command-line shell over the arena service.

Usage:
    python -m rps_arena.cli status
    python -m rps_arena.cli new-game --opponent 0xabc... --wager 0.1 --move rock
    python -m rps_arena.cli preview --game 0x1234...
    python -m rps_arena.cli join --game 0x1234... --move paper
    python -m rps_arena.cli show --game 0x1234...
    python -m rps_arena.cli watch --game 0x1234...
    python -m rps_arena.cli reveal --game 0x1234...
    python -m rps_arena.cli cancel --game 0x1234...
    python -m rps_arena.cli games
    python -m rps_arena.cli debug --game 0x1234...
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Optional

from web3 import HTTPProvider, Web3

from rps_arena.config import ArenaConfig
from rps_arena.coordination.signer import LocalAccountAgent, ProviderAgent, SigningAgent
from rps_arena.errors import CommitmentLost, ValidationError
from rps_arena.formatting import format_timestamp, parse_eth, shorten_address
from rps_arena.ledger.client import Web3Ledger
from rps_arena.models.game import GameView, Move, Phase
from rps_arena.persistence.commitment_store import JsonFileCommitmentStore
from rps_arena.service import ArenaService, ServiceResult


def _make_service(
    config: ArenaConfig,
    on_update: Any = None,
    on_complete: Any = None,
    on_error: Any = None,
) -> tuple[ArenaService, SigningAgent]:
    """Create a connected-ready ArenaService and its signing agent."""
    w3 = Web3(HTTPProvider(config.rpc_url))
    chain_id = int(w3.eth.chain_id)

    agent: SigningAgent
    if config.private_key:
        local = LocalAccountAgent.from_key(config.private_key, chain_id)
        ledger = Web3Ledger(
            w3, config.contract_address,
            account=local.account, receipt_timeout=config.receipt_timeout,
        )
        agent = local
    else:
        accounts = w3.eth.accounts
        if not accounts:
            raise SystemExit("No RPS_PRIVATE_KEY set and the node exposes no accounts")
        ledger = Web3Ledger(w3, config.contract_address, receipt_timeout=config.receipt_timeout)
        agent = ProviderAgent(w3, accounts[0])

    store = JsonFileCommitmentStore(config.store_path)
    service = ArenaService(
        config, ledger, store,
        on_update=on_update, on_complete=on_complete, on_error=on_error,
    )
    return service, agent


def _connected(args: argparse.Namespace, **callbacks: Any) -> Optional[ArenaService]:
    service, agent = _make_service(args.settings, **callbacks)
    result = service.connect(agent)
    if not result.success:
        _fail(result)
        return None
    return service


def _fail(result: ServiceResult) -> int:
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    if isinstance(result.failure, CommitmentLost):
        print(
            "The move can no longer be revealed from this machine. "
            "Wait for the reveal deadline or cancel the game on the ledger.",
            file=sys.stderr,
        )
    return 1


def _emit(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _view_data(service: ArenaService, view: GameView) -> dict[str, Any]:
    return service.summary(view)


def cmd_status(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.debug_snapshot()
    if not result.success:
        return _fail(result)
    _emit({k: result.data[k] for k in ("address", "network", "chain_id", "balance", "nonce", "contract")})
    return 0


def cmd_new_game(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    try:
        wager = parse_eth(args.wager)
    except ValidationError as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 1
    result = service.create_game(args.opponent, wager, Move.parse(args.move))
    if not result.success:
        if "intent_hash" in result.data:
            print(
                f"Game {result.data['intent_hash']} was registered; "
                f"commit your move with: join --game {result.data['intent_hash']}",
                file=sys.stderr,
            )
        return _fail(result)
    print("Game created! Share the ID with your opponent:")
    _emit(result.data)
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.preview_game(args.game)
    if not result.success:
        return _fail(result)
    data = dict(result.data)
    data["challenger"] = shorten_address(data["challenger"])
    data["expiry"] = format_timestamp(data["expiry"])
    _emit(data)
    return 0


def cmd_join(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.accept_game(args.game, Move.parse(args.move))
    if not result.success:
        return _fail(result)
    print("Move committed!")
    _emit(result.data)
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.refresh(args.game)
    if not result.success:
        return _fail(result)
    _emit(_view_data(service, result.data["view"]))
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    done = threading.Event()
    holder: dict[str, ArenaService] = {}

    def on_update(view: GameView) -> None:
        _emit(_view_data(holder["service"], view))
        if view.terminal:
            done.set()

    def on_complete(view: GameView) -> None:
        print(f"Game completed: {holder['service'].summary(view).get('result')}")

    def on_error(exc: Exception) -> None:
        print(f"Refresh failed: {exc}", file=sys.stderr)

    service = _connected(args, on_update=on_update, on_complete=on_complete, on_error=on_error)
    if service is None:
        return 1
    holder["service"] = service
    result = service.open_game(args.game)
    if not result.success:
        return _fail(result)
    if result.data["view"].phase == Phase.NONE:
        service.close_game()
        print(f"Failed: Game {args.game} not found", file=sys.stderr)
        return 1
    try:
        done.wait()
    except KeyboardInterrupt:
        pass
    finally:
        service.close_game()
    return 0


def cmd_reveal(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.reveal(args.game)
    if not result.success:
        return _fail(result)
    print("Move revealed!")
    if "view" in result.data:
        _emit(_view_data(service, result.data["view"]))
    else:
        _emit({"intent_hash": result.data["intent_hash"], "reveal_tx": result.data["reveal_tx"]})
    return 0


def cmd_cancel(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.cancel(args.game)
    if not result.success:
        return _fail(result)
    _emit(result.data)
    return 0


def cmd_games(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.list_games(limit=args.limit)
    if not result.success:
        return _fail(result)
    games = result.data["games"]
    if not games:
        print("NO GAMES YET")
        return 0
    for view in games:
        summary = service.summary(view)
        print(
            f"{shorten_address(view.intent_id)}  vs {shorten_address(view.opponent)}  "
            f"{summary['wager']}  {summary['status']}"
        )
    return 0


def cmd_debug(args: argparse.Namespace) -> int:
    service = _connected(args)
    if service is None:
        return 1
    result = service.debug_snapshot(args.game, include_secret=args.show_salt)
    if not result.success:
        return _fail(result)
    _emit(result.data)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rps-arena",
        description="RPS Arena — commit-reveal Rock Paper Scissors over ERC-8001",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file (default: search from the working directory)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show wallet, network and nonce")

    # new-game
    p_new = sub.add_parser("new-game", help="Create a game and commit your move")
    p_new.add_argument("--opponent", required=True, help="Opponent address")
    p_new.add_argument("--wager", required=True, help="Wager in ETH (e.g. 0.1)")
    p_new.add_argument(
        "--move", required=True,
        choices=[m.name.lower() for m in Move if m.playable],
    )

    # preview
    p_prev = sub.add_parser("preview", help="Inspect a game before joining")
    p_prev.add_argument("--game", required=True, help="Game ID (intent hash)")

    # join
    p_join = sub.add_parser("join", help="Commit your move to a game")
    p_join.add_argument("--game", required=True, help="Game ID (intent hash)")
    p_join.add_argument(
        "--move", required=True,
        choices=[m.name.lower() for m in Move if m.playable],
    )

    # show
    p_show = sub.add_parser("show", help="Show a game's current state")
    p_show.add_argument("--game", required=True, help="Game ID (intent hash)")

    # watch
    p_watch = sub.add_parser("watch", help="Follow a game until it finishes")
    p_watch.add_argument("--game", required=True, help="Game ID (intent hash)")

    # reveal
    p_rev = sub.add_parser("reveal", help="Reveal your committed move")
    p_rev.add_argument("--game", required=True, help="Game ID (intent hash)")

    # cancel
    p_cancel = sub.add_parser("cancel", help="Cancel a game on the ledger")
    p_cancel.add_argument("--game", required=True, help="Game ID (intent hash)")

    # games
    p_games = sub.add_parser("games", help="List your recent games")
    p_games.add_argument("--limit", type=int, default=10, help="How many (default: 10)")

    # debug
    p_dbg = sub.add_parser("debug", help="Diagnostic values for the session or a game")
    p_dbg.add_argument("--game", help="Game ID (intent hash)")
    p_dbg.add_argument("--show-salt", action="store_true", help="Include the stored secret")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    args.settings = ArenaConfig.from_env(args.env_file)
    logging.basicConfig(
        level=getattr(logging, args.settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "status": cmd_status,
        "new-game": cmd_new_game,
        "preview": cmd_preview,
        "join": cmd_join,
        "show": cmd_show,
        "watch": cmd_watch,
        "reveal": cmd_reveal,
        "cancel": cmd_cancel,
        "games": cmd_games,
        "debug": cmd_debug,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
