from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from signal import SIGINT, SIGTERM
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from rolegate.app import (
    build_runtime,
    list_flags,
    run_legacy_migration,
    run_subscription_reset,
    serve,
    sync_once,
)
from rolegate.config import ConfigurationError, configure_logging

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from rolegate.app import Runtime
    from rolegate.domain.results import GuardResult

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile billing subscriptions with community privilege roles"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("ROLEGATE_LOG_LEVEL", "INFO"),
        help="Logging level (default: %(default)s, or ROLEGATE_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the reconciliation service")
    serve_parser.add_argument(
        "--schedule-reset",
        action="store_true",
        help="Schedule the one-time subscription reset at ROLEGATE_RESET_AT",
    )

    subparsers.add_parser("sync", help="Run one full reconciliation sweep and exit")

    migrate = subparsers.add_parser(
        "migrate-legacy",
        help="Grant a grace period to members without a subscription (runs once)",
    )
    migrate.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    reset = subparsers.add_parser(
        "reset",
        help="Cancel every subscription and revoke all privileges (runs once)",
    )
    reset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    subparsers.add_parser("flags", help="Show the state of one-time operation flags")

    return parser.parse_args(list(argv))


def _confirm(prompt: str, *, input_func: Callable[[str], str] = input) -> bool:
    try:
        answer = input_func(f"{prompt} Type 'yes' to continue: ")
    except EOFError:
        return False
    return answer.strip().lower() == "yes"


def _log_guard_result(result: GuardResult) -> None:
    if not result.executed:
        log.info("%s was already completed; nothing to do", result.flag_name)
    elif result.batch is not None:
        log.info(f"{result.flag_name}: {result.batch.summary()}")


async def _serve(runtime: Runtime, *, schedule_reset: bool) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (SIGINT, SIGTERM):
        loop.add_signal_handler(signum, stop_event.set)
    await serve(runtime, stop_event, schedule_reset=schedule_reset)


async def _run_and_close[T](runtime: Runtime, func: Callable[[Runtime], Awaitable[T]]) -> T:
    try:
        return await func(runtime)
    finally:
        await runtime.aclose()


def _dispatch(args: argparse.Namespace, runtime: Runtime) -> int:
    match args.command:
        case "serve":
            asyncio.run(_serve(runtime, schedule_reset=args.schedule_reset))
        case "sync":
            sweep, expiry = asyncio.run(_run_and_close(runtime, sync_once))
            if sweep.aborted:
                log.error("Sweep aborted: billing provider unavailable")
                return EXIT_ERROR
            log.info(f"Sync finished: {sweep.summary()}; legacy expiry: {expiry.summary()}")
        case "migrate-legacy":
            if not args.yes and not _confirm(
                f"Grant a {runtime.polling.legacy_grace_days} day grace period to every "
                "member without a subscription?"
            ):
                log.info("Aborted")
                return EXIT_ERROR
            _log_guard_result(asyncio.run(_run_and_close(runtime, run_legacy_migration)))
        case "reset":
            if not args.yes and not _confirm(
                "Cancel every subscription and revoke all member privileges?"
            ):
                log.info("Aborted")
                return EXIT_ERROR
            _log_guard_result(asyncio.run(_run_and_close(runtime, run_subscription_reset)))
        case "flags":
            flags = asyncio.run(_run_and_close(runtime, list_flags))
            if not flags:
                log.info("No one-time operations have run yet")
            for flag in flags:
                log.info(
                    "%s: %s (completed_at=%s, affected=%s)",
                    flag.name,
                    flag.state,
                    flag.completed_at,
                    flag.affected_count,
                )
        case _:
            raise ValueError(f"Unsupported command: {args.command}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=parsed_args.log_level)

    try:
        runtime = build_runtime()
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(EXIT_USAGE)
    except Exception:
        log.exception("Could not initialise rolegate")
        sys.exit(EXIT_ERROR)

    try:
        exit_code = _dispatch(parsed_args, runtime)
    except Exception:
        log.exception("Fatal error")
        sys.exit(EXIT_ERROR)
    if exit_code != EXIT_OK:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
