from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from blocksync.app import run_command
from blocksync.config import (
    ConfigurationError,
    configure_logging,
    get_gateway_config,
    get_reconcile_config,
    parse_slot_policy,
)
from blocksync.domain.model import SlotPolicy
from blocksync.domain.reconciliation import Command

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from blocksync.config import ReconcileConfig

log = logging.getLogger(__name__)

_COMMAND_HELP = {
    Command.PLAN: "Show what apply would change without touching the gateway",
    Command.CREATE_LISTS: "Create or update the managed domain lists",
    Command.CREATE_POLICY: "Create or update the block rule over the managed lists",
    Command.APPLY: "Reconcile the lists, then the block rule",
    Command.DELETE_LISTS: "Delete managed lists no rule references",
    Command.DELETE_POLICIES: "Delete the block rule",
    Command.DELETE_ALL: "Delete the block rule, then the managed lists",
    Command.RESET: "Delete everything, wait, then apply from scratch",
}


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--source",
        type=str,
        help="Path or http(s) URL of the domain list (defaults to config)",
    )
    common.add_argument(
        "--slot-policy",
        type=str,
        choices=[policy.value for policy in SlotPolicy],
        help="How list slots are kept when the domain count changes (defaults to config)",
    )
    common.add_argument(
        "--slots",
        type=int,
        help="Number of list slots kept in stable-slots mode (defaults to config)",
    )
    common.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum number of list requests in flight (defaults to config)",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    return common


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync a domain blocklist to Cloudflare Gateway")
    subparsers = parser.add_subparsers(dest="command", required=True)
    common = _common_options()

    for command, help_text in _COMMAND_HELP.items():
        subparser = subparsers.add_parser(command.value, help=help_text, parents=[common])
        if command is Command.RESET:
            subparser.add_argument(
                "--settle-seconds",
                type=float,
                help="Delay between teardown and recreation (defaults to config)",
            )

    return parser.parse_args(list(argv))


def _build_config(args: argparse.Namespace, base: ReconcileConfig) -> ReconcileConfig:
    config = base
    if args.source is not None:
        if not args.source.strip():
            raise ValueError("--source must not be empty")
        config = replace(config, domain_source=args.source.strip())
    if args.slot_policy is not None:
        config = replace(config, slot_policy=parse_slot_policy(args.slot_policy))
    if args.slots is not None:
        if args.slots < 1:
            raise ValueError("--slots must be at least 1")
        config = replace(config, slot_count=args.slots)
    if args.max_concurrency is not None:
        if args.max_concurrency < 1:
            raise ValueError("--max-concurrency must be at least 1")
        config = replace(config, max_concurrency=args.max_concurrency)
    settle_seconds = getattr(args, "settle_seconds", None)
    if settle_seconds is not None:
        if settle_seconds < 0:
            raise ValueError("--settle-seconds must be non-negative")
        config = replace(config, settle_seconds=settle_seconds)
    return config


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(verbose=parsed_args.verbose)

    try:
        command = Command(parsed_args.command)
        config = _build_config(parsed_args, get_reconcile_config())
        gateway_config = get_gateway_config()
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        report = run_command(command, config=config, gateway_config=gateway_config)
    except Exception:
        log.exception("Fatal error during %s", command)
        sys.exit(1)

    if not report.ok:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
