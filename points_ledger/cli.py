"""points-ledger CLI: run ledger operations against a local state file.

Commands:
  points-ledger seed [--file SEED.json]           Provision accounts and contracts
  points-ledger invoke FUNCTION [ARGS...]         Run a mutating operation
  points-ledger query FUNCTION [ARGS...]          Run a read-only operation

Examples:
  points-ledger seed
  points-ledger invoke transferPoints U2974034 B1928564 Purchase "Dinner" Paris 0 100 0
  points-ledger query getTxs U2974034
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from loguru import logger

from points_ledger import __version__
from points_ledger.config import LedgerConfig, load_config
from points_ledger.core import LedgerError
from points_ledger.dispatch import Dispatcher
from points_ledger.ledger import LedgerEngine
from points_ledger.seed import SeedData, demo_seed, load_seed, provision
from points_ledger.store import FileStore


def configure_logging(config: LedgerConfig) -> None:
    """Route loguru output to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(sys.stderr, level=config.log_level,
               format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")
    if config.log_file:
        logger.add(config.log_file, level=config.log_level,
                   rotation=config.log_rotation, retention=config.log_retention)


def _seed_for(config: LedgerConfig, seed_file: Optional[str] = None) -> SeedData:
    path = seed_file or config.seed_file
    return load_seed(path) if path else demo_seed(config)


def cmd_seed(args: argparse.Namespace, config: LedgerConfig) -> int:
    """Provision the state file."""
    store = FileStore(config.store_path)
    provision(store, _seed_for(config, args.file), config)
    print(f"Provisioned {config.store_path}")
    return 0


def cmd_invoke(args: argparse.Namespace, config: LedgerConfig) -> int:
    """Run a mutating operation and print its result."""
    dispatcher = Dispatcher(LedgerEngine(FileStore(config.store_path), config), _seed_for(config))
    result = dispatcher.invoke(args.function, args.args)
    if result:
        print(result.decode("utf-8"))
    return 0


def cmd_query(args: argparse.Namespace, config: LedgerConfig) -> int:
    """Run a read-only operation and print its result."""
    dispatcher = Dispatcher(LedgerEngine(FileStore(config.store_path), config))
    print(dispatcher.query(args.function, args.args).decode("utf-8"))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="points-ledger",
        description="Points-transfer ledger with contract-based amount policies",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--store", help="State file (overrides store_path)")
    parser.add_argument("--log-level", help="Logging level (overrides log_level)")

    sub = parser.add_subparsers(dest="command", required=True)

    p_seed = sub.add_parser("seed", help="Provision accounts and contracts")
    p_seed.add_argument("--file", help="JSON seed file (default: demo data)")
    p_seed.set_defaults(func=cmd_seed)

    p_invoke = sub.add_parser("invoke", help="Run a mutating operation")
    p_invoke.add_argument("function", help="Operation name, e.g. transferPoints")
    p_invoke.add_argument("args", nargs="*", help="Operation arguments")
    p_invoke.set_defaults(func=cmd_invoke)

    p_query = sub.add_parser("query", help="Run a read-only operation")
    p_query.add_argument("function", help="Operation name, e.g. getTxs")
    p_query.add_argument("args", nargs="*", help="Operation arguments")
    p_query.set_defaults(func=cmd_query)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config, store_path=args.store, log_level=args.log_level)
        configure_logging(config)
        return args.func(args, config)
    except LedgerError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
