from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .client import SpoeClient
from .config import load_params
from .document import SECTION_TYPES
from .errors import SpoeConfError

DEBUG_ENV = "SPOECONF_DEBUG"

logger = logging.getLogger("spoeconf")


def _setup_logging(verbose: bool) -> None:
    if not (verbose or os.environ.get(DEBUG_ENV)) or logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s:%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def _client(args: argparse.Namespace) -> SpoeClient:
    params = load_params(
        args.settings,
        config_file=args.config,
        transaction_dir=args.transaction_dir,
    )
    return SpoeClient(params)


def _target(args: argparse.Namespace) -> dict:
    return {"transaction_id": args.transaction, "version": args.version}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def version_cmd(args: argparse.Namespace) -> int:
    print(_client(args).get_version(args.transaction or ""))
    return 0


def increment_version_cmd(args: argparse.Namespace) -> int:
    print(_client(args).increment_version())
    return 0


def transactions_cmd(args: argparse.Namespace) -> int:
    items = _client(args).get_transactions(args.status)
    if args.as_json:
        print(json.dumps([{"id": t.id, "status": t.status, "version": t.version} for t in items]))
        return 0
    for t in items:
        print(f"{t.id} {t.status} {t.version}")
    return 0


def start_cmd(args: argparse.Namespace) -> int:
    print(_client(args).start_transaction(args.version).id)
    return 0


def commit_cmd(args: argparse.Namespace) -> int:
    t = _client(args).commit_transaction(args.id, skip_version=args.skip_version)
    print(f"{t.id} {t.status} {t.version}")
    return 0


def abort_cmd(args: argparse.Namespace) -> int:
    _client(args).delete_transaction(args.id)
    return 0


def scopes_cmd(args: argparse.Namespace) -> int:
    for scope in _client(args).get_scopes(args.transaction or ""):
        print(scope)
    return 0


def sections_cmd(args: argparse.Namespace) -> int:
    for name in _client(args).get_sections(args.scope, args.type, args.transaction or ""):
        print(name)
    return 0


def show_cmd(args: argparse.Namespace) -> int:
    sys.stdout.write(_client(args).dump(args.transaction or ""))
    return 0


def create_section_cmd(args: argparse.Namespace) -> int:
    _client(args).create_section(args.scope, args.type, args.name, args.lines, **_target(args))
    return 0


def delete_section_cmd(args: argparse.Namespace) -> int:
    _client(args).delete_section(args.scope, args.type, args.name, **_target(args))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spoeconf", description="Transactional editing of HAProxy SPOE configuration."
    )
    parser.add_argument("-c", "--config", type=Path, help="SPOE configuration file")
    parser.add_argument("--transaction-dir", type=Path, help="Directory for transaction files")
    parser.add_argument("--settings", type=Path, help="spoeconf settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def read_target(p: argparse.ArgumentParser) -> None:
        p.add_argument("-t", "--transaction", help="Read from a staged transaction")

    def write_target(p: argparse.ArgumentParser) -> None:
        group = p.add_mutually_exclusive_group(required=True)
        group.add_argument("-t", "--transaction", help="Stage the change in this transaction")
        group.add_argument("--version", type=int, help="Apply to master at this version")

    p_version = subparsers.add_parser("version", help="Print the configuration version.")
    read_target(p_version)
    p_version.set_defaults(func=version_cmd)

    p_incr = subparsers.add_parser("increment-version", help="Bump and save the master version.")
    p_incr.set_defaults(func=increment_version_cmd)

    p_list = subparsers.add_parser("transactions", help="List transactions.")
    p_list.add_argument("--status", choices=["in_progress", "failed"])
    p_list.add_argument("--json", dest="as_json", action="store_true")
    p_list.set_defaults(func=transactions_cmd)

    p_start = subparsers.add_parser("start", help="Start a transaction and print its id.")
    p_start.add_argument("--version", type=int, required=True)
    p_start.set_defaults(func=start_cmd)

    p_commit = subparsers.add_parser("commit", help="Commit a transaction.")
    p_commit.add_argument("id")
    p_commit.add_argument("--skip-version", action="store_true")
    p_commit.set_defaults(func=commit_cmd)

    p_abort = subparsers.add_parser("abort", help="Delete a transaction.")
    p_abort.add_argument("id")
    p_abort.set_defaults(func=abort_cmd)

    p_scopes = subparsers.add_parser("scopes", help="List scopes.")
    read_target(p_scopes)
    p_scopes.set_defaults(func=scopes_cmd)

    p_sections = subparsers.add_parser("sections", help="List sections of a scope.")
    p_sections.add_argument("scope")
    p_sections.add_argument("type", choices=SECTION_TYPES)
    read_target(p_sections)
    p_sections.set_defaults(func=sections_cmd)

    p_show = subparsers.add_parser("show", help="Print the configuration.")
    read_target(p_show)
    p_show.set_defaults(func=show_cmd)

    p_create = subparsers.add_parser("create-section", help="Create a section.")
    p_create.add_argument("scope")
    p_create.add_argument("type", choices=SECTION_TYPES)
    p_create.add_argument("name")
    p_create.add_argument("lines", nargs="*", help="Directive lines")
    write_target(p_create)
    p_create.set_defaults(func=create_section_cmd)

    p_delete = subparsers.add_parser("delete-section", help="Delete a section.")
    p_delete.add_argument("scope")
    p_delete.add_argument("type", choices=SECTION_TYPES)
    p_delete.add_argument("name")
    write_target(p_delete)
    p_delete.set_defaults(func=delete_section_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 1
    try:
        return int(func(args))
    except (SpoeConfError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
