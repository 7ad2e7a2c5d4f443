"""Command line interface for modkeeper.

Usage:
    modkeeper status [--all] [--fix] [--force]
    modkeeper install [URL PATH] [--branch B] [--name N] [--depth D] [--force] [--no-recursive]
    modkeeper update [NAME] [--branch B] [--url U] [--force]
    modkeeper remove NAME [--force]
    modkeeper version

Every command accepts --dir to run against another repository and
--verbose/--quiet to change how much is logged.
"""

import argparse
import logging
import sys

from modkeeper.cli.submodule_cmds import (
    cmd_install,
    cmd_remove,
    cmd_status,
    cmd_update,
    cmd_version,
)


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modkeeper",
        description="Keep git submodules consistent across .gitmodules, .git/config and the work tree",
    )
    parser.add_argument(
        "--dir", default=None,
        help="Directory inside the superproject (default: current directory)",
    )
    noise = parser.add_mutually_exclusive_group()
    noise.add_argument("-v", "--verbose", action="store_true", help="Log every git command")
    noise.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    sub = parser.add_subparsers(dest="command")

    # status
    st = sub.add_parser("status", help="Show the state of every submodule")
    st.add_argument(
        "--all", action="store_true",
        help="Include untracked files, stale .git/modules entries and unclaimed gitlinks",
    )
    st.add_argument("--fix", action="store_true", help="Apply safe repairs")
    st.add_argument(
        "--force", action="store_true",
        help="With --fix, discard local changes that block a repair",
    )

    # install
    ins = sub.add_parser(
        "install", help="Clone and check out submodules, or add a new one",
    )
    ins.add_argument("url", nargs="?", default=None, help="URL of a submodule to add")
    ins.add_argument("path", nargs="?", default=None, help="Path to add the submodule at")
    ins.add_argument("--branch", default=None, help="Branch to track (with URL PATH)")
    ins.add_argument("--name", default=None, help="Submodule name (default: PATH)")
    ins.add_argument("--depth", type=int, default=None, help="Shallow clone depth")
    ins.add_argument("--force", action="store_true", help="Discard local changes / reuse PATH")
    ins.add_argument(
        "--no-recursive", action="store_true",
        help="Do not install nested submodules",
    )

    # update
    upd = sub.add_parser("update", help="Fetch and check out the tracked branch")
    upd.add_argument("name", nargs="?", default=None, help="Submodule to update (default: all)")
    upd.add_argument("--branch", default=None, help="Switch the tracked branch")
    upd.add_argument("--url", default=None, help="Switch the remote URL")
    upd.add_argument("--force", action="store_true", help="Discard local changes")

    # remove
    rm = sub.add_parser("remove", help="Remove a submodule completely")
    rm.add_argument("name", help="Submodule name or path")
    rm.add_argument("--force", action="store_true", help="Discard local changes")

    # version
    sub.add_parser("version", help="Show modkeeper and git versions")

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    _configure_logging(args)

    dispatch = {
        "status": cmd_status,
        "install": cmd_install,
        "update": cmd_update,
        "remove": cmd_remove,
        "version": cmd_version,
    }
    return dispatch[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
