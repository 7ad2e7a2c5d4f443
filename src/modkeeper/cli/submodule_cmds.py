"""Submodule lifecycle CLI commands."""

from __future__ import annotations

import argparse
import os

from modkeeper.errors import ModkeeperError
from modkeeper.reconcile.engine import SubmoduleReport


def _workdir(args: argparse.Namespace) -> str:
    return getattr(args, "dir", None) or os.getcwd()


def _settings():
    from modkeeper.settings import load_settings

    return load_settings()


def _print_reports(reports: list[SubmoduleReport], empty: str) -> int:
    if not reports:
        print(f"  {empty}")
        return 0

    print(f"  {'Name':<28} {'Path':<32} {'Status':<14} {'Commit':<8} {'Action'}")
    print(f"  {'─' * 96}")
    for r in reports:
        commit = (r.checked_out_commit or r.index_commit or "-")[:7]
        print(
            f"  {r.name or '-':<28} {r.path or '-':<32} "
            f"{str(r.status):<14} {commit:<8} {r.action_taken or ''}"
        )
        if r.warning:
            print(f"      warning: {r.warning}")
        if r.error:
            print(f"      ERROR: {r.error}")

    failed = sum(1 for r in reports if r.error)
    if failed:
        print(f"\n  {failed} of {len(reports)} submodule(s) failed")
        return 1
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    from modkeeper.lifecycle import status

    try:
        reports = status(
            _workdir(args),
            all=args.all,
            fix=args.fix,
            force=args.force,
            settings=_settings(),
        )
    except ModkeeperError as e:
        print(f"  ERROR: {e}")
        return 1
    return _print_reports(reports, "No submodules.")


def cmd_install(args: argparse.Namespace) -> int:
    from modkeeper.lifecycle import add, install

    if (args.url is None) != (args.path is None):
        print("  ERROR: install takes both URL and PATH, or neither")
        return 1
    if args.url is None and (args.branch or args.name):
        print("  ERROR: --branch and --name only apply when adding a submodule")
        return 1

    try:
        settings = _settings()
        if args.url is not None:
            reports = [add(
                _workdir(args),
                args.url,
                args.path,
                branch=args.branch,
                name=args.name,
                depth=args.depth,
                force=args.force,
                settings=settings,
            )]
        else:
            reports = install(
                _workdir(args),
                recursive=False if args.no_recursive else None,
                force=args.force,
                depth=args.depth,
                settings=settings,
            )
    except ModkeeperError as e:
        print(f"  ERROR: {e}")
        return 1
    return _print_reports(reports, "No submodules to install.")


def cmd_update(args: argparse.Namespace) -> int:
    from modkeeper.lifecycle import update

    if (args.branch or args.url) and not args.name:
        print("  ERROR: --branch and --url need a submodule NAME")
        return 1

    try:
        reports = update(
            _workdir(args),
            name=args.name,
            branch=args.branch,
            url=args.url,
            force=args.force,
            settings=_settings(),
        )
    except ModkeeperError as e:
        print(f"  ERROR: {e}")
        return 1
    return _print_reports(reports, "No submodules to update.")


def cmd_remove(args: argparse.Namespace) -> int:
    from modkeeper.lifecycle import remove

    try:
        report = remove(_workdir(args), args.name, force=args.force, settings=_settings())
    except ModkeeperError as e:
        print(f"  ERROR: {e}")
        return 1

    if report.error:
        print(f"  ERROR: {report.label}: {report.error}")
        if report.action_taken:
            print(f"  Completed before the failure: {report.action_taken}")
        print("  Run the same command again to finish the removal.")
        return 1
    print(f"  Removed submodule: {report.label}")
    if report.action_taken:
        print(f"  Steps: {report.action_taken}")
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    from modkeeper import __version__
    from modkeeper.git.gateway import SUPPORTED_GIT_VERSIONS
    from modkeeper.lifecycle import git_version

    print(f"  modkeeper {__version__}")
    try:
        version, supported = git_version(_settings())
    except ModkeeperError as e:
        print(f"  ERROR: {e}")
        return 1
    note = "supported" if supported else f"unsupported, need {SUPPORTED_GIT_VERSIONS}"
    print(f"  git {version} ({note})")
    return 0
