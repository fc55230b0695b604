#!/usr/bin/env python3
"""CLI entry point for package dry-run diffs and summaries."""

from __future__ import annotations

import argparse
import contextlib
import json
import os
import sys

from pkg_ops.differ import build_diff
from pkg_ops.exceptions import PackageError, PlatformError
from pkg_ops.package_reader import read_package
from pkg_ops.planner import diff_to_dict, has_changes, print_diff, print_summary, summary_to_dict
from pkg_ops.platform_client import PlatformClient
from pkg_ops.resolver import resolve
from pkg_ops.state import PlatformState, fetch_state, read_state, write_state
from pkg_ops.summarizer import build_summary
from pkg_ops.models import Package, format_id, parse_id

DEFAULT_HOST = "http://localhost:8086"


def add_platform_args(parser: argparse.ArgumentParser) -> None:
    """Add platform connection arguments."""
    parser.add_argument("--host", help=f"Platform URL (or INFLUX_HOST env var, default: {DEFAULT_HOST})")
    parser.add_argument("--token", help="API token (or INFLUX_TOKEN env var)")
    parser.add_argument("--org-id", help="Organization ID (or INFLUX_ORG_ID env var)")


def add_package_args(parser: argparse.ArgumentParser) -> None:
    add_platform_args(parser)
    parser.add_argument("--package", "-p", required=True, help="Path to package file (YAML or JSON)")
    parser.add_argument("--state-file",
                        help="Read platform state from a snapshot instead of the live API")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")


def _resolve_platform_args(args: argparse.Namespace) -> None:
    """Resolve connection args from flags → env vars."""
    args.host = (
        getattr(args, "host", None)
        or os.environ.get("INFLUX_HOST")
        or DEFAULT_HOST
    )
    args.token = getattr(args, "token", None) or os.environ.get("INFLUX_TOKEN")
    args.org_id = getattr(args, "org_id", None) or os.environ.get("INFLUX_ORG_ID")


def _require_platform_args(args: argparse.Namespace) -> None:
    """Error if connection args are still missing."""
    missing = []
    if not args.token:
        missing.append("--token")
    if not args.org_id:
        missing.append("--org-id")
    if missing:
        print(f"Error: {', '.join(missing)} required. "
              "Set via flags or env vars (INFLUX_TOKEN, INFLUX_ORG_ID).",
              file=sys.stderr)
        sys.exit(1)


def _parse_org_id(args: argparse.Namespace) -> int:
    try:
        return parse_id(args.org_id)
    except ValueError as e:
        print(f"Error: --org-id: {e}", file=sys.stderr)
        sys.exit(1)


def _load_state(args: argparse.Namespace) -> PlatformState:
    """Platform state from --state-file, or fetched live."""
    if args.state_file:
        try:
            state = read_state(args.state_file)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            # json.JSONDecodeError is a ValueError
            print(f"Error: Malformed state file {args.state_file}: {e}", file=sys.stderr)
            sys.exit(1)
        if state is None:
            print(f"Error: State file not found: {args.state_file}", file=sys.stderr)
            sys.exit(1)
        return state

    _require_platform_args(args)
    org_id = _parse_org_id(args)
    client = PlatformClient(args.host, args.token)
    # Keep stdout clean for --json output
    with contextlib.redirect_stdout(sys.stderr if args.json else sys.stdout):
        print(f"\nFetching platform state from {args.host}...\n")
        return fetch_state(client, org_id)


def _load_package(args: argparse.Namespace, state: PlatformState) -> Package:
    org_id = _parse_org_id(args) if args.org_id else state.org_id
    package = read_package(args.package, org_id=org_id)
    return resolve(package, state)


def cmd_diff(args: argparse.Namespace) -> None:
    """Show what applying the package would change."""
    _resolve_platform_args(args)
    state = _load_state(args)
    package = _load_package(args, state)
    diff = build_diff(package)

    if args.json:
        print(json.dumps(diff_to_dict(diff), indent=2))
    else:
        print_diff(diff, verbose=args.verbose)

    # Exit with code 2 if there are changes (useful for CI)
    if has_changes(diff):
        sys.exit(2)


def cmd_summary(args: argparse.Namespace) -> None:
    """Show the resolved state of every resource in the package."""
    _resolve_platform_args(args)
    state = _load_state(args)
    package = _load_package(args, state)
    summary = build_summary(package)

    if args.json:
        print(json.dumps(summary_to_dict(summary), indent=2))
    else:
        print_summary(summary)


def cmd_fetch(args: argparse.Namespace) -> None:
    """Snapshot live platform state to a file for offline diffs."""
    _resolve_platform_args(args)
    _require_platform_args(args)
    org_id = _parse_org_id(args)
    client = PlatformClient(args.host, args.token)

    print(f"\nFetching platform state from {args.host}...\n")
    state = fetch_state(client, org_id)
    write_state(state, args.out)
    print(f"\nState for org {format_id(org_id)} saved to {args.out}\n")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Package dry-run tool: diff and summarize packages against platform state",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # diff
    p_diff = subparsers.add_parser("diff", help="Show what would change")
    add_package_args(p_diff)
    p_diff.add_argument("--verbose", "-v", action="store_true",
                        help="Show unchanged resources")

    # summary
    p_summary = subparsers.add_parser("summary", help="Show the resolved package")
    add_package_args(p_summary)

    # fetch
    p_fetch = subparsers.add_parser("fetch", help="Snapshot platform state to a file")
    add_platform_args(p_fetch)
    p_fetch.add_argument("--out", "-o", required=True, help="Snapshot file to write")

    args = parser.parse_args()

    commands = {
        "diff": cmd_diff,
        "summary": cmd_summary,
        "fetch": cmd_fetch,
    }
    try:
        commands[args.command](args)
    except PackageError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except PlatformError as e:
        msg = e.message
        if e.status_code:
            msg += f" (HTTP {e.status_code})"
        print(f"Error: {msg}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
