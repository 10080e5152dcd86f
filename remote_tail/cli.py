"""Command-line front end for testing connections, reading and tailing remote logs."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from contextlib import suppress
from typing import List, Optional

from .credentials import Credentials, Endpoint, KeyAuth, PasswordAuth
from .errors import NoActiveSession, RemoteTailError
from .events import EventKind
from .profiles import delete_profile, load_profiles, profile_credentials, save_profile
from .state.app_state import AppState, get_app_state, init_app_state, reset_app_state

_LOGGER = logging.getLogger(__name__)

PASSWORD_ENV = "REMOTE_TAIL_PASSWORD"


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--profile", help="Use a saved connection profile")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int, default=22)
    parser.add_argument("--user", help="SSH username")
    parser.add_argument("--password", help=f"SSH password (defaults to ${PASSWORD_ENV} or a prompt)")
    parser.add_argument("--key", help="Private key file for public-key authentication")
    parser.add_argument("--passphrase", help="Passphrase for the private key")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="remote-tail", description="Tail log files on remote hosts over SSH.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    sub = parser.add_subparsers(dest="command", required=True)

    test = sub.add_parser("test", help="Check that the host accepts the credentials")
    _add_connection_args(test)

    read = sub.add_parser("read", help="Print a remote file once")
    _add_connection_args(read)
    read.add_argument("path")
    read.add_argument("--follow-hint", action="store_true", help="Read a bounded tail instead of the whole file")

    tail = sub.add_parser("tail", help="Stream new lines until interrupted")
    _add_connection_args(tail)
    tail.add_argument("path", nargs="?", help="Remote file (defaults to the profile's log path)")

    discover = sub.add_parser("discover", help="List log files in conventional directories")
    _add_connection_args(discover)

    profiles = sub.add_parser("profiles", help="Manage saved connection profiles")
    profiles_sub = profiles.add_subparsers(dest="action", required=True)
    profiles_sub.add_parser("list")
    save = profiles_sub.add_parser("save")
    save.add_argument("name")
    _add_connection_args(save)
    save.add_argument("--log-path", default="")
    remove = profiles_sub.add_parser("delete")
    remove.add_argument("name")
    return parser


def _resolve_secret(args: argparse.Namespace, *, key_based: bool) -> Optional[str]:
    if key_based:
        return args.passphrase
    if args.password is not None:
        return args.password
    env_password = os.getenv(PASSWORD_ENV)
    if env_password is not None:
        return env_password
    return getpass.getpass("SSH password: ")


def credentials_from_args(args: argparse.Namespace, *, prompt: bool = True) -> Credentials:
    if args.profile:
        profile = load_profiles().get(args.profile)
        if profile is None:
            raise ValueError(f"Unknown profile: {args.profile}")
        key_based = profile.get("auth_type") == KeyAuth.auth_type
        secret = _resolve_secret(args, key_based=key_based) if prompt else None
        return profile_credentials(profile, secret)

    if not args.host or not args.user:
        raise ValueError("--host and --user are required unless --profile is given")
    endpoint = Endpoint(host=args.host, port=args.port)
    if args.key:
        auth = KeyAuth(private_key_path=args.key, passphrase=args.passphrase)
        return Credentials(endpoint=endpoint, username=args.user, auth=auth)
    password = _resolve_secret(args, key_based=False) if prompt else ""
    return Credentials(endpoint=endpoint, username=args.user, auth=PasswordAuth(password=password or ""))


def _run_tail(state: AppState, credentials: Credentials, path: str, as_json: bool) -> int:
    target = state.start_tail(credentials, path)
    exit_code = 0
    try:
        while True:
            event = state.events.get(timeout=0.5)
            if event is None or event.endpoint != target.endpoint:
                continue
            if as_json:
                print(json.dumps(event.to_payload()), flush=True)
            elif event.kind is EventKind.DATA and event.line is not None:
                print(event.line.content, flush=True)
            elif event.kind is EventKind.ERROR:
                print(f"error: {event.message}", file=sys.stderr)
                exit_code = 1
            elif event.kind is EventKind.CONNECTED:
                _LOGGER.info("Connected, following %s", event.path)
            if event.is_terminal:
                return exit_code
    except KeyboardInterrupt:
        with suppress(NoActiveSession):
            state.stop_tail(endpoint=target.endpoint)
        return exit_code


def _run_profiles(args: argparse.Namespace) -> int:
    if args.action == "list":
        for name, profile in sorted(load_profiles().items()):
            print(f"{name}\t{profile.get('username')}@{profile.get('host')}:{profile.get('port')}\t{profile.get('log_path', '')}")
        return 0
    if args.action == "save":
        save_profile(args.name, credentials_from_args(args, prompt=False), args.log_path)
        print(f"Saved profile {args.name}")
        return 0
    if not delete_profile(args.name):
        print(f"No profile named {args.name}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "profiles":
        return _run_profiles(args)

    try:
        credentials = credentials_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    init_app_state()
    state = get_app_state()
    try:
        if args.command == "test":
            status = state.connect_test(credentials)
            print(status.message)
            return 0 if status.connected else 1
        if args.command == "read":
            result = state.read_now(credentials, args.path, follow=args.follow_hint)
            sys.stdout.write(result.content)
            _LOGGER.info("%s: %d lines", result.file_name, result.line_count)
            return 0
        if args.command == "discover":
            for candidate in state.discover_logs(credentials):
                print(candidate.path)
            return 0
        path = args.path
        if not path and args.profile:
            path = load_profiles().get(args.profile, {}).get("log_path")
        if not path:
            parser.error("tail needs a remote path")
        return _run_tail(state, credentials, path, args.json)
    except RemoteTailError as exc:
        print(f"{exc.kind.value}: {exc.message}", file=sys.stderr)
        return 1
    finally:
        reset_app_state()
