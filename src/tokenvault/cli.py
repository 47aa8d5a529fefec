"""
Token vault CLI.

Usage:
    tokenvault add NAME [TOKEN]
    tokenvault get NAME
    tokenvault list
    tokenvault delete NAME
    tokenvault env [--dotenv PATH] [-- COMMAND ...]

Or run directly:
    python -m tokenvault

The master secret is prompted for on every invocation. Set
TOKENVAULT_MASTER_SECRET in the process environment to run without a
prompt; a value for it in a .env file is ignored.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import set_key

from . import __version__
from .config import Backend, VaultSettings, create_medium
from .crypto import EnvelopeCipher
from .errors import VaultError
from .store import TokenStore

logger = logging.getLogger(__name__)

MASTER_SECRET_ENV = "TOKENVAULT_MASTER_SECRET"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenvault",
        description="Store personal access tokens encrypted under a master key",
    )
    parser.add_argument("--version", action="version", version=f"tokenvault {__version__}")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in Backend],
        help="Backing medium (default: $TOKENVAULT_BACKEND or file)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        help="Store file for the file backend (default: $TOKENVAULT_PATH or ~/.tokenvault/tokens.json)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Adds a new value corresponding to the name.")
    add.add_argument("name")
    add.add_argument("token", nargs="?", help="Token value (prompted for when omitted)")

    get = commands.add_parser("get", help="Fetches the value of the key corresponding to the name.")
    get.add_argument("name")

    commands.add_parser("list", help="Lists the names of all the available keys.")

    delete = commands.add_parser("delete", help="Deletes the value corresponding to the key.")
    delete.add_argument("name")

    env = commands.add_parser("env", help="Populates the environment with all these variables.")
    env.add_argument("--dotenv", type=Path, metavar="PATH", help="Write a .env file instead of spawning a shell")
    env.add_argument("cmd", nargs=argparse.REMAINDER, help="Command to run (default: $SHELL)")

    return parser


def read_master_secret(from_env: Optional[str] = None) -> str:
    """Return the master secret passed in from the process environment, or prompt for it."""
    if from_env:
        return from_env
    return getpass.getpass("Please enter your master key: ")


def open_store(settings: VaultSettings, master_secret: Optional[str] = None) -> TokenStore:
    medium = create_medium(settings)
    cipher = EnvelopeCipher.from_master_secret(read_master_secret(master_secret))
    return TokenStore.open(medium, cipher)


def cmd_add(store: TokenStore, args: argparse.Namespace) -> int:
    token = args.token
    if token is None:
        token = getpass.getpass(f"Enter token for '{args.name}': ")
    store.put(args.name, token)
    print(f"::> Token '{args.name}' stored successfully!")
    return 0


def cmd_get(store: TokenStore, args: argparse.Namespace) -> int:
    token = store.get(args.name)
    if token is None:
        print(f"::> Token '{args.name}' not found")
        return 1
    print(token)
    return 0


def cmd_list(store: TokenStore, args: argparse.Namespace) -> int:
    names = store.list_names()
    print("Stored tokens:")
    for name in names:
        print(f"  - {name}")
    return 0


def cmd_delete(store: TokenStore, args: argparse.Namespace) -> int:
    if store.delete(args.name):
        print(f"::> Token '{args.name}' deleted")
        return 0
    print(f"::> Token '{args.name}' not found")
    return 1


def cmd_env(store: TokenStore, args: argparse.Namespace) -> int:
    tokens = store.export_all()

    if args.dotenv is not None:
        write_dotenv(args.dotenv, tokens)
        print(f"::> Wrote {len(tokens)} token(s) to {args.dotenv}")
        return 0

    command = args.cmd[1:] if args.cmd[:1] == ["--"] else args.cmd
    if not command:
        command = [os.environ.get("SHELL") or "/bin/sh"]
    child_env = dict(os.environ)
    child_env.pop(MASTER_SECRET_ENV, None)
    child_env.update(tokens)
    logger.debug("Spawning %s with %d exported token(s)", command[0], len(tokens))
    try:
        return subprocess.run(command, env=child_env).returncode
    except OSError as e:
        raise VaultError(f"Cannot run {command[0]}: {e}") from e


def write_dotenv(path: Path, tokens: dict) -> None:
    """Write tokens into a .env file readable only by the owner."""
    try:
        path.touch(mode=0o600, exist_ok=True)
    except OSError as e:
        raise VaultError(f"Cannot write {path}: {e}") from e
    try:
        for name, value in tokens.items():
            set_key(path, name, value, quote_mode="always")
    except OSError as e:
        raise VaultError(f"Cannot write {path}: {e}") from e


COMMANDS = {
    "add": cmd_add,
    "get": cmd_get,
    "list": cmd_list,
    "delete": cmd_delete,
    "env": cmd_env,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Taken before .env loading so a .env file can never supply it
    master_secret = os.environ.get(MASTER_SECRET_ENV)

    try:
        settings = VaultSettings.from_env()
        if args.backend:
            settings.backend = Backend.from_str(args.backend)
        if args.path:
            settings.store_path = args.path.expanduser()

        with open_store(settings, master_secret) as store:
            return COMMANDS[args.command](store, args)
    except (VaultError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
