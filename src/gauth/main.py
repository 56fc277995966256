"""gauth CLI main entry point.

Usage:
  gauth add [-7 | -8] [--hotp] [--uri] <name>
  gauth list
  gauth get [name]

The *add* subcommand prompts for a Base32 secret (or, with ``--uri``, an
``otpauth://`` URI) and appends it to the keychain. *list* prints the stored
names. *get* prints the code for one name, or with no name every time-based
code; running gauth with no subcommand does the same.

The keychain is stored UNENCRYPTED in ``$HOME/.gauth`` unless ``--keychain``
or ``GAUTH_KEYCHAIN`` point elsewhere. TOTP codes depend on the system clock
being accurate to within about a minute.
"""

import argparse
import logging
import os
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from rich import print as rich_print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from gauth import ops, otp
from gauth.errors import GauthError
from gauth.keychain import Keychain

log = logging.getLogger("gauth")


def _default_keychain_path() -> str:
    """Return the keychain path from GAUTH_KEYCHAIN, falling back to ~/.gauth."""
    env_path = os.environ.get("GAUTH_KEYCHAIN")
    if env_path:
        return env_path
    return str(Path.home() / ".gauth")


class Command(Enum):
    ADD = "add"
    LIST = "list"
    GET = "get"


@dataclass(frozen=True)
class Options:
    keychain: Path
    command: Command
    name: str | None = None
    digits: int = 6
    hotp: bool = False
    uri: bool = False
    verbose: bool = False


def _read_secret(name: str) -> str:
    """Prompt on stderr and return the entered line with all whitespace removed."""
    print(f"gauth key for {name}: ", end="", file=sys.stderr, flush=True)
    line = sys.stdin.readline()
    if not line:
        raise GauthError("error reading key: unexpected end of input")
    return "".join(line.split())


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


# ==== Display helper ========================================================


def format_row(name: str, code: str, now: int) -> str:
    if code.startswith("-"):
        return f"{code}\t{escape(name)}"
    seconds_remaining = otp.seconds_remaining(now)
    if seconds_remaining > 15:
        color = "green"
    elif seconds_remaining > 8:
        color = "yellow"
    else:
        color = "red"
    return f"[{color}]{code}[/{color}]\t{escape(name)} ([{color}]{seconds_remaining}s[/{color}])"


# ==== Commands ==============================================================


def _cmd_add(opts: Options, keychain: Keychain) -> None:
    text = _read_secret(opts.name)
    if opts.uri:
        ops.add_uri(keychain, opts.name, text)
    else:
        ops.add(keychain, opts.name, text, digits=opts.digits, hotp=opts.hotp)


def _cmd_list(opts: Options, keychain: Keychain) -> None:
    for name in ops.list_names(keychain):
        print(name)


def _cmd_get(opts: Options, keychain: Keychain) -> None:
    if opts.name is not None:
        print(ops.code(keychain, opts.name))
        return
    now = time.time_ns()
    for name, code in ops.print_all(keychain, clock=lambda: now):
        rich_print(format_row(name, code, now))


COMMANDS = {
    Command.ADD: _cmd_add,
    Command.LIST: _cmd_list,
    Command.GET: _cmd_get,
}


def run(opts: Options) -> None:
    """Load the keychain named in *opts* and carry out its command."""
    if opts.name is not None:
        ops.check_name(opts.name)
    keychain = Keychain.load(opts.keychain)
    COMMANDS[opts.command](opts, keychain)


# ==== CLI ===================================================================


def parse_args(argv: list[str] | None = None) -> Options:
    parser = argparse.ArgumentParser(
        prog="gauth", description="Two-factor authentication codes from a local keychain."
    )
    parser.add_argument(
        "--keychain",
        default=_default_keychain_path(),
        help="Path to the keychain file (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")

    sub = parser.add_subparsers(dest="command")

    p_add = sub.add_parser("add", help="Add a key, reading the secret from stdin")
    size = p_add.add_mutually_exclusive_group()
    size.add_argument("-7", dest="digits", action="store_const", const=7, help="7-digit codes")
    size.add_argument("-8", dest="digits", action="store_const", const=8, help="8-digit codes")
    p_add.add_argument(
        "--hotp", action="store_true", help="Add as a counter-based (HOTP) key"
    )
    p_add.add_argument(
        "--uri", action="store_true", help="Read an otpauth:// URI instead of a bare secret"
    )
    p_add.add_argument("name", help="Key name (no spaces)")
    p_add.set_defaults(digits=6)

    sub.add_parser("list", help="List key names")

    p_get = sub.add_parser("get", help="Print the code for a key, or all TOTP codes")
    p_get.add_argument("name", nargs="?", help="Key name")

    args = parser.parse_args(argv)
    if args.command == "add" and args.uri and (args.hotp or args.digits != 6):
        parser.error("--uri takes the digit count and key type from the URI")

    return Options(
        keychain=Path(args.keychain),
        command=Command(args.command or "get"),
        name=getattr(args, "name", None),
        digits=getattr(args, "digits", 6),
        hotp=getattr(args, "hotp", False),
        uri=getattr(args, "uri", False),
        verbose=args.verbose,
    )


def main(argv: list[str] | None = None) -> None:  # noqa: D401 – simple CLI
    opts = parse_args(argv)
    _setup_logging(opts.verbose)
    try:
        run(opts)
    except (GauthError, ValueError) as err:
        log.error("%s", err)
        sys.exit(1)


if __name__ == "__main__":
    main()
