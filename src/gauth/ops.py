"""Operations over a loaded keychain: add, list and compute codes."""

import logging
import time
from collections.abc import Callable

import pyotp

from gauth import base32, otp
from gauth.errors import CorruptCounter, InvalidName, InvalidSecret, UnknownKey
from gauth.keychain import MAX_DIGITS, MIN_DIGITS, CounterBased, Keychain, TimeBased

log = logging.getLogger(__name__)

Clock = Callable[[], int]


def list_names(keychain: Keychain) -> list[str]:
    return keychain.names()


def code(keychain: Keychain, name: str, clock: Clock = time.time_ns) -> str:
    """Return the current code for *name*.

    Counter-based entries are advanced and persisted before the code is
    returned, so a code is never handed out twice by one keychain.
    """
    entry = keychain.get(name)
    if entry is None:
        raise UnknownKey(f"no such key {name!r}")

    match entry.mode:
        case CounterBased(offset=offset):
            counter = keychain.read_counter_at(offset) + 1
            if counter > otp.MAX_COUNTER:
                raise CorruptCounter(f"key counter for {name!r} is exhausted")
            value = otp.hotp(entry.secret, counter, entry.digits)
            keychain.write_counter_at(offset, counter)
            log.debug("advanced %s to counter %d", name, counter)
        case TimeBased():
            value = otp.totp(entry.secret, clock(), entry.digits)
    return otp.format_code(value, entry.digits)


def print_all(keychain: Keychain, clock: Clock = time.time_ns) -> list[tuple[str, str]]:
    """Return ``(name, code)`` for every entry, sorted by name.

    Counter-based entries get a row of dashes instead of a code; listing never
    advances a counter.
    """
    now = clock()
    rows = []
    for name in keychain.names():
        entry = keychain.entries[name]
        match entry.mode:
            case CounterBased():
                rows.append((name, "-" * entry.digits))
            case TimeBased():
                value = otp.totp(entry.secret, now, entry.digits)
                rows.append((name, otp.format_code(value, entry.digits)))
    return rows


def check_name(name: str) -> None:
    if not name or any(ch.isspace() for ch in name):
        raise InvalidName(f"invalid key name {name!r}: spaces aren't allowed")


def add(
    keychain: Keychain,
    name: str,
    secret_text: str,
    digits: int = 6,
    hotp: bool = False,
) -> None:
    """Validate a new entry and append it to the keychain file.

    Nothing is written unless the name, digit count and secret are all valid.
    The entry shows up in *keychain* only after it is loaded again.
    """
    check_name(name)
    if not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise ValueError(f"digits must be between {MIN_DIGITS} and {MAX_DIGITS}, got {digits}")
    base32.decode(secret_text)
    keychain.append(name, digits, secret_text, counter_based=hotp)


def add_uri(keychain: Keychain, name: str, uri: str) -> None:
    """Add an entry described by an ``otpauth://`` URI.

    Only what the keychain format can express is accepted: SHA1, a 30 second
    period for TOTP, and 6 to 8 digits.
    """
    check_name(name)
    try:
        parsed = pyotp.parse_uri(uri)
    except ValueError as err:
        raise InvalidSecret(f"invalid otpauth URI: {err}") from err

    if parsed.digest().name != "sha1":
        raise InvalidSecret(f"unsupported algorithm {parsed.digest().name}")
    if not MIN_DIGITS <= parsed.digits <= MAX_DIGITS:
        raise InvalidSecret(f"unsupported digits {parsed.digits}")

    secret_text = base32.pad("".join(parsed.secret.split()).upper())
    base32.decode(secret_text)
    if isinstance(parsed, pyotp.HOTP):
        if not 0 <= parsed.initial_count <= otp.MAX_COUNTER:
            raise InvalidSecret(f"unsupported counter {parsed.initial_count}")
        keychain.append(
            name, parsed.digits, secret_text, counter_based=True, counter=parsed.initial_count
        )
    else:
        if parsed.interval != 30:
            raise InvalidSecret(f"unsupported period {parsed.interval}s")
        keychain.append(name, parsed.digits, secret_text)
