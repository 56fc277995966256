"""Flat-file keychain of two-factor secrets.

Each non-empty line of the keychain is one record::

    <name> <digits> <base32-secret>[ <counter>]

where ``digits`` is a single character ``6``..``8`` and the optional
``counter`` is a 20-digit, zero-padded decimal. Records without a counter are
time based (TOTP); records with one are counter based (HOTP).

The whole file is kept in memory as one byte arena. Counter-based entries
remember the absolute offset of their counter inside that arena, so advancing
a counter is a single 20-byte overwrite at the same offset in the file. No
locking is done: two processes advancing the same counter at once can both
hand out the same code.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from gauth import base32
from gauth.errors import (
    CorruptCounter,
    InvalidSecret,
    MalformedRecord,
    StoreReadError,
    StoreWriteError,
)
from gauth.otp import MAX_COUNTER

log = logging.getLogger(__name__)

COUNTER_LEN = 20
FILE_MODE = 0o600
MIN_DIGITS = 6
MAX_DIGITS = 8


@dataclass(frozen=True)
class TimeBased:
    pass


@dataclass(frozen=True)
class CounterBased:
    offset: int


@dataclass(frozen=True)
class Entry:
    name: str
    digits: int
    secret: bytes
    mode: TimeBased | CounterBased


def format_counter(value: int) -> bytes:
    return f"{value:0{COUNTER_LEN}d}".encode("ascii")


def _parse_record(line: bytes, end: int) -> Entry:
    """Build an entry from one line; *end* is the arena offset just past it."""
    fields = line.split(b" ")
    if len(fields) not in (3, 4):
        raise MalformedRecord(f"expected 3 or 4 fields, got {len(fields)}")
    raw_name, raw_digits, raw_secret = fields[:3]
    if not raw_name:
        raise MalformedRecord("empty name")
    if len(raw_digits) != 1 or not b"6" <= raw_digits <= b"8":
        raise MalformedRecord(f"bad digits {raw_digits!r}")
    try:
        name = raw_name.decode("utf-8")
        secret = base32.decode(raw_secret.decode("ascii"))
    except (UnicodeDecodeError, InvalidSecret) as err:
        raise MalformedRecord(str(err)) from err

    if len(fields) == 3:
        mode = TimeBased()
    else:
        counter = fields[3]
        if len(counter) != COUNTER_LEN or not (counter.isascii() and counter.isdigit()):
            raise MalformedRecord(f"bad counter {counter!r}")
        if int(counter) > MAX_COUNTER:
            raise MalformedRecord(f"counter {counter!r} overflows 64 bits")
        mode = CounterBased(offset=end - COUNTER_LEN)
    return Entry(name=name, digits=int(raw_digits), secret=secret, mode=mode)


def parse_keychain(data: bytes, source: str = "<keychain>") -> dict[str, Entry]:
    """Parse the keychain arena *data* into a name -> entry index.

    Lines that match no record layout are logged as ``<source>:<lineno>:
    invalid key`` and skipped. A name that appears twice maps to its last
    occurrence.
    """
    entries: dict[str, Entry] = {}
    offset = 0
    for lineno, line in enumerate(data.split(b"\n"), start=1):
        # end points at the line's "\n", or at len(data) for an unterminated last line
        end = offset + len(line)
        offset = end + 1
        if not line:
            continue
        try:
            entry = _parse_record(line, end)
        except MalformedRecord as err:
            log.warning("%s:%d: invalid key", source, lineno)
            log.debug("%s:%d: %s", source, lineno, err)
            continue
        if entry.name in entries:
            log.debug("%s:%d: %s shadows an earlier entry", source, lineno, entry.name)
        entries[entry.name] = entry
    return entries


class Keychain:
    """The keychain file, its bytes and the entries parsed from them."""

    def __init__(self, path: Path, data: bytes = b"", entries: dict[str, Entry] | None = None):
        self.path = Path(path)
        self.data = data
        self.entries = {} if entries is None else entries

    @classmethod
    def load(cls, path: str | os.PathLike) -> "Keychain":
        """Read and parse *path*. A missing file gives an empty keychain."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            log.debug("%s does not exist, starting empty", path)
            return cls(path)
        except OSError as err:
            raise StoreReadError(f"reading keychain: {err}") from err
        return cls(path, data, parse_keychain(data, str(path)))

    def names(self) -> list[str]:
        return sorted(self.entries)

    def get(self, name: str) -> Entry | None:
        return self.entries.get(name)

    def append(
        self,
        name: str,
        digits: int,
        secret_text: str,
        counter_based: bool = False,
        counter: int = 0,
    ) -> None:
        """Append one record to the file.

        The file is created owner read/write only, and forced back to that mode
        if it already existed. The in-memory index is left alone, so an entry
        appended here is only visible after the keychain is loaded again.
        if counter_based and not 0 <= counter <= MAX_COUNTER:
            raise ValueError(f"counter out of range: {counter}")
        """
        line = f"{name} {digits} {secret_text}".encode("utf-8")
        if counter_based:
            line += b" " + format_counter(counter)
        line += b"\n"
        if self.data and not self.data.endswith(b"\n"):
            # keep a hand-edited last line from swallowing the new record
            line = b"\n" + line

        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, FILE_MODE)
            with os.fdopen(fd, "wb") as fh:
                os.fchmod(fh.fileno(), FILE_MODE)
                fh.write(line)
        except OSError as err:
            raise StoreWriteError(f"adding key: {err}") from err
        log.debug("appended %s to %s", name, self.path)

    def read_counter_at(self, offset: int) -> int:
        """Return the counter stored at *offset* in the arena."""
        field = self.data[offset : offset + COUNTER_LEN]
        following = self.data[offset + COUNTER_LEN : offset + COUNTER_LEN + 1]
        if (
            offset < 0
            or len(field) != COUNTER_LEN
            or not (field.isascii() and field.isdigit())
            or following not in (b"", b"\n")
        ):
            raise CorruptCounter(f"invalid key counter at offset {offset}: {field!r}")
        return int(field)

    def write_counter_at(self, offset: int, value: int) -> None:
        """Overwrite the 20 counter bytes at *offset*, in the file and the arena.

        Nothing outside that window is written.
        """
        field = format_counter(value)
        if value < 0 or len(field) != COUNTER_LEN:
            raise CorruptCounter(f"counter {value} does not fit in {COUNTER_LEN} digits")
        try:
            with open(self.path, "r+b") as fh:
                fh.seek(offset)
                fh.write(field)
        except OSError as err:
            raise StoreWriteError(f"updating keychain: {err}") from err
        self.data = self.data[:offset] + field + self.data[offset + COUNTER_LEN :]
