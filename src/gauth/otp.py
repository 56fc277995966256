"""HOTP (RFC 4226) and TOTP (RFC 6238) code generation.

Secrets arrive here already decoded. The truncation itself is delegated to
:class:`pyotp.HOTP`, which wants the secret back as Base32 text, so the raw
bytes are re-encoded on the way in.
"""

import base64
import hashlib

import pyotp

TIME_STEP_NS = 30_000_000_000
MAX_DIGITS = 8
MAX_COUNTER = 2**64 - 1


def hotp(secret: bytes, counter: int, digits: int) -> int:
    """Return the HOTP value of *secret* at *counter* as an integer."""
    if not 0 <= counter <= MAX_COUNTER:
        raise ValueError(f"counter out of range: {counter}")
    digits = min(digits, MAX_DIGITS)
    generator = pyotp.HOTP(
        base64.b32encode(secret).decode("ascii"), digits=digits, digest=hashlib.sha1
    )
    return int(generator.at(counter))


def totp(secret: bytes, now: int, digits: int) -> int:
    """Return the TOTP value for *now*, given in nanoseconds since the epoch.

    The step is fixed at 30 seconds and counted from the Unix epoch.
    """
    return hotp(secret, now // TIME_STEP_NS, digits)


def seconds_remaining(now: int) -> int:
    """Seconds until the 30 second window containing *now* rolls over."""
    return (TIME_STEP_NS - now % TIME_STEP_NS + 999_999_999) // 1_000_000_000


def format_code(value: int, digits: int) -> str:
    return f"{value:0{digits}d}"
