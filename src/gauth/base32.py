"""Base32 helpers for keychain secrets."""

import base64

from gauth.errors import InvalidSecret


def decode(text: str) -> bytes:
    """Decode a case-insensitive, padded Base32 secret."""
    try:
        return base64.b32decode(text.upper())
    except ValueError as err:
        # binascii.Error for bad alphabet/padding, plain ValueError for non-ASCII
        raise InvalidSecret(f"invalid key: {err}") from err


def pad(text: str) -> str:
    """Append the ``=`` padding that otpauth URIs leave off."""
    return text + "=" * (-len(text) % 8)
