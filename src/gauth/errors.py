"""Errors raised by the keychain and code generator."""


class GauthError(Exception):
    """Base class for every failure the CLI reports before exiting."""


class InvalidSecret(GauthError):
    pass


class InvalidName(GauthError):
    pass


class MalformedRecord(GauthError):
    """A keychain line that matches no record layout. Skipped, never fatal."""


class UnknownKey(GauthError):
    pass


class CorruptCounter(GauthError):
    pass


class StoreReadError(GauthError):
    pass


class StoreWriteError(GauthError):
    pass
