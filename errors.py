"""
Exception hierarchy for the Blink media sync.

Fatal errors (ConfigError, AuthError, PinError) stop the process with a
non-zero exit code. FetchError is soft: callers log it and skip or retry
the unit of work.
"""


class BlinkError(Exception):
    """Base class for all errors raised by this application."""


class ConfigError(BlinkError):
    """Required configuration is missing or still set to a placeholder."""


class AuthError(BlinkError):
    """Login was rejected or the login response could not be understood."""


class PinError(BlinkError):
    """The one-time PIN could not be verified."""


class FetchError(BlinkError):
    """A listing request against the Blink API failed."""
