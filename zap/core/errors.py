"""
Error taxonomy — every failure zap knows how to name.

Per-package errors (NetworkError, BuildError, NotFoundError, ParseError)
are caught close to where they happen and folded into that package's
``InstallResult``. Cross-cutting errors (AuthError, ConfigError,
UnavailableToolError raised while building the registry) propagate to
the CLI and abort the command.
"""

from __future__ import annotations


class ZapError(Exception):
    """Base class for all zap errors."""


class ConfigError(ZapError):
    """Raised when the settings file is unreadable or invalid."""


class UnavailableToolError(ZapError):
    """A required external program is not installed."""


class NetworkError(ZapError):
    """A registry query or archive download failed."""


class ParseError(ZapError):
    """A build descriptor or registry payload could not be understood."""


class AuthError(ZapError):
    """The elevation credential was rejected."""


class BuildError(ZapError):
    """A source package failed to build or install after every fallback."""


class NotFoundError(ZapError):
    """A package is absent from the backend that was asked."""
