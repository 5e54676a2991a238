"""Exception hierarchy shared by the cataloger, resolvers, and CLI."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Union


class RuntimescoutError(Exception):
    """Base class for all runtimescout failures."""


class ConfigurationError(RuntimescoutError, ValueError):
    """Raised when classifiers or application settings are invalid."""


class ResolutionError(RuntimescoutError):
    """Represents a failure to enumerate or read a location."""

    def __init__(self, path: Union[str, PurePosixPath], reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {self.reason}")

    def __repr__(self) -> str:  # pragma: no cover - trivial wrapper
        return f"{type(self).__name__}(path={self.path!r}, reason={self.reason!r})"


class LocationAbsentError(ResolutionError):
    """Raised by resolvers for locations that are expected to be unreadable.

    Broken symlinks are the typical case. The matcher treats this as a
    no-match instead of failing the run.
    """


def wrap_os_error(path: Union[str, PurePosixPath], exc: OSError) -> ResolutionError:
    """Convert an ``OSError`` into :class:`ResolutionError`."""

    return ResolutionError(path=path, reason=exc.strerror or str(exc))


__all__ = [
    "ConfigurationError",
    "LocationAbsentError",
    "ResolutionError",
    "RuntimescoutError",
    "wrap_os_error",
]
