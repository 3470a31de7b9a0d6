"""Exception hierarchy for swcache.

All exceptions inherit from :class:`SwcacheError`, which carries an
``exit_code`` attribute taken from :mod:`swcache.exit_codes`. The CLI entry
point in :func:`swcache.app.main` catches ``SwcacheError`` and exits with
that code.

Fetch failures are not wrapped: an
:class:`httpx.RequestError` raised by the network attempt reaches the
caller unchanged when no cached fallback exists.

Subclass hierarchy::

    SwcacheError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- InstallError             (exit 3)
    +-- LifecycleError           (exit 4)
    +-- StoreWriteError          (exit 5)
    +-- UncacheableRequestError  (exit 2)
    +-- ConfigError              (exit 1)
"""

from swcache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INSTALL_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_ERROR,
    EXIT_STORE_ERROR,
)


class SwcacheError(Exception):
    """Base exception for all swcache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SwcacheError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class InstallError(SwcacheError):
    """Raised when precache population fails; the generation never activates."""

    exit_code = EXIT_INSTALL_FAILURE


class LifecycleError(SwcacheError):
    """Raised when a lifecycle phase is requested in the wrong state."""

    exit_code = EXIT_LIFECYCLE_ERROR


class StoreWriteError(SwcacheError):
    """Raised by :class:`~swcache.store.CacheStore` on a storage or quota failure.

    :meth:`~swcache.store.StoreRegistry.put` swallows it; only the
    transactional install path lets it escape.
    """

    exit_code = EXIT_STORE_ERROR


class UncacheableRequestError(SwcacheError):
    """Raised when a cache key is requested for a non-GET request."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(SwcacheError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
