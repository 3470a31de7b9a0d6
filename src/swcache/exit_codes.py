"""Numeric process exit codes for the ``swcache`` command line.

Each constant is referenced by the matching
:class:`~swcache.exceptions.SwcacheError` subclass so that deployment
scripts can tell an install failure from a network outage without parsing
stderr.

Example::

    $ swcache deploy
    $ echo $?
    3   # EXIT_INSTALL_FAILURE -- a manifest asset could not be fetched
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_INSTALL_FAILURE = 3
"""A generation could not be installed (precache population failed)."""

EXIT_LIFECYCLE_ERROR = 4
"""A lifecycle phase was requested out of order."""

EXIT_STORE_ERROR = 5
"""The on-disk store could not be written."""

EXIT_NETWORK_ERROR = 6
"""A network-level error occurred and no cached fallback existed."""
