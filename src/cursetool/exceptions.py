"""Exception hierarchy for cursetool.

All exceptions inherit from :class:`CursetoolError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cursetool.exit_codes`.
The top-level error handler in :func:`cursetool.app.main` catches
``CursetoolError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CursetoolError (exit 1)
    +-- InvalidUsageError              (exit 2)
    +-- ConfigError                    (exit 1)
    +-- ManifestError                  (exit 7)
    +-- DataError                      (exit 8)
    +-- CacheError                     (exit 9)
    +-- FetchError                     (exit 6)
        +-- AuthError                  (exit 3)
        +-- NotFoundError              (exit 4)
        +-- ServerError                (exit 5)
        +-- ConnectionError_           (exit 6)
        +-- UnexpectedContentTypeError (exit 6)
"""

from __future__ import annotations

from cursetool.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_DATA_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_MANIFEST_ERROR,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class CursetoolError(Exception):
    """Base exception for all cursetool errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cursetool.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code

    def annotate(self, context: str) -> CursetoolError:
        """Return a copy of this error whose message is prefixed with *context*.

        The copy keeps the concrete class and exit code so callers further
        up can still dispatch on the error type. Used to record which
        logical operation (project id, file id, URL) was in progress.

        Args:
            context: Description of the operation, e.g.
                ``"Fetching files for project id 1234"``.
        """
        return type(self)(f"{context}: {self}", exit_code=self.exit_code)


class InvalidUsageError(CursetoolError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CursetoolError):
    """Raised for configuration problems (invalid config JSON, missing API key)."""

    exit_code = EXIT_GENERIC_FAILURE


class ManifestError(CursetoolError):
    """Raised when an input manifest cannot be read, parsed, or validated."""

    exit_code = EXIT_MANIFEST_ERROR


class DataError(CursetoolError):
    """Raised when catalog data is missing or does not satisfy a request.

    Covers missing required fields, undecodable JSON, pages without
    pagination info, unknown slugs, and "no file matches" selections.
    """

    exit_code = EXIT_DATA_ERROR


class CacheError(CursetoolError):
    """Raised when the response cache database cannot be opened or queried."""

    exit_code = EXIT_CACHE_ERROR


class FetchError(CursetoolError):
    """Base class for failures of an origin request to the catalog or CDN."""

    exit_code = EXIT_CONNECTION_ERROR


class AuthError(FetchError):
    """Raised when the catalog returns HTTP 401 / 403 (bad or missing API key)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(FetchError):
    """Raised when the catalog or CDN returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(FetchError):
    """Raised for any other non-success HTTP status."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(FetchError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class UnexpectedContentTypeError(FetchError):
    """Raised when a response has a content type the caller cannot use.

    The CDN answers requests for miscomputed download URLs with an XML
    error document, so an XML body where JSON or a binary was expected
    almost always means the URL itself is wrong.
    """

    exit_code = EXIT_CONNECTION_ERROR
