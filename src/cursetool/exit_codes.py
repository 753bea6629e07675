"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cursetool.exceptions.CursetoolError` subclass, so
wrapper scripts can tell a bad API key from a broken manifest without
parsing stderr.
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""The catalog rejected the API key (HTTP 401/403)."""

EXIT_NOT_FOUND = 4
"""A catalog resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The catalog returned a non-success status other than 401/403/404."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred, or the response had an unexpected format."""

EXIT_MANIFEST_ERROR = 7
"""An input manifest could not be read or parsed."""

EXIT_DATA_ERROR = 8
"""A catalog response lacked required data (missing field, no matching file)."""

EXIT_CACHE_ERROR = 9
"""The response cache database could not be opened or queried."""
