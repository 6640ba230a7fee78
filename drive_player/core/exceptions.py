"""
Exception classes for drive-player.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message and an optional details
dictionary so callers can log context without parsing strings.

Exception Hierarchy:
    DrivePlayerError (base)
        ConfigError - Configuration file issues
        DatabaseError - SQLite database issues
        AuthError - Credential rejected or interaction required
        NetworkError - Transport-level failure talking to the catalog
        DecodeError - Malformed catalog response
        NotFoundError - Missing item or missing download locator
        NotAvailableOffline - Playback requested for an uncached item
        FileSystemError - Cache write/delete failure
"""


class DrivePlayerError(Exception):
    """
    Base exception for all drive-player errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all drive-player errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., item id, URL).

    Example:
        try:
            client.list_children(folder_id)
        except DrivePlayerError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'item_id': Catalog item ID involved in the error
                     - 'url': URL that caused the error
                     - 'http_status': HTTP status code of the failed response
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(DrivePlayerError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (auth.client_id, storage.directory)
        - Invalid field values (e.g., zero sync threads)
    """
    pass


class DatabaseError(DrivePlayerError):
    """
    Raised when there's an issue with the SQLite database.

    Common causes:
        - Database file is not a valid SQLite file
        - Permission denied when reading/writing
        - Parent directory does not exist
    """
    pass


class AuthError(DrivePlayerError):
    """
    Raised when the identity provider or the catalog rejects a credential.

    The interaction_required flag marks the recoverable case: the silent
    refresh failed and the user has to sign in again. Credential providers
    handle that case themselves by falling back to the interactive flow,
    so the core only sees AuthError when that fallback also failed.

    Attributes:
        interaction_required: True if the user must sign in interactively.

    Example:
        raise AuthError(
            "Access token rejected by the catalog",
            details={'http_status': 401, 'url': url}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        interaction_required: bool = False
    ) -> None:
        """
        Initialize auth error with the interaction flag.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            interaction_required: Set to True when a silent token refresh
                                  failed and an interactive sign-in is needed.
        """
        super().__init__(message, details)
        self.interaction_required = interaction_required


class NetworkError(DrivePlayerError):
    """
    Raised on transport-level failures (connection refused, timeout,
    TLS failure, server-side 5xx).

    This is a NON-CRITICAL error. Nothing retries it automatically; the
    user retries by refreshing or re-running the download.
    """
    pass


class DecodeError(DrivePlayerError):
    """
    Raised when a catalog response is not the JSON shape we expect.

    Example:
        raise DecodeError(
            "Listing response has no 'value' array",
            details={'url': url}
        )
    """
    pass


class NotFoundError(DrivePlayerError):
    """
    Raised when the catalog has no such item, or when an item response
    does not carry a download locator.
    """
    pass


class NotAvailableOffline(DrivePlayerError):
    """
    Raised (and published as a playback error event) when playback is
    requested for an item that is not in the local cache.

    Example:
        NotAvailableOffline(
            "'song.mp3' is not saved offline",
            details={'item_id': item.id, 'name': item.name}
        )
    """
    pass


class FileSystemError(DrivePlayerError):
    """
    Raised when the local cache cannot be written to or deleted from.

    Common causes:
        - Disk full or permission denied
        - Item name that is not a valid single path component
    """
    pass
