"""Exception types shared across paxjournal."""


class PaxJournalError(Exception):
    """Base class for paxjournal errors."""


class ConfigError(PaxJournalError):
    """Configuration is missing or invalid."""


class RemoteError(PaxJournalError):
    """A call to the remote page service failed.

    Raised by remote adapters. The sync engine treats any RemoteError as a
    recoverable fault: the current batch stops and is retried later.
    """


class RemoteAPIError(RemoteError):
    """The remote service rejected a request (non-retryable 4xx)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RemoteUnavailableError(RemoteError):
    """The remote service could not be reached after all retries."""
