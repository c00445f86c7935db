"""lon exceptions.

Every error raised on purpose derives from LonError so the command line layer
can render it and map it to an exit code.
"""


class LonError(Exception):
    """Base class for all lon errors."""


class ConfigError(LonError):
    """A required configuration value (usually an environment variable) is missing or invalid."""


class SourceNotFoundError(LonError):
    """The named source does not exist in the lock file."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Source {name} doesn't exist")


class SourceExistsError(LonError):
    """A source with the same name is already locked."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Source {name} already exists")


class RefError(LonError):
    """Looking up a reference on a remote repository did not yield exactly one revision.

    Attributes:
        url: URL of the remote repository
        reference: Fully qualified reference (e.g. refs/heads/main)
    """

    def __init__(self, url: str, reference: str, message: str) -> None:
        self.url = url
        self.reference = reference
        super().__init__(message)


class MissingRefError(RefError):
    def __init__(self, url: str, reference: str) -> None:
        super().__init__(url, reference, f"The repository {url} doesn't contain the reference {reference}")


class AmbiguousRefError(RefError):
    def __init__(self, url: str, reference: str) -> None:
        super().__init__(
            url,
            reference,
            f"The reference {reference} of {url} is ambiguous and points to multiple revisions",
        )


class TransportError(LonError):
    """A subprocess or HTTP call failed.

    Attributes:
        detail: stderr of the process or body of the HTTP response, if any
    """

    def __init__(self, message: str, detail: str = "") -> None:
        self.detail = detail
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class DecodeError(LonError):
    """The lock file could not be read or does not match the schema of its version."""
