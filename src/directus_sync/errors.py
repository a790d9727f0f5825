"""Exception hierarchy for directus-sync.

Everything raised on purpose by the library derives from
``DirectusSyncError`` so the CLI can report it and exit non-zero.

Usage:
    from directus_sync.errors import DirectusSyncError, ConvergenceFailed

    try:
        report = await driver.run()
    except ConvergenceFailed as e:
        print(e.deferred)
"""


class DirectusSyncError(Exception):
    """Base class for all directus-sync errors."""

    pass


class ConfigError(DirectusSyncError):
    """Raised when the configuration file or environment is invalid."""

    pass


class MalformedDumpError(DirectusSyncError):
    """Raised when a dump file cannot be parsed or has the wrong shape."""

    def __init__(self, path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Malformed dump file {self.path}: {reason}")


class DependencyUnresolved(DirectusSyncError):
    """A record references an identifier that does not exist yet.

    Only used inside a collection restorer, where it is turned into a
    deferral. It never reaches the restore driver.
    """

    def __init__(self, collection: str, field: str, value) -> None:
        self.collection = collection
        self.field = field
        self.value = value
        super().__init__(f"{field} -> {collection}:{value} not found")


class RemoteError(DirectusSyncError):
    """Base class for failures reported by (or while reaching) the instance."""

    pass


class RemoteValidationError(RemoteError):
    """The instance rejected a request (4xx)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        prefix = f"{status_code}: " if status_code is not None else ""
        super().__init__(f"{prefix}{message}")


class RemoteConnectivityError(RemoteError):
    """Transport failure, timeout or server error (5xx) after retries."""

    pass


class ConvergenceFailed(DirectusSyncError):
    """The restore loop stopped with records still deferred."""

    def __init__(self, deferred: list[str], passes: int) -> None:
        self.deferred = deferred
        self.passes = passes
        shown = ", ".join(deferred[:10])
        if len(deferred) > 10:
            shown += f", ... ({len(deferred) - 10} more)"
        super().__init__(
            f"Restore did not converge after {passes} pass"
            f"{'es' if passes != 1 else ''}; "
            f"{len(deferred)} record(s) still deferred: {shown}"
        )
