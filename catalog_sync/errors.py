class CatalogSyncError(Exception):
    """Base class for every fatal error of a generation or reconciliation run."""


class ConfigurationError(CatalogSyncError, ValueError):
    """A required setting is missing or invalid."""


class SourceReadError(CatalogSyncError):
    """The CSV snapshot is missing, unreadable or holds a malformed row."""

    def __init__(self, message: str, path: str | None = None, line: int | None = None):
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}:{line}: " if line is not None else f"{path}: "
        super().__init__(f"{location}{message}")


class StoreWriteError(CatalogSyncError):
    """An upsert, insert or delete call against the store failed."""


class StoreReadError(CatalogSyncError):
    """A count, identifier fetch or listing call against the store failed."""
