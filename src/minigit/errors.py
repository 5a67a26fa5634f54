"""Error taxonomy for the minigit object store.

Every failure carries the operation and the path, digest or header text it
concerns, so callers can log or display it without further context.
"""

from pathlib import Path


class StoreError(Exception):
    """Base class for all object store failures."""

    def __init__(self, message: str, target: object = None) -> None:
        super().__init__(message if target is None else f"{message}: {target}")
        self.message = message
        self.target = target


class IoFailure(StoreError):
    """An OS-level open/create/rename/read/write failed."""

    def __init__(self, operation: str, path: Path | str, error: OSError | None = None) -> None:
        message = f"{operation} failed"
        if error is not None and error.strerror:
            message = f"{message} ({error.strerror})"
        super().__init__(message, path)
        self.operation = operation
        self.path = Path(path)


class NotFound(StoreError):
    """No record exists on disk for the requested digest."""

    def __init__(self, digest: str, reason: str = "object not found") -> None:
        super().__init__(reason, digest)
        self.digest = digest


class MalformedHeader(StoreError):
    """Header text does not match ``"<name> <digits>\\0"``."""


class UnknownKind(StoreError):
    """Header names a kind outside ``blob``/``tree``/``commit``."""


class CorruptStream(StoreError):
    """The compressed record could not be decompressed."""


class SizeMismatch(StoreError):
    """A payload produced a different number of bytes than it declared."""

    def __init__(self, expected: int, actual: int, target: object = None) -> None:
        super().__init__(f"expected {expected} bytes, got {actual}", target)
        self.expected = expected
        self.actual = actual


class MalformedTree(StoreError):
    """A tree payload does not decode into ``<mode> <name>\\0<digest>`` entries."""
