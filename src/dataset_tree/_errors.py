"""Normalized error hierarchy for dataset_tree."""

from __future__ import annotations

from typing import Optional


class DataSetsError(Exception):
    """Base class for all dataset_tree errors.

    :param message: Human-readable error description.
    :param path: The path involved in the error, if any.
    :param driver: The storage driver or root name involved, if any.
    """

    def __init__(self, message: str = "", *, path: Optional[str] = None, driver: Optional[str] = None) -> None:
        self.path = path
        self.driver = driver
        super().__init__(message)

    def _details(self) -> list[str]:
        parts = []
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.driver is not None:
            parts.append(f"driver={self.driver!r}")
        return parts

    def __str__(self) -> str:
        parts = [super().__str__(), *self._details()]
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.args[0] if self.args else ""), *self._details()]
        return f"{cls}({', '.join(args)})"


class NotFound(DataSetsError):
    """Raised when a requested dataset, path or driver does not exist."""


class AlreadyExists(DataSetsError):
    """Raised when creating something at a path that is already occupied."""


class InvalidPath(DataSetsError):
    """Raised for malformed path components."""


class InvalidConfiguration(DataSetsError):
    """Raised when a dataset descriptor or data document is malformed."""


class PermissionDenied(DataSetsError):
    """Raised when access is denied by the operating system."""


class AlreadyMoved(DataSetsError):
    """Raised when a temporary resource is used after its ownership was transferred."""


class CapabilityNotSupported(DataSetsError):
    """Raised when an operation requires an unsupported capability.

    :param capability: The name of the unsupported capability.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        driver: Optional[str] = None,
        capability: str = "",
    ) -> None:
        self.capability = capability
        super().__init__(message, path=path, driver=driver)

    def _details(self) -> list[str]:
        parts = super()._details()
        if self.capability:
            parts.append(f"capability={self.capability!r}")
        return parts


class ReadOnlyViolation(CapabilityNotSupported):
    """Raised when a mutation is attempted on a root that is not writable."""


class PartialFailure(DataSetsError):
    """Raised when an atomic replace could not be completed.

    :param rollback_succeeded: Whether the original destination content was restored.
    :param holding_area: Where the original content was left when rollback failed.
    :param original_error: The error raised while moving the new content into place.
    :param rollback_error: The error raised while restoring the original content, if any.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        driver: Optional[str] = None,
        rollback_succeeded: bool = True,
        holding_area: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        rollback_error: Optional[BaseException] = None,
    ) -> None:
        self.rollback_succeeded = rollback_succeeded
        self.holding_area = holding_area
        self.original_error = original_error
        self.rollback_error = rollback_error
        super().__init__(message, path=path, driver=driver)

    def _details(self) -> list[str]:
        parts = super()._details()
        parts.append(f"rollback_succeeded={self.rollback_succeeded!r}")
        if self.holding_area is not None:
            parts.append(f"holding_area={self.holding_area!r}")
        return parts


class DriverError(DataSetsError):
    """Raised when a storage driver fails while opening a dataset.

    :param dataset: Name of the dataset being opened.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        driver: Optional[str] = None,
        dataset: Optional[str] = None,
    ) -> None:
        self.dataset = dataset
        super().__init__(message, path=path, driver=driver)

    def _details(self) -> list[str]:
        parts = super()._details()
        if self.dataset is not None:
            parts.append(f"dataset={self.dataset!r}")
        return parts
