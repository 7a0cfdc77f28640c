"""Capability enum and CapabilitySet."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from dataset_tree._errors import CapabilityNotSupported, ReadOnlyViolation

if TYPE_CHECKING:
    from collections.abc import Iterator


class Capability(enum.Enum):
    """Operations a storage root may support."""

    READ = "read"
    LIST = "list"
    METADATA = "metadata"
    WRITE = "write"
    MKDIR = "mkdir"
    DELETE = "delete"
    MOVE = "move"
    ADOPT = "adopt"


MUTATING_CAPABILITIES = frozenset(
    {Capability.WRITE, Capability.MKDIR, Capability.DELETE, Capability.MOVE, Capability.ADOPT}
)

READ_ONLY_CAPABILITIES = frozenset({Capability.READ, Capability.LIST, Capability.METADATA})


class CapabilitySet:
    """Immutable set of capabilities declared by a root.

    :param capabilities: The set of supported capabilities.
    """

    __slots__ = ("_caps",)
    _caps: frozenset[Capability]

    def __init__(self, capabilities: set[Capability] | frozenset[Capability]) -> None:
        object.__setattr__(self, "_caps", frozenset(capabilities))

    def supports(self, cap: Capability) -> bool:
        """Check whether a capability is supported."""
        return cap in self._caps

    @property
    def writable(self) -> bool:
        """``True`` if any mutating capability is supported."""
        return bool(self._caps & MUTATING_CAPABILITIES)

    def require(self, cap: Capability, *, driver: str = "", path: str | None = None) -> None:
        """Raise if a capability is not supported.

        :raises ReadOnlyViolation: If a mutating capability is missing from a
            root that supports no mutation at all.
        :raises CapabilityNotSupported: If any other capability is missing.
        """
        if cap in self._caps:
            return
        if cap in MUTATING_CAPABILITIES and not self.writable:
            raise ReadOnlyViolation(
                f"Cannot {cap.value}: storage is read-only",
                capability=cap.value,
                driver=driver or None,
                path=path,
            )
        raise CapabilityNotSupported(
            f"Capability '{cap.value}' is not supported",
            capability=cap.value,
            driver=driver or None,
            path=path,
        )

    def __contains__(self, cap: object) -> bool:
        return cap in self._caps

    def __iter__(self) -> Iterator[Capability]:
        return iter(self._caps)

    def __len__(self) -> int:
        return len(self._caps)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CapabilitySet):
            return self._caps == other._caps
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._caps)

    def __repr__(self) -> str:
        names = sorted(c.name for c in self._caps)
        return f"CapabilitySet({{{', '.join(names)}}})"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("CapabilitySet is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("CapabilitySet is immutable")
