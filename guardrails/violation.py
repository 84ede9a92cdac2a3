"""Violation records produced by rules and by the engine itself."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Sequence

FATAL_VIOLATION_ID = "FATAL"


class ViolationKind(str, Enum):
    """Enumerate how a violation affects the audit outcome."""

    FAILING = "FAILING"
    WARNING = "WARNING"


@dataclass(frozen=True)
class Violation:
    """A single finding attributed to a rule (or to the engine)."""

    id: str
    kind: ViolationKind
    message: str
    logical_resource_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # rules may declare their type as a plain string
        object.__setattr__(self, "kind", ViolationKind(self.kind))
        object.__setattr__(self, "logical_resource_ids", tuple(self.logical_resource_ids))

    @property
    def failing(self) -> bool:
        return self.kind is ViolationKind.FAILING

    def without_resources(self, logical_ids: Iterable[str]) -> "Violation":
        """Return a copy with ``logical_ids`` removed from the resource list."""

        dropped = set(logical_ids)
        remaining = tuple(rid for rid in self.logical_resource_ids if rid not in dropped)
        return Violation(self.id, self.kind, self.message, remaining)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "message": self.message,
            "logical_resource_ids": list(self.logical_resource_ids),
        }


def fatal_violation(message: str) -> Violation:
    return Violation(id=FATAL_VIOLATION_ID, kind=ViolationKind.FAILING, message=message)


def count_failures(violations: Sequence[Violation]) -> int:
    return sum(1 for violation in violations if violation.kind is ViolationKind.FAILING)


def count_warnings(violations: Sequence[Violation]) -> int:
    return sum(1 for violation in violations if violation.kind is ViolationKind.WARNING)
