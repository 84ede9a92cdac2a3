"""Per-file and aggregate audit results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .violation import Violation, count_failures, count_warnings


@dataclass
class FileAuditResult:
    """Violations found in one template; counts are always derived from the list."""

    violations: List[Violation] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return count_failures(self.violations)

    @property
    def warning_count(self) -> int:
        return count_warnings(self.violations)

    def to_dict(self) -> Dict[str, object]:
        return {
            "failure_count": self.failure_count,
            "violations": [violation.to_dict() for violation in self.violations],
        }


@dataclass
class AggregateEntry:
    """Bundle a template path with its audit result."""

    filename: str
    file_results: FileAuditResult

    def to_dict(self) -> Dict[str, object]:
        return {"filename": self.filename, "file_results": self.file_results.to_dict()}


def total_failure_count(aggregate_results: Sequence[AggregateEntry], fail_on_warnings: bool = False) -> int:
    """Sum failures across files; warnings count too when ``fail_on_warnings`` is set."""

    total = 0
    for entry in aggregate_results:
        total += entry.file_results.failure_count
        if fail_on_warnings:
            total += entry.file_results.warning_count
    return total
