"""Render aggregate audit results for people and machines."""

from __future__ import annotations

import json
import sys
from typing import Dict, List, Optional, Sequence, TextIO, Type

from .result import AggregateEntry, FileAuditResult


class SimpleStdoutResults:
    """Human-readable report, one block per template."""

    def render(self, aggregate_results: Sequence[AggregateEntry], stream: Optional[TextIO] = None) -> None:
        stream = stream or sys.stdout
        for entry in aggregate_results:
            print("-" * 60, file=stream)
            print(entry.filename, file=stream)
            print("-" * 60, file=stream)
            for line in self._violation_lines(entry.file_results):
                print(line, file=stream)
            print("", file=stream)
            print(f"Failures count: {entry.file_results.failure_count}", file=stream)
            print(f"Warnings count: {entry.file_results.warning_count}", file=stream)

    def _violation_lines(self, results: FileAuditResult) -> List[str]:
        lines: List[str] = []
        for violation in results.violations:
            lines.append("| " + violation.kind.value)
            lines.append("|")
            if violation.logical_resource_ids:
                lines.append(f"| Resources: {list(violation.logical_resource_ids)}")
                lines.append("|")
            lines.append(f"| {violation.id} {violation.message}")
            lines.append("")
        return lines


class JsonResults:
    """Indented JSON array of ``{filename, file_results}`` records."""

    def render(self, aggregate_results: Sequence[AggregateEntry], stream: Optional[TextIO] = None) -> None:
        stream = stream or sys.stdout
        payload = json.dumps([entry.to_dict() for entry in aggregate_results], indent=2)
        print(payload, file=stream)


RENDERERS: Dict[str, Type] = {
    "txt": SimpleStdoutResults,
    "json": JsonResults,
}


def register_renderer(output_format: str, renderer: Type) -> None:
    RENDERERS[output_format] = renderer


def results_renderer(output_format: str):
    try:
        return RENDERERS[output_format]()
    except KeyError:
        raise ValueError(
            f"Unknown output format {output_format!r}; expected one of {sorted(RENDERERS)}"
        ) from None
