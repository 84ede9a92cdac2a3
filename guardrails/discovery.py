"""Find template files beneath an input path."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List

from .errors import DiscoveryError

DEFAULT_TEMPLATE_PATTERN = r"..*\.json|..*\.yaml|..*\.yml|..*\.template"


class TemplateDiscovery:
    """Resolve a file or directory to the ordered list of templates to audit."""

    def discover_templates(self, input_path: str, template_pattern: str = DEFAULT_TEMPLATE_PATTERN) -> List[Path]:
        path = Path(input_path)
        if path.is_file():
            return [path]
        if not path.is_dir():
            raise DiscoveryError(f"{input_path} is not a file or directory")

        matcher = re.compile(template_pattern)
        return sorted(
            candidate
            for candidate in path.rglob("*")
            if candidate.is_file() and matcher.fullmatch(candidate.name)
        )
