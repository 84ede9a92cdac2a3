"""Template guardrails: audit infrastructure templates for security violations."""

import logging
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("template-guardrails")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

# silent until the application configures logging
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ["__version__"]
