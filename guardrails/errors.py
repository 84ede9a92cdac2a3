"""Exception hierarchy for the audit engine."""

from __future__ import annotations


class GuardrailsError(Exception):
    """Base class for every error raised by the audit engine."""


class TemplateParseError(GuardrailsError):
    """The template text is not a usable JSON/YAML document."""


class ParameterParseError(GuardrailsError):
    """The parameter values text could not be parsed."""


class FilterConfigurationError(GuardrailsError):
    """A profile or blacklist definition is malformed."""


class RuleExecutionError(GuardrailsError):
    """A rule raised while auditing a template."""

    def __init__(self, rule_id: str, error: BaseException) -> None:
        super().__init__(f"{rule_id} raised {type(error).__name__}: {error}")
        self.rule_id = rule_id
        self.error = error


class RuleLoadError(GuardrailsError):
    """The rule set could not be assembled."""


class DiscoveryError(GuardrailsError):
    """The input path does not point at any file or directory."""
