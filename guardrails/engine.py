"""Audit templates: parse, run rules, filter, aggregate and render."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, TextIO

import structlog

from .config import EngineConfig
from .discovery import DEFAULT_TEMPLATE_PATTERN, TemplateDiscovery
from .errors import ParameterParseError, RuleExecutionError, TemplateParseError
from .filtering import filter_violations
from .parser import TemplateParser
from .render import results_renderer
from .result import AggregateEntry, FileAuditResult, total_failure_count
from .rules.loader import RuleSet
from .violation import Violation, fatal_violation

logger = structlog.wrap_logger(logging.getLogger(__name__))


class GuardrailsEngine:
    """Run the loaded rule set against one template or a tree of templates.

    Rules, profile and blacklist are fixed at construction and shared
    read-only by every audit call, so audits may run concurrently.
    """

    def __init__(self, config: Optional[EngineConfig] = None, rule_set: Optional[RuleSet] = None) -> None:
        self.config = config or EngineConfig()
        if rule_set is None:
            rule_set = RuleSet.load(
                rule_directory=self.config.rule_directory,
                allow_suppression=self.config.allow_suppression,
                print_suppression=self.config.print_suppression,
                isolate_custom_rule_exceptions=self.config.isolate_custom_rule_exceptions,
            )
        self.rule_set = rule_set
        self._parser = TemplateParser()

    # ------------------------------------------------------------------
    # Aggregate entry points
    # ------------------------------------------------------------------
    def audit_aggregate_across_files_and_render_results(
        self,
        input_path: str,
        output_format: str = "txt",
        parameter_values_path: Optional[str] = None,
        template_pattern: str = DEFAULT_TEMPLATE_PATTERN,
        fail_on_warnings: bool = False,
        stream: Optional[TextIO] = None,
    ) -> int:
        """Audit ``input_path``, render the results and return the total failure count."""

        renderer = results_renderer(output_format)
        aggregate_results = self.audit_aggregate_across_files(
            input_path,
            parameter_values_path=parameter_values_path,
            template_pattern=template_pattern,
        )
        renderer.render(aggregate_results, stream=stream)
        return total_failure_count(aggregate_results, fail_on_warnings=fail_on_warnings)

    def audit_aggregate_across_files(
        self,
        input_path: str,
        parameter_values_path: Optional[str] = None,
        template_pattern: str = DEFAULT_TEMPLATE_PATTERN,
    ) -> List[AggregateEntry]:
        parameter_values_string = None
        if parameter_values_path is not None:
            parameter_values_string = Path(parameter_values_path).read_text(encoding="utf-8")

        templates = TemplateDiscovery().discover_templates(input_path, template_pattern)
        logger.debug("templates_discovered", input_path=input_path, count=len(templates))

        def audit_file(template: Path) -> AggregateEntry:
            return AggregateEntry(
                filename=str(template),
                file_results=self._audit_file(template, parameter_values_string),
            )

        if self.config.max_workers > 1 and len(templates) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                # map() yields in submission order, which is discovery order
                return list(pool.map(audit_file, templates))
        return [audit_file(template) for template in templates]

    def _audit_file(self, template: Path, parameter_values_string: Optional[str]) -> FileAuditResult:
        try:
            cloudformation_string = template.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("template_read_failed", filename=str(template), error=str(exc))
            return FileAuditResult([fatal_violation(f"Unable to read {template}: {exc}")])
        try:
            return self.audit(cloudformation_string, parameter_values_string)
        except RuleExecutionError as exc:
            logger.error("rule_execution_failed", filename=str(template), rule_id=exc.rule_id, error=str(exc.error))
            return FileAuditResult([fatal_violation(str(exc))])

    # ------------------------------------------------------------------
    # Single template
    # ------------------------------------------------------------------
    def audit(self, cloudformation_string: str, parameter_values_string: Optional[str] = None) -> FileAuditResult:
        """Run every rule against one template.

        Template and parameter parse errors, and filter misconfiguration, each
        become a single FATAL violation. A rule error escapes as
        :class:`RuleExecutionError` unless the rule set isolates rule exceptions.
        """

        violations: List[Violation] = []
        try:
            model = self._parser.parse(cloudformation_string, parameter_values_string)
        except TemplateParseError as exc:
            logger.info("template_parse_failed", error=str(exc))
            violations.append(fatal_violation(str(exc)))
            return FileAuditResult(violations)
        except ParameterParseError as exc:
            logger.info("parameter_values_parse_failed", error=str(exc))
            violations.append(fatal_violation(f"JSON Parameter values parse error: {exc}"))
            return FileAuditResult(violations)

        violations.extend(self.rule_set.execute(model))
        return FileAuditResult(self._filter(violations))

    def _filter(self, violations: List[Violation]) -> List[Violation]:
        try:
            return filter_violations(
                violations,
                self.config.profile_definition,
                self.config.blacklist_definition,
                self.rule_set.rule_definitions,
            )
        except Exception as exc:
            # fail open: keep the unfiltered findings and flag the misconfiguration
            logger.error("filter_configuration_failed", error=str(exc))
            return [*violations, fatal_violation(str(exc))]
