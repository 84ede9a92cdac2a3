"""Load rules once and run them against parsed templates."""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from guardrails.errors import RuleExecutionError, RuleLoadError
from guardrails.parser import TemplateModel
from guardrails.violation import Violation, ViolationKind

from . import Rule, RuleDefinition, encryption, env_secret, iam, vpc_egress

logger = structlog.wrap_logger(logging.getLogger(__name__))

CUSTOM_RULE_GLOB = "*_rule.py"


def builtin_rules() -> List[Rule]:
    return [
        *iam.get_rules(),
        env_secret.get_rule(),
        *vpc_egress.get_rules(),
        encryption.get_rule(),
    ]


def load_custom_rules(rule_directory: Path) -> List[Rule]:
    """Import every ``*_rule.py`` module in ``rule_directory`` and collect its ``get_rule()``."""

    if not rule_directory.is_dir():
        raise RuleLoadError(f"Rule directory {rule_directory} does not exist")

    rules: List[Rule] = []
    for path in sorted(rule_directory.glob(CUSTOM_RULE_GLOB)):
        module = _import_rule_module(path)
        factory = getattr(module, "get_rule", None)
        if not callable(factory):
            raise RuleLoadError(f"{path} does not define get_rule()")
        rule = factory()
        if not isinstance(getattr(rule, "rule_id", None), str) or not callable(getattr(rule, "audit", None)):
            raise RuleLoadError(f"{path}: get_rule() must return an object with rule_id and audit(model)")
        logger.debug("custom_rule_loaded", rule_id=rule.rule_id, path=str(path))
        rules.append(rule)
    return rules


def _import_rule_module(path: Path) -> ModuleType:
    module_name = f"guardrails_custom_rule_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise RuleLoadError(f"Cannot import custom rule {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise RuleLoadError(f"Failed to import custom rule {path}: {exc}") from exc
    return module


class RuleSet:
    """An ordered, read-only collection of rules plus the policy used to execute them."""

    def __init__(
        self,
        rules: Sequence[Rule],
        allow_suppression: bool = True,
        print_suppression: bool = False,
        isolate_custom_rule_exceptions: bool = False,
    ) -> None:
        self._rules = tuple(rules)
        self.allow_suppression = allow_suppression
        self.print_suppression = print_suppression
        self.isolate_custom_rule_exceptions = isolate_custom_rule_exceptions

        definitions: Dict[str, RuleDefinition] = {}
        for rule in self._rules:
            if rule.rule_id in definitions:
                raise RuleLoadError(f"Duplicate rule id {rule.rule_id}")
            definitions[rule.rule_id] = RuleDefinition.from_rule(rule)
        self._definitions = definitions

    @classmethod
    def load(
        cls,
        rule_directory: Optional[str] = None,
        include_builtin: bool = True,
        **options: bool,
    ) -> "RuleSet":
        rules: List[Rule] = builtin_rules() if include_builtin else []
        if rule_directory:
            rules.extend(load_custom_rules(Path(rule_directory)))
        rule_set = cls(rules, **options)
        logger.debug("rule_set_loaded", rule_count=len(rule_set))
        return rule_set

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rule_definitions(self) -> Dict[str, RuleDefinition]:
        return dict(self._definitions)

    def execute(self, model: TemplateModel) -> List[Violation]:
        """Run every rule against ``model`` in load order."""

        violations: List[Violation] = []
        for rule in self._rules:
            try:
                found = list(rule.audit(model))
            except Exception as exc:
                if not self.isolate_custom_rule_exceptions:
                    raise RuleExecutionError(rule.rule_id, exc) from exc
                logger.warning("rule_exception_isolated", rule_id=rule.rule_id, error=str(exc))
                found = [
                    Violation(
                        id=rule.rule_id,
                        kind=ViolationKind.FAILING,
                        message=f"{rule.rule_id} raised an unexpected error: {exc}",
                    )
                ]
            violations.extend(found)

        if self.allow_suppression:
            violations = self._apply_metadata_suppression(model, violations)
        return violations

    def _apply_metadata_suppression(self, model: TemplateModel, violations: Iterable[Violation]) -> List[Violation]:
        kept: List[Violation] = []
        for violation in violations:
            if not violation.logical_resource_ids:
                kept.append(violation)
                continue
            suppressed = [
                logical_id
                for logical_id in violation.logical_resource_ids
                if self._is_suppressed(model, violation.id, logical_id)
            ]
            if not suppressed:
                kept.append(violation)
                continue
            remaining = violation.without_resources(suppressed)
            if remaining.logical_resource_ids:
                kept.append(remaining)
        return kept

    def _is_suppressed(self, model: TemplateModel, rule_id: str, logical_id: str) -> bool:
        suppressions = model.suppressed_rule_ids(logical_id)
        if rule_id not in suppressions:
            return False
        reason = suppressions[rule_id]
        if reason is None:
            logger.warning("rule_suppressed_without_reason", rule_id=rule_id, resource=logical_id)
        elif self.print_suppression:
            logger.info("rule_suppressed", rule_id=rule_id, resource=logical_id, reason=reason)
        return True
