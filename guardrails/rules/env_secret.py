"""Detect hardcoded secrets in Lambda environment variables."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from guardrails.parser import TemplateModel
from guardrails.violation import Violation, ViolationKind

from . import LAMBDA_FUNCTION_TYPES, Rule, violations_for

KEY_PATTERN = re.compile(r"(?i)(secret|token|api[_-]?key|password|passwd|access[_-]?key|private|credential|auth)")
LONG_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_\-]{24,}")
AWS_ACCESS_KEY_PATTERN = re.compile(r"(?:A3T|AKIA|ASIA)[0-9A-Z]{16}")
JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_\-]+?\.[A-Za-z0-9_\-]+?\.[A-Za-z0-9_\-]+")
PLACEHOLDER_HINTS = ("dummy", "example", "placeholder", "sample", "changeme")
DYNAMIC_REFERENCE_PREFIX = "{{resolve:"


def looks_like_secret(name: str, value: str) -> bool:
    """Decide whether a literal environment value is a credential."""

    if value.startswith(DYNAMIC_REFERENCE_PREFIX):
        return False
    lowered = value.lower()
    if any(hint in lowered for hint in PLACEHOLDER_HINTS):
        return False
    if AWS_ACCESS_KEY_PATTERN.search(value) or JWT_PATTERN.search(value):
        return True
    return bool(KEY_PATTERN.search(name) and LONG_TOKEN_PATTERN.search(value))


class EnvSecretRule:
    """Flag Lambda functions that carry credentials as literal environment values."""

    rule_id = "ENV001"
    rule_type = ViolationKind.FAILING
    rule_text = (
        "Lambda environment variable holds a hardcoded secret; reference Secrets Manager "
        "or SSM Parameter Store instead"
    )

    def audit(self, model: TemplateModel) -> List[Violation]:
        offenders: List[str] = []
        for logical_id, resource in model.resources_by_type(*LAMBDA_FUNCTION_TYPES):
            for name, value in self._environment(model, resource).items():
                if looks_like_secret(name, value):
                    offenders.append(logical_id)
                    break
        return violations_for(self, offenders)

    def _environment(self, model: TemplateModel, resource: Dict[str, Any]) -> Dict[str, str]:
        props = resource.get("Properties") or {}
        environment = props.get("Environment") or {}
        variables = environment.get("Variables") if isinstance(environment, dict) else None
        if not isinstance(variables, dict):
            return {}
        literals: Dict[str, str] = {}
        for name, value in variables.items():
            # a parameter Ref counts when the parameter itself carries a literal value
            resolved = model.resolve(value)
            if isinstance(resolved, str):
                literals[str(name)] = resolved
        return literals


def get_rule() -> Rule:
    return EnvSecretRule()
