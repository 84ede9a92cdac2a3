"""Rule protocol and shared helpers for rule authors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Protocol

from guardrails.parser import TemplateModel
from guardrails.violation import Violation, ViolationKind

LAMBDA_FUNCTION_TYPES = ("AWS::Serverless::Function", "AWS::Lambda::Function")


class Rule(Protocol):
    """Protocol implemented by every rule, built-in or custom."""

    rule_id: str
    rule_type: ViolationKind
    rule_text: str

    def audit(self, model: TemplateModel) -> List[Violation]:
        """Return the violations this rule finds in ``model``."""


@dataclass(frozen=True)
class RuleDefinition:
    """Describe a loaded rule without holding on to its implementation."""

    id: str
    type: ViolationKind
    message: str

    @classmethod
    def from_rule(cls, rule: Rule) -> "RuleDefinition":
        return cls(
            id=rule.rule_id,
            type=ViolationKind(getattr(rule, "rule_type", ViolationKind.FAILING)),
            message=getattr(rule, "rule_text", ""),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type.value, "message": self.message}


def violations_for(rule: Rule, logical_resource_ids: Iterable[str]) -> List[Violation]:
    """Wrap offending resource ids into a single violation (or none if empty)."""

    offenders = tuple(logical_resource_ids)
    if not offenders:
        return []
    return [
        Violation(
            id=rule.rule_id,
            kind=rule.rule_type,
            message=rule.rule_text,
            logical_resource_ids=offenders,
        )
    ]


def ensure_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def normalize_reference(value: Any) -> str | None:
    """Reduce a literal, ``Ref`` or ``Fn::GetAtt`` to a comparable string."""

    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if "Ref" in value and isinstance(value["Ref"], str):
            return value["Ref"]
        if "Fn::GetAtt" in value and isinstance(value["Fn::GetAtt"], list):
            return ".".join(str(part) for part in value["Fn::GetAtt"])
    return None
