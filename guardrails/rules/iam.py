"""Detect overly permissive IAM statements in SAM/CloudFormation templates."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterator, List

from guardrails.parser import TemplateModel
from guardrails.violation import Violation, ViolationKind

from . import Rule, ensure_list, violations_for

SECURITY_CRITICAL_PREFIXES = (
    "*",
    "iam:*",
    "kms:*",
    "sts:*",
    "organizations:*",
)
WILDCARD_RESOURCE_PATTERN = re.compile(r"[*]\Z|:.*[*]")
POLICY_RESOURCE_TYPES = ("AWS::IAM::Role", "AWS::IAM::Policy", "AWS::IAM::ManagedPolicy", "AWS::Serverless::Function")


def iter_allow_statements(model: TemplateModel) -> Iterator[tuple[str, Dict[str, Any]]]:
    """Yield ``(logical_id, statement)`` for every Allow statement attached to a policy-bearing resource."""

    for logical_id, resource in model.resources_by_type(*POLICY_RESOURCE_TYPES):
        props = resource.get("Properties") or {}
        for statement in _statements(resource["Type"], props):
            effect = str(statement.get("Effect", "Allow"))
            if effect.upper() == "ALLOW":
                yield logical_id, statement


def _statements(resource_type: str, props: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    if resource_type == "AWS::Serverless::Function":
        for policy in ensure_list(props.get("Policies")):
            # managed policy names and SAM policy templates are not analyzable here
            if isinstance(policy, dict):
                yield from _iter_statements(policy.get("Statement"))
    elif resource_type == "AWS::IAM::Role":
        for policy in ensure_list(props.get("Policies")):
            if isinstance(policy, dict):
                yield from _iter_statements((policy.get("PolicyDocument") or {}).get("Statement"))
    else:
        policy_doc = props.get("PolicyDocument") or {}
        if isinstance(policy_doc, dict):
            yield from _iter_statements(policy_doc.get("Statement"))


def _iter_statements(statements: Any) -> Iterator[Dict[str, Any]]:
    for statement in ensure_list(statements):
        if isinstance(statement, dict):
            yield statement


def _strings(value: Any) -> List[str]:
    return [str(item) for item in ensure_list(value)]


class IamWildcardActionRule:
    """IAM statements must not allow every action, or every action of a security-critical service."""

    rule_id = "IAM001"
    rule_type = ViolationKind.FAILING
    rule_text = "IAM policy statement allows a wildcard or security-critical action scope"

    def audit(self, model: TemplateModel) -> List[Violation]:
        offenders: List[str] = []
        for logical_id, statement in iter_allow_statements(model):
            actions = [action.lower() for action in _strings(statement.get("Action"))]
            if any(action in SECURITY_CRITICAL_PREFIXES for action in actions) and logical_id not in offenders:
                offenders.append(logical_id)
        return violations_for(self, offenders)


class IamWildcardResourceRule:
    """Allowed actions should be scoped to specific resources."""

    rule_id = "IAM002"
    rule_type = ViolationKind.WARNING
    rule_text = "IAM policy statement allows actions on a wildcard resource"

    def audit(self, model: TemplateModel) -> List[Violation]:
        offenders: List[str] = []
        for logical_id, statement in iter_allow_statements(model):
            if "Resource" not in statement:
                continue
            resources = _strings(statement.get("Resource"))
            if any(WILDCARD_RESOURCE_PATTERN.search(resource) for resource in resources):
                if logical_id not in offenders:
                    offenders.append(logical_id)
        return violations_for(self, offenders)


def get_rules() -> List[Rule]:
    return [IamWildcardActionRule(), IamWildcardResourceRule()]
