"""Detect storage resources without encryption at rest."""

from __future__ import annotations

from typing import List

from guardrails.parser import TemplateModel
from guardrails.violation import Violation, ViolationKind

from . import Rule, violations_for


class S3BucketEncryptionRule:
    """S3 buckets must declare default server-side encryption."""

    rule_id = "S3001"
    rule_type = ViolationKind.FAILING
    rule_text = "S3 bucket does not declare BucketEncryption"

    def audit(self, model: TemplateModel) -> List[Violation]:
        offenders = [
            logical_id
            for logical_id, resource in model.resources_by_type("AWS::S3::Bucket")
            if not (resource.get("Properties") or {}).get("BucketEncryption")
        ]
        return violations_for(self, offenders)


def get_rule() -> Rule:
    return S3BucketEncryptionRule()
