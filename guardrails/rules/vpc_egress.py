"""Detect risky Lambda VPC egress configurations."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from guardrails.parser import TemplateModel
from guardrails.violation import Violation, ViolationKind

from . import LAMBDA_FUNCTION_TYPES, Rule, ensure_list, normalize_reference, violations_for

CIDR_ANY = "0.0.0.0/0"
CIDR_ANY_V6 = "::/0"


def _vpc_config(resource: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    props = resource.get("Properties") or {}
    vpc_config = props.get("VpcConfig")
    if isinstance(vpc_config, dict):
        return vpc_config
    return None


def _security_group_ids(vpc_config: Dict[str, Any]) -> List[str]:
    coerced = [normalize_reference(item) for item in ensure_list(vpc_config.get("SecurityGroupIds"))]
    return [item for item in coerced if item]


class VpcMissingSecurityGroupRule:
    """A Lambda placed in a VPC should have an explicit security group."""

    rule_id = "VPC001"
    rule_type = ViolationKind.WARNING
    rule_text = "Lambda VpcConfig has no security group attached"

    def audit(self, model: TemplateModel) -> List[Violation]:
        offenders: List[str] = []
        for logical_id, resource in model.resources_by_type(*LAMBDA_FUNCTION_TYPES):
            vpc_config = _vpc_config(resource)
            if vpc_config is not None and not _security_group_ids(vpc_config):
                offenders.append(logical_id)
        return violations_for(self, offenders)


class VpcOpenEgressRule:
    """Security groups attached to a Lambda must not allow egress to every destination."""

    rule_id = "VPC002"
    rule_type = ViolationKind.FAILING
    rule_text = "Lambda security group allows unrestricted outbound access"

    def audit(self, model: TemplateModel) -> List[Violation]:
        open_groups = self._open_security_groups(model)
        offenders: List[str] = []
        for logical_id, resource in model.resources_by_type(*LAMBDA_FUNCTION_TYPES):
            vpc_config = _vpc_config(resource)
            if vpc_config is None:
                continue
            if any(group_id in open_groups for group_id in _security_group_ids(vpc_config)):
                offenders.append(logical_id)
        return violations_for(self, offenders)

    def _open_security_groups(self, model: TemplateModel) -> set:
        open_groups = set()
        for logical_id, resource in model.resources_by_type("AWS::EC2::SecurityGroup"):
            props = resource.get("Properties") or {}
            if "SecurityGroupEgress" not in props:
                # no egress list means the default allow-all rule applies
                open_groups.add(logical_id)
                continue
            for rule in ensure_list(props.get("SecurityGroupEgress")):
                if not isinstance(rule, dict):
                    continue
                cidr = str(model.resolve(rule.get("CidrIp", "")))
                cidr_v6 = str(model.resolve(rule.get("CidrIpv6", "")))
                if cidr == CIDR_ANY or cidr_v6 == CIDR_ANY_V6:
                    open_groups.add(logical_id)
                    break
        return open_groups


def get_rules() -> List[Rule]:
    return [VpcMissingSecurityGroupRule(), VpcOpenEgressRule()]
