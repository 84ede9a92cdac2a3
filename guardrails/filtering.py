"""Profile (allow-list) and blacklist (deny-list) filtering of violations.

The two stages are separate pure functions applied in a fixed order: the
profile first, then the blacklist, so a rule id named by both always ends up
suppressed. Definitions arrive as text and are parsed on every call; any
structural problem raises :class:`FilterConfigurationError`.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Set

import yaml

from .errors import FilterConfigurationError
from .rules import RuleDefinition
from .violation import Violation


def parse_profile(profile_definition: str, rule_definitions: Mapping[str, RuleDefinition]) -> Set[str]:
    """Return the rule ids allowed by a one-id-per-line profile."""

    if not profile_definition.strip():
        raise FilterConfigurationError("Empty profile")

    rule_ids: Set[str] = set()
    for line in profile_definition.splitlines():
        rule_id = line.split("#", 1)[0].strip()
        if not rule_id:
            continue
        _check_rule_id(rule_id, rule_definitions)
        rule_ids.add(rule_id)
    return rule_ids


def parse_blacklist(blacklist_definition: str, rule_definitions: Mapping[str, RuleDefinition]) -> Set[str]:
    """Return the rule ids named under ``RulesToSuppress`` in a YAML/JSON blacklist."""

    if not blacklist_definition.strip():
        raise FilterConfigurationError("Empty blacklist")

    try:
        document = yaml.safe_load(blacklist_definition)
    except yaml.YAMLError as exc:
        raise FilterConfigurationError(f"Blacklist is not valid YAML: {exc}") from exc

    if not isinstance(document, dict) or not isinstance(document.get("RulesToSuppress"), list):
        raise FilterConfigurationError("Blacklist must be a mapping with a RulesToSuppress list")

    rule_ids: Set[str] = set()
    for entry in document["RulesToSuppress"]:
        if not isinstance(entry, dict) or not entry.get("id"):
            raise FilterConfigurationError(f"Blacklist entry {entry!r} is missing an id")
        rule_id = str(entry["id"])
        _check_rule_id(rule_id, rule_definitions)
        rule_ids.add(rule_id)
    return rule_ids


def _check_rule_id(rule_id: str, rule_definitions: Mapping[str, RuleDefinition]) -> None:
    if rule_id not in rule_definitions:
        raise FilterConfigurationError(
            f"{rule_id} is not a legal rule identifier from: {sorted(rule_definitions)}"
        )


def filter_by_profile(
    violations: Iterable[Violation],
    profile_definition: Optional[str],
    rule_definitions: Mapping[str, RuleDefinition],
) -> List[Violation]:
    if profile_definition is None:
        return list(violations)
    allowed = parse_profile(profile_definition, rule_definitions)
    return [violation for violation in violations if violation.id in allowed]


def filter_by_blacklist(
    violations: Iterable[Violation],
    blacklist_definition: Optional[str],
    rule_definitions: Mapping[str, RuleDefinition],
) -> List[Violation]:
    if blacklist_definition is None:
        return list(violations)
    denied = parse_blacklist(blacklist_definition, rule_definitions)
    return [violation for violation in violations if violation.id not in denied]


def filter_violations(
    violations: Iterable[Violation],
    profile_definition: Optional[str],
    blacklist_definition: Optional[str],
    rule_definitions: Mapping[str, RuleDefinition],
) -> List[Violation]:
    violations = filter_by_profile(violations, profile_definition, rule_definitions)
    # must come after the profile: the blacklist always wins
    return filter_by_blacklist(violations, blacklist_definition, rule_definitions)
