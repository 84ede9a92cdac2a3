import pytest

from guardrails.config import EngineConfig
from guardrails.engine import GuardrailsEngine
from guardrails.errors import RuleExecutionError
from guardrails.rules import violations_for
from guardrails.rules.loader import RuleSet
from guardrails.violation import ViolationKind

TEMPLATE = """
Resources:
  DataBucket:
    Type: AWS::S3::Bucket
    Properties:
      BucketName: data
"""


class MissingEncryptionRule:
    rule_id = "W1"
    rule_type = ViolationKind.FAILING
    rule_text = "S3 bucket is missing an encryption setting"

    def audit(self, model):
        return violations_for(
            self,
            [
                logical_id
                for logical_id, resource in model.resources_by_type("AWS::S3::Bucket")
                if "BucketEncryption" not in (resource.get("Properties") or {})
            ],
        )


class NoOpRule:
    rule_id = "W2"
    rule_type = ViolationKind.WARNING
    rule_text = "never fires"

    def audit(self, model):
        return []


class ExplodingRule:
    rule_id = "X1"
    rule_type = ViolationKind.FAILING
    rule_text = "raises"

    def audit(self, model):
        raise ValueError("unexpected structure")


def engine(profile=None, blacklist=None, rules=None, isolate=False):
    config = EngineConfig(profile_definition=profile, blacklist_definition=blacklist)
    rule_set = RuleSet(rules or [MissingEncryptionRule(), NoOpRule()], isolate_custom_rule_exceptions=isolate)
    return GuardrailsEngine(config, rule_set=rule_set)


def test_unfiltered_failure_is_reported():
    result = engine().audit(TEMPLATE)

    assert result.failure_count == 1
    assert [(v.id, v.kind) for v in result.violations] == [("W1", ViolationKind.FAILING)]
    assert result.to_dict()["violations"][0]["kind"] == "FAILING"


def test_blacklisted_rule_is_suppressed():
    result = engine(blacklist="RulesToSuppress:\n  - id: W1\n    reason: accepted\n").audit(TEMPLATE)

    assert result.failure_count == 0
    assert result.violations == []


def test_profile_without_rule_suppresses_it():
    result = engine(profile="W2\n").audit(TEMPLATE)

    assert result.failure_count == 0
    assert result.violations == []


def test_blacklist_beats_profile_allowing_the_same_rule():
    result = engine(profile="W1\n", blacklist="RulesToSuppress:\n  - id: W1\n").audit(TEMPLATE)

    assert result.violations == []


@pytest.mark.parametrize("document", ["Resources: [unclosed", '{"Resources": {', "", "- a\n- b\n"])
def test_unparseable_template_yields_single_fatal(document):
    result = engine().audit(document)

    assert result.failure_count == 1
    assert len(result.violations) == 1
    assert result.violations[0].id == "FATAL"
    assert result.violations[0].kind is ViolationKind.FAILING


def test_fatal_message_carries_parser_error():
    result = engine().audit("Description: no resources here\n")

    assert "no Resources" in result.violations[0].message


def test_bad_parameter_values_yield_single_fatal():
    result = engine().audit(TEMPLATE, "{oops")

    assert [v.id for v in result.violations] == ["FATAL"]
    assert result.violations[0].message.startswith("JSON Parameter values parse error:")


def test_filter_misconfiguration_fails_open_with_fatal():
    result = engine(profile="NOT_A_RULE\n").audit(TEMPLATE)

    assert [v.id for v in result.violations] == ["W1", "FATAL"]
    assert result.failure_count == 2
    assert "NOT_A_RULE is not a legal rule identifier" in result.violations[1].message


def test_malformed_blacklist_keeps_unfiltered_violations():
    result = engine(profile="W2\n", blacklist="RulesToSuppress: nope").audit(TEMPLATE)

    # the profile result is discarded too: the whole filter stage fails open
    assert [v.id for v in result.violations] == ["W1", "FATAL"]


def test_rule_exception_isolated_when_configured():
    result = engine(rules=[ExplodingRule(), MissingEncryptionRule()], isolate=True).audit(TEMPLATE)

    assert [v.id for v in result.violations] == ["X1", "W1"]
    assert "unexpected structure" in result.violations[0].message
    assert result.failure_count == 2


def test_rule_exception_propagates_by_default():
    with pytest.raises(RuleExecutionError):
        engine(rules=[ExplodingRule()]).audit(TEMPLATE)


def test_audit_does_not_mutate_shared_configuration():
    audited = engine(profile="W1\n")
    before = (audited.config, audited.rule_set.rule_definitions)

    audited.audit(TEMPLATE)
    audited.audit("not: [valid")

    assert (audited.config, audited.rule_set.rule_definitions) == before


def test_default_engine_runs_builtin_rules():
    result = GuardrailsEngine().audit(TEMPLATE)

    assert [v.id for v in result.violations] == ["S3001"]
    assert result.violations[0].logical_resource_ids == ("DataBucket",)


class StringKindRule(MissingEncryptionRule):
    rule_id = "C1"
    rule_type = "FAILING"


def test_rule_declaring_kind_as_string_is_counted():
    result = engine(rules=[StringKindRule()]).audit(TEMPLATE)

    assert [v.id for v in result.violations] == ["C1"]
    assert result.violations[0].kind is ViolationKind.FAILING
    assert result.failure_count == 1
