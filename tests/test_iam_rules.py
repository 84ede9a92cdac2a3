from guardrails.parser import TemplateModel
from guardrails.rules.iam import IamWildcardActionRule, IamWildcardResourceRule


def model_with_statement(statement, resource_type="AWS::IAM::Role"):
    if resource_type == "AWS::IAM::Role":
        properties = {
            "Policies": [
                {
                    "PolicyName": "Inline",
                    "PolicyDocument": {"Statement": [statement]},
                }
            ]
        }
    elif resource_type == "AWS::Serverless::Function":
        properties = {"Policies": ["AWSLambdaBasicExecutionRole", {"Statement": statement}]}
    else:
        properties = {"PolicyDocument": {"Statement": statement}}
    return TemplateModel(raw={}, resources={"FunctionRole": {"Type": resource_type, "Properties": properties}})


def test_wildcard_action_is_failing():
    model = model_with_statement({"Effect": "Allow", "Action": "*", "Resource": "arn:aws:s3:::my-bucket/*"})

    violations = IamWildcardActionRule().audit(model)

    assert len(violations) == 1
    assert violations[0].id == "IAM001"
    assert violations[0].kind.value == "FAILING"
    assert violations[0].logical_resource_ids == ("FunctionRole",)


def test_security_critical_service_wildcard_is_failing():
    model = model_with_statement(
        {"Effect": "Allow", "Action": ["s3:GetObject", "IAM:*"], "Resource": "arn:aws:s3:::bucket/key"},
        resource_type="AWS::IAM::Policy",
    )

    assert [v.id for v in IamWildcardActionRule().audit(model)] == ["IAM001"]


def test_scoped_action_passes():
    model = model_with_statement({"Effect": "Allow", "Action": ["s3:GetObject"], "Resource": "*"})

    assert IamWildcardActionRule().audit(model) == []


def test_deny_statements_are_ignored():
    model = model_with_statement({"Effect": "Deny", "Action": "*", "Resource": "*"})

    assert IamWildcardActionRule().audit(model) == []
    assert IamWildcardResourceRule().audit(model) == []


def test_wildcard_resource_is_warning():
    model = model_with_statement({"Effect": "Allow", "Action": ["s3:GetObject"], "Resource": "*"})

    violations = IamWildcardResourceRule().audit(model)

    assert [(v.id, v.kind.value) for v in violations] == [("IAM002", "WARNING")]


def test_serverless_function_inline_policy_is_inspected():
    model = model_with_statement(
        {"Effect": "Allow", "Action": "kms:*", "Resource": "arn:aws:kms:*:123456789012:key/*"},
        resource_type="AWS::Serverless::Function",
    )

    assert [v.id for v in IamWildcardActionRule().audit(model)] == ["IAM001"]
    assert [v.id for v in IamWildcardResourceRule().audit(model)] == ["IAM002"]


def test_specific_resource_passes():
    model = model_with_statement(
        {"Effect": "Allow", "Action": "s3:PutObject", "Resource": "arn:aws:s3:::secure-bucket/sensitive-object"}
    )

    assert IamWildcardResourceRule().audit(model) == []
