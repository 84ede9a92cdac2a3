"""Turn template text into a :class:`TemplateModel`."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Set, Tuple

import structlog
import yaml

from .errors import ParameterParseError, TemplateParseError

logger = structlog.wrap_logger(logging.getLogger(__name__))

SUPPRESSION_METADATA_KEY = "guardrails"


class CloudFormationLoader(yaml.SafeLoader):
    """YAML loader that expands CloudFormation short-form intrinsic tags."""


def _construct_intrinsic(loader: CloudFormationLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if tag_suffix == "Ref":
        key = "Ref"
    elif tag_suffix == "Condition":
        key = "Condition"
    else:
        key = f"Fn::{tag_suffix}"

    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
        if key == "Fn::GetAtt" and isinstance(value, str):
            value = value.split(".", 1)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)
    return {key: value}


CloudFormationLoader.add_multi_constructor("!", _construct_intrinsic)


@dataclass
class TemplateModel:
    """The parts of a template that rules inspect."""

    raw: Dict[str, Any]
    resources: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    parameters: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    parameter_values: Dict[str, Any] = field(default_factory=dict)

    def resources_by_type(self, *resource_types: str) -> Iterator[Tuple[str, Dict[str, Any]]]:
        for logical_id, resource in self.resources.items():
            if resource.get("Type") in resource_types:
                yield logical_id, resource

    def parameter_value(self, name: str) -> Any:
        """Return the supplied value for a parameter, else its declared default."""

        if name in self.parameter_values:
            return self.parameter_values[name]
        return self.parameters.get(name, {}).get("Default")

    def resolve(self, value: Any) -> Any:
        """Resolve ``{"Ref": <parameter>}`` to the parameter value; anything else is returned as-is."""

        if isinstance(value, dict) and list(value) == ["Ref"]:
            name = value["Ref"]
            if isinstance(name, str) and name in self.parameters:
                return self.parameter_value(name)
        return value

    def suppressed_rule_ids(self, logical_id: str) -> Dict[str, Optional[str]]:
        """Map rule id -> reason for every suppression declared in a resource's metadata."""

        resource = self.resources.get(logical_id) or {}
        metadata = resource.get("Metadata") or {}
        section = metadata.get(SUPPRESSION_METADATA_KEY) if isinstance(metadata, dict) else None
        if not isinstance(section, dict):
            return {}
        entries = section.get("rules_to_suppress") or []
        suppressed: Dict[str, Optional[str]] = {}
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, dict) and entry.get("id"):
                reason = entry.get("reason")
                suppressed[str(entry["id"])] = str(reason) if reason else None
        return suppressed


class TemplateParser:
    """Parse JSON or YAML template text, optionally applying parameter values."""

    def parse(self, template_text: str, parameter_values_text: Optional[str] = None) -> TemplateModel:
        document = self._load_document(template_text)
        model = self._build_model(document)
        if parameter_values_text is not None:
            model.parameter_values = self._load_parameter_values(parameter_values_text, set(model.parameters))
        return model

    def _load_document(self, template_text: str) -> Dict[str, Any]:
        try:
            if template_text.lstrip().startswith("{"):
                document = json.loads(template_text)
            else:
                document = yaml.load(template_text, Loader=CloudFormationLoader)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise TemplateParseError(str(exc)) from exc
        except RecursionError as exc:
            raise TemplateParseError(f"Illegal cfn - template is nested too deeply: {exc}") from exc

        if not isinstance(document, dict):
            raise TemplateParseError("Illegal cfn - template is not a mapping")
        return document

    def _build_model(self, document: Dict[str, Any]) -> TemplateModel:
        resources = document.get("Resources")
        if not isinstance(resources, dict) or not resources:
            raise TemplateParseError("Illegal cfn - no Resources")
        for logical_id, resource in resources.items():
            if not isinstance(resource, dict) or "Type" not in resource:
                raise TemplateParseError(f"Illegal cfn - {logical_id} is missing Type")

        parameters = document.get("Parameters") or {}
        if not isinstance(parameters, dict):
            raise TemplateParseError("Illegal cfn - Parameters must be a mapping")
        for name, spec in parameters.items():
            if spec is not None and not isinstance(spec, dict):
                raise TemplateParseError(f"Illegal cfn - parameter {name} must be a mapping")

        return TemplateModel(
            raw=document,
            resources=resources,
            parameters={name: spec or {} for name, spec in parameters.items()},
        )

    def _load_parameter_values(self, parameter_values_text: str, declared: Set[str]) -> Dict[str, Any]:
        try:
            data = json.loads(parameter_values_text)
        except json.JSONDecodeError as exc:
            raise ParameterParseError(str(exc)) from exc

        if not isinstance(data, dict) or not isinstance(data.get("Parameters"), dict):
            raise ParameterParseError("document must be an object with a Parameters object")

        values: Dict[str, Any] = {}
        for name, value in data["Parameters"].items():
            if name not in declared:
                logger.debug("parameter_value_ignored", parameter=name)
                continue
            values[name] = value
        return values
