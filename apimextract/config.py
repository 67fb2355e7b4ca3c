"""
Extraction settings, from CLI options and/or an extractor config file.
"""
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml

from apimextract.errors import ExtractionError, MissingParameter

# Config-file keys are camelCase, like the parameter names in error messages.
_FILE_KEYS = {
    "sourceApimName": "source_apim_name",
    "destinationApimName": "destination_apim_name",
    "resourceGroup": "resource_group",
    "fileFolder": "file_folder",
    "apiName": "api_name",
    "linkedTemplatesBaseUrl": "linked_templates_base_url",
    "linkedTemplatesUrlQueryString": "linked_templates_url_query_string",
    "policyXMLBaseUrl": "policy_xml_base_url",
    "subscriptionId": "subscription_id",
    "maxWorkers": "max_workers",
    "maxRetries": "max_retries",
    "timeout": "timeout",
}

_REQUIRED = (
    ("source_apim_name", "sourceApimName"),
    ("destination_apim_name", "destinationApimName"),
    ("resource_group", "resourceGroup"),
    ("file_folder", "fileFolder"),
)
_NUMERIC = (
    ("max_workers", "maxWorkers", int),
    ("max_retries", "maxRetries", int),
    ("timeout", "timeout", float),
)


@dataclass
class ExtractorConfig:
    source_apim_name: Optional[str] = None
    destination_apim_name: Optional[str] = None
    resource_group: Optional[str] = None
    file_folder: Optional[str] = None
    api_name: Optional[str] = None
    linked_templates_base_url: Optional[str] = None
    linked_templates_url_query_string: Optional[str] = None
    policy_xml_base_url: Optional[str] = None
    subscription_id: Optional[str] = None
    max_workers: int = 4
    max_retries: int = 5
    timeout: float = 60.0

    @property
    def scoped(self) -> bool:
        return bool(self.api_name)

    @property
    def linked(self) -> bool:
        return bool(self.linked_templates_base_url)

    @classmethod
    def from_file(cls, path: str) -> "ExtractorConfig":
        """Load a YAML or JSON extractor config file."""
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ExtractionError(f"cannot read config file {path}: {exc}", stage="configuration")
        if not isinstance(data, dict):
            raise ExtractionError(f"config file {path} must contain a mapping", stage="configuration")

        unknown = sorted(k for k in data if k not in _FILE_KEYS)
        if unknown:
            raise ExtractionError(
                f"unknown keys in {path}: {', '.join(unknown)}", stage="configuration"
            )
        return cls(**{_FILE_KEYS[k]: v for k, v in data.items() if v is not None})

    def merged(self, overrides: Dict[str, Any]) -> "ExtractorConfig":
        """Return a copy with every non-None override applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ExtractorConfig(**values)

    def validate(self) -> None:
        for attr, name in _REQUIRED:
            value = getattr(self, attr)
            if value is None or not str(value).strip():
                raise MissingParameter(name)
        if self.linked_templates_url_query_string and not self.linked_templates_base_url:
            raise MissingParameter("linkedTemplatesBaseUrl")
        for attr, name, convert in _NUMERIC:
            value = getattr(self, attr)
            try:
                setattr(self, attr, convert(value))
            except (TypeError, ValueError):
                raise ExtractionError(f"{name} must be a number, got {value!r}", stage="configuration")
        if self.max_workers < 1:
            raise ExtractionError("maxWorkers must be at least 1", stage="configuration")
