"""
Policy documents: fetching, reference scanning and resource building.
"""
import re
from typing import Any, List, Optional, Tuple

from apimextract.errors import ExtractionError
from apimextract.extractors.base import POLICY_PARAMETER, BuildContext
from apimextract.models.entity import EntityKind
from apimextract.models.template import RESOURCE_TYPES, Reference, Template, TemplateResource
from apimextract.naming import policy_file_name, resource_id, resource_name

# Liquid bodies use the same {{ }} braces as named values; strip them first.
_LIQUID_BODY_RE = re.compile(
    r'<set-body\b[^>]*template\s*=\s*"liquid"[^>]*>.*?</set-body>', re.S | re.I
)
_NAMED_VALUE_RE = re.compile(r"\{\{([^{}\s]+)\}\}")
_BACKEND_RE = re.compile(r'<set-backend-service\b[^>]*\bbackend-id\s*=\s*"([^"]+)"', re.I)
_LOGGER_RE = re.compile(r'<log-to-eventhub\b[^>]*\blogger-id\s*=\s*"([^"]+)"', re.I)


def _literal(value: str) -> bool:
    # policy expressions and named-value placeholders resolve at runtime
    return not value.startswith("@") and "{{" not in value


def named_value_refs(val: Any) -> List[str]:
    """Recursively collect {{name}} placeholders from strings, lists and dicts."""
    found: List[str] = []
    if isinstance(val, str):
        for name in _NAMED_VALUE_RE.findall(_LIQUID_BODY_RE.sub("", val)):
            if name not in found:
                found.append(name)
    elif isinstance(val, list):
        for item in val:
            for name in named_value_refs(item):
                if name not in found:
                    found.append(name)
    elif isinstance(val, dict):
        for v in val.values():
            for name in named_value_refs(v):
                if name not in found:
                    found.append(name)
    return found


def scan_policy(xml: Optional[str]) -> List[Reference]:
    """References a policy document makes, in document order, deduplicated."""
    if not xml:
        return []
    refs: List[Reference] = []
    for name in named_value_refs(xml):
        refs.append(Reference(EntityKind.NAMED_VALUE, name))
    for backend in _BACKEND_RE.findall(xml):
        ref = Reference(EntityKind.BACKEND, backend)
        if _literal(backend) and ref not in refs:
            refs.append(ref)
    for logger in _LOGGER_RE.findall(xml):
        ref = Reference(EntityKind.LOGGER, logger)
        if _literal(logger) and ref not in refs:
            refs.append(ref)
    return refs


def fetch_policy(client, parent_path: str = "") -> Optional[str]:
    path = f"{parent_path}/policies/policy" if parent_path else "policies/policy"
    data = client.get(path, {"format": "rawxml"})
    if not data:
        return None
    return (data.get("properties") or {}).get("value")


def add_policy(
    template: Template,
    ctx: BuildContext,
    xml: str,
    type_alias: str,
    kind: EntityKind,
    segments: Tuple[str, ...],
    parent_id: Optional[str] = None,
) -> TemplateResource:
    """
    Append a policy resource for `segments` (the owner's path). The XML is
    inlined, or scheduled as a file and linked when a policy base URL is set.
    """
    resource_type = RESOURCE_TYPES[type_alias]
    if ctx.policy_xml_base_url:
        file_name = policy_file_name(kind, *segments)
        path = f"policies/{file_name}"
        if ctx.policy_files.get(path, xml) != xml:
            raise ExtractionError(
                f"two different policies would be written to {path}",
                kind=kind.value, entity_id="/".join(segments), stage="build",
            )
        ctx.policy_files[path] = xml
        properties = {
            "format": "rawxml-link",
            "value": f"[concat(parameters('{POLICY_PARAMETER}'), '/{file_name}')]",
        }
    else:
        properties = {"format": "rawxml", "value": xml}

    resource = template.add(TemplateResource(
        type=resource_type,
        name=resource_name(*segments, "policy"),
        resource_id=resource_id(resource_type, *segments, "policy"),
        properties=properties,
        references=scan_policy(xml),
    ))
    if parent_id:
        resource.add_dependency(parent_id)
    return resource
