"""
Linked master template and the shared deployment parameters file.
"""
from typing import Any, Dict, List, Mapping, Optional

from apimextract.config import ExtractorConfig
from apimextract.extractors.base import POLICY_PARAMETER
from apimextract.models.entity import EntityKind
from apimextract.models.template import (
    CONTENT_VERSION,
    DEPLOYMENT_API_VERSION,
    ParametersFile,
    Template,
    TemplateResource,
)
from apimextract.naming import DEPLOYMENT_TYPE, SERVICE_PARAMETER, FileNames, deployment_id, deployment_name

LINKED_BASE_PARAMETER = "LinkedTemplatesBaseUrl"
LINKED_QUERY_PARAMETER = "LinkedTemplatesUrlQueryString"


def _template_uri(file_name: str, with_query: bool) -> str:
    if with_query:
        return (
            f"[concat(parameters('{LINKED_BASE_PARAMETER}'), '/{file_name}', "
            f"parameters('{LINKED_QUERY_PARAMETER}'))]"
        )
    return f"[concat(parameters('{LINKED_BASE_PARAMETER}'), '/{file_name}')]"


def build_master_template(
    templates: Mapping[EntityKind, Template],
    kind_edges: Mapping[EntityKind, List[EntityKind]],
    file_names: FileNames,
    config: ExtractorConfig,
) -> Template:
    """One nested deployment per non-empty template, ordered like the resources they wrap."""
    with_query = bool(config.linked_templates_url_query_string)
    parameters: Dict[str, dict] = {
        SERVICE_PARAMETER: {"type": "string"},
        LINKED_BASE_PARAMETER: {"type": "string"},
    }
    if with_query:
        parameters[LINKED_QUERY_PARAMETER] = {"type": "string"}

    master = Template(kind=None, parameters=parameters)
    present = [kind for kind, template in templates.items() if len(template)]

    for kind in present:
        template = templates[kind]
        # forward exactly what the nested template declares
        forwarded = {}
        for param, spec in template.parameters.items():
            parameters.setdefault(param, dict(spec))
            forwarded[param] = {"value": f"[parameters('{param}')]"}

        name = deployment_name(kind)
        deployment = master.add(TemplateResource(
            type=DEPLOYMENT_TYPE,
            name=name,
            resource_id=deployment_id(name),
            api_version=DEPLOYMENT_API_VERSION,
            kind=kind,
            properties={
                "mode": "Incremental",
                "templateLink": {
                    "uri": _template_uri(file_names.for_kind(kind), with_query),
                    "contentVersion": CONTENT_VERSION,
                },
                "parameters": forwarded,
            },
        ))
        for dep in kind_edges.get(kind, []):
            if dep in present:
                deployment.add_dependency(deployment_id(deployment_name(dep)))

    return master


def build_parameters(
    config: ExtractorConfig, templates: Optional[Mapping[EntityKind, Template]] = None
) -> ParametersFile:
    """
    Values for the deployment. Secrets the service withheld get an empty
    placeholder and are listed in `secrets` so they can be filled in.
    """
    values: Dict[str, Any] = {SERVICE_PARAMETER: config.destination_apim_name}
    if config.linked_templates_base_url:
        values[LINKED_BASE_PARAMETER] = config.linked_templates_base_url
    if config.linked_templates_url_query_string:
        values[LINKED_QUERY_PARAMETER] = config.linked_templates_url_query_string
    if config.policy_xml_base_url:
        values[POLICY_PARAMETER] = config.policy_xml_base_url
    secrets: List[str] = []
    for template in (templates or {}).values():
        if not len(template):
            continue
        for param, spec in template.parameters.items():
            if spec.get("type") == "securestring" and param not in values:
                values[param] = ""
                secrets.append(param)
    return ParametersFile(values=values, secrets=secrets)
