"""
Deterministic file names and ARM resource names / ids.

All functions are pure. Names embed the target service through the
ApimServiceName template parameter so the same bundle deploys anywhere.
"""
from dataclasses import dataclass
from typing import Optional

from apimextract.models.entity import EntityKind

SERVICE_PARAMETER = "ApimServiceName"
DEPLOYMENT_TYPE = "Microsoft.Resources/deployments"

_DEPLOYMENT_NAMES = {
    EntityKind.API: "apisTemplate",
    EntityKind.API_VERSION_SET: "versionSetTemplate",
    EntityKind.AUTHORIZATION_SERVER: "authorizationServersTemplate",
    EntityKind.BACKEND: "backendsTemplate",
    EntityKind.LOGGER: "loggersTemplate",
    EntityKind.NAMED_VALUE: "namedValuesTemplate",
    EntityKind.TAG: "tagTemplate",
    EntityKind.PRODUCT: "productsTemplate",
    EntityKind.SERVICE_POLICY: "globalServicePolicyTemplate",
}


@dataclass(frozen=True)
class FileNames:
    api_version_sets: str
    authorization_servers: str
    backends: str
    global_service_policy: str
    loggers: str
    named_values: str
    tags: str
    products: str
    apis: str
    parameters: str
    linked_master: str
    summary: str

    def for_kind(self, kind: EntityKind) -> str:
        return {
            EntityKind.API: self.apis,
            EntityKind.API_VERSION_SET: self.api_version_sets,
            EntityKind.AUTHORIZATION_SERVER: self.authorization_servers,
            EntityKind.BACKEND: self.backends,
            EntityKind.LOGGER: self.loggers,
            EntityKind.NAMED_VALUE: self.named_values,
            EntityKind.TAG: self.tags,
            EntityKind.PRODUCT: self.products,
            EntityKind.SERVICE_POLICY: self.global_service_policy,
        }[kind]


def api_file_name(service_name: str, api_name: Optional[str] = None) -> str:
    if api_name:
        return f"{service_name}-{api_name}-api.template.json"
    return f"{service_name}-apis.template.json"


def generate_file_names(service_name: str, api_name: Optional[str] = None) -> FileNames:
    return FileNames(
        api_version_sets=f"{service_name}-apiVersionSets.template.json",
        authorization_servers=f"{service_name}-authorizationServers.template.json",
        backends=f"{service_name}-backends.template.json",
        global_service_policy=f"{service_name}-globalServicePolicy.template.json",
        loggers=f"{service_name}-loggers.template.json",
        named_values=f"{service_name}-namedValues.template.json",
        tags=f"{service_name}-tags.template.json",
        products=f"{service_name}-products.template.json",
        apis=api_file_name(service_name, api_name),
        parameters=f"{service_name}-parameters.json",
        linked_master=f"{service_name}-master.template.json",
        summary=f"{service_name}-summary.md",
    )


def _quote(segment: str) -> str:
    return "'" + str(segment).replace("'", "''") + "'"


def short_name(arm_id: str) -> str:
    """'/subscriptions/.../apiVersionSets/abc' -> 'abc'"""
    return str(arm_id).rstrip("/").rsplit("/", 1)[-1]


def resource_name(*segments: str) -> str:
    path = "/".join(str(s) for s in segments)
    return f"[concat(parameters('{SERVICE_PARAMETER}'), {_quote('/' + path)})]"


def resource_id(resource_type: str, *segments: str) -> str:
    parts = ", ".join(_quote(s) for s in segments)
    return f"[resourceId({_quote(resource_type)}, parameters('{SERVICE_PARAMETER}'), {parts})]"


def deployment_name(kind: EntityKind) -> str:
    return _DEPLOYMENT_NAMES[kind]


def deployment_id(name: str) -> str:
    return f"[resourceId({_quote(DEPLOYMENT_TYPE)}, {_quote(name)})]"


def policy_file_name(kind: EntityKind, *segments: str) -> str:
    """
    Relative path of an externalized policy. Each owner gets its own folder;
    service names cannot contain '/', so two owners never share a path.
    """
    if kind == EntityKind.SERVICE_POLICY:
        return "globalServicePolicy.xml"
    if kind == EntityKind.PRODUCT:
        return f"products/{segments[0]}-productPolicy.xml"
    if kind == EntityKind.API and len(segments) == 2:
        return f"apis/{segments[0]}/{segments[1]}-operationPolicy.xml"
    if kind == EntityKind.API:
        return f"apis/{segments[0]}/apiPolicy.xml"
    raise ValueError(f"{kind.value} entities do not carry policies")
