from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from apimextract.models.entity import EntityKind

TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2015-01-01/deploymentTemplate.json#"
PARAMETERS_SCHEMA = "https://schema.management.azure.com/schemas/2015-01-01/deploymentParameters.json#"
CONTENT_VERSION = "1.0.0.0"
APIM_API_VERSION = "2019-12-01"
DEPLOYMENT_API_VERSION = "2018-01-01"

# ARM resource types, keyed by a short alias used throughout the builders
RESOURCE_TYPES = {
    "api": "Microsoft.ApiManagement/service/apis",
    "api_operation": "Microsoft.ApiManagement/service/apis/operations",
    "api_policy": "Microsoft.ApiManagement/service/apis/policies",
    "api_operation_policy": "Microsoft.ApiManagement/service/apis/operations/policies",
    "api_schema": "Microsoft.ApiManagement/service/apis/schemas",
    "api_diagnostic": "Microsoft.ApiManagement/service/apis/diagnostics",
    "api_tag": "Microsoft.ApiManagement/service/apis/tags",
    "api_operation_tag": "Microsoft.ApiManagement/service/apis/operations/tags",
    "product_api": "Microsoft.ApiManagement/service/products/apis",
    "api_version_set": "Microsoft.ApiManagement/service/apiVersionSets",
    "authorization_server": "Microsoft.ApiManagement/service/authorizationServers",
    "backend": "Microsoft.ApiManagement/service/backends",
    "logger": "Microsoft.ApiManagement/service/loggers",
    "named_value": "Microsoft.ApiManagement/service/namedValues",
    "tag": "Microsoft.ApiManagement/service/tags",
    "product": "Microsoft.ApiManagement/service/products",
    "product_policy": "Microsoft.ApiManagement/service/products/policies",
    "product_tag": "Microsoft.ApiManagement/service/products/tags",
    "service_policy": "Microsoft.ApiManagement/service/policies",
}


@dataclass(frozen=True)
class Reference:
    """A pending pointer from one resource to another entity's resource."""

    kind: EntityKind
    key: str
    # property path that receives the target's resourceId expression;
    # None means the reference only orders deployment
    field: Optional[Tuple[str, ...]] = None
    # the owning resource cannot exist without the target (e.g. tag links)
    required: bool = False


@dataclass
class TemplateResource:
    type: str
    name: str
    resource_id: str
    properties: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)
    api_version: str = APIM_API_VERSION
    kind: Optional[EntityKind] = None
    key: Optional[str] = None           # set on top-level entity resources only
    aliases: Tuple[str, ...] = ()
    references: List[Reference] = field(default_factory=list)

    def add_dependency(self, target_id: str) -> None:
        if target_id != self.resource_id and target_id not in self.depends_on:
            self.depends_on.append(target_id)

    def to_dict(self, local_ids: Optional[set] = None) -> Dict[str, Any]:
        """
        Render ARM JSON. With local_ids, dependsOn keeps only the entries that
        point inside the same template (ARM rejects unknown dependencies).
        """
        depends_on = self.depends_on
        if local_ids is not None:
            depends_on = [d for d in depends_on if d in local_ids]
        out: Dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "apiVersion": self.api_version,
            "properties": self.properties,
        }
        if depends_on:
            out["dependsOn"] = list(depends_on)
        return out


@dataclass
class Template:
    kind: Optional[EntityKind]
    resources: List[TemplateResource] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.resources)

    @property
    def resource_ids(self) -> set:
        return {r.resource_id for r in self.resources}

    def add(self, resource: TemplateResource) -> TemplateResource:
        self.resources.append(resource)
        return resource

    def to_dict(self) -> Dict[str, Any]:
        local = self.resource_ids
        return {
            "$schema": TEMPLATE_SCHEMA,
            "contentVersion": CONTENT_VERSION,
            "parameters": self.parameters,
            "resources": [r.to_dict(local) for r in self.resources],
        }


@dataclass
class ParametersFile:
    values: Dict[str, Any] = field(default_factory=dict)
    # securestring parameters written with an empty placeholder value
    secrets: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "$schema": PARAMETERS_SCHEMA,
            "contentVersion": CONTENT_VERSION,
            "parameters": {k: {"value": v} for k, v in self.values.items()},
        }
