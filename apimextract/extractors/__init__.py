from typing import Dict

from apimextract.extractors.api_version_sets import ApiVersionSetHandler
from apimextract.extractors.apis import ApiHandler
from apimextract.extractors.authorization_servers import AuthorizationServerHandler
from apimextract.extractors.backends import BackendHandler
from apimextract.extractors.base import BuildContext, KindHandler
from apimextract.extractors.loggers import LoggerHandler
from apimextract.extractors.named_values import NamedValueHandler
from apimextract.extractors.products import ProductHandler
from apimextract.extractors.service_policy import ServicePolicyHandler
from apimextract.extractors.tags import TagHandler
from apimextract.models.entity import EntityKind

# Output order of the per-kind templates
HANDLERS: Dict[EntityKind, KindHandler] = {
    h.kind: h
    for h in (
        ServicePolicyHandler(),
        ApiHandler(),
        ApiVersionSetHandler(),
        AuthorizationServerHandler(),
        LoggerHandler(),
        ProductHandler(),
        NamedValueHandler(),
        TagHandler(),
        BackendHandler(),
    )
}

__all__ = ["HANDLERS", "BuildContext", "KindHandler"]
