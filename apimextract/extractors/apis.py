"""
APIs and everything that hangs off them: operations, schemas, policies,
diagnostics and tag links. Product membership links are built on the
product side; an API only pulls its products into scope.
"""
from typing import Any, Dict, List

from apimextract.errors import ExtractionError
from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.extractors.policy import add_policy, fetch_policy
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import RESOURCE_TYPES, Reference, Template, TemplateResource
from apimextract.naming import resource_id, resource_name, short_name

_API_FIELDS = (
    "displayName",
    "description",
    "serviceUrl",
    "path",
    "protocols",
    "subscriptionRequired",
    "authenticationSettings",
    "subscriptionKeyParameterNames",
    "apiType",
    "type",
    "apiRevision",
    "apiRevisionDescription",
    "apiVersion",
    "apiVersionDescription",
    "apiVersionSetId",
    "isCurrent",
)
_OPERATION_FIELDS = (
    "displayName",
    "method",
    "urlTemplate",
    "templateParameters",
    "description",
    "request",
    "responses",
)
_DIAGNOSTIC_FIELDS = (
    "alwaysLog",
    "loggerId",
    "sampling",
    "frontend",
    "backend",
    "enableHttpCorrelationHeaders",
    "httpCorrelationProtocol",
    "logClientIp",
    "verbosity",
)


def _schema_ids(operation_props: Dict[str, Any]) -> List[str]:
    """Schema ids used by request/response representations, in order."""
    found: List[str] = []
    request = operation_props.get("request") or {}
    representations = list(request.get("representations") or [])
    for response in operation_props.get("responses") or []:
        representations.extend(response.get("representations") or [])
    for rep in representations:
        schema_id = rep.get("schemaId")
        if schema_id and schema_id not in found:
            found.append(schema_id)
    return found


def _names(items: List[Dict[str, Any]]) -> List[str]:
    return [item.get("name") or short_name(item["id"]) for item in items]


class ApiHandler(KindHandler):
    kind = EntityKind.API
    depends_on = (
        EntityKind.API_VERSION_SET,
        EntityKind.AUTHORIZATION_SERVER,
        EntityKind.PRODUCT,
        EntityKind.TAG,
        EntityKind.LOGGER,
        EntityKind.BACKEND,
        EntityKind.NAMED_VALUE,
    )
    carries_policies = True

    def fetch(self, client, config) -> List[EntityRecord]:
        if config.api_name:
            item = client.get(f"apis/{config.api_name}")
            if item is None:
                raise ExtractionError(
                    f"API '{config.api_name}' was not found in {config.source_apim_name}",
                    kind=self.kind.value, entity_id=config.api_name, stage="fetch",
                )
            items = [item]
        else:
            items = client.list("apis")
        return [self._fetch_api(client, item) for item in items]

    def _fetch_api(self, client, item: Dict[str, Any]) -> EntityRecord:
        name = item["name"]
        path = f"apis/{name}"

        operations = []
        for op in client.list(f"{path}/operations"):
            op_path = f"{path}/operations/{op['name']}"
            operations.append({
                "id": op.get("id", op_path),
                "name": op["name"],
                "properties": op.get("properties") or {},
                "policy": fetch_policy(client, op_path),
                "tags": _names(client.list(f"{op_path}/tags")),
            })

        return to_record(
            self.kind,
            item,
            raw_payload=fetch_policy(client, path),
            related={
                "operations": operations,
                "schemas": client.list(f"{path}/schemas"),
                "diagnostics": client.list(f"{path}/diagnostics"),
                "tags": _names(client.list(f"{path}/tags")),
                "products": _names(client.list(f"{path}/products")),
            },
        )

    def associations(self, record: EntityRecord) -> List[Reference]:
        return [Reference(EntityKind.PRODUCT, p) for p in record.related.get("products", [])]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        props = record.properties
        require(self.kind, record.id, props, "displayName", "path")
        api_name = record.name

        refs = []
        if props.get("apiVersionSetId"):
            refs.append(Reference(
                EntityKind.API_VERSION_SET,
                short_name(props["apiVersionSetId"]),
                field=("apiVersionSetId",),
            ))
        oauth = (props.get("authenticationSettings") or {}).get("oAuth2") or {}
        if oauth.get("authorizationServerId"):
            # the service expects the bare server id here, so only order on it
            refs.append(Reference(EntityKind.AUTHORIZATION_SERVER, oauth["authorizationServerId"]))

        api = template.add(entity_resource(
            self.kind, "api", record, clean(props, keep=_API_FIELDS), references=refs
        ))

        if record.raw_payload:
            add_policy(
                template, ctx, record.raw_payload, "api_policy", self.kind,
                (api_name,), parent_id=api.resource_id,
            )

        schema_type = RESOURCE_TYPES["api_schema"]
        schema_ids = {}
        for schema in record.related.get("schemas", []):
            schema_name = schema["name"]
            resource = template.add(TemplateResource(
                type=schema_type,
                name=resource_name(api_name, schema_name),
                resource_id=resource_id(schema_type, api_name, schema_name),
                properties=clean(schema.get("properties") or {}),
            ))
            resource.add_dependency(api.resource_id)
            schema_ids[schema_name] = resource.resource_id

        for op in record.related.get("operations", []):
            self._build_operation(api_name, api, op, schema_ids, ctx, template)

        diagnostic_type = RESOURCE_TYPES["api_diagnostic"]
        for diagnostic in record.related.get("diagnostics", []):
            diag_props = clean(diagnostic.get("properties") or {}, keep=_DIAGNOSTIC_FIELDS)
            diag_refs = []
            if diag_props.get("loggerId"):
                diag_refs.append(Reference(
                    EntityKind.LOGGER, short_name(diag_props["loggerId"]),
                    field=("loggerId",), required=True,
                ))
            resource = template.add(TemplateResource(
                type=diagnostic_type,
                name=resource_name(api_name, diagnostic["name"]),
                resource_id=resource_id(diagnostic_type, api_name, diagnostic["name"]),
                properties=diag_props,
                references=diag_refs,
            ))
            resource.add_dependency(api.resource_id)

        tag_type = RESOURCE_TYPES["api_tag"]
        for tag in record.related.get("tags", []):
            link = template.add(TemplateResource(
                type=tag_type,
                name=resource_name(api_name, tag),
                resource_id=resource_id(tag_type, api_name, tag),
                references=[Reference(EntityKind.TAG, tag, required=True)],
            ))
            link.add_dependency(api.resource_id)

    def _build_operation(
        self,
        api_name: str,
        api: TemplateResource,
        op: Dict[str, Any],
        schema_ids: Dict[str, str],
        ctx: BuildContext,
        template: Template,
    ) -> None:
        op_name = op["name"]
        props = op.get("properties") or {}
        require(self.kind, op.get("id", op_name), props, "displayName", "method", "urlTemplate")

        op_type = RESOURCE_TYPES["api_operation"]
        operation = template.add(TemplateResource(
            type=op_type,
            name=resource_name(api_name, op_name),
            resource_id=resource_id(op_type, api_name, op_name),
            properties=clean(props, keep=_OPERATION_FIELDS),
        ))
        operation.add_dependency(api.resource_id)
        for schema_id in _schema_ids(props):
            if schema_id in schema_ids:
                operation.add_dependency(schema_ids[schema_id])

        if op.get("policy"):
            add_policy(
                template, ctx, op["policy"], "api_operation_policy", self.kind,
                (api_name, op_name), parent_id=operation.resource_id,
            )

        tag_type = RESOURCE_TYPES["api_operation_tag"]
        for tag in op.get("tags", []):
            link = template.add(TemplateResource(
                type=tag_type,
                name=resource_name(api_name, op_name, tag),
                resource_id=resource_id(tag_type, api_name, op_name, tag),
                references=[Reference(EntityKind.TAG, tag, required=True)],
            ))
            link.add_dependency(operation.resource_id)
