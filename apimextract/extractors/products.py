from typing import List

from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.extractors.policy import add_policy, fetch_policy
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import RESOURCE_TYPES, Reference, Template, TemplateResource
from apimextract.naming import resource_id, resource_name

_FIELDS = (
    "displayName",
    "description",
    "terms",
    "subscriptionRequired",
    "approvalRequired",
    "subscriptionsLimit",
    "state",
)


class ProductHandler(KindHandler):
    kind = EntityKind.PRODUCT
    depends_on = (EntityKind.TAG, EntityKind.NAMED_VALUE, EntityKind.BACKEND, EntityKind.LOGGER)
    carries_policies = True

    def fetch(self, client, config) -> List[EntityRecord]:
        records = []
        for item in client.list("products"):
            name = item["name"]
            path = f"products/{name}"
            records.append(to_record(
                self.kind,
                item,
                raw_payload=fetch_policy(client, path),
                related={
                    "tags": [t["name"] for t in client.list(f"{path}/tags")],
                    "apis": [a["name"] for a in client.list(f"{path}/apis")],
                },
            ))
        return records

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        props = record.properties
        require(self.kind, record.id, props, "displayName")
        properties = clean(props, keep=_FIELDS)
        # the service rejects these two on products that need no subscription
        if properties.get("subscriptionRequired") is False:
            properties.pop("approvalRequired", None)
            properties.pop("subscriptionsLimit", None)

        product = template.add(entity_resource(self.kind, "product", record, properties))

        if record.raw_payload:
            add_policy(
                template, ctx, record.raw_payload, "product_policy", self.kind,
                (record.name,), parent_id=product.resource_id,
            )

        tag_type = RESOURCE_TYPES["product_tag"]
        for tag in record.related.get("tags", []):
            link = template.add(TemplateResource(
                type=tag_type,
                name=resource_name(record.name, tag),
                resource_id=resource_id(tag_type, record.name, tag),
                references=[Reference(EntityKind.TAG, tag, required=True)],
            ))
            link.add_dependency(product.resource_id)

        # membership links; in single-API mode links to other APIs are dropped
        membership_type = RESOURCE_TYPES["product_api"]
        for api in record.related.get("apis", []):
            link = template.add(TemplateResource(
                type=membership_type,
                name=resource_name(record.name, api),
                resource_id=resource_id(membership_type, record.name, api),
                references=[Reference(EntityKind.API, api, required=True)],
            ))
            link.add_dependency(product.resource_id)
