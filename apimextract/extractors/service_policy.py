from typing import List

from apimextract.extractors.base import BuildContext, KindHandler
from apimextract.extractors.policy import add_policy, fetch_policy
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Template


class ServicePolicyHandler(KindHandler):
    """The global policy applied to every API of the service."""

    kind = EntityKind.SERVICE_POLICY
    depends_on = (EntityKind.NAMED_VALUE, EntityKind.BACKEND, EntityKind.LOGGER)
    scoped = False
    carries_policies = True

    def fetch(self, client, config) -> List[EntityRecord]:
        xml = fetch_policy(client)
        if not xml:
            return []
        return [EntityRecord(kind=self.kind, id="policies/policy", name="policy", raw_payload=xml)]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        resource = add_policy(template, ctx, record.raw_payload, "service_policy", self.kind, ())
        resource.kind = self.kind
        resource.key = record.name
