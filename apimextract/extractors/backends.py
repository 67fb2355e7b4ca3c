from typing import List

from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.extractors.policy import named_value_refs
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Reference, Template


class BackendHandler(KindHandler):
    kind = EntityKind.BACKEND
    depends_on = (EntityKind.NAMED_VALUE,)

    def fetch(self, client, config) -> List[EntityRecord]:
        return [to_record(self.kind, item) for item in client.list("backends")]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        props = record.properties
        require(self.kind, record.id, props, "url", "protocol")
        # credentials and proxy settings may carry {{named value}} placeholders
        refs = [Reference(EntityKind.NAMED_VALUE, name) for name in named_value_refs(props)]
        template.add(entity_resource(self.kind, "backend", record, clean(props), references=refs))
