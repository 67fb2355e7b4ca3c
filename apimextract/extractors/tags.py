from typing import List

from apimextract.extractors.base import BuildContext, KindHandler, entity_resource, require, to_record
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Template


class TagHandler(KindHandler):
    kind = EntityKind.TAG

    def fetch(self, client, config) -> List[EntityRecord]:
        return [to_record(self.kind, item) for item in client.list("tags")]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        require(self.kind, record.id, record.properties, "displayName")
        template.add(entity_resource(
            self.kind, "tag", record, {"displayName": record.properties["displayName"]}
        ))
