from typing import List

from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Template

_FIELDS = (
    "displayName",
    "description",
    "versioningScheme",
    "versionQueryName",
    "versionHeaderName",
)


class ApiVersionSetHandler(KindHandler):
    kind = EntityKind.API_VERSION_SET

    def fetch(self, client, config) -> List[EntityRecord]:
        return [to_record(self.kind, item) for item in client.list("apiVersionSets")]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        require(self.kind, record.id, record.properties, "displayName", "versioningScheme")
        template.add(entity_resource(
            self.kind, "api_version_set", record, clean(record.properties, keep=_FIELDS)
        ))
