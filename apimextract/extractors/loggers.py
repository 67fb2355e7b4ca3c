from typing import List

from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.extractors.policy import named_value_refs
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Reference, Template

_FIELDS = ("loggerType", "description", "credentials", "isBuffered", "resourceId")


class LoggerHandler(KindHandler):
    kind = EntityKind.LOGGER
    depends_on = (EntityKind.NAMED_VALUE,)

    def fetch(self, client, config) -> List[EntityRecord]:
        return [to_record(self.kind, item) for item in client.list("loggers")]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        props = record.properties
        require(self.kind, record.id, props, "loggerType")
        # the service stores logger keys as named values, e.g. {{Logger-Credentials--1}}
        refs = [
            Reference(EntityKind.NAMED_VALUE, name)
            for name in named_value_refs(props.get("credentials") or {})
        ]
        template.add(entity_resource(
            self.kind, "logger", record, clean(props, keep=_FIELDS), references=refs
        ))
