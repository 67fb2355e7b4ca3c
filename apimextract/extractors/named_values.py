import re
from typing import List, Tuple

from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Template

_FIELDS = ("displayName", "value", "secret", "tags", "keyVault")


def secret_parameter(name: str) -> str:
    """Template parameter carrying a secret value the service did not return."""
    return "namedValue_" + re.sub(r"[^A-Za-z0-9_]", "_", name)


class NamedValueHandler(KindHandler):
    kind = EntityKind.NAMED_VALUE

    def fetch(self, client, config) -> List[EntityRecord]:
        return [to_record(self.kind, item) for item in client.list("namedValues")]

    def keys(self, record: EntityRecord) -> Tuple[str, ...]:
        # policies address named values by display name
        display = record.properties.get("displayName")
        if display and display != record.name:
            return (record.name, display)
        return (record.name,)

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        props = record.properties
        require(self.kind, record.id, props, "displayName")
        properties = clean(props, keep=_FIELDS)

        if props.get("secret") and "value" not in properties and "keyVault" not in properties:
            param = secret_parameter(record.name)
            template.parameters[param] = {"type": "securestring"}
            properties["value"] = f"[parameters('{param}')]"

        template.add(entity_resource(
            self.kind, "named_value", record, properties, aliases=self.keys(record)[1:]
        ))
