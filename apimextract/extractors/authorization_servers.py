from typing import List

from apimextract.extractors.base import BuildContext, KindHandler, clean, entity_resource, require, to_record
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Template


class AuthorizationServerHandler(KindHandler):
    """OAuth 2.0 authorization servers referenced from API authentication settings."""

    kind = EntityKind.AUTHORIZATION_SERVER

    def fetch(self, client, config) -> List[EntityRecord]:
        return [to_record(self.kind, item) for item in client.list("authorizationServers")]

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        require(
            self.kind, record.id, record.properties,
            "displayName", "clientRegistrationEndpoint", "authorizationEndpoint",
            "grantTypes", "clientId",
        )
        template.add(entity_resource(
            self.kind, "authorization_server", record, clean(record.properties)
        ))
