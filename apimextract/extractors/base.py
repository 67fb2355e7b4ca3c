"""
Common machinery for the per-kind handlers.

A handler knows how to fetch one entity kind from the source service and how
to turn each record into ARM resources. Cross-kind pointers are left as
pending references for the crosslink pass.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from apimextract.errors import InvalidEntity
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import RESOURCE_TYPES, Reference, Template, TemplateResource
from apimextract.naming import SERVICE_PARAMETER, resource_id, resource_name, short_name

POLICY_PARAMETER = "PolicyXMLBaseUrl"

# Server-populated fields that a deployment must not carry
_READ_ONLY = {
    "provisioningState",
    "createdDate",
    "createdAt",
    "updatedAt",
    "isOnline",
}


@dataclass
class BuildContext:
    policy_xml_base_url: Optional[str] = None
    # relative path -> content, written next to the templates
    policy_files: Dict[str, str] = field(default_factory=dict)


def to_record(kind: EntityKind, item: Dict[str, Any], **extra) -> EntityRecord:
    item_id = item.get("id") or item.get("name") or ""
    return EntityRecord(
        kind=kind,
        id=item_id,
        name=item.get("name") or short_name(item_id),
        properties=dict(item.get("properties") or {}),
        **extra,
    )


def require(kind: EntityKind, entity_id: str, props: Dict[str, Any], *names: str) -> None:
    for name in names:
        value = props.get(name)
        if value is None or value == "" or value == []:
            raise InvalidEntity(name, kind.value, entity_id)


def clean(props: Dict[str, Any], keep: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """Copy properties, dropping nulls and read-only fields (or keeping only `keep`)."""
    allowed = set(keep) if keep is not None else None
    out = {}
    for k, v in props.items():
        if v is None or k in _READ_ONLY:
            continue
        if allowed is not None and k not in allowed:
            continue
        out[k] = v
    return out


def entity_resource(
    kind: EntityKind,
    type_alias: str,
    record: EntityRecord,
    properties: Dict[str, Any],
    references: Optional[List[Reference]] = None,
    aliases: Tuple[str, ...] = (),
) -> TemplateResource:
    """The top-level resource for one entity; the only kind crosslink can target."""
    resource_type = RESOURCE_TYPES[type_alias]
    return TemplateResource(
        type=resource_type,
        name=resource_name(record.name),
        resource_id=resource_id(resource_type, record.name),
        properties=properties,
        kind=kind,
        key=record.name,
        aliases=aliases,
        references=list(references or []),
    )


class KindHandler:
    kind: EntityKind
    # kinds whose entities this kind's records pull into the single-API scope
    depends_on: Tuple[EntityKind, ...] = ()
    # False: always extracted whole, never narrowed by the single-API filter
    scoped: bool = True
    carries_policies: bool = False

    def fetch(self, client, config) -> List[EntityRecord]:
        raise NotImplementedError

    def keys(self, record: EntityRecord) -> Tuple[str, ...]:
        """Names other entities may use to point at this record."""
        return (record.name,)

    def build_record(self, record: EntityRecord, ctx: BuildContext, template: Template) -> None:
        raise NotImplementedError

    def parameters(self, ctx: BuildContext) -> Dict[str, Any]:
        params: Dict[str, Any] = {SERVICE_PARAMETER: {"type": "string"}}
        if self.carries_policies and ctx.policy_xml_base_url:
            params[POLICY_PARAMETER] = {"type": "string"}
        return params

    def build(self, records: List[EntityRecord], ctx: BuildContext) -> Template:
        template = Template(kind=self.kind, parameters=self.parameters(ctx))
        for record in records:
            self.build_record(record, ctx, template)
        return template

    def associations(self, record: EntityRecord) -> List[Reference]:
        """Entities in scope with this record that its resources do not point at."""
        return []

    def references(self, record: EntityRecord) -> List[Reference]:
        """Every cross-kind reference the record's resources would carry, plus associations."""
        scratch = Template(kind=self.kind)
        self.build_record(record, BuildContext(), scratch)
        refs: List[Reference] = []
        for ref in [r for res in scratch.resources for r in res.references] + self.associations(record):
            if ref.kind != self.kind and ref not in refs:
                refs.append(ref)
        return refs
