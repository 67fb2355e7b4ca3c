"""
Cross-reference rewriting across the per-kind templates.

Pass 1 resolves every pending reference against the generated top-level
resources and rewrites the referring property to the target's resourceId
expression. Pass 2 turns each resolved reference into a dependsOn edge.
"""
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from apimextract.errors import DependencyCycle, UnresolvedReference
from apimextract.events import EventStream
from apimextract.extractors import HANDLERS, KindHandler
from apimextract.models.entity import EntityKind, EntityRecord
from apimextract.models.template import Reference, Template, TemplateResource


@dataclass(frozen=True)
class FlaggedReference:
    """A reference dropped during single-API extraction."""

    source: str              # name expression of the referring resource
    kind: EntityKind
    key: str
    out_of_scope: bool       # target exists in the service but was filtered out
    resource_dropped: bool   # the referring resource was removed with it

    @property
    def reason(self) -> str:
        return "outside the extracted API's scope" if self.out_of_scope else "missing from the source service"


@dataclass
class CrosslinkResult:
    templates: Dict[EntityKind, Template]
    flags: List[FlaggedReference] = field(default_factory=list)
    # kind -> kinds it depends on, in discovery order
    kind_edges: Dict[EntityKind, List[EntityKind]] = field(default_factory=dict)


def _assign(props: Dict[str, Any], path: Tuple[str, ...], value: Any) -> None:
    cur = props
    for k in path[:-1]:
        cur = cur.setdefault(k, {})
    cur[path[-1]] = value


def _delete(props: Dict[str, Any], path: Tuple[str, ...]) -> None:
    cur = props
    for k in path[:-1]:
        cur = cur.get(k)
        if not isinstance(cur, dict):
            return
    cur.pop(path[-1], None)


def _index(templates: Mapping[EntityKind, Template]) -> Dict[Tuple[EntityKind, str], TemplateResource]:
    index: Dict[Tuple[EntityKind, str], TemplateResource] = {}
    for template in templates.values():
        for r in template.resources:
            if r.kind is None or r.key is None:
                continue
            index.setdefault((r.kind, r.key), r)
            for alias in r.aliases:
                index.setdefault((r.kind, alias), r)
    return index


def _universe_keys(
    universe: Optional[Mapping[EntityKind, List[EntityRecord]]],
    handlers: Mapping[EntityKind, KindHandler],
) -> Set[Tuple[EntityKind, str]]:
    keys: Set[Tuple[EntityKind, str]] = set()
    for kind, records in (universe or {}).items():
        for record in records:
            for key in handlers[kind].keys(record):
                keys.add((kind, key))
    return keys


def check_acyclic(templates: Mapping[EntityKind, Template]) -> None:
    graph = {r.resource_id: tuple(r.depends_on) for t in templates.values() for r in t.resources}
    try:
        TopologicalSorter(graph).prepare()
    except CycleError as exc:
        cycle = " -> ".join(exc.args[1]) if len(exc.args) > 1 else ""
        raise DependencyCycle(f"dependsOn cycle between resources: {cycle}")


def crosslink(
    templates: Dict[EntityKind, Template],
    scoped: bool = False,
    universe: Optional[Mapping[EntityKind, List[EntityRecord]]] = None,
    handlers: Mapping[EntityKind, KindHandler] = HANDLERS,
    events: Optional[EventStream] = None,
) -> CrosslinkResult:
    """
    Resolve references in place and return the linked templates.

    `universe` is the unfiltered record set; in scoped mode it tells a
    filtered-out target apart from one the service never had. Only the
    first is flagged and dropped, except in the service policy, where
    both are.
    """
    events = events or EventStream()
    index = _index(templates)
    known = _universe_keys(universe, handlers)
    result = CrosslinkResult(templates=templates)

    # pass 1: resolve and rewrite
    resolved: Dict[int, List[TemplateResource]] = {}
    for kind, template in templates.items():
        kept = []
        for resource in template.resources:
            targets: List[TemplateResource] = []
            dropped = False
            for ref in resource.references:
                target = index.get((ref.kind, ref.key))
                if target is not None:
                    if ref.field:
                        _assign(resource.properties, ref.field, target.resource_id)
                    targets.append(target)
                    continue

                # only the selected API is read, so every other API is filtered out
                out_of_scope = (ref.kind, ref.key) in known or ref.kind == EntityKind.API
                # the service policy is never narrowed, so a miss there is only flagged
                if not scoped or (not out_of_scope and handlers[kind].scoped):
                    raise UnresolvedReference(resource.name, ref.kind.value, ref.key)
                flag = FlaggedReference(
                    source=resource.name,
                    kind=ref.kind,
                    key=ref.key,
                    out_of_scope=out_of_scope,
                    resource_dropped=ref.required,
                )
                result.flags.append(flag)
                events.warning(
                    "crosslink",
                    f"dropped reference from {resource.name} to {ref.kind.value} "
                    f"'{ref.key}' ({flag.reason})",
                    kind=kind.value,
                )
                if ref.required:
                    dropped = True
                    break
                if ref.field:
                    _delete(resource.properties, ref.field)

            if not dropped:
                kept.append(resource)
                resolved[id(resource)] = targets
        template.resources = kept

    # pass 2: dependency edges, stable discovery order
    owner: Dict[str, EntityKind] = {}
    for kind, template in templates.items():
        for resource in template.resources:
            owner[resource.resource_id] = kind
    for kind, template in templates.items():
        for resource in template.resources:
            for target in resolved[id(resource)]:
                resource.add_dependency(target.resource_id)
            # drop edges to resources removed in pass 1
            resource.depends_on = [d for d in resource.depends_on if d in owner]
            resource.references = []

            for dep in resource.depends_on:
                dep_kind = owner[dep]
                edges = result.kind_edges.setdefault(kind, [])
                if dep_kind != kind and dep_kind not in edges:
                    edges.append(dep_kind)

    check_acyclic(templates)
    return result


def pending_references(templates: Mapping[EntityKind, Template]) -> List[Tuple[str, Reference]]:
    """References not yet resolved, as (resource name, reference) pairs."""
    return [(r.name, ref) for t in templates.values() for r in t.resources for ref in r.references]
