"""
Single-API scope resolution.

An entity is in scope when it is the named API or when an in-scope entity
points at it (product membership, version set, tags, diagnostics loggers,
backends and named values used in policies, ...). Kinds are walked so that
every kind is narrowed before the kinds it references.
"""
from collections import defaultdict
from graphlib import TopologicalSorter
from typing import Dict, Iterable, List, Mapping, Optional, Set

from apimextract.extractors import HANDLERS, KindHandler
from apimextract.models.entity import EntityKind, EntityRecord

Universe = Dict[EntityKind, List[EntityRecord]]


def referencing_order(handlers: Mapping[EntityKind, KindHandler]) -> List[EntityKind]:
    """Kinds ordered so that each comes before every kind it depends on."""
    graph = {
        kind: tuple(d for d in h.depends_on if d in handlers) for kind, h in handlers.items()
    }
    return list(reversed(list(TopologicalSorter(graph).static_order())))


def dedupe(records: Iterable[EntityRecord]) -> List[EntityRecord]:
    seen: Set[str] = set()
    out = []
    for r in records:
        if r.id not in seen:
            seen.add(r.id)
            out.append(r)
    return out


def referenced_keys(
    records: Iterable[EntityRecord], handler: KindHandler
) -> Dict[EntityKind, Set[str]]:
    keys: Dict[EntityKind, Set[str]] = defaultdict(set)
    for record in records:
        for ref in handler.references(record):
            keys[ref.kind].add(ref.key)
    return keys


def resolve_scope(
    universe: Mapping[EntityKind, List[EntityRecord]],
    api_name: Optional[str],
    handlers: Mapping[EntityKind, KindHandler] = HANDLERS,
) -> Universe:
    if not api_name:
        return {kind: dedupe(universe.get(kind, [])) for kind in handlers}

    wanted: Dict[EntityKind, Set[str]] = defaultdict(set)
    scoped: Universe = {}
    for kind in referencing_order(handlers):
        handler = handlers[kind]
        records = universe.get(kind, [])

        if not handler.scoped:
            # kept whole, and not a root: its references do not widen the scope
            scoped[kind] = dedupe(records)
            continue
        if kind == EntityKind.API:
            selected = dedupe(r for r in records if r.name == api_name)
        else:
            selected = dedupe(
                r for r in records if any(k in wanted[kind] for k in handler.keys(r))
            )
        scoped[kind] = selected

        for ref_kind, keys in referenced_keys(selected, handler).items():
            wanted[ref_kind].update(keys)

    return {kind: scoped[kind] for kind in handlers}
