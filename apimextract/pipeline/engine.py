"""
Extraction orchestrator: fetch -> scope -> build -> crosslink -> assemble.

No file IO happens here; the caller writes the returned bundle.
"""
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from graphlib import TopologicalSorter
from typing import Dict, List, Mapping, Optional

from apimextract.config import ExtractorConfig
from apimextract.errors import ExtractionError
from apimextract.events import EventStream
from apimextract.extractors import HANDLERS, BuildContext, KindHandler
from apimextract.models.entity import EntityKind
from apimextract.models.template import ParametersFile, Template
from apimextract.naming import FileNames, generate_file_names
from apimextract.pipeline.crosslink import FlaggedReference, crosslink
from apimextract.pipeline.master import build_master_template, build_parameters
from apimextract.pipeline.scope import Universe, resolve_scope


@dataclass
class ExtractionResult:
    config: ExtractorConfig
    file_names: FileNames
    templates: Dict[EntityKind, Template]
    parameters: ParametersFile
    master: Optional[Template] = None
    flags: List[FlaggedReference] = field(default_factory=list)
    kind_edges: Dict[EntityKind, List[EntityKind]] = field(default_factory=dict)
    # relative path -> XML, for policies linked through PolicyXMLBaseUrl
    policy_files: Dict[str, str] = field(default_factory=dict)
    record_counts: Dict[EntityKind, int] = field(default_factory=dict)


def fetch_all(
    client,
    config: ExtractorConfig,
    handlers: Mapping[EntityKind, KindHandler] = HANDLERS,
    events: Optional[EventStream] = None,
) -> Universe:
    """
    Read every kind, dependencies first, at most `max_workers` at a time.
    The first failure cancels reads not yet started and propagates.
    """
    events = events or EventStream()
    sorter = TopologicalSorter({
        kind: tuple(d for d in h.depends_on if d in handlers) for kind, h in handlers.items()
    })
    sorter.prepare()
    universe: Universe = {}

    with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
        pending: Dict[Future, EntityKind] = {}
        while sorter.is_active():
            for kind in sorter.get_ready():
                events.emit("fetch", f"Reading {kind.value}…", kind=kind.value, level="debug")
                pending[pool.submit(handlers[kind].fetch, client, config)] = kind

            done, _ = wait(list(pending), return_when=FIRST_COMPLETED)
            for future in done:
                kind = pending.pop(future)
                try:
                    records = future.result()
                except Exception as exc:
                    for other in pending:
                        other.cancel()
                    if isinstance(exc, ExtractionError) and exc.kind is None:
                        exc.kind = kind.value
                    raise
                universe[kind] = records
                events.emit(
                    "fetch", f"Fetched {len(records)} {kind.value}",
                    kind=kind.value, count=len(records),
                )
                sorter.done(kind)

    return {kind: universe[kind] for kind in handlers}


def run(
    config: ExtractorConfig,
    client,
    events: Optional[EventStream] = None,
    handlers: Mapping[EntityKind, KindHandler] = HANDLERS,
) -> ExtractionResult:
    events = events or EventStream()
    config.validate()

    if config.scoped:
        events.emit("fetch", f"Executing extraction for {config.api_name} API …")
    else:
        events.emit("fetch", "Executing full extraction …")

    # 1. Fetch the whole entity universe
    universe = fetch_all(client, config, handlers, events)

    # 2. Narrow to the requested API
    in_scope = resolve_scope(universe, config.api_name, handlers)
    if config.scoped:
        for kind, records in in_scope.items():
            events.emit(
                "scope", f"{len(records)} of {len(universe[kind])} {kind.value} in scope",
                kind=kind.value, count=len(records), level="debug",
            )

    # 3. Build per-kind templates
    ctx = BuildContext(policy_xml_base_url=config.policy_xml_base_url)
    templates: Dict[EntityKind, Template] = {}
    for kind, handler in handlers.items():
        templates[kind] = handler.build(in_scope[kind], ctx)
        events.emit(
            "build", f"Built {len(templates[kind])} resources for {kind.value}",
            kind=kind.value, count=len(templates[kind]), level="debug",
        )

    # 4. Cross-link
    linked = crosslink(
        templates, scoped=config.scoped, universe=universe, handlers=handlers, events=events
    )

    # 5. Assemble
    file_names = generate_file_names(config.source_apim_name, config.api_name)
    master = None
    if config.linked:
        master = build_master_template(linked.templates, linked.kind_edges, file_names, config)
        events.emit("assemble", f"Linked master template with {len(master)} deployments", count=len(master))

    return ExtractionResult(
        config=config,
        file_names=file_names,
        templates=linked.templates,
        parameters=build_parameters(config, linked.templates),
        master=master,
        flags=linked.flags,
        kind_edges=linked.kind_edges,
        policy_files=dict(ctx.policy_files),
        record_counts={kind: len(records) for kind, records in in_scope.items()},
    )

