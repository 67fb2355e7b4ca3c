"""
Markdown + Mermaid summary of an extracted bundle.
"""
import re
from datetime import datetime, timezone
from typing import List

from jinja2 import Environment

from apimextract import __version__
from apimextract.naming import deployment_name
from apimextract.pipeline.engine import ExtractionResult


def _node_id(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_]", "_", name)


def build_mermaid(result: ExtractionResult) -> str:
    """Template-level dependency graph: an edge A --> B means A deploys after B."""
    lines = ["flowchart RL"]
    present = [kind for kind, t in result.templates.items() if len(t)]
    for kind in present:
        lines.append(f"    {_node_id(kind.value)}[{deployment_name(kind)}]")
    for kind in present:
        for dep in result.kind_edges.get(kind, []):
            if dep in present:
                lines.append(f"    {_node_id(kind.value)} --> {_node_id(dep.value)}")
    return "\n".join(lines)


_TEMPLATE = """\
# APIM Extraction Summary

**Generated:** {{ generated }}
**Source:** `{{ config.source_apim_name }}` ({{ config.resource_group }})
**Destination:** `{{ config.destination_apim_name }}`
**Scope:** {% if config.api_name %}single API `{{ config.api_name }}`{% else %}full extraction{% endif %}
**Tool:** apimextract v{{ version }}

---

## Templates

| Entity kind | File | Entities | Resources |
|-------------|------|----------|-----------|
{% for row in rows %}| {{ row.kind }} | `{{ row.file }}` | {{ row.records }} | {{ row.resources }} |
{% endfor %}
{% if master_file %}
Linked master template: `{{ master_file }}` ({{ master_count }} nested deployments)
{% endif %}
Parameters file: `{{ parameters_file }}`
{% if secrets %}
Fill in these secrets before deploying; the service did not return their values:

{% for name in secrets %}- `{{ name }}`
{% endfor %}{% endif %}{% if policy_files %}
## Policy files

{% for path in policy_files %}- `{{ path }}`
{% endfor %}{% endif %}
## Flagged references

{% if flags %}| Source | Target | Reason | Resource dropped |
|--------|--------|--------|------------------|
{% for f in flags %}| `{{ f.source }}` | {{ f.kind.value }} `{{ f.key }}` | {{ f.reason }} | {{ "yes" if f.resource_dropped else "no" }} |
{% endfor %}{% else %}None. Every reference resolved inside the bundle.
{% endif %}
## Deployment Order

```mermaid
{{ mermaid }}
```
"""


def build_report(result: ExtractionResult) -> str:
    rows: List[dict] = []
    for kind, template in result.templates.items():
        rows.append({
            "kind": kind.value,
            "file": result.file_names.for_kind(kind),
            "records": result.record_counts.get(kind, 0),
            "resources": len(template),
        })

    env = Environment(autoescape=False)
    template = env.from_string(_TEMPLATE)

    return template.render(
        generated=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        config=result.config,
        version=__version__,
        rows=rows,
        master_file=result.file_names.linked_master if result.master is not None else None,
        master_count=len(result.master) if result.master is not None else 0,
        parameters_file=result.file_names.parameters,
        secrets=result.parameters.secrets,
        policy_files=sorted(result.policy_files),
        flags=result.flags,
        mermaid=build_mermaid(result),
    )
