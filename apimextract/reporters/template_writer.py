"""
Serialize an extraction result and write it to the output folder.
"""
import json
import os
from typing import Any, Dict, List

from apimextract.pipeline.engine import ExtractionResult


def dumps(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def render_bundle(result: ExtractionResult) -> Dict[str, str]:
    """Relative path -> file content, for every file of the bundle."""
    names = result.file_names
    files: Dict[str, str] = {}
    for kind, template in result.templates.items():
        files[names.for_kind(kind)] = dumps(template.to_dict())
    if result.master is not None:
        files[names.linked_master] = dumps(result.master.to_dict())
    files[names.parameters] = dumps(result.parameters.to_dict())
    for path, xml in result.policy_files.items():
        files[path] = xml
    return files


def write_bundle(files: Dict[str, str], folder: str) -> List[str]:
    written = []
    for rel_path, content in files.items():
        path = os.path.join(folder, *rel_path.split("/"))
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)
        written.append(path)
    return written
