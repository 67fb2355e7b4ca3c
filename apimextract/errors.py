"""
Error taxonomy for the extraction pipeline.

Every fatal condition aborts the run before any file is written.
"""
from typing import Optional


class ExtractionError(Exception):
    """Base class; carries the failing stage and, when known, the entity."""

    stage = "extract"

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        entity_id: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.entity_id = entity_id
        if stage:
            self.stage = stage

    def describe(self) -> str:
        where = " ".join(p for p in (self.kind, self.entity_id) if p)
        if where:
            return f"Extraction failed during {self.stage} ({where}): {self.message}"
        return f"Extraction failed during {self.stage}: {self.message}"


class MissingParameter(ExtractionError):
    stage = "configuration"

    def __init__(self, parameter: str) -> None:
        super().__init__(f"Missing parameter <{parameter}>.")
        self.parameter = parameter


class SourceUnavailable(ExtractionError):
    stage = "fetch"


class InvalidEntity(ExtractionError):
    stage = "build"

    def __init__(self, field_name: str, kind: str, entity_id: str) -> None:
        super().__init__(
            f"missing mandatory field '{field_name}'", kind=kind, entity_id=entity_id
        )
        self.field_name = field_name


class UnresolvedReference(ExtractionError):
    stage = "crosslink"

    def __init__(self, source: str, target_kind: str, target_key: str) -> None:
        super().__init__(
            f"{source} references {target_kind} '{target_key}' which does not exist "
            f"in the source service",
            kind=target_kind,
            entity_id=target_key,
        )
        self.source = source
        self.target_kind = target_kind
        self.target_key = target_key


class DependencyCycle(ExtractionError):
    stage = "crosslink"
