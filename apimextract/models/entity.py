from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EntityKind(str, Enum):
    API                  = "apis"
    API_VERSION_SET      = "apiVersionSets"
    AUTHORIZATION_SERVER = "authorizationServers"
    BACKEND              = "backends"
    LOGGER               = "loggers"
    NAMED_VALUE          = "namedValues"
    TAG                  = "tags"
    PRODUCT              = "products"
    SERVICE_POLICY       = "globalServicePolicy"


@dataclass(frozen=True)
class EntityRecord:
    """One configuration object as fetched from the source service."""

    kind: EntityKind
    id: str                      # ARM id, e.g. ".../service/svc/apis/echo-api"
    name: str                    # last segment of the id
    properties: Dict[str, Any] = field(default_factory=dict)
    raw_payload: Optional[str] = None   # policy XML, when the entity carries one
    related: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.kind.value}/{self.name}"
