"""
Shared fixtures: an in-memory stand-in for ManagementClient serving the
recorded tenant in fixtures/tenant.yaml.
"""
import copy
import os
import threading

import pytest
import yaml

from apimextract.config import ExtractorConfig
from apimextract.errors import SourceUnavailable

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


def load_tenant(name: str = "tenant.yaml") -> dict:
    with open(os.path.join(FIXTURES, name), "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


class FakeClient:
    """Serves responses keyed by service-relative path; unknown paths are 404s."""

    def __init__(self, responses, failing=()):
        self.responses = responses
        self.failing = set(failing)
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def _record(self, path):
        with self._lock:
            self.calls.append(path)
        if path in self.failing:
            raise SourceUnavailable(f"GET {path} returned 503: Service Unavailable")

    def list(self, path, params=None):
        self._record(path)
        return copy.deepcopy(self.responses.get(path) or [])

    def get(self, path, params=None):
        self._record(path)
        value = self.responses.get(path)
        return copy.deepcopy(value) if value is not None else None

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def make_config(folder="out", **overrides) -> ExtractorConfig:
    values = dict(
        source_apim_name="contoso",
        destination_apim_name="contoso-prod",
        resource_group="rg-apim",
        file_folder=str(folder),
    )
    values.update(overrides)
    return ExtractorConfig(**values)


@pytest.fixture
def tenant():
    return load_tenant()


@pytest.fixture
def client(tenant):
    return FakeClient(tenant)
