"""
Single-API scope resolution over the recorded tenant.
"""
from apimextract.extractors import HANDLERS
from apimextract.extractors.base import to_record
from apimextract.models.entity import EntityKind
from apimextract.pipeline.engine import fetch_all
from apimextract.pipeline.scope import dedupe, referencing_order, resolve_scope

from conftest import FakeClient, load_tenant, make_config


def _names(universe):
    return {kind: [r.name for r in records] for kind, records in universe.items()}


class TestResolveScope:
    def setup_method(self):
        self.universe = fetch_all(FakeClient(load_tenant()), make_config())

    def test_full_extraction_keeps_everything(self):
        scoped = resolve_scope(self.universe, None)
        assert _names(scoped) == _names(self.universe)

    def test_echo_api_scope(self):
        names = _names(resolve_scope(self.universe, "echo-api"))
        assert names[EntityKind.API] == ["echo-api"]
        assert names[EntityKind.API_VERSION_SET] == ["echo-set"]
        assert names[EntityKind.AUTHORIZATION_SERVER] == []
        assert names[EntityKind.TAG] == ["public", "read"]
        assert names[EntityKind.LOGGER] == ["appinsights"]
        assert names[EntityKind.BACKEND] == ["echo-backend"]
        assert names[EntityKind.NAMED_VALUE] == [
            "backend-key", "op-header", "product-quota", "appinsights-key",
        ]

    def test_products_of_the_api_only(self):
        # echo-api belongs to two products; "partners" is unrelated
        names = _names(resolve_scope(self.universe, "echo-api"))
        assert names[EntityKind.PRODUCT] == ["starter", "unlimited"]

    def test_service_policy_is_kept_but_does_not_widen_scope(self):
        names = _names(resolve_scope(self.universe, "echo-api"))
        assert names[EntityKind.SERVICE_POLICY] == ["policy"]
        # the service policy uses GlobalHeader (global-nv)
        assert "global-nv" not in names[EntityKind.NAMED_VALUE]

    def test_orders_api_scope(self):
        names = _names(resolve_scope(self.universe, "orders-api"))
        assert names[EntityKind.API] == ["orders-api"]
        assert names[EntityKind.PRODUCT] == ["unlimited", "partners"]
        assert names[EntityKind.TAG] == ["partner"]
        assert names[EntityKind.AUTHORIZATION_SERVER] == ["oauth-server"]
        assert names[EntityKind.NAMED_VALUE] == []

    def test_unknown_api_selects_nothing(self):
        names = _names(resolve_scope(self.universe, "missing-api"))
        assert all(not v for k, v in names.items() if k != EntityKind.SERVICE_POLICY)

    def test_same_as_direct_single_api_extraction(self):
        for api_name in ("echo-api", "orders-api"):
            config = make_config(api_name=api_name)
            direct = resolve_scope(fetch_all(FakeClient(load_tenant()), config), api_name)
            filtered = resolve_scope(self.universe, api_name)
            assert {k: [r.id for r in v] for k, v in direct.items()} == {
                k: [r.id for r in v] for k, v in filtered.items()
            }

    def test_entities_appear_once(self):
        product = self.universe[EntityKind.PRODUCT][0]
        universe = dict(self.universe)
        universe[EntityKind.PRODUCT] = [product, product] + self.universe[EntityKind.PRODUCT][1:]
        names = _names(resolve_scope(universe, "echo-api"))
        assert names[EntityKind.PRODUCT] == ["starter", "unlimited"]


class TestHelpers:
    def test_referencing_kinds_come_first(self):
        order = referencing_order(HANDLERS)
        assert order.index(EntityKind.API) < order.index(EntityKind.PRODUCT)
        assert order.index(EntityKind.PRODUCT) < order.index(EntityKind.TAG)
        assert order.index(EntityKind.BACKEND) < order.index(EntityKind.NAMED_VALUE)
        assert order.index(EntityKind.LOGGER) < order.index(EntityKind.NAMED_VALUE)

    def test_dedupe_keeps_first_occurrence(self):
        a = to_record(EntityKind.TAG, {"id": "t/a", "name": "a", "properties": {"displayName": "A"}})
        b = to_record(EntityKind.TAG, {"id": "t/b", "name": "b", "properties": {"displayName": "B"}})
        assert dedupe([b, a, b]) == [b, a]
