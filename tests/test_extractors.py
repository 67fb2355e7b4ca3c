"""
Per-kind handlers: fetching from the service and building ARM resources.
"""
import pytest

from apimextract.errors import ExtractionError, InvalidEntity
from apimextract.extractors.api_version_sets import ApiVersionSetHandler
from apimextract.extractors.apis import ApiHandler
from apimextract.extractors.base import BuildContext, to_record
from apimextract.extractors.backends import BackendHandler
from apimextract.extractors.loggers import LoggerHandler
from apimextract.extractors.named_values import NamedValueHandler, secret_parameter
from apimextract.extractors.policy import add_policy, named_value_refs, scan_policy
from apimextract.extractors.products import ProductHandler
from apimextract.extractors.service_policy import ServicePolicyHandler
from apimextract.extractors.tags import TagHandler
from apimextract.models.entity import EntityKind
from apimextract.models.template import Template

from conftest import FakeClient, make_config


def _refs(refs):
    return [(r.kind, r.key) for r in refs]


# --------------------------------------------------------- Policy scanning
class TestPolicyScanning:
    def test_named_values_backends_and_loggers(self):
        xml = (
            '<policies><inbound><set-header name="a"><value>{{key-a}}</value></set-header>'
            '<set-backend-service backend-id="orders" />'
            '<log-to-eventhub logger-id="hub">msg {{key-b}}</log-to-eventhub></inbound></policies>'
        )
        assert _refs(scan_policy(xml)) == [
            (EntityKind.NAMED_VALUE, "key-a"),
            (EntityKind.NAMED_VALUE, "key-b"),
            (EntityKind.BACKEND, "orders"),
            (EntityKind.LOGGER, "hub"),
        ]

    def test_liquid_templates_are_not_named_values(self):
        xml = (
            '<policies><outbound><set-body template="liquid">{"id": "{{body.id}}"}</set-body>'
            '<set-header name="x"><value>{{real}}</value></set-header></outbound></policies>'
        )
        assert _refs(scan_policy(xml)) == [(EntityKind.NAMED_VALUE, "real")]

    def test_dynamic_backend_ids_are_skipped(self):
        xml = (
            '<set-backend-service backend-id="@(context.Variables[&quot;b&quot;])" />'
            '<set-backend-service backend-id="{{backend-name}}" />'
        )
        assert _refs(scan_policy(xml)) == [(EntityKind.NAMED_VALUE, "backend-name")]

    def test_duplicates_collapse_in_document_order(self):
        xml = "{{b}} {{a}} {{b}}"
        assert _refs(scan_policy(xml)) == [
            (EntityKind.NAMED_VALUE, "b"),
            (EntityKind.NAMED_VALUE, "a"),
        ]

    def test_empty_policy(self):
        assert scan_policy(None) == []
        assert scan_policy("") == []

    def test_named_value_refs_walks_nested_values(self):
        props = {"credentials": {"header": {"x": ["{{one}}", "{{two}}"]}, "query": "{{one}}"}}
        assert named_value_refs(props) == ["one", "two"]


# --------------------------------------------------------- Simple kinds
class TestSimpleKinds:
    def setup_method(self):
        self.ctx = BuildContext()

    def test_tag_requires_display_name(self):
        record = to_record(EntityKind.TAG, {"name": "t", "properties": {}})
        with pytest.raises(InvalidEntity) as info:
            TagHandler().build([record], self.ctx)
        assert info.value.field_name == "displayName"
        assert info.value.stage == "build"
        assert info.value.kind == "tags"

    def test_version_set_strips_read_only_fields(self):
        record = to_record(EntityKind.API_VERSION_SET, {
            "name": "vs",
            "properties": {
                "displayName": "VS",
                "versioningScheme": "Header",
                "versionHeaderName": "api-version",
                "provisioningState": "Succeeded",
            },
        })
        template = ApiVersionSetHandler().build([record], self.ctx)
        resource = template.resources[0]
        assert resource.type == "Microsoft.ApiManagement/service/apiVersionSets"
        assert resource.properties == {
            "displayName": "VS",
            "versioningScheme": "Header",
            "versionHeaderName": "api-version",
        }
        assert resource.key == "vs"

    def test_backend_requires_url_and_protocol(self):
        record = to_record(EntityKind.BACKEND, {"name": "b", "properties": {"url": "https://b"}})
        with pytest.raises(InvalidEntity) as info:
            BackendHandler().build([record], self.ctx)
        assert info.value.field_name == "protocol"

    def test_backend_credentials_reference_named_values(self):
        record = to_record(EntityKind.BACKEND, {
            "name": "b",
            "properties": {
                "url": "https://b",
                "protocol": "http",
                "credentials": {"header": {"key": ["{{backend-key}}"]}},
            },
        })
        assert _refs(BackendHandler().references(record)) == [(EntityKind.NAMED_VALUE, "backend-key")]

    def test_logger_credentials_reference_named_values(self):
        record = to_record(EntityKind.LOGGER, {
            "name": "ai",
            "properties": {
                "loggerType": "applicationInsights",
                "credentials": {"instrumentationKey": "{{Logger-Credentials--1}}"},
                "isBuffered": True,
            },
        })
        assert _refs(LoggerHandler().references(record)) == [
            (EntityKind.NAMED_VALUE, "Logger-Credentials--1")
        ]


# --------------------------------------------------------- Named values
class TestNamedValues:
    def setup_method(self):
        self.handler = NamedValueHandler()

    def test_display_name_is_an_alias(self):
        record = to_record(EntityKind.NAMED_VALUE, {
            "name": "global-nv", "properties": {"displayName": "GlobalHeader", "value": "x"},
        })
        assert self.handler.keys(record) == ("global-nv", "GlobalHeader")
        resource = self.handler.build([record], BuildContext()).resources[0]
        assert resource.aliases == ("GlobalHeader",)

    def test_secret_without_value_becomes_secure_parameter(self):
        record = to_record(EntityKind.NAMED_VALUE, {
            "name": "db.password", "properties": {"displayName": "db-password", "secret": True},
        })
        template = self.handler.build([record], BuildContext())
        param = secret_parameter("db.password")
        assert param == "namedValue_db_password"
        assert template.parameters[param] == {"type": "securestring"}
        assert template.resources[0].properties["value"] == f"[parameters('{param}')]"

    def test_key_vault_secret_needs_no_parameter(self):
        record = to_record(EntityKind.NAMED_VALUE, {
            "name": "kv",
            "properties": {
                "displayName": "kv",
                "secret": True,
                "keyVault": {"secretIdentifier": "https://vault/secrets/kv"},
            },
        })
        template = self.handler.build([record], BuildContext())
        assert list(template.parameters) == ["ApimServiceName"]
        assert "value" not in template.resources[0].properties


# --------------------------------------------------------- Products
class TestProducts:
    def setup_method(self):
        self.handler = ProductHandler()

    def test_open_product_drops_subscription_fields(self):
        record = to_record(EntityKind.PRODUCT, {
            "name": "free",
            "properties": {
                "displayName": "Free",
                "subscriptionRequired": False,
                "approvalRequired": True,
                "subscriptionsLimit": 3,
            },
        })
        props = self.handler.build([record], BuildContext()).resources[0].properties
        assert props == {"displayName": "Free", "subscriptionRequired": False}

    def test_fetch_reads_policy_and_tags(self, client):
        records = {r.name: r for r in self.handler.fetch(client, make_config())}
        assert list(records) == ["starter", "unlimited", "partners"]
        assert "{{product-quota}}" in records["starter"].raw_payload
        assert records["unlimited"].raw_payload is None
        assert records["partners"].related["tags"] == ["partner"]

    def test_tag_links_require_their_tag(self, client):
        partners = [r for r in self.handler.fetch(client, make_config()) if r.name == "partners"]
        template = self.handler.build(partners, BuildContext())
        link = template.resources[1]
        assert link.type == "Microsoft.ApiManagement/service/products/tags"
        assert link.references[0].kind == EntityKind.TAG
        assert link.references[0].required
        assert link.depends_on == [template.resources[0].resource_id]

    def test_membership_links_live_in_the_product_template(self, client):
        unlimited = [r for r in self.handler.fetch(client, make_config()) if r.name == "unlimited"]
        template = self.handler.build(unlimited, BuildContext())
        links = [r for r in template.resources if r.type.endswith("products/apis")]
        assert [link.name for link in links] == [
            "[concat(parameters('ApimServiceName'), '/unlimited/echo-api')]",
            "[concat(parameters('ApimServiceName'), '/unlimited/orders-api')]",
        ]
        assert all(link.references[0].kind == EntityKind.API for link in links)


# --------------------------------------------------------- Policies
class TestPolicyResources:
    def test_inline_policy(self, client):
        records = ServicePolicyHandler().fetch(client, make_config())
        template = ServicePolicyHandler().build(records, BuildContext())
        policy = template.resources[0]
        assert policy.type == "Microsoft.ApiManagement/service/policies"
        assert policy.name == "[concat(parameters('ApimServiceName'), '/policy')]"
        assert policy.properties["format"] == "rawxml"
        assert "{{GlobalHeader}}" in policy.properties["value"]
        assert "PolicyXMLBaseUrl" not in template.parameters

    def test_linked_policy_is_scheduled_as_a_file(self, client):
        ctx = BuildContext(policy_xml_base_url="https://store/policies")
        records = ServicePolicyHandler().fetch(client, make_config())
        template = ServicePolicyHandler().build(records, ctx)
        policy = template.resources[0]
        assert policy.properties == {
            "format": "rawxml-link",
            "value": "[concat(parameters('PolicyXMLBaseUrl'), '/globalServicePolicy.xml')]",
        }
        assert template.parameters["PolicyXMLBaseUrl"] == {"type": "string"}
        assert "{{GlobalHeader}}" in ctx.policy_files["policies/globalServicePolicy.xml"]

    def test_operation_policies_of_hyphenated_apis_get_their_own_files(self):
        def api(name, op_name, xml):
            op = {
                "name": op_name,
                "properties": {"displayName": op_name, "method": "GET", "urlTemplate": "/"},
                "policy": xml,
            }
            item = {"name": name, "properties": {"displayName": name, "path": name}}
            return to_record(EntityKind.API, item, related={"operations": [op]})

        ctx = BuildContext(policy_xml_base_url="https://store/policies")
        ApiHandler().build([
            api("echo-api", "get", "<policies>FIRST</policies>"),
            api("echo", "api-get", "<policies>SECOND</policies>"),
        ], ctx)
        assert ctx.policy_files == {
            "policies/apis/echo-api/get-operationPolicy.xml": "<policies>FIRST</policies>",
            "policies/apis/echo/api-get-operationPolicy.xml": "<policies>SECOND</policies>",
        }

    def test_conflicting_policy_file_is_rejected(self):
        ctx = BuildContext(policy_xml_base_url="https://store/policies")
        template = Template(kind=EntityKind.API)
        add_policy(template, ctx, "<policies>A</policies>", "api_policy", EntityKind.API, ("echo",))
        with pytest.raises(ExtractionError) as info:
            add_policy(template, ctx, "<policies>B</policies>", "api_policy", EntityKind.API, ("echo",))
        assert info.value.stage == "build"
        assert ctx.policy_files["policies/apis/echo/apiPolicy.xml"] == "<policies>A</policies>"

    def test_no_service_policy(self):
        assert ServicePolicyHandler().fetch(FakeClient({}), make_config()) == []


# --------------------------------------------------------- APIs
class TestApis:
    def setup_method(self):
        self.handler = ApiHandler()

    def test_fetch_gathers_child_collections(self, client):
        records = self.handler.fetch(client, make_config())
        assert [r.name for r in records] == ["echo-api", "orders-api"]
        echo = records[0]
        assert echo.related["products"] == ["starter", "unlimited"]
        assert echo.related["tags"] == ["public"]
        assert echo.related["operations"][0]["tags"] == ["read"]
        assert "{{op-header}}" in echo.related["operations"][0]["policy"]
        assert "set-backend-service" in echo.raw_payload

    def test_single_api_fetch(self, client):
        records = self.handler.fetch(client, make_config(api_name="echo-api"))
        assert [r.name for r in records] == ["echo-api"]
        assert "apis" not in client.calls

    def test_single_api_must_exist(self, client):
        with pytest.raises(ExtractionError) as info:
            self.handler.fetch(client, make_config(api_name="nope"))
        assert info.value.stage == "fetch"
        assert info.value.entity_id == "nope"

    def test_build_resources(self, client):
        echo = self.handler.fetch(client, make_config(api_name="echo-api"))[0]
        template = self.handler.build([echo], BuildContext())
        types = [r.type.rsplit("/", 1)[-1] for r in template.resources]
        assert types == [
            "apis", "policies", "schemas", "operations", "policies", "tags",
            "diagnostics", "tags",
        ]
        api = template.resources[0]
        assert "provisioningState" not in api.properties
        operation = template.resources[3]
        assert operation.depends_on == [api.resource_id, template.resources[2].resource_id]

    def test_references_cover_every_related_kind(self, client):
        echo = self.handler.fetch(client, make_config(api_name="echo-api"))[0]
        assert set(_refs(self.handler.references(echo))) == {
            (EntityKind.API_VERSION_SET, "echo-set"),
            (EntityKind.NAMED_VALUE, "backend-key"),
            (EntityKind.NAMED_VALUE, "op-header"),
            (EntityKind.BACKEND, "echo-backend"),
            (EntityKind.TAG, "read"),
            (EntityKind.TAG, "public"),
            (EntityKind.LOGGER, "appinsights"),
            (EntityKind.PRODUCT, "starter"),
            (EntityKind.PRODUCT, "unlimited"),
        }

    def test_authorization_server_orders_only(self, client):
        orders = self.handler.fetch(client, make_config(api_name="orders-api"))[0]
        ref = next(r for r in self.handler.references(orders) if r.kind == EntityKind.AUTHORIZATION_SERVER)
        assert ref.key == "oauth-server"
        assert ref.field is None

    def test_operation_requires_method(self):
        record = to_record(EntityKind.API, {
            "name": "a",
            "properties": {"displayName": "A", "path": "a"},
        }, related={"operations": [{"name": "op", "properties": {"displayName": "Op", "urlTemplate": "/"}}]})
        with pytest.raises(InvalidEntity) as info:
            self.handler.build([record], BuildContext())
        assert info.value.field_name == "method"

    def test_api_requires_path(self):
        record = to_record(EntityKind.API, {"name": "a", "properties": {"displayName": "A"}})
        with pytest.raises(InvalidEntity) as info:
            self.handler.build([record], BuildContext())
        assert info.value.field_name == "path"
        assert info.value.entity_id == "a"
