"""
Tests for the Elasticsearch tools, served by an in-process httpx mock transport.
"""

import json

import httpx
import pytest

from querypilot.config.settings import DataSourceConfig, DataSourceType
from querypilot.infra.elasticsearch import ElasticsearchClient
from querypilot.tools import (
    GetFieldStatsTool,
    GetIndexSummaryTool,
    GetMappingTool,
    ListIndicesTool,
    SampleDataTool,
    ValidateLuceneTool,
    ValidationVerdict,
)
from querypilot.tools.search_tools import flatten_mapping, human_size
from querypilot.utils.errors import DataSourceUnavailableError

MAPPING = {
    "logs-app": {
        "mappings": {
            "properties": {
                "@timestamp": {"type": "date"},
                "message": {"type": "text"},
                "status": {"type": "integer"},
                "service": {"type": "keyword"},
                "user": {
                    "properties": {
                        "name": {"type": "keyword"},
                        "api_token": {"type": "keyword"},
                    }
                },
            }
        }
    }
}


def _not_found(index: str) -> httpx.Response:
    return httpx.Response(
        404,
        json={"error": {"type": "index_not_found_exception", "reason": f"no such index [{index}]"}, "status": 404},
    )


def _search(body: dict) -> dict:
    aggs = body.get("aggs", {})
    if "top_values" in aggs:
        buckets = [{"key": "payments", "doc_count": 80}, {"key": "auth", "doc_count": 40}]
        return {"aggregations": {"top_values": {"buckets": buckets}}}
    if "field_stats" in aggs:
        return {"aggregations": {"field_stats": {"min": 200, "max": 503, "avg": 251.5, "count": 120}}}
    if "oldest" in aggs:
        return {
            "aggregations": {
                "oldest": {"value": 1.7e12, "value_as_string": "2024-01-01T00:00:00.000Z"},
                "newest": {"value": 1.8e12, "value_as_string": "2024-03-01T00:00:00.000Z"},
            }
        }
    hits = [
        {"_source": {"@timestamp": "2024-03-01T00:00:00Z", "service": "auth", "user": {"name": "bob", "api_token": "abc123"}}},
    ]
    return {"hits": {"hits": hits[: body.get("size", 3)]}}


def es_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/_cat/indices":
        return httpx.Response(200, json=[
            {"index": "logs-app", "docs.count": "120", "store.size": "2048"},
            {"index": ".kibana", "docs.count": "3", "store.size": "10"},
        ])

    index, _, endpoint = path.lstrip("/").partition("/")
    if index == "_validate":
        index, endpoint = "", "_validate/query"
    if index and index != "logs-app":
        return _not_found(index)

    if endpoint == "_mapping":
        return httpx.Response(200, json=MAPPING)
    if endpoint == "_search":
        return httpx.Response(200, json=_search(json.loads(request.content or b"{}")))
    if endpoint == "_count":
        return httpx.Response(200, json={"count": 120})
    if endpoint == "_stats/store":
        return httpx.Response(200, json={"_all": {"primaries": {"store": {"size_in_bytes": 2048}}}})
    if endpoint == "_validate/query":
        if "((" in request.url.params.get("q", ""):
            return httpx.Response(200, json={"valid": False, "explanations": [{"error": "Cannot parse '(('"}]})
        return httpx.Response(200, json={"valid": True})
    return httpx.Response(400, json={"error": f"unexpected path {path}"})


@pytest.fixture
def es_services(services, connections):
    connections.register(DataSourceConfig(id=2, name="logs", type=DataSourceType.ELASTICSEARCH, host="es.test"))
    client = ElasticsearchClient("http://es.test", transport=httpx.MockTransport(es_handler))
    connections.set_search_client(2, client)
    return services


class TestHelpers:
    """flatten_mapping() / human_size()"""

    def test_flatten_mapping(self):
        """Object fields become dotted paths"""
        fields = flatten_mapping(MAPPING)

        assert fields["user.name"] == "keyword"
        assert fields["@timestamp"] == "date"
        assert "user" not in fields

    def test_human_size(self):
        assert human_size(500) == "500 B"
        assert human_size(2048) == "2.0 KB"
        assert human_size(5 * 1024 * 1024) == "5.0 MB"


class TestSearchDiscovery:
    """Index discovery tools"""

    def test_list_indices_hides_system_indices(self, es_services):
        """Dot-prefixed indices are filtered out"""
        output = json.loads(ListIndicesTool(services=es_services).invoke({"data_source_id": 2}))
        assert output == [{"index": "logs-app", "docsCount": 120, "size": "2.0 KB"}]

    def test_get_mapping(self, es_services):
        output = json.loads(GetMappingTool(services=es_services).invoke({"index": "logs-app", "data_source_id": 2}))
        assert output["status"] == "integer"

    def test_unknown_index(self, es_services):
        """Cluster errors come back as text for the agent"""
        output = GetMappingTool(services=es_services).invoke({"index": "nope", "data_source_id": 2})
        assert output == "Error executing get_mapping: Elasticsearch 404: no such index [nope]"

    def test_invalid_index_name(self, es_services):
        output = GetMappingTool(services=es_services).invoke({"index": "logs app/../x", "data_source_id": 2})
        assert output == "Error: Invalid index name format."

    def test_keyword_field_stats(self, es_services):
        """Keyword fields report their top values"""
        output = json.loads(GetFieldStatsTool(services=es_services).invoke({
            "index": "logs-app", "field": "service", "data_source_id": 2,
        }))
        assert output["top_values"][0] == {"value": "payments", "count": 80}

    def test_numeric_field_stats(self, es_services):
        """Numeric fields report min/max/avg"""
        output = json.loads(GetFieldStatsTool(services=es_services).invoke({
            "index": "logs-app", "field": "status", "data_source_id": 2,
        }))
        assert output["stats"] == {"min": 200, "max": 503, "avg": 251.5, "count": 120}

    def test_sensitive_field_refused(self, es_services):
        output = GetFieldStatsTool(services=es_services).invoke({
            "index": "logs-app", "field": "user.api_token", "data_source_id": 2,
        })
        assert "sensitive" in output

    def test_unknown_field(self, es_services):
        output = GetFieldStatsTool(services=es_services).invoke({
            "index": "logs-app", "field": "latency", "data_source_id": 2,
        })
        assert output.startswith("Field 'latency' not found")

    def test_sample_data_redacts_nested_secrets(self, es_services):
        """Sensitive keys are hidden inside nested documents too"""
        output = SampleDataTool(services=es_services).invoke({"index": "logs-app", "data_source_id": 2})
        docs = json.loads(output)

        assert docs[0]["user"]["api_token"] == "[HIDDEN-FOR-SECURITY]"
        assert docs[0]["user"]["name"] == "bob"
        assert "abc123" not in output

    def test_index_summary(self, es_services):
        output = json.loads(GetIndexSummaryTool(services=es_services).invoke({"index": "logs-app", "data_source_id": 2}))

        assert output["count"] == 120
        assert output["size_bytes"] == 2048
        assert output["time_range"] == {"from": "2024-01-01T00:00:00.000Z", "to": "2024-03-01T00:00:00.000Z"}


class TestValidateLucene:
    """validate_lucene verdicts"""

    def _call(self, services, lucene):
        return ValidateLuceneTool(services=services).invoke({
            "name": "validate_lucene",
            "args": {"lucene": lucene, "index": "logs-app", "data_source_id": 2},
            "id": "call_1",
            "type": "tool_call",
        })

    def test_valid_query(self, es_services):
        message = self._call(es_services, "service:payments AND status:500")

        assert isinstance(message.artifact, ValidationVerdict)
        assert message.artifact.passed
        assert message.artifact.candidate == "service:payments AND status:500"

    def test_invalid_query(self, es_services):
        message = self._call(es_services, "status:((500")

        assert not message.artifact.passed
        assert message.artifact.error_category == "syntax_error"
        assert "Cannot parse" in message.artifact.reason
        assert message.artifact.hint

    def test_unreachable_cluster_raises(self, services, connections):
        """Connection failures propagate as infrastructure errors"""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        connections.register(DataSourceConfig(id=3, name="down", type=DataSourceType.ELASTICSEARCH))
        connections.set_search_client(3, ElasticsearchClient("http://down.test", transport=httpx.MockTransport(refuse)))

        with pytest.raises(DataSourceUnavailableError):
            ListIndicesTool(services=services).invoke({"data_source_id": 3})
