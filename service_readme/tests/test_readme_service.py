"""
Unit tests for the README service HTTP surface.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from shared.errors import ClassifiedError, ErrorKind
from shared.test_helpers import RecordingSleep, TestEnvironment
from service_readme.app.domain.models import DownloadStats, Found, NotFound, PackageMetadata
from service_readme.app.main import ReadmeService
from service_readme.app.tools.definitions import GET_INFO_TOOL, GET_README_TOOL, SEARCH_TOOL


def tool_call(name, arguments=None):
    body = {"name": name}
    if arguments is not None:
        body["arguments"] = arguments
    return body


class TestReadmeService:
    """Test cases for ReadmeService."""

    @pytest.fixture
    def nuget(self):
        nuget = MagicMock()
        nuget.package_exists = AsyncMock(return_value=True)
        nuget.get_versions = AsyncMock(return_value=Found(["1.0.0", "1.2.0"]))
        nuget.get_metadata = AsyncMock(return_value=Found(PackageMetadata(
            id="Acme.Widget",
            version="1.2.0",
            description="A widget library for .NET",
            authors="Acme Corp",
            project_url="https://github.com/acme/widget",
        )))
        nuget.get_readme = AsyncMock(return_value=Found("# Acme.Widget\n\nWidgets."))
        nuget.get_enhanced_metadata = AsyncMock(return_value=NotFound())
        nuget.get_download_stats = AsyncMock(return_value=DownloadStats())
        nuget.search = AsyncMock()
        nuget.close = AsyncMock()
        return nuget

    @pytest.fixture
    def github(self):
        github = MagicMock()
        github.get_readme = AsyncMock(return_value=NotFound())
        github.close = AsyncMock()
        return github

    @pytest.fixture
    def service(self, nuget, github):
        return ReadmeService(
            TestEnvironment.create_config(),
            nuget=nuget,
            github=github,
            sleep=RecordingSleep(),
        )

    @pytest.fixture
    def client(self, service):
        with TestClient(service.app) as client:
            yield client

    def test_list_tools(self, client):
        response = client.get("/tools")

        assert response.status_code == 200
        tools = response.json()["tools"]
        assert [tool["name"] for tool in tools] == [GET_README_TOOL, GET_INFO_TOOL, SEARCH_TOOL]
        assert tools[0]["inputSchema"]["required"] == ["package_name"]
        assert tools[2]["inputSchema"]["required"] == ["query"]

    def test_call_get_readme(self, client):
        response = client.post("/tools/call", json=tool_call(GET_README_TOOL, {"package_name": "Acme.Widget"}))

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["package_name"] == "Acme.Widget"
        assert result["version"] == "1.2.0"
        assert result["exists"] is True
        assert result["readme_source"] == "primary"
        assert result["installation"]["command"] == "dotnet add package Acme.Widget"

    def test_missing_package_is_not_an_error(self, client, nuget):
        nuget.package_exists.return_value = False

        response = client.post("/tools/call", json=tool_call(GET_INFO_TOOL, {"package_name": "ghost-package"}))

        assert response.status_code == 200
        assert response.json()["result"]["exists"] is False

    def test_unknown_tool(self, client):
        response = client.post("/tools/call", json=tool_call("get_readme_from_npm", {}))

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["reason"] == "UNKNOWN_TOOL"

    def test_arguments_must_be_an_object(self, client):
        response = client.post("/tools/call", json=tool_call(GET_README_TOOL, ["Acme.Widget"]))

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "INVALID_ARGUMENTS"

    def test_missing_arguments_fail_validation(self, client, nuget):
        response = client.post("/tools/call", json=tool_call(GET_README_TOOL))

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "INVALID_PACKAGE_NAME"
        nuget.package_exists.assert_not_called()

    def test_malformed_request_body(self, client):
        response = client.post("/tools/call", json={"arguments": {}})

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "INVALID_REQUEST"

    def test_search_limit_validation(self, client, nuget):
        response = client.post("/tools/call", json=tool_call(SEARCH_TOOL, {"query": "json", "limit": 500}))

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "INVALID_LIMIT"
        nuget.search.assert_not_called()

    @pytest.mark.parametrize("kind, status_code", [
        (ErrorKind.RATE_LIMITED, 429),
        (ErrorKind.SERVER_UNAVAILABLE, 503),
        (ErrorKind.NETWORK, 503),
        (ErrorKind.TIMEOUT, 504),
        (ErrorKind.UNKNOWN, 500),
    ])
    def test_upstream_failures_map_to_status(self, client, nuget, kind, status_code):
        nuget.package_exists.side_effect = ClassifiedError(kind, "registry failure")

        response = client.post("/tools/call", json=tool_call(GET_INFO_TOOL, {"package_name": "Acme.Widget"}))

        assert response.status_code == status_code
        assert response.json()["code"] == ClassifiedError(kind, "x").code

    def test_error_carries_request_id(self, client):
        response = client.post(
            "/tools/call",
            json=tool_call("nope", {}),
            headers={"X-Request-ID": "req-123"},
        )

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json()["trace_id"] == "req-123"

    def test_health_reports_cache(self, client):
        client.post("/tools/call", json=tool_call(GET_README_TOOL, {"package_name": "Acme.Widget"}))

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["dependencies"]["cache"]["entries"] == 1
        assert body["dependencies"]["cache"]["sweeping"] is True

    def test_metrics_endpoint(self, client):
        client.post("/tools/call", json=tool_call(GET_README_TOOL, {"package_name": "Acme.Widget"}))

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "tool_calls_total" in response.text
        assert 'outcome="success"' in response.text

    def test_shutdown_releases_resources(self, service, nuget, github):
        with TestClient(service.app):
            pass

        nuget.close.assert_awaited_once()
        github.close.assert_awaited_once()
        with pytest.raises(RuntimeError):
            service.cache.start()


class TestCallTool:
    """Test cases for direct tool dispatch."""

    @pytest.mark.asyncio
    async def test_non_classified_failure_is_wrapped(self):
        nuget = MagicMock()
        nuget.package_exists = AsyncMock(return_value=True)
        service = ReadmeService(TestEnvironment.create_config(), nuget=nuget, github=MagicMock())
        service.package_service.get_info = AsyncMock(side_effect=KeyError("missing"))

        with pytest.raises(ClassifiedError) as exc_info:
            await service.call_tool(GET_INFO_TOOL, {"package_name": "Acme.Widget"})

        assert exc_info.value.kind is ErrorKind.UNKNOWN
        assert service.metrics.registry.get_sample_value(
            "tool_calls_total", {"tool": GET_INFO_TOOL, "outcome": "error"}
        ) == 1

    @pytest.mark.asyncio
    async def test_null_arguments_treated_as_empty(self):
        service = ReadmeService(TestEnvironment.create_config(), nuget=MagicMock(), github=MagicMock())

        with pytest.raises(ClassifiedError) as exc_info:
            await service.call_tool(SEARCH_TOOL, None)

        assert exc_info.value.details["reason"] == "INVALID_SEARCH_QUERY"
