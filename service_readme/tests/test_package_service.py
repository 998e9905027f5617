"""
Unit tests for the cache-fronted package query service.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.errors import ClassifiedError, ErrorKind, ValidationError
from shared.test_helpers import FakeClock, RecordingSleep, TestEnvironment
from service_readme.app.caching import keys
from service_readme.app.caching.memory_cache import MemoryCache
from service_readme.app.domain.models import (
    DependencyGroup,
    DownloadStats,
    Found,
    NotFound,
    PackageDependency,
    PackageMetadata,
    ReadmeSource,
    SearchHit,
    SearchResults,
)
from service_readme.app.domain.package_service import (
    PackageQueryService,
    flatten_dependencies,
    normalize_version,
    pick_version,
)


README = """# Acme.Widget

## Usage

Create a widget and render it:

```cs
var widget = new Widget();
```
"""


def widget_metadata(**overrides):
    fields = dict(
        id="Acme.Widget",
        version="1.2.0",
        description="A widget library for .NET",
        authors="Acme Corp, Jane Doe",
        tags="widget acme",
        project_url="https://github.com/acme/widget",
        license="MIT",
        dependency_groups=[
            DependencyGroup("net8.0", [PackageDependency("Newtonsoft.Json", "13.0.1")]),
        ],
    )
    fields.update(overrides)
    return PackageMetadata(**fields)


def search_results(*downloads):
    hits = [SearchHit(id=f"Pkg{i}", version="1.0.0", total_downloads=d) for i, d in enumerate(downloads)]
    return SearchResults(total_hits=len(hits), hits=hits)


class TestPickVersion:
    """Test cases for version selection."""

    VERSIONS = ["1.0.0", "1.2.0", "2.0.0-beta.1"]

    def test_latest_prefers_stable(self):
        assert pick_version(self.VERSIONS, "latest") == "1.2.0"

    def test_latest_falls_back_to_prerelease(self):
        assert pick_version(["0.1.0-alpha"], "latest") == "0.1.0-alpha"

    def test_prerelease_takes_newest(self):
        assert pick_version(self.VERSIONS, "prerelease") == "2.0.0-beta.1"

    def test_explicit_version_case_insensitive(self):
        assert pick_version(self.VERSIONS, "2.0.0-BETA.1") == "2.0.0-beta.1"

    @pytest.mark.parametrize("requested", ["1.2.0.0", "1.2.0+build.7", "1.2.0.0+sha.abc"])
    def test_explicit_version_is_normalized(self, requested):
        assert pick_version(self.VERSIONS, requested) == "1.2.0"

    def test_nonzero_revision_is_kept(self):
        assert pick_version(["1.2.0", "1.2.0.5"], "1.2.0.5") == "1.2.0.5"
        assert pick_version(["1.2.0"], "1.2.0.5") is None

    def test_normalize_version(self):
        assert normalize_version("2.0.0.0-RC.1+build") == "2.0.0-rc.1"
        assert normalize_version("13.0.3") == "13.0.3"

    def test_unpublished_version(self):
        assert pick_version(self.VERSIONS, "9.9.9") is None
        assert pick_version([], "latest") is None


def test_flatten_dependencies():
    groups = [
        DependencyGroup(None, [PackageDependency("log4net", "2.0.0")]),
        DependencyGroup("net8.0", [PackageDependency("Newtonsoft.Json", "13.0.1")]),
    ]

    assert flatten_dependencies(groups) == {
        "log4net": "2.0.0",
        "Newtonsoft.Json (net8.0)": "13.0.1",
    }


class TestPackageQueryService:
    """Test cases for PackageQueryService."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return MemoryCache(clock=clock)

    @pytest.fixture
    def sleep(self):
        return RecordingSleep()

    @pytest.fixture
    def nuget(self):
        nuget = MagicMock()
        nuget.package_exists = AsyncMock(return_value=True)
        nuget.get_versions = AsyncMock(return_value=Found(["1.0.0", "1.2.0", "2.0.0-beta.1"]))
        nuget.get_metadata = AsyncMock(return_value=Found(widget_metadata()))
        nuget.get_readme = AsyncMock(return_value=Found(README))
        nuget.get_enhanced_metadata = AsyncMock(return_value=NotFound())
        nuget.get_download_stats = AsyncMock(
            return_value=DownloadStats(last_day=10, last_week=70, last_month=300)
        )
        nuget.search = AsyncMock(return_value=search_results(10, 100, 50))
        nuget.close = AsyncMock()
        return nuget

    @pytest.fixture
    def github(self):
        github = MagicMock()
        github.get_readme = AsyncMock(return_value=NotFound())
        github.close = AsyncMock()
        return github

    @pytest.fixture
    def service(self, nuget, github, cache, sleep):
        return PackageQueryService(nuget, github, cache, TestEnvironment.create_config(), sleep=sleep)

    @pytest.mark.asyncio
    async def test_get_readme(self, service, nuget):
        response = await service.get_readme("Acme.Widget")

        assert response.exists is True
        assert response.version == "1.2.0"
        assert response.readme_source is ReadmeSource.PRIMARY
        assert response.installation.command == "dotnet add package Acme.Widget"
        assert response.basic_info.authors == ["Acme Corp", "Jane Doe"]
        assert response.repository.url == "https://github.com/acme/widget"
        assert [example.language for example in response.usage_examples] == ["csharp"]
        nuget.get_metadata.assert_awaited_once_with("Acme.Widget", "1.2.0")

    @pytest.mark.asyncio
    async def test_get_readme_served_from_cache(self, service, nuget, cache):
        first = await service.get_readme("Acme.Widget")
        second = await service.get_readme("acme.widget")

        assert second == first
        assert nuget.package_exists.await_count == 1
        assert cache.has(keys.package_readme("Acme.Widget", "latest"))

    @pytest.mark.asyncio
    async def test_include_examples_is_projected_per_call(self, service, nuget):
        without = await service.get_readme("Acme.Widget", include_examples=False)
        with_examples = await service.get_readme("Acme.Widget", include_examples=True)

        assert without.usage_examples == []
        assert len(with_examples.usage_examples) == 1
        assert nuget.get_readme.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_package_is_cached_briefly(self, service, nuget, clock):
        nuget.package_exists.return_value = False

        first = await service.get_info("ghost-package")
        second = await service.get_info("ghost-package")

        assert first.exists is False
        assert first.description == "Package not found"
        assert second.exists is False
        assert nuget.package_exists.await_count == 1
        nuget.get_versions.assert_not_called()

        clock.advance(300_001)
        await service.get_info("ghost-package")

        assert nuget.package_exists.await_count == 2

    @pytest.mark.asyncio
    async def test_unpublished_version_is_not_found(self, service, nuget):
        response = await service.get_readme("Acme.Widget", version="9.9.9")

        assert response.exists is False
        assert response.version == "9.9.9"
        assert response.readme_content == ""
        nuget.get_metadata.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_github_project_skips_fallback_host(self, service, nuget, github):
        nuget.get_readme.return_value = NotFound()
        nuget.get_metadata.return_value = Found(widget_metadata(project_url="https://widgets.example.com"))

        response = await service.get_readme("Acme.Widget")

        assert response.readme_source is ReadmeSource.SYNTHESIZED
        assert "Install-Package Acme.Widget" in response.readme_content
        assert response.repository is None
        github.get_readme.assert_not_called()

    @pytest.mark.asyncio
    async def test_validation_never_reaches_network_or_cache(self, service, nuget, cache):
        with pytest.raises(ValidationError) as exc_info:
            await service.get_readme("bad name!")

        assert exc_info.value.reason == "INVALID_PACKAGE_NAME"
        nuget.package_exists.assert_not_called()
        assert cache.get_stats()["misses"] == 0
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_resolution(self, service, nuget):
        gate = asyncio.Event()

        async def slow_exists(package_name):
            await gate.wait()
            return True

        nuget.package_exists.side_effect = slow_exists
        tasks = [asyncio.create_task(service.get_info("Acme.Widget")) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()

        results = await asyncio.gather(*tasks)

        assert nuget.package_exists.await_count == 1
        assert all(result == results[0] for result in results)

    @pytest.mark.asyncio
    async def test_concurrent_waiters_share_failure(self, service, nuget, cache):
        gate = asyncio.Event()

        async def failing_exists(package_name):
            await gate.wait()
            raise ClassifiedError(ErrorKind.UNKNOWN, "registry returned garbage")

        nuget.package_exists.side_effect = failing_exists
        tasks = [asyncio.create_task(service.get_info("Acme.Widget")) for _ in range(2)]
        await asyncio.sleep(0)
        gate.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, ClassifiedError) for result in results)
        assert nuget.package_exists.await_count == 1
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_cancelled_leader_does_not_cancel_waiters(self, service, nuget, cache):
        gate = asyncio.Event()

        async def slow_exists(package_name):
            await gate.wait()
            return True

        nuget.package_exists.side_effect = slow_exists
        leader = asyncio.create_task(service.get_info("Acme.Widget"))
        await asyncio.sleep(0)
        follower = asyncio.create_task(service.get_info("Acme.Widget"))
        await asyncio.sleep(0)

        leader.cancel()
        gate.set()

        with pytest.raises(asyncio.CancelledError):
            await leader
        response = await follower

        assert response.exists is True
        assert response.latest_version == "1.2.0"
        assert nuget.package_exists.await_count == 1
        assert cache.get(keys.package_info("Acme.Widget", "latest")) is not None

    @pytest.mark.asyncio
    async def test_upstream_failures_are_retried(self, service, nuget, sleep):
        nuget.get_versions.side_effect = [
            ClassifiedError(ErrorKind.SERVER_UNAVAILABLE, "unavailable", status_code=503),
            Found(["1.2.0"]),
        ]

        response = await service.get_info("Acme.Widget")

        assert response.latest_version == "1.2.0"
        assert sleep.delays_ms == [10]

    @pytest.mark.asyncio
    async def test_unexpected_failures_are_classified(self, service, nuget):
        nuget.get_metadata.side_effect = ValueError("boom")

        with pytest.raises(ClassifiedError) as exc_info:
            await service.get_info("Acme.Widget")

        assert exc_info.value.kind is ErrorKind.UNKNOWN

    @pytest.mark.asyncio
    async def test_get_info(self, service):
        response = await service.get_info("Acme.Widget")

        assert response.latest_version == "1.2.0"
        assert response.license == "MIT"
        assert response.dependencies == {"Newtonsoft.Json (net8.0)": "13.0.1"}
        assert response.dev_dependencies is None
        assert response.download_stats.last_week == 70

    @pytest.mark.asyncio
    async def test_get_info_dependency_flags(self, service, nuget):
        nuget.get_metadata.return_value = Found(widget_metadata(development_dependency=True))

        without = await service.get_info("Acme.Widget", include_dependencies=False)
        dev = await service.get_info("Acme.Widget", include_dev_dependencies=True)

        assert without.dependencies is None
        assert dev.dev_dependencies == {"Newtonsoft.Json (net8.0)": "13.0.1"}
        assert nuget.get_metadata.await_count == 1

    @pytest.mark.asyncio
    async def test_search_orders_by_downloads(self, service):
        response = await service.search("widget")

        assert response.query == "widget"
        assert [package.total_downloads for package in response.packages] == [100, 50, 10]
        assert response.total_count == 3

    @pytest.mark.asyncio
    async def test_search_popularity_filter(self, service):
        response = await service.search("widget", popularity=0.6)

        assert [package.name for package in response.packages] == ["Pkg1"]

    @pytest.mark.asyncio
    async def test_search_cache_ttl(self, service, nuget, clock):
        await service.search("widget", limit=5)
        await service.search("widget", limit=5)
        assert nuget.search.await_count == 1

        clock.advance(600_001)
        await service.search("widget", limit=5)

        assert nuget.search.await_count == 2
        nuget.search.assert_awaited_with("widget", 5)

    @pytest.mark.asyncio
    async def test_search_keys_include_thresholds(self, service, nuget):
        await service.search("widget")
        await service.search("widget", quality=0.5)

        assert nuget.search.await_count == 2

    @pytest.mark.asyncio
    async def test_search_rejects_bad_limit(self, service, nuget):
        with pytest.raises(ValidationError) as exc_info:
            await service.search("widget", limit=0)

        assert exc_info.value.reason == "INVALID_LIMIT"
        nuget.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_close(self, service, nuget, github):
        await service.close()

        nuget.close.assert_awaited_once()
        github.close.assert_awaited_once()
