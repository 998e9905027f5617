"""
Cache-fronted query façade for the three package tools.

Each operation validates its arguments, serves a fresh cache entry when one
exists, and otherwise resolves the response upstream and caches it. Missing
packages produce a normal ``exists: false`` response that is cached with a
shorter TTL. Concurrent misses for the same key share one resolution.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from shared.config import BaseConfig
from shared.error_classifier import classify_exception
from shared.errors import ClassifiedError
from shared.logging import get_logger
from shared.retry import RetryConfig, Sleep

from ..adapters.github_client import GitHubClient, is_github_url
from ..adapters.nuget_client import NuGetClient
from ..caching import keys
from ..caching.memory_cache import MemoryCache
from .. import validators
from .models import (
    DependencyGroup,
    Found,
    InstallationInfo,
    PackageBasicInfo,
    PackageInfoResponse,
    PackageMetadata,
    PackageReadmeResponse,
    RepositoryInfo,
    ResolutionRequest,
    SearchPackagesResponse,
)
from .readme_parser import clean_markdown, parse_usage_examples
from .resolution import ReadmeResolver
from .search import filter_and_sort, to_search_result


M = TypeVar("M", bound=BaseModel)

NOT_FOUND_DESCRIPTION = "Package not found"
NO_DESCRIPTION = "No description available"


def normalize_version(version: str) -> str:
    """NuGet normalized form: lower-case, no build metadata, no ``.0`` revision."""
    release, _, _metadata = version.strip().lower().partition("+")
    core, dash, prerelease = release.partition("-")
    parts = core.split(".")
    if len(parts) == 4 and parts[3] == "0":
        core = ".".join(parts[:3])
    return f"{core}{dash}{prerelease}"


def pick_version(versions: List[str], requested: str) -> Optional[str]:
    """Map a requested version or tag onto a published version.

    ``latest`` prefers the newest stable release and ``prerelease`` takes
    the newest of any kind. Explicit versions are compared in normalized
    form.
    """
    if not versions:
        return None
    if requested == "prerelease":
        return versions[-1]
    if requested == "latest":
        stable = [version for version in versions if "-" not in version]
        return stable[-1] if stable else versions[-1]

    wanted = normalize_version(requested)
    for version in versions:
        if normalize_version(version) == wanted:
            return version
    return None


def flatten_dependencies(groups: List[DependencyGroup]) -> Dict[str, str]:
    """``Id`` or ``Id (framework)`` mapped to the version range."""
    flat: Dict[str, str] = {}
    for group in groups:
        for dependency in group.dependencies:
            key = f"{dependency.id} ({group.target_framework})" if group.target_framework else dependency.id
            flat[key] = dependency.version or "*"
    return flat


def repository_info(metadata: PackageMetadata) -> Optional[RepositoryInfo]:
    if metadata.repository and metadata.repository.url:
        return RepositoryInfo(type=metadata.repository.type or "git", url=metadata.repository.url)
    if metadata.project_url and is_github_url(metadata.project_url):
        return RepositoryInfo(type="git", url=metadata.project_url)
    return None


def basic_info(metadata: PackageMetadata, version: str) -> PackageBasicInfo:
    return PackageBasicInfo(
        name=metadata.id,
        version=version,
        description=metadata.description or NO_DESCRIPTION,
        title=metadata.title,
        homepage=metadata.project_url,
        project_url=metadata.project_url,
        license=metadata.license,
        license_url=metadata.license_url,
        authors=metadata.author_list,
        owners=[owner.strip() for owner in (metadata.owners or "").split(",") if owner.strip()],
        tags=metadata.tag_list,
        icon_url=metadata.icon_url,
        target_frameworks=[group.target_framework for group in metadata.dependency_groups if group.target_framework],
    )


def not_found_readme(package_name: str, version: str) -> PackageReadmeResponse:
    return PackageReadmeResponse(
        package_name=package_name,
        version=version,
        description=NOT_FOUND_DESCRIPTION,
        readme_content="",
        usage_examples=[],
        installation=InstallationInfo.for_package(package_name),
        basic_info=PackageBasicInfo(name=package_name, version=version, description=NOT_FOUND_DESCRIPTION),
        exists=False,
    )


def not_found_info(package_name: str) -> PackageInfoResponse:
    return PackageInfoResponse(
        package_name=package_name,
        latest_version="",
        description=NOT_FOUND_DESCRIPTION,
        exists=False,
    )


class PackageQueryService:
    """Entry point for the README, info and search tools."""

    def __init__(
        self,
        nuget: NuGetClient,
        github: GitHubClient,
        cache: MemoryCache,
        config: BaseConfig,
        *,
        resolver: Optional[ReadmeResolver] = None,
        sleep: Optional[Sleep] = None,
        metrics=None,
    ):
        self.nuget = nuget
        self.github = github
        self.cache = cache
        self.readme_ttl_ms = config.cache_ttl_ms
        self.search_ttl_ms = config.search_cache_ttl_ms
        self.not_found_ttl_ms = config.not_found_cache_ttl_ms
        self.retry_config = RetryConfig(config.retry_attempts, config.base_retry_delay_ms)
        self.resolver = resolver or ReadmeResolver(
            nuget, github, self.retry_config, sleep=sleep, metrics=metrics
        )
        self.logger = get_logger("readme.package_service")
        self._sleep = sleep
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def close(self):
        await self.nuget.close()
        await self.github.close()

    async def _retry(self, operation: Callable[[], Awaitable[Any]], context: str) -> Any:
        return await self.retry_config.execute(operation, context=context, sleep=self._sleep)

    async def _cached(
        self,
        key: str,
        model: Type[M],
        producer: Callable[[], Awaitable[Tuple[M, int]]],
    ) -> M:
        """Serve ``key`` from cache or run ``producer`` once for all waiters."""
        cached = self.cache.get(key)
        if cached is not None:
            return model.model_validate(cached)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._produce(key, producer))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._release(key, done))
        else:
            self.logger.debug("Joining in-flight resolution", key=key)

        # A cancelled caller leaves the shared resolution running for the others
        return model.model_validate(await asyncio.shield(task))

    async def _produce(
        self,
        key: str,
        producer: Callable[[], Awaitable[Tuple[BaseModel, int]]],
    ) -> Dict[str, Any]:
        try:
            response, ttl_ms = await producer()
        except ClassifiedError:
            raise
        except Exception as exc:
            self.logger.error("Unexpected failure resolving", key=key, error=str(exc), exc_info=True)
            raise classify_exception(exc, key) from exc

        payload = response.model_dump(mode="json")
        self.cache.set(key, payload, ttl_ms)
        return payload

    def _release(self, key: str, task: asyncio.Future):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark retrieved so a failure every caller abandoned is not reported at GC
            task.exception()

    # get_readme_from_nuget

    async def get_readme(
        self,
        package_name: Any,
        version: Any = "latest",
        include_examples: Any = True,
    ) -> PackageReadmeResponse:
        package_name = validators.validate_package_name(package_name)
        version = validators.validate_version(version)
        include_examples = validators.validate_flag(include_examples, "include_examples")

        self.logger.info("Fetching package README", package=package_name, version=version)
        response = await self._cached(
            keys.package_readme(package_name, version),
            PackageReadmeResponse,
            lambda: self._resolve_readme(package_name, version),
        )

        if not include_examples and response.usage_examples:
            response = response.model_copy(update={"usage_examples": []})
        return response

    async def _resolve_readme(self, package_name: str, version: str) -> Tuple[PackageReadmeResponse, int]:
        exists = await self._retry(
            lambda: self.nuget.package_exists(package_name),
            f"NuGet existence check {package_name}",
        )
        if not exists:
            self.logger.info("Package not found", package=package_name)
            return not_found_readme(package_name, version), self.not_found_ttl_ms

        versions = await self._retry(
            lambda: self.nuget.get_versions(package_name),
            f"NuGet versions {package_name}",
        )
        concrete = pick_version(versions.value if isinstance(versions, Found) else [], version)
        if concrete is None:
            self.logger.info("Requested version not published", package=package_name, version=version)
            return not_found_readme(package_name, version), self.not_found_ttl_ms

        lookup = await self._retry(
            lambda: self.nuget.get_metadata(package_name, concrete),
            f"NuGet metadata {package_name}@{concrete}",
        )
        if not isinstance(lookup, Found):
            self.logger.info("Package metadata not found", package=package_name, version=concrete)
            return not_found_readme(package_name, version), self.not_found_ttl_ms

        metadata = lookup.value
        metadata.id = metadata.id or package_name
        metadata.version = metadata.version or concrete

        allow_fallback_host = any(is_github_url(url) for url in metadata.repository_url_candidates())
        resolution = await self.resolver.resolve(ResolutionRequest(
            package_name=package_name,
            version=concrete,
            metadata=metadata,
            allow_fallback_host=allow_fallback_host,
        ))

        info = basic_info(metadata, concrete)
        response = PackageReadmeResponse(
            package_name=package_name,
            version=concrete,
            description=info.description,
            readme_content=clean_markdown(resolution.content),
            usage_examples=parse_usage_examples(resolution.content, include_examples=True),
            installation=InstallationInfo.for_package(package_name),
            basic_info=info,
            repository=repository_info(metadata),
            readme_source=resolution.source,
            exists=True,
        )
        self.logger.info(
            "Fetched package README",
            package=package_name,
            version=concrete,
            source=resolution.source.value,
        )
        return response, self.readme_ttl_ms

    # get_package_info_from_nuget

    async def get_info(
        self,
        package_name: Any,
        include_dependencies: Any = True,
        include_dev_dependencies: Any = False,
    ) -> PackageInfoResponse:
        package_name = validators.validate_package_name(package_name)
        include_dependencies = validators.validate_flag(include_dependencies, "include_dependencies")
        include_dev_dependencies = validators.validate_flag(include_dev_dependencies, "include_dev_dependencies")

        self.logger.info("Fetching package info", package=package_name)
        response = await self._cached(
            keys.package_info(package_name, "latest"),
            PackageInfoResponse,
            lambda: self._resolve_info(package_name),
        )

        update = {}
        if not include_dependencies:
            update["dependencies"] = None
        if not include_dev_dependencies:
            update["dev_dependencies"] = None
        return response.model_copy(update=update) if update else response

    async def _resolve_info(self, package_name: str) -> Tuple[PackageInfoResponse, int]:
        exists = await self._retry(
            lambda: self.nuget.package_exists(package_name),
            f"NuGet existence check {package_name}",
        )
        if not exists:
            self.logger.info("Package not found", package=package_name)
            return not_found_info(package_name), self.not_found_ttl_ms

        versions = await self._retry(
            lambda: self.nuget.get_versions(package_name),
            f"NuGet versions {package_name}",
        )
        latest = pick_version(versions.value if isinstance(versions, Found) else [], "latest")
        if latest is None:
            return not_found_info(package_name), self.not_found_ttl_ms

        lookup = await self._retry(
            lambda: self.nuget.get_metadata(package_name, latest),
            f"NuGet metadata {package_name}@{latest}",
        )
        if not isinstance(lookup, Found):
            return not_found_info(package_name), self.not_found_ttl_ms

        metadata = lookup.value
        download_stats = await self.nuget.get_download_stats(package_name)
        dependencies = flatten_dependencies(metadata.dependency_groups) or None

        response = PackageInfoResponse(
            package_name=package_name,
            latest_version=latest,
            description=metadata.description or NO_DESCRIPTION,
            authors=metadata.author_list,
            license=metadata.license,
            tags=metadata.tag_list,
            dependencies=dependencies,
            dev_dependencies=dependencies if metadata.development_dependency else None,
            download_stats=download_stats,
            repository=repository_info(metadata),
            exists=True,
        )
        self.logger.info("Fetched package info", package=package_name, version=latest)
        return response, self.readme_ttl_ms

    # search_packages_from_nuget

    async def search(
        self,
        query: Any,
        limit: Any = 20,
        quality: Any = None,
        popularity: Any = None,
    ) -> SearchPackagesResponse:
        query = validators.validate_search_query(query)
        limit = validators.validate_limit(limit)
        if quality is not None:
            quality = validators.validate_score(quality, "Quality")
        if popularity is not None:
            popularity = validators.validate_score(popularity, "Popularity")

        self.logger.info("Searching packages", query=query, limit=limit)
        return await self._cached(
            keys.search_results(query, limit, quality, popularity),
            SearchPackagesResponse,
            lambda: self._resolve_search(query, limit, quality, popularity),
        )

    async def _resolve_search(
        self,
        query: str,
        limit: int,
        quality: Optional[float],
        popularity: Optional[float],
    ) -> Tuple[SearchPackagesResponse, int]:
        results = await self._retry(
            lambda: self.nuget.search(query, limit),
            f"NuGet search {query}",
        )
        packages = filter_and_sort((to_search_result(hit) for hit in results.hits), quality, popularity)

        self.logger.info("Searched packages", query=query, total_count=len(packages))
        return SearchPackagesResponse(query=query, total_count=len(packages), packages=packages), self.search_ttl_ms
