"""
NuGet registry client.

Wraps the flat container, registration and search endpoints. Lookups that
can legitimately find nothing return ``Found``/``NotFound``; transport and
HTTP failures are raised as ``ClassifiedError`` so callers can decide on
retries. No retry happens here.
"""

import math
from typing import Any, Dict, List, Optional

import httpx

from shared.config import BaseConfig
from shared.error_classifier import classify_exception, classify_response
from shared.errors import ClassifiedError, ErrorKind
from shared.logging import get_logger

from ..domain.models import (
    DependencyGroup,
    DownloadStats,
    EnhancedMetadata,
    Found,
    Lookup,
    NotFound,
    PackageDependency,
    PackageMetadata,
    SearchHit,
    SearchResults,
)
from .nuspec import parse_nuspec


DOWNLOAD_RATIO_DAY = 0.001
DOWNLOAD_RATIO_WEEK = 0.007
DOWNLOAD_RATIO_MONTH = 0.03


class NuGetClient:
    """Client for the NuGet v3 APIs."""

    def __init__(self, config: BaseConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.flat_container_url = config.flat_container_url.rstrip("/")
        self.registration_url = config.registration_url.rstrip("/")
        self.search_url = config.search_url
        self.logger = get_logger("readme.nuget_client")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.request_timeout_ms / 1000.0,
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
        )

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def _get(
        self,
        url: str,
        context: str,
        accept: str = "application/json",
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            return await self._client.get(url, params=params, headers={"Accept": accept})
        except httpx.HTTPError as exc:
            raise classify_exception(exc, context) from exc

    async def _get_or_not_found(self, url: str, context: str, accept: str = "application/json"):
        """GET ``url``; None on 404, raises a classified error on any other failure."""
        response = await self._get(url, context, accept)
        if response.status_code == 404:
            return None
        if response.is_error:
            raise classify_response(response, context)
        return response

    @staticmethod
    def _json(response: httpx.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ClassifiedError(
                ErrorKind.UNKNOWN,
                f"Invalid JSON from {context}",
                code="INVALID_RESPONSE",
                cause=exc,
            ) from exc

    def _index_url(self, package_name: str) -> str:
        return f"{self.flat_container_url}/{package_name.lower()}/index.json"

    async def package_exists(self, package_name: str) -> bool:
        """Whether the registry knows ``package_name`` at all."""
        context = f"NuGet registry for package {package_name}"
        response = await self._get_or_not_found(self._index_url(package_name), context)
        exists = response is not None
        self.logger.debug("Package existence checked", package=package_name, exists=exists)
        return exists

    async def get_versions(self, package_name: str) -> Lookup[List[str]]:
        """Published versions, oldest first."""
        context = f"NuGet registry for package {package_name}"
        response = await self._get_or_not_found(self._index_url(package_name), context)
        if response is None:
            return NotFound(f"package {package_name} not found")

        versions = self._json(response, context).get("versions") or []
        self.logger.debug("Fetched package versions", package=package_name, count=len(versions))
        return Found(list(versions))

    async def get_metadata(self, package_name: str, version: str) -> Lookup[PackageMetadata]:
        """Parsed .nuspec for a concrete version."""
        name = package_name.lower()
        url = f"{self.flat_container_url}/{name}/{version.lower()}/{name}.nuspec"
        context = f"NuGet metadata for package {package_name}@{version}"

        response = await self._get_or_not_found(url, context, accept="application/xml")
        if response is None:
            return NotFound(f"no nuspec for {package_name}@{version}")

        metadata = parse_nuspec(response.text, context)
        self.logger.debug("Fetched package metadata", package=package_name, version=version)
        return Found(metadata)

    async def get_enhanced_metadata(self, package_name: str, version: str) -> Lookup[EnhancedMetadata]:
        """Catalog entry behind the registration leaf for ``version``."""
        url = f"{self.registration_url}/{package_name.lower()}/{version.lower()}.json"
        context = f"NuGet registration for package {package_name}@{version}"

        response = await self._get_or_not_found(url, context)
        if response is None:
            return NotFound(f"no registration leaf for {package_name}@{version}")

        leaf = self._json(response, context)
        entry = leaf.get("catalogEntry", leaf)

        # Leaves usually link the catalog entry rather than inline it
        if isinstance(entry, str):
            response = await self._get_or_not_found(entry, context)
            if response is None:
                return NotFound(f"no catalog entry for {package_name}@{version}")
            entry = self._json(response, context)

        if not isinstance(entry, dict):
            return NotFound(f"malformed registration leaf for {package_name}@{version}")

        return Found(self._parse_catalog_entry(entry, package_name, version))

    @staticmethod
    def _parse_catalog_entry(entry: Dict[str, Any], package_name: str, version: str) -> EnhancedMetadata:
        groups = []
        for group in entry.get("dependencyGroups") or []:
            deps = [
                PackageDependency(id=dep["id"], version=dep.get("range") or "*")
                for dep in group.get("dependencies") or []
                if dep.get("id")
            ]
            groups.append(DependencyGroup(target_framework=group.get("targetFramework"), dependencies=deps))

        tags = entry.get("tags") or []
        if isinstance(tags, str):
            tags = tags.split()

        authors = entry.get("authors")
        if isinstance(authors, list):
            authors = ", ".join(authors)

        return EnhancedMetadata(
            id=entry.get("id") or package_name,
            version=entry.get("version") or version,
            description=entry.get("description"),
            summary=entry.get("summary"),
            release_notes=entry.get("releaseNotes"),
            title=entry.get("title"),
            authors=authors,
            tags=list(tags),
            project_url=entry.get("projectUrl"),
            published=entry.get("published"),
            dependency_groups=groups,
        )

    async def get_readme(self, package_name: str, version: str) -> Lookup[str]:
        """README embedded in the package, if it ships one."""
        url = f"{self.flat_container_url}/{package_name.lower()}/{version.lower()}/readme"
        context = f"NuGet README for package {package_name}@{version}"

        response = await self._get_or_not_found(url, context, accept="text/plain, text/markdown, */*")
        if response is None:
            return NotFound(f"no embedded README for {package_name}@{version}")

        self.logger.debug("Fetched embedded README", package=package_name, version=version)
        return Found(response.text)

    async def search(self, query: str, limit: int = 20) -> SearchResults:
        context = f"NuGet search for query {query}"
        params = {
            "q": query,
            "take": str(limit),
            "prerelease": "false",
            "semVerLevel": "2.0.0",
        }

        response = await self._get(self.search_url, context, params=params)
        if response.is_error:
            raise classify_response(response, context)

        data = self._json(response, context)
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise ClassifiedError(
                ErrorKind.UNKNOWN,
                f"Unexpected search response shape from {context}",
                code="INVALID_RESPONSE",
            )

        try:
            hits = [self._parse_search_hit(item) for item in items]
        except (TypeError, ValueError, AttributeError) as exc:
            raise ClassifiedError(
                ErrorKind.UNKNOWN,
                f"Malformed search hit from {context}",
                code="INVALID_RESPONSE",
                cause=exc,
            ) from exc
        total_hits = data.get("totalHits")
        if isinstance(total_hits, bool) or not isinstance(total_hits, int):
            total_hits = len(hits)
        self.logger.debug("Search completed", query=query, total_hits=total_hits)
        return SearchResults(total_hits=total_hits, hits=hits)

    @staticmethod
    def _parse_search_hit(item: Dict[str, Any]) -> SearchHit:
        authors = item.get("authors") or []
        if isinstance(authors, str):
            authors = [author.strip() for author in authors.split(",") if author.strip()]

        tags = item.get("tags") or []
        if isinstance(tags, str):
            tags = tags.split()

        return SearchHit(
            id=str(item.get("id", "")),
            version=str(item.get("version", "")),
            description=item.get("description"),
            summary=item.get("summary"),
            tags=list(tags),
            authors=list(authors),
            total_downloads=int(item.get("totalDownloads") or 0),
            verified=bool(item.get("verified", False)),
            package_types=[pt.get("name", "") for pt in item.get("packageTypes") or [] if isinstance(pt, dict)],
            versions=[
                {"version": v.get("version", ""), "downloads": int(v.get("downloads") or 0)}
                for v in item.get("versions") or []
                if isinstance(v, dict)
            ],
        )

    async def get_download_stats(self, package_name: str) -> DownloadStats:
        """Approximate recent downloads from the all-time total.

        The registry only publishes total downloads, so day/week/month
        figures are fixed fractions of it. Any failure yields zeros.
        """
        try:
            results = await self.search(f"packageid:{package_name}", limit=1)
        except ClassifiedError as exc:
            self.logger.warning(
                "Failed to fetch download stats, using zeros",
                package=package_name,
                kind=exc.kind.value,
                error=exc.message,
            )
            return DownloadStats()

        total = 0
        for hit in results.hits:
            if hit.id.lower() == package_name.lower():
                total = hit.total_downloads
                break

        return DownloadStats(
            last_day=math.floor(total * DOWNLOAD_RATIO_DAY),
            last_week=math.floor(total * DOWNLOAD_RATIO_WEEK),
            last_month=math.floor(total * DOWNLOAD_RATIO_MONTH),
        )
