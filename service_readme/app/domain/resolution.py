"""
README resolution pipeline.

Sources are tried in a fixed order and the first usable result wins:

1. README embedded in the package (standard retry policy)
2. Registration catalog entry with a richer description (single attempt)
3. README from the GitHub repository the package declares (single attempt)
4. README synthesized from the nuspec metadata (no I/O)

Stage 1 failures that survive their retries propagate. Stage 2 and 3
failures are logged and skipped, so stage 4 always produces a result.
"""

from typing import Optional, TYPE_CHECKING

from shared.errors import ClassifiedError, ErrorKind
from shared.logging import get_logger
from shared.retry import NO_RETRY, RetryConfig, Sleep

from ..adapters.github_client import GitHubClient, parse_repository_url
from ..adapters.nuget_client import NuGetClient
from .models import Found, ReadmeSource, ResolutionRequest, ResolutionResult
from .readme_generator import create_enhanced_readme, create_fallback_readme

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ReadmeResolver:
    """Resolves README content for a concrete package version."""

    def __init__(
        self,
        nuget: NuGetClient,
        github: GitHubClient,
        retry_config: Optional[RetryConfig] = None,
        *,
        enrichment_retry: RetryConfig = NO_RETRY,
        sleep: Optional[Sleep] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.nuget = nuget
        self.github = github
        self.retry_config = retry_config or RetryConfig()
        self.enrichment_retry = enrichment_retry
        self.metrics = metrics
        self.logger = get_logger("readme.resolution")
        self._sleep = sleep

    async def resolve(self, request: ResolutionRequest) -> ResolutionResult:
        result = await self._try_primary_direct(request)

        if result is None:
            result = await self._try_primary_derived(request)

        if result is None and request.allow_fallback_host:
            result = await self._try_fallback_host(request)

        if result is None:
            result = self._synthesize(request)

        self.logger.info(
            "README resolved",
            package=request.package_name,
            version=request.version,
            source=result.source.value,
        )
        if self.metrics is not None:
            self.metrics.record_resolution(result.source.value)
        return result

    async def _try_primary_direct(self, request: ResolutionRequest) -> Optional[ResolutionResult]:
        context = f"NuGet README {request.package_name}@{request.version}"
        try:
            lookup = await self.retry_config.execute(
                lambda: self.nuget.get_readme(request.package_name, request.version),
                context=context,
                sleep=self._sleep,
            )
        except ClassifiedError as exc:
            if exc.kind is not ErrorKind.NOT_FOUND:
                raise
            lookup = None

        if isinstance(lookup, Found) and lookup.value.strip():
            return ResolutionResult(content=lookup.value, source=ReadmeSource.PRIMARY)

        self.logger.debug("No embedded README", package=request.package_name, version=request.version)
        return None

    async def _try_primary_derived(self, request: ResolutionRequest) -> Optional[ResolutionResult]:
        context = f"NuGet registration {request.package_name}@{request.version}"
        try:
            lookup = await self.enrichment_retry.execute(
                lambda: self.nuget.get_enhanced_metadata(request.package_name, request.version),
                context=context,
                sleep=self._sleep,
            )
        except ClassifiedError as exc:
            self.logger.warning(
                "Enhanced metadata unavailable",
                package=request.package_name,
                version=request.version,
                kind=exc.kind.value,
                error=exc.message,
            )
            return None

        if not isinstance(lookup, Found):
            return None

        enhanced = lookup.value
        baseline = request.metadata.description or ""
        if len(enhanced.description or "") > len(baseline):
            return ResolutionResult(
                content=create_enhanced_readme(request.metadata, enhanced),
                source=ReadmeSource.PRIMARY_DERIVED,
            )
        return None

    async def _try_fallback_host(self, request: ResolutionRequest) -> Optional[ResolutionResult]:
        coordinates = None
        for url in request.metadata.repository_url_candidates():
            coordinates = parse_repository_url(url)
            if coordinates is not None:
                break

        if coordinates is None:
            self.logger.debug("No GitHub repository declared", package=request.package_name)
            return None

        context = f"GitHub README {coordinates.owner}/{coordinates.repo}"
        try:
            lookup = await self.enrichment_retry.execute(
                lambda: self.github.get_readme(coordinates.owner, coordinates.repo),
                context=context,
                sleep=self._sleep,
            )
        except ClassifiedError as exc:
            self.logger.warning(
                "GitHub README unavailable",
                package=request.package_name,
                owner=coordinates.owner,
                repo=coordinates.repo,
                kind=exc.kind.value,
                error=exc.message,
            )
            return None

        if isinstance(lookup, Found) and lookup.value.strip():
            return ResolutionResult(content=lookup.value, source=ReadmeSource.FALLBACK_HOST)
        return None

    def _synthesize(self, request: ResolutionRequest) -> ResolutionResult:
        return ResolutionResult(
            content=create_fallback_readme(request.metadata),
            source=ReadmeSource.SYNTHESIZED,
        )
