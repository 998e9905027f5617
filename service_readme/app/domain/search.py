"""
Client-side search post-processing.

The search API has no quality or popularity filters, so both are
approximated from the signals each hit carries.
"""

from typing import Iterable, List, Optional

from .models import PackageSearchResult, PackageVersionSummary, SearchHit


QUALITY_WEIGHT_VERIFIED = 0.5
QUALITY_WEIGHT_DEPENDENCY_TYPE = 0.3
QUALITY_WEIGHT_AUTHORS = 0.2


def to_search_result(hit: SearchHit) -> PackageSearchResult:
    return PackageSearchResult(
        name=hit.id,
        version=hit.version,
        description=hit.description or hit.summary or "No description available",
        tags=list(hit.tags),
        authors=list(hit.authors),
        total_downloads=hit.total_downloads,
        verified=hit.verified,
        package_types=list(hit.package_types),
        versions=[PackageVersionSummary(**version) for version in hit.versions],
    )


def quality_score(result: PackageSearchResult) -> float:
    score = 0.0
    if result.verified:
        score += QUALITY_WEIGHT_VERIFIED
    if "Dependency" in result.package_types:
        score += QUALITY_WEIGHT_DEPENDENCY_TYPE
    if result.authors:
        score += QUALITY_WEIGHT_AUTHORS
    return score


def filter_and_sort(
    results: Iterable[PackageSearchResult],
    quality: Optional[float] = None,
    popularity: Optional[float] = None,
) -> List[PackageSearchResult]:
    """Apply the optional thresholds, then order by total downloads.

    Popularity is normalized against the most downloaded result that
    survived the quality filter.
    """
    filtered = list(results)

    if quality is not None:
        filtered = [result for result in filtered if quality_score(result) >= quality]

    if popularity is not None:
        max_downloads = max([result.total_downloads for result in filtered] + [1])
        filtered = [
            result for result in filtered
            if result.total_downloads / max_downloads >= popularity
        ]

    # sorted() is stable, equal download counts keep upstream relevance order
    return sorted(filtered, key=lambda result: result.total_downloads, reverse=True)
