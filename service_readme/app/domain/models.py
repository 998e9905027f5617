"""
Data models for the README service.

Upstream records (parsed nuspec, registration leaf) are plain dataclasses;
tool responses are pydantic models so they serialize straight into the
tool-call payload and the cache.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, Field


T = TypeVar("T")


# Capability lookup results

@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    reason: str = "not found"


Lookup = Union[Found[T], NotFound]


# Upstream records

@dataclass
class PackageDependency:
    id: str
    version: str = "*"


@dataclass
class DependencyGroup:
    target_framework: Optional[str] = None
    dependencies: List[PackageDependency] = field(default_factory=list)


@dataclass
class RepositoryMetadata:
    type: str = ""
    url: str = ""
    branch: Optional[str] = None
    commit: Optional[str] = None


@dataclass
class PackageMetadata:
    """Metadata parsed from a package's .nuspec document."""
    id: str
    version: str
    title: Optional[str] = None
    authors: str = ""
    owners: Optional[str] = None
    description: str = ""
    summary: Optional[str] = None
    release_notes: Optional[str] = None
    tags: str = ""
    project_url: Optional[str] = None
    license: str = "Unknown"
    license_url: Optional[str] = None
    icon_url: Optional[str] = None
    repository: Optional[RepositoryMetadata] = None
    dependency_groups: List[DependencyGroup] = field(default_factory=list)
    development_dependency: bool = False

    @property
    def author_list(self) -> List[str]:
        return [author.strip() for author in self.authors.split(",") if author.strip()]

    @property
    def tag_list(self) -> List[str]:
        return [tag for tag in self.tags.split() if tag.strip()]

    def repository_url_candidates(self) -> List[str]:
        """Repository URL first, then the project URL."""
        candidates = []
        if self.repository and self.repository.url:
            candidates.append(self.repository.url)
        if self.project_url and self.project_url not in candidates:
            candidates.append(self.project_url)
        return candidates


@dataclass
class EnhancedMetadata:
    """Richer metadata from a registration leaf's catalog entry."""
    id: str
    version: str
    description: Optional[str] = None
    summary: Optional[str] = None
    release_notes: Optional[str] = None
    title: Optional[str] = None
    authors: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    project_url: Optional[str] = None
    published: Optional[str] = None
    dependency_groups: List[DependencyGroup] = field(default_factory=list)


@dataclass
class SearchHit:
    """One raw hit from the search API."""
    id: str
    version: str
    description: Optional[str] = None
    summary: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    authors: List[str] = field(default_factory=list)
    total_downloads: int = 0
    verified: bool = False
    package_types: List[str] = field(default_factory=list)
    versions: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class SearchResults:
    total_hits: int
    hits: List[SearchHit]


# README resolution

class ReadmeSource(str, Enum):
    """Which stage of the resolution pipeline produced the README."""
    PRIMARY = "primary"
    PRIMARY_DERIVED = "primary-derived"
    FALLBACK_HOST = "fallback-host"
    SYNTHESIZED = "synthesized"


@dataclass
class ResolutionRequest:
    package_name: str
    version: str
    metadata: PackageMetadata
    allow_fallback_host: bool = True


@dataclass
class ResolutionResult:
    content: str
    source: ReadmeSource


# Tool responses

class UsageExample(BaseModel):
    title: str
    description: Optional[str] = None
    code: str
    language: str


class InstallationInfo(BaseModel):
    command: str
    alternatives: List[str] = Field(default_factory=list)
    dotnet: str
    package_manager: Optional[str] = None
    paket: Optional[str] = None

    @classmethod
    def for_package(cls, package_name: str) -> "InstallationInfo":
        dotnet = f"dotnet add package {package_name}"
        package_manager = f"Install-Package {package_name}"
        paket = f"paket add {package_name}"
        return cls(
            command=dotnet,
            alternatives=[package_manager, paket],
            dotnet=dotnet,
            package_manager=package_manager,
            paket=paket,
        )


class RepositoryInfo(BaseModel):
    type: str = "git"
    url: str
    directory: Optional[str] = None


class PackageBasicInfo(BaseModel):
    name: str
    version: str
    description: str
    title: Optional[str] = None
    homepage: Optional[str] = None
    project_url: Optional[str] = None
    license: str = "Unknown"
    license_url: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    owners: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    icon_url: Optional[str] = None
    target_frameworks: List[str] = Field(default_factory=list)


class DownloadStats(BaseModel):
    last_day: int = 0
    last_week: int = 0
    last_month: int = 0


class PackageReadmeResponse(BaseModel):
    package_name: str
    version: str
    description: str
    readme_content: str
    usage_examples: List[UsageExample] = Field(default_factory=list)
    installation: InstallationInfo
    basic_info: PackageBasicInfo
    repository: Optional[RepositoryInfo] = None
    readme_source: Optional[ReadmeSource] = None
    exists: bool = True


class PackageInfoResponse(BaseModel):
    package_name: str
    latest_version: str
    description: str
    authors: List[str] = Field(default_factory=list)
    license: str = "Unknown"
    tags: List[str] = Field(default_factory=list)
    dependencies: Optional[Dict[str, str]] = None
    dev_dependencies: Optional[Dict[str, str]] = None
    download_stats: DownloadStats = Field(default_factory=DownloadStats)
    repository: Optional[RepositoryInfo] = None
    exists: bool = True


class PackageVersionSummary(BaseModel):
    version: str
    downloads: int = 0


class PackageSearchResult(BaseModel):
    name: str
    version: str
    description: str
    tags: List[str] = Field(default_factory=list)
    authors: List[str] = Field(default_factory=list)
    total_downloads: int = 0
    verified: bool = False
    package_types: List[str] = Field(default_factory=list)
    versions: List[PackageVersionSummary] = Field(default_factory=list)


class SearchPackagesResponse(BaseModel):
    query: str
    total_count: int
    packages: List[PackageSearchResult] = Field(default_factory=list)
