"""
Adapters package for the README service.

HTTP clients for the upstream sources:

- NuGetClient: flat container, registration and search APIs
- GitHubClient: fallback README host

Adapters classify failures but never retry; retry policy belongs to the
caller.
"""

from .github_client import GitHubClient, RepositoryCoordinates, parse_repository_url
from .nuget_client import NuGetClient
from .nuspec import parse_nuspec

__all__ = [
    "GitHubClient",
    "NuGetClient",
    "RepositoryCoordinates",
    "parse_nuspec",
    "parse_repository_url",
]
