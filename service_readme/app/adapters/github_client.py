"""
GitHub client used as the fallback README host.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from shared.config import BaseConfig
from shared.error_classifier import classify_exception, classify_response
from shared.logging import get_logger

from ..domain.models import Found, Lookup, NotFound


_REPO_PATTERNS = (
    re.compile(r"^https?://(?:www\.)?github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$", re.IGNORECASE),
    re.compile(r"^git\+https://(?:www\.)?github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$", re.IGNORECASE),
    re.compile(r"^git://github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$", re.IGNORECASE),
    re.compile(r"^git@github\.com:([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$", re.IGNORECASE),
)


@dataclass(frozen=True)
class RepositoryCoordinates:
    owner: str
    repo: str


def parse_repository_url(url: Optional[str]) -> Optional[RepositoryCoordinates]:
    """Extract owner/repo from the GitHub URL forms packages commonly declare.

    Returns None for anything that is not a GitHub repository URL.
    """
    if not url:
        return None

    candidate = url.strip()
    for pattern in _REPO_PATTERNS:
        match = pattern.match(candidate)
        if match:
            owner, repo = match.group(1), match.group(2)
            if owner and repo:
                return RepositoryCoordinates(owner=owner, repo=repo)
    return None


def is_github_url(url: Optional[str]) -> bool:
    return parse_repository_url(url) is not None


class GitHubClient:
    """Client for the GitHub REST API README endpoint."""

    def __init__(self, config: BaseConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.api_url = config.github_api_url.rstrip("/")
        self.token = config.github_token
        self.logger = get_logger("readme.github_client")

        headers = {
            "Accept": "application/vnd.github.v3.raw",
            "User-Agent": config.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        else:
            self.logger.warning("GitHub token not provided, rate limits will be lower")

        self._owns_client = http_client is None
        self._headers = headers
        self._client = http_client or httpx.AsyncClient(
            timeout=config.github_timeout_ms / 1000.0,
            follow_redirects=True,
        )

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def get_readme(self, owner: str, repo: str) -> Lookup[str]:
        """Raw default-branch README for ``owner/repo``."""
        url = f"{self.api_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/readme"
        context = f"GitHub README for {owner}/{repo}"

        try:
            response = await self._client.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise classify_exception(exc, context) from exc

        if response.status_code == 404:
            return NotFound(f"no README in {owner}/{repo}")
        if response.is_error:
            raise classify_response(response, context)

        self.logger.debug("Fetched README from GitHub", owner=owner, repo=repo)
        return Found(response.text)
