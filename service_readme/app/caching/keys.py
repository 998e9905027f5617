"""
Cache key builders.

Package ids are case-insensitive upstream, so names are lower-cased. Search
queries are URL-safe base64 encoded so free text can never introduce extra
``:`` separators into the key.
"""

import base64
from typing import Optional


def package_readme(package_name: str, version: str) -> str:
    return f"pkg_readme:{package_name.lower()}:{version.lower()}"


def package_info(package_name: str, version: str = "latest") -> str:
    return f"pkg_info:{package_name.lower()}:{version.lower()}"


def search_results(
    query: str,
    limit: int,
    quality: Optional[float] = None,
    popularity: Optional[float] = None,
) -> str:
    encoded = base64.urlsafe_b64encode(query.encode("utf-8")).decode("ascii")
    key = f"search:{encoded}:{limit}"
    if quality is not None:
        key += f":q:{quality}"
    if popularity is not None:
        key += f":p:{popularity}"
    return key
