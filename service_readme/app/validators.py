"""
Input validation for tool arguments.

Every failure raises ``ValidationError`` (code VALIDATION_ERROR) with the
specific check in ``reason``.
"""

import re
from typing import Any

from shared.errors import ValidationError


PACKAGE_NAME_MAX_LENGTH = 100
SEARCH_QUERY_MAX_LENGTH = 250
SEARCH_LIMIT_MIN = 1
SEARCH_LIMIT_MAX = 250

VERSION_TAGS = ("latest", "prerelease")

_PACKAGE_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")
_VERSION = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:\.(0|[1-9]\d*))?"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def validate_package_name(package_name: Any) -> str:
    if not isinstance(package_name, str) or not package_name:
        raise ValidationError("Package name is required and must be a string", "INVALID_PACKAGE_NAME")

    trimmed = package_name.strip()
    if not trimmed:
        raise ValidationError("Package name cannot be empty", "INVALID_PACKAGE_NAME")
    if len(trimmed) > PACKAGE_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Package name cannot exceed {PACKAGE_NAME_MAX_LENGTH} characters",
            "INVALID_PACKAGE_NAME",
        )
    if not _PACKAGE_NAME.match(trimmed):
        raise ValidationError(
            "Package name contains invalid characters. Must start with a letter or number and can "
            "contain letters, numbers, periods, hyphens, and underscores",
            "INVALID_PACKAGE_NAME",
        )
    if ".." in trimmed or trimmed.endswith("."):
        raise ValidationError(
            "Package name cannot contain consecutive periods or end with a period",
            "INVALID_PACKAGE_NAME",
        )
    return trimmed


def validate_version(version: Any) -> str:
    if not isinstance(version, str) or not version:
        raise ValidationError("Version must be a string", "INVALID_VERSION")

    trimmed = version.strip()
    if not trimmed:
        raise ValidationError("Version cannot be empty", "INVALID_VERSION")
    if trimmed in VERSION_TAGS:
        return trimmed
    if not _VERSION.match(trimmed):
        raise ValidationError(
            "Version must be a valid semantic version (e.g., 1.0.0 or 1.0.0.0) or a tag (e.g., latest)",
            "INVALID_VERSION",
        )
    return trimmed


def validate_search_query(query: Any) -> str:
    if not isinstance(query, str) or not query:
        raise ValidationError("Search query is required and must be a string", "INVALID_SEARCH_QUERY")

    trimmed = query.strip()
    if not trimmed:
        raise ValidationError("Search query cannot be empty", "INVALID_SEARCH_QUERY")
    if len(trimmed) > SEARCH_QUERY_MAX_LENGTH:
        raise ValidationError(
            f"Search query cannot exceed {SEARCH_QUERY_MAX_LENGTH} characters",
            "INVALID_SEARCH_QUERY",
        )
    return trimmed


def validate_limit(limit: Any) -> int:
    # JSON clients may send 20.0
    if isinstance(limit, float) and limit.is_integer():
        limit = int(limit)
    # bool is an int subclass
    if isinstance(limit, bool) or not isinstance(limit, int) or not SEARCH_LIMIT_MIN <= limit <= SEARCH_LIMIT_MAX:
        raise ValidationError(
            f"Limit must be an integer between {SEARCH_LIMIT_MIN} and {SEARCH_LIMIT_MAX}",
            "INVALID_LIMIT",
        )
    return limit


def validate_score(score: Any, name: str) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 1:
        raise ValidationError(f"{name} must be a number between 0 and 1", "INVALID_SCORE")
    return float(score)


def validate_flag(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be a boolean", "INVALID_ARGUMENT")
    return value
