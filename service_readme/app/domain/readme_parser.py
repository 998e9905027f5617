"""
README post-processing: markdown cleanup and usage example extraction.
"""

import re
from typing import List, Optional

from shared.logging import get_logger

from .models import UsageExample


logger = get_logger("readme.parser")

MAX_EXAMPLES = 10
MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 200

_USAGE_HEADING = re.compile(
    r"^#{1,6}\s*(usage|use|using|how to use|getting started|quick start|examples?|basic usage|installation)\s*:?\s*$",
    re.IGNORECASE,
)
_HEADING = re.compile(r"^(#{1,6})\s")
_CODE_BLOCK = re.compile(r"```([\w#+-]*)[^\n]*\n(.*?)```", re.DOTALL)

_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_BADGE_LINE = re.compile(r"^\s*(?:\[!\[[^\]]*\]\([^)]*\)\]\([^)]*\)\s*)+$", re.MULTILINE)
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]+\)")
_RELATIVE_LINK = re.compile(r"\[([^\]]+)\]\((?!https?://|mailto:|#)[^)]+\)")
_BLANK_RUNS = re.compile(r"\n{3,}")

_MEANINGLESS_ALT_TEXT = ("build", "status", "badge", "license", "version", "downloads", "coverage")

_CODE_INDICATORS = (
    re.compile(r"^\s*[{}\[\]();,]"),
    re.compile(r"[{}\[\]();,]\s*$"),
    re.compile(r"^\s*(using|var|class|public|private|namespace|function|const|let)\s+"),
    re.compile(r"^\s*\$"),
    re.compile(r"^\s*//"),
    re.compile(r"^\s*#"),
    re.compile(r"^\s*<[^>]+>"),
)

LANGUAGE_ALIASES = {
    "cs": "csharp",
    "c#": "csharp",
    "fs": "fsharp",
    "f#": "fsharp",
    "vb": "vbnet",
    "js": "javascript",
    "ts": "typescript",
    "sh": "bash",
    "shell": "bash",
    "ps1": "powershell",
    "yml": "yaml",
    "md": "markdown",
}


def _replace_image(match: re.Match) -> str:
    alt_text = match.group(1).strip()
    if len(alt_text) <= 3 or any(word in alt_text.lower() for word in _MEANINGLESS_ALT_TEXT):
        return ""
    return alt_text


def clean_markdown(content: str) -> str:
    """Strip badges, comments and relative links; normalize blank lines."""
    if not content:
        return ""

    cleaned = content.replace("\r\n", "\n")
    cleaned = _HTML_COMMENT.sub("", cleaned)
    cleaned = _BADGE_LINE.sub("", cleaned)
    cleaned = _IMAGE.sub(_replace_image, cleaned)
    cleaned = _RELATIVE_LINK.sub(r"\1", cleaned)
    cleaned = _BLANK_RUNS.sub("\n\n", cleaned)
    return cleaned.strip()


def normalize_language(language: str) -> str:
    normalized = (language or "text").lower()
    return LANGUAGE_ALIASES.get(normalized, normalized)


def _extract_usage_sections(content: str) -> List[str]:
    sections = []
    current: List[str] = []
    in_usage = False
    section_level = 0

    for line in content.split("\n"):
        heading = _HEADING.match(line)
        if heading:
            level = len(heading.group(1))
            if _USAGE_HEADING.match(line.strip()):
                if current:
                    sections.append("\n".join(current))
                current = [line]
                in_usage = True
                section_level = level
                continue
            if in_usage and level <= section_level:
                if current:
                    sections.append("\n".join(current))
                current = []
                in_usage = False
                continue
        if in_usage:
            current.append(line)

    if current:
        sections.append("\n".join(current))
    return sections


def _example_title(code: str, language: str) -> str:
    first_line = code.split("\n", 1)[0].strip()

    if language in ("bash", "powershell"):
        if any(cmd in first_line for cmd in ("dotnet add package", "Install-Package", "paket add")):
            return "Installation"
        return "Command Line Usage"
    if language == "csharp":
        if first_line.startswith("using ") and "(" not in first_line:
            return "Using Statement"
        return "C# Example"
    if language == "fsharp":
        return "F# Example"
    if language == "vbnet":
        return "VB.NET Example"
    if language == "xml":
        if "<PackageReference" in code or "<Project" in code:
            return "Project Configuration"
        return "XML Configuration"
    if language == "json":
        return "JSON Configuration"
    if language == "yaml":
        return "YAML Configuration"
    return "Code Example"


def _looks_like_code(text: str) -> bool:
    return any(pattern.search(text) for pattern in _CODE_INDICATORS)


def _example_description(section: str, code_start: int) -> Optional[str]:
    for line in reversed(section[:code_start].split("\n")):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if (
            MIN_DESCRIPTION_LENGTH < len(stripped) < MAX_DESCRIPTION_LENGTH
            and not _looks_like_code(stripped)
        ):
            return re.sub(r"^[*-]\s*", "", stripped)
        break
    return None


def parse_usage_examples(content: str, include_examples: bool = True) -> List[UsageExample]:
    """Code blocks found under usage-like headings, deduplicated, at most ten."""
    if not include_examples or not content:
        return []

    examples = []
    seen = set()
    for section in _extract_usage_sections(content.replace("\r\n", "\n")):
        for match in _CODE_BLOCK.finditer(section):
            code = match.group(2).strip()
            if not code:
                continue

            fingerprint = " ".join(code.split())
            if fingerprint in seen:
                continue
            seen.add(fingerprint)

            language = normalize_language(match.group(1))
            examples.append(UsageExample(
                title=_example_title(code, language),
                description=_example_description(section, match.start()),
                code=code,
                language=language,
            ))

    logger.debug("Extracted usage examples", count=min(len(examples), MAX_EXAMPLES))
    return examples[:MAX_EXAMPLES]
