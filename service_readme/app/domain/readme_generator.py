"""
Markdown README synthesis from package metadata.
"""

from typing import List, Optional

from .models import EnhancedMetadata, PackageMetadata


def _installation_section(package_id: str) -> List[str]:
    return [
        "## Installation",
        "",
        "```bash",
        f"dotnet add package {package_id}",
        "```",
        "",
        "Or via Package Manager Console:",
        "",
        "```powershell",
        f"Install-Package {package_id}",
        "```",
        "",
    ]


def _document(
    metadata: PackageMetadata,
    description: Optional[str],
    summary: Optional[str] = None,
    release_notes: Optional[str] = None,
) -> str:
    lines = [f"# {metadata.title or metadata.id}", ""]

    if description:
        lines += [description, ""]
    if summary and summary != description:
        lines += ["## Summary", "", summary, ""]
    if release_notes:
        lines += ["## Release Notes", "", release_notes, ""]
    if metadata.authors:
        lines += [f"**Authors:** {metadata.authors}", ""]
    if metadata.tag_list:
        lines += [f"**Tags:** {', '.join(metadata.tag_list)}", ""]

    lines += _installation_section(metadata.id)

    if metadata.project_url:
        lines += [f"For more information, visit the [project page]({metadata.project_url}).", ""]

    return "\n".join(lines)


def create_fallback_readme(metadata: PackageMetadata) -> str:
    """README built only from the nuspec metadata."""
    return _document(metadata, metadata.description)


def create_enhanced_readme(metadata: PackageMetadata, enhanced: EnhancedMetadata) -> str:
    """README built from the registration catalog entry, nuspec as backup."""
    return _document(
        metadata,
        enhanced.description or metadata.description,
        summary=enhanced.summary,
        release_notes=enhanced.release_notes,
    )
