"""
NuSpec document parsing.

Uses defusedxml so untrusted registry payloads cannot trigger entity
expansion. Element lookups ignore XML namespaces because the nuspec schema
namespace changes between client versions.
"""

from typing import List, Optional
from xml.etree.ElementTree import Element

from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException

from shared.errors import ClassifiedError, ErrorKind

from ..domain.models import (
    DependencyGroup,
    PackageDependency,
    PackageMetadata,
    RepositoryMetadata,
)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _child(parent: Element, name: str) -> Optional[Element]:
    for child in parent:
        if _local_name(child.tag) == name:
            return child
    return None


def _children(parent: Element, name: str) -> List[Element]:
    return [child for child in parent if _local_name(child.tag) == name]


def _text(parent: Element, name: str) -> Optional[str]:
    child = _child(parent, name)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _dependency(element: Element) -> Optional[PackageDependency]:
    dep_id = element.get("id")
    if not dep_id:
        return None
    return PackageDependency(id=dep_id, version=element.get("version") or "*")


def _dependency_groups(metadata: Element) -> List[DependencyGroup]:
    dependencies = _child(metadata, "dependencies")
    if dependencies is None:
        return []

    groups = []

    # Legacy flat list, no target framework
    flat = [dep for dep in map(_dependency, _children(dependencies, "dependency")) if dep]
    if flat:
        groups.append(DependencyGroup(target_framework=None, dependencies=flat))

    for group in _children(dependencies, "group"):
        deps = [dep for dep in map(_dependency, _children(group, "dependency")) if dep]
        groups.append(DependencyGroup(target_framework=group.get("targetFramework"), dependencies=deps))

    return groups


def _license(metadata: Element) -> str:
    expression = _text(metadata, "licenseExpression")
    if expression:
        return expression
    license_text = _text(metadata, "license")
    if license_text:
        return license_text
    return _text(metadata, "licenseUrl") or "Unknown"


def parse_nuspec(xml_text: str, context: str = "nuspec") -> PackageMetadata:
    """Parse a .nuspec document into ``PackageMetadata``.

    Raises a ``ClassifiedError`` of kind UNKNOWN when the document is not
    well-formed or has no ``<metadata>`` element.
    """
    try:
        root = ElementTree.fromstring(xml_text.encode("utf-8"))
    except (ElementTree.ParseError, DefusedXmlException) as exc:
        raise ClassifiedError(
            ErrorKind.UNKNOWN,
            f"Failed to parse package metadata for {context}",
            code="METADATA_PARSE_ERROR",
            cause=exc,
        ) from exc

    metadata = root if _local_name(root.tag) == "metadata" else _child(root, "metadata")
    if metadata is None:
        raise ClassifiedError(
            ErrorKind.UNKNOWN,
            f"Package metadata missing <metadata> element for {context}",
            code="METADATA_PARSE_ERROR",
        )

    repository = None
    repository_element = _child(metadata, "repository")
    if repository_element is not None:
        repository = RepositoryMetadata(
            type=repository_element.get("type", ""),
            url=repository_element.get("url", ""),
            branch=repository_element.get("branch"),
            commit=repository_element.get("commit"),
        )

    development_dependency = (_text(metadata, "developmentDependency") or "").lower() == "true"

    return PackageMetadata(
        id=_text(metadata, "id") or "",
        version=_text(metadata, "version") or "",
        title=_text(metadata, "title"),
        authors=_text(metadata, "authors") or "",
        owners=_text(metadata, "owners"),
        description=_text(metadata, "description") or "",
        summary=_text(metadata, "summary"),
        release_notes=_text(metadata, "releaseNotes"),
        tags=_text(metadata, "tags") or "",
        project_url=_text(metadata, "projectUrl"),
        license=_license(metadata),
        license_url=_text(metadata, "licenseUrl"),
        icon_url=_text(metadata, "iconUrl"),
        repository=repository,
        dependency_groups=_dependency_groups(metadata),
        development_dependency=development_dependency,
    )
