"""
Unit tests for .nuspec parsing.
"""

import pytest

from shared.errors import ClassifiedError, ErrorKind
from shared.test_helpers import TestDataFactory
from service_readme.app.adapters.nuspec import parse_nuspec


class TestParseNuspec:
    """Test cases for parse_nuspec."""

    def test_basic_fields(self):
        metadata = parse_nuspec(TestDataFactory.create_nuspec_xml(title="Acme Widget"))

        assert metadata.id == "Acme.Widget"
        assert metadata.version == "1.2.0"
        assert metadata.title == "Acme Widget"
        assert metadata.author_list == ["Acme Corp", "Jane Doe"]
        assert metadata.tag_list == ["widget", "acme", "dotnet"]
        assert metadata.project_url == "https://github.com/acme/widget"
        assert metadata.license == "MIT"

    @pytest.mark.parametrize("namespace", [
        "http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd",
        "http://schemas.microsoft.com/packaging/2011/08/nuspec.xsd",
        "http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd",
    ])
    def test_namespace_agnostic(self, namespace):
        metadata = parse_nuspec(TestDataFactory.create_nuspec_xml(namespace=namespace))

        assert metadata.id == "Acme.Widget"

    def test_repository_element(self):
        metadata = parse_nuspec(TestDataFactory.create_nuspec_xml(
            repository_url="https://github.com/acme/widget-core.git",
        ))

        assert metadata.repository.type == "git"
        assert metadata.repository_url_candidates() == [
            "https://github.com/acme/widget-core.git",
            "https://github.com/acme/widget",
        ]

    def test_dependency_groups(self):
        metadata = parse_nuspec(TestDataFactory.create_nuspec_xml(dependency_groups={
            "net8.0": [{"id": "Newtonsoft.Json", "version": "13.0.1"}],
            "netstandard2.0": [{"id": "System.Memory", "version": "4.5.5"}],
        }))

        frameworks = [group.target_framework for group in metadata.dependency_groups]
        assert frameworks == ["net8.0", "netstandard2.0"]
        assert metadata.dependency_groups[0].dependencies[0].id == "Newtonsoft.Json"
        assert metadata.dependency_groups[0].dependencies[0].version == "13.0.1"

    def test_legacy_flat_dependencies(self):
        xml = (
            "<package><metadata><id>Old.Pkg</id><version>1.0.0</version>"
            '<dependencies><dependency id="log4net" /></dependencies>'
            "</metadata></package>"
        )

        metadata = parse_nuspec(xml)

        assert metadata.dependency_groups[0].target_framework is None
        assert metadata.dependency_groups[0].dependencies[0].version == "*"

    def test_development_dependency_flag(self):
        metadata = parse_nuspec(TestDataFactory.create_nuspec_xml(development_dependency=True))

        assert metadata.development_dependency is True

    def test_license_url_fallback(self):
        xml = (
            "<package><metadata><id>Old.Pkg</id><version>1.0.0</version>"
            "<licenseUrl>https://example.com/license</licenseUrl>"
            "</metadata></package>"
        )

        metadata = parse_nuspec(xml)

        assert metadata.license == "https://example.com/license"
        assert metadata.license_url == "https://example.com/license"

    def test_license_unknown(self):
        metadata = parse_nuspec(TestDataFactory.create_nuspec_xml(license_expression=None))

        assert metadata.license == "Unknown"

    def test_malformed_document(self):
        with pytest.raises(ClassifiedError) as exc_info:
            parse_nuspec("<package><metadata>", "Acme.Widget")

        assert exc_info.value.kind is ErrorKind.UNKNOWN
        assert exc_info.value.code == "METADATA_PARSE_ERROR"
        assert exc_info.value.retryable is False

    def test_missing_metadata_element(self):
        with pytest.raises(ClassifiedError) as exc_info:
            parse_nuspec("<package />")

        assert exc_info.value.code == "METADATA_PARSE_ERROR"

    def test_entity_expansion_rejected(self):
        xml = (
            '<?xml version="1.0"?><!DOCTYPE lolz [<!ENTITY lol "lol">]>'
            "<package><metadata><id>&lol;</id></metadata></package>"
        )

        with pytest.raises(ClassifiedError):
            parse_nuspec(xml)
