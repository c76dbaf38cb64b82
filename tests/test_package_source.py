"""Tests for package sources and feed documents."""

import json

import pytest

from common.errors import ConfigError, FormatError, PackageNotFoundError, SchemaError
from repository.feed import build_source, load_feed, load_feeds
from repository.source import (
    AggregatePackageSource,
    InMemoryPackageSource,
    PackageFile,
    select_dependencies,
)
from resolution.models import DependencySet, PackageDependency, PackageIdentity
from versioning.parser import parse_version, parse_version_spec


@pytest.fixture
def source():
    """Small source with framework-scoped dependencies."""
    src = InMemoryPackageSource("test")
    src.add_package("Newtonsoft.Json", "12.0.1")
    src.add_package("Newtonsoft.Json", "13.0.1")
    src.add_package("Newtonsoft.Json", "14.0.0-beta")
    src.add_package(
        "Web.Lib",
        "1.0",
        dependency_sets=[
            DependencySet("net45", (PackageDependency.create("Newtonsoft.Json", "[12.0,14.0)"),)),
            DependencySet("netstandard2.0", (PackageDependency.create("System.Memory", "4.5"),)),
        ],
        files={"lib/net45/Web.Lib.dll": "", "content/web.txt": "hi"},
    )
    return src


class TestInMemoryPackageSource:
    """Test the in-memory source."""

    def test_available_versions_ascending(self, source):
        versions = source.get_available_versions("newtonsoft.json")
        assert [str(v) for v in versions] == ["12.0.1", "13.0.1", "14.0.0-beta"]

    def test_unknown_id_has_no_versions(self, source):
        assert source.get_available_versions("Missing") == []

    def test_find_package_highest_match(self, source):
        found = source.find_package("NEWTONSOFT.JSON", parse_version_spec("[12.0,14.0)"))
        assert found == PackageIdentity.create("Newtonsoft.Json", "13.0.1")
        assert found.id == "Newtonsoft.Json"

    def test_find_package_prerelease_filter(self, source):
        assert str(source.find_package("Newtonsoft.Json").version) == "13.0.1"
        assert str(source.find_package("Newtonsoft.Json", allow_prerelease=True).version) == "14.0.0-beta"
        found = source.find_package("Newtonsoft.Json", parse_version_spec("14.0.0-alpha"))
        assert str(found.version) == "14.0.0-beta"
        assert source.find_package("Newtonsoft.Json", parse_version_spec("[20.0,)")) is None

    def test_dependencies_for_framework(self, source):
        identity = PackageIdentity.create("Web.Lib", "1.0")
        deps = source.get_dependencies(identity, "net472")
        assert [d.id for d in deps] == ["Newtonsoft.Json"]
        deps = source.get_dependencies(identity, "netcoreapp3.1")
        assert [d.id for d in deps] == ["System.Memory"]

    def test_dependencies_without_framework_use_union(self, source):
        identity = PackageIdentity.create("Web.Lib", "1.0")
        deps = source.get_dependencies(identity)
        assert [d.id for d in deps] == ["Newtonsoft.Json", "System.Memory"]

    def test_incompatible_framework_has_no_dependencies(self, source):
        assert source.get_dependencies(PackageIdentity.create("Web.Lib", "1.0"), "net20") == []

    def test_unknown_identity_raises(self, source):
        with pytest.raises(PackageNotFoundError):
            source.get_dependencies(PackageIdentity.create("Web.Lib", "9.9"))

    def test_files(self, source):
        files = source.get_files(PackageIdentity.create("web.lib", "1.0.0"))
        assert PackageFile("content/web.txt", "hi") in files
        assert {f.folder for f in files} == {"lib", "content"}

    def test_dependencies_mapping_shortcut(self):
        src = InMemoryPackageSource()
        identity = src.add_package("A", "1.0", dependencies={"B": "[1.0,2.0)", "C": None})
        deps = src.get_dependencies(identity, "net45")
        assert deps == [
            PackageDependency("B", parse_version_spec("[1.0,2.0)")),
            PackageDependency("C", parse_version_spec(None)),
        ]


class TestSelectDependencies:
    """Test dependency set selection rules."""

    def test_neutral_set_preferred_without_framework(self):
        sets = [
            DependencySet("net45", (PackageDependency.create("A"),)),
            DependencySet(None, (PackageDependency.create("B"),)),
        ]
        assert [d.id for d in select_dependencies(sets, None)] == ["B"]

    def test_union_keeps_first_declaration(self):
        sets = [
            DependencySet("net45", (PackageDependency.create("A", "1.0"),)),
            DependencySet("net40", (PackageDependency.create("a", "2.0"), PackageDependency.create("B"))),
        ]
        deps = select_dependencies(sets, None)
        assert [(d.id, str(d.version_spec)) for d in deps] == [("A", "1.0.0"), ("B", "*")]

    def test_no_sets(self):
        assert select_dependencies([], "net45") == []


class TestAggregatePackageSource:
    """Test combining several sources."""

    def test_versions_merged_and_first_source_wins(self):
        first = InMemoryPackageSource("first")
        first.add_package("A", "1.0", dependencies={"B": "1.0"})
        second = InMemoryPackageSource("second")
        second.add_package("A", "1.0", dependencies={"C": "1.0"})
        second.add_package("A", "2.0")
        aggregate = AggregatePackageSource([first, second])

        assert [str(v) for v in aggregate.get_available_versions("a")] == ["1.0.0", "2.0.0"]
        deps = aggregate.get_dependencies(PackageIdentity.create("A", "1.0"))
        assert [d.id for d in deps] == ["B"]
        assert aggregate.get_dependencies(PackageIdentity.create("A", "2.0")) == []

    def test_missing_identity(self):
        aggregate = AggregatePackageSource([InMemoryPackageSource()])
        with pytest.raises(PackageNotFoundError):
            aggregate.get_files(PackageIdentity.create("A", "1.0"))


class TestFeedDocuments:
    """Test loading feeds from YAML and JSON."""

    FEED = {
        "packages": [
            {
                "id": "A",
                "version": "1.0",
                "dependencies": [{"id": "B", "version": "[1.0,2.0)"}],
                "files": {"lib/A.dll": ""},
            },
            {"id": "B", "version": "1.0"},
            {
                "id": "C",
                "version": "1.0",
                "dependency_sets": [{"target_framework": "net45", "dependencies": [{"id": "B"}]}],
            },
        ]
    }

    def test_load_yaml_feed(self, tmp_path):
        path = tmp_path / "feed.yml"
        path.write_text(
            "packages:\n"
            "  - id: A\n"
            "    version: '1.0'\n"
            "    dependencies:\n"
            "      - {id: B, version: '[1.0,2.0)'}\n"
            "  - id: B\n"
            "    version: '1.0'\n",
            encoding="utf-8",
        )
        src = load_feed(str(path))
        deps = src.get_dependencies(PackageIdentity.create("A", "1.0"))
        assert deps == [PackageDependency.create("B", "[1.0,2.0)")]

    def test_load_json_feed(self, tmp_path):
        path = tmp_path / "feed.json"
        path.write_text(json.dumps(self.FEED), encoding="utf-8")
        src = load_feed(str(path))
        assert [d.id for d in src.get_dependencies(PackageIdentity.create("C", "1.0"), "net45")] == ["B"]
        assert [f.path for f in src.get_files(PackageIdentity.create("A", "1.0"))] == ["lib/A.dll"]

    def test_load_feeds_aggregates(self, tmp_path):
        one = tmp_path / "one.json"
        one.write_text(json.dumps({"packages": [{"id": "A", "version": "1.0"}]}), encoding="utf-8")
        two = tmp_path / "two.json"
        two.write_text(json.dumps({"packages": [{"id": "A", "version": "2.0"}]}), encoding="utf-8")
        src = load_feeds([str(one), str(two)])
        assert isinstance(src, AggregatePackageSource)
        assert len(src.get_available_versions("A")) == 2

    def test_numeric_version_rejected_by_schema(self):
        with pytest.raises(SchemaError) as exc:
            build_source({"packages": [{"id": "A", "version": 1.1}]})
        assert "packages/0/version" in str(exc.value)

    def test_missing_packages_key(self):
        with pytest.raises(SchemaError):
            build_source({})

    def test_bad_range_raises_format_error(self):
        with pytest.raises(FormatError):
            build_source({"packages": [{"id": "A", "version": "1.0", "dependencies": [{"id": "B", "version": "[2.0,1.0]"}]}]})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_feed(str(tmp_path / "nope.yml"))

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("packages: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_feed(str(path))
