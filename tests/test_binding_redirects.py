"""Tests for binding redirect computation and config file maintenance."""

import logging
import xml.etree.ElementTree as ET

import pytest

from binding.config_manager import (
    ASSEMBLY_BINDING,
    ASSEMBLY_IDENTITY,
    BINDING_REDIRECT,
    DEPENDENT_ASSEMBLY,
    BindingRedirectManager,
)
from binding.redirects import (
    Assembly,
    AssemblyBinding,
    AssemblyReference,
    assemblies_from_document,
    get_binding_redirects,
)
from common.errors import ConfigError, SchemaError
from versioning.parser import parse_version

TOKEN = "b77a5c561934e089"


def ref(name, version, token=TOKEN):
    return AssemblyReference(name, parse_version(version), token)


def asm(name, version, token=TOKEN, references=()):
    return Assembly(name, parse_version(version), token, references=list(references))


def binding(name, version, token=TOKEN):
    return AssemblyBinding(name, parse_version(version), token)


class TestGetBindingRedirects:
    """Test get_binding_redirects."""

    def test_reference_to_other_version_needs_redirect(self):
        assemblies = [asm("App", "1.0", references=[ref("Foo", "1.0.0.0")]), asm("Foo", "2.0")]
        result = get_binding_redirects(assemblies)
        assert len(result) == 1
        (found,) = result
        assert found.name == "Foo"
        assert found.new_version == "2.0.0.0"
        assert found.old_version == "0.0.0.0-2.0.0.0"
        assert found.public_key_token == TOKEN

    def test_matching_version_needs_nothing(self):
        assemblies = [asm("App", "1.0", references=[ref("Foo", "2.0.0.0")]), asm("Foo", "2.0")]
        assert get_binding_redirects(assemblies) == set()

    def test_different_public_key_token_is_another_assembly(self):
        assemblies = [asm("App", "1.0", references=[ref("Foo", "1.0", token="0000000000000000")]), asm("Foo", "2.0")]
        assert get_binding_redirects(assemblies) == set()

    def test_name_is_case_insensitive(self):
        assemblies = [asm("App", "1.0", references=[ref("FOO", "1.0")]), asm("foo", "2.0")]
        assert {b.name for b in get_binding_redirects(assemblies)} == {"foo"}

    def test_unsigned_assemblies(self):
        assemblies = [asm("App", "1.0", references=[ref("Foo", "1.0", token="")]), asm("Foo", "2.0", token="")]
        (found,) = get_binding_redirects(assemblies)
        assert found.public_key_token == ""

    def test_reference_outside_deployed_set_is_ignored(self):
        assemblies = [asm("App", "1.0", references=[ref("System.Web", "4.0")])]
        assert get_binding_redirects(assemblies) == set()

    def test_many_referrers_give_one_binding(self):
        assemblies = [
            asm("App", "1.0", references=[ref("Foo", "1.0")]),
            asm("Lib", "1.0", references=[ref("Foo", "1.5")]),
            asm("Foo", "2.0"),
        ]
        assert get_binding_redirects(assemblies) == {binding("Foo", "2.0")}

    def test_duplicate_assembly_uses_first(self, caplog):
        assemblies = [
            asm("App", "1.0", references=[ref("Foo", "1.0")]),
            asm("Foo", "2.0"),
            asm("Foo", "3.0"),
        ]
        with caplog.at_level(logging.WARNING):
            (found,) = get_binding_redirects(assemblies)
        assert found.new_version == "2.0.0.0"
        assert "using the first" in caplog.text


class TestAssemblyBinding:
    """Test binding identity and serialization."""

    def test_equality_ignores_version_and_case(self):
        assert binding("Foo", "1.0") == binding("foo", "2.0")
        assert len({binding("Foo", "1.0"), binding("FOO", "2.0")}) == 1
        assert binding("Foo", "1.0") != binding("Foo", "1.0", token="")

    def test_to_dict(self):
        assert binding("Foo", "2.1.3").to_dict() == {
            "name": "Foo",
            "public_key_token": TOKEN,
            "culture": "neutral",
            "old_version": "0.0.0.0-2.1.3.0",
            "new_version": "2.1.3.0",
        }


class TestAssembliesDocument:
    """Test assemblies_from_document."""

    def test_builds_assemblies(self):
        data = [
            {"name": "App", "version": "1.0", "references": [{"name": "Foo", "version": "1.0", "public_key_token": TOKEN}]},
            {"name": "Foo", "version": "2.0", "public_key_token": TOKEN, "culture": "en-US"},
        ]
        app, foo = assemblies_from_document(data)
        assert app.public_key_token == ""
        assert app.references[0].key == ("foo", TOKEN)
        assert foo.culture == "en-US"
        assert get_binding_redirects([app, foo]) == {binding("Foo", "2.0")}

    def test_invalid_document(self):
        with pytest.raises(SchemaError):
            assemblies_from_document([{"version": "1.0"}])
        with pytest.raises(SchemaError):
            assemblies_from_document({"name": "Foo"})


def read_redirects(path):
    """(name, newVersion) pairs in document order."""
    root = ET.parse(path).getroot()
    pairs = []
    for dependent in root.iter(DEPENDENT_ASSEMBLY):
        pairs.append(
            (dependent.find(ASSEMBLY_IDENTITY).get("name"), dependent.find(BINDING_REDIRECT).get("newVersion"))
        )
    return pairs


class TestBindingRedirectManager:
    """Test BindingRedirectManager against files in tmp_path."""

    def test_creates_config_file(self, tmp_path):
        path = tmp_path / "web.config"
        BindingRedirectManager(str(path)).add_binding_redirects([binding("Foo", "2.0")])
        root = ET.parse(path).getroot()
        assert root.tag == "configuration"
        identity = root.find(f"runtime/{ASSEMBLY_BINDING}/{DEPENDENT_ASSEMBLY}/{ASSEMBLY_IDENTITY}")
        assert identity.attrib == {"name": "Foo", "publicKeyToken": TOKEN, "culture": "neutral"}
        redirect = root.find(f"runtime/{ASSEMBLY_BINDING}/{DEPENDENT_ASSEMBLY}/{BINDING_REDIRECT}")
        assert redirect.attrib == {"oldVersion": "0.0.0.0-2.0.0.0", "newVersion": "2.0.0.0"}

    def test_unsigned_binding_has_no_token_attribute(self, tmp_path):
        path = tmp_path / "app.config"
        BindingRedirectManager(str(path)).add_binding_redirects([binding("Foo", "2.0", token="")])
        identity = ET.parse(path).getroot().find(f".//{ASSEMBLY_IDENTITY}")
        assert "publicKeyToken" not in identity.attrib

    def test_existing_entry_is_replaced(self, tmp_path):
        path = tmp_path / "web.config"
        manager = BindingRedirectManager(str(path))
        manager.add_binding_redirects([binding("Foo", "2.0"), binding("Bar", "1.5")])
        manager.add_binding_redirects([binding("foo", "3.0")])
        assert sorted(read_redirects(path)) == [("Bar", "1.5.0.0"), ("foo", "3.0.0.0")]

    def test_other_settings_preserved(self, tmp_path):
        path = tmp_path / "web.config"
        path.write_text(
            '<?xml version="1.0"?>\n'
            "<configuration>\n"
            "  <!-- keep me -->\n"
            '  <appSettings><add key="mode" value="prod"/></appSettings>\n'
            "</configuration>\n",
            encoding="utf-8",
        )
        BindingRedirectManager(str(path)).add_binding_redirects([binding("Foo", "2.0")])
        text = path.read_text(encoding="utf-8")
        assert "keep me" in text
        root = ET.parse(path).getroot()
        assert root.find("appSettings/add").get("value") == "prod"
        assert read_redirects(path) == [("Foo", "2.0.0.0")]

    def test_only_assembly_binding_is_namespaced(self, tmp_path):
        path = tmp_path / "web.config"
        path.write_text("<configuration><appSettings/></configuration>", encoding="utf-8")
        manager = BindingRedirectManager(str(path))
        manager.add_binding_redirects([binding("Foo", "2.0")])
        manager.add_binding_redirects([binding("Foo", "3.0")])

        text = path.read_text(encoding="utf-8")
        assert "<configuration>" in text
        assert '<assemblyBinding xmlns="urn:schemas-microsoft-com:asm.v1">' in text
        assert "ns0:" not in text
        root = ET.parse(path).getroot()
        assert root.tag == "configuration"
        assert root.find("appSettings") is not None
        assert len(root.findall("runtime")) == 1
        assert read_redirects(path) == [("Foo", "3.0.0.0")]

    def test_remove(self, tmp_path):
        path = tmp_path / "web.config"
        manager = BindingRedirectManager(str(path))
        manager.add_binding_redirects([binding("Foo", "2.0"), binding("Bar", "1.5")])

        manager.remove_binding_redirects([binding("Foo", "9.9")])
        assert read_redirects(path) == [("Bar", "1.5.0.0")]

        manager.remove_binding_redirects([binding("Bar", "1.5")])
        root = ET.parse(path).getroot()
        assert root.find(f"runtime/{ASSEMBLY_BINDING}") is None

    def test_remove_from_missing_file_is_noop(self, tmp_path):
        path = tmp_path / "web.config"
        BindingRedirectManager(str(path)).remove_binding_redirects([binding("Foo", "2.0")])
        assert not path.exists()

    def test_get_binding_redirects(self, tmp_path):
        manager = BindingRedirectManager(str(tmp_path / "web.config"))
        assert manager.get_binding_redirects() == []
        manager.add_binding_redirects([binding("Foo", "2.0")])
        (found,) = manager.get_binding_redirects()
        assert found == binding("Foo", "2.0")
        assert found.new_version == "2.0.0.0"

    def test_malformed_config(self, tmp_path):
        path = tmp_path / "web.config"
        path.write_text("<configuration>", encoding="utf-8")
        with pytest.raises(ConfigError):
            BindingRedirectManager(str(path)).add_binding_redirects([binding("Foo", "2.0")])

    def test_path_required(self):
        with pytest.raises(ValueError):
            BindingRedirectManager("")
