"""Maintains the ``assemblyBinding`` section of an application config file."""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, Iterable, List, Optional, Tuple

from common.errors import ConfigError
from constants import Constants
from versioning.parser import try_parse_version

from .redirects import NEUTRAL_CULTURE, AssemblyBinding

logger = logging.getLogger(__name__)

_NS = Constants.ASM_V1_NAMESPACE
ASSEMBLY_BINDING = f"{{{_NS}}}assemblyBinding"
DEPENDENT_ASSEMBLY = f"{{{_NS}}}dependentAssembly"
ASSEMBLY_IDENTITY = f"{{{_NS}}}assemblyIdentity"
BINDING_REDIRECT = f"{{{_NS}}}bindingRedirect"


def binding_to_element(binding: AssemblyBinding) -> ET.Element:
    """Render ``binding`` as a ``dependentAssembly`` element."""
    element = ET.Element(DEPENDENT_ASSEMBLY)
    identity = ET.SubElement(element, ASSEMBLY_IDENTITY, {"name": binding.name})
    if binding.public_key_token:
        identity.set("publicKeyToken", binding.public_key_token)
    identity.set("culture", binding.culture or NEUTRAL_CULTURE)
    ET.SubElement(
        element,
        BINDING_REDIRECT,
        {"oldVersion": binding.old_version, "newVersion": binding.new_version},
    )
    return element


def binding_from_element(element: ET.Element) -> Optional[AssemblyBinding]:
    """Parse a ``dependentAssembly`` element; None when it has no usable identity."""
    identity = element.find(ASSEMBLY_IDENTITY)
    if identity is None or not identity.get("name"):
        return None
    redirect = element.find(BINDING_REDIRECT)
    version = try_parse_version(redirect.get("newVersion")) if redirect is not None else None
    if version is None:
        version = try_parse_version("0.0.0.0")
    return AssemblyBinding(
        identity.get("name"),
        version,
        identity.get("publicKeyToken") or "",
        identity.get("culture") or NEUTRAL_CULTURE,
    )


class BindingRedirectManager:
    """Adds and removes binding redirects in one configuration file.

    Args:
        path: Configuration file (e.g. ``web.config``); created on first write.
    """

    def __init__(self, path: str) -> None:
        if not path:
            raise ValueError("A configuration path is required")
        self.path = path

    def _load(self) -> ET.ElementTree:
        if not os.path.isfile(self.path):
            return ET.ElementTree(ET.Element("configuration"))
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            return ET.parse(self.path, parser=parser)
        except (ET.ParseError, OSError) as e:
            raise ConfigError(f"Couldn't parse {self.path}: {e}") from e

    def _save(self, tree: ET.ElementTree) -> None:
        # Only assemblyBinding carries the asm.v1 namespace, declared as its own default
        prefix = f"{{{_NS}}}"
        for parent in list(tree.getroot().iter(ASSEMBLY_BINDING)):
            for elem in parent.iter():
                if isinstance(elem.tag, str) and elem.tag.startswith(prefix):
                    elem.tag = elem.tag[len(prefix):]
            parent.set("xmlns", _NS)
        ET.indent(tree, space="  ")
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tree.write(self.path, encoding="utf-8", xml_declaration=True)

    @staticmethod
    def _current_bindings(runtime: Optional[ET.Element]) -> Dict[Tuple[str, str], List[Tuple[ET.Element, ET.Element]]]:
        """Map binding key -> [(assemblyBinding parent, dependentAssembly element)]."""
        found: Dict[Tuple[str, str], List[Tuple[ET.Element, ET.Element]]] = {}
        if runtime is None:
            return found
        for parent in runtime.findall(ASSEMBLY_BINDING):
            for element in parent.findall(DEPENDENT_ASSEMBLY):
                binding = binding_from_element(element)
                if binding is not None:
                    found.setdefault(binding.key, []).append((parent, element))
        return found

    @staticmethod
    def _remove(runtime: ET.Element, parent: ET.Element, element: ET.Element) -> None:
        parent.remove(element)
        if len(parent) == 0 and parent in list(runtime):
            runtime.remove(parent)

    def add_binding_redirects(self, bindings: Iterable[AssemblyBinding]) -> None:
        """Write ``bindings``, replacing existing entries for the same assemblies."""
        bindings = sorted(set(bindings), key=lambda b: b.key)
        if not bindings:
            return
        tree = self._load()
        root = tree.getroot()
        runtime = root.find("runtime")
        if runtime is None:
            runtime = ET.SubElement(root, "runtime")

        current = self._current_bindings(runtime)
        for binding in bindings:
            for parent, element in current.get(binding.key, []):
                self._remove(runtime, parent, element)
            target = runtime.find(ASSEMBLY_BINDING)
            if target is None:
                target = ET.SubElement(runtime, ASSEMBLY_BINDING)
            target.append(binding_to_element(binding))
            logger.info("Redirecting %s to %s in %s", binding.name, binding.new_version, self.path)
        self._save(tree)

    def remove_binding_redirects(self, bindings: Iterable[AssemblyBinding]) -> None:
        """Remove entries for ``bindings``; empty ``assemblyBinding`` parents go too."""
        bindings = list(bindings)
        if not bindings or not os.path.isfile(self.path):
            return
        tree = self._load()
        runtime = tree.getroot().find("runtime")
        current = self._current_bindings(runtime)
        if not current:
            return
        for binding in bindings:
            for parent, element in current.get(binding.key, []):
                self._remove(runtime, parent, element)
                logger.info("Removed redirect for %s from %s", binding.name, self.path)
        self._save(tree)

    def get_binding_redirects(self) -> List[AssemblyBinding]:
        """Bindings currently present in the file, grouped by assembly."""
        if not os.path.isfile(self.path):
            return []
        runtime = self._load().getroot().find("runtime")
        result = []
        for entries in self._current_bindings(runtime).values():
            for _, element in entries:
                binding = binding_from_element(element)
                if binding is not None:
                    result.append(binding)
        return result
