"""Assembly binding redirect computation.

Given the assemblies that will actually be deployed (the authoritative set),
find every assembly that some other assembly references at a different
version. Each of those needs a ``bindingRedirect`` to the deployed version.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from common.schema_validate import ASSEMBLIES_SCHEMA, validate_document
from versioning.models import SemanticVersion
from versioning.parser import parse_version

logger = logging.getLogger(__name__)

NEUTRAL_CULTURE = "neutral"


def assembly_version_string(version: SemanticVersion) -> str:
    """Four-part ``major.minor.build.revision`` form used in config files."""
    return ".".join(str(v) for v in version.version_tuple)


def _key(name: str, public_key_token: Optional[str]) -> Tuple[str, str]:
    return (name.lower(), (public_key_token or "").lower())


@dataclass(frozen=True)
class AssemblyReference:
    """A reference from one assembly to another name/version/token."""

    name: str
    version: SemanticVersion
    public_key_token: str = ""
    culture: str = NEUTRAL_CULTURE

    @property
    def key(self) -> Tuple[str, str]:
        return _key(self.name, self.public_key_token)


@dataclass(eq=False)
class Assembly:
    """A deployable assembly and the assemblies it references.

    Identity for redirect purposes is (name, public key token); the name is
    compared case-insensitively.
    """

    name: str
    version: SemanticVersion
    public_key_token: str = ""
    culture: str = NEUTRAL_CULTURE
    references: List[AssemblyReference] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return _key(self.name, self.public_key_token)


class AssemblyBinding:
    """An assembly needing a redirect to ``version``.

    Two bindings are equal when they name the same assembly (name and public
    key token); the version is the redirect target.
    """

    def __init__(
        self,
        name: str,
        version: SemanticVersion,
        public_key_token: str = "",
        culture: str = NEUTRAL_CULTURE,
    ) -> None:
        self.name = name
        self.version = version
        self.public_key_token = public_key_token or ""
        self.culture = culture or NEUTRAL_CULTURE

    @classmethod
    def from_assembly(cls, assembly: Assembly) -> "AssemblyBinding":
        return cls(assembly.name, assembly.version, assembly.public_key_token, assembly.culture)

    @property
    def key(self) -> Tuple[str, str]:
        return _key(self.name, self.public_key_token)

    @property
    def new_version(self) -> str:
        return assembly_version_string(self.version)

    @property
    def old_version(self) -> str:
        """Range of versions redirected, ``0.0.0.0-<new version>``."""
        return f"0.0.0.0-{self.new_version}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssemblyBinding):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"AssemblyBinding({self.name!r}, {self.new_version!r}, token={self.public_key_token!r})"

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "public_key_token": self.public_key_token,
            "culture": self.culture,
            "old_version": self.old_version,
            "new_version": self.new_version,
        }


def get_binding_redirects(assemblies: Iterable[Assembly]) -> Set[AssemblyBinding]:
    """Compute the assemblies that require a binding redirect.

    Every reference edge is inspected once. When a reference points at an
    assembly of the authoritative set by (name, token) but at another
    version, the authoritative assembly is added to the result.

    Args:
        assemblies: The authoritative assemblies.

    Returns:
        set[AssemblyBinding]: One binding per assembly needing a redirect.
    """
    assemblies = list(assemblies)
    lookup: Dict[Tuple[str, str], Assembly] = {}
    for assembly in assemblies:
        if assembly.key in lookup and lookup[assembly.key].version != assembly.version:
            logger.warning(
                "Assembly '%s' appears with versions %s and %s; using the first",
                assembly.name,
                lookup[assembly.key].version,
                assembly.version,
            )
        lookup.setdefault(assembly.key, assembly)

    bindings: Set[AssemblyBinding] = set()
    for assembly in assemblies:
        for reference in assembly.references:
            target = lookup.get(reference.key)
            if target is not None and target.version != reference.version:
                logger.debug(
                    "%s references %s %s; deployed version is %s",
                    assembly.name,
                    reference.name,
                    reference.version,
                    target.version,
                )
                bindings.add(AssemblyBinding.from_assembly(target))
    return bindings


def _reference_from_dict(item: Dict[str, Any]) -> AssemblyReference:
    return AssemblyReference(
        item["name"],
        parse_version(item["version"]),
        item.get("public_key_token") or "",
        item.get("culture") or NEUTRAL_CULTURE,
    )


def assemblies_from_document(data: Any) -> List[Assembly]:
    """Build assemblies from a parsed assemblies document.

    Raises:
        SchemaError: The document does not match the assemblies schema.
        FormatError: A version is malformed.
    """
    validate_document(ASSEMBLIES_SCHEMA, data, label="assemblies")
    return [
        Assembly(
            item["name"],
            parse_version(item["version"]),
            item.get("public_key_token") or "",
            item.get("culture") or NEUTRAL_CULTURE,
            [_reference_from_dict(r) for r in item.get("references") or []],
        )
        for item in data
    ]
