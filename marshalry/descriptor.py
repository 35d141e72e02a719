"""
Module descriptors: the declarative record of one loadable unit.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union


TAG_PATTERN = re.compile(r"^![^\s.].*$")


class ModuleKind(str, Enum):
    """Load phase a descriptor belongs to."""
    MODULE = "module"
    SCOPE = "scope"


@dataclass(frozen=True)
class DirectRef:
    """Requirement on a single module by constraint key."""

    key: str

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class TagRef:
    """Requirement on the shared group of every module carrying a tag."""

    name: str

    def __str__(self) -> str:
        return "!" + self.name


Requirement = Union[DirectRef, TagRef]


def is_tag(value: str) -> bool:
    return bool(TAG_PATTERN.match(value))


def parse_requirement(value: Union[str, DirectRef, TagRef]) -> Requirement:
    """
    Parse a requirement string.

    `!name` (a bang followed by a character that is neither whitespace nor a
    dot) refers to a tag group; every other string is a literal constraint
    key.
    """
    if isinstance(value, (DirectRef, TagRef)):
        return value
    if is_tag(value):
        return TagRef(value[1:])
    return DirectRef(value)


@dataclass
class EntryConfig:
    """Identity and source of a module."""

    source: Any
    namespace: str
    name: str
    version: str = "0.0.0"
    arguments: Tuple[Any, ...] = ()

    def __post_init__(self):
        if not self.namespace:
            raise ValueError("EntryConfig must have a namespace")
        if not self.name:
            raise ValueError("EntryConfig must have a name")
        self.arguments = tuple(self.arguments)


@dataclass(frozen=True)
class ModuleDescriptor:
    """
    Declares one loadable module.

    The constraint key (`namespace/name`) is the identity of the module in
    the registry; the version is informational only. Requirements are parsed
    into `DirectRef`/`TagRef` once, at creation.
    """

    entry: EntryConfig
    kind: ModuleKind = ModuleKind.MODULE
    tags: FrozenSet[str] = frozenset()
    requires: Tuple[Requirement, ...] = ()
    lazy: bool = False
    asset: Optional[Dict[str, str]] = None
    resource: Optional[Dict[str, str]] = None

    @classmethod
    def create(
        cls,
        source: Any,
        namespace: str,
        name: str,
        version: str = "0.0.0",
        *,
        kind: Union[str, ModuleKind] = ModuleKind.MODULE,
        scope: bool = False,
        tags: Iterable[str] = (),
        requires: Iterable[Union[str, Requirement]] = (),
        lazy: bool = False,
        arguments: Iterable[Any] = (),
        asset: Optional[Dict[str, str]] = None,
        resource: Optional[Dict[str, str]] = None,
    ) -> "ModuleDescriptor":
        """
        Build a descriptor from plain values.

        Args:
            source: Opaque source reference handed to the source loader
            namespace: Namespace half of the constraint key
            name: Name half of the constraint key
            version: Informational version
            kind: "module" or "scope"
            scope: Deprecated alias for kind="scope"
            tags: Tag names this module is broadcast under
            requires: Constraint keys or `!tag` references to order after
            lazy: Defer instantiation to an on-demand factory
            arguments: Positional constructor arguments
            asset: Optional {"src": ...} asset location
            resource: Optional {"src": ...} resource location
        """
        kind = ModuleKind.SCOPE if scope else ModuleKind(kind)
        return cls(
            entry=EntryConfig(
                source=source,
                namespace=namespace,
                name=name,
                version=version,
                arguments=tuple(arguments),
            ),
            kind=kind,
            tags=frozenset(tags),
            requires=tuple(parse_requirement(r) for r in requires),
            lazy=lazy,
            asset=asset,
            resource=resource,
        )

    @property
    def constraint_key(self) -> str:
        return constraint_of(self.entry.namespace, self.entry.name)

    @property
    def source(self) -> Any:
        return self.entry.source

    @property
    def direct_requires(self) -> Tuple[str, ...]:
        return tuple(r.key for r in self.requires if isinstance(r, DirectRef))

    def __repr__(self) -> str:
        return (
            f"ModuleDescriptor({self.constraint_key}@{self.entry.version}, "
            f"kind={self.kind.value}, lazy={self.lazy})"
        )


def constraint_of(namespace: str, name: str) -> str:
    return namespace + "/" + name
