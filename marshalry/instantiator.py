"""
Turns retrieved exports into live module values.

Classes are constructed with the descriptor's arguments and receive their
declared dependencies through `inject()`. Everything else (objects,
functions, factories, primitives) is published as-is.
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from types import ModuleType, SimpleNamespace
from typing import Any, Awaitable, Callable, Dict, Mapping

from .descriptor import ModuleDescriptor, TagRef, parse_requirement
from .errors import InjectionResolutionError
from .instances import InstanceBackref, LoadedInstances
from .lazy import LazyModule
from .tags import TagRegistry

logger = logging.getLogger("marshalry.instantiator")


class ExportKind(str, Enum):
    """How an unwrapped export is turned into an instance."""
    CLASS = "class"   # construct, then inject
    VALUE = "value"   # publish as-is


@dataclass
class ModuleImportUnit:
    """A descriptor paired with its raw export (or lazy factory)."""

    descriptor: ModuleDescriptor
    module: Any


_UNRESOLVED = object()


def default_export(export: Any) -> Any:
    """
    Return the conventional default export of `export`, or None.

    Module objects and namespaces carry it as a `default` attribute, mappings
    as a "default" key. Callables are never unwrapped.
    """
    if callable(export):
        return None
    if isinstance(export, (ModuleType, SimpleNamespace)):
        return getattr(export, "default", None)
    if isinstance(export, Mapping):
        return export.get("default")
    return None


def unwrap(export: Any) -> Any:
    """Replace `export` by its default export when that default is truthy."""
    default = default_export(export)
    return default if default else export


def classify(value: Any) -> ExportKind:
    if inspect.isclass(value):
        return ExportKind.CLASS
    return ExportKind.VALUE


class Instantiator:
    """
    Builds module values against the engine's loaded instances.

    Args:
        loaded: Constraint key -> live value, read for direct dependencies
        tags: Tag arena handing out shared groups for `!tag` dependencies
        backref: Written for every value built by a lazy factory
        retrieve: Async source retrieval, used by lazy factories
    """

    def __init__(
        self,
        loaded: LoadedInstances,
        tags: TagRegistry,
        backref: InstanceBackref,
        retrieve: Callable[[ModuleDescriptor], Awaitable[Any]],
    ):
        self.loaded = loaded
        self.tags = tags
        self.backref = backref
        self.retrieve = retrieve

    def defer(self, descriptor: ModuleDescriptor) -> LazyModule:
        """Wrap `descriptor` in a factory that retrieves and builds on call."""
        return LazyModule(descriptor, self)

    def instantiate(self, unit: ModuleImportUnit) -> Any:
        descriptor = unit.descriptor
        if descriptor.lazy:
            if isinstance(unit.module, LazyModule):
                return unit.module
            return self.defer(descriptor)
        return self.build(descriptor, unit.module)

    def build(self, descriptor: ModuleDescriptor, export: Any) -> Any:
        """
        Produce the final value for a retrieved export.

        A class whose declared dependencies cannot all be resolved is
        returned unconstructed.
        """
        value = unwrap(export)
        if classify(value) is not ExportKind.CLASS:
            return value

        injections = self.resolve_dependencies(value, descriptor)
        if injections is _UNRESOLVED:
            return value

        instance = value(*descriptor.entry.arguments)
        inject = getattr(instance, "inject", None)
        if injections is not None and callable(inject):
            inject(injections)

        logger.debug("Instantiated %s", descriptor.constraint_key)
        return instance

    def resolve_dependencies(self, cls: type, descriptor: ModuleDescriptor) -> Any:
        """
        Resolve the static `__inject__` map of `cls`.

        Returns:
            None if no map is declared, the resolved dict, or `_UNRESOLVED`
            when a direct dependency is not loaded
        """
        declared = getattr(cls, "__inject__", None)
        if not isinstance(declared, Mapping):
            return None

        injections: Dict[str, Any] = {}
        for name, ref in declared.items():
            requirement = parse_requirement(ref)

            if isinstance(requirement, TagRef):
                injections[name] = self.tags.group(requirement.name)
                continue

            if requirement.key not in self.loaded:
                error = InjectionResolutionError(
                    module=descriptor.constraint_key,
                    dependency=requirement.key,
                )
                logger.error(error.message)
                return _UNRESOLVED

            injections[name] = self.loaded[requirement.key]

        return injections

    def tag_value(self, unit: ModuleImportUnit) -> Any:
        """Value recorded in tag groups before instantiation."""
        if unit.descriptor.lazy:
            return unit.module
        value = unwrap(unit.module)
        if classify(value) is ExportKind.CLASS:
            return value
        return unit.module

