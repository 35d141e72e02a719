"""
The Marshal engine: registry, load cycle and instance lookup.
"""

import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, TypeVar

from .descriptor import ModuleDescriptor, ModuleKind
from .errors import MarshalError, ResourceNotDefinedError, ScopeCollisionError, SourceLoadError
from .graph import DependencyOrderer
from .instances import InstanceBackref, LoadedInstances
from .instantiator import Instantiator, default_export
from .pipeline import TwoPhaseLoader
from .sources import SourceLoader
from .tags import TagGroup, TagRegistry

logger = logging.getLogger("marshalry.core")

T = TypeVar("T")

_MISSING = object()

SourceLoaderFn = Callable[[Any, Dict[str, Any]], Awaitable[Any]]


class Marshal:
    """
    Dependency-injection module registry.

    Callers register descriptors, then `await load()` orders them,
    retrieves their sources, constructs classes with their dependencies
    injected and publishes the instances under their constraint keys.

    One engine owns its registry, loaded instances, tag groups and scope.
    Load cycles on the same engine must not overlap.

    Usage:
        marshal = Marshal()
        marshal.register(ModuleDescriptor.create(Db, "app", "db"))
        marshal.register(ModuleDescriptor.create(
            Api, "app", "api", requires=["app/db"],
        ))
        await marshal.load()
        api = marshal.get("app/api")
    """

    version = "0.0.2"

    def __init__(
        self,
        source_loader: Optional[SourceLoaderFn] = None,
        *,
        config: Any = None,
    ):
        self.config = config
        self.source_loader = source_loader or self._default_loader(config)

        self._registered: Dict[str, ModuleDescriptor] = {}
        self._loaded = LoadedInstances()
        self._scope: Dict[str, Any] = {}
        self._tags = TagRegistry()
        self._backref = InstanceBackref()

        budget_factor = 1
        if config is not None:
            budget_factor = config.get("scan_budget_factor", 1)
        self._orderer = DependencyOrderer(budget_factor=budget_factor)
        self._instantiator = Instantiator(
            loaded=self._loaded,
            tags=self._tags,
            backref=self._backref,
            retrieve=self._retrieve,
        )
        self._pipeline = TwoPhaseLoader(
            orderer=self._orderer,
            instantiator=self._instantiator,
            tags=self._tags,
            loaded=self._loaded,
            publish=self._map_instance,
        )

        self.register(ModuleDescriptor.create(
            self, "marshalry", "marshal", self.version,
        ))

    @classmethod
    def from_config(
        cls,
        config: Any,
        source_loader: Optional[SourceLoaderFn] = None,
    ) -> "Marshal":
        """Create an engine and register every manifest listed in `config`."""
        marshal = cls(source_loader, config=config)
        for path in config.get("manifests", []) or []:
            marshal.register_manifest(path)
        return marshal

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, descriptor: ModuleDescriptor) -> None:
        """
        Store `descriptor` under its constraint key, replacing any previous one.

        Precondition: a key must not be re-registered while a load cycle that
        includes it is running.
        """
        key = self.constraint_of(descriptor)
        if key in self._registered:
            logger.debug("Overwriting registration of %s", key)
        self._registered[key] = descriptor
        logger.debug("Registered %r", descriptor)

    def register_many(self, descriptors: Iterable[ModuleDescriptor]) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def register_manifest(self, path: str) -> None:
        """Register every descriptor declared in a YAML/JSON manifest."""
        from .manifest import ManifestLoader

        self.register_many(ManifestLoader().load(path))

    @staticmethod
    def constraint_of(descriptor: ModuleDescriptor) -> str:
        return descriptor.constraint_key

    def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        """Loaded instance for `key`; pending descriptors are never returned."""
        return self._loaded.get(key, default)

    @property
    def registered(self) -> Mapping[str, ModuleDescriptor]:
        return MappingProxyType(self._registered)

    @property
    def loaded(self) -> Mapping[str, Any]:
        return MappingProxyType(self._loaded.as_dict())

    @property
    def scope(self) -> Mapping[str, Any]:
        return MappingProxyType(self._scope)

    def tag_group(self, name: str) -> TagGroup:
        """Shared group handle for tag `name` (created empty if unknown)."""
        return self._tags.group(name)

    # ------------------------------------------------------------------
    # Scope
    # ------------------------------------------------------------------

    def add_scope(self, name: str, value: Any) -> None:
        if name in self._scope:
            raise ScopeCollisionError(name)
        self._scope[name] = value

    # ------------------------------------------------------------------
    # Load cycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """
        Load every registered descriptor.

        Scope providers are loaded first and their default-export mappings
        merged into the shared scope; the remaining modules follow.

        Raises:
            MissingDependencyError: A requirement is registered nowhere
            DependencyCycleError: Requirements form a cycle
            ScopeCollisionError: Two scope providers export the same name
            SourceLoadError: A non-lazy source could not be retrieved
        """
        scopes: Dict[str, ModuleDescriptor] = {}
        modules: Dict[str, ModuleDescriptor] = {}
        for key, descriptor in self._registered.items():
            if descriptor.kind is ModuleKind.SCOPE:
                scopes[key] = descriptor
            else:
                modules[key] = descriptor

        logger.debug("Loading %d scope(s) and %d module(s)", len(scopes), len(modules))

        for unit in await self._pipeline.run(scopes):
            exported = default_export(unit.module)
            if isinstance(exported, Mapping):
                for name, value in exported.items():
                    self.add_scope(name, value)

        await self._pipeline.run(modules)

    async def import_source(
        self,
        ref: Any,
        extra_scope: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Run the source loader with the shared scope plus `extra_scope`."""
        scope = dict(self._scope)
        scope.update(extra_scope or {})
        return await self.source_loader(ref, scope)

    async def _retrieve(self, descriptor: ModuleDescriptor) -> Any:
        try:
            return await self.import_source(descriptor.source)
        except MarshalError:
            raise
        except Exception as e:
            raise SourceLoadError(descriptor.source, f"{type(e).__name__}: {e}") from e

    def _map_instance(self, descriptor: ModuleDescriptor, value: Any) -> None:
        key = self.constraint_of(descriptor)
        if self._registered.get(key) is descriptor:
            del self._registered[key]

        previous = self._loaded.get(key, _MISSING)
        self._loaded.add(key, value)
        if previous is not _MISSING and previous is not value:
            if not any(v is previous for v in self._loaded.as_dict().values()):
                self._backref.discard(previous)

        self._backref.set(value, descriptor, retain=True)

    # ------------------------------------------------------------------
    # Instance metadata
    # ------------------------------------------------------------------

    def get_mapped_instance(self, module: Any) -> Optional[ModuleDescriptor]:
        """Descriptor that produced `module`, if the engine built it."""
        return self._backref.get(module)

    def get_resource_url(self, module: Any, suffix: str) -> str:
        descriptor = self.get_mapped_instance(module)
        if descriptor is None or not descriptor.resource:
            raise ResourceNotDefinedError("resource")
        return descriptor.resource["src"] + suffix

    def asset(self, module: Any, suffix: str) -> str:
        descriptor = self.get_mapped_instance(module)
        if descriptor is None or not descriptor.asset:
            raise ResourceNotDefinedError("asset")
        return descriptor.asset["src"] + suffix

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Drop all registry, instance, tag and scope state."""
        self._registered.clear()
        self._loaded.clear()
        self._tags.clear()
        self._backref.clear()
        self._scope.clear()

    async def __aenter__(self) -> "Marshal":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Marshal(registered={len(self._registered)}, "
            f"loaded={len(self._loaded)}, tags={len(self._tags)})"
        )

    @staticmethod
    def _default_loader(config: Any) -> SourceLoader:
        if config is None:
            return SourceLoader()
        return SourceLoader(
            base_path=config.get("loader.base_path"),
            timeout=config.get("loader.timeout", 10.0),
        )
