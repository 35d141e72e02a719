"""
Marshalry - dependency-injection module registry

Registers module descriptors, orders them by their requirements, retrieves
their sources concurrently, constructs classes with injected dependencies
and publishes the live instances under stable `namespace/name` keys:
- Dependency ordering with missing-dependency and cycle detection
- Two-phase loading: concurrent retrieval, ordered instantiation
- Tag groups broadcast to every consumer by reference
- Lazy modules published as async factories
- Scope providers feeding text-mode sources
"""

__version__ = "0.0.2"

from .core import Marshal

from .descriptor import (
    EntryConfig,
    ModuleDescriptor,
    ModuleKind,
    DirectRef,
    TagRef,
    Requirement,
    parse_requirement,
    is_tag,
)

from .errors import (
    MarshalError,
    MissingDependencyError,
    DependencyCycleError,
    ScopeCollisionError,
    InjectionResolutionError,
    SourceLoadError,
    ResourceNotDefinedError,
    ManifestValidationError,
)

from .graph import DependencyOrderer, find_cycle
from .instantiator import ExportKind, Instantiator, ModuleImportUnit, classify
from .lazy import LazyModule
from .tags import TagEntry, TagGroup, TagRegistry
from .instances import InstanceBackref, LoadedInstances
from .pipeline import TwoPhaseLoader
from .sources import SourceLoader
from .manifest import ManifestLoader
from .config import ConfigLoader, ConfigError

__all__ = [
    # Core
    "Marshal",

    # Descriptors
    "EntryConfig",
    "ModuleDescriptor",
    "ModuleKind",
    "DirectRef",
    "TagRef",
    "Requirement",
    "parse_requirement",
    "is_tag",

    # Errors
    "MarshalError",
    "MissingDependencyError",
    "DependencyCycleError",
    "ScopeCollisionError",
    "InjectionResolutionError",
    "SourceLoadError",
    "ResourceNotDefinedError",
    "ManifestValidationError",

    # Engine parts
    "DependencyOrderer",
    "find_cycle",
    "ExportKind",
    "Instantiator",
    "ModuleImportUnit",
    "classify",
    "LazyModule",
    "TagEntry",
    "TagGroup",
    "TagRegistry",
    "InstanceBackref",
    "LoadedInstances",
    "TwoPhaseLoader",

    # Loading
    "SourceLoader",
    "ManifestLoader",

    # Config
    "ConfigLoader",
    "ConfigError",
]
