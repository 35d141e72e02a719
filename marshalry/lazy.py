"""
Lazy module factories.

A lazy module is published as a `LazyModule`: awaiting a call to it
retrieves the source and builds a new instance every time. Lazy means
deferred, not a cached singleton.
"""

import logging
from typing import TYPE_CHECKING, Any

from .descriptor import ModuleDescriptor

if TYPE_CHECKING:
    from .instantiator import Instantiator

logger = logging.getLogger("marshalry.lazy")


class LazyModule:
    """
    Zero-argument async factory for a lazy descriptor.

    Usage:
        factory = marshal.get("app/report")
        report = await factory()
    """

    __slots__ = ("descriptor", "_instantiator", "__weakref__")

    def __init__(self, descriptor: ModuleDescriptor, instantiator: "Instantiator"):
        self.descriptor = descriptor
        self._instantiator = instantiator

    async def __call__(self) -> Any:
        logger.debug("Lazily loading %s", self.descriptor.constraint_key)
        export = await self._instantiator.retrieve(self.descriptor)
        instance = self._instantiator.build(self.descriptor, export)
        self._instantiator.backref.set(instance, self.descriptor)
        return instance

    @property
    def constraint_key(self) -> str:
        return self.descriptor.constraint_key

    def __repr__(self) -> str:
        return f"LazyModule({self.descriptor.constraint_key})"
