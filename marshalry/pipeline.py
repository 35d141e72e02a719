"""
Two-phase load pipeline.

Phase A retrieves every ordered descriptor's raw export concurrently.
Phase B instantiates the units strictly in dependency order, then points
tag group entries at the final instances.
"""

import asyncio
import logging
from typing import Any, Callable, List, Mapping

from .descriptor import ModuleDescriptor
from .graph import DependencyOrderer
from .instances import LoadedInstances
from .instantiator import Instantiator, ModuleImportUnit
from .tags import TagRegistry

logger = logging.getLogger("marshalry.pipeline")


class TwoPhaseLoader:
    """
    Runs one load phase over a subset of the registry.

    Args:
        orderer: Dependency orderer
        instantiator: Builds values from retrieved exports
        tags: Tag arena recorded into and finalized after instantiation
        loaded: Instances from earlier phases
        publish: Called with (descriptor, value) for every instantiated unit
    """

    def __init__(
        self,
        orderer: DependencyOrderer,
        instantiator: Instantiator,
        tags: TagRegistry,
        loaded: LoadedInstances,
        publish: Callable[[ModuleDescriptor, Any], None],
    ):
        self.orderer = orderer
        self.instantiator = instantiator
        self.tags = tags
        self.loaded = loaded
        self.publish = publish

    async def run(self, modules: Mapping[str, ModuleDescriptor]) -> List[ModuleImportUnit]:
        """
        Order, retrieve and instantiate `modules`.

        Returns:
            The units in load order, still holding their raw exports
        """
        ordered = self.orderer.order(modules, self.loaded)
        if not ordered:
            return []

        units = await self.retrieve_all(ordered)

        for unit in units:
            if unit.descriptor.tags:
                self.tags.record(unit.descriptor, self.instantiator.tag_value(unit))

        for unit in units:
            self.publish(unit.descriptor, self.instantiator.instantiate(unit))

        self.tags.finalize(self.loaded.get)
        return units

    async def retrieve_all(self, ordered: List[ModuleDescriptor]) -> List[ModuleImportUnit]:
        """Retrieve raw exports concurrently; results keep `ordered`'s order."""
        return list(await asyncio.gather(*(self._retrieve(d) for d in ordered)))

    async def _retrieve(self, descriptor: ModuleDescriptor) -> ModuleImportUnit:
        if descriptor.lazy:
            return ModuleImportUnit(descriptor, self.instantiator.defer(descriptor))

        export = await self.instantiator.retrieve(descriptor)
        logger.debug("Retrieved %s", descriptor.constraint_key)
        return ModuleImportUnit(descriptor, export)
