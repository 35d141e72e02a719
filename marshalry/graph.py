"""
Dependency ordering with Tarjan's algorithm for cycle diagnostics.
"""

import logging
from typing import Dict, List, Mapping, Optional, Set

from .descriptor import ModuleDescriptor
from .errors import DependencyCycleError, MissingDependencyError

logger = logging.getLogger("marshalry.graph")


class DependencyOrderer:
    """
    Orders descriptors so every direct requirement precedes its dependent.

    Repeated scan-and-extract over the pending set: a descriptor is emitted
    once none of its direct requirements is still pending. Tag references
    never block ordering. The number of scans is bounded by
    `budget_factor * n**2`; running out of scans means a cycle.
    """

    def __init__(self, budget_factor: int = 1):
        if budget_factor < 1:
            raise ValueError("budget_factor must be >= 1")
        self.budget_factor = budget_factor

    def order(
        self,
        modules: Mapping[str, ModuleDescriptor],
        loaded: Mapping[str, object],
    ) -> List[ModuleDescriptor]:
        """
        Compute the load order of `modules`.

        Args:
            modules: constraint key -> descriptor (not mutated)
            loaded: Instances from earlier phases, which satisfy requirements

        Returns:
            Descriptors in dependency order

        Raises:
            MissingDependencyError: A requirement is registered nowhere
            DependencyCycleError: The scan budget ran out
        """
        pending: Dict[str, ModuleDescriptor] = dict(modules)
        prepared: Set[str] = set()
        ordered: List[ModuleDescriptor] = []

        tries = max(len(pending) ** 2 * self.budget_factor, 1)
        while pending:
            tries -= 1
            if tries < 0:
                logger.warning("Not registered in load groups: %s", sorted(pending))
                raise DependencyCycleError(
                    pending=sorted(pending),
                    cycle=find_cycle(pending),
                )

            for key in list(pending):
                descriptor = pending[key]
                if self._blocked(key, descriptor, pending, prepared, loaded):
                    continue

                ordered.append(descriptor)
                del pending[key]
                prepared.add(key)

        logger.debug("Load order: %s", [d.constraint_key for d in ordered])
        return ordered

    def _blocked(
        self,
        key: str,
        descriptor: ModuleDescriptor,
        pending: Mapping[str, ModuleDescriptor],
        prepared: Set[str],
        loaded: Mapping[str, object],
    ) -> bool:
        for required in descriptor.direct_requires:
            if required not in prepared and required not in pending and required not in loaded:
                raise MissingDependencyError(module=key, dependency=required)

            if required in pending:
                return True
        return False


def find_cycle(modules: Mapping[str, ModuleDescriptor]) -> Optional[List[str]]:
    """
    Find a cycle among `modules` using Tarjan's algorithm.

    Only edges between members of `modules` are followed.

    Returns:
        Constraint keys forming the first strongly connected component with
        more than one node (or a self-requiring node), or None
    """
    adjacency: Dict[str, List[str]] = {
        key: [dep for dep in descriptor.direct_requires if dep in modules]
        for key, descriptor in modules.items()
    }

    index_counter = [0]
    stack: List[str] = []
    lowlinks: Dict[str, int] = {}
    index: Dict[str, int] = {}
    on_stack: Set[str] = set()
    cycles: List[List[str]] = []

    def strongconnect(node: str) -> None:
        index[node] = index_counter[0]
        lowlinks[node] = index_counter[0]
        index_counter[0] += 1
        stack.append(node)
        on_stack.add(node)

        for dep in adjacency[node]:
            if dep not in index:
                strongconnect(dep)
                lowlinks[node] = min(lowlinks[node], lowlinks[dep])
            elif dep in on_stack:
                lowlinks[node] = min(lowlinks[node], index[dep])

        # Root of an SCC
        if lowlinks[node] == index[node]:
            component: List[str] = []
            while True:
                w = stack.pop()
                on_stack.remove(w)
                component.append(w)
                if w == node:
                    break

            if len(component) > 1 or node in adjacency[node]:
                cycles.append(list(reversed(component)))

    for node in adjacency:
        if node not in index:
            strongconnect(node)

    if cycles:
        return cycles[0]

    return None
