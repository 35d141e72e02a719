"""
Tag broadcast registry.

Every tag name owns exactly one `TagGroup` handle for the lifetime of an
engine. Consumers that require `!tag` receive that handle, so entries
appended or finalized later are visible to all of them.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Set

from .descriptor import ModuleDescriptor


@dataclass
class TagEntry:
    """One tagged module: its descriptor and current value."""

    descriptor: ModuleDescriptor
    module: Any

    @property
    def config(self) -> ModuleDescriptor:
        return self.descriptor


class TagGroup(Sequence):
    """
    Read-only handle onto one slot of a `TagRegistry` arena.

    Indexing and iteration dereference the arena on every access.
    """

    __slots__ = ("_arena", "_slot", "name")

    def __init__(self, arena: "TagRegistry", slot: int, name: str):
        self._arena = arena
        self._slot = slot
        self.name = name

    def _entries(self) -> List[TagEntry]:
        return self._arena._slots[self._slot]

    def __getitem__(self, index):
        return self._entries()[index]

    def __len__(self) -> int:
        return len(self._entries())

    def __iter__(self) -> Iterator[TagEntry]:
        return iter(list(self._entries()))

    @property
    def modules(self) -> List[Any]:
        return [entry.module for entry in self._entries()]

    def __repr__(self) -> str:
        keys = [entry.descriptor.constraint_key for entry in self._entries()]
        return f"TagGroup({self.name!r}, {keys})"


class TagRegistry:
    """Arena of tag groups plus the set touched since the last finalization."""

    def __init__(self):
        self._slots: List[List[TagEntry]] = []
        self._handles: Dict[str, TagGroup] = {}
        self._touched: Set[str] = set()

    def group(self, name: str) -> TagGroup:
        """Get (creating if absent) the group handle for `name`."""
        handle = self._handles.get(name)
        if handle is None:
            self._slots.append([])
            handle = TagGroup(self, len(self._slots) - 1, name)
            self._handles[name] = handle
        return handle

    def record(self, descriptor: ModuleDescriptor, value: Any) -> None:
        """Append `descriptor` to the group of each of its tags."""
        for tag in sorted(descriptor.tags):
            handle = self.group(tag)
            self._slots[handle._slot].append(TagEntry(descriptor, value))
            self._touched.add(tag)

    def finalize(self, lookup: Callable[[str], Any]) -> None:
        """
        Point every entry of every touched group at its final instance.

        Args:
            lookup: constraint key -> loaded value
        """
        for tag in self._touched:
            for entry in self._slots[self._handles[tag]._slot]:
                entry.module = lookup(entry.descriptor.constraint_key)
        self._touched.clear()

    def names(self) -> List[str]:
        return list(self._handles)

    def clear(self) -> None:
        for slot in self._slots:
            slot.clear()
        self._touched.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)
