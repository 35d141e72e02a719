"""
Loaded instances and the instance -> descriptor back-reference.
"""

import weakref
from typing import Any, Dict, Iterator, Optional, Tuple

from .descriptor import ModuleDescriptor


class InstanceBackref:
    """
    Identity-keyed weak association from a live value to its descriptor.

    Values that support weak references are held only weakly. Values that do
    not (dict, list, int, str, ...) are recorded only when the caller retains
    them elsewhere (`retain=True`, used for values published in the loaded
    map), and must be dropped with `discard` once that owner lets go.
    """

    def __init__(self):
        self._weak: Dict[int, Tuple[weakref.ref, ModuleDescriptor]] = {}
        self._strong: Dict[int, Tuple[Any, ModuleDescriptor]] = {}

    def set(self, value: Any, descriptor: ModuleDescriptor, retain: bool = False) -> bool:
        """
        Associate `value` with `descriptor`.

        Returns:
            False if `value` cannot be weakly referenced and `retain` is not set
        """
        key = id(value)
        try:
            ref = weakref.ref(value, self._remover(key))
        except TypeError:
            if not retain:
                return False
            self._weak.pop(key, None)
            self._strong[key] = (value, descriptor)
            return True
        self._strong.pop(key, None)
        self._weak[key] = (ref, descriptor)
        return True

    def discard(self, value: Any) -> None:
        """Forget `value` if it is the one recorded under its identity."""
        key = id(value)

        item = self._weak.get(key)
        if item is not None and item[0]() is value:
            del self._weak[key]

        strong = self._strong.get(key)
        if strong is not None and strong[0] is value:
            del self._strong[key]

    def get(self, value: Any) -> Optional[ModuleDescriptor]:
        key = id(value)

        item = self._weak.get(key)
        if item is not None:
            ref, descriptor = item
            if ref() is value:
                return descriptor

        strong = self._strong.get(key)
        if strong is not None and strong[0] is value:
            return strong[1]
        return None

    def _remover(self, key: int):
        selfref = weakref.ref(self)

        def remove(ref: weakref.ref) -> None:
            backref = selfref()
            if backref is None:
                return
            item = backref._weak.get(key)
            if item is not None and item[0] is ref:
                del backref._weak[key]

        return remove

    def clear(self) -> None:
        self._weak.clear()
        self._strong.clear()

    def __len__(self) -> int:
        return len(self._weak) + len(self._strong)


class LoadedInstances:
    """Append-only map of constraint key -> live module value."""

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def add(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)
