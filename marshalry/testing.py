"""
Testing utilities for the Marshal engine.
"""

import asyncio
from typing import Any, Dict, List, Optional

from .descriptor import ModuleDescriptor
from .sources import SourceLoader


def make_descriptor(source: Any, name: str, namespace: str = "testsuite", version: str = "1.0.0", **kwargs) -> ModuleDescriptor:
    """Build a descriptor, defaulting to the `testsuite` namespace."""
    return ModuleDescriptor.create(source, namespace, name, version, **kwargs)


class StaticSourceLoader:
    """
    Source loader backed by a dict of canned exports.

    String refs found in `sources` resolve to their canned export; text-mode
    entries (registered through `add_text`) are evaluated with the scope like
    the default loader does. Any other ref passes through unchanged.
    Tracks calls for assertions.
    """

    def __init__(self, sources: Optional[Dict[str, Any]] = None, delays: Optional[Dict[str, float]] = None):
        self.sources: Dict[str, Any] = dict(sources or {})
        self.texts: Dict[str, str] = {}
        self.delays: Dict[str, float] = dict(delays or {})
        self.calls: List[Any] = []
        self.completed: List[Any] = []
        self._evaluator = SourceLoader()

    def add_text(self, ref: str, text: str) -> None:
        self.texts[ref] = text

    async def __call__(self, ref: Any, scope: Optional[Dict[str, Any]] = None) -> Any:
        self.calls.append(ref)

        if isinstance(ref, str) and ref in self.delays:
            await asyncio.sleep(self.delays[ref])

        if isinstance(ref, str) and ref in self.texts:
            result = self._evaluator.evaluate(self.texts[ref], ref, scope or {})
        elif isinstance(ref, str) and ref in self.sources:
            result = self.sources[ref]
        elif isinstance(ref, str):
            raise LookupError(f"No canned source for {ref!r}")
        else:
            result = ref

        self.completed.append(ref)
        return result

    def reset(self) -> None:
        self.calls.clear()
        self.completed.clear()
