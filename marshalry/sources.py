"""
Default source loader.

Turns a descriptor's source reference into a raw export:

- non-string references (objects, classes, functions) pass through
- "package.module:attr" / "package.module" import through importlib
- "*.py" paths and http(s) URLs are text-mode sources: the text is executed
  in a fresh module whose globals are pre-populated with the shared scope
"""

import asyncio
import importlib
import logging
import uuid
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Optional, Union

import httpx

from .errors import SourceLoadError

logger = logging.getLogger("marshalry.sources")


class SourceLoader:
    """
    Async source loader used by `Marshal` when none is supplied.

    Args:
        base_path: Root for relative `.py` paths (defaults to the cwd)
        timeout: HTTP timeout in seconds for URL sources
        client: Optional shared `httpx.AsyncClient`
    """

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_path = Path(base_path) if base_path else None
        self.timeout = timeout
        self._client = client

    async def __call__(self, ref: Any, scope: Optional[Dict[str, Any]] = None) -> Any:
        if not isinstance(ref, str):
            return ref

        try:
            if self._is_url(ref):
                text = await self._fetch(ref)
                return self.evaluate(text, ref, scope or {})
            if ref.endswith(".py"):
                path = self._resolve_path(ref)
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
                return self.evaluate(text, str(path), scope or {})
            return self._import(ref)
        except SourceLoadError:
            raise
        except Exception as e:
            raise SourceLoadError(ref, f"{type(e).__name__}: {e}") from e

    def evaluate(self, text: str, origin: str, scope: Dict[str, Any]) -> ModuleType:
        """
        Execute source text in an isolated module namespace.

        Every scope key becomes a global of the module. The module is not
        added to sys.modules.
        """
        module = ModuleType(f"_marshalry_source_{uuid.uuid4().hex}")
        module.__file__ = origin
        module.__dict__.update(scope)

        code = compile(text, origin, "exec")
        exec(code, module.__dict__)

        logger.debug("Evaluated %s with %d scope name(s)", origin, len(scope))
        return module

    async def _fetch(self, url: str) -> str:
        if self._client is not None:
            response = await self._client.get(url)
            response.raise_for_status()
            return response.text

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text

    def _import(self, ref: str) -> Any:
        if ":" in ref:
            module_path, attr = ref.split(":", 1)
        else:
            module_path, attr = ref, None

        module = importlib.import_module(module_path)
        if attr is None:
            return module

        value = module
        for part in attr.split("."):
            value = getattr(value, part)
        return value

    def _resolve_path(self, ref: str) -> Path:
        path = Path(ref)
        if not path.is_absolute() and self.base_path is not None:
            path = self.base_path / path
        return path

    @staticmethod
    def _is_url(ref: str) -> bool:
        return ref.startswith(("http://", "https://"))
