"""
Manifest loader: module descriptors declared in YAML or JSON files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .descriptor import ModuleDescriptor, ModuleKind
from .errors import ManifestValidationError

logger = logging.getLogger("marshalry.manifest")

REQUIRED_FIELDS = ("namespace", "name", "version", "source")
LIST_FIELDS = ("tags", "requires")
LOCATION_FIELDS = ("asset", "resource")


class ManifestLoader:
    """
    Reads descriptor manifests.

    A manifest is a mapping with a `modules` list; each entry mirrors the
    arguments of `ModuleDescriptor.create`, with `type` naming the kind.
    """

    def load(self, path: Union[str, Path]) -> List[ModuleDescriptor]:
        """
        Load and validate every descriptor in `path`.

        Raises:
            ManifestValidationError: If the manifest or any entry is invalid
        """
        path = Path(path)
        data = self._read(path)

        if not isinstance(data, dict) or not isinstance(data.get("modules"), list):
            raise ManifestValidationError(str(path), ["Manifest must contain a 'modules' list"])

        errors: List[str] = []
        for i, entry in enumerate(data["modules"]):
            errors.extend(self._validate_entry(i, entry))

        if errors:
            raise ManifestValidationError(str(path), errors)

        descriptors = [self._to_descriptor(entry) for entry in data["modules"]]
        logger.debug("Loaded %d descriptor(s) from %s", len(descriptors), path)
        return descriptors

    def _read(self, path: Path) -> Any:
        if path.suffix == ".json":
            return json.loads(path.read_text())
        elif path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(path.read_text())
        else:
            raise ManifestValidationError(str(path), [f"Unsupported manifest format: {path.suffix}"])

    def _validate_entry(self, index: int, entry: Any) -> List[str]:
        if not isinstance(entry, dict):
            return [f"modules[{index}] must be a mapping"]

        errors: List[str] = []

        for name in REQUIRED_FIELDS:
            if not entry.get(name):
                errors.append(f"modules[{index}]: missing required field: {name}")

        for name in LIST_FIELDS:
            if name in entry:
                value = entry[name]
                if not isinstance(value, list):
                    errors.append(f"modules[{index}]: field '{name}' must be a list")
                elif not all(isinstance(v, str) for v in value):
                    errors.append(f"modules[{index}]: field '{name}' must contain strings")

        if "arguments" in entry and not isinstance(entry["arguments"], list):
            errors.append(f"modules[{index}]: field 'arguments' must be a list")

        for name in LOCATION_FIELDS:
            if name in entry:
                value = entry[name]
                if not isinstance(value, dict) or not isinstance(value.get("src"), str):
                    errors.append(f"modules[{index}]: field '{name}' must be a mapping with 'src'")

        kind = entry.get("type", ModuleKind.MODULE.value)
        if kind not in {k.value for k in ModuleKind}:
            errors.append(f"modules[{index}]: unknown type '{kind}'")

        return errors

    def _to_descriptor(self, entry: Dict[str, Any]) -> ModuleDescriptor:
        return ModuleDescriptor.create(
            entry["source"],
            entry["namespace"],
            entry["name"],
            str(entry["version"]),
            kind=entry.get("type", ModuleKind.MODULE.value),
            scope=bool(entry.get("scope", False)),
            tags=entry.get("tags", []),
            requires=entry.get("requires", []),
            lazy=bool(entry.get("lazy", False)),
            arguments=entry.get("arguments", []),
            asset=entry.get("asset"),
            resource=entry.get("resource"),
        )
