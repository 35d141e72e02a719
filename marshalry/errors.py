"""
Marshalry error types with rich diagnostics.
"""

from typing import Any, Dict, List, Optional


class MarshalError(Exception):
    """Base error for all marshalry errors."""

    def __init__(
        self,
        message: str,
        *,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def format_error(self) -> str:
        """Format error with details and suggestion."""
        lines = [f"{self.__class__.__name__}: {self.message}"]

        if self.details:
            lines.append("\n   Details:")
            for key, value in self.details.items():
                lines.append(f"   - {key}: {value}")

        if self.suggestion:
            lines.append(f"\n   Suggestion: {self.suggestion}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format_error()


class MissingDependencyError(MarshalError):
    """
    A module requires a key that is neither registered nor loaded.

    Example:
        app/main requires app/db
        app/db was never registered  <- MISSING
    """

    def __init__(self, module: str, dependency: str):
        self.module = module
        self.dependency = dependency

        super().__init__(
            f"Module {module} is requesting not present dependency: {dependency}",
            suggestion=(
                f"Register a module with constraint key '{dependency}' or "
                f"remove it from the requires list of '{module}'."
            ),
            details={"module": module, "dependency": dependency},
        )


class DependencyCycleError(MarshalError):
    """
    Ordering could not make progress within its scan budget.

    Example:
        app/a requires app/b
        app/b requires app/a  <- CYCLE
    """

    def __init__(self, pending: List[str], cycle: Optional[List[str]] = None):
        self.pending = pending
        self.cycle = cycle or []

        if self.cycle:
            cycle_repr = " → ".join(self.cycle) + f" → {self.cycle[0]}"
            message = f"Circular dependency detected: {cycle_repr}"
        else:
            message = "Circular dependency detected among: " + ", ".join(pending)

        super().__init__(
            message,
            suggestion=(
                "Break the cycle by removing one requirement, or mark one side "
                "lazy and request it through the injected factory instead."
            ),
            details={"pending": pending, "cycle": self.cycle},
        )


class ScopeCollisionError(MarshalError):
    """A scope provider exports a name that is already in the shared scope."""

    def __init__(self, name: str):
        self.name = name

        super().__init__(
            f'Variable with name "{name}" already exists',
            suggestion="Rename the export in one of the scope providers.",
            details={"name": name},
        )


class InjectionResolutionError(MarshalError):
    """
    A class declares a dependency that is not loaded at construction time.

    Never propagated out of a load cycle: the engine logs it and stores the
    unconstructed class instead.
    """

    def __init__(self, module: str, dependency: str):
        self.module = module
        self.dependency = dependency

        super().__init__(
            f"Module {module} could not be loaded due to missing dependency: {dependency}",
            suggestion=(
                f"Add '{dependency}' to the requires list of '{module}' so it is "
                "ordered before construction."
            ),
            details={"module": module, "dependency": dependency},
        )


class SourceLoadError(MarshalError):
    """The source loader failed to produce a raw export."""

    def __init__(self, ref: Any, reason: str):
        self.ref = ref
        self.reason = reason

        super().__init__(
            f"Could not load source {ref!r}: {reason}",
            details={"ref": ref, "reason": reason},
        )


class ResourceNotDefinedError(MarshalError):
    """A module has no asset/resource section to build a location from."""

    def __init__(self, section: str):
        self.section = section

        super().__init__(
            f"Provided module configuration is missing {section} definition",
            suggestion=f"Register the module with a '{section}' section: {{'src': ...}}.",
            details={"section": section},
        )


class ManifestValidationError(MarshalError):
    """
    Manifest structure is invalid.

    Missing required fields, wrong types, etc.
    """

    def __init__(self, manifest: str, errors: List[str]):
        self.manifest = manifest
        self.errors = errors

        error_list = "\n".join(f"   - {e}" for e in errors)

        super().__init__(
            f"Manifest '{manifest}' validation failed:\n{error_list}",
            suggestion=(
                "Every module entry needs namespace, name, version and source; "
                "tags and requires must be lists of strings."
            ),
            details={"manifest": manifest, "error_count": len(errors)},
        )
