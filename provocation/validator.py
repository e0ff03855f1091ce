"""
Resource model validation against the resource schema.

Contract: validate(payload, schema) -> list[Violation]; an empty list means
the payload conforms. Always run against the raw, pre-deserialization model
so extraneous keys are flagged even though typed deserialization would
silently drop them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from jsonschema import Draft7Validator


@dataclass(frozen=True)
class Violation:
    """A single schema violation."""
    pointer: str
    message: str
    keyword: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.message} ({self.pointer})"


class Validator(ABC):
    """Abstract base class for resource model validators."""

    @abstractmethod
    def validate(self, payload: Any, schema: dict[str, Any]) -> list[Violation]:
        """
        Validate a payload against a schema.

        Args:
            payload: Raw resource model
            schema: Resource schema (JSON Schema)

        Returns:
            List of violations, empty if the payload conforms
        """
        pass


def _pointer(path) -> str:
    parts = [str(p) for p in path]
    return "#/" + "/".join(parts) if parts else "#"


class JsonSchemaValidator(Validator):
    """
    JSON Schema (draft 7) validator with strict extraneous-key detection.

    Every object in the payload is checked against the ``properties`` of the
    subschema that describes it, following nested ``properties``, array
    ``items`` and local ``$ref`` pointers. Keys absent from ``properties`` are
    reported unless that subschema allows additional properties.
    """

    def validate(self, payload: Any, schema: dict[str, Any]) -> list[Violation]:
        violations = self._extraneous_keys(payload, schema, schema, (), root=True)
        flagged = {v.pointer for v in violations}

        validator = Draft7Validator(schema)
        for error in sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.absolute_path]):
            pointer = _pointer(error.absolute_path)
            # Extraneous keys at this pointer are already reported
            if error.validator == "additionalProperties" and pointer in flagged:
                continue
            violations.append(Violation(
                pointer=pointer,
                message=error.message,
                keyword=error.validator,
            ))
        return violations

    def _extraneous_keys(
        self,
        payload: Any,
        subschema: Any,
        root_schema: dict[str, Any],
        path: tuple,
        root: bool = False,
    ) -> list[Violation]:
        subschema = _resolve_ref(subschema, root_schema)
        if not isinstance(subschema, dict):
            return []

        violations = []
        if isinstance(payload, dict):
            properties = subschema.get("properties", {})
            additional = subschema.get("additionalProperties")
            strict = root or "properties" in subschema or additional is False
            if strict and additional is not True and not isinstance(additional, dict):
                pointer = _pointer(path)
                violations.extend(
                    Violation(
                        pointer=pointer,
                        message=f"{pointer}: extraneous key [{key}] is not permitted",
                        keyword="additionalProperties",
                    )
                    for key in payload
                    if key not in properties
                )
            for key, value in payload.items():
                if key in properties:
                    violations.extend(
                        self._extraneous_keys(value, properties[key], root_schema, path + (key,))
                    )
        elif isinstance(payload, list):
            items = subschema.get("items")
            if isinstance(items, dict):
                for index, item in enumerate(payload):
                    violations.extend(
                        self._extraneous_keys(item, items, root_schema, path + (index,))
                    )
        return violations


def _resolve_ref(subschema: Any, root_schema: dict[str, Any]) -> Any:
    """Follow local "#/..." references; remote references are left as-is."""
    seen = set()
    while isinstance(subschema, dict) and isinstance(subschema.get("$ref"), str):
        ref = subschema["$ref"]
        if not ref.startswith("#") or ref in seen:
            break
        seen.add(ref)
        target: Any = root_schema
        for part in ref.lstrip("#").strip("/").split("/"):
            if not part:
                continue
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                return None
            target = target[part]
        subschema = target
    return subschema


def build_validation_message(violations: list[Violation]) -> str:
    """
    Concatenate violations into one terminal failure message.

    A single violation is summarised inline. Several violations get a count
    in the summary followed by one line per violation.

    Args:
        violations: Violations returned by a Validator

    Returns:
        "Model validation failed (...)", plus a line per violation when
        there is more than one
    """
    if not violations:
        return "Model validation failed with unknown cause."
    if len(violations) == 1:
        return f"Model validation failed ({violations[0].message})"
    lines = [f"Model validation failed ({len(violations)} schema violations found)"]
    lines.extend(str(v) for v in violations)
    return "\n".join(lines)
