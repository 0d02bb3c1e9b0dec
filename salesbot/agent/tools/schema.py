"""
Parameter shapes for tool arguments.

A ParameterShape is a small tagged tree built from the JSON schema of a
tool's arguments model. The repair cycle walks it to build an example
skeleton that shows the repair model what valid arguments look like.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional


class ParameterKind(StrEnum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ENUM = "enum"
    OBJECT = "object"
    ARRAY = "array"
    UNION = "union"
    NULL = "null"
    ANY = "any"


STRING_PLACEHOLDER = "string"


@dataclass
class ParameterShape:
    kind: ParameterKind
    description: Optional[str] = None
    enum_values: list[Any] = field(default_factory=list)
    properties: dict[str, "ParameterShape"] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    items: Optional["ParameterShape"] = None
    variants: list["ParameterShape"] = field(default_factory=list)

    @classmethod
    def from_json_schema(
        cls, schema: dict[str, Any], definitions: Optional[dict[str, Any]] = None
    ) -> "ParameterShape":
        """
        Parse a JSON schema node.

        Local `$ref`s are resolved against `$defs` (or `definitions`) of the
        root schema.
        """
        if definitions is None:
            definitions = {**schema.get("definitions", {}), **schema.get("$defs", {})}
        description = schema.get("description")

        if "$ref" in schema:
            name = schema["$ref"].rsplit("/", 1)[-1]
            shape = cls.from_json_schema(definitions.get(name, {}), definitions)
            shape.description = description or shape.description
            return shape

        if "enum" in schema:
            return cls(ParameterKind.ENUM, description, enum_values=list(schema["enum"]))
        if "const" in schema:
            return cls(ParameterKind.ENUM, description, enum_values=[schema["const"]])

        for key in ("anyOf", "oneOf", "allOf"):
            if key in schema:
                variants = [cls.from_json_schema(s, definitions) for s in schema[key]]
                if len(variants) == 1:
                    variants[0].description = description or variants[0].description
                    return variants[0]
                return cls(ParameterKind.UNION, description, variants=variants)

        schema_type = schema.get("type")
        if isinstance(schema_type, list):
            variants = [
                cls.from_json_schema({**schema, "type": t}, definitions) for t in schema_type
            ]
            return cls(ParameterKind.UNION, description, variants=variants)

        if schema_type == "object" or "properties" in schema:
            return cls(
                ParameterKind.OBJECT,
                description,
                properties={
                    name: cls.from_json_schema(prop, definitions)
                    for name, prop in schema.get("properties", {}).items()
                },
                required=list(schema.get("required", [])),
            )
        if schema_type == "array":
            items = schema.get("items")
            return cls(
                ParameterKind.ARRAY,
                description,
                items=cls.from_json_schema(items, definitions) if isinstance(items, dict) else None,
            )

        simple = {
            "string": ParameterKind.STRING,
            "number": ParameterKind.NUMBER,
            "integer": ParameterKind.INTEGER,
            "boolean": ParameterKind.BOOLEAN,
            "null": ParameterKind.NULL,
        }
        return cls(simple.get(schema_type, ParameterKind.ANY), description)

    def example_value(self) -> Any:
        """
        Skeleton value for this shape.

        Enums list their allowed values so the repair model can pick one;
        unions use their first non-null variant.
        """
        if self.kind == ParameterKind.STRING:
            return STRING_PLACEHOLDER
        if self.kind in (ParameterKind.NUMBER, ParameterKind.INTEGER):
            return 0
        if self.kind == ParameterKind.BOOLEAN:
            return False
        if self.kind == ParameterKind.ENUM:
            return list(self.enum_values)
        if self.kind == ParameterKind.OBJECT:
            return {name: shape.example_value() for name, shape in self.properties.items()}
        if self.kind == ParameterKind.ARRAY:
            return [self.items.example_value()] if self.items else []
        if self.kind == ParameterKind.UNION:
            for variant in self.variants:
                if variant.kind != ParameterKind.NULL:
                    return variant.example_value()
        return None


def unwrap_value_wrappers(value: Any) -> Any:
    """Replace every `{"value": X}` object with X, recursively."""
    if isinstance(value, dict):
        if len(value) == 1 and "value" in value:
            return unwrap_value_wrappers(value["value"])
        return {key: unwrap_value_wrappers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [unwrap_value_wrappers(item) for item in value]
    return value
