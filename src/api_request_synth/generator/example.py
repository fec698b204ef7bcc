"""Schema example generator.

Walks a JSON-Schema node and produces one concrete value for it. Explicit
data in the schema (example, default, const, enum) wins over synthesis; the
rest is built from the declared type and format. Self-referential schemas
are cut off by a per-call recursion budget keyed on node identity: a
node may be re-entered while the descent holds fewer than `max_depth`
re-entries, and optional properties never re-enter a node on the path.
"""

import copy
import logging
import math
import random
import uuid
from typing import Any

from pydantic import BaseModel

from api_request_synth.parser.base import SchemaNode
from api_request_synth.parser.refs import resolve

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

PLACEHOLDER_STRING = "string"
CANONICAL_UUID = "123e4567-e89b-12d3-a456-426614174000"
ADDITIONAL_PROPERTY_KEY = "additionalProperty"

FORMAT_EXAMPLES = {
    "date": "1970-01-01",
    "date-time": "1970-01-01T00:00:00Z",
    "time": "00:00:00Z",
    "email": "hello@example.com",
    "idn-email": "hello@example.com",
    "uri": "https://example.com",
    "url": "https://example.com",
    "uri-reference": "/path",
    "iri": "https://example.com",
    "hostname": "example.com",
    "idn-hostname": "example.com",
    "ipv4": "127.0.0.1",
    "ipv6": "::1",
    "binary": "@filename",
    "byte": "ZXhhbXBsZQ==",
    "password": "********",
    "duration": "P3D",
    "regex": "^[a-z]+$",
    "json-pointer": "/nested/objects",
}

_STRUCTURAL_KEYWORDS = ("type", "properties", "additionalProperties", "items", "prefixItems", "oneOf", "anyOf")


class ExampleOptions(BaseModel):
    """Knobs for generate_example."""

    prefer_examples: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    seed: int | None = None  # only varies values that are random by nature (uuid)
    mode: str | None = None  # "write" drops readOnly properties, "read" drops writeOnly
    omit_optional: bool = False


def generate_example(schema: SchemaNode, options: ExampleOptions | None = None, root: dict | None = None) -> Any:
    """Produce one value satisfying schema.

    Args:
        schema: JSON-Schema fragment; may itself be a `$ref`.
        options: generation options, defaults to ExampleOptions().
        root: document that `$ref` pointers resolve against.

    Raises:
        SchemaResolutionError: a `$ref` could not be resolved.
    """
    return _ExampleBuilder(options or ExampleOptions(), root).build(schema, depth=0)


class _ExampleBuilder:
    def __init__(self, options: ExampleOptions, root: dict | None):
        self.options = options
        self.root = root
        self.rng = random.Random(options.seed) if options.seed is not None else None
        # id(resolved node) -> times entered along the current descent
        self.visits: dict[int, int] = {}
        # re-entries of nodes already on the current descent
        self.reentries = 0

    def build(self, schema: Any, depth: int) -> Any:
        node = resolve(schema, self.root)
        if not isinstance(node, dict):
            return None

        if self.options.prefer_examples:
            found, value = _explicit_value(node)
            if found:
                return copy.deepcopy(value)
        if "const" in node:
            return copy.deepcopy(node["const"])
        enum = node.get("enum")
        if isinstance(enum, list) and enum:
            return copy.deepcopy(enum[0])

        key = id(node)
        visits = self.visits.get(key, 0)
        max_depth = self.options.max_depth
        exhausted = visits >= max_depth or (visits > 0 and self.reentries >= max_depth - 1)
        if exhausted and _infer_type(node) in ("object", "array"):
            logger.debug("Recursion budget exhausted, substituting null")
            return None

        self.visits[key] = visits + 1
        if visits:
            self.reentries += 1
        try:
            return self._build_node(node, depth)
        finally:
            self.visits[key] = visits
            if visits:
                self.reentries -= 1

    def _build_node(self, node: dict, depth: int) -> Any:
        if isinstance(node.get("allOf"), list):
            return self._build_all_of(node, depth)
        for keyword in ("oneOf", "anyOf"):
            branches = node.get(keyword)
            if isinstance(branches, list) and branches:
                return self.build(branches[0], depth)

        schema_type = _infer_type(node)
        if schema_type == "object":
            return self._build_object(node, depth)
        if schema_type == "array":
            return self._build_array(node, depth)
        if schema_type == "string":
            return self._build_string(node)
        if schema_type in ("integer", "number"):
            return _number_example(node, integer=schema_type == "integer")
        if schema_type == "boolean":
            return True
        return None

    def _build_all_of(self, node: dict, depth: int) -> Any:
        own = {k: v for k, v in node.items() if k != "allOf"}
        result = None
        if any(k in own for k in _STRUCTURAL_KEYWORDS):
            result = self._build_node(own, depth)
        for branch in node["allOf"]:
            result = _merge(result, self.build(branch, depth))
        return result

    def _build_object(self, node: dict, depth: int) -> dict:
        result: dict[str, Any] = {}
        required = node.get("required") or []
        properties = node.get("properties") or {}

        for name, prop_schema in properties.items():
            if name not in required and (self.options.omit_optional or depth >= self.options.max_depth):
                continue
            prop = resolve(prop_schema, self.root)
            if isinstance(prop, dict) and self._skipped_by_mode(prop):
                continue
            if name not in required and self._on_path(prop):
                continue
            result[name] = self.build(prop, depth + 1)

        additional = node.get("additionalProperties")
        if isinstance(additional, dict) and not properties and not self.options.omit_optional:
            result[ADDITIONAL_PROPERTY_KEY] = self.build(additional, depth + 1)
        return result

    def _build_array(self, node: dict, depth: int) -> list:
        if node.get("maxItems") == 0:
            return []
        tuple_items = node.get("prefixItems")
        if not isinstance(tuple_items, list):
            tuple_items = node.get("items") if isinstance(node.get("items"), list) else None
        if tuple_items is not None:
            return [self.build(item, depth + 1) for item in tuple_items]

        items = node.get("items")
        if not isinstance(items, dict):
            return []
        count = 2 if (node.get("minItems") or 0) > 1 else 1
        return [self.build(items, depth + 1) for _ in range(count)]

    def _build_string(self, node: dict) -> str:
        fmt = node.get("format")
        if fmt == "uuid":
            if self.rng is None:
                return CANONICAL_UUID
            return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))
        if fmt in FORMAT_EXAMPLES:
            return FORMAT_EXAMPLES[fmt]

        value = PLACEHOLDER_STRING
        min_length = node.get("minLength")
        max_length = node.get("maxLength")
        if isinstance(min_length, int) and len(value) < min_length:
            value = value + "x" * (min_length - len(value))
        if isinstance(max_length, int) and len(value) > max_length:
            value = value[:max_length]
        return value

    def _on_path(self, prop: Any) -> bool:
        """True when prop, or the item schema of an array prop, is already being built."""
        if not isinstance(prop, dict):
            return False
        if self.visits.get(id(prop), 0) > 0:
            return True
        items = prop.get("items")
        if isinstance(items, dict) and _infer_type(prop) == "array":
            return self.visits.get(id(resolve(items, self.root)), 0) > 0
        return False

    def _skipped_by_mode(self, prop: dict) -> bool:
        if self.options.mode == "write":
            return bool(prop.get("readOnly"))
        if self.options.mode == "read":
            return bool(prop.get("writeOnly"))
        return False


def _explicit_value(node: dict) -> tuple[bool, Any]:
    """Return (found, value) for the first of example, examples, default, const."""
    if "example" in node:
        return True, node["example"]
    examples = node.get("examples")
    if isinstance(examples, list) and examples:
        return True, examples[0]
    if isinstance(examples, dict) and examples:
        first = next(iter(examples.values()))
        if isinstance(first, dict) and "value" in first:
            return True, first["value"]
    for key in ("default", "const"):
        if key in node:
            return True, node[key]
    return False, None


def _infer_type(node: dict) -> str | None:
    schema_type = node.get("type")
    if isinstance(schema_type, list):
        non_null = [t for t in schema_type if t != "null"]
        schema_type = non_null[0] if non_null else "null"
    if schema_type:
        return schema_type
    if "properties" in node or "additionalProperties" in node:
        return "object"
    if "items" in node or "prefixItems" in node:
        return "array"
    return None


def _merge(base: Any, extra: Any) -> Any:
    """Deep-merge extra into base; later scalars win, None never overwrites."""
    if base is None:
        return extra
    if extra is None:
        return base
    if isinstance(base, dict) and isinstance(extra, dict):
        merged = dict(base)
        for key, value in extra.items():
            merged[key] = _merge(merged[key], value) if key in merged else value
        return merged
    if isinstance(base, list) and isinstance(extra, list):
        merged_list = [_merge(a, b) for a, b in zip(base, extra)]
        longer = base if len(base) > len(extra) else extra
        return merged_list + longer[len(merged_list):]
    return extra


# -- numbers ------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _lower_bound(node: dict) -> tuple[float | None, bool]:
    minimum = node.get("minimum")
    exclusive = node.get("exclusiveMinimum")
    if _is_number(exclusive) and (not _is_number(minimum) or exclusive >= minimum):
        return exclusive, True
    if _is_number(minimum):
        return minimum, exclusive is True
    return None, False


def _upper_bound(node: dict) -> tuple[float | None, bool]:
    maximum = node.get("maximum")
    exclusive = node.get("exclusiveMaximum")
    if _is_number(exclusive) and (not _is_number(maximum) or exclusive <= maximum):
        return exclusive, True
    if _is_number(maximum):
        return maximum, exclusive is True
    return None, False


def _in_range(value: float, low: tuple[float | None, bool], high: tuple[float | None, bool]) -> bool:
    low_value, low_exclusive = low
    high_value, high_exclusive = high
    if low_value is not None and (value < low_value or (low_exclusive and value == low_value)):
        return False
    if high_value is not None and (value > high_value or (high_exclusive and value == high_value)):
        return False
    return True


def _step_inside(bound: tuple[float, bool], direction: int, integer: bool) -> float:
    """Nearest value on the inner side of bound; integers snap to the first whole number inside."""
    value, exclusive = bound
    if integer:
        if direction > 0:
            return math.floor(value) + 1 if exclusive else math.ceil(value)
        return math.ceil(value) - 1 if exclusive else math.floor(value)
    return value + direction if exclusive else value


def _number_example(node: dict, integer: bool) -> int | float:
    """Pick `default`, else 0, else the nearest boundary that satisfies the bounds."""
    if _is_number(node.get("default")):
        return node["default"]

    low = _lower_bound(node)
    high = _upper_bound(node)
    value: float = 0
    if not _in_range(value, low, high):
        if low[0] is not None and value <= low[0]:
            value = _step_inside(low, 1, integer)
        else:
            value = _step_inside(high, -1, integer)
        if not _in_range(value, low, high) and low[0] is not None and high[0] is not None:
            value = (low[0] + high[0]) / 2

    multiple = node.get("multipleOf")
    if _is_number(multiple) and multiple > 0 and value % multiple != 0:
        up = math.ceil(value / multiple) * multiple
        down = math.floor(value / multiple) * multiple
        preferred, other = (up, down) if value > 0 else (down, up)
        value = preferred if _in_range(preferred, low, high) or not _in_range(other, low, high) else other

    if integer:
        if value != int(value):
            ceiled = math.ceil(value)
            value = ceiled if _in_range(ceiled, low, high) else math.floor(value)
        return int(value)
    return value
