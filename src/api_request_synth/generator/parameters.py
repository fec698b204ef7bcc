"""Parameter resolver: turns an operation's parameters into serialized values per location."""

import copy
import json
import logging
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel

from api_request_synth.generator.example import ExampleOptions, generate_example
from api_request_synth.parser.base import PARAMETER_LOCATIONS, Parameter

logger = logging.getLogger(__name__)

_DELIMITERS = {
    "spaceDelimited": " ",
    "pipeDelimited": "|",
}

_REPEATABLE_STYLES = ("form", "spaceDelimited", "pipeDelimited")


class ResolvedParameters(BaseModel):
    """Serialized parameter values by location.

    A list value in `query` or `cookie` stands for repeated name=value pairs.
    Path values are already percent-encoded; the others are raw.
    """

    path: dict[str, str] = {}
    query: dict[str, str | list[str]] = {}
    header: dict[str, str] = {}
    cookie: dict[str, str | list[str]] = {}

    def names(self) -> list[str]:
        names: list[str] = []
        for bucket in (self.path, self.query, self.header, self.cookie):
            names.extend(n for n in bucket if n not in names)
        return names

    def pairs(self, location: str) -> list[tuple[str, str]]:
        """Flatten one bucket into ordered (name, value) pairs."""
        result = []
        for name, value in getattr(self, location).items():
            if isinstance(value, list):
                result.extend((name, v) for v in value)
            else:
                result.append((name, value))
        return result


def resolve_parameters(
    parameters: list[Parameter],
    variables: dict[str, Any] | None = None,
    options: ExampleOptions | None = None,
    root: dict | None = None,
) -> ResolvedParameters:
    """Resolve and serialize parameter values.

    Values come from `variables` by parameter name. A required parameter
    without a value gets an example generated from its schema; an optional
    one without a value is left out.
    """
    variables = variables or {}
    options = options or ExampleOptions()
    resolved = ResolvedParameters()

    for param in parameters:
        if param.name in variables:
            value = variables[param.name]
        elif param.required:
            value = _stand_in_value(param, options, root)
            logger.debug("No value for required %s parameter '%s', using %r", param.location, param.name, value)
        else:
            continue

        if param.location not in PARAMETER_LOCATIONS:
            logger.warning("Skipping parameter '%s' with unknown location '%s'", param.name, param.location)
            continue
        bucket = getattr(resolved, param.location)
        for name, text in serialize_parameter(param, value):
            if param.location in ("query", "cookie"):
                _append(bucket, name, text)
            else:
                bucket[name] = text

    return resolved


def serialize_parameter(param: Parameter, value: Any) -> list[tuple[str, str]]:
    """Serialize one value according to the parameter's style and explode flag.

    Returns (name, value) pairs; only exploded query/cookie values and object
    styles that spread keys produce more than one pair.
    """
    name = param.name
    if param.content_type:
        text = value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))
        return [(name, _encode_path(text) if param.location == "path" else text)]

    style = param.effective_style
    explode = param.effective_explode
    encode = _encode_path if param.location == "path" else _identity
    repeatable = param.location in ("query", "cookie")

    if isinstance(value, (list, tuple)):
        items = [encode(_scalar(v)) for v in value]
        if style == "label":
            return [(name, "." + ("." if explode else ",").join(items))]
        if style == "matrix":
            if explode:
                return [(name, "".join(f";{name}={item}" for item in items))]
            return [(name, f";{name}=" + ",".join(items))]
        if explode and repeatable and style in _REPEATABLE_STYLES:
            return [(name, item) for item in items]
        return [(name, _DELIMITERS.get(style, ",").join(items))]

    if isinstance(value, dict):
        entries = [(str(k), encode(_scalar(v))) for k, v in value.items()]
        flat = [part for entry in entries for part in entry]
        if style == "deepObject":
            return [(f"{name}[{k}]", v) for k, v in entries]
        if style == "form" and explode and repeatable:
            return entries
        if style == "label":
            if explode:
                return [(name, "." + ".".join(f"{k}={v}" for k, v in entries))]
            return [(name, "." + ",".join(flat))]
        if style == "matrix":
            if explode:
                return [(name, "".join(f";{k}={v}" for k, v in entries))]
            return [(name, f";{name}=" + ",".join(flat))]
        if explode and style == "simple":
            return [(name, ",".join(f"{k}={v}" for k, v in entries))]
        return [(name, _DELIMITERS.get(style, ",").join(flat))]

    text = encode(_scalar(value))
    if style == "label":
        return [(name, "." + text)]
    if style == "matrix":
        return [(name, f";{name}={text}")]
    return [(name, text)]


def _stand_in_value(param: Parameter, options: ExampleOptions, root: dict | None) -> Any:
    if options.prefer_examples and param.example is not None:
        return copy.deepcopy(param.example)
    return generate_example(param.schema_, options, root)


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _encode_path(text: str) -> str:
    # RFC 3986: everything outside the unreserved set is percent-encoded
    return quote(text, safe="")


def _identity(text: str) -> str:
    return text


def _append(bucket: dict, name: str, text: str) -> None:
    existing = bucket.get(name)
    if existing is None:
        bucket[name] = text
    elif isinstance(existing, list):
        existing.append(text)
    else:
        bucket[name] = [existing, text]
