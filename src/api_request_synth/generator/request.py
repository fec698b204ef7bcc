"""Request synthesizer: builds a complete SynthesizedRequest from an operation.

Order of work: server URL, path template, parameters, body, security, then
header de-duplication. Identical inputs always give identical output.
"""

import copy
import json
import logging
import xml.etree.ElementTree as ET
from typing import Any
from urllib.parse import urlencode

from api_request_synth.errors import DocumentError, UnsupportedContentTypeError
from api_request_synth.generator.example import ExampleOptions, generate_example
from api_request_synth.generator.parameters import resolve_parameters
from api_request_synth.generator.security import apply_security, select_requirement
from api_request_synth.generator.servers import build_base_url, replace_variables
from api_request_synth.parser.base import (
    MediaType,
    NameValue,
    Operation,
    RequestBodyPayload,
    SecurityScheme,
    Server,
    SynthesizedRequest,
)
from api_request_synth.parser.openapi import OpenApiDocument
from api_request_synth.parser.refs import resolve

logger = logging.getLogger(__name__)

MULTIPART_BOUNDARY = "----ApiRequestSynthFormBoundary"
XML_ROOT_TAG = "root"
XML_ITEM_TAG = "item"


def synthesize(
    operation: Operation,
    server: Server | None = None,
    variables: dict[str, Any] | None = None,
    credentials: dict[str, Any] | None = None,
    options: ExampleOptions | None = None,
    *,
    security_schemes: dict[str, SecurityScheme] | None = None,
    root: dict | None = None,
    body: Any = None,
) -> SynthesizedRequest:
    """Build the request for one operation.

    Args:
        operation: the operation to call.
        server: chosen server; defaults to the operation's first server.
        variables: server variable overrides and parameter values by name.
        credentials: secrets by security scheme name.
        options: example generation options for missing values.
        security_schemes: schemes by name, usually from the document components.
        root: document that `$ref` pointers resolve against.
        body: explicit body value; replaces the generated example.

    Raises:
        SchemaResolutionError: a schema `$ref` could not be resolved.
        InvalidServerVariableError: see build_base_url.
    """
    variables = variables or {}
    options = options or ExampleOptions()
    security_schemes = security_schemes or {}
    if server is None and operation.servers:
        server = operation.servers[0]

    base_url = build_base_url(server, variables)
    resolved = resolve_parameters(operation.parameters, variables, options, root)
    url = _join_url(base_url, replace_variables(operation.path, resolved.path))

    payload = _build_body(operation, options, root, body)

    requirement = select_requirement(security_schemes, operation.security, credentials)
    artifacts = apply_security(security_schemes, requirement, credentials)

    headers: list[tuple[str, str]] = []
    if payload is not None:
        headers.append(("Content-Type", payload.content_type))
    headers.extend(artifacts.headers)
    headers.extend(resolved.pairs("header"))

    query = _merge_pairs(resolved.pairs("query"), artifacts.query)
    cookies = _merge_pairs(resolved.pairs("cookie"), artifacts.cookies)

    return SynthesizedRequest(
        method=operation.method.upper(),
        url=url,
        headers=tuple(NameValue(name=n, value=v) for n, v in _dedupe_headers(headers)),
        query=tuple(NameValue(name=n, value=v) for n, v in query),
        cookies=tuple(NameValue(name=n, value=v) for n, v in cookies),
        body=payload,
    )


def synthesize_operation(
    document: OpenApiDocument,
    path: str,
    method: str,
    server_index: int = 0,
    **kwargs: Any,
) -> SynthesizedRequest:
    """Look an operation up in a document and synthesize it with the document's schemes and servers."""
    operation = document.get_operation(path, method)
    if operation is None:
        raise DocumentError(f"Operation {method.upper()} {path} not found")

    if "server" not in kwargs:
        servers = operation.servers or document.get_servers()
        if 0 <= server_index < len(servers):
            kwargs["server"] = servers[server_index]
        else:
            if servers or server_index != 0:
                logger.warning("Server index %d out of range (%d declared), ignoring it", server_index, len(servers))
            kwargs["server"] = None
    kwargs.setdefault("security_schemes", document.get_security_schemes())
    kwargs.setdefault("root", document.spec)
    return synthesize(operation, **kwargs)


def serialize_body(value: Any, content_type: str) -> RequestBodyPayload:
    """Serialize a body value for a content type, falling back to raw text."""
    try:
        serializer = _serializer_for(content_type)
    except UnsupportedContentTypeError as e:
        logger.warning("%s, sending raw text", e)
        serializer = _serialize_text
    return serializer(value, content_type)


# -- body ---------------------------------------------------------------------


def _build_body(operation: Operation, options: ExampleOptions, root: dict | None, explicit: Any) -> RequestBodyPayload | None:
    request_body = operation.request_body
    declared = request_body is not None and bool(request_body.content)
    if not declared and explicit is None:
        return None

    if declared:
        # first declared content type wins
        content_type, media = next(iter(request_body.content.items()))
    else:
        content_type, media = "application/json", MediaType()

    value = explicit if explicit is not None else _media_example(media, options, root)
    return serialize_body(value, content_type)


def _media_example(media: MediaType, options: ExampleOptions, root: dict | None) -> Any:
    if options.prefer_examples:
        if media.example is not None:
            return copy.deepcopy(media.example)
        for example in media.examples.values():
            example = resolve(example, root)
            if isinstance(example, dict) and "value" in example:
                return copy.deepcopy(example["value"])
    if options.mode is None:
        options = options.model_copy(update={"mode": "write"})
    return generate_example(media.schema_, options, root)


def _serializer_for(content_type: str):
    mime = content_type.split(";")[0].strip().lower()
    if mime in ("application/json", "text/json") or mime.endswith("+json"):
        return _serialize_json
    if mime in ("application/xml", "text/xml") or mime.endswith("+xml"):
        return _serialize_xml
    if mime == "application/x-www-form-urlencoded":
        return _serialize_form
    if mime == "multipart/form-data":
        return _serialize_multipart
    if mime.startswith("text/") or mime == "*/*":
        return _serialize_text
    if mime == "application/octet-stream":
        return _serialize_binary
    raise UnsupportedContentTypeError(content_type)


def _serialize_json(value: Any, content_type: str) -> RequestBodyPayload:
    text = json.dumps(value, indent=2, ensure_ascii=False)
    return RequestBodyPayload(content=text.encode("utf-8"), content_type=content_type)


def _serialize_form(value: Any, content_type: str) -> RequestBodyPayload:
    text = urlencode(_form_fields(value))
    return RequestBodyPayload(content=text.encode("utf-8"), content_type=content_type)


def _serialize_multipart(value: Any, content_type: str) -> RequestBodyPayload:
    lines = []
    for name, text in _form_fields(value):
        disposition = f'form-data; name="{name}"'
        if text.startswith("@"):
            disposition += f'; filename="{text[1:]}"'
        lines.extend([f"--{MULTIPART_BOUNDARY}", f"Content-Disposition: {disposition}", "", text])
    lines.append(f"--{MULTIPART_BOUNDARY}--")
    body = "\r\n".join(lines) + "\r\n"
    return RequestBodyPayload(
        content=body.encode("utf-8"),
        content_type=f"multipart/form-data; boundary={MULTIPART_BOUNDARY}",
    )


def _serialize_xml(value: Any, content_type: str) -> RequestBodyPayload:
    """A single-key mapping names the document element; anything else is wrapped in <root>."""
    if isinstance(value, dict) and len(value) == 1:
        tag, inner = next(iter(value.items()))
    else:
        tag, inner = XML_ROOT_TAG, value
    element = ET.Element(str(tag))
    _fill_xml(element, inner)
    content = ET.tostring(element, encoding="utf-8", xml_declaration=True)
    return RequestBodyPayload(content=content, content_type=content_type)


def _fill_xml(element: ET.Element, value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            # lists repeat the element once per item
            for entry in item if isinstance(item, list) else [item]:
                _fill_xml(ET.SubElement(element, str(key)), entry)
    elif isinstance(value, list):
        for entry in value:
            _fill_xml(ET.SubElement(element, XML_ITEM_TAG), entry)
    elif value is not None:
        element.text = _as_text(value)


def _serialize_text(value: Any, content_type: str) -> RequestBodyPayload:
    return RequestBodyPayload(content=_as_text(value).encode("utf-8"), content_type=content_type)


def _serialize_binary(value: Any, content_type: str) -> RequestBodyPayload:
    if isinstance(value, bytes):
        return RequestBodyPayload(content=value, content_type=content_type)
    return _serialize_text(value, content_type)


def _form_fields(value: Any) -> list[tuple[str, str]]:
    if not isinstance(value, dict):
        return []
    fields = []
    for name, item in value.items():
        items = item if isinstance(item, list) else [item]
        fields.extend((str(name), _as_text(v)) for v in items)
    return fields


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


# -- assembly -----------------------------------------------------------------


def _join_url(base_url: str, path: str) -> str:
    if not base_url:
        return path
    if not path:
        return base_url
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def _merge_pairs(explicit: list[tuple[str, str]], injected: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Append injected pairs whose names the explicit pairs don't already use."""
    taken = {name for name, _ in explicit}
    return explicit + [(name, value) for name, value in injected if name not in taken]


def _dedupe_headers(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Case-insensitive de-duplication: first position, last writer's name and value."""
    merged: dict[str, tuple[str, str]] = {}
    for name, value in headers:
        merged[name.lower()] = (name, value)
    return list(merged.values())
