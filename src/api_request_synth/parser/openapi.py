"""OpenAPI / Swagger document reader.

Maps an already-loaded OpenAPI 3.x or Swagger 2.0 document onto Operation,
SecurityScheme and Server models. Schema fragments are passed through
untouched; `$ref`s inside them are resolved lazily by the generators.
"""

import logging
from typing import Any

from api_request_synth.parser.base import (
    MediaType,
    Operation,
    Parameter,
    RequestBody,
    SchemaNode,
    SecurityScheme,
    Server,
    ServerVariable,
)
from api_request_synth.parser.refs import resolve

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Swagger 2.0 keeps schema keywords directly on non-body parameters
_SWAGGER_SCHEMA_KEYS = (
    "type", "format", "items", "enum", "default", "minimum", "maximum",
    "exclusiveMinimum", "exclusiveMaximum", "minLength", "maxLength",
    "pattern", "minItems", "maxItems", "multipleOf",
)

# collectionFormat -> (style, explode)
_COLLECTION_FORMATS = {
    "csv": ("form", False),
    "multi": ("form", True),
    "ssv": ("spaceDelimited", False),
    "pipes": ("pipeDelimited", False),
}


class OpenApiDocument:
    """Parsed API description.

    Example:
        doc = OpenApiDocument(load_document(Path("petstore.yaml")))
        op = doc.get_operation("/pets/{petId}", "get")
        schemes = doc.get_security_schemes()
    """

    def __init__(self, spec_dict: dict[str, Any]):
        self.spec = spec_dict
        self.is_swagger = str(spec_dict.get("swagger", "")).startswith("2")

    def resolve(self, node: Any) -> Any:
        return resolve(node, self.spec)

    def get_operations(self) -> list[Operation]:
        """All operations in document order (paths, then method order)."""
        operations = []
        for path, path_item in (self.spec.get("paths") or {}).items():
            path_item = self.resolve(path_item)
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if isinstance(operation, dict):
                    operations.append(self._build_operation(path, method, path_item, operation))

        logger.debug("Found %d operations", len(operations))
        return operations

    def get_operation(self, path: str, method: str) -> Operation | None:
        path_item = self.resolve((self.spec.get("paths") or {}).get(path))
        if not isinstance(path_item, dict):
            return None
        operation = path_item.get(method.lower())
        if not isinstance(operation, dict):
            return None
        return self._build_operation(path, method.lower(), path_item, operation)

    def get_servers(self) -> list[Server]:
        if self.is_swagger:
            return self._swagger_servers()
        return _parse_servers(self.spec.get("servers") or [])

    def get_security_schemes(self) -> dict[str, SecurityScheme]:
        if self.is_swagger:
            definitions = self.spec.get("securityDefinitions") or {}
        else:
            definitions = (self.spec.get("components") or {}).get("securitySchemes") or {}

        schemes = {}
        for name, raw in definitions.items():
            raw = self.resolve(raw)
            if not isinstance(raw, dict) or not raw.get("type"):
                continue
            schemes[name] = _parse_security_scheme(name, raw)
        return schemes

    def get_schema(self, name: str) -> SchemaNode | None:
        """Named schema from components.schemas (or Swagger definitions)."""
        if self.is_swagger:
            schemas = self.spec.get("definitions") or {}
        else:
            schemas = (self.spec.get("components") or {}).get("schemas") or {}
        return schemas.get(name)

    # -- operations -----------------------------------------------------------

    def _build_operation(self, path: str, method: str, path_item: dict, operation: dict) -> Operation:
        raw_params = self._merge_parameters(path_item.get("parameters") or [], operation.get("parameters") or [])

        if self.is_swagger:
            parameters, request_body = self._swagger_parameters(raw_params, operation)
        else:
            parameters = [self._parse_parameter(p) for p in raw_params]
            request_body = self._parse_request_body(operation.get("requestBody"))

        security = operation["security"] if "security" in operation else self.spec.get("security") or []
        servers = _parse_servers(operation.get("servers") or path_item.get("servers") or [])

        return Operation(
            method=method.upper(),
            path=path,
            operation_id=operation.get("operationId"),
            summary=operation.get("summary", ""),
            tags=operation.get("tags", []),
            parameters=parameters,
            request_body=request_body,
            security=security,
            servers=servers,
        )

    def _merge_parameters(self, shared: list, own: list) -> list[dict]:
        """Path-item parameters first; an operation parameter with the same name and location replaces them."""
        merged: dict[tuple[str, str], dict] = {}
        for raw in list(shared) + list(own):
            param = self.resolve(raw)
            if not isinstance(param, dict) or "name" not in param:
                continue
            merged[(param["name"], param.get("in", "query"))] = param
        return list(merged.values())

    def _parse_parameter(self, p: dict) -> Parameter:
        schema = p.get("schema") or {}
        content_type = None
        content = p.get("content")
        if isinstance(content, dict) and content:
            content_type, media = next(iter(content.items()))
            schema = (media or {}).get("schema") or {}

        example = p.get("example")
        examples = p.get("examples")
        if example is None and isinstance(examples, dict) and examples:
            first = self.resolve(next(iter(examples.values())))
            if isinstance(first, dict):
                example = first.get("value")

        return Parameter(
            name=p["name"],
            location=p.get("in", "query"),
            required=p.get("required", False),
            schema_=schema,
            style=p.get("style"),
            explode=p.get("explode"),
            content_type=content_type,
            description=p.get("description", ""),
            example=example,
        )

    def _parse_request_body(self, body: Any) -> RequestBody | None:
        body = self.resolve(body)
        if not isinstance(body, dict):
            return None
        content = {}
        for content_type, media in (body.get("content") or {}).items():
            media = media or {}
            content[content_type] = MediaType(
                schema_=media.get("schema") or {},
                example=media.get("example"),
                examples=media.get("examples") or {},
            )
        return RequestBody(content=content, required=body.get("required", False), description=body.get("description", ""))

    # -- Swagger 2.0 ----------------------------------------------------------

    def _swagger_parameters(self, raw_params: list[dict], operation: dict) -> tuple[list[Parameter], RequestBody | None]:
        consumes = operation.get("consumes") or self.spec.get("consumes") or ["application/json"]
        parameters = []
        body_schema = None
        form_schema: dict[str, Any] = {"type": "object", "properties": {}, "required": []}

        for p in raw_params:
            location = p.get("in", "query")
            if location == "body":
                body_schema = p.get("schema") or {}
                continue
            schema = {k: p[k] for k in _SWAGGER_SCHEMA_KEYS if k in p}
            if location == "formData":
                form_schema["properties"][p["name"]] = schema
                if p.get("required"):
                    form_schema["required"].append(p["name"])
                continue
            style, explode = _COLLECTION_FORMATS.get(p.get("collectionFormat", ""), (None, None))
            if style == "form" and location in ("path", "header"):
                style = "simple"
            parameters.append(
                Parameter(
                    name=p["name"],
                    location=location,
                    required=p.get("required", False),
                    schema_=schema,
                    style=style,
                    explode=explode,
                    description=p.get("description", ""),
                    example=p.get("x-example"),
                )
            )

        request_body = None
        if body_schema is not None:
            request_body = RequestBody(content={ct: MediaType(schema_=body_schema) for ct in consumes}, required=True)
        elif form_schema["properties"]:
            form_types = [ct for ct in consumes if ct in ("application/x-www-form-urlencoded", "multipart/form-data")]
            content_type = form_types[0] if form_types else "application/x-www-form-urlencoded"
            request_body = RequestBody(content={content_type: MediaType(schema_=form_schema)})
        return parameters, request_body

    def _swagger_servers(self) -> list[Server]:
        host = self.spec.get("host")
        base_path = self.spec.get("basePath") or "/"
        if not host:
            return [Server(url=base_path)]
        schemes = self.spec.get("schemes") or ["https"]
        return [Server(url=f"{scheme}://{host}{base_path}".rstrip("/")) for scheme in schemes]


def _parse_servers(raw_servers: list) -> list[Server]:
    servers = []
    for raw in raw_servers:
        if not isinstance(raw, dict) or "url" not in raw:
            continue
        variables = {}
        for name, var in (raw.get("variables") or {}).items():
            default = var.get("default")
            variables[name] = ServerVariable(
                default=None if default is None else str(default),
                enum=[str(e) for e in var.get("enum") or []],
                description=var.get("description", ""),
            )
        servers.append(Server(url=raw["url"], description=raw.get("description", ""), variables=variables))
    return servers


def _parse_security_scheme(name: str, raw: dict) -> SecurityScheme:
    scheme_type = raw["type"]
    scheme = raw.get("scheme")
    flows = raw.get("flows")

    # Swagger 2.0 spellings
    if scheme_type == "basic":
        scheme_type, scheme = "http", "basic"
    if scheme_type == "oauth2" and flows is None and "flow" in raw:
        flows = {raw["flow"]: {k: raw[k] for k in ("authorizationUrl", "tokenUrl", "scopes") if k in raw}}

    return SecurityScheme(
        name=name,
        type=scheme_type,
        location=raw.get("in"),
        parameter_name=raw.get("name"),
        scheme=scheme,
        bearer_format=raw.get("bearerFormat"),
        flows=flows,
        open_id_connect_url=raw.get("openIdConnectUrl"),
        description=raw.get("description", ""),
    )
