"""Data models for API operations and synthesized requests.

The document layer converts OpenAPI 3.x and Swagger 2.0 input into these
models; the generators read them and produce SynthesizedRequest values.
Schema fragments stay plain dicts taken from the loaded document.
"""

from typing import Any
from urllib.parse import quote, urlencode

from pydantic import BaseModel, ConfigDict, Field, model_validator

SchemaNode = dict[str, Any]
SecurityRequirement = dict[str, list[str]]

PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")

_DEFAULT_STYLES = {
    "path": "simple",
    "header": "simple",
    "query": "form",
    "cookie": "form",
}


class Parameter(BaseModel):
    """A single operation parameter (path, query, header, or cookie)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: str  # path / query / header / cookie
    required: bool = False
    schema_: SchemaNode = Field(default_factory=dict, alias="schema")
    style: str | None = None
    explode: bool | None = None
    content_type: str | None = None  # set when declared through `content`
    description: str = ""
    example: Any = None

    @model_validator(mode="after")
    def _path_parameters_are_required(self) -> "Parameter":
        if self.location == "path":
            self.required = True
        return self

    @property
    def effective_style(self) -> str:
        return self.style or _DEFAULT_STYLES.get(self.location, "form")

    @property
    def effective_explode(self) -> bool:
        if self.explode is not None:
            return self.explode
        return self.effective_style == "form"


class MediaType(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_: SchemaNode = Field(default_factory=dict, alias="schema")
    example: Any = None
    examples: dict[str, Any] = {}


class RequestBody(BaseModel):
    """Request body keyed by content type, in declaration order."""

    content: dict[str, MediaType] = {}
    required: bool = False
    description: str = ""


class SecurityScheme(BaseModel):
    """A scheme from components.securitySchemes (or Swagger securityDefinitions)."""

    name: str
    type: str  # apiKey / http / oauth2 / openIdConnect
    location: str | None = None  # apiKey: query / header / cookie
    parameter_name: str | None = None  # apiKey: header, query or cookie name
    scheme: str | None = None  # http: basic / bearer / digest ...
    bearer_format: str | None = None
    flows: dict[str, Any] | None = None
    open_id_connect_url: str | None = None
    description: str = ""


class ServerVariable(BaseModel):
    default: str | None = None
    enum: list[str] = []
    description: str = ""


class Server(BaseModel):
    """A server URL template with `{variable}` placeholders."""

    url: str
    description: str = ""
    variables: dict[str, ServerVariable] = {}


class Operation(BaseModel):
    """A single API operation (path + method) with everything needed to call it."""

    method: str  # GET / POST / PUT / DELETE / PATCH / HEAD / OPTIONS / TRACE
    path: str  # /users/{id}
    operation_id: str | None = None
    summary: str = ""
    tags: list[str] = []
    parameters: list[Parameter] = []
    request_body: RequestBody | None = None
    security: list[SecurityRequirement] = []
    servers: list[Server] = []

    def __str__(self) -> str:
        summary = f" - {self.summary}" if self.summary else ""
        return f"{self.method.upper()} {self.path}{summary}"


class NameValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class RequestBodyPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: bytes
    content_type: str

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class SynthesizedRequest(BaseModel):
    """A concrete HTTP request built from an operation.

    `url` is the absolute URL without the query string; query pairs are kept
    unencoded in `query` and encoded once by `full_url`.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    headers: tuple[NameValue, ...] = ()
    query: tuple[NameValue, ...] = ()
    cookies: tuple[NameValue, ...] = ()
    body: RequestBodyPayload | None = None

    def header(self, name: str) -> str | None:
        """Return a header value, matching the name case-insensitively."""
        lowered = name.lower()
        for h in self.headers:
            if h.name.lower() == lowered:
                return h.value
        return None

    @property
    def query_string(self) -> str:
        return urlencode([(q.name, q.value) for q in self.query], safe=",", quote_via=quote)

    @property
    def full_url(self) -> str:
        if not self.query:
            return self.url
        return f"{self.url}?{self.query_string}"
