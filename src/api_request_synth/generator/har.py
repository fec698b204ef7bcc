"""HAR emitter: maps a SynthesizedRequest onto the HTTP Archive request object."""

import base64
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field

from api_request_synth.parser.base import NameValue, RequestBodyPayload, SynthesizedRequest

HTTP_VERSION = "HTTP/1.1"


class HarNameValue(BaseModel):
    name: str
    value: str


class HarPostData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(alias="mimeType")
    text: str
    params: list[HarNameValue] | None = None
    encoding: str | None = None  # "base64" when text carries non-UTF-8 bytes


class HarRequest(BaseModel):
    """HAR 1.2 request object; dump with `model_dump(by_alias=True, exclude_none=True)`."""

    model_config = ConfigDict(populate_by_name=True)

    method: str
    url: str
    http_version: str = Field(default=HTTP_VERSION, alias="httpVersion")
    cookies: list[HarNameValue] = []
    headers: list[HarNameValue] = []
    query_string: list[HarNameValue] = Field(default_factory=list, alias="queryString")
    post_data: HarPostData | None = Field(default=None, alias="postData")
    headers_size: int = Field(default=-1, alias="headersSize")
    body_size: int = Field(default=-1, alias="bodySize")


def to_har(request: SynthesizedRequest) -> HarRequest:
    """Map request fields onto a HAR request; the HAR url carries the query string.

    Bodies that are not valid UTF-8 are carried base64-encoded in postData.text
    with `encoding: "base64"`, so from_har restores the exact bytes.
    """
    post_data = None
    if request.body is not None:
        params = None
        if request.body.content_type.split(";")[0].strip().lower() == "application/x-www-form-urlencoded":
            params = [HarNameValue(name=n, value=v) for n, v in parse_qsl(request.body.text, keep_blank_values=True)]
        try:
            text, encoding = request.body.content.decode("utf-8"), None
        except UnicodeDecodeError:
            text, encoding = base64.b64encode(request.body.content).decode("ascii"), "base64"
        post_data = HarPostData(mime_type=request.body.content_type, text=text, params=params, encoding=encoding)

    return HarRequest(
        method=request.method,
        url=request.full_url,
        cookies=_pairs(request.cookies),
        headers=_pairs(request.headers),
        query_string=_pairs(request.query),
        post_data=post_data,
        body_size=len(request.body.content) if request.body is not None else 0,
    )


def from_har(entry: HarRequest | dict) -> SynthesizedRequest:
    """Rebuild a SynthesizedRequest from a HAR request (object or dumped dict)."""
    if isinstance(entry, dict):
        entry = HarRequest.model_validate(entry)

    scheme, netloc, path, _, _ = urlsplit(entry.url)
    body = None
    if entry.post_data is not None:
        if entry.post_data.encoding == "base64":
            content = base64.b64decode(entry.post_data.text)
        else:
            content = entry.post_data.text.encode("utf-8")
        body = RequestBodyPayload(content=content, content_type=entry.post_data.mime_type)

    return SynthesizedRequest(
        method=entry.method,
        url=urlunsplit((scheme, netloc, path, "", "")),
        headers=tuple(NameValue(name=h.name, value=h.value) for h in entry.headers),
        query=tuple(NameValue(name=q.name, value=q.value) for q in entry.query_string),
        cookies=tuple(NameValue(name=c.name, value=c.value) for c in entry.cookies),
        body=body,
    )


def _pairs(values: tuple[NameValue, ...]) -> list[HarNameValue]:
    return [HarNameValue(name=v.name, value=v.value) for v in values]
