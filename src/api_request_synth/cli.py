"""CLI entry point for api-request-synth."""

import json
import logging
from pathlib import Path

import click

from api_request_synth.errors import SynthError
from api_request_synth.generator.example import DEFAULT_MAX_DEPTH, ExampleOptions, generate_example
from api_request_synth.generator.har import to_har
from api_request_synth.generator.request import synthesize_operation
from api_request_synth.log import configure_logging
from api_request_synth.parser.loader import load_document
from api_request_synth.parser.openapi import OpenApiDocument


def _load(doc_path: Path) -> OpenApiDocument:
    try:
        return OpenApiDocument(load_document(doc_path))
    except SynthError as e:
        raise click.ClickException(str(e)) from e


def _parse_pairs(values: tuple[str, ...], option: str) -> dict[str, str]:
    """Parse repeated NAME=VALUE options into a dict."""
    result = {}
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VALUE, got '{item}'", param_hint=option)
        result[name] = value
    return result


def _parse_operation(operation: str) -> tuple[str, str]:
    """Split 'GET /users/{id}' into (method, path)."""
    parts = operation.split(None, 1)
    if len(parts) != 2 or not parts[1].startswith("/"):
        raise click.BadParameter(f"expected 'METHOD /path', got '{operation}'", param_hint="OPERATION")
    return parts[0].upper(), parts[1].strip()


def _parse_body(body: str | None):
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--body") from e


def _check_server_index(doc: OpenApiDocument, method: str, path: str, server_index: int) -> None:
    op = doc.get_operation(path, method)
    if op is None:
        return
    servers = op.servers or doc.get_servers()
    if not 0 <= server_index < max(len(servers), 1):
        raise click.BadParameter(f"{server_index} is out of range, {len(servers)} server(s) declared", param_hint="--server-index")


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        click.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    click.echo(f"Saved to {output}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log fallbacks and degraded output to stderr.")
def main(verbose: bool):
    """API Request Synth: build example requests and payloads from OpenAPI documents."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
def operations(doc_path: Path):
    """List the operations in an API document."""
    doc = _load(doc_path)
    for op in doc.get_operations():
        summary = f"  {op.summary}" if op.summary else ""
        click.echo(f"{op.method} {op.path}{summary}")


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.argument("operation")
@click.option("--var", "variables", multiple=True, help="Parameter or server variable value, NAME=VALUE. Repeatable.")
@click.option("--credential", "credentials", multiple=True, help="Secret for a security scheme, SCHEME=SECRET. Repeatable.")
@click.option("--body", default=None, help="Request body as JSON text; replaces the generated example.")
@click.option("--server-index", default=0, show_default=True, help="Which declared server to use.")
@click.option("--har", "as_har", is_flag=True, help="Print a HAR request object instead.")
@click.option("--max-depth", default=DEFAULT_MAX_DEPTH, show_default=True, envvar="API_SYNTH_MAX_DEPTH", help="Recursion budget for generated examples.")
@click.option("--no-examples", is_flag=True, help="Ignore example/default values declared in schemas.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write JSON to this file instead of stdout.")
def request(
    doc_path: Path,
    operation: str,
    variables: tuple[str, ...],
    credentials: tuple[str, ...],
    body: str | None,
    server_index: int,
    as_har: bool,
    max_depth: int,
    no_examples: bool,
    output: Path | None,
):
    """Synthesize the HTTP request for OPERATION, e.g. 'GET /users/{id}'."""
    method, path = _parse_operation(operation)
    doc = _load(doc_path)
    _check_server_index(doc, method, path, server_index)
    options = ExampleOptions(prefer_examples=not no_examples, max_depth=max_depth)

    try:
        synthesized = synthesize_operation(
            doc,
            path,
            method,
            server_index=server_index,
            variables=_parse_pairs(variables, "--var"),
            credentials=_parse_pairs(credentials, "--credential"),
            options=options,
            body=_parse_body(body),
        )
    except SynthError as e:
        raise click.ClickException(str(e)) from e

    if as_har:
        data = to_har(synthesized).model_dump(by_alias=True, exclude_none=True)
    else:
        data = synthesized.model_dump(mode="json")
    _emit(json.dumps(data, indent=2, ensure_ascii=False), output)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.argument("schema_name")
@click.option("--max-depth", default=DEFAULT_MAX_DEPTH, show_default=True, envvar="API_SYNTH_MAX_DEPTH", help="Recursion budget for generated examples.")
@click.option("--no-examples", is_flag=True, help="Ignore example/default values declared in schemas.")
@click.option("--seed", default=None, type=int, help="Seed for values that are random by nature (uuid).")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write JSON to this file instead of stdout.")
def example(doc_path: Path, schema_name: str, max_depth: int, no_examples: bool, seed: int | None, output: Path | None):
    """Print an example value for a named schema."""
    doc = _load(doc_path)
    schema = doc.get_schema(schema_name)
    if schema is None:
        raise click.ClickException(f"Schema '{schema_name}' not found")

    options = ExampleOptions(prefer_examples=not no_examples, max_depth=max_depth, seed=seed)
    try:
        value = generate_example(schema, options, root=doc.spec)
    except SynthError as e:
        raise click.ClickException(str(e)) from e
    _emit(json.dumps(value, indent=2, ensure_ascii=False, default=str), output)
