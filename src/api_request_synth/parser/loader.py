"""Load API description files (OpenAPI 3.x / Swagger 2.0, YAML or JSON)."""

from pathlib import Path

import yaml

from api_request_synth.errors import DocumentError


def detect_version(data: object) -> str | None:
    """Return 'openapi' or 'swagger' for an API description mapping, else None."""
    if isinstance(data, dict):
        if "openapi" in data:
            return "openapi"
        if "swagger" in data:
            return "swagger"
    return None


def load_document(file_path: Path) -> dict:
    """Read an API description file into a dict.

    YAML is a superset of JSON, so one safe_load covers both formats.

    Raises:
        DocumentError: unreadable file, invalid YAML/JSON, or not an API description.
    """
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentError(f"Cannot read {file_path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentError(f"Cannot parse {file_path}: {e}") from e

    if detect_version(data) is None:
        raise DocumentError(f"{file_path} is not an OpenAPI or Swagger document")
    return data
