"""Security request builder.

Turns a security requirement plus caller-supplied credentials into the
headers, query pairs and cookies the request needs. Token acquisition is
out of scope: OAuth2 and OpenID Connect tokens come from the caller.

A requirement naming several schemes needs all of them (AND); an
operation's list of requirements offers alternatives (OR).
"""

import base64
import logging
from typing import Any

from pydantic import BaseModel

from api_request_synth.parser.base import SecurityRequirement, SecurityScheme

logger = logging.getLogger(__name__)


class SecurityArtifacts(BaseModel):
    """Request fragments produced by a security requirement, in scheme order."""

    headers: list[tuple[str, str]] = []
    query: list[tuple[str, str]] = []
    cookies: list[tuple[str, str]] = []


def select_requirement(
    schemes: dict[str, SecurityScheme],
    requirements: list[SecurityRequirement],
    credentials: dict[str, Any] | None = None,
) -> SecurityRequirement:
    """Pick the first requirement the credentials fully satisfy.

    Falls back to the first requirement (its unresolved values end up blank),
    or to an empty requirement when the operation declares none.
    """
    credentials = credentials or {}
    for requirement in requirements:
        if all(_is_satisfied(schemes.get(name), credentials.get(name)) for name in requirement):
            logger.debug("Using security requirement %s", list(requirement))
            return requirement
    if requirements:
        logger.debug("No requirement satisfied by credentials, falling back to %s", list(requirements[0]))
        return requirements[0]
    return {}


def apply_security(
    schemes: dict[str, SecurityScheme],
    requirement: SecurityRequirement,
    credentials: dict[str, Any] | None = None,
) -> SecurityArtifacts:
    """Build the request fragments for every scheme named by requirement."""
    credentials = credentials or {}
    artifacts = SecurityArtifacts()

    for name in requirement:
        scheme = schemes.get(name)
        if scheme is None:
            logger.warning("Security requirement references unknown scheme '%s'", name)
            continue
        secret = credentials.get(name)

        if scheme.type == "apiKey":
            _apply_api_key(artifacts, scheme, secret)
        elif scheme.type == "http":
            artifacts.headers.append(("Authorization", _http_authorization(scheme, secret)))
        elif scheme.type in ("oauth2", "openIdConnect"):
            artifacts.headers.append(("Authorization", f"Bearer {_access_token(secret)}"))
        else:
            logger.warning("Unsupported security scheme type '%s' for '%s'", scheme.type, name)

    return artifacts


def basic_credentials(secret: Any) -> tuple[str, str]:
    """Normalize basic-auth credentials to (username, password)."""
    if isinstance(secret, dict):
        return str(secret.get("username") or ""), str(secret.get("password") or "")
    if isinstance(secret, (list, tuple)) and len(secret) == 2:
        return str(secret[0] or ""), str(secret[1] or "")
    if isinstance(secret, str):
        username, _, password = secret.partition(":")
        return username, password
    return "", ""


def _apply_api_key(artifacts: SecurityArtifacts, scheme: SecurityScheme, secret: Any) -> None:
    key_name = scheme.parameter_name or scheme.name
    value = "" if secret is None else str(secret)
    if scheme.location == "query":
        artifacts.query.append((key_name, value))
    elif scheme.location == "cookie":
        artifacts.cookies.append((key_name, value))
    else:
        artifacts.headers.append((key_name, value))


def _http_authorization(scheme: SecurityScheme, secret: Any) -> str:
    kind = (scheme.scheme or "bearer").lower()
    if kind == "basic":
        username, password = basic_credentials(secret)
        encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"
    if kind == "bearer":
        return f"Bearer {_access_token(secret)}"
    return f"{scheme.scheme} {'' if secret is None else secret}"


def _access_token(secret: Any) -> str:
    if isinstance(secret, dict):
        return str(secret.get("access_token") or secret.get("token") or "")
    return "" if secret is None else str(secret)


def _is_satisfied(scheme: SecurityScheme | None, secret: Any) -> bool:
    if scheme is None or secret is None:
        return False
    if scheme.type == "http" and (scheme.scheme or "").lower() == "basic":
        return bool(basic_credentials(secret)[0])
    if scheme.type in ("oauth2", "openIdConnect") or (scheme.type == "http" and (scheme.scheme or "bearer").lower() == "bearer"):
        return bool(_access_token(secret))
    return secret != ""
