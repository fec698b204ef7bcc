"""Server URL templating: fill `{variable}` placeholders in a server URL."""

import logging
import re

from api_request_synth.errors import InvalidServerVariableError
from api_request_synth.parser.base import Server

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"{\s*([^{}\s]+)\s*}")


def get_variable_names(template: str) -> list[str]:
    """Return the placeholder names in a template, first occurrence order, without duplicates."""
    names: list[str] = []
    for match in VARIABLE_PATTERN.finditer(template):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def replace_variables(template: str, values: dict[str, str]) -> str:
    """Substitute known placeholders; unknown ones stay as they are."""

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        return match.group(0)

    return VARIABLE_PATTERN.sub(_substitute, template)


def build_base_url(server: Server | None, overrides: dict | None = None) -> str:
    """Resolve a server's URL template into a concrete base URL.

    For each placeholder: a valid override wins, then the declared default,
    then the empty string. An override outside the declared enum falls back
    to the default.

    Raises:
        InvalidServerVariableError: the override is outside the enum and the
            variable has no default.
    """
    if server is None:
        return ""
    overrides = overrides or {}

    values: dict[str, str] = {}
    for name in get_variable_names(server.url):
        variable = server.variables.get(name)
        override = overrides.get(name)
        if override is not None:
            override = str(override)

        if variable is None:
            values[name] = override if override is not None else ""
            continue

        if override is not None:
            if not variable.enum or override in variable.enum:
                values[name] = override
                continue
            if variable.default is None:
                raise InvalidServerVariableError(name, override, variable.enum)
            logger.warning(
                "Server variable '%s' override '%s' not in %s, using default '%s'",
                name, override, variable.enum, variable.default,
            )

        values[name] = variable.default if variable.default is not None else ""

    return replace_variables(server.url, values)
