"""Exception hierarchy for api-request-synth.

Synthesis favors degraded output over failure, so only a handful of
conditions are errors at all. Every custom exception inherits from
SynthError so callers can catch them in a single except clause.
"""


class SynthError(Exception):
    """Base exception for all api-request-synth errors."""


class SchemaResolutionError(SynthError):
    """A `$ref` could not be resolved against the root document.

    Raised for external refs, missing targets, or refs used without a root
    document. Callers rendering documentation may downgrade it to a null
    placeholder.
    """

    def __init__(self, ref: str, reason: str = "target not found"):
        self.ref = ref
        self.reason = reason
        super().__init__(f"Cannot resolve $ref '{ref}': {reason}")


class InvalidServerVariableError(SynthError):
    """A server variable override is outside the declared enum and there is no default."""

    def __init__(self, variable: str, value: str, allowed: list[str]):
        self.variable = variable
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid value '{value}' for server variable '{variable}'. "
            f"Allowed: {', '.join(allowed)}"
        )


class UnsupportedContentTypeError(SynthError):
    """No body serializer exists for the content type.

    The request synthesizer catches this and falls back to raw-text
    passthrough.
    """

    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(f"No serializer for content type '{content_type}'")


class DocumentError(SynthError):
    """An API description file could not be loaded, or an operation is missing from it."""
