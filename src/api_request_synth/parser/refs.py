"""Local `$ref` resolution (JSON pointers into the loaded document)."""

from typing import Any

from api_request_synth.errors import SchemaResolutionError

MAX_REF_CHAIN = 64


def follow_ref(ref: str, root: dict | None) -> Any:
    """Follow a JSON pointer like '#/components/schemas/Pet' inside root."""
    if root is None:
        raise SchemaResolutionError(ref, "no root document to resolve against")
    if not ref.startswith("#"):
        raise SchemaResolutionError(ref, "external references are not supported")

    current: Any = root
    pointer = ref[1:]
    if not pointer:
        return current
    for raw in pointer.lstrip("/").split("/"):
        part = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            raise SchemaResolutionError(ref, f"missing key '{part}'")
    return current


def resolve(node: Any, root: dict | None) -> Any:
    """Resolve a node through any chain of `$ref`s to the node it points at.

    The returned object is the one stored in the document, so its identity
    can key recursion guards.
    """
    seen: set[str] = set()
    while isinstance(node, dict) and isinstance(node.get("$ref"), str):
        ref = node["$ref"]
        if ref in seen or len(seen) >= MAX_REF_CHAIN:
            raise SchemaResolutionError(ref, "circular $ref chain")
        seen.add(ref)
        node = follow_ref(ref, root)
    return node
