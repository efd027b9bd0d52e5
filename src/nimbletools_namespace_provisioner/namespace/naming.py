"""Namespace name grammar, normalization and placeholder evaluation."""

import re
import secrets
import string

from nimbletools_namespace_provisioner.constants import (
    METADATA_NAME_MAX_LENGTH,
    NAME_SUFFIX_LENGTH,
    NORMALIZED_NAMESPACE_PREFIX,
    RESERVED_NAMESPACE_PREFIX,
    SUFFIXED_NAME_BASE_LENGTH,
    USERID_PLACEHOLDER,
    USERNAME_PLACEHOLDER,
)
from nimbletools_namespace_provisioner.models import ResolutionContext

NAMESPACE_NAME_PATTERN = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?")
_INVALID_CHARS = re.compile(r"[^-a-zA-Z0-9]")
_REPEATED_DASHES = re.compile(r"-+")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def is_valid_namespace_name(name: str | None) -> bool:
    """Check a name against the namespace naming grammar."""
    if not name or len(name) > METADATA_NAME_MAX_LENGTH:
        return False
    if name.startswith(RESERVED_NAMESPACE_PREFIX):
        return False
    return NAMESPACE_NAME_PATTERN.fullmatch(name) is not None


def normalize_namespace_name(name: str) -> str:
    """
    Normalize an arbitrary string to the namespace naming grammar.

    Returns an empty string when nothing usable is left.
    """
    name = _INVALID_CHARS.sub("-", name.lower())
    name = _REPEATED_DASHES.sub("-", name).strip("-")
    if name.startswith(RESERVED_NAMESPACE_PREFIX):
        name = NORMALIZED_NAMESPACE_PREFIX + name
    # truncation may leave a trailing dash behind
    return name[:METADATA_NAME_MAX_LENGTH].rstrip("-")


def generate_suffix(length: int = NAME_SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def with_suffix(base: str, suffix: str) -> str:
    """Append a collision suffix, keeping the result within the length limit."""
    return f"{base[:SUFFIXED_NAME_BASE_LENGTH].rstrip('-')}-{suffix}"


def evaluate_placeholders(template: str, ctx: ResolutionContext) -> str:
    """Substitute <username> and <userid> in a template."""
    evaluated = template
    for placeholder, value in (
        (USERNAME_PLACEHOLDER, ctx.user_name),
        (USERID_PLACEHOLDER, ctx.user_id),
    ):
        if value is not None:
            evaluated = evaluated.replace(placeholder, value)
    return evaluated


def evaluate_annotations(annotations: dict[str, str], ctx: ResolutionContext) -> dict[str, str]:
    return {key: evaluate_placeholders(value, ctx) for key, value in annotations.items()}


def is_managed_namespace(namespace_name: str | None, workspace_id: str) -> bool:
    """A namespace is managed by a workspace when its name embeds the workspace ID."""
    if not namespace_name or not workspace_id:
        return False
    return workspace_id in namespace_name
