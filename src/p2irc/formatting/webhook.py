"""Webhook templates: turn a push/tag event document into one chat line.

A template is selected by plain string prefix on the document's ``ref``
(``refs/heads/`` matches every branch, ``refs/tags/v`` only ``v``-tags).
Its field paths are resolved in order and substituted positionally into
the format string.
"""

from __future__ import annotations

import json
import string
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TypeAlias

from loguru import logger

from p2irc.core.constants import SELF_FIELD
from p2irc.core.errors import MalformedWebhook, NoTemplateMatch, PathResolutionError

WebhookValue: TypeAlias = "str | int | float | bool | None | list[WebhookValue] | Mapping[str, WebhookValue]"
WebhookDocument: TypeAlias = "Mapping[str, WebhookValue]"


def _count_placeholders(fmt: str) -> int:
    count = 0
    for _, field_name, _, _ in string.Formatter().parse(fmt):
        if field_name is None:
            continue
        if field_name and not field_name.isdigit():
            raise ValueError(f"named placeholder {{{field_name}}} is not allowed; use {{}}")
        count += 1
    return count


@dataclass(frozen=True)
class WebhookTemplate:
    """Ref prefix, positional format string and the field paths that fill it."""

    ref_prefix: str
    format: str
    fields: tuple[str, ...]

    def __post_init__(self) -> None:
        placeholders = _count_placeholders(self.format)
        if placeholders != len(self.fields):
            raise ValueError(
                f"format has {placeholders} placeholders but {len(self.fields)} fields are listed"
            )
        try:
            self.format.format(*[""] * len(self.fields))
        except (IndexError, ValueError) as exc:
            raise ValueError(f"format {self.format!r} cannot be filled positionally: {exc}") from exc

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> WebhookTemplate:
        fields = data["fields"]
        if not isinstance(fields, list | tuple):
            raise TypeError("fields must be a list of dotted paths")
        return cls(
            ref_prefix=str(data["ref_prefix"]),
            format=str(data["format"]),
            fields=tuple(str(f) for f in fields),
        )

    def matches(self, ref: str) -> bool:
        return ref.startswith(self.ref_prefix)


def _as_mapping(value: WebhookValue, path: str, key: str) -> Mapping[str, WebhookValue]:
    if not isinstance(value, Mapping):
        raise PathResolutionError(
            f"Webhook field {path!r}: {key!r} is not an object",
            code="not_a_mapping",
            details={"path": path, "key": key},
        )
    return value


def resolve_path(document: WebhookDocument, path: str) -> str:
    """Resolve a dotted path to a string leaf; raise PathResolutionError on any shape mismatch."""
    keys = path.split(".")
    node: WebhookValue = document
    parent = "<root>"
    for key in keys[:-1]:
        node = _as_mapping(node, path, parent)
        if key not in node:
            raise PathResolutionError(
                f"Webhook field {path!r}: {key!r} is missing",
                code="missing_key",
                details={"path": path, "key": key},
            )
        node = node[key]
        parent = key
    leaf_key = keys[-1]
    leaf = _as_mapping(node, path, parent).get(leaf_key)
    if not isinstance(leaf, str):
        raise PathResolutionError(
            f"Webhook field {path!r} is missing or not a string",
            code="invalid_leaf",
            details={"path": path, "key": leaf_key},
        )
    return leaf


def _self_value(ref: str, prefix: str) -> str:
    """Last slash component of the ref after the template's prefix (``refs/tags/v1.2`` -> ``1.2``)."""
    return ref[len(prefix) :].split("/")[-1]


class WebhookTemplateEngine:
    """Render webhook documents through an ordered list of templates. First match wins."""

    def __init__(self, templates: Sequence[WebhookTemplate]) -> None:
        self._templates = tuple(templates)

    @staticmethod
    def decode(body: bytes | str) -> WebhookDocument:
        try:
            document = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedWebhook(
                "Malformed webhook: body is not valid JSON",
                code="invalid_json",
                original_error=exc,
            ) from exc
        if not isinstance(document, dict) or not isinstance(document.get("ref"), str):
            raise MalformedWebhook(code="missing_ref")
        return document

    def select(self, ref: str) -> WebhookTemplate:
        for template in self._templates:
            if template.matches(ref):
                return template
        raise NoTemplateMatch(
            f"No webhook template matches ref {ref!r}",
            code="no_template",
            details={"ref": ref},
        )

    def render_document(self, document: WebhookDocument) -> str:
        ref = document.get("ref")
        if not isinstance(ref, str):
            raise MalformedWebhook(code="missing_ref")
        template = self.select(ref)
        values = [
            _self_value(ref, template.ref_prefix) if path == SELF_FIELD else resolve_path(document, path)
            for path in template.fields
        ]
        logger.debug("Webhook ref {} rendered with template {!r}", ref, template.ref_prefix)
        return template.format.format(*values)

    def render(self, body: bytes | str) -> str:
        """Decode a JSON body and render it."""
        return self.render_document(self.decode(body))
