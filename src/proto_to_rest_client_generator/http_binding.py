"""HTTP annotation extraction and URL template parsing."""

from __future__ import annotations

import re
from typing import Optional

from .descriptors import MethodDescriptor
from .errors import GenerationError
from .model_types import HttpBinding

HTTP_VERBS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")

# Field path, then an optional ``=sub/pattern`` that is not evaluated.
PLACEHOLDER_RE = re.compile(r"{([a-zA-Z0-9_.]+?)(=[^{}]+)?}")


def get_http_binding(method: MethodDescriptor) -> Optional[HttpBinding]:
    """Return the normalized HTTP binding of ``method``, if it has one."""
    rule = method.http
    if rule is None:
        return None
    verb = rule.verb.upper()
    if verb not in HTTP_VERBS:
        raise GenerationError(f"{method.full_name}: unsupported HTTP verb {rule.verb!r}")
    return HttpBinding(verb=verb, url=rule.url, body=rule.body)


def require_http_binding(method: MethodDescriptor) -> HttpBinding:
    """Return the binding of ``method`` or fail when it is not annotated."""
    binding = get_http_binding(method)
    if binding is None:
        raise GenerationError(f"{method.full_name}: method has no http info: {method.name}")
    return binding


def placeholders(url: str) -> list[str]:
    """Return the field paths referenced by a URL template, in template order."""
    return [match.group(1) for match in PLACEHOLDER_RE.finditer(url)]


def split_template(url: str) -> list[tuple[str, Optional[str]]]:
    """Split a URL template into ``(literal, field_path)`` segments.

    The final segment carries ``None`` as its field path when the template
    ends with literal text.
    """
    segments: list[tuple[str, Optional[str]]] = []
    position = 0
    for match in PLACEHOLDER_RE.finditer(url):
        segments.append((url[position : match.start()], match.group(1)))
        position = match.end()
    if position < len(url):
        segments.append((url[position:], None))
    return segments
