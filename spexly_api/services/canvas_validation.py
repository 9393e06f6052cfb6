"""Validation and sanitization of client-submitted canvas graphs.

Every string in a node's ``data`` is truncated and HTML-escaped before it is
persisted, which breaks the delimiters of ``<script>`` tags, ``javascript:``
URIs and inline event handlers without dropping their text. A single invalid
node or edge rejects the whole submission.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field

from spexly_api.mappings import HTML_ESCAPES, NODE_TYPES

MAX_NODES = 500
MAX_EDGES = 1000
MAX_STRING_FIELD_LENGTH = 10_000

MIN_PROJECT_NAME_LENGTH = 1
MAX_PROJECT_NAME_LENGTH = 100

SQL_KEYWORDS = (
    "DROP", "DELETE", "TRUNCATE", "ALTER", "CREATE", "INSERT", "UPDATE",
    "SELECT", "UNION", "EXEC", "EXECUTE", "SCRIPT", "--", ";--", "/*", "*/",
)

_ALLOWED_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_.,!?'()]+$")
_UUID_V4_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# An ampersand that already opens one of our own entities is left alone so
# that escaping is stable under repeated application.
_ESCAPE_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|#x27|#x2F);)|[<>\"'/]")


@dataclass
class ValidationResult:
    valid: bool
    sanitized: str | None = None
    error: str | None = None


@dataclass
class CanvasValidationResult:
    valid: bool
    sanitized_nodes: list[dict] = field(default_factory=list)
    sanitized_edges: list[dict] = field(default_factory=list)
    error: str | None = None


def escape_html(value: str) -> str:
    return _ESCAPE_RE.sub(lambda m: HTML_ESCAPES[m.group(0)], value)


def sanitize_string_field(value: str) -> str:
    """Truncate to the field cap, then escape. Whitespace is preserved."""
    return escape_html(value[:MAX_STRING_FIELD_LENGTH])


def _sanitize_value(value: object) -> str | int | float | bool:
    if isinstance(value, str):
        return sanitize_string_field(value)
    if isinstance(value, (bool, int, float)):
        return value
    return sanitize_string_field(json.dumps(value, default=str))


def sanitize_node_updates(data: dict, updates: dict[str, str]) -> dict[str, str]:
    """Sanitize new values for fields of an already stored node.

    Blank fields get the full sanitizer. Values that extend stored (escaped)
    text are escaped only, and dropped if they would exceed the field cap, so
    stored content is never cut.
    """
    clean: dict[str, str] = {}
    for key, value in updates.items():
        current = data.get(key)
        if isinstance(current, str) and current.strip():
            escaped = escape_html(value)
            if len(escaped) <= MAX_STRING_FIELD_LENGTH:
                clean[key] = escaped
        else:
            clean[key] = sanitize_string_field(value)
    return clean


def _is_finite_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_non_empty_str(value: object) -> bool:
    return isinstance(value, str) and bool(value)


def _validate_node(raw: object) -> dict | None:
    if not isinstance(raw, dict):
        return None

    node_id = raw.get("id")
    node_type = raw.get("type")
    position = raw.get("position")
    data = raw.get("data")

    if not _is_non_empty_str(node_id):
        return None
    if not isinstance(node_type, str) or node_type not in NODE_TYPES:
        return None
    if not isinstance(position, dict):
        return None
    if not _is_finite_number(position.get("x")) or not _is_finite_number(position.get("y")):
        return None
    if not isinstance(data, dict):
        return None

    return {
        **raw,
        "id": node_id,
        "type": node_type,
        "position": {"x": position["x"], "y": position["y"]},
        "data": {str(key): _sanitize_value(value) for key, value in data.items()},
    }


def _validate_edge(raw: object) -> dict | None:
    if not isinstance(raw, dict):
        return None

    edge_id = raw.get("id")
    source = raw.get("source")
    target = raw.get("target")

    if not (_is_non_empty_str(edge_id) and _is_non_empty_str(source) and _is_non_empty_str(target)):
        return None
    if source == target:
        return None

    return {"id": edge_id, "source": source, "target": target}


def validate_canvas_data(nodes: object, edges: object) -> CanvasValidationResult:
    if not isinstance(nodes, (list, tuple)):
        return CanvasValidationResult(valid=False, error="Nodes must be an array")
    if not isinstance(edges, (list, tuple)):
        return CanvasValidationResult(valid=False, error="Edges must be an array")

    if len(nodes) > MAX_NODES:
        return CanvasValidationResult(valid=False, error=f"Cannot exceed {MAX_NODES} nodes")
    if len(edges) > MAX_EDGES:
        return CanvasValidationResult(valid=False, error=f"Cannot exceed {MAX_EDGES} edges")

    sanitized_nodes: list[dict] = []
    node_ids: set[str] = set()
    for raw in nodes:
        node = _validate_node(raw)
        if node is None or node["id"] in node_ids:
            return CanvasValidationResult(valid=False, error="Invalid node structure detected")
        node_ids.add(node["id"])
        sanitized_nodes.append(node)

    sanitized_edges: list[dict] = []
    for raw in edges:
        edge = _validate_edge(raw)
        if edge is None:
            return CanvasValidationResult(valid=False, error="Invalid edge structure detected")
        if edge["source"] not in node_ids or edge["target"] not in node_ids:
            return CanvasValidationResult(valid=False, error="Edge references non-existent node")
        sanitized_edges.append(edge)

    return CanvasValidationResult(
        valid=True,
        sanitized_nodes=sanitized_nodes,
        sanitized_edges=sanitized_edges,
    )


def validate_project_name(name: object) -> ValidationResult:
    if not isinstance(name, str):
        return ValidationResult(valid=False, error="Project name must be a string")

    trimmed = name.strip()
    if len(trimmed) < MIN_PROJECT_NAME_LENGTH:
        return ValidationResult(valid=False, error="Project name cannot be empty")
    if len(trimmed) > MAX_PROJECT_NAME_LENGTH:
        return ValidationResult(
            valid=False,
            error=f"Project name must be {MAX_PROJECT_NAME_LENGTH} characters or less",
        )

    upper = trimmed.upper()
    if any(keyword in upper for keyword in SQL_KEYWORDS):
        return ValidationResult(
            valid=False,
            error="Project name contains invalid characters or keywords",
        )

    if not _ALLOWED_NAME_RE.match(trimmed):
        return ValidationResult(
            valid=False,
            error=(
                "Project name contains invalid characters. Only letters, numbers, "
                "spaces, and basic punctuation are allowed"
            ),
        )

    return ValidationResult(valid=True, sanitized=escape_html(trimmed))


def validate_project_id(project_id: object) -> ValidationResult:
    if not isinstance(project_id, str):
        return ValidationResult(valid=False, error="Project ID must be a string")
    if not _UUID_V4_RE.match(project_id):
        return ValidationResult(valid=False, error="Invalid project ID format")
    return ValidationResult(valid=True, sanitized=project_id)
