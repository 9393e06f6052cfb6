"""Fill empty fields of a canvas node from a task's title and details.

Task details are read as ``Heading: value`` sections plus loose lines, e.g.::

    Summary: Let users sign in with email
    Acceptance criteria:
    - Wrong password shows an error
    - Session survives reload

Node data holds scalars only, so list-like fields (acceptance criteria,
dependencies, ...) are kept as one item per line. Existing values are never
overwritten; list-like fields only gain items they do not already contain.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_HEADING_RE = re.compile(r"^([A-Za-z][A-Za-z0-9\s/_-]{1,40}):\s*(.*)$")
_BULLET_RE = re.compile(r"^[-*]\s+")
_TITLE_PREFIX_RE = re.compile(r"^(feature|screen|tech stack|idea)\s*:\s*", re.IGNORECASE)
_SECTION_KEY_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class ParsedDetails:
    sections: dict[str, list[str]] = field(default_factory=dict)
    loose_lines: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Rules:
    name_field: str | None
    text_fields: dict[str, tuple[str, ...]]
    list_fields: dict[str, tuple[str, ...]]


_RULES: dict[str, _Rules] = {
    "feature": _Rules(
        name_field="featureName",
        text_fields={
            "summary": ("summary",),
            "problem": ("problem", "coreproblem"),
            "userStory": ("userstory", "story"),
            "risks": ("risks", "risk"),
            "metrics": ("metrics", "successmetrics"),
            "aiContext": ("aicontext", "context"),
            "testingRequirements": ("testingrequirements", "testing", "tests"),
            "technicalConstraints": ("technicalconstraints", "constraints"),
        },
        list_fields={
            "acceptanceCriteria": ("acceptancecriteria", "criteria", "acceptance"),
            "dependencies": ("dependencies", "dependson"),
            "implementationSteps": ("implementationsteps", "steps", "plan"),
            "codeReferences": ("codereferences", "references", "code"),
            "relatedFiles": ("relatedfiles", "files", "filepaths"),
        },
    ),
    "screen": _Rules(
        name_field="screenName",
        text_fields={
            "purpose": ("purpose", "summary"),
            "navigation": ("navigation",),
            "wireframeUrl": ("wireframeurl",),
            "aiContext": ("aicontext", "context"),
            "testingRequirements": ("testingrequirements", "testing", "tests"),
        },
        list_fields={
            "keyElements": ("keyelements", "elements"),
            "userActions": ("useractions", "actions"),
            "states": ("states",),
            "dataSources": ("datasources", "sources"),
            "acceptanceCriteria": ("acceptancecriteria", "criteria", "acceptance"),
            "componentHierarchy": ("componenthierarchy", "components"),
            "codeReferences": ("codereferences", "references", "code"),
        },
    ),
    "techStack": _Rules(
        name_field="toolName",
        text_fields={
            "version": ("version",),
            "rationale": ("rationale",),
            "configurationNotes": ("configurationnotes", "configuration"),
        },
        list_fields={
            "integrationWith": ("integrationwith", "integrations"),
        },
    ),
    "idea": _Rules(
        name_field=None,
        text_fields={
            "appName": ("appname",),
            "description": ("description", "summary"),
            "targetUser": ("targetuser", "audience"),
            "coreProblem": ("coreproblem", "problem"),
            "projectArchitecture": ("projectarchitecture", "architecture"),
        },
        list_fields={
            "corePatterns": ("corepatterns", "patterns"),
            "constraints": ("constraints", "technicalconstraints"),
            "tags": ("tags",),
        },
    ),
}


def clean_title_prefix(title: str) -> str:
    return _TITLE_PREFIX_RE.sub("", title).strip()


def _strip_bullet(line: str) -> str:
    return _BULLET_RE.sub("", line).strip()


def _section_key(heading: str) -> str:
    return _SECTION_KEY_RE.sub("", heading.lower())


def parse_task_details(details: str | None) -> ParsedDetails:
    parsed = ParsedDetails()
    current: str | None = None

    for raw_line in (details or "").splitlines():
        line = _strip_bullet(raw_line.strip())
        if not line:
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            current = _section_key(heading.group(1))
            parsed.sections.setdefault(current, [])
            if heading.group(2):
                parsed.sections[current].append(heading.group(2).strip())
            continue

        if current is not None:
            parsed.sections[current].append(line)
        else:
            parsed.loose_lines.append(line)

    return parsed


def _first_section_value(sections: dict[str, list[str]], keys: tuple[str, ...]) -> str:
    for key in keys:
        for value in sections.get(key, []):
            if value:
                return value
    return ""


def _section_lines(sections: dict[str, list[str]], keys: tuple[str, ...]) -> list[str]:
    for key in keys:
        values = [v.strip() for v in sections.get(key, []) if v.strip()]
        if values:
            return values
    return []


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(value)
    return out


def _is_blank(value: object) -> bool:
    return not isinstance(value, str) or not value.strip()


def _items(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        return [_strip_bullet(line) for line in value.splitlines() if line.strip()]
    return []


def _append_note(existing: object, note: str) -> str:
    current = existing if isinstance(existing, str) else ""
    note = note.strip()
    if not note:
        return current
    if not current.strip():
        return note
    if note in current:
        return current
    return f"{current}\n\n{note}"


def build_node_autofill_update(node: dict, title: str, details: str | None) -> dict[str, str]:
    """Return the field updates a task implies for ``node``.

    Only keys already present in the node's data are returned.
    """
    rules = _RULES.get(str(node.get("type") or ""))
    data = node.get("data")
    if rules is None or not isinstance(data, dict):
        return {}

    clean_title = clean_title_prefix(title)
    parsed = parse_task_details(details)
    updates: dict[str, str] = {}

    if rules.name_field and _is_blank(data.get(rules.name_field)):
        updates[rules.name_field] = clean_title

    for field_name, keys in rules.text_fields.items():
        value = _first_section_value(parsed.sections, keys)
        if value and _is_blank(data.get(field_name)):
            updates[field_name] = value

    for field_name, keys in rules.list_fields.items():
        incoming = _section_lines(parsed.sections, keys)
        if node["type"] == "feature" and field_name == "implementationSteps":
            incoming = incoming + parsed.loose_lines
        existing = _items(data.get(field_name))
        merged = _unique(existing + incoming)
        if len(merged) != len(existing):
            updates[field_name] = "\n".join(merged)

    task_note = f"Task: {clean_title}"
    if node["type"] == "idea":
        if _is_blank(data.get("coreProblem")) and "coreProblem" not in updates and "description" not in updates:
            fallback = (details or "").strip() or clean_title
            if fallback:
                updates["coreProblem"] = fallback
        if not _is_blank(data.get("coreProblem")):
            description = updates.get("description", data.get("description"))
            merged = _append_note(description, task_note)
            if merged != description:
                updates["description"] = merged
    else:
        notes = data.get("notes")
        merged = _append_note(notes, task_note)
        if merged != notes:
            updates["notes"] = merged

    return {key: value for key, value in updates.items() if key in data}
