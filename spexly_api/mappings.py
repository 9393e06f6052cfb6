NODE_TYPES: frozenset[str] = frozenset(
    {"idea", "feature", "screen", "techStack", "prompt", "note"}
)

# Node types a task may be auto-linked to.
LINKABLE_NODE_TYPES: frozenset[str] = frozenset({"idea", "feature", "screen", "techStack"})

# Human-readable name field per node type.
NODE_NAME_FIELDS: dict[str, str] = {
    "idea": "appName",
    "feature": "featureName",
    "screen": "screenName",
    "techStack": "toolName",
    "prompt": "promptText",
    "note": "title",
}

TASK_STATUSES: tuple[str, ...] = ("todo", "in_progress", "done", "blocked")

TASK_STATUS_FALLBACK = "todo"

# Entity substitutes for the characters that delimit markup and URLs.
HTML_ESCAPES: dict[str, str] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}

# Metadata source marking project-level tasks that never auto-link.
DEPLOYMENT_PLAN_SOURCE = "deployment-plan"
