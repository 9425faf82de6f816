"""
Change inference for task-like text.

Task lines rarely state their change type or target path explicitly;
both are inferred from the wording, with a deterministic fallback path.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from anvil.models.plan import ChangeType


FILE_EXTENSIONS = (
    "py", "ts", "tsx", "js", "jsx", "json", "md", "yaml", "yml", "toml", "sql",
    "go", "rs", "java", "kt", "rb", "sh", "css", "scss", "html", "cfg", "ini", "txt",
)

_BACKTICK_RE = re.compile(r"`([^`\s]+)`")
_PATH_RE = re.compile(
    r"(?<![\w./:-])("
    r"(?:[\w.-]+/)+(?:[\w.-]*\w)?"
    r"|[\w-]+\.(?:" + "|".join(FILE_EXTENSIONS) + r")"
    r")(?![\w/])"
)

# First match wins; dependency rules come before the generic verbs they contain.
_TYPE_RULES: List[Tuple[re.Pattern, ChangeType]] = [
    (re.compile(r"\b(?:uninstall|remove|drop)\b.*\b(?:dependenc|package|librar)"), ChangeType.DEPENDENCY_REMOVE),
    (re.compile(r"\b(?:upgrade|bump|update)\b.*\b(?:dependenc|package|librar|version)"), ChangeType.DEPENDENCY_UPDATE),
    (re.compile(r"^(?:install|add)\b.*\b(?:dependenc|package|librar)|^install\b"), ChangeType.DEPENDENCY_ADD),
    (re.compile(r"\b(?:configure|configuration|config|environment variables?|settings)\b"), ChangeType.CONFIG_UPDATE),
    (re.compile(r"^(?:run|execute|deploy|migrate|seed)\b"), ChangeType.SCRIPT_EXECUTE),
    (re.compile(r"^(?:delete|remove|drop)\b"), ChangeType.FILE_DELETE),
    (re.compile(
        r"^(?:update|modify|refactor|fix|extend|change|edit|integrate|enhance|improve|rename|wire|connect)\b"
    ), ChangeType.FILE_UPDATE),
]


def infer_change_type(description: str) -> ChangeType:
    """Change type implied by a task description; file_create when nothing else fits."""
    text = re.sub(r"^\W+", "", description.strip().lower())
    for pattern, change_type in _TYPE_RULES:
        if pattern.search(text):
            return change_type
    return ChangeType.FILE_CREATE


def infer_change_path(description: str) -> Optional[str]:
    """A file path mentioned in a description: backticked first, then bare path-like tokens."""
    for match in _BACKTICK_RE.finditer(description):
        token = match.group(1)
        if ("/" in token or "." in token) and "://" not in token:
            return token
    match = _PATH_RE.search(description)
    if match:
        return match.group(1)
    return None


def slugify(value: str) -> str:
    """``"User Login (MVP)"`` -> ``"user-login-mvp"``."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "item"


def make_change(
    change_type: ChangeType,
    path: str,
    description: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """A change in persisted form; empty metadata is left out."""
    change: Dict[str, Any] = {"type": change_type.value, "path": path, "description": description}
    if metadata:
        change["metadata"] = metadata
    return change
