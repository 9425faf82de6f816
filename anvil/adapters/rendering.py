"""Jinja2 environment shared by the dialect renderers."""

from typing import Dict

from jinja2 import DictLoader, Environment, StrictUndefined

from anvil.adapters.markdown import collapse_whitespace, field_label


def comment_safe(value: object) -> str:
    """Text that cannot close an HTML comment early."""
    return str(value).replace("-->", "--&gt;")


def field_value(value: object) -> str:
    """A ``**Label**: value`` value that reads back unchanged; ``|`` would end a plain value."""
    text = str(value)
    if "|" in text and "`" not in text:
        return f"`{text}`"
    return text


def create_environment(templates: Dict[str, str]) -> Environment:
    """
    Build an environment over in-module templates.

    Block tags swallow their own line (``trim_blocks``/``lstrip_blocks``),
    so templates read like the markdown they produce.
    """
    env = Environment(
        loader=DictLoader(templates),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
        undefined=StrictUndefined,
    )
    env.filters["label"] = field_label
    env.filters["comment_safe"] = comment_safe
    env.filters["oneline"] = collapse_whitespace
    env.filters["field_value"] = field_value
    return env


def finish_document(text: str) -> str:
    """Normalize the end of a rendered document to a single newline."""
    return text.rstrip() + "\n"
