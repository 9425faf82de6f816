"""
Plan annotations embedded in markdown documents.

Two HTML comments travel with a rendered document:

* ``<!-- aps:document {...} -->`` at the top carries the plan fields a
  dialect has no place for (id, provenance, validations, approval,
  executions, tags and the caller-supplied ``metadata.context``) so that
  a later parse reproduces the same plan.
* ``<!-- aps:evidence ... -->`` at the end shows the latest evidence
  record to a human reader: gate status, timestamp, plan hash and one
  line per check.

Both are stripped before section parsing.
"""

import json
import re
from typing import Any, Dict, List, Optional

from anvil.adapters.rendering import create_environment
from anvil.engine.hashing import canonicalize
from anvil.models.plan import APSPlan, Evidence


HEADER_FIELDS = ("id", "provenance", "validations", "approval", "executions", "tags")
# Carried under its own header key; restored into metadata["context"] on parse.
CONTEXT_KEY = "context"

HEADER_RE = re.compile(r"^[ \t]*<!--[ \t]*aps:document[ \t]+(.*?)[ \t]*-->[ \t]*\n?", re.MULTILINE | re.DOTALL)
EVIDENCE_RE = re.compile(r"\n?[ \t]*<!--[ \t]*aps:evidence\b(.*?)-->[ \t]*\n?", re.DOTALL)
CHECK_LINE_RE = re.compile(r"^-\s+\[(PASS|FAIL|SKIP|WARN)\]\s+(.+?)(?::\s+(.*))?$")

STATUS_LABELS = {"passed": "PASS", "failed": "FAIL", "skipped": "SKIP", "warning": "WARN"}
LABEL_STATUSES = {label: status for status, label in STATUS_LABELS.items()}

EVIDENCE_TEMPLATE = """<!-- aps:evidence
APS Evidence
Gate Status: {{ evidence.overall_status | upper }}
Gate Version: {{ evidence.gate_version | comment_safe | oneline }}
Timestamp: {{ evidence.timestamp }}
Plan Hash: {{ plan_hash }}
{% if evidence.summary %}
Summary: {{ evidence.summary | comment_safe | oneline }}
{% endif %}
Checks:
{% for check in evidence.checks %}
- [{{ status_labels[check.status] }}] {{ check.check | comment_safe | oneline }}{% if check.message %}: {{ check.message | comment_safe | oneline }}{% endif %}

{% endfor %}
-->
"""

_env = create_environment({"evidence": EVIDENCE_TEMPLATE})


def render_plan_header(plan: APSPlan) -> str:
    """The ``aps:document`` comment for ``plan``."""
    document = plan.to_document()
    payload = {key: document[key] for key in HEADER_FIELDS if key in document}
    context = (plan.metadata or {}).get(CONTEXT_KEY)
    if isinstance(context, dict) and context:
        payload[CONTEXT_KEY] = context
    # ">" only occurs inside JSON strings; escaping it keeps "-->" out of the comment
    encoded = canonicalize(payload).replace(">", "\\u003e")
    return f"<!-- aps:document {encoded} -->"


def read_plan_header(text: str) -> Optional[Dict[str, Any]]:
    """
    Decode the ``aps:document`` comment, if present.

    Raises:
        ValueError: If the comment exists but does not hold a JSON object
    """
    match = HEADER_RE.search(text)
    if match is None:
        return None
    payload = json.loads(match.group(1))
    if not isinstance(payload, dict):
        raise ValueError("aps:document header is not a JSON object")
    return {key: payload[key] for key in (*HEADER_FIELDS, CONTEXT_KEY) if key in payload}


def render_evidence_annotation(evidence: Evidence, plan_hash: str) -> str:
    """The trailing ``aps:evidence`` comment for one evidence record."""
    return _env.get_template("evidence").render(
        evidence=evidence.model_dump(mode="json"),
        plan_hash=plan_hash,
        status_labels=STATUS_LABELS,
    ).rstrip("\n")


def parse_evidence_annotation(text: str) -> Optional[Dict[str, Any]]:
    """
    Read the last ``aps:evidence`` comment back into a dict.

    Returns:
        Dict with overall_status, gate_version, timestamp, plan_hash,
        summary and checks, or None when there is no annotation
    """
    matches = list(EVIDENCE_RE.finditer(text))
    if not matches:
        return None

    fields: Dict[str, str] = {}
    checks: List[Dict[str, Optional[str]]] = []
    for line in matches[-1].group(1).split("\n"):
        line = line.strip()
        check = CHECK_LINE_RE.match(line)
        if check:
            checks.append({
                "check": check.group(2),
                "status": LABEL_STATUSES[check.group(1)],
                "message": check.group(3),
            })
            continue
        key, separator, value = line.partition(":")
        if separator and value.strip():
            fields[key.strip().lower().replace(" ", "_")] = value.strip()

    return {
        "overall_status": fields.get("gate_status", "").lower() or None,
        "gate_version": fields.get("gate_version"),
        "timestamp": fields.get("timestamp"),
        "plan_hash": fields.get("plan_hash"),
        "summary": fields.get("summary"),
        "checks": checks,
    }


def strip_annotations(text: str) -> str:
    """Remove the ``aps:document`` and ``aps:evidence`` comments."""
    text = HEADER_RE.sub("", text)
    return EVIDENCE_RE.sub("\n", text)
