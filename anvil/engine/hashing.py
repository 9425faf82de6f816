"""
Canonicalization and hashing.

``canonicalize`` turns any JSON-like structure into one stable string:
object keys sorted at every level, list order preserved, one encoding
per scalar type. The plan hash is a SHA-256 digest of that string.
"""

import hashlib
import hmac
import json
import math
import os
import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Union

from pydantic import BaseModel

from anvil.engine.errors import CanonicalizationError
from anvil.models.plan import APSPlan, HASH_PATTERN, PLAN_ID_PATTERN


PLAN_ID_PREFIX = "aps-"
PLAN_ID_RANDOM_BYTES = 4

# Fields left out of the plan digest: the digest itself and the append-only log.
HASH_EXCLUDED_FIELDS = ("hash", "evidence")

_PLAN_ID_RE = re.compile(PLAN_ID_PATTERN)
_HASH_RE = re.compile(HASH_PATTERN)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond // 1000:03d}Z"


def canonicalize(value: Any) -> str:
    """
    Serialize a value to its canonical JSON text.

    Args:
        value: dicts, lists, tuples, strings, numbers, booleans, None,
            dates, datetimes, enums or pydantic models, nested freely.

    Returns:
        The canonical string. The input is never modified.

    Raises:
        CanonicalizationError: If the value (or anything nested in it)
            has no canonical form.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return canonicalize(value.value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise CanonicalizationError(f"Cannot canonicalize non-finite number: {value}")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=True)
    if isinstance(value, datetime):
        return json.dumps(format_timestamp(value))
    if isinstance(value, date):
        return json.dumps(value.isoformat())
    if isinstance(value, BaseModel):
        return canonicalize(value.model_dump(mode="json", exclude_none=True))
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Cannot canonicalize mapping key of type {type(key).__name__}: {key!r}"
                )
        members = [
            f"{json.dumps(key, ensure_ascii=True)}:{canonicalize(value[key])}"
            for key in sorted(value)
        ]
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(item) for item in value) + "]"
    raise CanonicalizationError(f"Cannot canonicalize value of type {type(value).__name__}")


def generate_hash(data: Any) -> str:
    """SHA-256 hex digest of ``canonicalize(data)``."""
    return hashlib.sha256(canonicalize(data).encode("utf-8")).hexdigest()


def verify_hash(data: Any, expected_hash: str) -> bool:
    """Recompute the digest of ``data`` and compare it to ``expected_hash``."""
    if not isinstance(expected_hash, str):
        return False
    return hmac.compare_digest(generate_hash(data), expected_hash)


def plan_hash_payload(plan: Union[APSPlan, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    The part of a plan covered by its hash.

    Args:
        plan: A plan model or its persisted dict form.

    Returns:
        A new dict without the ``hash`` and ``evidence`` fields.
    """
    document = plan.to_document() if isinstance(plan, APSPlan) else plan
    return {key: value for key, value in document.items() if key not in HASH_EXCLUDED_FIELDS}


def compute_plan_hash(plan: Union[APSPlan, Mapping[str, Any]]) -> str:
    """Digest of a plan's canonical form, excluding ``hash`` and ``evidence``."""
    return generate_hash(plan_hash_payload(plan))


def generate_plan_id(randbytes: Callable[[int], bytes] = os.urandom) -> str:
    """
    Generate a fresh plan id.

    Args:
        randbytes: Byte source, overridable for deterministic tests.

    Returns:
        ``aps-`` followed by 8 lowercase hex characters.
    """
    return PLAN_ID_PREFIX + randbytes(PLAN_ID_RANDOM_BYTES).hex()


def is_valid_plan_id(value: Any) -> bool:
    return isinstance(value, str) and _PLAN_ID_RE.fullmatch(value) is not None


def is_valid_hash(value: Any) -> bool:
    return isinstance(value, str) and _HASH_RE.fullmatch(value) is not None
