"""
JSON Schema export of the plan document.

External tools that validate plans without Python use this schema. It is
generated from the pydantic models, then adjusted so that optional fields
are optional but not nullable, matching how documents are validated.
"""

import json
from typing import Any, Dict

from anvil.models.plan import SCHEMA_VERSION, APSPlan


JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
SCHEMA_ID = "https://anvil.dev/schemas/aps/{version}/plan.json"
SCHEMA_TITLE = "Anvil Plan Specification (APS)"
SCHEMA_DESCRIPTION = "Deterministic, hash-verified plan document for development automation"

_NULL_BRANCH = {"type": "null"}


def _without_null(prop: Dict[str, Any]) -> Dict[str, Any]:
    branches = [branch for branch in prop.get("anyOf", []) if branch != _NULL_BRANCH]
    if len(branches) == len(prop.get("anyOf", [])):
        return prop
    prop = {key: value for key, value in prop.items() if key not in ("anyOf", "default")}
    if len(branches) == 1:
        return {**branches[0], **prop}
    return {"anyOf": branches, **prop}


def _strip_optional_nulls(schema: Dict[str, Any]) -> None:
    required = set(schema.get("required", []))
    properties = schema.get("properties", {})
    for name, prop in properties.items():
        if name not in required:
            properties[name] = _without_null(prop)


def generate_json_schema() -> Dict[str, Any]:
    """
    Build the JSON Schema for a plan document.

    Returns:
        A schema dict with ``$schema``, ``$id``, ``title``, ``description``
        and ``version`` set, and every record definition under ``$defs``
    """
    schema = APSPlan.model_json_schema(mode="validation")
    _strip_optional_nulls(schema)
    for definition in schema.get("$defs", {}).values():
        _strip_optional_nulls(definition)

    return {
        "$schema": JSON_SCHEMA_DIALECT,
        "$id": SCHEMA_ID.format(version=SCHEMA_VERSION),
        **schema,
        "title": SCHEMA_TITLE,
        "description": SCHEMA_DESCRIPTION,
        "version": SCHEMA_VERSION,
    }


def get_json_schema_string(pretty: bool = True) -> str:
    schema = generate_json_schema()
    if pretty:
        return json.dumps(schema, indent=2, ensure_ascii=False)
    return json.dumps(schema, separators=(",", ":"), ensure_ascii=False)
