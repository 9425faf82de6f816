import json

from anvil.models.json_schema import generate_json_schema, get_json_schema_string
from anvil.models.plan import SCHEMA_VERSION


def test_schema_metadata():
    schema = generate_json_schema()

    assert schema["$schema"] == "https://json-schema.org/draft/2020-12/schema"
    assert schema["$id"] == f"https://anvil.dev/schemas/aps/{SCHEMA_VERSION}/plan.json"
    assert schema["title"] == "Anvil Plan Specification (APS)"
    assert schema["version"] == SCHEMA_VERSION


def test_plan_is_closed_with_required_fields():
    schema = generate_json_schema()

    assert schema["type"] == "object"
    assert schema["additionalProperties"] is False
    assert set(schema["required"]) == {
        "id", "hash", "intent", "schema_version", "proposed_changes", "provenance", "validations",
    }
    assert schema["properties"]["intent"]["minLength"] == 10
    assert schema["properties"]["intent"]["maxLength"] == 500
    assert schema["properties"]["hash"]["pattern"] == "^[a-f0-9]{64}$"


def test_optional_fields_are_not_nullable():
    schema = generate_json_schema()

    tags = schema["properties"]["tags"]
    assert tags["type"] == "array"
    assert tags["items"] == {"type": "string"}
    assert "anyOf" not in tags and "default" not in tags
    assert schema["properties"]["approval"]["$ref"] == "#/$defs/Approval"

    author = schema["$defs"]["Provenance"]["properties"]["author"]
    assert author["type"] == "string"
    approved_at = schema["$defs"]["Approval"]["properties"]["approved_at"]
    assert approved_at["type"] == "string"
    assert "pattern" in approved_at

    for definition in schema["$defs"].values():
        for prop in definition.get("properties", {}).values():
            assert {"type": "null"} not in prop.get("anyOf", [])


def test_schema_string():
    compact = get_json_schema_string(pretty=False)
    assert "\n" not in compact
    assert json.loads(compact) == generate_json_schema()
    assert get_json_schema_string().startswith("{\n  ")
