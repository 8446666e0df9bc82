"""
Tests for the plan schema contract and its rendered JSON Schema.
"""

import json

from egym_planner.planner.profile import EQUIPMENT, GOALS, INJURIES
from egym_planner.planner.prompts import build_developer_prompt
from egym_planner.planner.schema import (
    MODALITIES,
    SCHEMA_ID,
    WEEKDAYS,
    plan_json_schema,
    plan_json_schema_text,
)


def _objects(node):
    """Yield every object-typed sub-schema."""
    if isinstance(node, dict):
        if node.get("type") == "object":
            yield node
        for value in node.values():
            yield from _objects(value)
    elif isinstance(node, list):
        for item in node:
            yield from _objects(item)


def _resolve(schema, node):
    ref = node.get("$ref")
    if ref is None:
        return node
    return schema["$defs"][ref.rsplit("/", 1)[-1]]


def test_schema_identity():
    schema = plan_json_schema()

    assert schema["$id"] == SCHEMA_ID
    assert schema["$schema"].endswith("2020-12/schema")
    assert set(schema["required"]) == {"caution", "profile", "week"}


def test_every_object_forbids_additional_properties():
    objects = list(_objects(plan_json_schema()))

    assert len(objects) >= 6
    for obj in objects:
        assert obj.get("additionalProperties") is False, obj.get("title")


def test_week_has_exactly_seven_days():
    week = plan_json_schema()["properties"]["week"]

    assert week["minItems"] == 7
    assert week["maxItems"] == 7


def test_enums_match_closed_sets():
    schema = plan_json_schema()
    profile = _resolve(schema, schema["properties"]["profile"])
    props = profile["properties"]

    assert props["goal"]["enum"] == list(GOALS)
    assert props["injuries"]["items"]["enum"] == list(INJURIES)
    assert props["equipment"]["items"]["enum"] == list(EQUIPMENT)
    assert props["injuries"]["uniqueItems"] is True
    assert "skillLevel" in props and "timePerDayMinutes" in props

    day = _resolve(schema, schema["properties"]["week"]["items"])
    assert day["properties"]["day"]["enum"] == list(WEEKDAYS)
    exercise = schema["$defs"]["Exercise"]
    assert exercise["properties"]["modality"]["enum"] == list(MODALITIES)


def test_schema_copy_is_fresh():
    first = plan_json_schema()
    first["properties"].clear()

    assert plan_json_schema()["properties"]


def test_prompt_embeds_the_same_schema():
    prompt = build_developer_prompt()
    text = plan_json_schema_text()

    assert text in prompt
    assert json.loads(text) == plan_json_schema()
