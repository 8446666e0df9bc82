"""
Tests for response sanitizing and plan validation.
"""

import json

import pytest
from conftest import make_exercise, make_plan

from egym_planner.errors import InvalidPlanFormat, SchemaViolation
from egym_planner.planner.profile import UserProfile, normalize_profile
from egym_planner.planner.sanitize import (
    check_plan_invariants,
    parse_plan,
    strip_code_fences,
    validate_plan,
)
from egym_planner.planner.schema import WeeklyPlan


def _workout(plan: dict) -> dict:
    return plan["week"][0]


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}\n```\n') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'
    assert strip_code_fences(None) == ""


def test_fenced_json_is_accepted(plan_dict):
    raw = "```json\n" + json.dumps(plan_dict, indent=2) + "\n```"

    plan = parse_plan(raw)

    assert isinstance(plan, WeeklyPlan)
    assert [d.day for d in plan.week] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def test_non_json_is_invalid_format():
    with pytest.raises(InvalidPlanFormat):
        parse_plan("Sure! Here is your plan: Monday push-ups")


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p.update(comment="extra"),
        lambda p: p["profile"].update(age=40),
        lambda p: p["week"][1].update(mood="happy"),
        lambda p: p["week"][0]["warmup"].update(intensity="easy"),
        lambda p: p["week"][0]["warmup"]["drills"][0].update(sets=2),
        lambda p: p["week"][0]["exercises"][0].update(video_url="http://x"),
    ],
)
def test_undeclared_fields_are_rejected(plan_dict, mutate):
    mutate(plan_dict)

    with pytest.raises(SchemaViolation):
        parse_plan(json.dumps(plan_dict))


@pytest.mark.parametrize(
    "field, value",
    [
        ("sets", 0),
        ("sets", "3"),
        ("modality", "yoga"),
        ("equipment", ["kettlebell"]),
        ("muscle_groups", []),
        ("form_tips", []),
        ("rest_seconds", 301),
        ("reps_or_time", "   "),
    ],
)
def test_single_exercise_field_violation(plan_dict, field, value):
    _workout(plan_dict)["exercises"][0][field] = value

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(plan_dict)
    assert any(field in e for e in exc.value.errors)


def test_week_must_have_seven_days(plan_dict):
    plan_dict["week"].pop()

    with pytest.raises(SchemaViolation):
        validate_plan(plan_dict)


def test_days_must_be_in_order(plan_dict):
    week = plan_dict["week"]
    week[0], week[1] = week[1], week[0]

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(plan_dict)
    assert any("in order" in e for e in exc.value.errors)


def test_caution_is_required(plan_dict):
    plan_dict["caution"] = "Careful"

    with pytest.raises(SchemaViolation):
        validate_plan(plan_dict)


def test_budget_is_enforced(plan_dict):
    _workout(plan_dict)["estimated_minutes"] = 45

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(plan_dict)
    assert any("budget" in e for e in exc.value.errors)


def test_warmup_and_cooldown_fit_inside_the_day(plan_dict):
    _workout(plan_dict)["estimated_minutes"] = 20
    _workout(plan_dict)["warmup"]["minutes"] = 15
    _workout(plan_dict)["cooldown"]["minutes"] = 10

    with pytest.raises(SchemaViolation):
        validate_plan(plan_dict)


def test_rest_day_has_no_training_blocks(plan_dict):
    plan_dict["week"][1]["exercises"] = [make_exercise()]

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(plan_dict)
    assert any("rest day must not include exercises" in e for e in exc.value.errors)


def test_rest_day_needs_notes(plan_dict):
    del plan_dict["week"][1]["notes"]

    with pytest.raises(SchemaViolation):
        validate_plan(plan_dict)


def test_workout_day_needs_exercises(plan_dict):
    _workout(plan_dict)["exercises"] = []

    with pytest.raises(SchemaViolation):
        validate_plan(plan_dict)


def test_workout_day_notes_must_not_claim_rest(plan_dict):
    _workout(plan_dict)["notes"] = "Rest day, take it easy."

    with pytest.raises(SchemaViolation):
        validate_plan(plan_dict)


def test_bodyweight_profile_plan_uses_no_equipment(base_profile):
    """Strength/beginner with no equipment only validates with bodyweight exercises."""
    profile = normalize_profile(base_profile)
    plan = validate_plan(make_plan(base_profile), profile)

    for day in plan.week:
        for exercise in day.exercises or []:
            assert exercise.equipment in ([], ["none"])

    bad = make_plan(base_profile)
    _workout(bad)["exercises"][0]["equipment"] = ["dumbbells"]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan(bad, profile)
    assert any("not available" in e for e in exc.value.errors)


def test_available_equipment_is_allowed(base_profile):
    base_profile["equipment"] = ["dumbbells", "chair"]
    profile = normalize_profile(base_profile)
    data = make_plan(base_profile)
    _workout(data)["exercises"][0]["equipment"] = ["dumbbells"]

    validate_plan(data, profile)

    _workout(data)["exercises"][0]["equipment"] = ["none", "dumbbells"]
    with pytest.raises(SchemaViolation):
        validate_plan(data, profile)


def test_knee_loading_exercise_needs_substitutions(base_profile):
    base_profile["injuries"] = ["knee"]
    profile = normalize_profile(base_profile)
    data = make_plan(base_profile)
    _workout(data)["exercises"] = [
        make_exercise(name="Bodyweight squat", muscle_groups=["Quads", "glutes"])
    ]

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(data, profile)
    assert any("loads the knee" in e for e in exc.value.errors)

    _workout(data)["exercises"][0]["substitutions"] = ["Glute bridge", "Seated leg extension"]
    plan = validate_plan(data, profile)
    assert plan.week[0].exercises[0].substitutions


def test_echoed_profile_must_match(base_profile):
    profile = normalize_profile(base_profile)
    data = make_plan({**base_profile, "goal": "tone"})

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(data, profile)
    assert any(e.startswith("profile") for e in exc.value.errors)


def test_echoed_profile_order_does_not_matter(base_profile):
    base_profile["equipment"] = ["chair", "yoga-mat"]
    profile = normalize_profile(base_profile)

    validate_plan(make_plan({**base_profile, "equipment": ["yoga-mat", "chair"]}), profile)


def test_validation_is_idempotent(plan_dict):
    profile = UserProfile.model_validate(plan_dict["profile"])
    plan = validate_plan(plan_dict, profile)

    assert validate_plan(plan.to_document(), profile) == plan
    assert check_plan_invariants(plan, profile) == []


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p["week"][0].update(estimated_minutes=4),
        lambda p: p["week"][0].update(estimated_minutes=181),
        lambda p: p["week"][0].update(day="Monday"),
        lambda p: p["week"][0].update(day_type="active"),
        lambda p: p["week"][0].pop("target_focus"),
        lambda p: p["week"][0]["warmup"].update(minutes=61),
        lambda p: p["week"][0]["cooldown"].update(minutes=-1),
        lambda p: p["week"][0]["warmup"].pop("drills"),
        lambda p: p["week"][0]["warmup"]["drills"][0].update(name="  "),
        lambda p: p["profile"].update(timePerDayMinutes=200),
        lambda p: p["profile"].update(injuries=["ankle"]),
        lambda p: p["profile"].update(skillLevel="pro"),
        lambda p: p["week"][0]["exercises"][0].pop("form_tips"),
        lambda p: p.pop("caution"),
    ],
    ids=[
        "day-minutes-low",
        "day-minutes-high",
        "day-name",
        "day-type",
        "day-missing-focus",
        "warmup-minutes-high",
        "cooldown-minutes-negative",
        "block-missing-drills",
        "drill-blank-name",
        "profile-minutes",
        "profile-injury",
        "profile-skill",
        "exercise-missing-form-tips",
        "missing-caution",
    ],
)
def test_single_field_violation_is_rejected(plan_dict, mutate):
    mutate(plan_dict)

    with pytest.raises(SchemaViolation):
        parse_plan(json.dumps(plan_dict))


def test_deeply_nested_output_is_invalid_format():
    with pytest.raises(InvalidPlanFormat):
        parse_plan("[" * 100000 + "]" * 100000)


def test_non_text_output_is_invalid_format():
    with pytest.raises(InvalidPlanFormat):
        parse_plan(["not", "a", "string"])


@pytest.mark.parametrize(
    "groups, loads",
    [
        (["lateral deltoid"], False),
        (["lats"], True),
        (["Latissimus dorsi"], True),
        (["lower back"], True),
        (["chest", "triceps"], False),
    ],
)
def test_injury_terms_match_whole_words(base_profile, groups, loads):
    base_profile["injuries"] = ["back"]
    profile = normalize_profile(base_profile)
    data = make_plan(base_profile)
    _workout(data)["exercises"] = [make_exercise(name="Row", muscle_groups=groups)]

    if loads:
        with pytest.raises(SchemaViolation):
            validate_plan(data, profile)
    else:
        validate_plan(data, profile)


def test_plural_muscle_groups_still_load_the_knee(base_profile):
    base_profile["injuries"] = ["knee"]
    profile = normalize_profile(base_profile)
    data = make_plan(base_profile)
    _workout(data)["exercises"] = [make_exercise(name="Lunge", muscle_groups=["hamstrings"])]

    with pytest.raises(SchemaViolation) as exc:
        validate_plan(data, profile)
    assert any("loads the knee" in e for e in exc.value.errors)
