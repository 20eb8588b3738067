"""Tests for the M value calculator. No database needed."""
import math

import pytest

from compliance.calculator import (
    CalculationResult,
    LimitOutcome,
    PackagingParameters,
    RegulatoryLimit,
    Substance,
    ValidationError,
    classify,
    compute_m_value,
    evaluate,
    parse_sml_value,
    split_sml_text,
)

# The default scenario on the calculation page.
DEFAULT_PARAMS = PackagingParameters(surface_area=600, thickness=0.1, density=1, food_mass=1000)


def limit(sml, name="EU 10/2011", regulation_id="1"):
    return RegulatoryLimit(regulation_id=regulation_id, display_name=name, sml_value=sml)


# ==================== compute_m_value ====================


@pytest.mark.parametrize(
    "area, thickness, density, food_mass, q",
    [
        (600, 0.1, 1, 1000, 5),
        (12.5, 0.003, 0.92, 250, 17.3),
        (1e4, 2.5, 7.8, 3.3, 1e-6),
        (0.01, 1e-5, 1.4, 1e5, 1234.5),
    ],
)
def test_m_value_matches_formula(area, thickness, density, food_mass, q):
    params = PackagingParameters(area, thickness, density, food_mass)
    expected = (q * area * thickness * density) / food_mass
    assert math.isclose(compute_m_value(params, q), expected, rel_tol=1e-9)


def test_m_value_concrete_scenario():
    assert compute_m_value(DEFAULT_PARAMS, 5) == pytest.approx(0.3)


def test_m_value_is_deterministic():
    params = PackagingParameters(123.4, 0.07, 1.3, 777)
    assert compute_m_value(params, 2.2) == compute_m_value(params, 2.2)


@pytest.mark.parametrize("field", ["surface_area", "thickness", "density", "food_mass"])
@pytest.mark.parametrize("bad_value", [0, -1.5, float("nan"), float("inf")])
def test_non_positive_parameters_are_rejected(field, bad_value):
    values = dict(surface_area=600, thickness=0.1, density=1, food_mass=1000)
    values[field] = bad_value
    params = PackagingParameters(**values)

    with pytest.raises(ValidationError) as excinfo:
        compute_m_value(params, 5)
    assert excinfo.value.field == field


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        PackagingParameters(600, 0.1, 1, 0).validate()


# ==================== classify ====================


def test_equal_to_sml_fails():
    m_value = compute_m_value(DEFAULT_PARAMS, 5)
    outcome = classify(m_value, limit(m_value))
    assert outcome.passed is False
    assert outcome.status == "fail"


@pytest.mark.parametrize("epsilon", [1e-12, 1e-6, 0.2, 100])
def test_just_above_sml_passes(epsilon):
    m_value = 0.3
    assert classify(m_value, limit(m_value + epsilon)).passed is True


@pytest.mark.parametrize("sml", [None, 0, -2, float("nan"), float("inf")])
@pytest.mark.parametrize("m_value", [0.0, 0.3, 1e9])
def test_missing_or_invalid_sml_is_unknown(sml, m_value):
    outcome = classify(m_value, limit(sml))
    assert outcome.passed is None
    assert outcome.status == "unknown"


def test_classify_keeps_the_limit():
    sml_limit = limit(0.5)
    outcome = classify(0.3, sml_limit)
    assert outcome == LimitOutcome(limit=sml_limit, passed=True)
    assert outcome.limit is sml_limit


def test_concrete_scenario_outcomes():
    m_value = compute_m_value(DEFAULT_PARAMS, 5)
    assert classify(m_value, limit(0.5)).passed is True
    assert classify(m_value, limit(0.3)).passed is False
    assert classify(m_value, limit(None)).passed is None


# ==================== evaluate ====================


def test_evaluate_preserves_substance_and_limit_order():
    limits = (limit(10, "B", "b"), limit(None, "A", "a"), limit(0.001, "C", "c"))
    substances = [
        Substance(identifier="s3", name="Third", contamination=3, applicable_limits=limits),
        Substance(identifier="s1", name="First", contamination=1),
        Substance(identifier="s2", name="Second", contamination=2, applicable_limits=limits[::-1]),
    ]

    results = evaluate(DEFAULT_PARAMS, substances)

    assert [r.substance.identifier for r in results] == ["s3", "s1", "s2"]
    assert [o.limit.regulation_id for o in results[0].limit_outcomes] == ["b", "a", "c"]
    assert [o.limit.regulation_id for o in results[2].limit_outcomes] == ["c", "a", "b"]
    assert [o.passed for o in results[0].limit_outcomes] == [True, None, False]


def test_substance_without_limits_gets_empty_outcome_list():
    (result,) = evaluate(
        DEFAULT_PARAMS, [Substance(identifier="x", name="Lonely", contamination=5)]
    )
    assert result.m_value == pytest.approx(0.3)
    assert result.limit_outcomes == []
    assert result.overall_status == "no_data"


def test_invalid_parameters_reject_whole_batch():
    params = PackagingParameters(surface_area=600, thickness=0.1, density=1, food_mass=0)
    substances = [
        Substance(identifier=str(i), name="", contamination=i, applicable_limits=(limit(1),))
        for i in range(3)
    ]
    with pytest.raises(ValidationError):
        evaluate(params, substances)


def test_invalid_parameters_rejected_even_for_empty_batch():
    with pytest.raises(ValidationError):
        evaluate(PackagingParameters(600, 0.1, -1, 1000), [])


def test_display_fields_do_not_affect_result():
    substances = [
        Substance(identifier="a", name="", contamination=5, cas_number=None),
        Substance(identifier="b", name="Named", contamination=5, cas_number="not-a-cas"),
    ]
    first, second = evaluate(DEFAULT_PARAMS, substances)
    assert first.m_value == second.m_value


def test_evaluate_does_not_mutate_inputs():
    limits = (limit(0.5),)
    substance = Substance(identifier="a", name="BPA", contamination=5, applicable_limits=limits)
    evaluate(DEFAULT_PARAMS, [substance])
    assert substance.applicable_limits is limits
    assert DEFAULT_PARAMS == PackagingParameters(600, 0.1, 1, 1000)


@pytest.mark.parametrize(
    "passed_values, expected",
    [
        ([True, None, False], "failed"),
        ([True, None], "passed"),
        ([None, None], "no_data"),
        ([], "no_data"),
    ],
)
def test_overall_status(passed_values, expected):
    substance = Substance(identifier="a", name="", contamination=1)
    outcomes = [LimitOutcome(limit=limit(1), passed=value) for value in passed_values]
    result = CalculationResult(substance=substance, m_value=0.1, limit_outcomes=outcomes)
    assert result.overall_status == expected


# ==================== calculation cases ====================


def test_case_two_uses_conventional_area_and_food_mass():
    params = PackagingParameters.for_case(2, surface_area=None, thickness=0.2, density=0.9, food_mass=None)
    assert params == PackagingParameters(600.0, 0.2, 0.9, 1000.0)


def test_case_one_keeps_user_values():
    params = PackagingParameters.for_case(1, surface_area=50, thickness=0.2, density=0.9, food_mass=200)
    assert params == PackagingParameters(50, 0.2, 0.9, 200)


def test_unknown_case_is_rejected():
    with pytest.raises(ValueError):
        PackagingParameters.for_case(3, 1, 1, 1, 1)


# ==================== SML text parsing ====================


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0.05", 0.05),
        ("60 mg/kg", 60.0),
        ("  1.5e-2 ", 0.015),
        (".5", 0.5),
        (0.6, 0.6),
        (3, 3.0),
        ("", None),
        ("ND", None),
        (None, None),
        (float("nan"), None),
        ("<0.05", 0.05),
        ("<= 0.1 mg/kg", 0.1),
        ("≤1e-3", 0.001),
        ("> 5", None),
    ],
)
def test_parse_sml_value(raw, expected):
    assert parse_sml_value(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0.05 mg/kg", ("0.05", "mg/kg")),
        ("60", ("60", "mg/kg")),
        ("10 µg/kg", ("10", "µg/kg")),
        ("1.5e-2 mg/kg", ("1.5e-2", "mg/kg")),
        ("2E3", ("2E3", "mg/kg")),
        ("<0.05 mg/kg", ("<0.05", "mg/kg")),
        ("≤ 1 mg/kg", ("≤1", "mg/kg")),
        (0.6, ("0.6", "mg/kg")),
        ("", ("", "mg/kg")),
        (None, ("", "mg/kg")),
    ],
)
def test_split_sml_text(raw, expected):
    assert split_sml_text(raw) == expected


@pytest.mark.parametrize(
    "text, sml",
    [
        ("1.5e-2 mg/kg", 0.015),
        ("<0.05 mg/kg", 0.05),
        ("60", 60.0),
    ],
)
def test_split_sml_value_parses_back_to_the_same_limit(text, sml):
    value, _ = split_sml_text(text)
    assert parse_sml_value(value) == pytest.approx(sml)


def test_exponent_sml_is_not_loosened():
    # 0.3 mg/kg against 1.5e-2 mg/kg, not against 1.5 mg/kg.
    value, _ = split_sml_text("1.5e-2 mg/kg")
    m = compute_m_value(DEFAULT_PARAMS, 5)
    assert classify(m, limit(parse_sml_value(value))).passed is False
