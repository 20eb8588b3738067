"""
Worst-case migration calculator used on the "Calculation" page.

The whole thing boils down to one formula:

    M = (Q × A × Lp × D) / F

and a comparison of M against the SML of every regulation a substance is
listed in.  This module does not import Django on purpose, so it can be
used (and tested) without a database.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

DEFAULT_SML_UNIT = "mg/kg"

# Case 2 is the EU conventional scenario: 6 dm² of packaging per 1 kg of food.
CONVENTIONAL_SURFACE_AREA = 600.0
CONVENTIONAL_FOOD_MASS = 1000.0

# Decimal number with an optional exponent, same idea as JavaScript's parseFloat.
# An upper-bound qualifier ("<0.05", "≤ 1") may precede it.
_SML_NUMBER = re.compile(
    r"(?P<qualifier>(?:<=|≤|<)\s*)?(?P<number>[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)"
)


class ValidationError(ValueError):
    """Raised when the packaging parameters cannot be used for a calculation."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class PackagingParameters:
    """Food-contact scenario shared by every substance in one calculation."""

    surface_area: float  # A, cm²
    thickness: float  # Lp, cm
    density: float  # D, g/cm³
    food_mass: float  # F, g

    @classmethod
    def for_case(
        cls,
        case: int,
        surface_area: float,
        thickness: float,
        density: float,
        food_mass: float,
    ) -> "PackagingParameters":
        """
        Build parameters for calculation case 1 (everything user supplied)
        or case 2 (A and F fixed to the conventional 600 cm² / 1000 g).
        """
        if case == 1:
            return cls(surface_area, thickness, density, food_mass)
        if case == 2:
            return cls(CONVENTIONAL_SURFACE_AREA, thickness, density, CONVENTIONAL_FOOD_MASS)
        raise ValueError(f"Unknown calculation case: {case!r}")

    def validate(self) -> None:
        for name in ("surface_area", "thickness", "density", "food_mass"):
            value = getattr(self, name)
            if not _is_positive_number(value):
                raise ValidationError(
                    f"{name} must be a positive number, got {value!r}", field=name
                )


@dataclass(frozen=True)
class RegulatoryLimit:
    """One regulation's SML for a substance. ``sml_value=None`` means not known."""

    regulation_id: str
    display_name: str
    sml_value: Optional[float] = None
    sml_unit: str = DEFAULT_SML_UNIT


@dataclass(frozen=True)
class Substance:
    identifier: str
    name: str
    contamination: float  # Q, mg/kg
    cas_number: Optional[str] = None
    applicable_limits: tuple[RegulatoryLimit, ...] = ()


@dataclass(frozen=True)
class LimitOutcome:
    """``passed`` is tri-state: True, False or None for "unknown"."""

    limit: RegulatoryLimit
    passed: Optional[bool]

    @property
    def status(self) -> str:
        if self.passed is None:
            return "unknown"
        return "pass" if self.passed else "fail"


@dataclass(frozen=True)
class CalculationResult:
    substance: Substance
    m_value: float
    limit_outcomes: list[LimitOutcome] = field(default_factory=list)

    @property
    def overall_status(self) -> str:
        """Summary badge: any failure wins, then any pass, otherwise no data."""
        if any(outcome.passed is False for outcome in self.limit_outcomes):
            return "failed"
        if any(outcome.passed is True for outcome in self.limit_outcomes):
            return "passed"
        return "no_data"


def _is_positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def compute_m_value(params: PackagingParameters, contamination: float) -> float:
    """Return M = (Q × A × Lp × D) / F, unrounded."""
    params.validate()
    return (
        contamination * params.surface_area * params.thickness * params.density
    ) / params.food_mass


def classify(m_value: float, limit: RegulatoryLimit) -> LimitOutcome:
    """
    Compare M against the SML of one regulation.

    The comparison is strict: M equal to the SML counts as a failure.
    A missing or non-positive SML gives an "unknown" outcome.
    """
    if not _is_positive_number(limit.sml_value):
        return LimitOutcome(limit=limit, passed=None)
    return LimitOutcome(limit=limit, passed=m_value < limit.sml_value)


def evaluate(
    params: PackagingParameters, substances: Iterable[Substance]
) -> list[CalculationResult]:
    """
    Run the calculation for a batch of substances, keeping input order.

    Parameters are validated once up front: if they are invalid the whole
    batch is rejected and nothing is returned.
    """
    params.validate()

    results: list[CalculationResult] = []
    for substance in substances:
        m_value = compute_m_value(params, substance.contamination)
        outcomes = [classify(m_value, limit) for limit in substance.applicable_limits]
        results.append(
            CalculationResult(substance=substance, m_value=m_value, limit_outcomes=outcomes)
        )
    return results


def parse_sml_value(raw) -> Optional[float]:
    """
    Turn a stored SML into a number.

    The catalogue keeps SML values as free text ("0.05", "60 mg/kg", "<0.01",
    "ND"), so only the leading number is used.  A leading ``<``, ``<=`` or
    ``≤`` is read as the limit itself.  Anything without a number is treated
    as "no threshold known".
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if not math.isnan(raw) else None

    match = _SML_NUMBER.match(str(raw).strip())
    if not match:
        return None
    return float(match.group("number"))


def split_sml_text(raw) -> tuple[str, str]:
    """
    Split imported SML text such as ``"0.05 mg/kg"`` into ``("0.05", "mg/kg")``.

    Exponents and an upper-bound qualifier stay in the value text, so
    ``"<1.5e-2 mg/kg"`` becomes ``("<1.5e-2", "mg/kg")``.  The unit falls
    back to mg/kg when the text carries none.
    """
    if raw is None:
        return "", DEFAULT_SML_UNIT
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        if isinstance(raw, float) and math.isnan(raw):
            return "", DEFAULT_SML_UNIT
        return f"{raw:g}", DEFAULT_SML_UNIT

    text = str(raw).strip()
    match = _SML_NUMBER.search(text)
    if not match:
        return text, DEFAULT_SML_UNIT
    qualifier = (match.group("qualifier") or "").strip()
    unit = text[match.end():].strip() or DEFAULT_SML_UNIT
    return qualifier + match.group("number"), unit
