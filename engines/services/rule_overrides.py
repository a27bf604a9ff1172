"""
Rule Override Resolution

Merges persisted statutory rule entries onto the default RuleConfig.

Each field goes through a parse-or-default step: a well-formed override
replaces the default, anything malformed is reported and the default for
that field is kept. Resolution never raises, so a bad override cannot block
a payroll run.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, TypeVar

from engines.schemas.payroll import (
    ProgressiveBand,
    RuleConfig,
    VehicleBenefitBand,
    bands_are_contiguous,
)
from engines.services.statutory import DEFAULT_RULE_CONFIG

T = TypeVar("T")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    """Override value accepted."""

    value: T


@dataclass(frozen=True)
class Rejected:
    """Override value refused; the default stays in force."""

    reason: str


@dataclass(frozen=True)
class Absent:
    """No override supplied for the field."""


ParseResult = Parsed[T] | Rejected | Absent


def or_default(result: "ParseResult[T]", default: T) -> T:
    if isinstance(result, Parsed):
        return result.value
    return default


# ── Primitive parsers ─────────────────────────────────


def _as_object(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def parse_decimal(value: Any) -> "ParseResult[Decimal]":
    """Parse a finite number (numeric strings accepted, booleans refused)."""
    if value is None:
        return Absent()
    if isinstance(value, bool):
        return Rejected(f"expected a number, got {value!r}")
    if isinstance(value, float):
        value = str(value)
    if not isinstance(value, (int, str, Decimal)):
        return Rejected(f"expected a number, got {type(value).__name__}")
    try:
        number = Decimal(value)
    except (InvalidOperation, ValueError):
        return Rejected(f"expected a number, got {value!r}")
    if not number.is_finite():
        return Rejected(f"non-finite number {value!r}")
    return Parsed(number)


def _parse_progressive_band(row: Any) -> ProgressiveBand | None:
    row = _as_object(row)
    lower = parse_decimal(row.get("from"))
    rate = parse_decimal(row.get("rate"))
    upper = parse_decimal(row.get("to"))
    if not isinstance(lower, Parsed) or not isinstance(rate, Parsed):
        return None
    if isinstance(upper, Rejected):
        return None
    return ProgressiveBand(
        lower=lower.value,
        upper=upper.value if isinstance(upper, Parsed) else None,
        rate=rate.value,
    )


def parse_progressive_bands(value: Any) -> "ParseResult[tuple[ProgressiveBand, ...]]":
    """Parse a PAYE band list; unusable rows are dropped, the rest sorted by lower bound."""
    if value is None:
        return Absent()
    if not isinstance(value, list):
        return Rejected("bands must be a list")

    bands = [band for band in map(_parse_progressive_band, value) if band is not None]
    bands.sort(key=lambda band: band.lower)

    if not bands:
        return Rejected("no valid bands")
    if not bands_are_contiguous(bands):
        return Rejected("bands overlap, leave a gap or lack an unbounded top band")
    return Parsed(tuple(bands))


_VEHICLE_BOUNDS = ("min_engine_cc", "max_engine_cc", "min_age_years", "max_age_years")


def _parse_vehicle_band(row: Any) -> VehicleBenefitBand | None:
    row = _as_object(row)
    amount = parse_decimal(row.get("amount"))
    if not isinstance(amount, Parsed):
        return None

    bounds: dict[str, Decimal] = {}
    for name in _VEHICLE_BOUNDS:
        bound = parse_decimal(row.get(name))
        if isinstance(bound, Rejected):
            return None
        if isinstance(bound, Parsed):
            bounds[name] = bound.value

    return VehicleBenefitBand(amount=amount.value, **bounds)


def parse_vehicle_bands(value: Any) -> "ParseResult[tuple[VehicleBenefitBand, ...]]":
    """Parse vehicle bands keeping list order (first match wins at lookup)."""
    if value is None:
        return Absent()
    if not isinstance(value, list):
        return Rejected("bands must be a list")

    bands = tuple(band for band in map(_parse_vehicle_band, value) if band is not None)
    if not bands:
        return Rejected("no valid bands")
    return Parsed(bands)


# ── Entry schema ──────────────────────────────────────

# RuleConfig field -> (entry key, property inside the entry value, parser)
OVERRIDE_FIELDS: dict[str, tuple[str, str, Callable[[Any], ParseResult]]] = {
    "sdl_rate": ("SDL_RATE", "rate", parse_decimal),
    "sdl_employee_threshold": ("SDL_RATE", "employee_threshold", parse_decimal),
    "non_resident_paye_rate": ("NON_RESIDENT_PAYE_RATE", "rate", parse_decimal),
    "director_non_full_time_rate": ("DIRECTOR_NON_FULL_TIME_RATE", "rate", parse_decimal),
    "secondary_employment_rate": ("SECONDARY_EMPLOYMENT_RATE", "rate", parse_decimal),
    "nssf_employee_rate": ("NSSF_EMPLOYEE_RATE", "rate", parse_decimal),
    "bik_housing_income_rate": ("BIK_HOUSING", "income_rate", parse_decimal),
    "bik_loan_statutory_interest_rate": ("BIK_LOAN", "statutory_interest_rate", parse_decimal),
    "filing_penalty_daily_rate": ("FILING_PENALTY_DAILY_RATE", "rate", parse_decimal),
    "paye_bands_resident_primary": ("PAYE_BANDS_RESIDENT_PRIMARY", "bands", parse_progressive_bands),
    "motor_vehicle_benefit_bands": ("MOTOR_VEHICLE_BIK_ANNUAL", "bands", parse_vehicle_bands),
}


def resolve_rule_config_with_report(
    entry_map: Mapping[str, Any],
    defaults: RuleConfig = DEFAULT_RULE_CONFIG,
) -> tuple[RuleConfig, list[str]]:
    """
    Apply override entries to ``defaults``.

    Returns the merged config and a list of human-readable notes, one per
    override that was rejected.
    """
    updates: dict[str, Any] = {}
    rejected: list[str] = []

    for field_name, (entry_key, prop, parser) in OVERRIDE_FIELDS.items():
        result = parser(_as_object(entry_map.get(entry_key)).get(prop))
        if isinstance(result, Rejected):
            rejected.append(f"{entry_key}.{prop}: {result.reason}")
        updates[field_name] = or_default(result, getattr(defaults, field_name))

    return defaults.model_copy(update=updates), rejected


def resolve_rule_config(
    entry_map: Mapping[str, Any],
    defaults: RuleConfig = DEFAULT_RULE_CONFIG,
) -> RuleConfig:
    """Apply override entries to ``defaults``, silently keeping defaults for bad values."""
    config, _ = resolve_rule_config_with_report(entry_map, defaults)
    return config
