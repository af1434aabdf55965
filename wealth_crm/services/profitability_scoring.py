"""
Client profitability scoring.

Pure arithmetic over a household's period inputs: labor cost from hour
allocations, total cost, profits, margins, per-hour figures, effective fee
rate, a composite 0-100 score and a tier. No database or I/O here; the
analytics service applies the result to ClientProfitability rows.

Ratios whose denominator is zero are undefined. They keep the previous
value when one is supplied, otherwise zero. Nothing here raises on zero.
"""

from dataclasses import dataclass, fields
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from wealth_crm.core.config import settings
from wealth_crm.db.enums import ProfitabilityTier


ZERO = Decimal("0")
CENT = Decimal("0.01")
FEE_RATE_QUANTUM = Decimal("0.000001")

# Sub-score caps (sum to 100)
MARGIN_WEIGHT = Decimal("50")
REVENUE_PER_HOUR_WEIGHT = Decimal("30")
FEE_RATE_WEIGHT = Decimal("20")

# Values that earn the full sub-score
TARGET_NET_MARGIN = Decimal("60")  # percent
TARGET_REVENUE_PER_HOUR = Decimal("2000")  # USD
TARGET_FEE_RATE = Decimal("0.01")  # 1% of AUM

# Inclusive lower bounds, highest first
TIER_THRESHOLDS = (
    (Decimal("85"), ProfitabilityTier.PLATINUM),
    (Decimal("70"), ProfitabilityTier.GOLD),
    (Decimal("50"), ProfitabilityTier.SILVER),
)

RATIO_FIELDS = (
    "gross_margin",
    "net_margin",
    "revenue_per_hour",
    "profit_per_hour",
    "effective_fee_rate",
)


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats, strings and None to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class CostRates:
    """Hourly cost of each staff category."""

    advisor: Decimal = Decimal("250")
    operations: Decimal = Decimal("75")
    compliance: Decimal = Decimal("125")

    @classmethod
    def from_settings(cls) -> "CostRates":
        return cls(
            advisor=to_decimal(settings.ADVISOR_HOURLY_RATE),
            operations=to_decimal(settings.OPERATIONS_HOURLY_RATE),
            compliance=to_decimal(settings.COMPLIANCE_HOURLY_RATE),
        )


@dataclass(frozen=True)
class ProfitabilityInputs:
    total_revenue: Decimal = ZERO
    advisor_hours: Decimal = ZERO
    operations_hours: Decimal = ZERO
    compliance_hours: Decimal = ZERO
    technology_cost: Decimal = ZERO
    custodian_cost: Decimal = ZERO
    marketing_cost: Decimal = ZERO
    overhead_allocation: Decimal = ZERO
    aum: Decimal = ZERO

    @classmethod
    def from_record(cls, record: Any) -> "ProfitabilityInputs":
        """Build inputs from any object exposing the input attributes (e.g. an ORM row)."""
        return cls(**{f.name: to_decimal(getattr(record, f.name, None)) for f in fields(cls)})

    @property
    def total_hours(self) -> Decimal:
        return self.advisor_hours + self.operations_hours + self.compliance_hours


@dataclass(frozen=True)
class ProfitabilityResult:
    direct_labor_cost: Decimal
    total_cost: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    gross_margin: Decimal
    net_margin: Decimal
    revenue_per_hour: Decimal
    profit_per_hour: Decimal
    effective_fee_rate: Decimal
    profitability_score: Decimal
    tier: ProfitabilityTier

    def as_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["tier"] = self.tier.value
        return data


def _clamp(value: Decimal, cap: Decimal) -> Decimal:
    return max(ZERO, min(value, cap))


def margin_subscore(net_margin: Decimal) -> Decimal:
    return _clamp(to_decimal(net_margin) / TARGET_NET_MARGIN * MARGIN_WEIGHT, MARGIN_WEIGHT)


def revenue_per_hour_subscore(revenue_per_hour: Decimal) -> Decimal:
    return _clamp(
        to_decimal(revenue_per_hour) / TARGET_REVENUE_PER_HOUR * REVENUE_PER_HOUR_WEIGHT,
        REVENUE_PER_HOUR_WEIGHT,
    )


def fee_rate_subscore(effective_fee_rate: Decimal) -> Decimal:
    return _clamp(to_decimal(effective_fee_rate) / TARGET_FEE_RATE * FEE_RATE_WEIGHT, FEE_RATE_WEIGHT)


def composite_score(net_margin, revenue_per_hour, effective_fee_rate) -> Decimal:
    """
    Composite 0-100 score, rounded half-up to a whole number.

    Monotonically non-decreasing in each argument.
    """
    raw = (
        margin_subscore(net_margin)
        + revenue_per_hour_subscore(revenue_per_hour)
        + fee_rate_subscore(effective_fee_rate)
    )
    return raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def assign_tier(score) -> ProfitabilityTier:
    """Map a score to its tier. Lower bounds are inclusive."""
    score = to_decimal(score)
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return ProfitabilityTier.BRONZE


def calculate_profitability(
    inputs: ProfitabilityInputs,
    rates: CostRates | None = None,
    previous: Mapping[str, Any] | None = None,
) -> ProfitabilityResult:
    """
    Derive every computed profitability figure from the inputs.

    ``previous`` supplies the ratio values to keep when a denominator
    (revenue, hours, AUM) is zero.
    """
    rates = rates or CostRates.from_settings()
    previous = previous or {}

    def prior(name: str) -> Decimal:
        return to_decimal(previous.get(name))

    revenue = inputs.total_revenue
    hours = inputs.total_hours

    direct_labor_cost = (
        inputs.advisor_hours * rates.advisor
        + inputs.operations_hours * rates.operations
        + inputs.compliance_hours * rates.compliance
    )
    total_cost = (
        direct_labor_cost
        + inputs.technology_cost
        + inputs.custodian_cost
        + inputs.marketing_cost
        + inputs.overhead_allocation
    )
    gross_profit = revenue - direct_labor_cost
    net_profit = revenue - total_cost

    if revenue > 0:
        gross_margin = (gross_profit / revenue * 100).quantize(CENT, rounding=ROUND_HALF_UP)
        net_margin = (net_profit / revenue * 100).quantize(CENT, rounding=ROUND_HALF_UP)
    else:
        gross_margin = prior("gross_margin")
        net_margin = prior("net_margin")

    if hours > 0:
        revenue_per_hour = (revenue / hours).quantize(CENT, rounding=ROUND_HALF_UP)
        profit_per_hour = (net_profit / hours).quantize(CENT, rounding=ROUND_HALF_UP)
    else:
        revenue_per_hour = prior("revenue_per_hour")
        profit_per_hour = prior("profit_per_hour")

    if inputs.aum > 0:
        effective_fee_rate = (revenue / inputs.aum).quantize(FEE_RATE_QUANTUM, rounding=ROUND_HALF_UP)
    else:
        effective_fee_rate = prior("effective_fee_rate")

    score = composite_score(net_margin, revenue_per_hour, effective_fee_rate)

    return ProfitabilityResult(
        direct_labor_cost=direct_labor_cost.quantize(CENT, rounding=ROUND_HALF_UP),
        total_cost=total_cost.quantize(CENT, rounding=ROUND_HALF_UP),
        gross_profit=gross_profit.quantize(CENT, rounding=ROUND_HALF_UP),
        net_profit=net_profit.quantize(CENT, rounding=ROUND_HALF_UP),
        gross_margin=gross_margin,
        net_margin=net_margin,
        revenue_per_hour=revenue_per_hour,
        profit_per_hour=profit_per_hour,
        effective_fee_rate=effective_fee_rate,
        profitability_score=score,
        tier=assign_tier(score),
    )
