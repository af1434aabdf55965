"""Tests for the client profitability calculation and scoring."""

from decimal import Decimal

import pytest

from wealth_crm.db.enums import ProfitabilityTier
from wealth_crm.services.profitability_scoring import (
    CostRates,
    ProfitabilityInputs,
    assign_tier,
    calculate_profitability,
    composite_score,
    fee_rate_subscore,
    margin_subscore,
    revenue_per_hour_subscore,
    to_decimal,
)


RATES = CostRates(advisor=Decimal("250"), operations=Decimal("75"), compliance=Decimal("125"))


def _smith_inputs(**overrides) -> ProfitabilityInputs:
    values = {
        "total_revenue": Decimal("72250"),
        "advisor_hours": Decimal("40"),
        "operations_hours": Decimal("5"),
        "compliance_hours": Decimal("5"),
        "technology_cost": Decimal("2000"),
        "custodian_cost": Decimal("900"),
        "overhead_allocation": Decimal("15000"),
    }
    values.update(overrides)
    return ProfitabilityInputs(**values)


def test_smith_household_figures():
    result = calculate_profitability(_smith_inputs(), rates=RATES)

    assert result.direct_labor_cost == Decimal("11000.00")
    assert result.total_cost == Decimal("28900.00")
    assert result.gross_profit == Decimal("61250.00")
    assert result.net_profit == Decimal("43350.00")
    assert result.gross_margin == Decimal("84.78")
    assert result.net_margin == Decimal("60.00")
    assert result.revenue_per_hour == Decimal("1445.00")
    assert result.profit_per_hour == Decimal("867.00")


def test_smith_household_score_with_aum():
    result = calculate_profitability(_smith_inputs(aum=Decimal("7225000")), rates=RATES)

    assert result.effective_fee_rate == Decimal("0.010000")
    # 50 (margin) + 21.675 (revenue/hour) + 20 (fee rate) = 91.675
    assert result.profitability_score == Decimal("92")
    assert result.tier == ProfitabilityTier.PLATINUM
    assert result.as_dict()["tier"] == "platinum"


def test_zero_revenue_keeps_previous_ratios():
    inputs = ProfitabilityInputs(advisor_hours=Decimal("2"))
    previous = {"gross_margin": 40, "net_margin": 25.5}

    result = calculate_profitability(inputs, rates=RATES, previous=previous)

    assert result.gross_margin == Decimal("40")
    assert result.net_margin == Decimal("25.5")
    assert result.net_profit == Decimal("-500.00")


def test_zero_hours_and_aum_default_to_zero_without_previous():
    result = calculate_profitability(ProfitabilityInputs(total_revenue=Decimal("1000")), rates=RATES)

    assert result.revenue_per_hour == Decimal("0")
    assert result.profit_per_hour == Decimal("0")
    assert result.effective_fee_rate == Decimal("0")
    assert result.gross_margin == Decimal("100.00")


def test_all_zero_inputs_do_not_raise():
    result = calculate_profitability(ProfitabilityInputs(), rates=RATES)
    assert result.profitability_score == Decimal("0")
    assert result.tier == ProfitabilityTier.BRONZE


def test_negative_margin_scores_zero_for_that_component():
    assert margin_subscore(Decimal("-15")) == Decimal("0")


def test_subscores_are_capped():
    assert margin_subscore(Decimal("95")) == Decimal("50")
    assert revenue_per_hour_subscore(Decimal("10000")) == Decimal("30")
    assert fee_rate_subscore(Decimal("0.05")) == Decimal("20")


def test_composite_score_rounds_half_up():
    # 25 + 15 + 10.5 = 50.5
    assert composite_score(Decimal("30"), Decimal("1000"), Decimal("0.00525")) == Decimal("51")


def test_composite_score_is_monotonic_in_margin():
    scores = [composite_score(margin, Decimal("800"), Decimal("0.006")) for margin in range(-20, 100, 10)]
    assert scores == sorted(scores)


def test_composite_score_is_monotonic_in_revenue_per_hour():
    scores = [
        composite_score(Decimal("20"), Decimal(rate), Decimal("0.006"))
        for rate in range(0, 2500, 100)
    ]
    assert scores == sorted(scores)
    assert scores[0] < scores[-1]


def test_composite_score_is_monotonic_in_fee_rate():
    rates = [Decimal(bp) / Decimal("10000") for bp in range(0, 200, 5)]
    scores = [composite_score(Decimal("20"), Decimal("800"), rate) for rate in rates]
    assert scores == sorted(scores)
    assert scores[0] < scores[-1]


def test_calculated_score_is_monotonic_in_hourly_revenue():
    # More revenue over the same hours and costs never lowers the score
    scores = [
        calculate_profitability(_smith_inputs(total_revenue=Decimal(revenue)), rates=RATES).profitability_score
        for revenue in range(20000, 200000, 10000)
    ]
    assert scores == sorted(scores)


@pytest.mark.parametrize(
    ("score", "tier"),
    [
        (100, ProfitabilityTier.PLATINUM),
        (85, ProfitabilityTier.PLATINUM),
        (84, ProfitabilityTier.GOLD),
        (Decimal("84.999"), ProfitabilityTier.GOLD),
        (70, ProfitabilityTier.GOLD),
        (69, ProfitabilityTier.SILVER),
        (Decimal("69.999"), ProfitabilityTier.SILVER),
        (50, ProfitabilityTier.SILVER),
        (49, ProfitabilityTier.BRONZE),
        (Decimal("49.999"), ProfitabilityTier.BRONZE),
        (0, ProfitabilityTier.BRONZE),
    ],
)
def test_tier_boundaries(score, tier):
    assert assign_tier(score) == tier


def test_to_decimal_handles_none_and_floats():
    assert to_decimal(None) == Decimal("0")
    assert to_decimal(0.1) == Decimal("0.1")


def test_inputs_from_record_reads_attributes():
    class Row:
        total_revenue = 1200.5
        advisor_hours = 3
        aum = None

    inputs = ProfitabilityInputs.from_record(Row())

    assert inputs.total_revenue == Decimal("1200.5")
    assert inputs.advisor_hours == Decimal("3")
    assert inputs.aum == Decimal("0")
    assert inputs.total_hours == Decimal("3")


def test_cost_rates_change_labor_cost():
    cheap = CostRates(advisor=Decimal("100"), operations=Decimal("50"), compliance=Decimal("50"))
    result = calculate_profitability(_smith_inputs(), rates=cheap)
    assert result.direct_labor_cost == Decimal("4500.00")
