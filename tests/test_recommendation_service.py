import pytest

from stock_dashboard.services.recommendation_service import (
    GENERAL_ADVICE,
    RULE_BASED,
    RecommendationService,
    is_volatile,
    missing_sectors,
)


@pytest.fixture
def service() -> RecommendationService:
    return RecommendationService()


def test_empty_portfolio_gets_generic_advice(service):
    assert service.generate([]) == RULE_BASED


def test_concentration_is_reported(service, make_holding):
    holdings = [
        make_holding(ticker="AAPL", sector="Technology", units=7, current_price=100, avg_cost=100),
        make_holding(ticker="XOM", sector="Energy", units=3, current_price=100, avg_cost=100),
    ]

    recommendations = service.generate(holdings)

    assert recommendations.diversification.startswith(
        "Your portfolio shows high concentration in the Technology, Energy sectors, "
        "representing 70%, 30% of your portfolio."
    )
    assert "Healthcare, Financials, Consumer Discretionary" in recommendations.diversification
    assert recommendations.general == GENERAL_ADVICE


def test_balanced_portfolio(service, make_holding):
    sectors = ["Technology", "Energy", "Utilities", "Healthcare", "Materials"]
    holdings = [make_holding(sector=sector) for sector in sectors]

    recommendations = service.generate(holdings)

    assert "good diversification" in recommendations.diversification
    assert "appears balanced" in recommendations.risk
    assert "well-balanced" in recommendations.rebalancing
    assert "No significant tax loss" in recommendations.tax_loss


def test_gainers_and_losers(service, make_holding):
    holdings = [
        make_holding(ticker="NVDA", avg_cost=100, current_price=130),
        make_holding(ticker="INTC", avg_cost=100, current_price=70),
        make_holding(ticker="MSFT", avg_cost=100, current_price=105),
    ]

    recommendations = service.generate(holdings)

    assert "partial profits on NVDA" in recommendations.rebalancing
    assert "underperforming positions like INTC" in recommendations.rebalancing
    assert "candidates include INTC" in recommendations.tax_loss


def test_losers_only(service, make_holding):
    recommendations = service.generate([make_holding(ticker="INTC", avg_cost=100, current_price=50)])

    assert recommendations.rebalancing.startswith("Several positions including INTC")


def test_volatile_holdings(service, make_holding):
    holdings = [
        make_holding(ticker=f"V{i}", low_52_week=10, high_52_week=30) for i in range(4)
    ] + [make_holding(ticker="CALM", low_52_week=90, high_52_week=110)]

    risk = service.generate(holdings).risk

    assert "4 volatile stocks (80% of holdings) including V0, V1, V2, and others" in risk


@pytest.mark.parametrize(
    "low, high, expected",
    [(None, 10, False), (10, None, False), (10, 20, False), (10, 20.5, True), (0, 5, True), (0, 0, False)],
)
def test_is_volatile(make_holding, low, high, expected):
    assert is_volatile(make_holding(low_52_week=low, high_52_week=high)) is expected


def test_missing_sectors():
    assert missing_sectors(["Technology", "Financials"]) == [
        "Healthcare",
        "Consumer Discretionary",
        "Communication Services",
    ]


def test_recommendations_are_cached_until_refresh(service, make_holding, mocker):
    generate = mocker.spy(service, "generate")
    holdings = [make_holding()]

    first = service.get_recommendations(holdings)
    second = service.get_recommendations([])
    third = service.get_recommendations([], force_refresh=True)

    assert first is second
    assert third == RULE_BASED
    assert generate.call_count == 2
