import math

import pytest

from stock_dashboard.services import valuation


def test_metrics(make_holding):
    holdings = [
        make_holding(units=10, avg_cost=50, current_price=70),
        make_holding(units=5, avg_cost=100, current_price=60),
        make_holding(units=1, avg_cost=10, current_price=10),
    ]

    metrics = valuation.metrics(holdings)

    assert metrics.total_value == pytest.approx(1010.0)
    assert metrics.total_cost == pytest.approx(1010.0)
    assert metrics.total_gain_loss == pytest.approx(0.0)
    assert metrics.stocks_count == 3
    assert metrics.gainers_count == 1
    assert metrics.losers_count == 1


def test_metrics_of_empty_portfolio():
    metrics = valuation.metrics([])

    assert metrics.total_value == 0
    assert metrics.total_gain_loss_percent == 0
    assert metrics.stocks_count == 0


def test_gain_loss_percent_with_zero_cost(make_holding):
    assert valuation.gain_loss_percent(make_holding(avg_cost=0, current_price=5)) == 0.0


def test_top_performers(make_holding):
    small_winner = make_holding(units=1, avg_cost=10, current_price=20)  # +100%, +10
    big_winner = make_holding(units=100, avg_cost=100, current_price=120)  # +20%, +2000
    loser = make_holding(units=10, avg_cost=100, current_price=50)  # -50%, -500

    by_percent = valuation.top_performers([small_winner, big_winner, loser], "percentage")
    by_value = valuation.top_performers([small_winner, big_winner, loser], "value")

    assert by_percent.best.holding is small_winner
    assert by_percent.worst.holding is loser
    assert by_value.best.holding is big_winner
    assert by_value.best.gain_loss_value == pytest.approx(2000.0)


def test_top_performers_ties_go_to_first(make_holding):
    first = make_holding(avg_cost=100, current_price=110)
    second = make_holding(avg_cost=100, current_price=110)

    performers = valuation.top_performers([first, second])

    assert performers.best.holding is first
    assert performers.worst.holding is first


def test_top_performers_unknown_metric(make_holding):
    with pytest.raises(ValueError):
        valuation.top_performers([make_holding()], "volume")


def test_sector_allocation(make_holding):
    holdings = [
        make_holding(sector="Energy", units=3, current_price=100),
        make_holding(sector="Technology", units=4, current_price=100),
        make_holding(sector="Technology", units=3, current_price=100),
    ]

    allocation = valuation.sector_allocation(holdings)

    assert [(a.sector, a.value) for a in allocation] == [("Technology", 700.0), ("Energy", 300.0)]
    assert [a.percentage for a in allocation] == pytest.approx([70.0, 30.0])


def test_sector_allocation_of_worthless_portfolio(make_holding):
    [allocation] = valuation.sector_allocation([make_holding(current_price=0)])

    assert allocation.value == 0
    assert math.isnan(allocation.percentage)


def test_gain_loss_split_counts_only_sells(make_holding, make_transaction):
    holdings = [
        make_holding(units=10, avg_cost=100, current_price=110),
        make_holding(units=10, avg_cost=100, current_price=80),
    ]
    transactions = [
        make_transaction(type="buy"),
        make_transaction(type="sell", gain_or_loss=250.0),
        make_transaction(type="sell", gain_or_loss=-40.0),
    ]

    split = valuation.gain_loss_split(holdings, transactions)

    assert split.unrealized_gain == pytest.approx(100.0)
    assert split.unrealized_loss == pytest.approx(200.0)
    assert split.realized_gain == pytest.approx(250.0)
    assert split.realized_loss == pytest.approx(40.0)
    assert split.total_realized == pytest.approx(210.0)


def test_recovery_potential(make_holding):
    mild = make_holding(avg_cost=100, current_price=80)
    severe = make_holding(avg_cost=100, current_price=50)
    winner = make_holding(avg_cost=100, current_price=120)

    recovery = valuation.recovery_potential([mild, severe, winner])

    assert [r.id for r in recovery] == [severe.id, mild.id]
    assert recovery[0].percent_down == pytest.approx(50.0)
    assert recovery[0].percent_to_breakeven == pytest.approx(100.0)
    assert recovery[1].percent_to_breakeven == pytest.approx(25.0)


def test_sector_performance(make_holding):
    holdings = [
        make_holding(sector="Technology", units=10, avg_cost=50, current_price=70),
        make_holding(sector="Energy", units=10, avg_cost=40, current_price=30),
        make_holding(sector="Cash", units=10, avg_cost=0, current_price=0),
    ]

    performance = valuation.sector_performance(holdings)

    assert [s.sector for s in performance] == ["Technology", "Energy", "Cash"]
    technology, energy, cash = performance
    assert technology.performance == pytest.approx(40.0)
    assert technology.allocation == pytest.approx(70.0)
    assert energy.performance == pytest.approx(-25.0)
    assert cash.performance == 0.0
    assert cash.allocation == 0.0


def test_gainers_losers(make_holding):
    holdings = [make_holding(avg_cost=100, current_price=price) for price in (90, 130, 110, 100, 60)]

    gainers, losers = valuation.gainers_losers(holdings, limit=1)

    assert [p.holding.current_price for p in gainers] == [130]
    assert [p.holding.current_price for p in losers] == [60]


def test_range_position(make_holding):
    assert valuation.range_position(make_holding()) is None
    assert valuation.range_position(
        make_holding(current_price=150, low_52_week=100, high_52_week=200)
    ) == pytest.approx(50.0)
    assert valuation.range_position(
        make_holding(current_price=250, low_52_week=100, high_52_week=200)
    ) == 100.0
