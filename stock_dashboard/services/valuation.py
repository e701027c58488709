"""
Pure valuation functions over holdings and transactions.

Nothing here is stored; every figure is recomputed from the ledger on demand.
"""

import math
from collections.abc import Sequence

from stock_dashboard.models import (
    GainLossSplit,
    Holding,
    HoldingPerformance,
    PortfolioMetrics,
    RecoveryPotential,
    SectorAllocation,
    SectorPerformance,
    TopPerformers,
    Transaction,
)
from stock_dashboard.utils.formatting import calculate_range_position


def gain_loss_percent(holding: Holding) -> float:
    """Percentage gain of the current price over average cost, 0 when cost is 0."""
    if holding.avg_cost == 0:
        return 0.0
    return (holding.current_price / holding.avg_cost - 1) * 100


def performance(holding: Holding) -> HoldingPerformance:
    return HoldingPerformance(
        holding=holding,
        gain_loss_value=(holding.current_price - holding.avg_cost) * holding.units,
        gain_loss_percent=gain_loss_percent(holding),
    )


def metrics(holdings: Sequence[Holding]) -> PortfolioMetrics:
    total_value = sum(h.market_value for h in holdings)
    total_cost = sum(h.cost_basis for h in holdings)
    total_gain_loss = total_value - total_cost
    return PortfolioMetrics(
        total_value=total_value,
        total_cost=total_cost,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percent=0.0 if total_cost == 0 else total_gain_loss / total_cost * 100,
        stocks_count=len(holdings),
        gainers_count=sum(1 for h in holdings if h.current_price > h.avg_cost),
        losers_count=sum(1 for h in holdings if h.current_price < h.avg_cost),
    )


def top_performers(holdings: Sequence[Holding], metric: str = "percentage") -> TopPerformers:
    """
    Best and worst holding by percentage or absolute gain.

    Ties resolve to the first holding in ledger order.

    Raises:
        ValueError: If metric is not 'percentage' or 'value'
    """
    if metric not in ("percentage", "value"):
        raise ValueError(f"Unknown performance metric: {metric}")
    if not holdings:
        return TopPerformers(best=None, worst=None)

    performances = [performance(h) for h in holdings]
    if metric == "percentage":
        key = lambda p: p.gain_loss_percent  # noqa: E731
    else:
        key = lambda p: p.gain_loss_value  # noqa: E731
    return TopPerformers(best=max(performances, key=key), worst=min(performances, key=key))


def _values_by_sector(holdings: Sequence[Holding]) -> dict[str, list[float]]:
    # sector -> [value, cost], in first-seen order
    totals: dict[str, list[float]] = {}
    for h in holdings:
        entry = totals.setdefault(h.sector, [0.0, 0.0])
        entry[0] += h.market_value
        entry[1] += h.cost_basis
    return totals


def sector_allocation(holdings: Sequence[Holding]) -> list[SectorAllocation]:
    """Market value per sector label, largest first. Percentages are NaN for a worthless portfolio."""
    totals = _values_by_sector(holdings)
    total_value = sum(value for value, _ in totals.values())
    allocation = [
        SectorAllocation(
            sector=sector,
            value=value,
            percentage=value / total_value * 100 if total_value else math.nan,
        )
        for sector, (value, _) in totals.items()
    ]
    return sorted(allocation, key=lambda a: a.value, reverse=True)


def gain_loss_split(
    holdings: Sequence[Holding], transactions: Sequence[Transaction]
) -> GainLossSplit:
    unrealized_gain = unrealized_loss = 0.0
    for h in holdings:
        gain = (h.current_price - h.avg_cost) * h.units
        if gain > 0:
            unrealized_gain += gain
        else:
            unrealized_loss += abs(gain)

    realized_gain = realized_loss = 0.0
    for t in transactions:
        if t.type != "sell" or t.gain_or_loss is None:
            continue
        if t.gain_or_loss > 0:
            realized_gain += t.gain_or_loss
        else:
            realized_loss += abs(t.gain_or_loss)

    return GainLossSplit(
        unrealized_gain=unrealized_gain,
        unrealized_loss=unrealized_loss,
        realized_gain=realized_gain,
        realized_loss=realized_loss,
    )


def recovery_potential(holdings: Sequence[Holding]) -> list[RecoveryPotential]:
    """Holdings trading below cost, ordered by how far they must rise to break even."""
    recovery = [
        RecoveryPotential(
            id=h.id,
            name=h.name,
            ticker=h.ticker,
            current_price=h.current_price,
            avg_cost=h.avg_cost,
            percent_down=(h.avg_cost - h.current_price) / h.avg_cost * 100,
            percent_to_breakeven=(
                (h.avg_cost / h.current_price - 1) * 100 if h.current_price else math.inf
            ),
        )
        for h in holdings
        if h.current_price < h.avg_cost
    ]
    return sorted(recovery, key=lambda r: r.percent_to_breakeven, reverse=True)


def sector_performance(holdings: Sequence[Holding]) -> list[SectorPerformance]:
    totals = _values_by_sector(holdings)
    portfolio_value = sum(value for value, _ in totals.values())
    result = [
        SectorPerformance(
            sector=sector,
            total_value=value,
            total_cost=cost,
            performance=(value / cost - 1) * 100 if cost > 0 else 0.0,
            allocation=value / portfolio_value * 100 if portfolio_value else 0.0,
        )
        for sector, (value, cost) in totals.items()
    ]
    return sorted(result, key=lambda s: s.total_value, reverse=True)


def gainers_losers(
    holdings: Sequence[Holding], limit: int = 5
) -> tuple[list[HoldingPerformance], list[HoldingPerformance]]:
    """
    Top gainers and losers by percentage.

    Returns:
        (gainers sorted best first, losers sorted worst first), each at most `limit` long
    """
    performances = [performance(h) for h in holdings]
    gainers = sorted(
        (p for p in performances if p.gain_loss_percent > 0),
        key=lambda p: p.gain_loss_percent,
        reverse=True,
    )
    losers = sorted(
        (p for p in performances if p.gain_loss_percent < 0),
        key=lambda p: p.gain_loss_percent,
    )
    return gainers[:limit], losers[:limit]


def range_position(holding: Holding) -> float | None:
    """Position within the 52-week range (0-100), None when the range is unknown."""
    if holding.low_52_week is None or holding.high_52_week is None:
        return None
    return calculate_range_position(holding.current_price, holding.low_52_week, holding.high_52_week)
