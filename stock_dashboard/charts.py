"""
Chart payloads for the dashboard.

Every builder returns a JSON-safe dict ({"type", "labels", "datasets"}) ready
for any charting front end, or None when there is nothing to plot.
"""

import json
import math
from collections.abc import Sequence
from typing import Any

from stock_dashboard.models import (
    GainLossSplit,
    Holding,
    HoldingPerformance,
    PortfolioSnapshot,
    RecoveryPotential,
    SectorAllocation,
    SectorPerformance,
)
from stock_dashboard.services import valuation

COLORS: dict[str, str] = {
    "primary": "#4285f4",
    "success": "#34a853",
    "warning": "#fbbc04",
    "danger": "#ea4335",
    "info": "#46bdc6",
    "purple": "#7986cb",
    "background": "#ffffff",
    "border": "#dadce0",
}

SECTOR_PALETTE: list[str] = [
    "#4285f4", "#34a853", "#fbbc04", "#ea4335",
    "#46bdc6", "#7986cb", "#9c27b0", "#3f51b5",
    "#2196f3", "#009688", "#8bc34a", "#cddc39",
]

ChartPayload = dict[str, Any]


def _safe(v: Any) -> Any:
    """Convert non-finite floats to None and round the rest for JSON."""
    if v is None:
        return None
    if isinstance(v, float):
        if not math.isfinite(v):
            return None
        return round(v, 4)
    return v


def _sign_colors(values: Sequence[float]) -> list[str]:
    return [COLORS["success"] if v >= 0 else COLORS["danger"] for v in values]


def range_color(position: float) -> str:
    """Color band for a position in the 52-week range."""
    if position >= 75:
        return COLORS["success"]
    if position >= 50:
        return COLORS["warning"]
    if position >= 25:
        return COLORS["primary"]
    return COLORS["danger"]


def allocation_chart(allocation: Sequence[SectorAllocation]) -> ChartPayload | None:
    if not allocation or all(a.value == 0 for a in allocation):
        return None
    return {
        "type": "doughnut",
        "labels": [a.sector for a in allocation],
        "datasets": [
            {
                "label": "Sector Allocation",
                "data": [_safe(a.value) for a in allocation],
                "percentages": [_safe(a.percentage) for a in allocation],
                "backgroundColor": [
                    SECTOR_PALETTE[i % len(SECTOR_PALETTE)] for i in range(len(allocation))
                ],
                "borderColor": COLORS["background"],
            }
        ],
    }


def gainers_losers_chart(
    gainers: Sequence[HoldingPerformance], losers: Sequence[HoldingPerformance]
) -> ChartPayload | None:
    """Losers (worst first) followed by gainers (best first)."""
    ordered = [*losers, *gainers]
    if not ordered:
        return None
    data = [p.gain_loss_percent for p in ordered]
    colors = _sign_colors(data)
    return {
        "type": "bar",
        "labels": [p.holding.ticker for p in ordered],
        "datasets": [
            {
                "label": "Performance (%)",
                "data": [_safe(v) for v in data],
                "backgroundColor": colors,
                "borderColor": colors,
            }
        ],
    }


def week_range_chart(holdings: Sequence[Holding]) -> ChartPayload | None:
    """Position of each holding in its 52-week range, highest first."""
    positions = [
        (h.ticker, valuation.range_position(h))
        for h in holdings
        if h.low_52_week and h.high_52_week
    ]
    if not positions:
        return None
    positions.sort(key=lambda item: item[1], reverse=True)
    data = [position for _, position in positions]
    colors = [range_color(position) for position in data]
    return {
        "type": "bar",
        "labels": [ticker for ticker, _ in positions],
        "datasets": [
            {
                "label": "Position in 52-Week Range",
                "data": [_safe(v) for v in data],
                "backgroundColor": colors,
                "borderColor": colors,
            }
        ],
    }


def recovery_chart(recovery: Sequence[RecoveryPotential]) -> ChartPayload | None:
    if not recovery:
        return None
    return {
        "type": "bar",
        "labels": [r.ticker for r in recovery],
        "datasets": [
            {
                "label": "% Down From Cost",
                "data": [_safe(r.percent_down) for r in recovery],
                "backgroundColor": COLORS["danger"],
                "borderColor": COLORS["danger"],
            },
            {
                "label": "% Needed to Breakeven",
                "data": [_safe(r.percent_to_breakeven) for r in recovery],
                "backgroundColor": COLORS["warning"],
                "borderColor": COLORS["warning"],
            },
        ],
    }


def realized_unrealized_chart(split: GainLossSplit) -> ChartPayload | None:
    if not any(
        (split.realized_gain, split.realized_loss, split.unrealized_gain, split.unrealized_loss)
    ):
        return None
    return {
        "type": "bar",
        "labels": ["Realized", "Unrealized"],
        "datasets": [
            {
                "label": "Gains",
                "data": [_safe(split.realized_gain), _safe(split.unrealized_gain)],
                "backgroundColor": COLORS["success"],
                "borderColor": COLORS["background"],
            },
            {
                "label": "Losses",
                "data": [_safe(split.realized_loss), _safe(split.unrealized_loss)],
                "backgroundColor": COLORS["danger"],
                "borderColor": COLORS["background"],
            },
        ],
    }


def sector_performance_chart(sectors: Sequence[SectorPerformance]) -> ChartPayload | None:
    """Return per sector as bars with allocation overlaid as a line."""
    if not sectors:
        return None
    returns = [s.performance for s in sectors]
    colors = _sign_colors(returns)
    return {
        "type": "bar",
        "labels": [s.sector for s in sectors],
        "datasets": [
            {
                "label": "Return (%)",
                "data": [_safe(v) for v in returns],
                "backgroundColor": colors,
                "borderColor": colors,
                "order": 1,
            },
            {
                "label": "Allocation (%)",
                "type": "line",
                "data": [_safe(s.allocation) for s in sectors],
                "borderColor": COLORS["primary"],
                "backgroundColor": "rgba(66, 133, 244, 0.1)",
                "order": 0,
            },
        ],
    }


def build_dashboard_payload(snapshot: PortfolioSnapshot) -> dict[str, Any]:
    """Bundle the summary metrics and every chart for one snapshot."""
    metrics = snapshot.metrics
    gainers, losers = valuation.gainers_losers(snapshot.holdings)
    return {
        "metrics": {
            "totalValue": _safe(metrics.total_value),
            "totalCost": _safe(metrics.total_cost),
            "totalGainLoss": _safe(metrics.total_gain_loss),
            "totalGainLossPercent": _safe(metrics.total_gain_loss_percent),
            "stocksCount": metrics.stocks_count,
            "gainersCount": metrics.gainers_count,
            "losersCount": metrics.losers_count,
        },
        "charts": {
            "allocation": allocation_chart(snapshot.sector_allocation),
            "gainersLosers": gainers_losers_chart(gainers, losers),
            "weekRange": week_range_chart(snapshot.holdings),
            "recovery": recovery_chart(snapshot.recovery),
            "realizedUnrealized": realized_unrealized_chart(snapshot.gain_loss),
            "sectorPerformance": sector_performance_chart(snapshot.sector_performance),
        },
    }


def dashboard_json(snapshot: PortfolioSnapshot) -> str:
    return json.dumps(build_dashboard_payload(snapshot), indent=2)
