import logging
from collections.abc import Sequence

from stock_dashboard.models import (
    CalendarDay,
    Dividend,
    GainLossSplit,
    Holding,
    MonthlyDividends,
    PortfolioMetrics,
    Recommendations,
    RecoveryPotential,
    SectorPerformance,
    TopPerformers,
    Transaction,
)
from stock_dashboard.services import valuation
from stock_dashboard.utils.formatting import (
    calculate_holding_period,
    format_currency,
    format_date,
    format_number,
    format_percentage,
)

logger = logging.getLogger(__name__)


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        return text[: width - 1] + "…"
    return text


def print_table(title: str, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    """
    Print rows in a box-drawn table, sizing each column to its widest cell.

    The first column is left aligned, the rest right aligned.
    """
    widths = [
        min(40, max(len(str(h)), *(len(str(r[i])) for r in rows))) if rows else len(str(h))
        for i, h in enumerate(headers)
    ]
    inner = sum(widths) + 3 * len(widths) - 1

    def line(cells: Sequence[str]) -> str:
        parts = []
        for i, (cell, width) in enumerate(zip(cells, widths)):
            cell = _fit(str(cell), width)
            parts.append(f" {cell:<{width}} " if i == 0 else f" {cell:>{width}} ")
        return "║" + "║".join(parts) + "║"

    def rule(left: str, mid: str, right: str) -> str:
        return left + mid.join("═" * (w + 2) for w in widths) + right

    print("\n╔" + "═" * inner + "╗")
    print("║" + title.center(inner) + "║")
    print(rule("╠", "╦", "╣"))
    print(line(headers))
    print(rule("╠", "╬", "╣"))
    for row in rows:
        print(line(row))
    print(rule("╚", "╩", "╝"))


def display_summary(metrics: PortfolioMetrics, performers: TopPerformers, split: GainLossSplit) -> None:
    """
    Display the dashboard headline figures.

    Args:
        metrics: Portfolio totals
        performers: Best and worst holding by percentage
        split: Realized and unrealized gain/loss
    """
    if metrics.stocks_count == 0:
        print("No holdings yet. Use 'stock-dashboard add' to add your first stock.")
        return

    rows = [
        ["Total Value", format_currency(metrics.total_value), ""],
        ["Total Cost", format_currency(metrics.total_cost), ""],
        [
            "Gain/Loss",
            format_currency(metrics.total_gain_loss),
            format_percentage(metrics.total_gain_loss_percent),
        ],
        ["Unrealized", format_currency(split.total_unrealized), ""],
        ["Realized", format_currency(split.total_realized), ""],
        ["Holdings", str(metrics.stocks_count), ""],
        ["Gainers / Losers", f"{metrics.gainers_count} / {metrics.losers_count}", ""],
    ]
    print_table("PORTFOLIO SUMMARY", ["Metric", "Value", "Change"], rows)

    if performers.best and performers.worst:
        print(
            f"\nBest performer:  {performers.best.holding.ticker} "
            f"({format_percentage(performers.best.gain_loss_percent)})"
        )
        print(
            f"Worst performer: {performers.worst.holding.ticker} "
            f"({format_percentage(performers.worst.gain_loss_percent)})"
        )


def display_holdings(holdings: Sequence[Holding]) -> None:
    if not holdings:
        print("No holdings to display.")
        return

    rows = []
    for h in sorted(holdings, key=lambda h: h.market_value, reverse=True):
        performance = valuation.performance(h)
        position = valuation.range_position(h)
        rows.append(
            [
                f"{h.ticker} ({h.id})",
                format_number(h.units, 4).rstrip("0").rstrip("."),
                format_currency(h.avg_cost),
                format_currency(h.current_price),
                format_currency(h.market_value),
                format_currency(performance.gain_loss_value),
                format_percentage(performance.gain_loss_percent),
                "" if position is None else f"{position:.0f}%",
                calculate_holding_period(h.date_added),
            ]
        )
    print_table(
        "HOLDINGS",
        ["Stock", "Units", "Avg Cost", "Price", "Value", "Gain/Loss", "Return", "52W Pos", "Held"],
        rows,
    )


def display_transactions(transactions: Sequence[Transaction], limit: int | None = None) -> None:
    """Transactions newest first."""
    if not transactions:
        print("No transactions recorded.")
        return

    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)
    if limit:
        ordered = ordered[:limit]
    rows = [
        [
            format_date(t.date),
            t.type.upper(),
            t.ticker,
            format_number(t.units, 4).rstrip("0").rstrip("."),
            format_currency(t.price),
            format_currency(t.units * t.price),
            "" if t.gain_or_loss is None else format_currency(t.gain_or_loss),
            t.notes,
        ]
        for t in ordered
    ]
    print_table(
        "TRANSACTIONS",
        ["Date", "Type", "Ticker", "Units", "Price", "Total", "Gain/Loss", "Notes"],
        rows,
    )


def display_sectors(sectors: Sequence[SectorPerformance]) -> None:
    if not sectors:
        print("No sector data to display.")
        return
    rows = [
        [
            s.sector,
            format_currency(s.total_value),
            format_currency(s.total_cost),
            format_percentage(s.performance),
            format_percentage(s.allocation, include_sign=False),
        ]
        for s in sectors
    ]
    print_table("SECTORS", ["Sector", "Value", "Cost", "Return", "Allocation"], rows)


def display_recovery(recovery: Sequence[RecoveryPotential]) -> None:
    if not recovery:
        print("No holdings are below their average cost.")
        return
    rows = [
        [
            r.ticker,
            format_currency(r.avg_cost),
            format_currency(r.current_price),
            format_percentage(-r.percent_down),
            "n/a" if r.percent_to_breakeven == float("inf") else format_percentage(r.percent_to_breakeven),
        ]
        for r in recovery
    ]
    print_table("RECOVERY POTENTIAL", ["Ticker", "Avg Cost", "Price", "Down", "To Breakeven"], rows)


def display_gain_loss(split: GainLossSplit) -> None:
    rows = [
        ["Realized", format_currency(split.realized_gain), format_currency(split.realized_loss),
         format_currency(split.total_realized)],
        ["Unrealized", format_currency(split.unrealized_gain), format_currency(split.unrealized_loss),
         format_currency(split.total_unrealized)],
    ]
    print_table("REALIZED VS UNREALIZED", ["", "Gains", "Losses", "Net"], rows)


def display_dividends(
    upcoming: Sequence[Dividend],
    history: Sequence[MonthlyDividends],
    annual_income: float,
    portfolio_yield: float,
    monthly_average: float,
) -> None:
    print("\nDIVIDENDS:")
    print(f"Annual income (est.): {format_currency(annual_income)}")
    print(f"Portfolio yield:      {format_percentage(portfolio_yield, include_sign=False)}")
    print(f"Monthly average:      {format_currency(monthly_average)}")

    if upcoming:
        rows = [
            [d.ticker, format_date(d.ex_date), format_date(d.payment_date),
             format_currency(d.amount_per_share), format_currency(d.total_amount)]
            for d in upcoming
        ]
        print_table("UPCOMING", ["Ticker", "Ex-Date", "Payment", "Per Share", "Total"], rows)
    else:
        print("No upcoming dividends in the next 30 days.")

    if history:
        rows = [
            [m.month, format_currency(m.total), format_currency(m.reinvested), format_currency(m.cash)]
            for m in history
        ]
        print_table("HISTORY", ["Month", "Total", "Reinvested", "Cash"], rows)


def display_calendar(year: int, month: int, days: dict[int, CalendarDay]) -> None:
    if not days:
        print(f"No dividend events in {year}-{month:02d}.")
        return
    rows = [
        [
            f"{year}-{month:02d}-{day.day:02d}",
            ", ".join(d.ticker for d in day.ex_dividends),
            ", ".join(d.ticker for d in day.payments),
        ]
        for day in days.values()
    ]
    print_table("DIVIDEND CALENDAR", ["Date", "Ex-Dividend", "Payment"], rows)


def display_recommendations(recommendations: Recommendations) -> None:
    sections = [
        ("Diversification Strategy", recommendations.diversification),
        ("Risk Assessment", recommendations.risk),
        ("Rebalancing Opportunities", recommendations.rebalancing),
        ("Tax Loss Harvesting", recommendations.tax_loss),
        ("General Advice", recommendations.general),
    ]
    for title, text in sections:
        print(f"\n{title.upper()}:")
        print(text)
    print(
        "\nThese recommendations are generated by simple rules and should be considered "
        "suggestions only. Always do your own research before making investment decisions."
    )
