"""Report command implementation."""

import argparse
import logging
from datetime import date
from pathlib import Path
from typing_extensions import override

from stock_dashboard.charts import dashboard_json
from stock_dashboard.commands.base import Command, CommandRegistry
from stock_dashboard.display import (
    display_calendar,
    display_dividends,
    display_gain_loss,
    display_holdings,
    display_recommendations,
    display_recovery,
    display_sectors,
    display_summary,
    display_transactions,
)
from stock_dashboard.services.dividend_service import DividendService
from stock_dashboard.services.recommendation_service import RecommendationService
from stock_dashboard.utils.notifications import notify

logger = logging.getLogger(__name__)

REPORT_TYPES: list[str] = [
    "summary",
    "holdings",
    "transactions",
    "sectors",
    "recovery",
    "gains",
    "dividends",
    "recommendations",
    "charts",
]


def _parse_month(value: str) -> tuple[int, int]:
    try:
        year, month = (int(part) for part in value.split("-"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid month '{value}', expected YYYY-MM")
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"Invalid month '{value}', expected YYYY-MM")
    return year, month


@CommandRegistry.register
class ReportCommand(Command):
    """Command to generate reports."""

    name: str = "report"
    help: str = "Show portfolio reports"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        """Configure the argument parser for the report command."""
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument(
            "type", nargs="?", default="summary", choices=REPORT_TYPES, help="Type of report"
        )
        _ = parser.add_argument(
            "--limit", type=int, help="Maximum number of transactions to show"
        )
        _ = parser.add_argument(
            "--month", type=_parse_month, help="Dividend calendar month (YYYY-MM)"
        )
        _ = parser.add_argument(
            "--refresh", action="store_true", help="Regenerate recommendations"
        )
        _ = parser.add_argument("--output", type=Path, help="Write chart data to this file")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        """Execute the report command."""
        report_type: str = str(args.type)
        portfolio = self.portfolio

        if report_type == "summary":
            display_summary(portfolio.metrics(), portfolio.top_performers(), portfolio.gain_loss_split())
        elif report_type == "holdings":
            display_holdings(portfolio.get_all_stocks())
        elif report_type == "transactions":
            display_transactions(portfolio.get_all_transactions(), args.limit)
        elif report_type == "sectors":
            display_sectors(portfolio.sector_performance())
        elif report_type == "recovery":
            display_recovery(portfolio.recovery_potential())
        elif report_type == "gains":
            display_gain_loss(portfolio.gain_loss_split())
        elif report_type == "dividends":
            self._dividend_report(args.month)
        elif report_type == "recommendations":
            recommendation_service: RecommendationService = self.container.get_service(
                RecommendationService
            )
            display_recommendations(
                recommendation_service.get_recommendations(
                    portfolio.get_all_stocks(), force_refresh=args.refresh
                )
            )
        elif report_type == "charts":
            payload = dashboard_json(portfolio.snapshot())
            if args.output:
                args.output.parent.mkdir(parents=True, exist_ok=True)
                _ = args.output.write_text(payload, encoding="utf-8")
                notify(f"Chart data written to {args.output}", "success")
            else:
                print(payload)

        return 0

    def _dividend_report(self, month: tuple[int, int] | None) -> None:
        dividend_service: DividendService = self.container.get_service(DividendService)
        if month:
            year, month_number = month
            display_calendar(year, month_number, dividend_service.calendar(year, month_number))
            return

        if not dividend_service.get_all_dividends():
            print("No dividend data. Run 'stock-dashboard refresh dividends' first.")
            return

        display_dividends(
            upcoming=dividend_service.upcoming_dividends(),
            history=dividend_service.monthly_history(),
            annual_income=dividend_service.annual_dividend_income(),
            portfolio_yield=dividend_service.portfolio_yield(self.portfolio.metrics().total_value),
            monthly_average=dividend_service.monthly_average(),
        )
        today = date.today()
        display_calendar(today.year, today.month, dividend_service.calendar(today.year, today.month))
