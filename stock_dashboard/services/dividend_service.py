import calendar as month_calendar
import logging
from collections.abc import Sequence
from datetime import date, timedelta

import pandas as pd
import yfinance as yf

from stock_dashboard.errors import UpstreamError
from stock_dashboard.models import CalendarDay, Dividend, Holding, MonthlyDividends
from stock_dashboard.repositories.dividend_repository import DividendRepository
from stock_dashboard.utils.formatting import generate_id

logger = logging.getLogger(__name__)

# Dividends are assumed to be paid quarterly when annualising
PAYMENTS_PER_YEAR = 4


class DividendService:
    """Service for fetching, storing and summarising dividend data."""

    def __init__(self, dividend_repository: DividendRepository, user_id: str, lookback_days: int = 365):
        self.dividend_repo = dividend_repository
        self.user_id = user_id
        self.lookback_days = lookback_days

    def fetch_and_store_dividends(self, holding: Holding, today: date | None = None) -> list[Dividend]:
        """
        Fetch recent dividend history for a holding from yfinance and store it.

        Ex-dates older than the lookback window are ignored and ex-dates already
        stored for the holding are not stored twice.

        Args:
            holding: Holding to fetch dividends for
            today: Reference date for the lookback window (defaults to today)

        Returns:
            The holding's dividends within the window, both new and already stored

        Raises:
            UpstreamError: If yfinance fails
        """
        today = today or date.today()
        cutoff: date = today - timedelta(days=self.lookback_days)
        logger.info(f"Fetching dividend history for {holding.ticker}")

        try:
            dividends: pd.Series = yf.Ticker(holding.ticker).dividends
        except Exception as e:
            raise UpstreamError(f"Failed to fetch dividends for {holding.ticker}: {e}") from e

        if dividends is None or dividends.empty:
            logger.info(f"No dividend history found for {holding.ticker}")
            return []

        stored_dividends: list[Dividend] = []
        for date_idx, amount in dividends.items():
            ex_date: date = date_idx.date() if hasattr(date_idx, "date") else date_idx
            if ex_date < cutoff or pd.isna(amount):
                continue

            # Check if this dividend already exists
            existing = self.dividend_repo.get_dividend_by_ex_date(self.user_id, holding.id, ex_date)
            if existing:
                logger.debug(f"Dividend already exists for {holding.ticker} on {ex_date}")
                stored_dividends.append(existing)
                continue

            amount_per_share = float(amount)
            dividend = Dividend(
                id=generate_id(),
                user_id=self.user_id,
                stock_id=holding.id,
                ticker=holding.ticker,
                stock_name=holding.name,
                ex_date=ex_date,
                payment_date=self._estimate_payment_date(ex_date),
                amount_per_share=amount_per_share,
                total_amount=amount_per_share * holding.units,
                units=holding.units,
            )
            _ = self.dividend_repo.insert(dividend)
            stored_dividends.append(dividend)

        logger.info(f"Stored {len(stored_dividends)} dividends for {holding.ticker}")
        return stored_dividends

    def refresh_dividends(self, holdings: Sequence[Holding]) -> int:
        """
        Fetch dividends for every holding, skipping symbols that fail.

        Returns:
            Number of holdings refreshed successfully
        """
        refreshed = 0
        for holding in holdings:
            try:
                _ = self.fetch_and_store_dividends(holding)
                refreshed += 1
            except UpstreamError as e:
                logger.error(f"Error fetching dividends for {holding.ticker}: {e}")
        return refreshed

    def get_all_dividends(self) -> list[Dividend]:
        return self.dividend_repo.get_dividends_for_user(self.user_id)

    def upcoming_dividends(self, days: int = 30, today: date | None = None) -> list[Dividend]:
        """Dividends going ex within the next `days` days, soonest first."""
        today = today or date.today()
        horizon = today + timedelta(days=days)
        upcoming = [d for d in self.get_all_dividends() if today <= d.ex_date <= horizon]
        return sorted(upcoming, key=lambda d: d.ex_date)

    def annual_dividend_income(self) -> float:
        """Most recent dividend of each ticker, annualised."""
        latest: dict[str, Dividend] = {}
        for dividend in self.get_all_dividends():
            current = latest.get(dividend.ticker)
            if current is None or dividend.ex_date > current.ex_date:
                latest[dividend.ticker] = dividend
        return sum(d.total_amount * PAYMENTS_PER_YEAR for d in latest.values())

    def portfolio_yield(self, portfolio_value: float) -> float:
        if not portfolio_value:
            return 0.0
        return self.annual_dividend_income() / portfolio_value * 100

    def monthly_average(self) -> float:
        return self.annual_dividend_income() / 12

    def calendar(self, year: int, month: int) -> dict[int, CalendarDay]:
        """
        Ex-dividend dates and payments for each day of a month.

        Returns:
            Day of month -> CalendarDay, only for days with at least one event
        """
        days: dict[int, CalendarDay] = {}
        _, last_day = month_calendar.monthrange(year, month)
        for dividend in self.get_all_dividends():
            if (dividend.ex_date.year, dividend.ex_date.month) == (year, month):
                day = days.setdefault(dividend.ex_date.day, CalendarDay(day=dividend.ex_date.day))
                day.ex_dividends.append(dividend)
            if (dividend.payment_date.year, dividend.payment_date.month) == (year, month):
                day = days.setdefault(
                    dividend.payment_date.day, CalendarDay(day=dividend.payment_date.day)
                )
                day.payments.append(dividend)
        logger.debug(f"{len(days)} of {last_day} days in {year}-{month:02d} have dividend events")
        return dict(sorted(days.items()))

    def monthly_history(self, today: date | None = None) -> list[MonthlyDividends]:
        """Paid dividends grouped by payment month, oldest first."""
        today = today or date.today()
        months: dict[str, MonthlyDividends] = {}
        paid = sorted(
            (d for d in self.get_all_dividends() if d.payment_date <= today),
            key=lambda d: d.payment_date,
        )
        for dividend in paid:
            key = dividend.payment_date.strftime("%Y-%m")
            entry = months.setdefault(key, MonthlyDividends(month=key, total=0.0, reinvested=0.0, cash=0.0))
            entry.total += dividend.total_amount
            if dividend.reinvested:
                entry.reinvested += dividend.total_amount
            else:
                entry.cash += dividend.total_amount
        return list(months.values())

    def _estimate_payment_date(self, ex_date: date) -> date:
        """
        Estimate payment date based on ex-date.

        yfinance only provides ex-dates; payment typically follows two to four
        weeks later, so ex_date + 15 days is used.
        """
        return ex_date + timedelta(days=15)
