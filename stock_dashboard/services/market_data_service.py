import logging
import math
import time
from collections.abc import Sequence
from datetime import date
from typing import Any

import pandas as pd
import yfinance as yf

from stock_dashboard.errors import UpstreamError
from stock_dashboard.models import Holding, PriceUpdate, Quote, SymbolMatch, WeekRange

logger = logging.getLogger(__name__)


def parse_number(value: Any, field_name: str) -> float:
    """
    Strictly parse a numeric field from market data.

    Strings may carry '%' signs and thousands separators ("1,234.5", "-0.42%").

    Raises:
        UpstreamError: If the value is missing, non-numeric or NaN
    """
    if value is None or isinstance(value, bool):
        raise UpstreamError(f"Missing numeric field '{field_name}'")
    if isinstance(value, str):
        value = value.strip().rstrip("%").replace(",", "")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise UpstreamError(f"Invalid numeric field '{field_name}': {value!r}") from e
    if math.isnan(number):
        raise UpstreamError(f"Missing numeric field '{field_name}'")
    return number


class MarketDataService:
    """
    Quotes and 52-week ranges from Yahoo Finance, cached for a short time.

    Cache entries are keyed 'price_<symbol>' and 'range_<symbol>'.
    """

    def __init__(
        self,
        cache_seconds: float = 60,
        batch_size: int = 5,
        batch_delay_seconds: float = 1.0,
    ):
        self.cache_seconds = cache_seconds
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self._cache: dict[str, tuple[float, Any]] = {}

    def _cached(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at >= self.cache_seconds:
            del self._cache[key]
            return None
        logger.debug(f"Cache hit for {key}")
        return value

    def _store(self, key: str, value: Any) -> None:
        self._cache[key] = (time.monotonic(), value)

    def clear_cache(self) -> None:
        self._cache.clear()

    @staticmethod
    def _history(symbol: str, **kwargs: Any) -> pd.DataFrame:
        try:
            history: pd.DataFrame = yf.Ticker(symbol).history(**kwargs)
        except Exception as e:
            raise UpstreamError(f"Failed to fetch market data for {symbol}: {e}") from e
        if history is None or history.empty:
            raise UpstreamError(f"No market data returned for {symbol}")
        return history

    def get_quote(self, symbol: str) -> Quote:
        """
        Latest daily quote for a symbol.

        Raises:
            UpstreamError: If the symbol has no data or a field is malformed
        """
        symbol = symbol.strip().upper()
        key = f"price_{symbol}"
        cached = self._cached(key)
        if cached is not None:
            return cached

        logger.debug(f"Fetching quote for {symbol}")
        history = self._history(symbol, period="5d")
        for column in ("Close", "High", "Low", "Volume"):
            if column not in history.columns:
                raise UpstreamError(f"Quote for {symbol} is missing '{column}'")

        last = history.iloc[-1]
        price = parse_number(last["Close"], "Close")
        if len(history) > 1:
            previous_close = parse_number(history.iloc[-2]["Close"], "Close")
        else:
            previous_close = price
        change = price - previous_close
        change_percent = change / previous_close * 100 if previous_close else 0.0

        as_of: Any = history.index[-1]
        quote = Quote(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            high=parse_number(last["High"], "High"),
            low=parse_number(last["Low"], "Low"),
            volume=int(parse_number(last["Volume"], "Volume")),
            as_of_date=as_of.date() if hasattr(as_of, "date") else date.today(),
        )
        self._store(key, quote)
        return quote

    def get_52_week_range(self, symbol: str) -> WeekRange:
        """
        Highest high and lowest low of the weekly bars over the last year.

        Raises:
            UpstreamError: If the symbol has no data or a field is malformed
        """
        symbol = symbol.strip().upper()
        key = f"range_{symbol}"
        cached = self._cached(key)
        if cached is not None:
            return cached

        logger.debug(f"Fetching 52-week range for {symbol}")
        history = self._history(symbol, period="1y", interval="1wk")
        if "High" not in history.columns or "Low" not in history.columns:
            raise UpstreamError(f"52-week data for {symbol} is missing High/Low")

        week_range = WeekRange(
            symbol=symbol,
            high_52_week=parse_number(history["High"].max(), "High"),
            low_52_week=parse_number(history["Low"].min(), "Low"),
        )
        self._store(key, week_range)
        return week_range

    def search_symbols(self, keywords: str, max_results: int = 10) -> list[SymbolMatch]:
        """Look up ticker symbols matching free text."""
        logger.debug(f"Searching for symbols which match: {keywords}")
        try:
            result: yf.Search = yf.Search(
                query=keywords, max_results=max_results, news_count=0, lists_count=0
            )
            quotes = result.quotes
        except Exception as e:
            raise UpstreamError(f"Symbol search failed for '{keywords}': {e}") from e

        return [
            SymbolMatch(
                symbol=quote.get("symbol", ""),
                name=quote.get("longname") or quote.get("shortname") or "",
                quote_type=quote.get("quoteType", ""),
                exchange=quote.get("exchange", ""),
            )
            for quote in quotes
            if quote.get("symbol")
        ]

    def update_prices(self, holdings: Sequence[Holding]) -> list[PriceUpdate]:
        """
        Fetch current prices for holdings in batches, pausing between batches.

        Symbols that fail are logged and left out of the result.
        """
        updates: list[PriceUpdate] = []
        for start in range(0, len(holdings), self.batch_size):
            if start > 0 and self.batch_delay_seconds > 0:
                time.sleep(self.batch_delay_seconds)

            for holding in holdings[start : start + self.batch_size]:
                try:
                    quote = self.get_quote(holding.ticker)
                except UpstreamError as e:
                    logger.error(f"Error updating price for {holding.ticker}: {e}")
                    continue
                updates.append(PriceUpdate(id=holding.id, current_price=quote.price))

        logger.info(f"Fetched prices for {len(updates)} of {len(holdings)} holdings")
        return updates
