import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from stock_dashboard.errors import ImportFormatError, NotFoundError, UpstreamError, ValidationError
from stock_dashboard.importer import validate_import_data
from stock_dashboard.models import (
    GainLossSplit,
    Holding,
    HoldingPerformance,
    PortfolioMetrics,
    PortfolioSnapshot,
    PriceUpdate,
    RecoveryPotential,
    SectorAllocation,
    SectorPerformance,
    SellResult,
    TopPerformers,
    Transaction,
    WeekRange,
)
from stock_dashboard.services import valuation
from stock_dashboard.store import PortfolioStore
from stock_dashboard.utils.formatting import generate_id
from stock_dashboard.utils.model_utils import ModelFactory
from stock_dashboard.utils.type_utils import convert_type

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[PortfolioSnapshot], None]


class MarketDataSource(Protocol):
    """The part of the market data client the ledger needs."""

    def update_prices(self, holdings: Sequence[Holding]) -> list[PriceUpdate]: ...

    def get_52_week_range(self, symbol: str) -> WeekRange: ...


def _parse_number(value: Any, field_name: str) -> float:
    """Parse a finite number from user input, raising ValidationError otherwise."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required")
    try:
        return convert_type(value, float)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be a valid number, got {value!r}") from e


def _parse_optional_number(value: Any, field_name: str) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = _parse_number(value, field_name)
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return number


class PortfolioService:
    """
    The portfolio ledger: holdings, the append-only transaction history and
    every figure derived from them.

    Mutations validate first, then write the store, then update the in-memory
    lists and broadcast a PortfolioSnapshot. A failed operation leaves the
    ledger untouched.
    """

    def __init__(self, store: PortfolioStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self.holdings: list[Holding] = []
        self.transactions: list[Transaction] = []
        self._listeners: list[SnapshotCallback] = []
        self._saving = False

        holdings, transactions = store.load_snapshot(user_id)
        self.holdings = list(holdings)
        self.transactions = list(transactions)
        self._unsubscribe_store = store.subscribe(user_id, self.apply_snapshot)
        logger.debug(
            f"Loaded {len(self.holdings)} holdings and {len(self.transactions)} "
            f"transactions for user {user_id}"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_stocks(self) -> list[Holding]:
        return list(self.holdings)

    def get_all_transactions(self) -> list[Transaction]:
        return list(self.transactions)

    def get_stock_by_id(self, holding_id: str) -> Holding | None:
        return next((h for h in self.holdings if h.id == holding_id), None)

    def _require(self, holding_id: str) -> Holding:
        holding = self.get_stock_by_id(holding_id)
        if holding is None:
            raise NotFoundError(holding_id)
        return holding

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_holding(self, data: Mapping[str, Any]) -> Holding:
        """
        Open a new position and record the initial purchase as a buy.

        Args:
            data: name, ticker, units, price (becomes avg_cost), current_price and
                optionally sector, low_52_week, high_52_week, notes, date

        Returns:
            The created holding

        Raises:
            ValidationError: On missing names, non-numeric or out of range values
        """
        name = str(data.get("name") or "").strip()
        ticker = str(data.get("ticker") or "").strip().upper()
        if not name or not ticker:
            raise ValidationError("Stock name and ticker are required")

        units = _parse_number(data.get("units"), "Units")
        price = _parse_number(data.get("price"), "Purchase price")
        current_price = _parse_number(data.get("current_price"), "Current price")
        if units <= 0:
            raise ValidationError("Units must be greater than zero")
        if price < 0 or current_price < 0:
            raise ValidationError("Prices cannot be negative")
        low_52_week = _parse_optional_number(data.get("low_52_week"), "52-week low")
        high_52_week = _parse_optional_number(data.get("high_52_week"), "52-week high")

        now = datetime.now()
        purchase_date = data.get("date") or now
        notes = str(data.get("notes") or "")

        holding = Holding(
            id=generate_id(),
            name=name,
            ticker=ticker,
            units=units,
            avg_cost=price,
            current_price=current_price,
            sector=str(data.get("sector") or "Other"),
            low_52_week=low_52_week,
            high_52_week=high_52_week,
            notes=notes,
            date_added=now,
            user_id=self.user_id,
        )
        transaction = self._new_transaction(
            "buy", holding, units, price, purchase_date, notes or "Initial purchase"
        )

        self._save(holdings=[holding], transactions=[transaction])
        self._upsert_local(holding)
        self._append_local(transaction)
        logger.info(f"Added {units} units of {ticker} at {price}")
        self._broadcast()
        return holding

    def buy_more(
        self,
        holding_id: str,
        units: Any,
        price: Any,
        date: datetime | None = None,
        notes: str = "",
    ) -> Holding:
        """Add units to a holding, moving its average cost to the weighted average."""
        holding = self._require(holding_id)
        units = _parse_number(units, "Units")
        price = _parse_number(price, "Price")
        if units <= 0 or price <= 0:
            raise ValidationError("Units and price must be greater than zero")

        new_units = holding.units + units
        new_avg_cost = (holding.avg_cost * holding.units + price * units) / new_units
        updated = replace(holding, units=new_units, avg_cost=new_avg_cost)
        transaction = self._new_transaction("buy", holding, units, price, date, notes)

        self._save(holdings=[updated], transactions=[transaction])
        self._upsert_local(updated)
        self._append_local(transaction)
        logger.info(f"Bought {units} more {holding.ticker} at {price}, avg cost now {new_avg_cost:.4f}")
        self._broadcast()
        return updated

    def sell(
        self,
        holding_id: str,
        units: Any,
        price: Any,
        date: datetime | None = None,
        notes: str = "",
    ) -> SellResult:
        """
        Sell units of a holding, realising (price - avg_cost) * units.

        Selling every unit closes the position; the average cost of a partial
        sale is left unchanged.
        """
        holding = self._require(holding_id)
        try:
            units = _parse_number(units, "Units")
        except ValidationError as e:
            raise ValidationError("Invalid number of units to sell") from e
        if units <= 0 or units > holding.units:
            raise ValidationError("Invalid number of units to sell")
        price = _parse_number(price, "Price")
        if price < 0:
            raise ValidationError("Price cannot be negative")

        gain_or_loss = (price - holding.avg_cost) * units
        transaction = self._new_transaction(
            "sell", holding, units, price, date, notes, gain_or_loss=gain_or_loss
        )

        if units == holding.units:
            self._save(deleted_ids=[holding.id], transactions=[transaction])
            self._remove_local(holding.id)
            self._append_local(transaction)
            logger.info(f"Sold all {units} units of {holding.ticker}, position closed")
            self._broadcast()
            return SellResult(fully_sold=True, transaction=transaction, holding=None)

        updated = replace(holding, units=holding.units - units)
        self._save(holdings=[updated], transactions=[transaction])
        self._upsert_local(updated)
        self._append_local(transaction)
        logger.info(f"Sold {units} units of {holding.ticker}, {updated.units} remaining")
        self._broadcast()
        return SellResult(fully_sold=False, transaction=transaction, holding=updated)

    def delete(self, holding_id: str) -> None:
        """Remove a holding without recording a transaction."""
        holding = self._require(holding_id)
        self._save(deleted_ids=[holding_id])
        self._remove_local(holding_id)
        logger.info(f"Deleted holding {holding.ticker} ({holding_id})")
        self._broadcast()

    def set_current_price(self, holding_id: str, price: Any) -> Holding:
        holding = self._require(holding_id)
        price = _parse_number(price, "Current price")
        if price < 0:
            raise ValidationError("Current price cannot be negative")

        updated = replace(holding, current_price=price, last_updated=datetime.now())
        self._save(holdings=[updated])
        self._upsert_local(updated)
        logger.debug(f"Set current price of {holding.ticker} to {price}")
        self._broadcast()
        return updated

    def set_week_range(self, holding_id: str, low: Any, high: Any) -> Holding:
        holding = self._require(holding_id)
        updated = replace(
            holding,
            low_52_week=_parse_optional_number(low, "52-week low"),
            high_52_week=_parse_optional_number(high, "52-week high"),
        )
        self._save(holdings=[updated])
        self._upsert_local(updated)
        self._broadcast()
        return updated

    def update_prices(self, market_data: MarketDataSource) -> list[PriceUpdate]:
        """
        Refresh current prices of every holding from the market data client.

        Symbols that fail upstream are left at their old price.

        Returns:
            The price updates that were applied
        """
        if not self.holdings:
            return []

        updates = market_data.update_prices(self.get_all_stocks())
        now = datetime.now()
        updated: list[Holding] = []
        for update in updates:
            holding = self.get_stock_by_id(update.id)
            if holding is None:
                logger.warning(f"Price update for unknown holding {update.id} ignored")
                continue
            updated.append(replace(holding, current_price=update.current_price, last_updated=now))

        if updated:
            self._save(holdings=updated)
            for holding in updated:
                self._upsert_local(holding)
        self.store.record_price_update(self.user_id, now)
        logger.info(f"Updated prices for {len(updated)} of {len(self.holdings)} holdings")
        self._broadcast()
        return updates

    def update_week_ranges(self, market_data: MarketDataSource) -> list[WeekRange]:
        """Refresh 52-week ranges of every holding, skipping symbols that fail."""
        ranges: list[WeekRange] = []
        updated: list[Holding] = []
        for holding in self.get_all_stocks():
            try:
                week_range = market_data.get_52_week_range(holding.ticker)
            except UpstreamError as e:
                logger.warning(f"Could not fetch 52-week range for {holding.ticker}: {e}")
                continue
            ranges.append(week_range)
            updated.append(
                replace(
                    holding,
                    low_52_week=week_range.low_52_week,
                    high_52_week=week_range.high_52_week,
                )
            )

        if updated:
            self._save(holdings=updated)
            for holding in updated:
                self._upsert_local(holding)
            self._broadcast()
        return ranges

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_data(self) -> dict[str, list[dict[str, Any]]]:
        """The ledger as camelCase, JSON-safe records."""
        transactions = []
        for t in self.transactions:
            record = ModelFactory.to_record(t)
            if record.get("gainOrLoss") is None:
                del record["gainOrLoss"]
            transactions.append(record)
        return {
            "stocks": [ModelFactory.to_record(h) for h in self.holdings],
            "transactions": transactions,
        }

    def import_data(self, data: Any, replace_existing: bool = False) -> tuple[int, int]:
        """
        Load holdings and transactions from an export.

        Args:
            data: Parsed export, {"stocks": [...], "transactions": [...]}
            replace_existing: Replace the whole ledger (IDs kept) instead of merging.
                A merge skips records whose ID already exists and gives ID-less
                records a fresh ID.

        Returns:
            (holdings imported, transactions imported)

        Raises:
            ImportFormatError: If the data is not a valid export
        """
        stock_records, transaction_records = validate_import_data(data)
        holdings = _dedupe(self._record_to_model(Holding, r) for r in stock_records)
        transactions = _dedupe(self._record_to_model(Transaction, r) for r in transaction_records)

        if replace_existing:
            self._saving = True
            try:
                self.store.replace_all(self.user_id, holdings, transactions)
            finally:
                self._saving = False
            self.holdings = holdings
            self.transactions = transactions
            logger.info(f"Replaced ledger with {len(holdings)} holdings and {len(transactions)} transactions")
            self._broadcast()
            return len(holdings), len(transactions)

        known_holdings = {h.id for h in self.holdings}
        known_transactions = {t.id for t in self.transactions}
        new_holdings = [h for h in holdings if h.id not in known_holdings]
        new_transactions = [t for t in transactions if t.id not in known_transactions]

        if new_holdings or new_transactions:
            self._save(holdings=new_holdings, transactions=new_transactions)
            for holding in new_holdings:
                self._upsert_local(holding)
            for transaction in new_transactions:
                self._append_local(transaction)
            self._broadcast()
        logger.info(
            f"Merged {len(new_holdings)} holdings and {len(new_transactions)} transactions, "
            f"skipped {len(holdings) - len(new_holdings)} and {len(transactions) - len(new_transactions)}"
        )
        return len(new_holdings), len(new_transactions)

    def _record_to_model(self, model_class: type, record: Mapping[str, Any]) -> Any:
        record = _clean_record(model_class, record)
        record["userId"] = self.user_id
        if not record.get("id"):
            record["id"] = generate_id()
        try:
            model = ModelFactory.create_from_record(model_class, record)
        except (TypeError, ValueError) as e:
            raise ImportFormatError(f"Invalid {model_class.__name__.lower()} record: {e}") from e
        if isinstance(model, Holding):
            model = replace(model, ticker=model.ticker.upper())
        elif model.type not in ("buy", "sell"):
            raise ImportFormatError(f"Invalid transaction type: {model.type!r}")
        return model

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------

    def metrics(self) -> PortfolioMetrics:
        return valuation.metrics(self.holdings)

    def top_performers(self, metric: str = "percentage") -> TopPerformers:
        return valuation.top_performers(self.holdings, metric)

    def sector_allocation(self) -> list[SectorAllocation]:
        return valuation.sector_allocation(self.holdings)

    def gain_loss_split(self) -> GainLossSplit:
        return valuation.gain_loss_split(self.holdings, self.transactions)

    def recovery_potential(self) -> list[RecoveryPotential]:
        return valuation.recovery_potential(self.holdings)

    def sector_performance(self) -> list[SectorPerformance]:
        return valuation.sector_performance(self.holdings)

    def gainers_losers(
        self, limit: int = 5
    ) -> tuple[list[HoldingPerformance], list[HoldingPerformance]]:
        return valuation.gainers_losers(self.holdings, limit)

    def snapshot(self) -> PortfolioSnapshot:
        return PortfolioSnapshot(
            holdings=self.get_all_stocks(),
            transactions=self.get_all_transactions(),
            metrics=self.metrics(),
            performers=self.top_performers(),
            sector_allocation=self.sector_allocation(),
            gain_loss=self.gain_loss_split(),
            recovery=self.recovery_potential(),
            sector_performance=self.sector_performance(),
        )

    # ------------------------------------------------------------------
    # Change broadcast
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotCallback) -> Callable[[], None]:
        """
        Receive a PortfolioSnapshot after every change to the ledger.

        Returns:
            A function that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_snapshot(self, holdings: list[Holding], transactions: list[Transaction]) -> None:
        """Replace the ledger with a snapshot pushed by the store."""
        self.holdings = list(holdings)
        self.transactions = list(transactions)
        # Our own writes broadcast once the local update is done
        if not self._saving:
            self._broadcast()

    def close(self) -> None:
        self._unsubscribe_store()
        self._listeners.clear()

    def _broadcast(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _save(
        self,
        holdings: Sequence[Holding] = (),
        deleted_ids: Sequence[str] = (),
        transactions: Sequence[Transaction] = (),
    ) -> None:
        self._saving = True
        try:
            self.store.save_changes(
                self.user_id,
                holdings=holdings,
                deleted_ids=deleted_ids,
                transactions=transactions,
            )
        finally:
            self._saving = False

    def _new_transaction(
        self,
        kind: str,
        holding: Holding,
        units: float,
        price: float,
        date: Any,
        notes: str,
        gain_or_loss: float | None = None,
    ) -> Transaction:
        if isinstance(date, str):
            try:
                date = datetime.fromisoformat(date)
            except ValueError as e:
                raise ValidationError(f"Invalid date: {date}") from e
        return Transaction(
            id=generate_id(),
            type=kind,
            stock_id=holding.id,
            ticker=holding.ticker,
            stock_name=holding.name,
            units=units,
            price=price,
            date=date or datetime.now(),
            gain_or_loss=gain_or_loss,
            notes=notes,
            user_id=self.user_id,
        )

    def _upsert_local(self, holding: Holding) -> None:
        for i, existing in enumerate(self.holdings):
            if existing.id == holding.id:
                self.holdings[i] = holding
                return
        self.holdings.append(holding)

    def _remove_local(self, holding_id: str) -> None:
        self.holdings = [h for h in self.holdings if h.id != holding_id]

    def _append_local(self, transaction: Transaction) -> None:
        if all(t.id != transaction.id for t in self.transactions):
            self.transactions.append(transaction)


def _dedupe(records: Any) -> list[Any]:
    """Drop repeated IDs within one import, keeping the first."""
    seen: set[str] = set()
    result = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        result.append(record)
    return result


# Export record fields checked on import: (required strings, positive numbers,
# non-negative numbers, optional non-negative numbers, optional numbers,
# dates that may be left out but not set to null)
_RECORD_FIELDS: dict[str, tuple[tuple[str, ...], ...]] = {
    "Holding": (
        ("name", "ticker"),
        ("units",),
        ("avgCost", "currentPrice"),
        ("low52Week", "high52Week"),
        (),
        ("dateAdded",),
    ),
    "Transaction": (
        ("type", "stockId", "ticker", "stockName"),
        ("units",),
        ("price",),
        (),
        ("gainOrLoss",),
        ("date",),
    ),
}


def _clean_record(model_class: type, record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Check and coerce the values of one export record.

    Numbers given as strings are converted; anything that would leave the
    ledger unusable raises ImportFormatError before it reaches the store.
    """
    kind = model_class.__name__
    strings, positive, non_negative, optional, signed, dates = _RECORD_FIELDS[kind]
    cleaned = dict(record)

    def number(key: str) -> float:
        value = cleaned.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ImportFormatError(f"Invalid {kind.lower()} record: {key} is required")
        try:
            return convert_type(value, float)
        except (TypeError, ValueError) as e:
            raise ImportFormatError(
                f"Invalid {kind.lower()} record: {key} must be a number, got {value!r}"
            ) from e

    for key in strings:
        value = cleaned.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ImportFormatError(f"Invalid {kind.lower()} record: {key} must be a non-empty string")
    for key in positive:
        cleaned[key] = number(key)
        if cleaned[key] <= 0:
            raise ImportFormatError(f"Invalid {kind.lower()} record: {key} must be greater than 0")
    for key in non_negative + optional:
        if key in optional and cleaned.get(key) is None:
            continue
        cleaned[key] = number(key)
        if cleaned[key] < 0:
            raise ImportFormatError(f"Invalid {kind.lower()} record: {key} cannot be negative")
    for key in signed:
        if cleaned.get(key) is not None:
            cleaned[key] = number(key)
    for key in dates:
        if key in cleaned and cleaned[key] is None:
            raise ImportFormatError(f"Invalid {kind.lower()} record: {key} cannot be null")
    return cleaned
