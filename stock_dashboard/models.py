# models.py
from dataclasses import dataclass, field
from datetime import datetime, date


@dataclass(frozen=True)
class Holding:
    id: str
    name: str
    ticker: str
    units: float
    avg_cost: float
    current_price: float
    sector: str = "Other"
    low_52_week: float | None = None
    high_52_week: float | None = None
    notes: str = ""
    date_added: datetime = field(default_factory=datetime.now)
    user_id: str = ""
    last_updated: datetime | None = None

    @property
    def market_value(self) -> float:
        return self.units * self.current_price

    @property
    def cost_basis(self) -> float:
        return self.units * self.avg_cost


@dataclass(frozen=True)
class Transaction:
    """
    An append-only ledger entry for a buy or sell.

    The ticker and stock name are copied from the holding at the time of the
    trade, so the entry outlives the holding it refers to.
    """

    id: str
    type: str  # "buy" or "sell"
    stock_id: str
    ticker: str
    stock_name: str
    units: float
    price: float
    date: datetime
    gain_or_loss: float | None = None  # Sell only
    notes: str = ""
    user_id: str = ""


@dataclass
class SellResult:
    fully_sold: bool
    transaction: Transaction
    holding: Holding | None = None  # None once the position is closed


@dataclass
class PortfolioMetrics:
    total_value: float
    total_cost: float
    total_gain_loss: float
    total_gain_loss_percent: float
    stocks_count: int
    gainers_count: int
    losers_count: int


@dataclass
class HoldingPerformance:
    holding: Holding
    gain_loss_value: float
    gain_loss_percent: float


@dataclass
class TopPerformers:
    best: HoldingPerformance | None
    worst: HoldingPerformance | None


@dataclass
class SectorAllocation:
    sector: str
    value: float
    percentage: float  # NaN when the portfolio is worth nothing


@dataclass
class GainLossSplit:
    unrealized_gain: float
    unrealized_loss: float
    realized_gain: float
    realized_loss: float

    @property
    def total_unrealized(self) -> float:
        return self.unrealized_gain - self.unrealized_loss

    @property
    def total_realized(self) -> float:
        return self.realized_gain - self.realized_loss


@dataclass
class RecoveryPotential:
    id: str
    name: str
    ticker: str
    current_price: float
    avg_cost: float
    percent_down: float
    percent_to_breakeven: float


@dataclass
class SectorPerformance:
    sector: str
    total_value: float
    total_cost: float
    performance: float
    allocation: float


@dataclass
class PortfolioSnapshot:
    """
    Everything the dashboard renders, broadcast after each ledger change.
    """

    holdings: list[Holding]
    transactions: list[Transaction]
    metrics: PortfolioMetrics
    performers: TopPerformers
    sector_allocation: list[SectorAllocation]
    gain_loss: GainLossSplit
    recovery: list[RecoveryPotential]
    sector_performance: list[SectorPerformance]


@dataclass
class Quote:
    symbol: str
    price: float
    change: float
    change_percent: float
    high: float
    low: float
    volume: int
    as_of_date: date


@dataclass
class WeekRange:
    symbol: str
    high_52_week: float
    low_52_week: float


@dataclass
class PriceUpdate:
    id: str
    current_price: float


@dataclass
class SymbolMatch:
    symbol: str
    name: str
    quote_type: str
    exchange: str


@dataclass
class Dividend:
    id: str
    user_id: str
    stock_id: str
    ticker: str
    stock_name: str
    ex_date: date
    payment_date: date
    amount_per_share: float
    total_amount: float
    units: float
    reinvested: bool = False
    notes: str = ""


@dataclass
class MonthlyDividends:
    month: str  # YYYY-MM
    total: float
    reinvested: float
    cash: float


@dataclass
class CalendarDay:
    day: int
    ex_dividends: list[Dividend] = field(default_factory=list)
    payments: list[Dividend] = field(default_factory=list)


@dataclass
class Recommendations:
    diversification: str
    risk: str
    rebalancing: str
    tax_loss: str
    general: str
