import logging
from collections.abc import Sequence

from stock_dashboard.models import Holding, Recommendations
from stock_dashboard.utils.formatting import round_half_up

logger = logging.getLogger(__name__)

STANDARD_SECTORS: list[str] = [
    "Technology",
    "Healthcare",
    "Financials",
    "Consumer Discretionary",
    "Communication Services",
    "Industrials",
    "Consumer Staples",
    "Energy",
    "Utilities",
    "Real Estate",
    "Materials",
]

CONCENTRATION_THRESHOLD = 25.0  # percent of portfolio value in one sector
VOLATILITY_RANGE_RATIO = 2.0  # 52-week high / low
VOLATILE_SHARE_THRESHOLD = 0.3  # share of holdings that are volatile
GAINER_RATIO = 1.2
LOSER_RATIO = 0.8

GENERAL_ADVICE = (
    "Based on your portfolio composition, I recommend regular quarterly reviews to ensure "
    "alignment with your financial goals. Consider setting up price alerts for your holdings "
    "to stay informed about significant movements without constant monitoring. Additionally, "
    "maintaining a cash reserve of 5-10% would provide flexibility to capitalize on future "
    "opportunities."
)

RULE_BASED = Recommendations(
    diversification="Consider diversifying your portfolio across more sectors to reduce risk.",
    risk=(
        "Your portfolio contains a mix of stable and volatile stocks. Consider your risk "
        "tolerance when adding new positions."
    ),
    rebalancing=(
        "Regular rebalancing helps maintain your target asset allocation. Consider reviewing "
        "quarterly."
    ),
    tax_loss="Look for opportunities to harvest tax losses near the end of the tax year.",
    general="Dollar-cost averaging can help reduce the impact of market volatility on your portfolio.",
)


def _tickers(holdings: Sequence[Holding]) -> str:
    return ", ".join(h.ticker for h in holdings)


def missing_sectors(present: Sequence[str], limit: int = 3) -> list[str]:
    """Standard sectors not yet held, in the standard order."""
    return [s for s in STANDARD_SECTORS if s not in present][:limit]


def is_volatile(holding: Holding) -> bool:
    """A 52-week high more than twice the low. Unknown ranges are not volatile."""
    if holding.low_52_week is None or holding.high_52_week is None:
        return False
    if holding.low_52_week == 0:
        return holding.high_52_week > 0
    return holding.high_52_week / holding.low_52_week > VOLATILITY_RANGE_RATIO


class RecommendationService:
    """
    Rule-based portfolio recommendations.

    The last result is kept and returned until a refresh is forced.
    """

    def __init__(self) -> None:
        self.last_recommendations: Recommendations | None = None

    def get_recommendations(
        self, holdings: Sequence[Holding], force_refresh: bool = False
    ) -> Recommendations:
        if self.last_recommendations is None or force_refresh:
            self.last_recommendations = self.generate(holdings)
        return self.last_recommendations

    def generate(self, holdings: Sequence[Holding]) -> Recommendations:
        if not holdings:
            logger.debug("No holdings, using generic recommendations")
            return RULE_BASED

        losers = [h for h in holdings if h.current_price < h.avg_cost * LOSER_RATIO]
        gainers = [h for h in holdings if h.current_price > h.avg_cost * GAINER_RATIO]
        recommendations = Recommendations(
            diversification=self._diversification(holdings),
            risk=self._risk(holdings),
            rebalancing=self._rebalancing(gainers, losers),
            tax_loss=self._tax_loss(losers),
            general=GENERAL_ADVICE,
        )
        logger.info(
            f"Generated recommendations for {len(holdings)} holdings "
            f"({len(gainers)} gainers, {len(losers)} losers)"
        )
        return recommendations

    @staticmethod
    def _diversification(holdings: Sequence[Holding]) -> str:
        sectors: dict[str, float] = {}
        for h in holdings:
            sectors[h.sector] = sectors.get(h.sector, 0.0) + h.market_value
        total_value = sum(sectors.values())
        percentages = {
            sector: (value / total_value * 100 if total_value else 0.0)
            for sector, value in sectors.items()
        }

        concentrated = [s for s, pct in percentages.items() if pct > CONCENTRATION_THRESHOLD]
        if not concentrated:
            return (
                "Your portfolio demonstrates good diversification across sectors, with no single "
                "sector exceeding 25%. This balanced approach helps mitigate sector-specific risks. "
                "Continue monitoring to maintain this healthy distribution."
            )

        plural = "s" if len(concentrated) > 1 else ""
        shares = "%, ".join(str(round_half_up(percentages[s])) for s in concentrated)
        return (
            f"Your portfolio shows high concentration in the {', '.join(concentrated)} "
            f"sector{plural}, representing {shares}% of your portfolio. Consider diversifying "
            f"into other sectors like {', '.join(missing_sectors(list(sectors)))} to reduce risk."
        )

    @staticmethod
    def _risk(holdings: Sequence[Holding]) -> str:
        volatile = [h for h in holdings if is_volatile(h)]
        if len(volatile) <= len(holdings) * VOLATILE_SHARE_THRESHOLD:
            return (
                "Your portfolio's overall volatility appears balanced, with most holdings showing "
                "moderate price stability. This suggests a reasonable risk profile. Consider setting "
                "up stop-loss orders for any particularly volatile positions to protect against "
                "sudden market downturns."
            )

        share = round_half_up(len(volatile) / len(holdings) * 100)
        others = ", and others" if len(volatile) > 3 else ""
        return (
            f"Your portfolio contains {len(volatile)} volatile stocks ({share}% of holdings) "
            f"including {_tickers(volatile[:3])}{others}. These stocks have shown significant "
            "price swings over the past year. Consider balancing with more stable investments "
            "to reduce overall portfolio volatility."
        )

    @staticmethod
    def _rebalancing(gainers: Sequence[Holding], losers: Sequence[Holding]) -> str:
        if gainers:
            text = (
                f"Consider taking partial profits on {_tickers(gainers)}, which have gained over "
                "20% from your purchase price. Rebalancing these positions would lock in gains "
                "and reduce exposure to potential corrections."
            )
            if losers:
                text += (
                    " You might consider reallocating some of these gains to average down on "
                    f"underperforming positions like {_tickers(losers)}, if you still believe in "
                    "their long-term potential."
                )
            return text
        if losers:
            return (
                f"Several positions including {_tickers(losers)} are down over 20% from your "
                "purchase price. Consider reevaluating these holdings based on their current "
                "fundamentals to determine whether averaging down or cutting losses would be "
                "more appropriate."
            )
        return (
            "Your portfolio appears well-balanced with most positions within 20% of their "
            "purchase prices. Continue monitoring position sizes to ensure they align with your "
            "investment goals and risk tolerance."
        )

    @staticmethod
    def _tax_loss(losers: Sequence[Holding]) -> str:
        if losers:
            return (
                f"Potential tax loss harvesting candidates include {_tickers(losers)}, which are "
                "down more than 20%. Consider selling these positions to offset capital gains, "
                "potentially reducing your tax liability. Remember the wash-sale rule if you plan "
                "to rebuy within 30 days."
            )
        return (
            "No significant tax loss harvesting opportunities identified at this time. Most "
            "positions are either at a gain or minor loss, making tax-loss selling less "
            "beneficial. Continue monitoring for opportunities as market conditions change."
        )
