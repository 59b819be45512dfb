"""
Pricing Agent - Quote every open job that has no price yet.
"""

import logging
from collections import deque
from typing import Optional

from ..pricing import PricingEngine
from ..state import DispatchState
from .base import SchedulingUnit, UnitResult

logger = logging.getLogger(__name__)


class PricingAgent(SchedulingUnit):
    """
    Scheduling unit wrapping the pricing engine.

    Runs above the matcher so that matching sees prices attached in the
    same cycle.
    """

    def __init__(
        self,
        engine: Optional[PricingEngine] = None,
        name: str = "PRICING",
        priority: int = 90,
        history_size: int = 100,
    ):
        self.engine = engine or PricingEngine()
        self.name = name
        self.priority = priority
        self.quotes_generated = 0
        self.price_history: deque[float] = deque(maxlen=history_size)

    @property
    def average_price(self) -> float:
        if not self.price_history:
            return 0.0
        return sum(self.price_history) / len(self.price_history)

    def init(self) -> None:
        logger.info(
            "Pricing agent ready | base margin %.0f%%",
            self.engine.config.base_margin * 100,
        )

    def execute(self, state: DispatchState) -> UnitResult:
        market = state.market or self.engine.neutral_market()

        priced = 0
        for job in state.unpriced_jobs():
            quote = self.engine.price(job, market)
            job.apply_quote(quote)
            priced += 1

            self.quotes_generated += 1
            self.price_history.append(quote.amount)

        return UnitResult(
            summary=f"{priced} quotes | avg price {self.average_price:.0f}",
            details={
                "priced": priced,
                "average_price": round(self.average_price, 2),
                "quotes_generated": self.quotes_generated,
            },
        )
