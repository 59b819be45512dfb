"""Market context for the haulmatch dispatch core."""

from .context import ExternalSignals, MarketContextProvider, default_signals

__all__ = ["ExternalSignals", "MarketContextProvider", "default_signals"]
