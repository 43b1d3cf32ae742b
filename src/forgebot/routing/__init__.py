"""Swap aggregators: quotes and ready-to-sign swap payloads."""

from forgebot.routing.base import SwapAggregator, SwapQuote, SwapTransaction

__all__ = ["SwapAggregator", "SwapQuote", "SwapTransaction"]
