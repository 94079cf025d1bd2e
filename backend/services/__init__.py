"""
Services
Background services feeding the core.
"""

from .price_feed import PriceFeedService, FeedStats, get_price_feed

__all__ = ["PriceFeedService", "FeedStats", "get_price_feed"]
