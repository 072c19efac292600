"""Domain logic for a casting marketplace: casting applications, promotions, reviews, subscriptions with plan limits, and uploads."""

__version__ = "0.1.0"