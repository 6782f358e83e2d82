"""Statistics provider implementations."""

from src.providers.statistics.sqlite_statistics_provider import SQLiteStatisticsProvider

__all__ = ["SQLiteStatisticsProvider"]
