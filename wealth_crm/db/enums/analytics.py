"""Analytics enums."""

from enum import Enum


class PeriodType(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class SnapshotType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class ProfitabilityTier(str, Enum):
    """Client tier derived from the composite profitability score."""

    PLATINUM = "platinum"
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
