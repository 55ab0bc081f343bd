"""Global enums — values must match DB CHECK constraints exactly."""

from enum import Enum


class Outcome(str, Enum):
    YES = "YES"
    NO = "NO"


class MarketStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    RESOLVED = "RESOLVED"


class LogMode(str, Enum):
    """log2 approximation used by the pricer; every party in a channel must agree."""
    COARSE = "COARSE"
    PRECISE = "PRECISE"


class ResolutionStatus(str, Enum):
    PENDING = "PENDING"
    FINALIZED = "FINALIZED"
    CHALLENGED = "CHALLENGED"
