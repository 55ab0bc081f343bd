"""Tests for pm_common.enums — all enum values must match DB CHECK constraints."""

from src.pm_common.enums import LogMode, MarketStatus, Outcome, ResolutionStatus


class TestAllEnumsAreStr:
    """All enums inherit from (str, Enum) for JSON serialization."""

    def test_outcome_is_str(self) -> None:
        assert isinstance(Outcome.YES, str)
        assert Outcome.YES == "YES"

    def test_market_status_is_str(self) -> None:
        assert isinstance(MarketStatus.ACTIVE, str)
        assert MarketStatus.ACTIVE == "ACTIVE"


class TestValues:
    def test_outcome(self) -> None:
        assert {o.value for o in Outcome} == {"YES", "NO"}

    def test_market_status(self) -> None:
        assert {s.value for s in MarketStatus} == {"ACTIVE", "PAUSED", "RESOLVED"}

    def test_log_mode(self) -> None:
        assert LogMode("PRECISE") is LogMode.PRECISE
        assert {m.value for m in LogMode} == {"COARSE", "PRECISE"}

    def test_resolution_status(self) -> None:
        assert {s.value for s in ResolutionStatus} == {"PENDING", "FINALIZED", "CHALLENGED"}
