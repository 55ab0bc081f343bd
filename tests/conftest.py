"""Shared test fixtures."""

from datetime import UTC, datetime

import pytest

from config.settings import Settings
from src.pm_common.enums import LogMode
from src.pm_common.fixed_point import SCALE
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_market.infrastructure.memory import InMemoryMarketStateRepository
from src.pm_pricing.domain.lmsr import LMSRPricer
from src.pm_pricing.domain.models import DEFAULT_LMSR_PARAMS, LMSRParams

FIXED_NOW = datetime(2026, 6, 11, 12, 0, tzinfo=UTC)


class FakeClock:
    """Settable clock for resolution challenge-period tests."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def pricer() -> LMSRPricer:
    return LMSRPricer(DEFAULT_LMSR_PARAMS)


@pytest.fixture
def coarse_pricer() -> LMSRPricer:
    return LMSRPricer(
        LMSRParams(
            b0=100 * SCALE,
            alpha=5 * 10**16,
            beta=2 * 10**16,
            V0=1_000_000 * SCALE,
            log_mode=LogMode.COARSE,
        )
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        DEFAULT_FEE_RATE_BPS=50,
        MIN_TRADE_AMOUNT=10**16,
        MAX_TRADE_AMOUNT=10_000 * SCALE,
        CHALLENGE_PERIOD_HOURS=48,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repo() -> InMemoryMarketStateRepository:
    return InMemoryMarketStateRepository()


@pytest.fixture
def ledger(pricer: LMSRPricer, test_settings: Settings, clock: FakeClock) -> MarketLedger:
    return MarketLedger(pricer=pricer, config=test_settings, clock=clock)
