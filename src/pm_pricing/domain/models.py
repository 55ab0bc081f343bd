"""Domain models for pm_pricing: immutable configuration and preview results."""

from dataclasses import dataclass

from config.settings import Settings
from src.pm_common.enums import LogMode
from src.pm_common.errors import InvalidFeeRateError, InvalidLMSRParamsError
from src.pm_common.fixed_point import SCALE

DEFAULT_FEE_RATE_BPS = 50  # 0.5%
BPS_DENOMINATOR = 10_000


def check_fee_rate(fee_rate_bps: int) -> None:
    """Raise InvalidFeeRateError unless 0 <= fee_rate_bps <= 10000."""
    if not (0 <= fee_rate_bps <= BPS_DENOMINATOR):
        raise InvalidFeeRateError(fee_rate_bps)


@dataclass(frozen=True)
class LMSRParams:
    """b = b0 * (1 + alpha*sqrt(volume/V0) + beta*ln(1+tx_count)). All fixed-point."""

    b0: int
    alpha: int
    beta: int
    V0: int
    log_mode: LogMode = LogMode.PRECISE

    def __post_init__(self) -> None:
        if self.b0 <= 0:
            raise InvalidLMSRParamsError(f"b0 must be positive, got {self.b0}")
        if self.alpha < 0:
            raise InvalidLMSRParamsError(f"alpha must not be negative, got {self.alpha}")
        if self.beta < 0:
            raise InvalidLMSRParamsError(f"beta must not be negative, got {self.beta}")
        if self.V0 <= 0:
            raise InvalidLMSRParamsError(f"V0 must be positive, got {self.V0}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LMSRParams":
        """Build from the LMSR_* fields of Settings."""
        try:
            log_mode = LogMode(settings.LMSR_LOG_MODE.upper())
        except ValueError as exc:
            raise InvalidLMSRParamsError(f"unknown log mode {settings.LMSR_LOG_MODE!r}") from exc
        return cls(
            b0=settings.LMSR_B0,
            alpha=settings.LMSR_ALPHA,
            beta=settings.LMSR_BETA,
            V0=settings.LMSR_V0,
            log_mode=log_mode,
        )


DEFAULT_LMSR_PARAMS = LMSRParams(
    b0=100 * SCALE,
    alpha=5 * 10**16,
    beta=2 * 10**16,
    V0=1_000_000 * SCALE,
)


@dataclass(frozen=True)
class TradePreview:
    """Hypothetical trade result. Not persisted; recomputed per query."""

    expected_shares: int
    new_price: int      # marginal price of the bought outcome after the trade
    price_impact: int   # (new - current) / current, signed
    avg_price: int      # net_amount / expected_shares
    fee: int
    net_amount: int
