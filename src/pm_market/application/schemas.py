"""Trade intent schema: the payload a counterparty signs and sends off-chain."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.pm_common.enums import Outcome
from src.pm_pricing.domain.models import BPS_DENOMINATOR


class TradeIntent(BaseModel):
    market_id: str = Field(..., min_length=1, max_length=64)
    trader: str = Field(..., min_length=1, max_length=128)
    outcome: Outcome
    amount: int = Field(..., gt=0)  # gross payment, fixed-point
    min_shares: int = Field(default=0, ge=0)  # slippage protection
    nonce: int = Field(..., ge=0)  # replay protection, strictly increasing per trader
    timestamp: datetime | None = None

    @classmethod
    def with_slippage(
        cls,
        *,
        market_id: str,
        trader: str,
        outcome: Outcome,
        amount: int,
        nonce: int,
        slippage_bps: int,
    ) -> "TradeIntent":
        """min_shares = amount * (1 - slippage)."""
        if not (0 <= slippage_bps <= BPS_DENOMINATOR):
            raise ValueError(f"slippage_bps must be in [0, {BPS_DENOMINATOR}], got {slippage_bps}")
        min_shares = amount * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR
        return cls(
            market_id=market_id,
            trader=trader,
            outcome=outcome,
            amount=amount,
            min_shares=min_shares,
            nonce=nonce,
        )
