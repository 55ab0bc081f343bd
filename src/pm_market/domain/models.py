"""Domain models for pm_market: pure dataclasses, no business logic.

All quantities are fixed-point int (1e18 = one unit).
"""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import MarketStatus, Outcome, ResolutionStatus


@dataclass(frozen=True)
class MarketState:
    """Immutable snapshot of one market. Each committed change bumps `sequence`."""

    market_id: str
    q_yes: int
    q_no: int
    total_volume: int
    tx_count: int
    b: int
    fee_rate_bps: int
    fees_collected: int = 0
    status: MarketStatus = MarketStatus.ACTIVE
    resolution: Outcome | None = None
    sequence: int = 0
    settled_sequence: int = 0  # last trade sequence included in a settlement batch
    last_updated: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status == MarketStatus.RESOLVED


@dataclass
class UserPosition:
    market_id: str
    trader: str
    yes_shares: int = 0
    no_shares: int = 0
    total_invested: int = 0   # gross payments, fees included
    last_nonce: int = -1      # highest intent nonce accepted
    last_activity: datetime | None = None


@dataclass(frozen=True)
class TradeRecord:
    """One executed trade, as committed to the ledger."""

    trade_id: str
    market_id: str
    trader: str
    outcome: Outcome
    amount: int       # gross payment
    fee: int
    shares: int
    avg_price: int
    new_price: int    # marginal price of `outcome` after the trade
    sequence: int     # market sequence this trade produced
    nonce: int
    executed_at: datetime


@dataclass(frozen=True)
class MarketStats:
    market_id: str
    price_yes: int
    price_no: int
    total_volume: int
    unique_traders: int
    total_txs: int
    current_b: int
    fees_collected: int
    status: MarketStatus


@dataclass(frozen=True)
class ResolutionProposal:
    """Stored outcome claim for one market; final only once its challenge window lapses."""

    market_id: str
    yes_wins: bool
    proposer: str
    proposed_at: datetime
    challenge_period_end: datetime
    resolution_data: str = ""
    status: ResolutionStatus = ResolutionStatus.PENDING

    @property
    def outcome(self) -> Outcome:
        return Outcome.YES if self.yes_wins else Outcome.NO
