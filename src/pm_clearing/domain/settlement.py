"""Settlement: aggregate off-chain trades into a batch, and pay out winners.

Submitting the batch on-chain is the caller's job.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from src.pm_common.enums import Outcome
from src.pm_common.errors import MarketNotResolvedError, NoPendingTradesError
from src.pm_market.domain.models import MarketState, TradeRecord, UserPosition


@dataclass
class ParticipantBalance:
    trader: str
    yes_shares: int = 0
    no_shares: int = 0
    net_volume: int = 0


@dataclass
class SettlementBatch:
    market_id: str
    trade_count: int
    first_sequence: int
    last_sequence: int
    total_yes_shares: int = 0
    total_no_shares: int = 0
    total_volume: int = 0
    total_fees: int = 0
    participants: dict[str, ParticipantBalance] = field(default_factory=dict)


def build_settlement_batch(market_id: str, trades: Sequence[TradeRecord]) -> SettlementBatch:
    """Net every pending trade per participant. Trades must belong to market_id."""
    if not trades:
        raise NoPendingTradesError(market_id)

    ordered = sorted(trades, key=lambda t: t.sequence)
    batch = SettlementBatch(
        market_id=market_id,
        trade_count=len(ordered),
        first_sequence=ordered[0].sequence,
        last_sequence=ordered[-1].sequence,
    )
    for trade in ordered:
        if trade.market_id != market_id:
            raise ValueError(f"Trade {trade.trade_id} belongs to {trade.market_id}, not {market_id}")

        balance = batch.participants.setdefault(trade.trader, ParticipantBalance(trade.trader))
        if trade.outcome == Outcome.YES:
            batch.total_yes_shares += trade.shares
            balance.yes_shares += trade.shares
        else:
            batch.total_no_shares += trade.shares
            balance.no_shares += trade.shares
        batch.total_volume += trade.amount
        batch.total_fees += trade.fee
        balance.net_volume += trade.amount
    return batch


def compute_payouts(
    state: MarketState, positions: Iterable[UserPosition]
) -> dict[str, int]:
    """Winning shares pay one unit each. Traders with nothing to collect are omitted."""
    if not state.is_resolved or state.resolution is None:
        raise MarketNotResolvedError(state.market_id)

    payouts: dict[str, int] = {}
    for position in positions:
        winning = position.yes_shares if state.resolution == Outcome.YES else position.no_shares
        if winning > 0:
            payouts[position.trader] = payouts.get(position.trader, 0) + winning
    return payouts
