"""Pure market state transitions.

Every function takes an immutable MarketState snapshot and returns a new one;
nothing here reads or writes storage. The ledger engine commits the result.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.errors import (
    InvalidMarketStateError,
    MarketNotActiveError,
    SlippageExceededError,
    TradeAmountOutOfRangeError,
)
from src.pm_market.application.schemas import TradeIntent
from src.pm_market.domain.models import MarketState, MarketStats, TradeRecord, UserPosition
from src.pm_pricing.domain.lmsr import LMSRPricer
from src.pm_pricing.domain.models import check_fee_rate

logger = logging.getLogger(__name__)


def open_market(
    market_id: str,
    pricer: LMSRPricer,
    fee_rate_bps: int,
    now: datetime,
) -> MarketState:
    """Fresh market: zero quantities, b at its configured base."""
    check_fee_rate(fee_rate_bps)
    return MarketState(
        market_id=market_id,
        q_yes=0,
        q_no=0,
        total_volume=0,
        tx_count=0,
        b=pricer.calculate_b(0, 0),
        fee_rate_bps=fee_rate_bps,
        last_updated=now,
    )


def check_trade_amount(amount: int, min_amount: int, max_amount: int) -> None:
    """Raise TradeAmountOutOfRangeError if amount is not in [min_amount, max_amount]."""
    if not (min_amount <= amount <= max_amount):
        raise TradeAmountOutOfRangeError(amount, min_amount, max_amount)


def apply_trade(
    state: MarketState,
    intent: TradeIntent,
    pricer: LMSRPricer,
    *,
    min_amount: int,
    max_amount: int,
    now: datetime,
) -> tuple[MarketState, TradeRecord]:
    """Execute a buy against the LMSR. Returns (new_state, trade).

    Steps: status check → amount bounds → preview → slippage → grow
    quantities/volume/tx_count → recompute b → validate → bump sequence.
    """
    if state.status != MarketStatus.ACTIVE:
        raise MarketNotActiveError(state.market_id, state.status.value)
    check_trade_amount(intent.amount, min_amount, max_amount)

    preview = pricer.preview_trade(
        intent.amount, intent.outcome, state.q_yes, state.q_no, state.b, state.fee_rate_bps
    )
    if preview.expected_shares < intent.min_shares:
        raise SlippageExceededError(preview.expected_shares, intent.min_shares)

    if intent.outcome == Outcome.YES:
        q_yes, q_no = state.q_yes + preview.expected_shares, state.q_no
    else:
        q_yes, q_no = state.q_yes, state.q_no + preview.expected_shares

    total_volume = state.total_volume + intent.amount
    tx_count = state.tx_count + 1
    new_b = pricer.calculate_b(total_volume, tx_count)

    if not pricer.validate_state(q_yes, q_no, new_b):
        raise InvalidMarketStateError(
            f"q_yes={q_yes} q_no={q_no} b={new_b} after trade by {intent.trader}"
        )

    sequence = state.sequence + 1
    new_state = replace(
        state,
        q_yes=q_yes,
        q_no=q_no,
        total_volume=total_volume,
        tx_count=tx_count,
        b=new_b,
        fees_collected=state.fees_collected + preview.fee,
        sequence=sequence,
        last_updated=now,
    )
    # The recorded price is measured at the pre-trade b, as quoted to the trader.
    trade = TradeRecord(
        trade_id=f"{state.market_id}-{sequence}",
        market_id=state.market_id,
        trader=intent.trader,
        outcome=intent.outcome,
        amount=intent.amount,
        fee=preview.fee,
        shares=preview.expected_shares,
        avg_price=preview.avg_price,
        new_price=preview.new_price,
        sequence=sequence,
        nonce=intent.nonce,
        executed_at=now,
    )
    logger.debug(
        "Trade applied: market=%s seq=%d %s shares=%d b=%d",
        state.market_id, sequence, intent.outcome.value, preview.expected_shares, new_b,
    )
    return new_state, trade


def set_status(state: MarketState, status: MarketStatus, now: datetime) -> MarketState:
    """Pause or resume trading. Resolution goes through finalize_resolution instead."""
    if state.is_resolved:
        raise MarketNotActiveError(state.market_id, state.status.value)
    if status == MarketStatus.RESOLVED:
        raise InvalidMarketStateError("use resolution finalization to resolve a market")
    if status == state.status:
        return state
    return replace(state, status=status, sequence=state.sequence + 1, last_updated=now)


def mark_settled(state: MarketState, last_sequence: int, now: datetime) -> MarketState:
    """Record that trades up to last_sequence have been included in a settlement batch."""
    return replace(
        state,
        settled_sequence=last_sequence,
        sequence=state.sequence + 1,
        last_updated=now,
    )


def build_market_stats(
    state: MarketState,
    positions: Iterable[UserPosition],
    pricer: LMSRPricer,
) -> MarketStats:
    price_yes, price_no = pricer.get_price(state.q_yes, state.q_no, state.b)
    unique_traders = len({p.trader for p in positions})
    return MarketStats(
        market_id=state.market_id,
        price_yes=price_yes,
        price_no=price_no,
        total_volume=state.total_volume,
        unique_traders=unique_traders,
        total_txs=state.tx_count,
        current_b=state.b,
        fees_collected=state.fees_collected,
        status=state.status,
    )
