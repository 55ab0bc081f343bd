"""Per-trader position bookkeeping and intent replay protection."""

from dataclasses import replace

from src.pm_common.enums import Outcome
from src.pm_common.errors import ReplayedIntentError
from src.pm_market.domain.models import TradeRecord, UserPosition


def check_nonce(position: UserPosition | None, trader: str, nonce: int) -> None:
    """Raise ReplayedIntentError unless nonce is above the trader's last accepted nonce."""
    last_nonce = position.last_nonce if position is not None else -1
    if nonce <= last_nonce:
        raise ReplayedIntentError(trader, nonce, last_nonce)


def apply_trade_to_position(
    position: UserPosition | None, trade: TradeRecord
) -> UserPosition:
    """Return the trader's position after `trade`; the input is not mutated."""
    if position is None:
        position = UserPosition(market_id=trade.market_id, trader=trade.trader)

    if trade.outcome == Outcome.YES:
        yes_shares, no_shares = position.yes_shares + trade.shares, position.no_shares
    else:
        yes_shares, no_shares = position.yes_shares, position.no_shares + trade.shares

    return replace(
        position,
        yes_shares=yes_shares,
        no_shares=no_shares,
        total_invested=position.total_invested + trade.amount,
        last_nonce=trade.nonce,
        last_activity=trade.executed_at,
    )
