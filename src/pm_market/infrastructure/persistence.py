"""MarketStateRepository: concrete implementation of MarketStateRepositoryProtocol.

All queries use raw text() SQL (no ORM) inside the caller's transaction.
Fixed-point columns are NUMERIC(78, 0): 1e18-scaled values overflow BIGINT,
and asyncpg returns them as Decimal, so every mapper converts back with int().
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import MarketStatus, Outcome, ResolutionStatus
from src.pm_market.domain.models import (
    MarketState,
    ResolutionProposal,
    TradeRecord,
    UserPosition,
)

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_MARKET_COLUMNS = """
    id, q_yes, q_no, total_volume, tx_count, b,
    fee_rate_bps, fees_collected, status, resolution,
    sequence, settled_sequence, updated_at
"""

_GET_STATE_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM lmsr_markets
    WHERE id = :market_id
""")

_INSERT_STATE_SQL = text("""
    INSERT INTO lmsr_markets
        (id, q_yes, q_no, total_volume, tx_count, b,
         fee_rate_bps, fees_collected, status, resolution,
         sequence, settled_sequence, updated_at)
    VALUES
        (:id, :q_yes, :q_no, :total_volume, :tx_count, :b,
         :fee_rate_bps, :fees_collected, :status, :resolution,
         :sequence, :settled_sequence, :updated_at)
""")

# Optimistic commit: zero rows updated means another writer got there first.
_UPDATE_STATE_SQL = text("""
    UPDATE lmsr_markets
    SET q_yes = :q_yes,
        q_no = :q_no,
        total_volume = :total_volume,
        tx_count = :tx_count,
        b = :b,
        fee_rate_bps = :fee_rate_bps,
        fees_collected = :fees_collected,
        status = :status,
        resolution = :resolution,
        sequence = :sequence,
        settled_sequence = :settled_sequence,
        updated_at = :updated_at
    WHERE id = :id AND sequence = :expected_sequence
""")

_INSERT_TRADE_SQL = text("""
    INSERT INTO lmsr_trades
        (trade_id, market_id, trader, outcome, amount, fee, shares,
         avg_price, new_price, sequence, nonce, executed_at)
    VALUES
        (:trade_id, :market_id, :trader, :outcome, :amount, :fee, :shares,
         :avg_price, :new_price, :sequence, :nonce, :executed_at)
""")

_LIST_TRADES_SQL = text("""
    SELECT trade_id, market_id, trader, outcome, amount, fee, shares,
           avg_price, new_price, sequence, nonce, executed_at
    FROM lmsr_trades
    WHERE market_id = :market_id AND sequence > :after_sequence
    ORDER BY sequence ASC
""")

_GET_POSITION_SQL = text("""
    SELECT market_id, trader, yes_shares, no_shares, total_invested,
           last_nonce, last_activity
    FROM lmsr_positions
    WHERE market_id = :market_id AND trader = :trader
""")

_LIST_POSITIONS_SQL = text("""
    SELECT market_id, trader, yes_shares, no_shares, total_invested,
           last_nonce, last_activity
    FROM lmsr_positions
    WHERE market_id = :market_id
    ORDER BY trader ASC
""")

_UPSERT_POSITION_SQL = text("""
    INSERT INTO lmsr_positions
        (market_id, trader, yes_shares, no_shares, total_invested,
         last_nonce, last_activity)
    VALUES
        (:market_id, :trader, :yes_shares, :no_shares, :total_invested,
         :last_nonce, :last_activity)
    ON CONFLICT (market_id, trader) DO UPDATE
    SET yes_shares = EXCLUDED.yes_shares,
        no_shares = EXCLUDED.no_shares,
        total_invested = EXCLUDED.total_invested,
        last_nonce = EXCLUDED.last_nonce,
        last_activity = EXCLUDED.last_activity
""")

_GET_PROPOSAL_SQL = text("""
    SELECT market_id, yes_wins, proposer, proposed_at, challenge_period_end,
           resolution_data, status
    FROM lmsr_resolutions
    WHERE market_id = :market_id
""")

_UPSERT_PROPOSAL_SQL = text("""
    INSERT INTO lmsr_resolutions
        (market_id, yes_wins, proposer, proposed_at, challenge_period_end,
         resolution_data, status)
    VALUES
        (:market_id, :yes_wins, :proposer, :proposed_at, :challenge_period_end,
         :resolution_data, :status)
    ON CONFLICT (market_id) DO UPDATE
    SET yes_wins = EXCLUDED.yes_wins,
        proposer = EXCLUDED.proposer,
        proposed_at = EXCLUDED.proposed_at,
        challenge_period_end = EXCLUDED.challenge_period_end,
        resolution_data = EXCLUDED.resolution_data,
        status = EXCLUDED.status
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

def _row_to_state(row: object) -> MarketState:
    resolution = row.resolution  # type: ignore[attr-defined]
    return MarketState(
        market_id=row.id,  # type: ignore[attr-defined]
        q_yes=int(row.q_yes),  # type: ignore[attr-defined]
        q_no=int(row.q_no),  # type: ignore[attr-defined]
        total_volume=int(row.total_volume),  # type: ignore[attr-defined]
        tx_count=int(row.tx_count),  # type: ignore[attr-defined]
        b=int(row.b),  # type: ignore[attr-defined]
        fee_rate_bps=int(row.fee_rate_bps),  # type: ignore[attr-defined]
        fees_collected=int(row.fees_collected),  # type: ignore[attr-defined]
        status=MarketStatus(row.status),  # type: ignore[attr-defined]
        resolution=Outcome(resolution) if resolution is not None else None,
        sequence=int(row.sequence),  # type: ignore[attr-defined]
        settled_sequence=int(row.settled_sequence),  # type: ignore[attr-defined]
        last_updated=row.updated_at,  # type: ignore[attr-defined]
    )


def _state_params(state: MarketState) -> dict[str, object]:
    return {
        "id": state.market_id,
        "q_yes": state.q_yes,
        "q_no": state.q_no,
        "total_volume": state.total_volume,
        "tx_count": state.tx_count,
        "b": state.b,
        "fee_rate_bps": state.fee_rate_bps,
        "fees_collected": state.fees_collected,
        "status": state.status.value,
        "resolution": state.resolution.value if state.resolution is not None else None,
        "sequence": state.sequence,
        "settled_sequence": state.settled_sequence,
        "updated_at": state.last_updated,
    }


def _row_to_trade(row: object) -> TradeRecord:
    return TradeRecord(
        trade_id=row.trade_id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        trader=row.trader,  # type: ignore[attr-defined]
        outcome=Outcome(row.outcome),  # type: ignore[attr-defined]
        amount=int(row.amount),  # type: ignore[attr-defined]
        fee=int(row.fee),  # type: ignore[attr-defined]
        shares=int(row.shares),  # type: ignore[attr-defined]
        avg_price=int(row.avg_price),  # type: ignore[attr-defined]
        new_price=int(row.new_price),  # type: ignore[attr-defined]
        sequence=int(row.sequence),  # type: ignore[attr-defined]
        nonce=int(row.nonce),  # type: ignore[attr-defined]
        executed_at=row.executed_at,  # type: ignore[attr-defined]
    )


def _row_to_position(row: object) -> UserPosition:
    return UserPosition(
        market_id=row.market_id,  # type: ignore[attr-defined]
        trader=row.trader,  # type: ignore[attr-defined]
        yes_shares=int(row.yes_shares),  # type: ignore[attr-defined]
        no_shares=int(row.no_shares),  # type: ignore[attr-defined]
        total_invested=int(row.total_invested),  # type: ignore[attr-defined]
        last_nonce=int(row.last_nonce),  # type: ignore[attr-defined]
        last_activity=row.last_activity,  # type: ignore[attr-defined]
    )


def _row_to_proposal(row: object) -> ResolutionProposal:
    return ResolutionProposal(
        market_id=row.market_id,  # type: ignore[attr-defined]
        yes_wins=bool(row.yes_wins),  # type: ignore[attr-defined]
        proposer=row.proposer,  # type: ignore[attr-defined]
        proposed_at=row.proposed_at,  # type: ignore[attr-defined]
        challenge_period_end=row.challenge_period_end,  # type: ignore[attr-defined]
        resolution_data=row.resolution_data,  # type: ignore[attr-defined]
        status=ResolutionStatus(row.status),  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class MarketStateRepository:
    """Concrete repository; `db` must be a live AsyncSession."""

    async def get_state(self, db: AsyncSession, market_id: str) -> MarketState | None:
        result = await db.execute(_GET_STATE_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_state(row) if row else None

    async def create_state(self, db: AsyncSession, state: MarketState) -> None:
        await db.execute(_INSERT_STATE_SQL, _state_params(state))

    async def save_state(
        self, db: AsyncSession, state: MarketState, expected_sequence: int
    ) -> bool:
        params = _state_params(state)
        params["expected_sequence"] = expected_sequence
        result = await db.execute(_UPDATE_STATE_SQL, params)
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def add_trade(self, db: AsyncSession, trade: TradeRecord) -> None:
        await db.execute(
            _INSERT_TRADE_SQL,
            {
                "trade_id": trade.trade_id,
                "market_id": trade.market_id,
                "trader": trade.trader,
                "outcome": trade.outcome.value,
                "amount": trade.amount,
                "fee": trade.fee,
                "shares": trade.shares,
                "avg_price": trade.avg_price,
                "new_price": trade.new_price,
                "sequence": trade.sequence,
                "nonce": trade.nonce,
                "executed_at": trade.executed_at,
            },
        )

    async def list_trades(
        self, db: AsyncSession, market_id: str, after_sequence: int
    ) -> list[TradeRecord]:
        result = await db.execute(
            _LIST_TRADES_SQL,
            {"market_id": market_id, "after_sequence": after_sequence},
        )
        return [_row_to_trade(row) for row in result.fetchall()]

    async def get_position(
        self, db: AsyncSession, market_id: str, trader: str
    ) -> UserPosition | None:
        result = await db.execute(
            _GET_POSITION_SQL, {"market_id": market_id, "trader": trader}
        )
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def save_position(self, db: AsyncSession, position: UserPosition) -> None:
        await db.execute(
            _UPSERT_POSITION_SQL,
            {
                "market_id": position.market_id,
                "trader": position.trader,
                "yes_shares": position.yes_shares,
                "no_shares": position.no_shares,
                "total_invested": position.total_invested,
                "last_nonce": position.last_nonce,
                "last_activity": position.last_activity,
            },
        )

    async def list_positions(self, db: AsyncSession, market_id: str) -> list[UserPosition]:
        result = await db.execute(_LIST_POSITIONS_SQL, {"market_id": market_id})
        return [_row_to_position(row) for row in result.fetchall()]

    async def get_proposal(self, db: AsyncSession, market_id: str) -> ResolutionProposal | None:
        result = await db.execute(_GET_PROPOSAL_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_proposal(row) if row else None

    async def save_proposal(self, db: AsyncSession, proposal: ResolutionProposal) -> None:
        await db.execute(
            _UPSERT_PROPOSAL_SQL,
            {
                "market_id": proposal.market_id,
                "yes_wins": proposal.yes_wins,
                "proposer": proposal.proposer,
                "proposed_at": proposal.proposed_at,
                "challenge_period_end": proposal.challenge_period_end,
                "resolution_data": proposal.resolution_data,
                "status": proposal.status.value,
            },
        )
