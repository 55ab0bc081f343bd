"""In-memory MarketStateRepository for tests and single-process channels.

The `db` argument is accepted for Protocol compatibility and ignored.
"""

from dataclasses import replace

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import MarketAlreadyExistsError
from src.pm_market.domain.models import (
    MarketState,
    ResolutionProposal,
    TradeRecord,
    UserPosition,
)


class InMemoryMarketStateRepository:
    def __init__(self) -> None:
        self._states: dict[str, MarketState] = {}
        self._trades: dict[str, list[TradeRecord]] = {}
        self._positions: dict[tuple[str, str], UserPosition] = {}
        self._proposals: dict[str, ResolutionProposal] = {}

    async def get_state(self, db: AsyncSession | None, market_id: str) -> MarketState | None:
        return self._states.get(market_id)

    async def create_state(self, db: AsyncSession | None, state: MarketState) -> None:
        if state.market_id in self._states:
            raise MarketAlreadyExistsError(state.market_id)
        self._states[state.market_id] = state
        self._trades[state.market_id] = []

    async def save_state(
        self,
        db: AsyncSession | None,
        state: MarketState,
        expected_sequence: int,
    ) -> bool:
        current = self._states.get(state.market_id)
        if current is None or current.sequence != expected_sequence:
            return False
        self._states[state.market_id] = state
        return True

    async def add_trade(self, db: AsyncSession | None, trade: TradeRecord) -> None:
        self._trades.setdefault(trade.market_id, []).append(trade)

    async def list_trades(
        self,
        db: AsyncSession | None,
        market_id: str,
        after_sequence: int,
    ) -> list[TradeRecord]:
        trades = self._trades.get(market_id, [])
        return sorted(
            (t for t in trades if t.sequence > after_sequence),
            key=lambda t: t.sequence,
        )

    async def get_position(
        self, db: AsyncSession | None, market_id: str, trader: str
    ) -> UserPosition | None:
        position = self._positions.get((market_id, trader))
        # Hand out copies: UserPosition is mutable
        return replace(position) if position is not None else None

    async def save_position(self, db: AsyncSession | None, position: UserPosition) -> None:
        self._positions[(position.market_id, position.trader)] = replace(position)

    async def list_positions(
        self, db: AsyncSession | None, market_id: str
    ) -> list[UserPosition]:
        return [
            replace(p)
            for (mid, _), p in sorted(self._positions.items())
            if mid == market_id
        ]

    async def get_proposal(
        self, db: AsyncSession | None, market_id: str
    ) -> ResolutionProposal | None:
        return self._proposals.get(market_id)

    async def save_proposal(self, db: AsyncSession | None, proposal: ResolutionProposal) -> None:
        self._proposals[proposal.market_id] = proposal
