# src/pm_market/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests use the in-memory implementation or a mock session.
Infrastructure layer provides the SQL implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_market.domain.models import (
    MarketState,
    ResolutionProposal,
    TradeRecord,
    UserPosition,
)


class MarketStateRepositoryProtocol(Protocol):
    async def get_state(
        self, db: AsyncSession | None, market_id: str
    ) -> MarketState | None: ...

    async def create_state(self, db: AsyncSession | None, state: MarketState) -> None: ...

    async def save_state(
        self,
        db: AsyncSession | None,
        state: MarketState,
        expected_sequence: int,
    ) -> bool:
        """Commit `state` only if the stored sequence still equals expected_sequence."""
        ...

    async def add_trade(self, db: AsyncSession | None, trade: TradeRecord) -> None: ...

    async def list_trades(
        self,
        db: AsyncSession | None,
        market_id: str,
        after_sequence: int,
    ) -> list[TradeRecord]: ...

    async def get_position(
        self, db: AsyncSession | None, market_id: str, trader: str
    ) -> UserPosition | None: ...

    async def save_position(self, db: AsyncSession | None, position: UserPosition) -> None: ...

    async def list_positions(
        self, db: AsyncSession | None, market_id: str
    ) -> list[UserPosition]: ...

    async def get_proposal(
        self, db: AsyncSession | None, market_id: str
    ) -> ResolutionProposal | None: ...

    async def save_proposal(self, db: AsyncSession | None, proposal: ResolutionProposal) -> None:
        """Insert or replace the market's single stored proposal."""
        ...
