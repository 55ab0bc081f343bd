"""MarketLedger: stateful orchestrator for per-market state transitions.

Owns no market data: every operation reads a snapshot from the repository,
computes the next snapshot with the pure domain functions, and commits it
with the expected prior sequence. At most one update per market is in flight
inside this process (asyncio.Lock); a commit racing another process fails
with StaleMarketStateError instead of overwriting it.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from contextlib import nullcontext
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings, settings
from src.pm_clearing.domain.positions import apply_trade_to_position, check_nonce
from src.pm_clearing.domain.resolution import (
    challenge_resolution,
    finalize_resolution,
    propose_resolution,
)
from src.pm_clearing.domain.settlement import (
    SettlementBatch,
    build_settlement_batch,
    compute_payouts,
)
from src.pm_common.enums import MarketStatus
from src.pm_common.errors import (
    AppError,
    MarketNotFoundError,
    ResolutionNotFoundError,
    StaleMarketStateError,
)
from src.pm_common.fixed_point import fixed_to_display
from src.pm_market.application.schemas import TradeIntent
from src.pm_market.domain.models import (
    MarketState,
    MarketStats,
    ResolutionProposal,
    TradeRecord,
)
from src.pm_market.domain.repository import MarketStateRepositoryProtocol
from src.pm_market.domain.service import (
    apply_trade,
    build_market_stats,
    check_trade_amount,
    mark_settled,
    open_market,
    set_status,
)
from src.pm_pricing.domain.lmsr import LMSRPricer
from src.pm_pricing.domain.models import LMSRParams, TradePreview

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class MarketLedger:
    def __init__(
        self,
        pricer: LMSRPricer | None = None,
        config: Settings = settings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._pricer = pricer or LMSRPricer(LMSRParams.from_settings(config))
        self._config = config
        self._clock = clock
        self._market_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def pricer(self) -> LMSRPricer:
        return self._pricer

    def _get_or_create_lock(self, market_id: str) -> asyncio.Lock:
        return self._market_locks[market_id]

    @staticmethod
    def _transaction(db: AsyncSession | None):  # type: ignore[no-untyped-def]
        return db.begin_nested() if db is not None else nullcontext()

    async def _commit(
        self,
        new_state: MarketState,
        expected_sequence: int,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None,
    ) -> None:
        if not await repo.save_state(db, new_state, expected_sequence):
            logger.warning(
                "Stale commit rejected: market=%s expected_seq=%d",
                new_state.market_id, expected_sequence,
            )
            raise StaleMarketStateError(new_state.market_id, expected_sequence)

    # ------------------------------------------------------------------
    # Market lifecycle
    # ------------------------------------------------------------------

    async def open_market(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
        fee_rate_bps: int | None = None,
    ) -> MarketState:
        fee = self._config.DEFAULT_FEE_RATE_BPS if fee_rate_bps is None else fee_rate_bps
        state = open_market(market_id, self._pricer, fee, self._clock())
        async with self._transaction(db):
            await repo.create_state(db, state)
        logger.info("Market opened: %s b=%s fee=%dbps", market_id, fixed_to_display(state.b), fee)
        return state

    async def get_state(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> MarketState:
        state = await repo.get_state(db, market_id)
        if state is None:
            raise MarketNotFoundError(market_id)
        return state

    async def _set_status(
        self,
        market_id: str,
        status: MarketStatus,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None,
    ) -> MarketState:
        async with self._get_or_create_lock(market_id):
            async with self._transaction(db):
                state = await self.get_state(market_id, repo, db)
                new_state = set_status(state, status, self._clock())
                if new_state is not state:
                    await self._commit(new_state, state.sequence, repo, db)
        logger.info("Market %s status -> %s", market_id, status.value)
        return new_state

    async def pause_market(
        self, market_id: str, repo: MarketStateRepositoryProtocol, db: AsyncSession | None = None
    ) -> MarketState:
        return await self._set_status(market_id, MarketStatus.PAUSED, repo, db)

    async def resume_market(
        self, market_id: str, repo: MarketStateRepositoryProtocol, db: AsyncSession | None = None
    ) -> MarketState:
        return await self._set_status(market_id, MarketStatus.ACTIVE, repo, db)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    async def quote(
        self,
        intent: TradeIntent,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> TradePreview:
        """Advisory preview against the current snapshot. Commits nothing."""
        check_trade_amount(intent.amount, self._config.MIN_TRADE_AMOUNT, self._config.MAX_TRADE_AMOUNT)
        state = await self.get_state(intent.market_id, repo, db)
        return self._pricer.preview_trade(
            intent.amount, intent.outcome, state.q_yes, state.q_no, state.b, state.fee_rate_bps
        )

    async def execute_trade(
        self,
        intent: TradeIntent,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> TradeRecord:
        """Main entry point: price, commit state + trade + position atomically."""
        async with self._get_or_create_lock(intent.market_id):
            async with self._transaction(db):
                state = await self.get_state(intent.market_id, repo, db)
                position = await repo.get_position(db, intent.market_id, intent.trader)
                try:
                    check_nonce(position, intent.trader, intent.nonce)
                    new_state, trade = apply_trade(
                        state,
                        intent,
                        self._pricer,
                        min_amount=self._config.MIN_TRADE_AMOUNT,
                        max_amount=self._config.MAX_TRADE_AMOUNT,
                        now=self._clock(),
                    )
                except AppError as exc:
                    logger.warning(
                        "Trade rejected: market=%s trader=%s code=%d %s",
                        intent.market_id, intent.trader, exc.code, exc.message,
                    )
                    raise

                await self._commit(new_state, state.sequence, repo, db)
                await repo.add_trade(db, trade)
                await repo.save_position(db, apply_trade_to_position(position, trade))

        logger.info(
            "Trade %s: %s bought %s %s for %s (fee %s)",
            trade.trade_id,
            trade.trader,
            fixed_to_display(trade.shares),
            trade.outcome.value,
            fixed_to_display(trade.amount),
            fixed_to_display(trade.fee),
        )
        return trade

    async def market_stats(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> MarketStats:
        state = await self.get_state(market_id, repo, db)
        positions = await repo.list_positions(db, market_id)
        return build_market_stats(state, positions, self._pricer)

    # ------------------------------------------------------------------
    # Resolution & settlement
    # ------------------------------------------------------------------

    async def propose_resolution(
        self,
        market_id: str,
        yes_wins: bool,
        proposer: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
        resolution_data: str = "",
    ) -> ResolutionProposal:
        """Store a PENDING proposal; it replaces the current one only if that was challenged."""
        async with self._get_or_create_lock(market_id):
            async with self._transaction(db):
                state = await self.get_state(market_id, repo, db)
                existing = await repo.get_proposal(db, market_id)
                proposal = propose_resolution(
                    state,
                    yes_wins=yes_wins,
                    proposer=proposer,
                    now=self._clock(),
                    challenge_period=timedelta(hours=self._config.CHALLENGE_PERIOD_HOURS),
                    resolution_data=resolution_data,
                    existing=existing,
                )
                await repo.save_proposal(db, proposal)
        logger.info(
            "Resolution proposed: market=%s outcome=%s by %s, final after %s",
            market_id, proposal.outcome.value, proposer,
            proposal.challenge_period_end.isoformat(),
        )
        return proposal

    async def get_proposal(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> ResolutionProposal:
        proposal = await repo.get_proposal(db, market_id)
        if proposal is None:
            raise ResolutionNotFoundError(market_id)
        return proposal

    async def challenge_resolution(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> ResolutionProposal:
        async with self._get_or_create_lock(market_id):
            async with self._transaction(db):
                proposal = await self.get_proposal(market_id, repo, db)
                challenged = challenge_resolution(proposal, self._clock())
                await repo.save_proposal(db, challenged)
        return challenged

    async def finalize_resolution(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> tuple[MarketState, ResolutionProposal]:
        """Resolve the market from its stored proposal once the challenge window has closed."""
        async with self._get_or_create_lock(market_id):
            async with self._transaction(db):
                state = await self.get_state(market_id, repo, db)
                proposal = await self.get_proposal(market_id, repo, db)
                resolved, finalized = finalize_resolution(state, proposal, self._clock())
                await self._commit(resolved, state.sequence, repo, db)
                await repo.save_proposal(db, finalized)
        logger.info("Market %s resolved: %s", market_id, finalized.outcome.value)
        return resolved, finalized

    async def settle_pending(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> SettlementBatch:
        """Batch every trade not yet settled and advance the settled watermark."""
        async with self._get_or_create_lock(market_id):
            async with self._transaction(db):
                state = await self.get_state(market_id, repo, db)
                trades = await repo.list_trades(db, market_id, state.settled_sequence)
                batch = build_settlement_batch(market_id, trades)
                new_state = mark_settled(state, batch.last_sequence, self._clock())
                await self._commit(new_state, state.sequence, repo, db)
        logger.info(
            "Settlement batch: market=%s trades=%d volume=%s seq %d..%d",
            market_id, batch.trade_count, fixed_to_display(batch.total_volume),
            batch.first_sequence, batch.last_sequence,
        )
        return batch

    async def compute_payouts(
        self,
        market_id: str,
        repo: MarketStateRepositoryProtocol,
        db: AsyncSession | None = None,
    ) -> dict[str, int]:
        state = await self.get_state(market_id, repo, db)
        positions = await repo.list_positions(db, market_id)
        return compute_payouts(state, positions)
