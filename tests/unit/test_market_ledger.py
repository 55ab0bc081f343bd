"""Unit tests for MarketLedger orchestrator (in-memory repository, fake clock)."""
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.settings import Settings
from src.pm_common.enums import MarketStatus, Outcome, ResolutionStatus
from src.pm_common.errors import (
    MarketAlreadyExistsError,
    MarketNotActiveError,
    MarketNotFoundError,
    NoPendingTradesError,
    ReplayedIntentError,
    ResolutionAlreadyProposedError,
    ResolutionNotFinalizableError,
    ResolutionNotFoundError,
    SlippageExceededError,
    StaleMarketStateError,
    TradeAmountOutOfRangeError,
)
from src.pm_common.fixed_point import HALF, SCALE
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_market.application.schemas import TradeIntent
from src.pm_market.infrastructure.memory import InMemoryMarketStateRepository
from src.pm_pricing.domain.models import DEFAULT_LMSR_PARAMS

ALICE_SHARES = 18_998_958_932_300_354_703


def _intent(**kwargs) -> TradeIntent:
    defaults = dict(
        market_id="MKT-1",
        trader="alice",
        outcome=Outcome.YES,
        amount=10 * SCALE,
        nonce=0,
    )
    defaults.update(kwargs)
    return TradeIntent(**defaults)


@pytest.fixture
async def opened(ledger: MarketLedger, repo: InMemoryMarketStateRepository) -> MarketLedger:
    await ledger.open_market("MKT-1", repo)
    return ledger


class TestLedgerInit:
    def test_pricer_built_from_settings(self, test_settings: Settings) -> None:
        ledger = MarketLedger(config=test_settings)
        assert ledger.pricer.params == DEFAULT_LMSR_PARAMS

    def test_lock_per_market(self, ledger: MarketLedger) -> None:
        assert ledger._get_or_create_lock("MKT-1") is ledger._get_or_create_lock("MKT-1")
        assert ledger._get_or_create_lock("MKT-1") is not ledger._get_or_create_lock("MKT-2")


class TestOpenMarket:
    async def test_uses_default_fee(self, ledger: MarketLedger, repo) -> None:
        state = await ledger.open_market("MKT-1", repo)
        assert state.fee_rate_bps == 50
        assert state.b == 100 * SCALE
        assert await repo.get_state(None, "MKT-1") == state

    async def test_fee_override(self, ledger: MarketLedger, repo) -> None:
        state = await ledger.open_market("MKT-1", repo, fee_rate_bps=0)
        assert state.fee_rate_bps == 0

    async def test_duplicate(self, opened: MarketLedger, repo) -> None:
        with pytest.raises(MarketAlreadyExistsError):
            await opened.open_market("MKT-1", repo)

    async def test_unknown_market(self, ledger: MarketLedger, repo) -> None:
        with pytest.raises(MarketNotFoundError):
            await ledger.get_state("MKT-404", repo)


class TestQuote:
    async def test_matches_execution(self, opened: MarketLedger, repo) -> None:
        preview = await opened.quote(_intent(), repo)
        trade = await opened.execute_trade(_intent(), repo)
        assert preview.expected_shares == trade.shares == ALICE_SHARES
        assert preview.fee == trade.fee

    async def test_commits_nothing(self, opened: MarketLedger, repo) -> None:
        await opened.quote(_intent(), repo)
        state = await repo.get_state(None, "MKT-1")
        assert state.sequence == 0
        assert state.q_yes == 0

    async def test_amount_bounds(self, opened: MarketLedger, repo) -> None:
        with pytest.raises(TradeAmountOutOfRangeError):
            await opened.quote(_intent(amount=10_001 * SCALE), repo)


class TestExecuteTrade:
    async def test_commits_state_trade_and_position(self, opened: MarketLedger, repo) -> None:
        trade = await opened.execute_trade(_intent(), repo)

        state = await repo.get_state(None, "MKT-1")
        assert state.q_yes == ALICE_SHARES
        assert state.sequence == 1
        assert state.b == 101_402_105_749_420_732_400

        trades = await repo.list_trades(None, "MKT-1", 0)
        assert trades == [trade]

        position = await repo.get_position(None, "MKT-1", "alice")
        assert position.yes_shares == ALICE_SHARES
        assert position.total_invested == 10 * SCALE
        assert position.last_nonce == 0

    async def test_replayed_nonce(self, opened: MarketLedger, repo) -> None:
        await opened.execute_trade(_intent(nonce=3), repo)
        with pytest.raises(ReplayedIntentError):
            await opened.execute_trade(_intent(nonce=3), repo)
        # Nonces are per trader
        await opened.execute_trade(_intent(trader="bob", nonce=0), repo)

    async def test_slippage_leaves_state_unchanged(self, opened: MarketLedger, repo) -> None:
        with pytest.raises(SlippageExceededError):
            await opened.execute_trade(_intent(min_shares=20 * SCALE), repo)
        state = await repo.get_state(None, "MKT-1")
        assert state.sequence == 0
        assert await repo.get_position(None, "MKT-1", "alice") is None

    async def test_stale_commit(self, opened: MarketLedger, repo) -> None:
        repo.save_state = AsyncMock(return_value=False)
        with pytest.raises(StaleMarketStateError) as exc_info:
            await opened.execute_trade(_intent(), repo)
        assert exc_info.value.code == 4004
        assert await repo.list_trades(None, "MKT-1", 0) == []

    async def test_concurrent_trades_serialize(self, opened: MarketLedger, repo) -> None:
        intents = [_intent(trader=f"t{i}", nonce=0, amount=SCALE) for i in range(5)]
        trades = await asyncio.gather(*(opened.execute_trade(i, repo) for i in intents))

        assert sorted(t.sequence for t in trades) == [1, 2, 3, 4, 5]
        state = await repo.get_state(None, "MKT-1")
        assert state.tx_count == 5
        assert state.q_yes == sum(t.shares for t in trades)

    async def test_paused_market_rejects(self, opened: MarketLedger, repo) -> None:
        paused = await opened.pause_market("MKT-1", repo)
        assert paused.status == MarketStatus.PAUSED
        with pytest.raises(MarketNotActiveError):
            await opened.execute_trade(_intent(), repo)

        resumed = await opened.resume_market("MKT-1", repo)
        assert resumed.status == MarketStatus.ACTIVE
        assert resumed.sequence == 2
        await opened.execute_trade(_intent(), repo)

    async def test_session_transaction_used(self, ledger: MarketLedger) -> None:
        db = MagicMock()
        repo = InMemoryMarketStateRepository()
        await ledger.open_market("MKT-1", repo, db)
        await ledger.execute_trade(_intent(), repo, db)
        assert db.begin_nested.call_count == 2


class TestMarketStats:
    async def test_after_trades(self, opened: MarketLedger, repo) -> None:
        await opened.execute_trade(_intent(), repo)
        await opened.execute_trade(_intent(trader="bob", outcome=Outcome.NO, amount=20 * SCALE), repo)
        await opened.execute_trade(_intent(nonce=1, amount=SCALE), repo)

        stats = await opened.market_stats("MKT-1", repo)
        assert stats.unique_traders == 2
        assert stats.total_txs == 3
        assert stats.total_volume == 31 * SCALE
        assert stats.fees_collected == 155 * 10**15

    async def test_fresh_market(self, opened: MarketLedger, repo) -> None:
        stats = await opened.market_stats("MKT-1", repo)
        assert (stats.price_yes, stats.price_no) == (HALF, HALF)
        assert stats.current_b == 100 * SCALE


class TestResolution:
    async def test_challenge_period_enforced(self, opened: MarketLedger, repo, clock) -> None:
        await opened.execute_trade(_intent(), repo)
        proposal = await opened.propose_resolution("MKT-1", True, "oracle", repo)
        assert proposal.challenge_period_end == clock.now + timedelta(hours=48)
        assert await repo.get_proposal(None, "MKT-1") == proposal

        with pytest.raises(ResolutionNotFinalizableError):
            await opened.finalize_resolution("MKT-1", repo)

        clock.now += timedelta(hours=48)
        state, final = await opened.finalize_resolution("MKT-1", repo)
        assert state.status == MarketStatus.RESOLVED
        assert state.resolution == Outcome.YES
        assert final.status == ResolutionStatus.FINALIZED
        assert (await repo.get_proposal(None, "MKT-1")).status == ResolutionStatus.FINALIZED

        with pytest.raises(MarketNotActiveError):
            await opened.execute_trade(_intent(nonce=1), repo)
        with pytest.raises(MarketNotActiveError):
            await opened.pause_market("MKT-1", repo)

    async def test_finalize_without_proposal(self, opened: MarketLedger, repo) -> None:
        with pytest.raises(ResolutionNotFoundError) as exc_info:
            await opened.finalize_resolution("MKT-1", repo)
        assert exc_info.value.code == 5003
        assert (await repo.get_state(None, "MKT-1")).status == MarketStatus.ACTIVE

    async def test_window_comes_from_stored_proposal(
        self, opened: MarketLedger, repo, clock, test_settings: Settings
    ) -> None:
        proposal = await opened.propose_resolution("MKT-1", True, "oracle", repo)
        # A second ledger sharing the store sees the same window
        other = MarketLedger(pricer=opened.pricer, config=test_settings, clock=clock)

        for ledger in (opened, other):
            with pytest.raises(ResolutionNotFinalizableError, match="challenge period"):
                await ledger.finalize_resolution("MKT-1", repo)
        assert (await repo.get_state(None, "MKT-1")).status == MarketStatus.ACTIVE
        assert await repo.get_proposal(None, "MKT-1") == proposal

        clock.now = proposal.challenge_period_end
        state, _ = await other.finalize_resolution("MKT-1", repo)
        assert state.status == MarketStatus.RESOLVED

    async def test_challenged_proposal_never_finalizes(
        self, opened: MarketLedger, repo, clock
    ) -> None:
        proposal = await opened.propose_resolution("MKT-1", True, "oracle", repo)
        clock.now += timedelta(hours=1)
        challenged = await opened.challenge_resolution("MKT-1", repo)
        assert challenged.status == ResolutionStatus.CHALLENGED
        assert challenged.challenge_period_end == proposal.challenge_period_end

        clock.now += timedelta(hours=49)
        with pytest.raises(ResolutionNotFinalizableError, match="CHALLENGED"):
            await opened.finalize_resolution("MKT-1", repo)
        state = await repo.get_state(None, "MKT-1")
        assert state.status == MarketStatus.ACTIVE
        assert state.resolution is None

    async def test_challenge_after_window_rejected(
        self, opened: MarketLedger, repo, clock
    ) -> None:
        await opened.propose_resolution("MKT-1", True, "oracle", repo)
        clock.now += timedelta(hours=48)
        with pytest.raises(ResolutionNotFinalizableError):
            await opened.challenge_resolution("MKT-1", repo)
        assert (await repo.get_proposal(None, "MKT-1")).status == ResolutionStatus.PENDING

    async def test_challenge_without_proposal(self, opened: MarketLedger, repo) -> None:
        with pytest.raises(ResolutionNotFoundError):
            await opened.challenge_resolution("MKT-1", repo)

    async def test_second_proposal_rejected_while_pending(self, opened: MarketLedger, repo) -> None:
        first = await opened.propose_resolution("MKT-1", True, "oracle", repo)
        with pytest.raises(ResolutionAlreadyProposedError):
            await opened.propose_resolution("MKT-1", False, "mallory", repo)
        assert await repo.get_proposal(None, "MKT-1") == first

    async def test_reproposal_after_challenge(self, opened: MarketLedger, repo, clock) -> None:
        await opened.propose_resolution("MKT-1", True, "oracle", repo)
        await opened.challenge_resolution("MKT-1", repo)
        clock.now += timedelta(hours=2)
        fresh = await opened.propose_resolution("MKT-1", False, "oracle", repo)
        assert fresh.status == ResolutionStatus.PENDING
        assert fresh.challenge_period_end == clock.now + timedelta(hours=48)

        clock.now += timedelta(hours=48)
        state, _ = await opened.finalize_resolution("MKT-1", repo)
        assert state.resolution == Outcome.NO

    async def test_payouts(self, opened: MarketLedger, repo, clock) -> None:
        await opened.execute_trade(_intent(), repo)
        bob = await opened.execute_trade(
            _intent(trader="bob", outcome=Outcome.NO, amount=20 * SCALE), repo
        )
        await opened.propose_resolution("MKT-1", False, "oracle", repo)
        clock.now += timedelta(hours=49)
        await opened.finalize_resolution("MKT-1", repo)

        assert await opened.compute_payouts("MKT-1", repo) == {"bob": bob.shares}


class TestSettlePending:
    async def test_batches_and_advances_watermark(self, opened: MarketLedger, repo) -> None:
        await opened.execute_trade(_intent(), repo)
        await opened.execute_trade(_intent(trader="bob", outcome=Outcome.NO, amount=20 * SCALE), repo)

        batch = await opened.settle_pending("MKT-1", repo)
        assert batch.trade_count == 2
        assert (batch.first_sequence, batch.last_sequence) == (1, 2)
        assert batch.total_volume == 30 * SCALE
        assert batch.total_fees == 15 * 10**16

        state = await repo.get_state(None, "MKT-1")
        assert state.settled_sequence == 2
        assert state.sequence == 3

        with pytest.raises(NoPendingTradesError):
            await opened.settle_pending("MKT-1", repo)

        await opened.execute_trade(_intent(nonce=1, amount=SCALE), repo)
        batch = await opened.settle_pending("MKT-1", repo)
        assert batch.trade_count == 1
        assert batch.first_sequence == 4
