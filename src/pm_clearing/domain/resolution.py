"""Market resolution with a challenge window.

A proposal becomes final only after its challenge period elapses unchallenged.
One proposal per market is live at a time; a challenged proposal may be
replaced by a fresh one.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from src.pm_common.enums import MarketStatus, ResolutionStatus
from src.pm_common.errors import (
    MarketNotActiveError,
    ResolutionAlreadyProposedError,
    ResolutionNotFinalizableError,
)
from src.pm_market.domain.models import MarketState, ResolutionProposal

logger = logging.getLogger(__name__)


def propose_resolution(
    state: MarketState,
    *,
    yes_wins: bool,
    proposer: str,
    now: datetime,
    challenge_period: timedelta,
    resolution_data: str = "",
    existing: ResolutionProposal | None = None,
) -> ResolutionProposal:
    if state.is_resolved:
        raise MarketNotActiveError(state.market_id, state.status.value)
    if existing is not None and existing.status != ResolutionStatus.CHALLENGED:
        raise ResolutionAlreadyProposedError(state.market_id, existing.status.value)
    return ResolutionProposal(
        market_id=state.market_id,
        yes_wins=yes_wins,
        proposer=proposer,
        proposed_at=now,
        challenge_period_end=now + challenge_period,
        resolution_data=resolution_data,
    )


def challenge_resolution(proposal: ResolutionProposal, now: datetime) -> ResolutionProposal:
    if proposal.status != ResolutionStatus.PENDING:
        raise ResolutionNotFinalizableError(
            f"proposal for {proposal.market_id} is {proposal.status.value}"
        )
    if now >= proposal.challenge_period_end:
        raise ResolutionNotFinalizableError(
            f"challenge period ended at {proposal.challenge_period_end.isoformat()}"
        )
    logger.warning(
        "Resolution challenged: market=%s proposer=%s", proposal.market_id, proposal.proposer
    )
    return replace(proposal, status=ResolutionStatus.CHALLENGED)


def finalize_resolution(
    state: MarketState,
    proposal: ResolutionProposal,
    now: datetime,
) -> tuple[MarketState, ResolutionProposal]:
    """Resolve the market per the proposal. Returns (resolved_state, finalized_proposal)."""
    if proposal.market_id != state.market_id:
        raise ResolutionNotFinalizableError(
            f"proposal is for {proposal.market_id}, not {state.market_id}"
        )
    if state.is_resolved:
        raise MarketNotActiveError(state.market_id, state.status.value)
    if proposal.status != ResolutionStatus.PENDING:
        raise ResolutionNotFinalizableError(f"proposal is {proposal.status.value}")
    if now < proposal.challenge_period_end:
        raise ResolutionNotFinalizableError(
            f"challenge period ends at {proposal.challenge_period_end.isoformat()}"
        )

    resolved = replace(
        state,
        status=MarketStatus.RESOLVED,
        resolution=proposal.outcome,
        sequence=state.sequence + 1,
        last_updated=now,
    )
    return resolved, replace(proposal, status=ResolutionStatus.FINALIZED)
