"""LMSR pricing engine for a binary (YES/NO) market.

Cost function: C(q_yes, q_no) = b * ln(e^(q_yes/b) + e^(q_no/b))
Marginal price: p_yes = e^(q_yes/b) / (e^(q_yes/b) + e^(q_no/b))

Stateless per call: every method takes the full market state as arguments.
Callers own (q_yes, q_no, total_volume, tx_count) and serialise updates.
"""

import logging

from src.pm_common.enums import Outcome
from src.pm_common.errors import InvalidAmountError, SearchBoundExceededError
from src.pm_common.fixed_point import HALF, SCALE, div_trunc, exp_approx, ln, sqrt
from src.pm_pricing.domain.models import (
    BPS_DENOMINATOR,
    DEFAULT_LMSR_PARAMS,
    LMSRParams,
    TradePreview,
    check_fee_rate,
)

logger = logging.getLogger(__name__)

MAX_SEARCH_ITERATIONS = 50
SEARCH_BOUND_MULTIPLIER = 10
PRICE_SUM_TOLERANCE = 10**15  # 0.001


class LMSRPricer:
    def __init__(self, params: LMSRParams = DEFAULT_LMSR_PARAMS) -> None:
        self._params = params

    @property
    def params(self) -> LMSRParams:
        return self._params

    def _ln(self, x: int) -> int:
        return ln(x, self._params.log_mode)

    # ------------------------------------------------------------------
    # Liquidity
    # ------------------------------------------------------------------

    def calculate_b(self, total_volume: int, tx_count: int) -> int:
        """Dynamic liquidity: b0 * (1 + alpha*sqrt(V/V0) + beta*ln(1+n)).

        Returns b0 unchanged for a market with no activity.
        """
        p = self._params
        if total_volume == 0 and tx_count == 0:
            return p.b0

        volume_ratio = total_volume * SCALE // p.V0
        sqrt_volume = sqrt(volume_ratio)
        ln_tx_count = self._ln(SCALE + tx_count * SCALE)

        multiplier = (
            SCALE
            + p.alpha * sqrt_volume // SCALE
            + p.beta * ln_tx_count // SCALE
        )
        return p.b0 * multiplier // SCALE

    # ------------------------------------------------------------------
    # Cost & price
    # ------------------------------------------------------------------

    def get_cost(self, q_yes: int, q_no: int, b: int) -> int:
        if q_yes == 0 and q_no == 0:
            return b * self._ln(2 * SCALE) // SCALE

        exp_yes = exp_approx(q_yes * SCALE // b)
        exp_no = exp_approx(q_no * SCALE // b)
        return b * self._ln(exp_yes + exp_no) // SCALE

    def get_price(self, q_yes: int, q_no: int, b: int) -> tuple[int, int]:
        """Marginal prices (p_yes, p_no), each in [0, 1e18]."""
        if q_yes == 0 and q_no == 0:
            return HALF, HALF

        exp_yes = exp_approx(q_yes * SCALE // b)
        exp_no = exp_approx(q_no * SCALE // b)
        total = exp_yes + exp_no
        if total == 0:
            return HALF, HALF

        return exp_yes * SCALE // total, exp_no * SCALE // total

    def _price_of(self, outcome: Outcome, q_yes: int, q_no: int, b: int) -> int:
        p_yes, p_no = self.get_price(q_yes, q_no, b)
        return p_yes if outcome == Outcome.YES else p_no

    # ------------------------------------------------------------------
    # Share solver
    # ------------------------------------------------------------------

    def calculate_shares(
        self,
        pay_amount: int,
        outcome: Outcome,
        q_yes: int,
        q_no: int,
        b: int,
        upper_bound: int | None = None,
    ) -> int:
        """Largest share count whose cost delta does not exceed pay_amount.

        Binary search over [0, upper_bound] (default pay_amount * 10), capped
        at 50 iterations. The lower end is always affordable, so an unconverged
        search under-issues rather than over-issues.

        Raises SearchBoundExceededError if even upper_bound shares are affordable.
        """
        if pay_amount < 0:
            raise InvalidAmountError(pay_amount)
        if pay_amount == 0:
            return 0

        high = upper_bound if upper_bound is not None else pay_amount * SEARCH_BOUND_MULTIPLIER
        target_cost = self.get_cost(q_yes, q_no, b) + pay_amount

        def cost_after(shares: int) -> int:
            if outcome == Outcome.YES:
                return self.get_cost(q_yes + shares, q_no, b)
            return self.get_cost(q_yes, q_no + shares, b)

        if cost_after(high) <= target_cost:
            raise SearchBoundExceededError(pay_amount, high)

        low = 0
        iterations = 0
        while high - low > 1 and iterations < MAX_SEARCH_ITERATIONS:
            mid = (low + high) // 2
            if cost_after(mid) <= target_cost:
                low = mid
            else:
                high = mid
            iterations += 1
        return low

    # ------------------------------------------------------------------
    # Preview & validation
    # ------------------------------------------------------------------

    def preview_trade(
        self,
        pay_amount: int,
        outcome: Outcome,
        q_yes: int,
        q_no: int,
        b: int,
        fee_rate_bps: int,
    ) -> TradePreview:
        """Advisory quote for buying `outcome` with pay_amount. No side effects.

        The fee is taken off the top: shares are bought with pay_amount - fee.
        """
        check_fee_rate(fee_rate_bps)
        fee = pay_amount * fee_rate_bps // BPS_DENOMINATOR
        net_amount = pay_amount - fee

        expected_shares = self.calculate_shares(net_amount, outcome, q_yes, q_no, b)

        if outcome == Outcome.YES:
            new_q_yes, new_q_no = q_yes + expected_shares, q_no
        else:
            new_q_yes, new_q_no = q_yes, q_no + expected_shares

        new_price = self._price_of(outcome, new_q_yes, new_q_no, b)
        current_price = self._price_of(outcome, q_yes, q_no, b)

        price_impact = (
            div_trunc((new_price - current_price) * SCALE, current_price)
            if current_price > 0
            else 0
        )
        avg_price = net_amount * SCALE // expected_shares if expected_shares > 0 else 0

        return TradePreview(
            expected_shares=expected_shares,
            new_price=new_price,
            price_impact=price_impact,
            avg_price=avg_price,
            fee=fee,
            net_amount=net_amount,
        )

    def validate_state(self, q_yes: int, q_no: int, b: int) -> bool:
        """Sanity check before committing a new state: q >= 0, b > 0, prices sum to ~1."""
        if q_yes < 0 or q_no < 0 or b <= 0:
            logger.debug("Rejected state: q_yes=%d q_no=%d b=%d", q_yes, q_no, b)
            return False

        p_yes, p_no = self.get_price(q_yes, q_no, b)
        deviation = abs(p_yes + p_no - SCALE)
        if deviation >= PRICE_SUM_TOLERANCE:
            logger.debug("Price sum off by %d: p_yes=%d p_no=%d", deviation, p_yes, p_no)
            return False
        return True
