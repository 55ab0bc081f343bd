"""Unified error codes and custom exceptions.

Error code ranges:
  3xxx: Market
  4xxx: Trade
  5xxx: Resolution/Settlement
  6xxx: Pricing
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class MarketNotActiveError(AppError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(3002, f"Market {market_id} is not active (status {status})", 422)


class MarketAlreadyExistsError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3003, f"Market already exists: {market_id}", 409)


class MarketNotResolvedError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3004, f"Market is not resolved: {market_id}", 422)


# --- 4xxx: Trade ---

class TradeAmountOutOfRangeError(AppError):
    def __init__(self, amount: int, min_amount: int, max_amount: int) -> None:
        super().__init__(
            4001,
            f"Trade amount {amount} out of range [{min_amount}, {max_amount}]",
            400,
        )


class SlippageExceededError(AppError):
    def __init__(self, expected_shares: int, min_shares: int) -> None:
        super().__init__(
            4002,
            f"Slippage exceeded: expected {expected_shares} shares, minimum {min_shares}",
            422,
        )


class ReplayedIntentError(AppError):
    def __init__(self, trader: str, nonce: int, last_nonce: int) -> None:
        super().__init__(
            4003,
            f"Replayed intent from {trader}: nonce {nonce} <= last nonce {last_nonce}",
            409,
        )


class StaleMarketStateError(AppError):
    def __init__(self, market_id: str, expected_sequence: int) -> None:
        super().__init__(
            4004,
            f"Market {market_id} changed since sequence {expected_sequence}",
            409,
        )


class InvalidMarketStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Market state rejected: {detail}", 422)


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(4006, f"Amount must not be negative, got {amount}", 400)


# --- 5xxx: Resolution/Settlement ---

class ResolutionNotFinalizableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Resolution cannot be finalized: {detail}", 422)


class NoPendingTradesError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(5002, f"No pending trades to settle for market {market_id}", 422)


class ResolutionNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(5003, f"No resolution proposed for market {market_id}", 404)


class ResolutionAlreadyProposedError(AppError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(
            5004, f"Market {market_id} already has a {status} resolution proposal", 409
        )


# --- 6xxx: Pricing ---

class DomainError(AppError):
    """Logarithm or square root of an out-of-domain value."""

    def __init__(self, function: str, value: int) -> None:
        super().__init__(6001, f"{function}: argument out of domain, got {value}", 422)
        self.function = function
        self.value = value


class SearchBoundExceededError(AppError):
    """Share solver's upper bound is affordable; the result would be clamped."""

    def __init__(self, pay_amount: int, upper_bound: int) -> None:
        super().__init__(
            6002,
            f"Payment {pay_amount} buys more than the search bound of {upper_bound} shares",
            422,
        )
        self.pay_amount = pay_amount
        self.upper_bound = upper_bound


class InvalidLMSRParamsError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6003, f"Invalid LMSR parameters: {detail}", 500)


class InvalidFeeRateError(AppError):
    def __init__(self, fee_rate_bps: int) -> None:
        super().__init__(6004, f"Fee rate must be in [0, 10000] bps, got {fee_rate_bps}", 400)
        self.fee_rate_bps = fee_rate_bps
