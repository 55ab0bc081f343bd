"""Fixed-point arithmetic for the LMSR engine.

All quantities are int scaled by SCALE (1e18). No float, no Decimal:
independent parties must derive byte-identical prices.
Every division truncates toward zero (all operands here are non-negative
except in div_trunc and in log2 below 1.0).
"""

from src.pm_common.enums import LogMode
from src.pm_common.errors import DomainError

SCALE = 10**18
HALF = SCALE // 2
LN2 = 693_147_180_559_945_309  # ln(2) * 1e18

MAX_EXP_INPUT = 42 * SCALE
EXP_SATURATION = 2**256 - 1

_LOG2_1_5 = 585 * 10**15   # log2(1.5) ~ 0.585
_LOG2_1_25 = 322 * 10**15  # log2(1.25) ~ 0.322


def to_fixed(units: int) -> int:
    """Whole units -> fixed-point: 3 -> 3e18."""
    return units * SCALE


def fixed_to_display(value: int, places: int = 4) -> str:
    """Fixed-point -> display string: 1.5e18 -> '1.5000', -2.5e17 -> '-0.2500'."""
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole, frac = divmod(value, SCALE)
    frac_digits = f"{frac:018d}"[:places]
    if places == 0:
        return f"{sign}{whole:,}"
    return f"{sign}{whole:,}.{frac_digits}"


def div_trunc(a: int, b: int) -> int:
    """Signed integer division rounding toward zero (Python's // floors)."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def exp_approx(x: int) -> int:
    """e^x via a 5-term Taylor series: 1 + x + x²/2! + x³/3! + x⁴/4! + x⁵/5!.

    Saturates at EXP_SATURATION for x >= 42.0. Accuracy degrades for large x;
    callers keep q/b moderate by growing b with volume.
    """
    if x == 0:
        return SCALE
    if x >= MAX_EXP_INPUT:
        return EXP_SATURATION

    result = SCALE
    term = x
    result += term
    for k in (2, 3, 4, 5):
        term = term * x // (k * SCALE)
        result += term
    return result


def log2_coarse(x: int) -> int:
    """Binary log with a two-bucket fractional correction.

    Integer part by halving; remainder >= 1.5 adds 0.585, >= 1.25 adds 0.322.
    Deliberately coarse: the result is a step function of x. Inputs below 1.0
    return 0.
    """
    if x <= 0:
        raise DomainError("log2", x)

    result = 0
    y = x
    while y >= 2 * SCALE:
        y //= 2
        result += SCALE

    if y >= 15 * 10**17:
        result += _LOG2_1_5
    elif y >= 125 * 10**16:
        result += _LOG2_1_25
    return result


def log2_precise(x: int) -> int:
    """Binary log, fractional bits extracted by repeated squaring (~60 bits).

    Below 1.0: log2(x) = -log2(1/x).
    """
    if x <= 0:
        raise DomainError("log2", x)
    if x < SCALE:
        return -log2_precise(SCALE * SCALE // x)

    result = 0
    y = x
    while y >= 2 * SCALE:
        y //= 2
        result += SCALE
    if y == SCALE:
        return result

    delta = HALF
    while delta > 0:
        y = y * y // SCALE
        if y >= 2 * SCALE:
            result += delta
            y //= 2
        delta //= 2
    return result


def log2(x: int, mode: LogMode = LogMode.PRECISE) -> int:
    if mode == LogMode.COARSE:
        return log2_coarse(x)
    return log2_precise(x)


def ln(x: int, mode: LogMode = LogMode.PRECISE) -> int:
    """Natural log: log2(x) * ln(2). ln(1.0) is exactly 0."""
    if x <= 0:
        raise DomainError("ln", x)
    if x == SCALE:
        return 0
    return div_trunc(log2(x, mode) * LN2, SCALE)


def isqrt(n: int) -> int:
    """Integer square root, Babylonian method; stops once the iterate stops decreasing."""
    if n < 0:
        raise DomainError("sqrt", n)
    if n == 0:
        return 0
    z = (n + 1) // 2
    y = n
    while z < y:
        y = z
        z = (n // z + z) // 2
    return y


def sqrt(x: int) -> int:
    """Fixed-point square root: sqrt(4e18) == 2e18."""
    return isqrt(x * SCALE)
