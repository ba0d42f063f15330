"""Numeric coercion and unit helpers for nutrition payloads."""
import math


def round_half_up(value, default: int = 0) -> int:
    """Coerce ``value`` to a number and round halves upward (2.5 -> 3, -2.5 -> -2).

    Missing or non-numeric input yields ``default``; booleans are rejected.
    """
    if value is None or isinstance(value, bool) or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return int(math.floor(number + 0.5))


def macro_progress_pct(consumed: float, target: float | None) -> float | None:
    if not target:
        return None
    return round(max(0.0, (consumed / target) * 100.0), 1)
