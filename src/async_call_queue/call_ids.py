"""Call identifier arithmetic bounded to the JavaScript safe-integer range.

Call ids may be handed to web front ends, where integers are IEEE-754 doubles
and exact only within [-2**53, 2**53 - 1]. Counters wrap instead of leaving
that range.
"""

MAX_SAFE_INT = 2**53 - 1
MIN_SAFE_INT = -(2**53)


def safe_increment(value: int, wrap_to: int = MIN_SAFE_INT) -> int:
    """Return value + 1, or wrap_to when value is MAX_SAFE_INT.

    Example:
        safe_increment(41)  # 42
        safe_increment(MAX_SAFE_INT)  # MIN_SAFE_INT
        safe_increment(MAX_SAFE_INT, wrap_to=0)  # 0
    """
    return wrap_to if value == MAX_SAFE_INT else value + 1
