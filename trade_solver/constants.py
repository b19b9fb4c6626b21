"""Protocol constants for the trade solver.

Centralizes the pool fee, reserve floors and the caps on every iterative
correction loop.
"""

# Token id of the chain's native coin
NATIVE_TOKEN_ID = "BCH"

# Pool fee: 3/1000 (0.3%) of the net amount moved through the pool
TRADE_FEE_NUMERATOR = 3
TRADE_FEE_DENOMINATOR = 1000

# Shortfall steps allowed, once the fee on the last increment is down to a
# single unit, while folding a fee back into a target balance. Exceeding it
# is an invariant violation, the fee rate is fixed.
MAX_FEE_CORRECTION_ITERATIONS = 5

# Single-unit walk-down steps allowed after the marginal-rate bisection
MAX_ROUNDING_CORRECTION_ITERATIONS = 10

# Bytes a pool input/output pair adds to an exchange transaction
POOL_SIZE_IN_EXCHANGE_TX = 197

# Reserve floors: the native side stays above the dust limit,
# token side keeps at least one unit
DEFAULT_NATIVE_MIN_RESERVE = 693
DEFAULT_TOKEN_MIN_RESERVE = 1

# Number of increments the stepper splits a shortfall into
STEPPER_SIZE = 10
