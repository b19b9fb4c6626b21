"""Shared constants for tests.

Usage:
    from tests.helpers import SAMPLE_TOKEN_ID, RATE_DENOMINATOR
"""

from trade_solver.constants import NATIVE_TOKEN_ID

NATIVE = NATIVE_TOKEN_ID

# Token id used by the reference fixtures
SAMPLE_TOKEN_ID = "412064756d6d7920746f6b656e2069642c203132332031323320313233212121"
OTHER_TOKEN_ID = "ff" * 32

# Legacy rate denominator the reference fixtures were computed with
RATE_DENOMINATOR = 10**13
