"""Test helpers module for shared test utilities.

- constants: token ids, rate denominator and fixture pools
- factories: pool snapshot and pair factory functions
"""

from tests.helpers.constants import (
    NATIVE,
    OTHER_TOKEN_ID,
    RATE_DENOMINATOR,
    SAMPLE_TOKEN_ID,
)
from tests.helpers.factories import make_pair, make_pool

__all__ = [
    # Constants
    "NATIVE",
    "SAMPLE_TOKEN_ID",
    "OTHER_TOKEN_ID",
    "RATE_DENOMINATOR",
    # Factories
    "make_pool",
    "make_pair",
]
