"""Shared fixtures for the Borwein π tests."""
import pytest

from pi_borwein_gmpy2 import make_context, working_precision

# First 100 decimals of π, for checking against.
PI_100 = (
    "3."
    "1415926535897932384626433832795028841971693993751058209749445923078164"
    "062862089986280348253421170679"
)


@pytest.fixture
def ctx():
    """Context wide enough for a couple hundred digits."""
    return make_context(working_precision(100))


@pytest.fixture
def pi_reference():
    return PI_100
