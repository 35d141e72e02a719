"""
Shared test fixtures for the marshalry test suite.
"""

import pytest

from marshalry import Marshal
from marshalry.testing import StaticSourceLoader


@pytest.fixture
def loader() -> StaticSourceLoader:
    return StaticSourceLoader()


@pytest.fixture
def marshal(loader) -> Marshal:
    return Marshal(loader)
