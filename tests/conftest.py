"""
Pytest configuration and common fixtures for bindscan tests.
"""
import tempfile
from pathlib import Path

import pytest

from bindscan.io import parse_matrix

SIMPLE_PFM = """>SIMPLE
A [ 2 0 0 2 ]
C [ 0 2 0 0 ]
G [ 0 0 2 0 ]
T [ 0 0 0 0 ]
"""


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_data_dir():
    """Return path to test data directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def simple_matrix():
    """Length-4 matrix with consensus ACGA and two sites per column."""
    return parse_matrix(SIMPLE_PFM)
