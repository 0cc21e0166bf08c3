"""
Pytest configuration and common fixtures for seqmix tests.
"""
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest

from seqmix.ragged import ragged_from_list, reverse_complement

# Force testing the installed package, not the local source
project_root = str(Path(__file__).parent.parent.absolute())
if project_root in sys.path:
    sys.path.remove(project_root)

ENCODING = {"A": 0, "C": 1, "G": 2, "T": 3}


def encode(text: str) -> np.ndarray:
    return np.array([ENCODING.get(char, 4) for char in text], dtype=np.int8)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def bernoulli_data():
    """Four binary sequences of length 1: two zeros, two ones."""
    return ragged_from_list([np.array([v], dtype=np.int8) for v in (0, 0, 1, 1)], dtype=np.int8)


@pytest.fixture
def palindromic_data():
    """DNA sequences of length 6 together with their reverse complements."""
    forward = [encode(text) for text in ("AAAAAC", "AAAAAG", "AAAACC", "AAAAAA", "AAAACA")]
    return ragged_from_list(forward + [reverse_complement(seq) for seq in forward], dtype=np.int8)


@pytest.fixture
def random_dna():
    """Forty uniformly drawn DNA sequences of length 8."""
    rng = np.random.default_rng(12)
    return ragged_from_list([rng.integers(0, 4, size=8).astype(np.int8) for _ in range(40)], dtype=np.int8)
