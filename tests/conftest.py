"""Pytest configuration and shared fixtures for optistate tests."""

import os

import numpy as np
import pytest


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Seeded numpy generator; override the seed with ``TEST_RNG_SEED``."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)
