"""
Pytest configuration and fixtures for reproducible testing.

This file provides centralized test configuration including:
- A seeded random source for every test that needs one
- Shared observation sets and base measures
- Registration of the `slow` marker
"""
import pytest
import numpy as np
import sys
import os

# Make src/ importable without installing
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from dpmm_gibbs.base_measure import NormalFixedVariance, NormalInverseGamma


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running statistical tests")


@pytest.fixture
def rng():
    """Fresh seeded generator per test.

    Example:
        def test_something(rng):
            data = rng.normal(size=100)
    """
    return np.random.default_rng(42)


@pytest.fixture
def two_groups():
    """Five observations in two well-separated groups."""
    return np.array([-10.0, -9.0, -11.0, 10.0, 11.0])


@pytest.fixture
def fixed_variance_base():
    return NormalFixedVariance(mean_loc=0.0, mean_scale=10.0, variance=1.0)


@pytest.fixture
def nig_base():
    return NormalInverseGamma(mean_loc=0.0, kappa=0.1, shape=2.0, scale=2.0)


class DegenerateBase(NormalFixedVariance):
    """Base measure whose densities all underflow."""

    def log_likelihood(self, y, means, variances):
        return np.full(np.shape(means), -np.inf)

    def log_prior_predictive(self, y):
        return -np.inf


@pytest.fixture
def degenerate_base():
    return DegenerateBase()
