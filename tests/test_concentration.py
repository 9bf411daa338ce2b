"""
Unit tests for concentration parameter updates
"""

import pytest
import numpy as np
from scipy.integrate import trapezoid

from dpmm_gibbs.concentration import (
    ConcentrationSampler, log_conditional, update, update_grid,
)
from dpmm_gibbs.exceptions import InvalidConfiguration


def conditional_mean(k, n, shape, rate):
    """Mean of p(alpha | K, n) by numerical integration."""
    grid = np.geomspace(1e-5, 1e3, 200_000)
    log_p = log_conditional(grid, k, n, shape, rate)
    p = np.exp(log_p - log_p.max())
    return trapezoid(grid * p, grid) / trapezoid(p, grid)


class TestValidation:
    """Test hyperparameter checks."""

    @pytest.mark.parametrize("shape,rate", [(0.0, 1.0), (1.0, 0.0), (-1.0, 1.0), (1.0, -2.0)])
    def test_invalid_hyperprior(self, shape, rate, rng):
        with pytest.raises(InvalidConfiguration):
            update(1.0, 2, 10, shape, rate, rng)
        with pytest.raises(InvalidConfiguration):
            update_grid(1.0, 2, 10, shape, rate, rng)

    def test_invalid_component_count(self, rng):
        with pytest.raises(InvalidConfiguration):
            update(1.0, 0, 10, 1.0, 1.0, rng)
        with pytest.raises(InvalidConfiguration):
            update(1.0, 11, 10, 1.0, 1.0, rng)

    def test_invalid_method(self):
        with pytest.raises(InvalidConfiguration):
            ConcentrationSampler(method='slice')

    def test_invalid_grid(self, rng):
        with pytest.raises(InvalidConfiguration):
            update_grid(1.0, 2, 10, 1.0, 1.0, rng, alpha_min=5.0, alpha_max=1.0)


class TestEscobarWest:
    """Test the auxiliary-variable update."""

    def test_returns_positive(self, rng):
        for _ in range(100):
            assert update(1.0, 3, 20, 1.0, 1.0, rng) > 0

    def test_pure_given_random_source(self):
        a = update(0.7, 3, 20, 2.0, 1.0, np.random.default_rng(5))
        b = update(0.7, 3, 20, 2.0, 1.0, np.random.default_rng(5))
        assert a == b

    def test_no_observations_draws_from_hyperprior(self, rng):
        draws = [update(1.0, 0, 0, 3.0, 2.0, rng) for _ in range(20_000)]
        assert np.mean(draws) == pytest.approx(1.5, rel=0.05)

    def test_stationary_distribution(self, rng):
        """Iterating the update with K, n fixed targets p(alpha | K, n)."""
        k, n, shape, rate = 3, 20, 2.0, 1.0
        alpha = 1.0
        draws = []
        for _ in range(20_000):
            alpha = update(alpha, k, n, shape, rate, rng)
            draws.append(alpha)

        assert np.mean(draws[1000:]) == pytest.approx(conditional_mean(k, n, shape, rate), rel=0.05)

    def test_more_components_favor_larger_alpha(self, rng):
        few = [update(1.0, 1, 50, 1.0, 1.0, rng) for _ in range(5000)]
        many = [update(1.0, 20, 50, 1.0, 1.0, rng) for _ in range(5000)]
        assert np.mean(many) > np.mean(few)


class TestGrid:
    """Test the grid-based update."""

    def test_draws_from_grid_range(self, rng):
        for _ in range(100):
            alpha = update_grid(1.0, 3, 20, 1.0, 1.0, rng, alpha_min=0.1, alpha_max=10.0)
            assert 0.1 <= alpha <= 10.0

    def test_matches_conditional_mean(self, rng):
        k, n, shape, rate = 3, 20, 2.0, 1.0
        draws = [update_grid(1.0, k, n, shape, rate, rng, alpha_min=1e-3, alpha_max=50.0,
                             grid_size=400)
                 for _ in range(10_000)]
        assert np.mean(draws) == pytest.approx(conditional_mean(k, n, shape, rate), rel=0.05)

    def test_sampler_dispatch(self, rng):
        sampler = ConcentrationSampler(hyper_shape=2.0, hyper_rate=1.0, method='grid',
                                       alpha_min=0.5, alpha_max=2.0, grid_size=10)
        grid = np.geomspace(0.5, 2.0, 10)
        assert sampler(1.0, 3, 20, rng) in grid


if __name__ == '__main__':
    pytest.main([__file__, '-v', '--tb=short'])
