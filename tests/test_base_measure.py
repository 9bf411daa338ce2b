"""
Unit tests for base measures
"""

import pytest
import numpy as np
from scipy import stats

from dpmm_gibbs.base_measure import (
    ComponentParams, NormalFixedVariance, NormalInverseGamma, base_measure_from_dict,
)
from dpmm_gibbs.exceptions import InvalidConfiguration


class TestValidation:
    """Test hyperparameter validation."""

    @pytest.mark.parametrize("kwargs", [
        {'mean_scale': 0.0},
        {'mean_scale': -1.0},
        {'variance': 0.0},
        {'mean_loc': np.inf},
    ])
    def test_fixed_variance_rejects_bad_hyperparameters(self, kwargs):
        with pytest.raises(InvalidConfiguration):
            NormalFixedVariance(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {'kappa': 0.0},
        {'shape': -2.0},
        {'scale': 0.0},
    ])
    def test_nig_rejects_bad_hyperparameters(self, kwargs):
        with pytest.raises(InvalidConfiguration):
            NormalInverseGamma(**kwargs)

    def test_invalid_configuration_is_value_error(self):
        with pytest.raises(ValueError):
            NormalFixedVariance(variance=-1.0)


class TestPriorPredictive:
    """Test the new-component marginal likelihood."""

    def test_fixed_variance_closed_form(self, fixed_variance_base):
        expected = stats.norm.logpdf(-10.0, loc=0.0, scale=np.sqrt(100.0 + 1.0))
        assert fixed_variance_base.log_prior_predictive(-10.0) == pytest.approx(expected)

    def test_nig_matches_monte_carlo(self, nig_base, rng):
        """Student-t predictive should match the average prior likelihood."""
        y = 0.5
        means, variances = nig_base.sample_prior_batch(200_000, rng)
        mc = np.mean(np.exp(nig_base.log_likelihood(y, means, variances)))

        assert np.exp(nig_base.log_prior_predictive(y)) == pytest.approx(mc, rel=0.03)

    def test_predictive_decreases_away_from_prior_mean(self, fixed_variance_base):
        assert (fixed_variance_base.log_prior_predictive(0.0)
                > fixed_variance_base.log_prior_predictive(30.0))


class TestLikelihood:
    """Test vectorized likelihood evaluation."""

    def test_vectorized_shape(self, fixed_variance_base):
        log_lik = fixed_variance_base.log_likelihood(1.0, [0.0, 1.0, 5.0], [1.0, 1.0, 1.0])
        assert log_lik.shape == (3,)
        assert np.argmax(log_lik) == 1

    def test_zero_variance_does_not_raise(self, fixed_variance_base):
        log_lik = fixed_variance_base.log_likelihood(1.0, [0.0], [0.0])
        assert not np.isfinite(log_lik[0])


class TestPosteriorDraws:
    """Test conjugate posterior draws."""

    def test_fixed_variance_concentrates_on_sample_mean(self, fixed_variance_base, rng):
        n = 1000
        total = 3.0 * n
        draws = [fixed_variance_base.sample_posterior(n, total, 9.0 * n + n, rng).mean
                 for _ in range(50)]
        assert np.mean(draws) == pytest.approx(3.0, abs=0.2)

    def test_fixed_variance_keeps_variance(self, fixed_variance_base, rng):
        params = fixed_variance_base.sample_posterior(3, 6.0, 14.0, rng)
        assert isinstance(params, ComponentParams)
        assert params.variance == 1.0

    def test_nig_recovers_mean_and_variance(self, nig_base, rng):
        y = rng.normal(2.0, 0.5, size=500)
        draws = [nig_base.sample_posterior(len(y), y.sum(), np.dot(y, y), rng)
                 for _ in range(200)]

        assert np.mean([d.mean for d in draws]) == pytest.approx(2.0, abs=0.1)
        assert np.mean([d.variance for d in draws]) == pytest.approx(0.25, abs=0.05)

    def test_empty_component_falls_back_to_prior(self, nig_base, rng):
        params = nig_base.sample_posterior(0, 0.0, 0.0, rng)
        assert np.isfinite(params.mean)
        assert params.variance > 0


class TestFromDict:
    """Test building base measures from plain mappings."""

    def test_round_trip(self, fixed_variance_base, nig_base):
        for base in (fixed_variance_base, nig_base):
            assert base_measure_from_dict(base.to_dict()) == base

    def test_unknown_family(self):
        with pytest.raises(InvalidConfiguration):
            base_measure_from_dict({'family': 'dirichlet'})

    def test_unknown_hyperparameter(self):
        with pytest.raises(InvalidConfiguration):
            base_measure_from_dict({'family': 'normal_fixed_variance', 'sigma': 1.0})


if __name__ == '__main__':
    pytest.main([__file__, '-v', '--tb=short'])
