"""Tests for the pairwise GTR log-likelihood."""

import math

import numpy as np
import pytest

from gtrml.core.data import SitePatternCounts
from gtrml.core.errors import DomainError, InvalidArgumentError, NumericOverflowError
from gtrml.core.likelihood import (
    log_likelihood,
    log_likelihood_from_matrix,
    log_likelihood_from_model,
    log_likelihood_theta,
    site_log_likelihoods,
)
from gtrml.core.rate_matrix import RateModel
from gtrml.core.reparameterize import parameters_to_theta
from gtrml.core.simulation import simulate_pair
from gtrml.core.transitions import transition_matrix


PI = np.array([0.1, 0.2, 0.3, 0.4])
RHO = np.array([0.05, 0.3, 0.1, 0.15, 0.25, 0.15])


@pytest.fixture
def model():
    return RateModel.from_parameters(PI, RHO)


@pytest.fixture
def counts():
    return SitePatternCounts(np.array([
        [30, 2, 5, 1],
        [3, 40, 1, 6],
        [4, 2, 55, 3],
        [1, 7, 2, 60],
    ]))


class TestLogLikelihood:

    def test_matches_formula(self, counts, model):
        t = 0.25
        P = transition_matrix(model.decomposition, t)
        n = counts.counts
        expected = sum(n[i].sum() * math.log(PI[i]) for i in range(4))
        expected += sum(n[i, j] * math.log(P[i, j]) for i in range(4) for j in range(4))
        assert np.isclose(log_likelihood(counts, PI, RHO, t), expected, rtol=0, atol=1e-9)

    def test_count_and_per_site_forms_agree(self, counts, model):
        """Summing per-site terms over an expanded pair reproduces the count form."""
        t = 0.4
        first, second = counts.expand()
        per_site = site_log_likelihoods(first, second, model, t)
        assert per_site.shape == (counts.n_sites,)
        direct = log_likelihood_from_model(counts, model, t)
        assert abs(math.fsum(per_site) - direct) < 1e-9

    def test_per_site_on_shuffled_simulated_pair(self, model):
        rng = np.random.default_rng(9)
        x, y = simulate_pair(300, model, 0.2, rng)
        counts = SitePatternCounts.from_sequences(x, y)
        per_site = site_log_likelihoods(x, y, model, 0.2)
        assert abs(math.fsum(per_site) - log_likelihood_from_model(counts, model, 0.2)) < 1e-9

    def test_accepts_raw_array(self, counts):
        assert log_likelihood(counts.counts, PI, RHO, 0.1) == log_likelihood(counts, PI, RHO, 0.1)

    def test_zero_counts_ignore_zero_probabilities(self):
        counts = np.diag([10, 10, 10, 10])
        ll = log_likelihood(counts, PI, RHO, 0.0)
        expected = 10 * np.sum(np.log(PI))
        assert np.isclose(ll, expected)

    def test_impossible_pattern_gives_minus_infinity(self):
        counts = np.diag([10, 10, 10, 10])
        counts[0, 1] = 1
        ll = log_likelihood(counts, PI, RHO, 0.0)
        assert ll == -np.inf

    def test_from_matrix_minus_infinity(self):
        P = np.eye(4)
        counts = np.ones((4, 4))
        assert log_likelihood_from_matrix(counts, np.full(4, 0.25), P) == -np.inf

    def test_nan_raises(self, counts, model):
        P = transition_matrix(model.decomposition, 0.2)
        with pytest.raises(NumericOverflowError):
            log_likelihood_from_matrix(counts, np.array([-0.25, 0.5, 0.5, 0.25]), P)

    def test_maximized_near_true_branch_length(self, model):
        rng = np.random.default_rng(21)
        x, y = simulate_pair(20000, model, 0.3, rng)
        counts = SitePatternCounts.from_sequences(x, y)
        grid = np.linspace(0.05, 0.8, 76)
        lls = [log_likelihood_from_model(counts, model, t) for t in grid]
        assert abs(grid[int(np.argmax(lls))] - 0.3) < 0.05

    def test_invalid_frequencies(self, counts):
        with pytest.raises(DomainError):
            log_likelihood(counts, [0.0, 0.5, 0.25, 0.25], RHO, 0.1)

    def test_negative_time(self, counts):
        with pytest.raises(InvalidArgumentError):
            log_likelihood(counts, PI, RHO, -0.1)

    def test_per_site_length_mismatch(self, model):
        with pytest.raises(InvalidArgumentError):
            site_log_likelihoods("ACGT", "ACG", model, 0.1)


class TestThetaVariant:

    def test_matches_direct_parameters(self, counts):
        theta = parameters_to_theta(0.25, PI, RHO)
        assert np.isclose(
            log_likelihood_theta(counts, theta),
            log_likelihood(counts, PI, RHO, 0.25),
            rtol=0,
            atol=1e-9,
        )

    def test_boundary_theta_is_finite(self, counts):
        theta = np.array([0.3, 0.0, 0.5, 0.5, 0.0, 0.5, 0.5, 0.5, 1.0])
        assert np.isfinite(log_likelihood_theta(counts, theta))

    def test_wrong_length(self, counts):
        with pytest.raises(InvalidArgumentError):
            log_likelihood_theta(counts, np.zeros(5))
