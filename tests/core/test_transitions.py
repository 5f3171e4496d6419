"""Tests for transition probability matrices."""

import logging

import numpy as np
import pytest

from gtrml.core.errors import InvalidArgumentError, NumericOverflowError
from gtrml.core.rate_matrix import RateModel
from gtrml.core.spectral import SpectralDecomposition
from gtrml.core.transitions import transition_matrices, transition_matrix


PI = np.array([0.1, 0.2, 0.3, 0.4])
RHO = np.array([0.05, 0.3, 0.1, 0.15, 0.25, 0.15])


@pytest.fixture(params=["general", "symmetric"])
def model(request):
    return RateModel.from_parameters(PI, RHO, method=request.param)


class TestTransitionMatrix:

    @pytest.mark.parametrize("t", [0.001, 0.1, 0.5, 1.0, 3.0, 10.0])
    def test_rows_are_distributions(self, model, t):
        P = transition_matrix(model.decomposition, t)
        assert np.all(P >= 0)
        np.testing.assert_allclose(P.sum(axis=1), 1.0, atol=1e-12)

    def test_zero_time_is_identity(self, model):
        np.testing.assert_array_equal(transition_matrix(model.decomposition, 0.0), np.eye(4))

    def test_small_time_close_to_identity(self, model):
        P = transition_matrix(model.decomposition, 1e-12)
        np.testing.assert_allclose(P, np.eye(4), atol=1e-9)

    @pytest.mark.parametrize("t", [0.05, 0.7, 2.5])
    def test_stationarity_preserved(self, model, t):
        P = transition_matrix(model.decomposition, t)
        np.testing.assert_allclose(PI @ P, PI, atol=1e-12)

    @pytest.mark.parametrize("s,t", [(0.1, 0.2), (0.5, 1.5), (0.0, 0.3), (2.0, 3.0)])
    def test_chapman_kolmogorov(self, model, s, t):
        Ps = transition_matrix(model.decomposition, s)
        Pt = transition_matrix(model.decomposition, t)
        Pst = transition_matrix(model.decomposition, s + t)
        np.testing.assert_allclose(Ps @ Pt, Pst, atol=1e-10)

    def test_matches_scipy_expm(self, model):
        from scipy.linalg import expm
        P = transition_matrix(model.decomposition, 0.37)
        np.testing.assert_allclose(P, expm(model.rate_matrix * 0.37), atol=1e-10)

    def test_long_branch_converges_to_stationary(self, model):
        P = transition_matrix(model.decomposition, 200.0)
        np.testing.assert_allclose(P, np.tile(PI, (4, 1)), atol=1e-9)

    @pytest.mark.parametrize("t", [1e8, 1e12, 1e17])
    def test_very_long_branch_rows_stay_normalized(self, model, t):
        P = transition_matrix(model.decomposition, t)
        np.testing.assert_allclose(P.sum(axis=1), 1.0, atol=1e-12)
        np.testing.assert_allclose(P, np.tile(PI, (4, 1)), atol=1e-9)

    def test_jukes_cantor_closed_form(self):
        model = RateModel.jukes_cantor()
        t = 0.1
        P = transition_matrix(model.decomposition, t)
        same = 0.25 + 0.75 * np.exp(-4 * t / 3)
        diff = 0.25 - 0.25 * np.exp(-4 * t / 3)
        expected = np.full((4, 4), diff)
        np.fill_diagonal(expected, same)
        np.testing.assert_allclose(P, expected, atol=1e-6)

    def test_negative_time_rejected(self, model):
        with pytest.raises(InvalidArgumentError):
            transition_matrix(model.decomposition, -1)

    def test_nonfinite_time_rejected(self, model):
        with pytest.raises(InvalidArgumentError):
            transition_matrix(model.decomposition, np.inf)
        with pytest.raises(InvalidArgumentError):
            transition_matrix(model.decomposition, np.nan)


class TestNegativeProbabilities:
    """Decompositions that produce negative probabilities."""

    @staticmethod
    def _perturbed(delta):
        model = RateModel.jukes_cantor()
        dec = model.decomposition
        V_inv = np.array(dec.eigenvectors_inv)
        # Shift mass between two entries of the stationary row; rows still sum to 1
        V_inv[dec.zero_index, 0] -= delta
        V_inv[dec.zero_index, 1] += delta
        return SpectralDecomposition(
            eigenvalues=dec.eigenvalues,
            eigenvectors=dec.eigenvectors,
            eigenvectors_inv=V_inv,
            zero_index=dec.zero_index,
        )

    def test_tiny_negative_clipped_with_warning(self, caplog):
        dec = self._perturbed(0.0)
        # P[:, 0] at long t is ~ pi_A; push it just below zero
        v = dec.eigenvectors[:, dec.zero_index]
        shift = (0.25 + 5e-10) / v[0]
        dec = self._perturbed(shift)
        with caplog.at_level(logging.WARNING, logger="gtrml.core.transitions"):
            P = transition_matrix(dec, 100.0)
        assert np.all(P >= 0)
        np.testing.assert_allclose(P.sum(axis=1), 1.0)
        assert "Clipping" in caplog.text

    def test_large_negative_raises(self):
        dec = self._perturbed(0.0)
        v = dec.eigenvectors[:, dec.zero_index]
        dec = self._perturbed((0.25 + 1e-3) / v[0])
        with pytest.raises(NumericOverflowError):
            transition_matrix(dec, 100.0)


class TestTransitionMatrices:

    def test_one_matrix_per_distinct_length(self, model):
        matrices = transition_matrices(model.decomposition, [0.1, 0.2, 0.1])
        assert set(matrices) == {0.1, 0.2}
        np.testing.assert_allclose(matrices[0.2], transition_matrix(model.decomposition, 0.2))
