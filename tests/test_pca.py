"""
Tests for the PCA module.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os
from sklearn.decomposition import PCA

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from k10analysis.math.pca import (
    normalize_vector, orient_component, compute_pca, project, project_responses
)
from k10analysis.math.response_matrix import ResponseMatrix


def correlated_data(n=200, seed=0):
    """Ten columns driven by one strong and one weaker latent factor."""
    rng = np.random.default_rng(seed)
    f1 = rng.normal(0, 3, n)
    f2 = rng.normal(0, 1, n)
    loadings1 = np.linspace(1.0, 0.5, 10)
    loadings2 = np.array([1, -1] * 5, dtype=float)
    return (np.outer(f1, loadings1) + np.outer(f2, loadings2)
            + rng.normal(0, 0.1, (n, 10)) + 3.0)


class TestPCAUtils:
    """Tests for the PCA utility functions."""

    def test_normalize_vector(self):
        """Test normalizing a vector to unit length."""
        normalized = normalize_vector(np.array([3.0, 4.0]))
        assert np.isclose(np.linalg.norm(normalized), 1.0)

        zero_vec = np.zeros(3)
        assert np.array_equal(normalize_vector(zero_vec), zero_vec)

    def test_orient_component(self):
        """Test the largest loading is made positive."""
        assert np.array_equal(orient_component(np.array([0.1, -0.9])), [-0.1, 0.9])
        assert np.array_equal(orient_component(np.array([0.1, 0.9])), [0.1, 0.9])
        assert np.array_equal(orient_component(np.zeros(2)), np.zeros(2))


class TestComputePCA:
    """Tests for compute_pca."""

    def test_components_orthonormal(self):
        """Test components are unit length and orthogonal."""
        result = compute_pca(correlated_data(), n_comps=2)
        comps = result['comps']

        assert comps.shape == (2, 10)
        assert np.allclose(comps @ comps.T, np.eye(2), atol=1e-10)

    def test_matches_sklearn_up_to_sign(self):
        """Test components agree with scikit-learn up to sign."""
        data = correlated_data()
        result = compute_pca(data, n_comps=2)
        reference = PCA(n_components=2).fit(data)

        for ours, theirs in zip(result['comps'], reference.components_):
            assert np.isclose(abs(np.dot(ours, theirs)), 1.0, atol=1e-6)
        assert np.allclose(result['explained_variance_ratio'],
                           reference.explained_variance_ratio_, atol=1e-8)

    def test_sign_convention(self):
        """Test every component has a positive largest loading."""
        result = compute_pca(correlated_data(), n_comps=2)
        for comp in result['comps']:
            assert comp[np.argmax(np.abs(comp))] > 0

    def test_deterministic(self):
        """Test repeated runs give identical components."""
        data = correlated_data()
        a = compute_pca(data)
        b = compute_pca(data)
        assert np.array_equal(a['comps'], b['comps'])

    def test_scaling(self):
        """Test scaling uses the correlation structure."""
        data = correlated_data()
        data[:, 0] *= 100.0

        unscaled = compute_pca(data, scale=False)
        scaled = compute_pca(data, scale=True)

        # Unscaled PCA is dominated by the inflated column
        assert abs(unscaled['comps'][0][0]) > 0.99
        assert abs(scaled['comps'][0][0]) < 0.9
        assert np.allclose(scaled['scale'], np.std(data, axis=0, ddof=1))

    def test_constant_column_with_scaling(self):
        """Test constant columns do not break scaling."""
        data = correlated_data()
        data[:, 3] = 2.0

        result = compute_pca(data, scale=True)
        assert np.all(np.isfinite(result['comps']))
        assert result['scale'][3] == 1.0

    def test_single_row(self):
        """Test a single record projects to the origin."""
        data = np.array([[1.0, 2.0, 3.0]])
        result = compute_pca(data, n_comps=2)

        assert result['comps'].shape == (2, 3)
        assert np.allclose(project(data, result), 0.0)

    def test_invalid_n_comps(self):
        """Test asking for too many components fails."""
        with pytest.raises(ValueError):
            compute_pca(np.ones((4, 2)), n_comps=3)


class TestProjection:
    """Tests for projecting records."""

    def test_projection_shape_and_order(self):
        """Test the projection keeps row count, row order and has 2 columns."""
        data = correlated_data(50)
        rownames = [f"r{i}" for i in range(50)][::-1]
        matrix = ResponseMatrix(data, rownames=rownames)

        _, projection = project_responses(matrix)

        assert isinstance(projection, pd.DataFrame)
        assert projection.shape == (50, 2)
        assert list(projection.columns) == ['pc1', 'pc2']
        assert list(projection.index) == rownames

    def test_projection_matches_manual(self):
        """Test projections are the centered data times the components."""
        data = correlated_data(30)
        results, projection = project_responses(data)

        expected = (data - data.mean(axis=0)) @ results['comps'].T
        assert np.allclose(projection.to_numpy(), expected)

    def test_projection_centered(self):
        """Test projected coordinates have zero mean."""
        _, projection = project_responses(correlated_data())
        assert np.allclose(projection.mean().to_numpy(), 0.0, atol=1e-10)
