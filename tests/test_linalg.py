"""Tests for the linear-algebra primitives and conversion helpers."""

import numpy as np
import pytest

from srukf_id import SrukfMathError
from srukf_id.linalg import (
    cholupdate,
    det,
    inv,
    linsolve_lower_triangular,
    lower_factor,
    lup,
    qr,
)
from srukf_id.utils import (
    as_row_major,
    validate_nonnegative,
    validate_square,
    validate_vector,
)


def _random_lower(rng, n):
    A = rng.standard_normal((n, n))
    return np.linalg.cholesky(A @ A.T + n * np.eye(n))


class TestLup:
    def test_reconstructs_permuted_input(self):
        rng = np.random.default_rng(3)
        A = rng.standard_normal((4, 4))
        LU, piv, ok = lup(A)
        assert ok
        L = np.tril(LU, -1) + np.eye(4)
        U = np.triu(LU)
        PA = A.copy()
        for i, p in enumerate(piv):
            PA[[i, p]] = PA[[p, i]]
        np.testing.assert_allclose(L @ U, PA, atol=1e-12)

    def test_singular_flagged(self):
        _, _, ok = lup(np.array([[1.0, 2.0], [2.0, 4.0]]))
        assert not ok

    def test_non_square_raises(self):
        with pytest.raises(ValueError, match="square"):
            lup(np.ones((2, 3)))


class TestDet:
    @pytest.mark.parametrize("n", [1, 2, 3, 6])
    def test_matches_numpy(self, n):
        rng = np.random.default_rng(n)
        A = rng.standard_normal((n, n))
        assert det(A) == pytest.approx(np.linalg.det(A), rel=1e-10)

    def test_permutation_sign(self):
        assert det(np.array([[0.0, 1.0], [1.0, 0.0]])) == pytest.approx(-1.0)

    def test_singular_is_zero(self):
        assert det(np.zeros((3, 3))) == 0.0


class TestInv:
    def test_inverse(self):
        A = np.array([[4.0, 1.0], [2.0, 3.0]])
        np.testing.assert_allclose(inv(A) @ A, np.eye(2), atol=1e-12)

    def test_singular_raises(self):
        with pytest.raises(SrukfMathError, match="singular"):
            inv(np.array([[1.0, 2.0], [2.0, 4.0]]))


class TestLinsolveLowerTriangular:
    def test_forward_substitution(self):
        A = np.array([[2.0, 0.0, 0.0], [1.0, 3.0, 0.0], [-1.0, 2.0, 4.0]])
        b = np.array([2.0, 7.0, 9.0])
        x = linsolve_lower_triangular(A, b)
        np.testing.assert_allclose(A @ x, b, atol=1e-12)

    def test_upper_part_ignored(self):
        A = np.array([[2.0, 99.0], [1.0, 1.0]])
        x = linsolve_lower_triangular(A, np.array([2.0, 3.0]))
        np.testing.assert_allclose(x, [1.0, 2.0])

    def test_zero_diagonal_raises(self):
        with pytest.raises(SrukfMathError):
            linsolve_lower_triangular(np.array([[0.0, 0.0], [1.0, 1.0]]), [1.0, 1.0])


class TestQr:
    @pytest.mark.parametrize("shape", [(3, 1), (6, 2), (9, 3), (4, 4)])
    def test_reduced_factors(self, shape):
        rng = np.random.default_rng(sum(shape))
        A = rng.standard_normal(shape)
        Q, R = qr(A, reduced=True)
        k = min(shape)
        assert Q.shape == (shape[0], k)
        assert R.shape == (k, shape[1])
        np.testing.assert_allclose(Q @ R, A, atol=1e-12)
        np.testing.assert_allclose(R, np.triu(R), atol=1e-14)
        assert np.all(np.diag(R) >= 0.0)

    def test_complete_factors(self):
        A = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        Q, R = qr(A, reduced=False)
        assert Q.shape == (3, 3)
        assert R.shape == (3, 2)
        np.testing.assert_allclose(Q @ R, A, atol=1e-12)
        assert np.all(np.diag(R) >= 0.0)

    def test_column_norm(self):
        _, R = qr(np.array([[3.0], [-4.0]]))
        np.testing.assert_allclose(R, [[5.0]])


class TestLowerFactor:
    def test_lower_input_returned_unchanged(self):
        S = np.array([[2.0, 0.0], [1.0, 1.0]])
        np.testing.assert_array_equal(lower_factor(S), S)

    @pytest.mark.parametrize("S", [
        np.array([[1.0, 0.5], [0.0, 1.0]]),
        np.array([[1.3, 0.4], [0.4, 0.9]]),
        np.array([[-2.0, 0.0], [1.0, 1.5]]),
    ])
    def test_same_covariance_lower_form(self, S):
        L = lower_factor(S)
        np.testing.assert_allclose(L @ L.T, S @ S.T, atol=1e-12)
        np.testing.assert_allclose(L, np.tril(L), atol=1e-14)
        assert np.all(np.diag(L) >= 0.0)

    def test_input_untouched(self):
        S = np.array([[1.0, 0.5], [0.0, 1.0]])
        lower_factor(S)
        np.testing.assert_array_equal(S, [[1.0, 0.5], [0.0, 1.0]])


class TestCholupdate:
    def test_update(self):
        rng = np.random.default_rng(7)
        S = _random_lower(rng, 4)
        x = rng.standard_normal(4)
        S_new = cholupdate(S, x, rank_one_update=True)
        np.testing.assert_allclose(S_new @ S_new.T, S @ S.T + np.outer(x, x), atol=1e-10)
        np.testing.assert_allclose(S_new, np.tril(S_new), atol=1e-14)

    def test_downdate(self):
        rng = np.random.default_rng(8)
        S = _random_lower(rng, 4)
        x = 0.3 * S[:, 1]
        S_new = cholupdate(S, x, rank_one_update=False)
        np.testing.assert_allclose(S_new @ S_new.T, S @ S.T - np.outer(x, x), atol=1e-10)
        assert np.all(np.diag(S_new) > 0.0)

    def test_inputs_untouched(self):
        S = np.array([[2.0, 0.0], [1.0, 1.0]])
        x = np.array([1.0, 1.0])
        cholupdate(S, x)
        np.testing.assert_array_equal(S, [[2.0, 0.0], [1.0, 1.0]])
        np.testing.assert_array_equal(x, [1.0, 1.0])

    def test_negative_diagonal_factor(self):
        S = np.array([[-2.0, 0.0], [1.0, 1.5]])
        x = np.array([0.5, -1.0])
        S_new = cholupdate(S, x)
        np.testing.assert_allclose(S_new @ S_new.T, S @ S.T + np.outer(x, x), atol=1e-12)

    def test_downdate_losing_definiteness_raises(self):
        with pytest.raises(SrukfMathError, match="positive-definiteness"):
            cholupdate(np.eye(2), np.array([1.5, 0.0]), rank_one_update=False)

    def test_zero_diagonal_raises(self):
        with pytest.raises(SrukfMathError):
            cholupdate(np.zeros((2, 2)), np.zeros(2))


class TestAsRowMajor:
    def test_vector_becomes_column(self):
        assert as_row_major([1.0, 2.0, 3.0]).shape == (3, 1)

    def test_fortran_input_becomes_c(self):
        arr = np.asfortranarray(np.arange(6.0).reshape(2, 3))
        out = as_row_major(arr)
        assert out.flags["C_CONTIGUOUS"]
        np.testing.assert_array_equal(out, arr)
        # Row-major flattening: element (row, col) at row * width + col.
        assert out.reshape(-1)[1 * 3 + 2] == arr[1, 2]

    def test_copy_is_independent(self):
        arr = np.eye(2)
        out = as_row_major(arr)
        out[0, 0] = 999.0
        assert arr[0, 0] == 1.0

    def test_int_input_converted(self):
        out = as_row_major(np.array([[1, 2], [3, 4]]))
        assert out.dtype == np.float64

    def test_3d_raises(self):
        with pytest.raises(ValueError, match="1-D or 2-D"):
            as_row_major(np.zeros((2, 3, 4)))


class TestValidation:
    def test_validate_square_ok(self):
        assert validate_square(np.eye(3), "test").shape == (3, 3)

    def test_validate_square_non_square(self):
        with pytest.raises(ValueError, match="square"):
            validate_square(np.ones((2, 3)), "test")

    def test_validate_square_1d(self):
        with pytest.raises(ValueError, match="square"):
            validate_square(np.array([1.0, 2.0]), "test")

    def test_validate_vector_ok(self):
        assert validate_vector(np.array([1.0, 2.0, 3.0]), 3, "test").shape == (3,)

    def test_validate_vector_wrong_length(self):
        with pytest.raises(ValueError, match="3 elements"):
            validate_vector(np.array([1.0, 2.0]), 3, "test")

    def test_validate_vector_2d_flattened(self):
        assert validate_vector(np.array([[1.0], [2.0]]), 2, "test").shape == (2,)

    def test_validate_nonnegative_rejects_negative(self):
        with pytest.raises(ValueError, match="non-negative"):
            validate_nonnegative(np.array([[0.1, -0.01], [-0.01, 0.1]]), "Re")

    def test_validate_nonnegative_rejects_nan(self):
        with pytest.raises(ValueError, match="NaN"):
            validate_nonnegative(np.array([[np.nan]]), "Re")
