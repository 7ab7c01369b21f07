"""Dense linear-algebra primitives consumed by the estimator.

These are small, stateless wrappers over numpy/scipy that pin down the
exact behaviour the filter relies on: pivoted LU with an explicit success
flag, a QR whose ``R`` has a non-negative diagonal, and rank-one Cholesky
update/downdate of a lower-triangular factor.  Singular inputs raise
:class:`~srukf_id.exceptions.SrukfMathError` except where a function
documents a different signal (``lup`` returns a flag, ``det`` returns 0).
"""

from __future__ import annotations

import warnings
from typing import Tuple

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve, solve_triangular

from .exceptions import SrukfMathError
from .utils import validate_square, validate_vector

# ---------------------------------------------------------------------------
# LU family
# ---------------------------------------------------------------------------


def lup(A: np.ndarray) -> Tuple[np.ndarray, np.ndarray, bool]:
    """LU decomposition with partial pivoting.

    Parameters
    ----------
    A : array_like
        Square matrix.

    Returns
    -------
    LU : numpy.ndarray
        Packed factors: strict lower part is ``L`` (unit diagonal implied),
        upper part is ``U``.
    piv : numpy.ndarray
        LAPACK pivot indices; row ``i`` was interchanged with row ``piv[i]``.
    ok : bool
        ``False`` iff a zero pivot was met, i.e. *A* is singular.

    Examples
    --------
    >>> LU, piv, ok = lup([[0.0, 1.0], [1.0, 0.0]])
    >>> ok
    True
    """
    A = validate_square(A, "A")
    with warnings.catch_warnings():
        # lu_factor warns on an exactly singular input; ``ok`` reports it.
        warnings.simplefilter("ignore", LinAlgWarning)
        LU, piv = lu_factor(A, check_finite=False)
    ok = bool(np.all(np.diag(LU) != 0.0))
    return LU, piv, ok


def det(A: np.ndarray) -> float:
    """Determinant of a square matrix via :func:`lup`.

    Returns ``0.0`` for a singular matrix instead of raising.
    """
    LU, piv, ok = lup(A)
    if not ok:
        return 0.0
    swaps = int(np.count_nonzero(piv != np.arange(piv.shape[0])))
    value = float(np.prod(np.diag(LU)))
    return -value if swaps % 2 else value


def inv(A: np.ndarray) -> np.ndarray:
    """Inverse of a square matrix via :func:`lup`.

    Raises
    ------
    SrukfMathError
        If *A* is singular.
    """
    LU, piv, ok = lup(A)
    if not ok:
        raise SrukfMathError("Matrix is singular and cannot be inverted")
    return lu_solve((LU, piv), np.eye(LU.shape[0]), check_finite=False)


def linsolve_lower_triangular(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve ``A x = b`` by forward substitution; *A* is lower triangular.

    Only the lower triangle of *A* is read.

    Raises
    ------
    SrukfMathError
        If a diagonal element of *A* is zero.
    """
    A = validate_square(A, "A")
    b = validate_vector(b, A.shape[0], "b")
    if np.any(np.diag(A) == 0.0):
        raise SrukfMathError("Triangular system has a zero on the diagonal")
    return solve_triangular(A, b, lower=True, check_finite=False)


# ---------------------------------------------------------------------------
# QR
# ---------------------------------------------------------------------------


def qr(A: np.ndarray, reduced: bool = True) -> Tuple[np.ndarray, np.ndarray]:
    """QR decomposition ``A = Q R`` with a non-negative diagonal in ``R``.

    Parameters
    ----------
    A : array_like
        ``m x n`` matrix.
    reduced : bool
        If *True*, ``Q`` is ``m x k`` and ``R`` is ``k x n`` with
        ``k = min(m, n)``; otherwise ``Q`` is ``m x m`` and ``R`` is ``m x n``.

    Returns
    -------
    (Q, R) : tuple of numpy.ndarray

    Notes
    -----
    LAPACK may return negative diagonal entries in ``R``.  Those rows of
    ``R`` are negated together with the matching columns of ``Q``, which
    leaves both ``Q R`` and ``R^T R`` unchanged.
    """
    A = np.asarray(A, dtype=np.float64)
    Q, R = np.linalg.qr(A, mode="reduced" if reduced else "complete")
    k = min(R.shape)
    signs = np.where(np.diag(R)[:k] < 0.0, -1.0, 1.0)
    R[:k] *= signs[:, np.newaxis]
    Q[:, :k] *= signs
    return Q, R


def lower_factor(S: np.ndarray) -> np.ndarray:
    """Lower-triangular square root ``L`` with ``L L^T = S S^T``.

    A factor that is already lower triangular with a non-negative diagonal
    is returned as a copy; any other square root (upper, symmetric) is
    re-triangularised through ``qr(S^T)``.

    Examples
    --------
    >>> L = lower_factor(np.array([[1.0, 0.5], [0.0, 1.0]]))
    >>> np.allclose(L, np.tril(L))
    True
    """
    S = validate_square(S, "S")
    if not np.any(np.triu(S, 1)) and np.all(np.diag(S) >= 0.0):
        return S
    _, R = qr(S.T, reduced=True)
    return np.ascontiguousarray(R.T)


# ---------------------------------------------------------------------------
# Rank-one Cholesky update
# ---------------------------------------------------------------------------


def cholupdate(S: np.ndarray, x: np.ndarray, rank_one_update: bool = True) -> np.ndarray:
    """Rank-one update or downdate of a lower-triangular Cholesky factor.

    Returns ``S'`` with ``S' S'^T = S S^T + x x^T`` when *rank_one_update*
    is true and ``S S^T - x x^T`` otherwise.  Neither input is modified.

    Parameters
    ----------
    S : array_like
        ``n x n`` lower-triangular factor with non-zero diagonal.  Entries
        above the diagonal are carried through untouched.
    x : array_like
        Vector of length *n*.
    rank_one_update : bool
        *True* adds ``x x^T``, *False* removes it.

    Returns
    -------
    numpy.ndarray
        Updated factor with a positive diagonal.

    Raises
    ------
    SrukfMathError
        If *S* has a zero on its diagonal, or if the downdate would leave
        a matrix that is not positive definite.

    Examples
    --------
    >>> S = cholupdate(np.eye(2), np.array([1.0, 0.0]))
    >>> np.allclose(S @ S.T, np.diag([2.0, 1.0]))
    True
    """
    S = validate_square(S, "S")
    x = validate_vector(x, S.shape[0], "x")
    n = S.shape[0]
    sign = 1.0 if rank_one_update else -1.0

    for k in range(n):
        skk = S[k, k]
        if skk == 0.0:
            raise SrukfMathError(f"Cholesky factor has a zero at diagonal {k}")
        r2 = skk * skk + sign * x[k] * x[k]
        if not r2 > 0.0:
            raise SrukfMathError(
                f"Cholesky downdate lost positive-definiteness at diagonal {k}"
            )
        r = np.sqrt(r2)
        c = r / skk
        s = x[k] / skk
        S[k, k] = r
        if k + 1 < n:
            S[k + 1:, k] = (S[k + 1:, k] + sign * s * x[k + 1:]) / c
            x[k + 1:] = c * x[k + 1:] - s * S[k + 1:, k]

    return S
