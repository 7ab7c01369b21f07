"""The ordered stages of one SR-UKF parameter-estimation tick.

A tick runs, in order:

1. :func:`create_weights` -- unscented transform weights ``Wm``/``Wc``.
2. :func:`scale_sqrt_covariance` -- forgetting-factor inflation of ``Sw``.
3. :func:`sigma_points` -- the ``2L+1`` parameter sigma points ``W``.
4. :func:`evaluate_transition` -- the model at every sigma point, ``D``.
5. :func:`weighted_mean` -- predicted measurement ``dhat``.
6. :func:`measurement_sqrt_covariance` -- upper factor ``Sd``.
7. :func:`cross_covariance` -- parameter/measurement ``Pwd``.
8. :func:`correct` -- Kalman gain, new estimate and new ``Sw``.

Each stage returns fresh arrays and leaves its inputs alone, so a failed
tick can be discarded without touching the caller's state.

Factor conventions: ``Sw`` is a lower factor (``Pw = Sw Sw^T``, its
columns are the sigma-point spread directions); ``Sd`` is the upper
factor produced by QR (``Pd = Sd^T Sd``).
"""

from __future__ import annotations

from typing import Callable, Tuple

import numpy as np

from .linalg import cholupdate, inv, lower_factor, qr


def parameter_kappa(dim: int) -> float:
    """Secondary scaling used for parameter estimation, ``3 - L``."""
    return 3.0 - dim


def _spread(alpha: float, kappa: float, dim: int) -> float:
    """Composite scaling ``lambda = alpha^2 (L + kappa) - L``."""
    return alpha * alpha * (dim + kappa) - dim


# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------


def create_weights(
    alpha: float, beta: float, kappa: float, dim: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Unscented transform weights.

    Parameters
    ----------
    alpha : float
        Sigma-point spread.
    beta : float
        Prior distribution shape (2 is optimal for Gaussian).
    kappa : float
        Secondary scaling; the estimator uses ``3 - dim``.
    dim : int
        Number of parameters *L*.

    Returns
    -------
    (Wm, Wc) : tuple of numpy.ndarray
        Mean and covariance weights, each of length ``2L+1``.  All entries
        past index 0 equal ``0.5 / (L + lambda)``.

    Notes
    -----
    ``L + lambda`` must be non-zero.  With ``kappa = 3 - L`` it equals
    ``3 alpha^2``, so any ``alpha > 0`` is safe.
    """
    lam = _spread(alpha, kappa, dim)
    Wm = np.full(2 * dim + 1, 0.5 / (dim + lam))
    Wc = Wm.copy()
    Wm[0] = lam / (dim + lam)
    Wc[0] = Wm[0] + 1.0 - alpha * alpha + beta
    return Wm, Wc


def scale_sqrt_covariance(
    Sw: np.ndarray, lambda_rls: float, full: bool = False
) -> np.ndarray:
    """Inflate ``Sw`` by ``1 / sqrt(lambda_rls)``.

    Only the first ``2L`` entries of the row-major flattened ``Sw`` are
    scaled (clamped to ``L*L`` for ``L == 1``).  For ``L == 2`` that is the
    whole matrix; for ``L >= 3`` the trailing rows keep their values.
    Pass ``full=True`` to scale every entry instead.

    Returns
    -------
    numpy.ndarray
        Scaled copy of *Sw*.
    """
    out = np.array(Sw, dtype=np.float64, order="C", copy=True)
    flat = out.reshape(-1)
    dim = out.shape[0]
    count = flat.shape[0] if full else min(2 * dim, flat.shape[0])
    flat[:count] *= 1.0 / np.sqrt(lambda_rls)
    return out


def sigma_points(
    what: np.ndarray, Sw: np.ndarray, alpha: float, kappa: float
) -> np.ndarray:
    """Build the ``L x (2L+1)`` sigma-point matrix.

    Column 0 is *what*; columns ``1..L`` are ``what + gamma * Sw[:, j-1]``
    and columns ``L+1..2L`` are ``what - gamma * Sw[:, j-L-1]``, with
    ``gamma = sqrt(L + lambda)``.
    """
    dim = what.shape[0]
    gamma = np.sqrt(dim + _spread(alpha, kappa, dim))
    W = np.empty((dim, 2 * dim + 1))
    W[:, 0] = what
    W[:, 1:dim + 1] = what[:, np.newaxis] + gamma * Sw
    W[:, dim + 1:] = what[:, np.newaxis] - gamma * Sw
    return W


def evaluate_transition(
    W: np.ndarray,
    x: np.ndarray,
    transition: Callable[[np.ndarray, np.ndarray], np.ndarray],
) -> np.ndarray:
    """Apply ``transition(x, w)`` to every sigma-point column of *W*.

    The transition receives private copies of *x* and of the column, so it
    may scribble on them.  Its exceptions propagate.
    """
    D = np.empty_like(W)
    for j in range(W.shape[1]):
        D[:, j] = transition(x.copy(), W[:, j].copy())
    return D


def weighted_mean(D: np.ndarray, Wm: np.ndarray) -> np.ndarray:
    """Predicted measurement ``dhat[i] = sum_j Wm[j] D[i, j]``."""
    return D @ Wm


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


def measurement_sqrt_covariance(
    D: np.ndarray, dhat: np.ndarray, Wc: np.ndarray, Re: np.ndarray
) -> np.ndarray:
    """Upper square-root factor ``Sd`` of the predicted measurement covariance.

    The compound matrix ``[sqrt(|Wc[1]|) (D[:, 1:] - dhat), sqrt(Re)]`` is
    transposed and QR-factored; the leading ``L x L`` block of ``R`` is then
    updated (``Wc[0] >= 0``) or downdated (``Wc[0] < 0``) with the centre
    residual ``D[:, 0] - dhat``.

    ``sqrt(Re)`` is taken element by element, so *Re* must be element-wise
    non-negative; for a diagonal *Re* this is its matrix square root.
    """
    dim = D.shape[0]
    weight1 = np.sqrt(np.abs(Wc[1]))
    AT = np.hstack((weight1 * (D[:, 1:] - dhat[:, np.newaxis]), np.sqrt(Re)))

    _, R = qr(AT.T, reduced=True)
    Sd = R[:dim, :dim]

    b = D[:, 0] - dhat
    rank_one_update = bool(Wc[0] >= 0.0)
    return np.ascontiguousarray(cholupdate(Sd.T, b, rank_one_update).T)


def cross_covariance(
    W: np.ndarray,
    D: np.ndarray,
    what: np.ndarray,
    dhat: np.ndarray,
    Wc: np.ndarray,
) -> np.ndarray:
    """Cross-covariance ``Pwd = (W - what) diag(Wc) (D - dhat)^T``."""
    W_dev = W - what[:, np.newaxis]
    D_dev = D - dhat[:, np.newaxis]
    return W_dev @ np.diag(Wc) @ D_dev.T


def correct(
    what: np.ndarray,
    Sw: np.ndarray,
    d: np.ndarray,
    dhat: np.ndarray,
    Sd: np.ndarray,
    Pwd: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Kalman correction of the estimate and its square-root covariance.

    ``K = Pwd inv(Sd^T Sd)``, ``what' = what + K (d - dhat)``, and ``Sw`` is
    downdated once per column of ``U = K Sd^T``, left to right.

    *Sw* may be any square root of the parameter covariance; it is brought
    to lower-triangular form before the downdates, so the returned factor
    is always lower triangular with a positive diagonal.

    Returns
    -------
    (what_new, Sw_new, K) : tuple of numpy.ndarray

    Raises
    ------
    SrukfMathError
        If ``Sd^T Sd`` is singular or a downdate fails.
    """
    K = Pwd @ inv(Sd.T @ Sd)
    what_new = what + K @ (d - dhat)

    # Sd is the upper factor, so U U^T = K Pd K^T needs Sd^T here
    U = K @ Sd.T
    Sw_new = lower_factor(Sw)
    for j in range(U.shape[1]):
        Sw_new = cholupdate(Sw_new, U[:, j], rank_one_update=False)
    return what_new, Sw_new, K


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def predict_measurement(
    what: np.ndarray,
    Sw: np.ndarray,
    x: np.ndarray,
    transition: Callable[[np.ndarray, np.ndarray], np.ndarray],
    alpha: float,
    lambda_rls: float = 1.0,
) -> np.ndarray:
    """Run the prediction stages only and return ``dhat``.

    Feeding the result back as the measurement of a tick with the same
    inputs produces a zero correction of the estimate.
    """
    dim = what.shape[0]
    kappa = parameter_kappa(dim)
    Wm, _ = create_weights(alpha, 2.0, kappa, dim)
    Sw = scale_sqrt_covariance(Sw, lambda_rls)
    W = sigma_points(what, Sw, alpha, kappa)
    D = evaluate_transition(W, x, transition)
    return weighted_mean(D, Wm)
