"""High-level interface to the SR-UKF parameter estimator.

Example
-------
>>> import numpy as np
>>> from srukf_id import ParameterEstimator
>>>
>>> def plant(x, w):
...     return np.array([w[0] * x[0] + w[1] * x[1], w[0] * x[1] - w[1] * x[0]])
>>>
>>> est = ParameterEstimator(dim=2, meas_noise_cov=0.01 * np.eye(2))
>>> _ = est.step(np.array([1.2, -0.3]), np.array([1.0, 0.5]), plant)
>>> est.w.shape
(2,)
"""

from __future__ import annotations

from typing import Any, Callable, NamedTuple, Optional

import numpy as np

from . import stages
from .diagnostics import diag, logger
from .exceptions import SrukfError, SrukfMathError, SrukfParameterError
from .utils import (
    as_row_major,
    validate_nonnegative,
    validate_square,
    validate_vector,
)

__all__ = [
    "ParameterEstimator",
    "TickResult",
    "estimate",
    "estimate_to",
    "SrukfError",
    "SrukfMathError",
    "SrukfParameterError",
]


class TickResult(NamedTuple):
    """Outcome of one estimation tick."""

    #: Updated parameter estimate, length *L*.
    w: np.ndarray
    #: Updated parameter covariance square root, *L* x *L*.
    S: np.ndarray
    #: Predicted measurement.
    d_hat: np.ndarray
    #: Upper square root of the predicted measurement covariance.
    Sd: np.ndarray
    #: Kalman gain.
    K: np.ndarray


# ---------------------------------------------------------------------------
# Argument checking
# ---------------------------------------------------------------------------


def _parameter_error(exc: ValueError) -> SrukfParameterError:
    return SrukfParameterError(str(exc))


def _check_scale(alpha: float, lambda_rls: Optional[float] = None) -> None:
    if not alpha > 0.0:
        raise SrukfParameterError(f"alpha must be > 0, got {alpha}")
    if lambda_rls is not None and not 0.0 < lambda_rls <= 1.0:
        raise SrukfParameterError(
            f"forgetting factor must be in (0, 1], got {lambda_rls}"
        )


def _check_sqrt_cov(Sw: np.ndarray, dim: int) -> np.ndarray:
    try:
        Sw = validate_square(Sw, "Sw")
    except ValueError as exc:
        raise _parameter_error(exc) from exc
    if Sw.shape[0] != dim:
        raise SrukfParameterError(
            f"Sw shape {Sw.shape} does not match parameter dimension {dim}"
        )
    return Sw


def _check_noise(Re: np.ndarray, dim: int) -> np.ndarray:
    try:
        Re = validate_square(Re, "Re")
        validate_nonnegative(Re, "Re")
    except ValueError as exc:
        raise _parameter_error(exc) from exc
    if Re.shape[0] != dim:
        raise SrukfParameterError(
            f"Re shape {Re.shape} does not match parameter dimension {dim}"
        )
    return Re


def _check_vector(arr: np.ndarray, dim: int, name: str) -> np.ndarray:
    try:
        return validate_vector(arr, dim, name)
    except ValueError as exc:
        raise _parameter_error(exc) from exc


# ---------------------------------------------------------------------------
# Transition wrapper
# ---------------------------------------------------------------------------


def _make_transition(
    py_func: Callable[..., np.ndarray],
    dim: int,
    kwargs: dict[str, Any],
) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    """Wrap a Python ``G(x, w, **kw) -> dw`` with output checks."""

    def _cb(x: np.ndarray, w: np.ndarray) -> np.ndarray:
        dw = np.asarray(py_func(x, w, **kwargs), dtype=np.float64).ravel()
        if dw.shape[0] != dim:
            raise SrukfParameterError(
                f"transition returned {dw.shape[0]} values, expected {dim}"
            )
        if not np.all(np.isfinite(dw)):
            raise SrukfMathError(f"transition produced NaN/Inf at w={w}")
        return dw

    return _cb


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def estimate_to(
    d: np.ndarray,
    what: np.ndarray,
    Re: np.ndarray,
    x: np.ndarray,
    G: Callable[..., np.ndarray],
    lambda_rls: float,
    Sw: np.ndarray,
    alpha: float,
    beta: float,
    **kwargs: Any,
) -> TickResult:
    """Run one estimation tick without touching any argument.

    Parameters
    ----------
    d : array_like
        Measurement, length *L*.
    what : array_like
        Current parameter estimate, length *L*.  *L* is taken from it.
    Re : array_like
        Measurement noise covariance (*L* x *L*), element-wise
        non-negative (normally diagonal).
    x : array_like
        Exogenous model state for this tick, length *L*.
    G : callable
        Transition ``G(x, w, **kwargs) -> dw`` returning *L* values.
    lambda_rls : float
        Forgetting factor in ``(0, 1]``.
    Sw : array_like
        Parameter covariance square root (*L* x *L*); any square root of
        the covariance is accepted, the returned factor is lower triangular.
    alpha : float
        Sigma-point spread, ``> 0``.
    beta : float
        Prior distribution shape (2.0 for Gaussian).
    **kwargs
        Extra keyword arguments forwarded to *G*.

    Returns
    -------
    TickResult
        New estimate and square root plus intermediate quantities.

    Raises
    ------
    SrukfParameterError
        On shape mismatches or out-of-range tuning values.
    SrukfMathError
        If the tick fails numerically.
    """
    try:
        what = validate_vector(what, np.size(what), "what")
    except ValueError as exc:
        raise _parameter_error(exc) from exc
    dim = what.shape[0]
    if dim == 0:
        raise SrukfParameterError("parameter dimension must be positive")

    d = _check_vector(d, dim, "measurement")
    x = _check_vector(x, dim, "state")
    Re = _check_noise(Re, dim)
    Sw = _check_sqrt_cov(Sw, dim)
    _check_scale(alpha, lambda_rls)

    transition = _make_transition(G, dim, kwargs)
    kappa = stages.parameter_kappa(dim)

    Wm, Wc = stages.create_weights(alpha, beta, kappa, dim)
    Sw = stages.scale_sqrt_covariance(Sw, lambda_rls)
    W = stages.sigma_points(what, Sw, alpha, kappa)
    D = stages.evaluate_transition(W, x, transition)
    dhat = stages.weighted_mean(D, Wm)

    Sd = stages.measurement_sqrt_covariance(D, dhat, Wc, Re)
    Pwd = stages.cross_covariance(W, D, what, dhat, Wc)
    what_new, Sw_new, K = stages.correct(what, Sw, d, dhat, Sd, Pwd)

    if not (np.all(np.isfinite(what_new)) and np.all(np.isfinite(Sw_new))):
        raise SrukfMathError("update produced NaN/Inf")

    logger.debug(
        "tick L=%d residual=%s correction=%s", dim, d - dhat, what_new - what
    )
    return TickResult(what_new, Sw_new, dhat, Sd, K)


def estimate(
    d: np.ndarray,
    what: np.ndarray,
    Re: np.ndarray,
    x: np.ndarray,
    G: Callable[..., np.ndarray],
    lambda_rls: float,
    Sw: np.ndarray,
    alpha: float,
    beta: float,
    **kwargs: Any,
) -> TickResult:
    """Run one estimation tick, updating *what* and *Sw* in place.

    Arguments are as for :func:`estimate_to`; *what* and *Sw* must be
    writable float64 numpy arrays.  They are overwritten only after the
    whole tick has succeeded, so on any exception both still hold their
    previous values.

    Examples
    --------
    >>> what = np.zeros(1)
    >>> Sw = np.ones((1, 1))
    >>> _ = estimate([1.0], what, [[0.01]], [0.0], lambda x, w: w, 1.0, Sw, 0.1, 2.0)
    >>> round(float(what[0]), 4)
    0.9901
    """
    for arr, name in ((what, "what"), (Sw, "Sw")):
        if not (isinstance(arr, np.ndarray) and arr.dtype == np.float64):
            raise SrukfParameterError(
                f"{name} must be a float64 numpy array to be updated in place"
            )
        if not arr.flags.writeable:
            raise SrukfParameterError(f"{name} is read-only")

    try:
        result = estimate_to(d, what, Re, x, G, lambda_rls, Sw, alpha, beta, **kwargs)
    except SrukfMathError as exc:
        diag(f"SR-UKF tick failed, state not advanced: {exc}")
        raise

    what[...] = result.w.reshape(what.shape)
    Sw[...] = result.S
    return result


# ---------------------------------------------------------------------------
# Main class
# ---------------------------------------------------------------------------


class ParameterEstimator:
    """Recursive SR-UKF estimator of the parameters of a transition model.

    The estimator owns the parameter estimate ``w`` and its covariance
    square root ``S``.  Each :meth:`step` evaluates the caller's transition
    at ``2L+1`` sigma points around ``w`` and corrects ``w`` and ``S``
    against the measurement.

    Parameters
    ----------
    dim : int
        Number of parameters *L*; also the length of the state and of the
        measurement vectors.
    meas_noise_cov : array_like
        Measurement noise covariance ``Re`` (*L* x *L*), element-wise
        non-negative (normally diagonal).
    alpha : float, optional
        Sigma-point spread, recommended 0.01--1 (default ``0.1``).
    beta : float, optional
        Prior distribution parameter; 2.0 is optimal for Gaussian.
    forgetting_factor : float, optional
        ``lambda_rls`` in ``(0, 1]``; values just below 1 keep the
        estimator responsive to drifting parameters (default ``0.995``).
    init_std : float, optional
        Initial standard deviation of every parameter (default ``1.0``).

    Raises
    ------
    SrukfParameterError
        If the dimension or any tuning value is invalid.

    Examples
    --------
    >>> est = ParameterEstimator(dim=1, meas_noise_cov=[[0.01]],
    ...                          forgetting_factor=1.0)
    >>> est.step([1.0], [0.0], lambda x, w: w).w
    array([0.99009901])
    """

    def __init__(
        self,
        dim: int,
        meas_noise_cov: np.ndarray,
        alpha: float = 0.1,
        beta: float = 2.0,
        forgetting_factor: float = 0.995,
        init_std: float = 1.0,
    ) -> None:
        if dim <= 0:
            raise SrukfParameterError(f"Dimension must be positive: dim={dim}")
        _check_scale(alpha, forgetting_factor)

        self._dim = dim
        self._R = _check_noise(meas_noise_cov, dim)
        self._alpha = float(alpha)
        self._beta = float(beta)
        self._forgetting_factor = float(forgetting_factor)

        self._last: Optional[TickResult] = None
        self.reset(init_std)

    # -- Properties ---------------------------------------------------------

    @property
    def dim(self) -> int:
        """Parameter dimension *L*."""
        return self._dim

    @property
    def w(self) -> np.ndarray:
        """Current parameter estimate, 1-D array of length *L*."""
        return self._w.copy()

    @w.setter
    def w(self, value: np.ndarray) -> None:
        self._w = _check_vector(value, self._dim, "parameter estimate")

    @property
    def S(self) -> np.ndarray:
        """Parameter covariance square root (*L* x *L*), ``P = S @ S.T``.

        Any square root may be assigned (lower, upper or symmetric); after
        a step the stored factor is lower triangular.
        """
        return self._S.copy()

    @S.setter
    def S(self, value: np.ndarray) -> None:
        self._S = _check_sqrt_cov(value, self._dim)

    @property
    def P(self) -> np.ndarray:
        """Full parameter covariance ``S @ S.T``.

        Convenience only; the estimator stores *S*.
        """
        return self._S @ self._S.T

    @property
    def R(self) -> np.ndarray:
        """Measurement noise covariance ``Re``."""
        return self._R.copy()

    @R.setter
    def R(self, value: np.ndarray) -> None:
        self._R = _check_noise(value, self._dim)

    @property
    def alpha(self) -> float:
        """Sigma-point spread; change it with :meth:`set_scale`."""
        return self._alpha

    @property
    def beta(self) -> float:
        """Prior distribution parameter; change it with :meth:`set_scale`."""
        return self._beta

    @property
    def forgetting_factor(self) -> float:
        """Covariance forgetting factor ``lambda_rls``."""
        return self._forgetting_factor

    @forgetting_factor.setter
    def forgetting_factor(self, value: float) -> None:
        _check_scale(self._alpha, value)
        self._forgetting_factor = float(value)

    # Quantities from the last successful tick; ``None`` before the first.

    @property
    def d_hat(self) -> Optional[np.ndarray]:
        """Predicted measurement of the last tick."""
        return None if self._last is None else self._last.d_hat.copy()

    @property
    def K(self) -> Optional[np.ndarray]:
        """Kalman gain of the last tick."""
        return None if self._last is None else self._last.K.copy()

    @property
    def Sd(self) -> Optional[np.ndarray]:
        """Upper square root of the last predicted measurement covariance."""
        return None if self._last is None else self._last.Sd.copy()

    @property
    def residual(self) -> Optional[np.ndarray]:
        """Measurement minus prediction of the last tick."""
        return None if self._last is None else self._residual.copy()

    # -- Methods ------------------------------------------------------------

    def step(
        self,
        measurement: np.ndarray,
        state: np.ndarray,
        transition: Callable[..., np.ndarray],
        **kwargs: Any,
    ) -> "ParameterEstimator":
        """Run one estimation tick.

        Parameters
        ----------
        measurement : array_like
            Measurement ``d`` of length *L*.
        state : array_like
            Model state ``x`` of length *L* for this tick.
        transition : callable
            ``G(x, w, **kwargs) -> dw`` returning *L* values.
        **kwargs
            Extra keyword arguments forwarded to *transition*.

        Returns
        -------
        ParameterEstimator
            *self*, for method chaining.

        Raises
        ------
        SrukfMathError
            If the tick fails numerically; the estimator is unchanged.

        Examples
        --------
        >>> def G(x, w, dt=0.1):
        ...     return x + dt * w
        >>> est = ParameterEstimator(dim=1, meas_noise_cov=[[0.01]],
        ...                          forgetting_factor=1.0)
        >>> _ = est.step([0.1], [0.0], G, dt=0.1)
        >>> round(float(est.w[0]), 4)
        0.5
        """
        measurement = _check_vector(measurement, self._dim, "measurement")
        try:
            result = estimate_to(
                measurement,
                self._w,
                self._R,
                state,
                transition,
                self._forgetting_factor,
                self._S,
                self._alpha,
                self._beta,
                **kwargs,
            )
        except SrukfMathError as exc:
            diag(f"SR-UKF tick failed, state not advanced: {exc}")
            raise

        self._w = result.w
        self._S = result.S
        self._last = result
        self._residual = measurement - result.d_hat
        return self

    def run(
        self,
        measurements: np.ndarray,
        states: np.ndarray,
        transition: Callable[..., np.ndarray],
        **kwargs: Any,
    ) -> np.ndarray:
        """Step through a batch of measurements.

        Parameters
        ----------
        measurements : array_like
            ``n x L`` measurements, one row per tick.
        states : array_like
            ``n x L`` model states matching *measurements* row by row.
        transition : callable
            As for :meth:`step`.

        Returns
        -------
        numpy.ndarray
            ``n x L`` array; row *k* is the estimate after tick *k*.
        """
        measurements = as_row_major(measurements)
        states = as_row_major(states)
        if measurements.shape[0] != states.shape[0]:
            raise SrukfParameterError(
                f"got {measurements.shape[0]} measurements "
                f"but {states.shape[0]} states"
            )

        history = np.empty((measurements.shape[0], self._dim))
        for k, (d, x) in enumerate(zip(measurements, states)):
            self.step(d, x, transition, **kwargs)
            history[k] = self._w
        logger.debug("ran %d ticks, final estimate %s", len(history), self._w)
        return history

    def reset(
        self, init_std: float = 1.0, w0: Optional[np.ndarray] = None
    ) -> "ParameterEstimator":
        """Reset the estimate to *w0* (default zeros) and ``S`` to ``init_std * I``.

        Parameters
        ----------
        init_std : float
            Initial standard deviation (must be > 0).
        w0 : array_like, optional
            Initial parameter estimate.

        Returns
        -------
        ParameterEstimator
            *self*, for method chaining.
        """
        if not init_std > 0.0:
            raise SrukfParameterError(f"init_std must be > 0, got {init_std}")
        if w0 is None:
            self._w = np.zeros(self._dim)
        else:
            self._w = _check_vector(w0, self._dim, "w0")
        self._S = init_std * np.eye(self._dim)
        self._last = None
        return self

    def set_scale(self, alpha: float, beta: float = 2.0) -> "ParameterEstimator":
        """Update the unscented transform scaling.

        ``kappa`` is not configurable; parameter estimation fixes it to
        ``3 - L``.

        Returns
        -------
        ParameterEstimator
            *self*, for method chaining.
        """
        _check_scale(alpha)
        self._alpha = float(alpha)
        self._beta = float(beta)
        return self

    # -- Representation -----------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"ParameterEstimator(dim={self._dim}, alpha={self._alpha}, "
            f"beta={self._beta}, forgetting_factor={self._forgetting_factor})"
        )
