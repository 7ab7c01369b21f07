"""Exception hierarchy shared by every ``srukf_id`` module."""


class SrukfError(RuntimeError):
    """Base exception for SR-UKF errors."""


class SrukfParameterError(SrukfError, ValueError):
    """Raised for invalid arguments: wrong shapes, out-of-range tuning values."""


class SrukfMathError(SrukfError):
    """Raised when a tick fails numerically.

    Covers a singular measurement covariance, a Cholesky downdate that
    would lose positive-definiteness, and NaN/Inf produced by the
    transition function or by the update itself.
    """
