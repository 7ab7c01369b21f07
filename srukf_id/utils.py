"""Array conversion and validation helpers.

Every matrix handled by the estimator is a 2-D, row-major (C-contiguous)
float64 array, so the flattened index of element ``(row, col)`` is
``row * width + col``.  The helpers here produce such arrays and check
shapes at the public entry points.  They raise plain ``ValueError``;
callers that need the package exception translate it.
"""

from __future__ import annotations

import numpy as np

# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def as_row_major(arr: np.ndarray) -> np.ndarray:
    """Return *arr* as an independent, C-contiguous 2-D float64 array.

    A 1-D input becomes a column (``n x 1``).  The result never shares
    memory with *arr*, so stages are free to work on it in place.

    Parameters
    ----------
    arr : array_like
        1-D or 2-D numeric data.

    Returns
    -------
    numpy.ndarray
        Row-major copy of shape ``(rows, cols)``.

    Raises
    ------
    ValueError
        If *arr* is not 1-D or 2-D.

    Examples
    --------
    >>> as_row_major([1, 2, 3]).shape
    (3, 1)
    >>> as_row_major(np.eye(2)).flags["C_CONTIGUOUS"]
    True
    """
    arr = np.array(arr, dtype=np.float64, order="C", copy=True)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise ValueError(f"Expected 1-D or 2-D array, got {arr.ndim}-D")
    return arr


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def validate_square(arr: np.ndarray, name: str = "matrix") -> np.ndarray:
    """Ensure *arr* is a square 2-D float64 array.

    Parameters
    ----------
    arr : array_like
        Input to validate.
    name : str
        Human-readable name for error messages.

    Returns
    -------
    numpy.ndarray
        Validated row-major copy.

    Raises
    ------
    ValueError
        If the array is not 2-D or not square.
    """
    arr = np.array(arr, dtype=np.float64, order="C", copy=True)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise ValueError(
            f"{name} must be a square 2-D array, got shape {arr.shape}"
        )
    return arr


def validate_vector(arr: np.ndarray, length: int, name: str = "vector") -> np.ndarray:
    """Ensure *arr* is a 1-D float64 array of the given length.

    Column and row vectors are flattened.

    Parameters
    ----------
    arr : array_like
        Input to validate.
    length : int
        Expected number of elements.
    name : str
        Human-readable name for error messages.

    Returns
    -------
    numpy.ndarray
        Validated 1-D copy.

    Raises
    ------
    ValueError
        If the number of elements does not match.
    """
    arr = np.array(arr, dtype=np.float64, copy=True).ravel()
    if arr.shape[0] != length:
        raise ValueError(
            f"{name} must have {length} elements, got {arr.shape[0]}"
        )
    return arr


def validate_nonnegative(arr: np.ndarray, name: str = "matrix") -> np.ndarray:
    """Ensure every element of *arr* is finite and ``>= 0``.

    The measurement noise covariance is square-rooted element by element,
    which is only meaningful for element-wise non-negative matrices (in
    practice: diagonal ones).

    Raises
    ------
    ValueError
        If any element is negative or not finite.
    """
    arr = np.asarray(arr, dtype=np.float64)
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains NaN or Inf")
    if np.any(arr < 0.0):
        raise ValueError(
            f"{name} must be element-wise non-negative "
            f"(its square root is taken per element)"
        )
    return arr
