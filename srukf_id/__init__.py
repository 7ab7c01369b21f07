"""Square-Root Unscented Kalman Filter for online parameter identification.

Quick start::

    import numpy as np
    from srukf_id import ParameterEstimator

    def plant(x, w, dt=0.1):
        # x = [position, velocity], w = [stiffness, damping]
        return np.array([x[0] + dt * x[1],
                         x[1] - dt * (w[0] * x[0] + w[1] * x[1])])

    est = ParameterEstimator(dim=2, meas_noise_cov=1e-4 * np.eye(2))
    est.step(np.array([0.99, -0.21]), np.array([1.0, 0.0]), plant, dt=0.1)
    print(est.w)
"""

from .core import (
    ParameterEstimator,
    SrukfError,
    SrukfMathError,
    SrukfParameterError,
    TickResult,
    estimate,
    estimate_to,
)
from .diagnostics import set_diag_callback
from .version import __version__, __version_info__

__all__ = [
    "ParameterEstimator",
    "TickResult",
    "estimate",
    "estimate_to",
    "set_diag_callback",
    "SrukfError",
    "SrukfParameterError",
    "SrukfMathError",
    "__version__",
    "__version_info__",
]
