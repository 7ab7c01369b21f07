#!/usr/bin/env python3
"""Minimal SR-UKF example: identify stiffness and damping of a mass-spring-damper."""

import numpy as np

from srukf_id import ParameterEstimator

# Parameters w = [stiffness, damping] per unit mass; state x = [position, velocity]
true_w = np.array([4.0, 0.6])
dt = 0.05


# One explicit Euler step of  x'' = -k x - c x'
def plant(x, w, dt=0.05):
    return np.array([x[0] + dt * x[1], x[1] - dt * (w[0] * x[0] + w[1] * x[1])])


est = ParameterEstimator(
    dim=2,
    meas_noise_cov=np.diag([1e-6, 1e-4]),
    forgetting_factor=0.999,
)
est.reset(1.0, w0=[1.0, 0.0])

rng = np.random.default_rng(42)
x = np.array([1.0, 0.0])

for t in range(200):
    x_next = plant(x, true_w, dt)
    measurement = x_next + rng.normal(0, [1e-3, 1e-2])

    est.step(measurement, x, plant, dt=dt)

    if t % 10 == 0:
        print(
            f"t={t * dt:5.2f}  "
            f"k={est.w[0]:7.3f} (true {true_w[0]})  "
            f"c={est.w[1]:7.3f} (true {true_w[1]})  "
            f"std={np.sqrt(np.diag(est.P))}"
        )

    # Re-excite the plant once it has settled
    x = x_next if np.abs(x_next).max() > 0.05 else np.array([1.0, 0.0])
