#!/usr/bin/env python3
"""Identify g/l and damping of a nonlinear pendulum with SR-UKF.

Optionally generates a matplotlib plot if matplotlib is installed.

Usage:
    python pendulum.py              # text output only
    python pendulum.py --plot       # with matplotlib visualization
    python pendulum.py --duration 20
"""

import argparse
import logging
import math
import sys

import numpy as np

from srukf_id import ParameterEstimator, SrukfMathError, set_diag_callback

# ---------------------------------------------------------------------------
# Pendulum physics
# ---------------------------------------------------------------------------

G_OVER_L = 9.81   # gravitational acceleration over length (1/s^2)
B = 0.1           # damping coefficient (1/s)


def pendulum_rk4(theta, omega, g_over_l, damping, dt):
    """RK4 integration of the damped pendulum ODE."""

    def deriv(th, om):
        return om, -g_over_l * math.sin(th) - damping * om

    k1t, k1o = deriv(theta, omega)
    k2t, k2o = deriv(theta + k1t * dt / 2, omega + k1o * dt / 2)
    k3t, k3o = deriv(theta + k2t * dt / 2, omega + k2o * dt / 2)
    k4t, k4o = deriv(theta + k3t * dt, omega + k3o * dt)

    return (
        theta + (dt / 6) * (k1t + 2 * k2t + 2 * k3t + k4t),
        omega + (dt / 6) * (k1o + 2 * k2o + 2 * k3o + k4o),
    )


def transition(x, w, dt=0.01):
    return np.array(pendulum_rk4(x[0], x[1], w[0], w[1], dt))


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


def run(duration=15.0, dt=0.01, meas_noise=1e-3, forgetting=0.999,
        initial_angle=1.0, plot=False):
    rng = np.random.default_rng(42)
    n_steps = int(duration / dt)

    est = ParameterEstimator(
        dim=2,
        meas_noise_cov=meas_noise ** 2 * np.eye(2),
        forgetting_factor=forgetting,
    )
    est.reset(1.0, w0=[5.0, 0.5])
    est.S = np.diag([5.0, 0.5])

    theta, omega = initial_angle, 0.0
    times, thetas, g_est, b_est = [], [], [], []

    for step in range(n_steps):
        theta_next, omega_next = pendulum_rk4(theta, omega, G_OVER_L, B, dt)
        # Measured previous state is the exogenous input, as on a real rig
        x_meas = np.array([theta, omega]) + rng.normal(0, meas_noise, 2)
        z = np.array([theta_next, omega_next]) + rng.normal(0, meas_noise, 2)

        try:
            est.step(z, x_meas, transition, dt=dt)
        except SrukfMathError:
            # Re-seed the factor; the estimate itself was left untouched
            est.S = np.diag([1.0, 0.1])

        times.append(step * dt)
        thetas.append(theta_next)
        g_est.append(est.w[0])
        b_est.append(est.w[1])
        theta, omega = theta_next, omega_next

        if step % 100 == 0:
            print(
                f"t={step * dt:6.2f}  theta={theta:7.4f}  "
                f"g/l={est.w[0]:7.4f}  damping={est.w[1]:7.4f}"
            )

    print(f"\nFinal estimate: g/l={est.w[0]:.4f} (true {G_OVER_L}), "
          f"damping={est.w[1]:.4f} (true {B})")
    print(f"Final std: {np.sqrt(np.diag(est.P))}")

    if plot:
        _plot(np.array(times), np.array(thetas), np.array(g_est), np.array(b_est))


def _plot(times, thetas, g_est, b_est):
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        print("matplotlib not installed; skipping plot", file=sys.stderr)
        return

    fig, axes = plt.subplots(3, 1, figsize=(10, 8), sharex=True)
    axes[0].plot(times, thetas, "k-", linewidth=1)
    axes[0].set_ylabel("Angle (rad)")
    axes[0].set_title("SR-UKF Pendulum Parameter Identification")

    axes[1].plot(times, g_est, "b-", label="estimate")
    axes[1].axhline(G_OVER_L, color="r", linestyle="--", label="true")
    axes[1].set_ylabel("g/l (1/s^2)")
    axes[1].legend()

    axes[2].plot(times, b_est, "b-", label="estimate")
    axes[2].axhline(B, color="r", linestyle="--", label="true")
    axes[2].set_ylabel("Damping (1/s)")
    axes[2].set_xlabel("Time (s)")
    axes[2].legend()

    plt.tight_layout()
    plt.show()


def main():
    parser = argparse.ArgumentParser(description="SR-UKF pendulum identification")
    parser.add_argument("--duration", type=float, default=15.0)
    parser.add_argument("--dt", type=float, default=0.01)
    parser.add_argument("--meas-noise", type=float, default=1e-3)
    parser.add_argument("--forgetting", type=float, default=0.999)
    parser.add_argument("--plot", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log per-tick diagnostics")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    set_diag_callback(lambda msg: print(f"[srukf] {msg}", file=sys.stderr))

    run(duration=args.duration, dt=args.dt, meas_noise=args.meas_noise,
        forgetting=args.forgetting, plot=args.plot)


if __name__ == "__main__":
    main()
