"""
hestoncal
=========

Heston stochastic volatility model: semi-analytic European option pricing
and calibration of (kappa, theta, sigma, rho, v0) to observed call prices.

Key Components:
- Composite Gauss-Legendre quadrature
- Heston P1/P2 Fourier-integral pricing engine
- Sum-of-squared-errors calibration objective
- Calibration controller over a pluggable minimizer (scipy by default)
"""

__version__ = "1.0.0"

from .pricers.heston_charfn import HestonParameters
from .pricers.heston_integral import HestonModel, QuadratureSettings
from .calibration.engine import (
    HestonCalibrator,
    CalibrationOutcome,
    CalibrationFailedError
)
from .calibration.objective import CalibrationConfig, CalibrationObjective

__all__ = [
    'HestonParameters',
    'HestonModel',
    'QuadratureSettings',
    'HestonCalibrator',
    'CalibrationOutcome',
    'CalibrationFailedError',
    'CalibrationConfig',
    'CalibrationObjective'
]
