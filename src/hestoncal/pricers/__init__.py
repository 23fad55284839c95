"""
Heston model pricing engines.

Semi-analytic European option pricing under the Heston stochastic
volatility model, built on a composite Gauss-Legendre integrator.
"""

from .quadrature import CompositeGaussLegendre, integrate
from .heston_charfn import (
    HestonParameters,
    PARAM_NAMES,
    check_heston_params,
    heston_charfn
)
from .heston_integral import HestonModel, QuadratureSettings

__all__ = [
    'CompositeGaussLegendre',
    'integrate',
    'HestonParameters',
    'PARAM_NAMES',
    'check_heston_params',
    'heston_charfn',
    'HestonModel',
    'QuadratureSettings'
]
