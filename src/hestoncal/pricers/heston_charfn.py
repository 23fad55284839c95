import numpy as np
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple, Union
import logging

logger = logging.getLogger(__name__)

# Fixed ordering of the calibrated parameter vector
PARAM_NAMES: Tuple[str, ...] = ('kappa', 'theta', 'sigma', 'rho', 'v0')
N_MODEL_PARAMS = len(PARAM_NAMES)

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class HestonParameters:
    """
    The five calibrated Heston parameters.

    The short rate r0 is observed rather than fitted and is therefore kept
    by the pricing engine, not here.
    """

    kappa: float  # Mean reversion speed
    theta: float  # Long-term variance
    sigma: float  # Vol of vol
    rho: float    # Correlation
    v0: float     # Initial variance

    def to_array(self) -> np.ndarray:
        """Parameter vector in the fixed (kappa, theta, sigma, rho, v0) order."""
        return np.array([self.kappa, self.theta, self.sigma, self.rho, self.v0], dtype=float)

    @classmethod
    def from_array(cls, x: Sequence[float]) -> 'HestonParameters':
        """Inverse of ``to_array``."""
        x = np.asarray(x, dtype=float).ravel()
        if x.size != N_MODEL_PARAMS:
            raise ValueError(
                f"Expected {N_MODEL_PARAMS} Heston parameters, got {x.size}"
            )
        return cls(*(float(value) for value in x))

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return dict(zip(PARAM_NAMES, self.to_array().tolist()))

    @classmethod
    def from_dict(cls, params: Dict[str, float]) -> 'HestonParameters':
        """Create from dictionary."""
        return cls(**{name: float(params[name]) for name in PARAM_NAMES})

    @classmethod
    def default_params(cls) -> 'HestonParameters':
        """Default starting point for calibration."""
        return cls(kappa=2.0, theta=0.06, sigma=0.4, rho=0.5, v0=0.04)

    @property
    def feller_condition(self) -> bool:
        """2*kappa*theta >= sigma^2"""
        return 2 * self.kappa * self.theta >= self.sigma**2

    def __str__(self) -> str:
        return (f"HestonParameters(kappa={self.kappa:.4f}, theta={self.theta:.4f}, "
                f"sigma={self.sigma:.4f}, rho={self.rho:.4f}, v0={self.v0:.4f})")


def check_heston_params(params: HestonParameters, check_feller: bool = True) -> Dict[str, bool]:
    """
    Check validity of Heston parameters.

    Purely diagnostic: nothing downstream refuses to price with parameters
    that fail these checks.

    Args:
        params: Heston parameters
        check_feller: Whether to check Feller condition

    Returns:
        Dictionary with validity checks
    """
    checks = {
        'kappa_positive': params.kappa > 0,
        'theta_non_negative': params.theta >= 0,
        'sigma_non_negative': params.sigma >= 0,
        'v0_non_negative': params.v0 >= 0,
        'rho_valid': -1 <= params.rho <= 1,
        'feller_condition': params.feller_condition if check_feller else True
    }

    checks['all_valid'] = all(checks.values())

    if not checks['all_valid']:
        failed = [name for name, ok in checks.items() if not ok and name != 'all_valid']
        logger.warning(f"Heston parameter checks failed: {failed} for {params}")

    return checks


# Characteristic function building blocks. All of them accept numpy arrays of
# frequencies phi and use the principal branches of sqrt and log.

def lower_d(phi: ArrayLike, b: float, u: float, params: HestonParameters) -> np.ndarray:
    """d(phi) = sqrt((rho*sigma*phi*i - b)^2 - sigma^2*(2*u*phi*i - phi^2))"""
    rho, sigma = params.rho, params.sigma
    iphi = 1j * np.asarray(phi, dtype=float)
    return np.sqrt((rho * sigma * iphi - b)**2 - sigma**2 * (2 * u * iphi + iphi**2))


def lower_g(phi: ArrayLike, b: float, d: np.ndarray, params: HestonParameters) -> np.ndarray:
    """g(phi) = (b - rho*sigma*phi*i - d) / (b - rho*sigma*phi*i + d)"""
    xi = b - params.rho * params.sigma * 1j * np.asarray(phi, dtype=float)
    return (xi - d) / (xi + d)


def upper_c(
    tau: float,
    phi: ArrayLike,
    b: float,
    d: np.ndarray,
    g: np.ndarray,
    params: HestonParameters,
    r0: float
) -> np.ndarray:
    """C(tau, phi), the deterministic part of the log characteristic function."""
    iphi = 1j * np.asarray(phi, dtype=float)
    xi = b - params.rho * params.sigma * iphi
    exp_dt = np.exp(-tau * d)
    # numpy scalars so that sigma = 0 yields inf/nan instead of ZeroDivisionError
    a = np.float64(params.kappa) * params.theta
    return (r0 * iphi * tau
            + a / np.float64(params.sigma)**2 * ((xi - d) * tau - 2 * np.log((1 - g * exp_dt) / (1 - g))))


def upper_d(
    tau: float,
    phi: ArrayLike,
    b: float,
    d: np.ndarray,
    g: np.ndarray,
    params: HestonParameters
) -> np.ndarray:
    """D(tau, phi), the coefficient of the initial variance."""
    xi = b - params.rho * params.sigma * 1j * np.asarray(phi, dtype=float)
    exp_dt = np.exp(-tau * d)
    return (xi - d) / np.float64(params.sigma)**2 * ((1 - exp_dt) / (1 - g * exp_dt))


def heston_charfn(
    phi: ArrayLike,
    tau: float,
    spot: float,
    params: HestonParameters,
    r0: float,
    b: float,
    u: float
) -> np.ndarray:
    """
    Heston characteristic function f_j(phi) of the log spot under measure j.

    Uses the original Heston (1993) formulation:

        f_j = exp(C_j(tau, phi) + D_j(tau, phi) * v0 + i * phi * ln(S))

    with (b, u) = (kappa - rho*sigma, 0.5) for P1 and (kappa, -0.5) for P2.

    Args:
        phi: Real frequency (scalar or array)
        tau: Time to expiry in years
        spot: Current stock price
        params: Heston parameters
        r0: Risk-free rate
        b: Auxiliary drift constant b_j
        u: Auxiliary constant u_j

    Returns:
        Complex characteristic function values (same shape as phi)
    """
    d = lower_d(phi, b, u, params)
    g = lower_g(phi, b, d, params)
    C = upper_c(tau, phi, b, d, g, params, r0)
    D = upper_d(tau, phi, b, d, g, params)
    return np.exp(C + D * params.v0 + 1j * np.asarray(phi, dtype=float) * np.log(spot))
