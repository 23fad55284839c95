import numpy as np
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union
import logging
from .heston_charfn import HestonParameters, heston_charfn
from .quadrature import integrate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuadratureSettings:
    """
    Truncation and panel count for the P1/P2 Fourier integrals.

    The semi-infinite integral over phi is approximated on
    [lower_bound, upper_bound]. The lower bound stays strictly positive since
    the integrand has a removable singularity at phi = 0. The defaults were
    validated against the reference market data; raising upper_bound or
    n_panels buys accuracy at a linear cost.
    """

    lower_bound: float = 1e-4
    upper_bound: float = 50.0
    n_panels: int = 1000
    blowup_threshold: float = 1e6  # |integrand| at lower_bound above this is flagged

    def __post_init__(self):
        if self.lower_bound <= 0:
            raise ValueError(f"lower_bound must be positive, got {self.lower_bound}")
        if self.upper_bound <= self.lower_bound:
            raise ValueError("upper_bound must exceed lower_bound")
        if self.n_panels < 1:
            raise ValueError(f"n_panels must be >= 1, got {self.n_panels}")


class HestonModel:
    """
    Semi-analytic Heston pricer for European options.

    Call prices follow Heston (1993):

        C = S * P1 - K * exp(-r0 * T) * P2

    where P1 and P2 are risk-neutral exercise probabilities obtained by
    Fourier inversion of the characteristic function. Puts come from
    put-call parity. Instances are immutable.
    """

    def __init__(
        self,
        r0: float,
        params: Union[HestonParameters, Sequence[float]],
        quadrature: Optional[QuadratureSettings] = None,
        price_decimals: Optional[int] = 2
    ):
        """
        Args:
            r0: Risk-free rate (observed, not calibrated)
            params: Heston parameters or a (kappa, theta, sigma, rho, v0) vector
            quadrature: Integration settings, defaults to QuadratureSettings()
            price_decimals: Decimal places prices are rounded to; None disables rounding
        """
        if not isinstance(params, HestonParameters):
            params = HestonParameters.from_array(params)

        self._r0 = float(r0)
        self._params = params
        self.quadrature = quadrature or QuadratureSettings()
        self.price_decimals = price_decimals

    @property
    def r0(self) -> float:
        return self._r0

    @property
    def params(self) -> HestonParameters:
        return self._params

    @property
    def kappa(self) -> float:
        return self._params.kappa

    @property
    def theta(self) -> float:
        return self._params.theta

    @property
    def sigma(self) -> float:
        return self._params.sigma

    @property
    def rho(self) -> float:
        return self._params.rho

    @property
    def v0(self) -> float:
        return self._params.v0

    def to_array(self) -> np.ndarray:
        """Calibrated parameters as a (kappa, theta, sigma, rho, v0) vector."""
        return self._params.to_array()

    def with_params(self, params: Union[HestonParameters, Sequence[float]]) -> 'HestonModel':
        """Copy of this model with different Heston parameters."""
        return HestonModel(self._r0, params, self.quadrature, self.price_decimals)

    def _probability_integrand(
        self,
        strike: float,
        maturity: float,
        spot: float,
        b: float,
        u: float
    ) -> Callable[[np.ndarray], np.ndarray]:
        """Re[exp(-i*phi*ln K) * f_j(phi) / (i*phi)] as a vectorised function of phi."""
        log_strike = np.log(strike)

        def integrand(phi):
            phi = np.asarray(phi, dtype=float)
            with np.errstate(all='ignore'):
                f = heston_charfn(phi, maturity, spot, self._params, self._r0, b, u)
                value = np.exp(-1j * phi * log_strike) * f / (1j * phi)
            return np.real(value)

        return integrand

    def _check_integrand_near_zero(self, integrand: Callable, j: int) -> None:
        """Flag integrand blow-up at the lower cutoff; the value is left as is."""
        value = float(integrand(np.array([self.quadrature.lower_bound]))[0])
        if not np.isfinite(value) or abs(value) > self.quadrature.blowup_threshold:
            logger.warning(
                f"P{j + 1} integrand is {value} at phi={self.quadrature.lower_bound} "
                f"for {self._params}; the price is likely unreliable"
            )

    def exercise_probabilities(self, strike: float, maturity: float, spot: float) -> Tuple[float, float]:
        """
        Risk-neutral exercise probabilities (P1, P2).

        Args:
            strike: Strike price K
            maturity: Time to exercise T in years
            spot: Current stock price S

        Returns:
            Tuple (P1, P2). Values may be non-finite if the integrand diverges.
        """
        b = (self.kappa - self.rho * self.sigma, self.kappa)
        u = (0.5, -0.5)
        settings = self.quadrature

        probabilities = []
        for j in range(2):
            integrand = self._probability_integrand(strike, maturity, spot, b[j], u[j])
            self._check_integrand_near_zero(integrand, j)

            integral = integrate(
                integrand,
                settings.lower_bound,
                settings.upper_bound,
                settings.n_panels
            )
            probabilities.append(0.5 + integral / np.pi)

        return probabilities[0], probabilities[1]

    def _round(self, value: float) -> float:
        if self.price_decimals is None or not np.isfinite(value):
            return value
        return round(value, self.price_decimals)

    def price(self, strike: float, maturity: float, spot: float) -> Tuple[float, float]:
        """
        European call and put prices.

        Args:
            strike: Strike price K
            maturity: Time to exercise T in years
            spot: Current stock price S

        Returns:
            Tuple (call_price, put_price), rounded to ``price_decimals``
        """
        p1, p2 = self.exercise_probabilities(strike, maturity, spot)
        discounted_strike = strike * np.exp(-self._r0 * maturity)

        call_price = self._round(float(spot * p1 - discounted_strike * p2))
        put_price = self._round(float(discounted_strike - spot + call_price))

        return call_price, put_price

    def call_price(self, strike: float, maturity: float, spot: float) -> float:
        """European call price only."""
        return self.price(strike, maturity, spot)[0]

    def put_price(self, strike: float, maturity: float, spot: float) -> float:
        """European put price via put-call parity."""
        return self.price(strike, maturity, spot)[1]

    def __repr__(self) -> str:
        return f"HestonModel(r0={self._r0}, {self._params})"
