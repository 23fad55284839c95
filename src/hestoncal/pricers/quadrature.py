import numpy as np
from numpy.polynomial.legendre import leggauss
from typing import Callable
import logging

logger = logging.getLogger(__name__)


class CompositeGaussLegendre:
    """
    Composite Gauss-Legendre quadrature on a bounded interval.

    The interval is split into equally sized panels and a fixed-order
    Gauss-Legendre rule is applied on each panel. An ``order``-point rule
    integrates polynomials of degree ``2*order - 1`` exactly per panel, so the
    default 4-point rule is exact for cubics (and up to degree 7).

    There is no adaptive refinement: callers choose the panel count.
    """

    def __init__(self, order: int = 4):
        if order < 1:
            raise ValueError(f"Quadrature order must be >= 1, got {order}")

        self.order = order
        # Nodes and weights on the reference interval [-1, 1]
        self.nodes, self.weights = leggauss(order)

    def integrate(
        self,
        f: Callable,
        lower_bound: float,
        upper_bound: float,
        n_panels: int,
        vectorized: bool = True
    ) -> float:
        """
        Integrate f over [lower_bound, upper_bound].

        Args:
            f: Real integrand. With ``vectorized=True`` it is first called once
                with a numpy array of all quadrature nodes; a scalar result is
                broadcast, and an integrand that rejects arrays is called once
                per node instead.
            lower_bound: Left end of the interval
            upper_bound: Right end of the interval (must exceed lower_bound)
            n_panels: Number of equal sub-intervals (>= 1)
            vectorized: Whether f accepts numpy arrays

        Returns:
            Approximation of the integral. Non-finite integrand values are
            carried into the result unchanged.
        """
        if not lower_bound < upper_bound:
            raise ValueError(
                f"lower_bound must be < upper_bound, got [{lower_bound}, {upper_bound}]"
            )
        if n_panels < 1:
            raise ValueError(f"n_panels must be >= 1, got {n_panels}")

        n_panels = int(n_panels)
        h = (upper_bound - lower_bound) / n_panels

        # Panel midpoints, shape (n_panels, 1), and nodes, shape (n_panels, order)
        centers = lower_bound + h * (np.arange(n_panels) + 0.5)
        x = centers[:, None] + 0.5 * h * self.nodes[None, :]

        values = self._evaluate(f, x, vectorized)
        panel_sums = 0.5 * h * (values @ self.weights)

        # Sequential accumulation in ascending panel order
        return float(np.cumsum(panel_sums)[-1])

    @staticmethod
    def _evaluate(f: Callable, x: np.ndarray, vectorized: bool) -> np.ndarray:
        """Integrand values at the nodes x, shaped like x."""
        if vectorized:
            try:
                values = np.asarray(f(x.ravel()), dtype=float)
                # Constant integrands may return a single scalar
                return np.broadcast_to(values, x.size).reshape(x.shape)
            except (TypeError, ValueError):
                # Scalar-only integrands (math.sin, branching on x)
                logger.debug(f"Integrand {f!r} is not vectorised, evaluating node by node")

        return np.array([float(f(xi)) for xi in x.ravel()]).reshape(x.shape)


_default_rule = CompositeGaussLegendre(order=4)


def integrate(
    f: Callable,
    lower_bound: float,
    upper_bound: float,
    n_panels: int,
    vectorized: bool = True
) -> float:
    """Integrate f with the default 4-point composite Gauss-Legendre rule."""
    return _default_rule.integrate(f, lower_bound, upper_bound, n_panels, vectorized)
