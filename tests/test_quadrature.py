import math
import pytest
import numpy as np
import sys
import os

# Add the src directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from hestoncal.pricers.quadrature import CompositeGaussLegendre, integrate


class TestCompositeGaussLegendre:
    """Test cases for the composite quadrature rule."""

    def test_cubic_exact_on_single_panel(self):
        """A 4-point rule integrates cubics exactly."""
        result = integrate(lambda x: 4 * x**3 - 2 * x + 1, 0.0, 1.0, 1)
        assert result == pytest.approx(1.0, abs=1e-13)

    def test_degree_seven_exact(self):
        """Gauss-Legendre with 4 nodes is exact up to degree 7."""
        result = integrate(lambda x: x**7, -1.0, 2.0, 1)
        assert result == pytest.approx(255.0 / 8.0, rel=1e-13)

    def test_smooth_function(self):
        result = integrate(np.sin, 0.0, np.pi, 10)
        assert result == pytest.approx(2.0, abs=1e-10)

    def test_error_decreases_with_panels(self):
        """Oscillatory integrand converges as panels are added."""
        exact = math.sin(50.0) / 5.0

        def f(x):
            return np.cos(5 * x)

        errors = [abs(integrate(f, 0.0, 10.0, n) - exact) for n in (2, 20, 200)]

        assert errors[1] < errors[0]
        assert errors[2] < errors[1]
        assert errors[2] < 1e-10

    def test_scalar_integrand(self):
        """Non-vectorised integrands give the same result."""
        vectorized = integrate(np.exp, 0.0, 1.0, 7)
        scalar = integrate(math.exp, 0.0, 1.0, 7, vectorized=False)

        assert scalar == pytest.approx(vectorized, rel=1e-15)
        assert scalar == pytest.approx(math.e - 1.0, rel=1e-12)

    def test_constant_integrand(self):
        """A scalar return value is used for every node."""
        assert integrate(lambda x: 1.0, 0.0, 1.0, 4) == pytest.approx(1.0, rel=1e-14)
        assert integrate(lambda x: 2.5, -1.0, 3.0, 7) == pytest.approx(10.0, rel=1e-14)

    def test_scalar_only_integrands_with_defaults(self):
        """Integrands that reject arrays fall back to node-by-node evaluation."""
        assert integrate(math.sin, 0.0, 1.0, 4) == pytest.approx(1.0 - math.cos(1.0), rel=1e-12)

        def ramp(x):
            return x if x > 0 else 0.0

        assert integrate(ramp, -1.0, 1.0, 4) == pytest.approx(0.5, rel=1e-12)

    def test_deterministic(self):
        def f(x):
            return np.cos(3 * x) * np.exp(-x)

        first = integrate(f, 1e-4, 50.0, 1000)
        second = integrate(f, 1e-4, 50.0, 1000)
        assert first == second

    def test_nan_propagates(self):
        """Non-finite integrand values are not discarded."""
        result = integrate(lambda x: np.where(x > 0.5, np.nan, x), 0.0, 1.0, 4)
        assert np.isnan(result)

    def test_inf_propagates(self):
        result = integrate(lambda x: np.full_like(x, np.inf), 0.0, 1.0, 4)
        assert not np.isfinite(result)

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            integrate(np.sin, 1.0, 1.0, 10)

        with pytest.raises(ValueError):
            integrate(np.sin, 2.0, 1.0, 10)

    def test_invalid_panel_count(self):
        with pytest.raises(ValueError):
            integrate(np.sin, 0.0, 1.0, 0)

    def test_custom_order(self):
        """A 2-point rule is exact for cubics but not quartics."""
        rule = CompositeGaussLegendre(order=2)

        assert rule.integrate(lambda x: x**3, 0.0, 2.0, 1) == pytest.approx(4.0, rel=1e-13)
        assert rule.integrate(lambda x: x**4, 0.0, 2.0, 1) != pytest.approx(6.4, rel=1e-6)

    def test_invalid_order(self):
        with pytest.raises(ValueError):
            CompositeGaussLegendre(order=0)
