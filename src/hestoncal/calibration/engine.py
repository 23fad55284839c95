import numpy as np
from typing import Any, Dict, NamedTuple, Optional, Tuple
from dataclasses import replace
from enum import Enum
import logging
from ..pricers.heston_charfn import HestonParameters
from ..pricers.heston_integral import HestonModel
from ..utils.timers import Timer
from .minimizer import Minimizer, MinimizationReport, TerminationReason, build_minimizer
from .objective import CalibrationConfig, CalibrationObjective
from .surface import MarketQuote, QuoteBook

logger = logging.getLogger(__name__)


class CalibrationError(Exception):
    """Base class for calibration errors."""


class CalibrationFailedError(CalibrationError):
    """The minimizer stopped for a reason other than convergence or the iteration budget."""

    def __init__(self, message: str, report: Optional[MinimizationReport] = None):
        super().__init__(message)
        self.report = report


class CalibrationOutcome(Enum):
    NOT_STARTED = "not_started"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    FAILED = "failed"


class CalibrationStatus(NamedTuple):
    outcome: CalibrationOutcome
    pricing_error: float


# Precision of observed mids and of HestonModel.price
QUOTED_PRICE_DECIMALS = 2

_CONVERGED_REASONS = (
    TerminationReason.GRADIENT_TOLERANCE,
    TerminationReason.FUNCTION_TOLERANCE,
    TerminationReason.STEP_TOLERANCE,
)


class HestonCalibrator:
    """
    Calibrates the Heston model to observed European call prices.

    Owns the market quotes, the current best parameter estimate and the
    outcome of the last run. ``calibrate`` restarts from the last adopted
    parameters, so it may be called repeatedly as quotes are added.

    Instances are not thread-safe; use one calibrator per thread.
    """

    def __init__(
        self,
        r0: Optional[float] = None,
        accuracy: Optional[float] = None,
        max_iterations: Optional[int] = None,
        config: Optional[CalibrationConfig] = None,
        minimizer: Optional[Minimizer] = None
    ):
        """
        Args:
            r0: Risk-free rate, overrides ``config.r0``
            accuracy: Common value for the three stopping tolerances,
                overrides the config's eps_* values
            max_iterations: Iteration budget, overrides ``config.max_iterations``
            config: Full configuration, defaults to CalibrationConfig()
            minimizer: Minimizer implementation, defaults to the one
                selected by ``config.method``
        """
        overrides = {}
        if r0 is not None:
            overrides['r0'] = float(r0)
        if accuracy is not None:
            overrides.update(
                accuracy=accuracy,
                eps_gradient=accuracy,
                eps_function=accuracy,
                eps_step=accuracy
            )
        if max_iterations is not None:
            overrides['max_iterations'] = int(max_iterations)

        self.config = replace(config or CalibrationConfig(), **overrides)

        self.minimizer = minimizer or build_minimizer(self.config.method, self.config.diff_step)

        self._quotes = QuoteBook()
        self._params = self.config.initial_guess
        self._outcome = CalibrationOutcome.NOT_STARTED
        self._last_report: Optional[MinimizationReport] = None

    @property
    def r0(self) -> float:
        return self.config.r0

    @property
    def outcome(self) -> CalibrationOutcome:
        return self._outcome

    @property
    def calibrated_params(self) -> HestonParameters:
        return self._params

    @property
    def quotes(self) -> Tuple[MarketQuote, ...]:
        return self._quotes.snapshot()

    @property
    def n_quotes(self) -> int:
        return len(self._quotes)

    @property
    def last_report(self) -> Optional[MinimizationReport]:
        return self._last_report

    def set_initial_guess(self, kappa: float, theta: float, sigma: float, rho: float, v0: float) -> None:
        """Replace the parameters the next calibration starts from."""
        self._params = HestonParameters(
            kappa=float(kappa),
            theta=float(theta),
            sigma=float(sigma),
            rho=float(rho),
            v0=float(v0)
        )

    def add_observed_option(self, spot: float, maturity: float, strike: float, mid_price: float) -> MarketQuote:
        """Add an observed European call; values are not validated."""
        return self._quotes.add(spot, maturity, strike, mid_price)

    def objective(self) -> CalibrationObjective:
        """Objective over the quotes currently held."""
        return CalibrationObjective(
            self._quotes.snapshot(),
            self.config.r0,
            quadrature=self.config.quadrature,
            price_decimals=self.config.objective_price_decimals,
            invalid_penalty=self.config.invalid_penalty
        )

    def calibrate(self) -> CalibrationOutcome:
        """
        Run the minimizer from the current parameters.

        Returns:
            CONVERGED or MAX_ITERATIONS_REACHED; in both cases the minimizer's
            parameters are adopted.

        Raises:
            CalibrationFailedError: for any other termination. The current
                parameters are left unchanged.
        """
        self._outcome = CalibrationOutcome.NOT_STARTED
        objective = self.objective()
        x0 = self._params.to_array()

        logger.info(f"Calibrating Heston model to {len(objective.quotes)} quotes from {self._params}")

        with Timer("heston calibration"):
            report = self.minimizer.minimize(
                objective,
                x0,
                eps_gradient=self.config.eps_gradient,
                eps_function=self.config.eps_function,
                eps_step=self.config.eps_step,
                max_iterations=self.config.max_iterations,
                max_step_size=self.config.max_step_size
            )

        self._last_report = report
        logger.info(f"Termination: {report.termination.value} after {report.n_iterations} iterations")

        if report.termination in _CONVERGED_REASONS:
            self._outcome = CalibrationOutcome.CONVERGED
        elif report.termination == TerminationReason.MAX_ITERATIONS:
            self._outcome = CalibrationOutcome.MAX_ITERATIONS_REACHED
        else:
            self._outcome = CalibrationOutcome.FAILED
            logger.error(f"Heston calibration failed: {report.message}")
            raise CalibrationFailedError(
                f"Heston model calibration failed ({report.termination.value}): {report.message}",
                report=report
            )

        self._params = HestonParameters.from_array(report.x)
        logger.info(f"Calibrated parameters: {self._params}")

        return self._outcome

    def get_calibration_status(self) -> CalibrationStatus:
        """Last outcome and the pricing error at the current parameters."""
        pricing_error = self.objective().mean_square_error(self._params)
        return CalibrationStatus(self._outcome, pricing_error)

    def quoted_pricing_error(self) -> float:
        """
        Pricing error at the current parameters with model prices rounded to
        cents, as ``HestonModel.price`` reports them. Zero when every rounded
        model price equals its observed mid.
        """
        objective = CalibrationObjective(
            self._quotes.snapshot(),
            self.config.r0,
            quadrature=self.config.quadrature,
            price_decimals=QUOTED_PRICE_DECIMALS,
            invalid_penalty=self.config.invalid_penalty
        )
        return objective.mean_square_error(self._params)

    def get_calibrated_model(self) -> HestonModel:
        """Pricing engine bound to the current parameters and r0."""
        return HestonModel(self.config.r0, self._params, self.config.quadrature)


def create_calibration_report(calibrator: HestonCalibrator) -> Dict[str, Any]:
    """
    Summarise the state of a calibrator.

    Args:
        calibrator: Calibrator to report on

    Returns:
        Report dictionary; ``pricing`` holds a per-quote DataFrame
    """
    outcome, pricing_error = calibrator.get_calibration_status()
    params = calibrator.calibrated_params
    report = calibrator.last_report

    return {
        'summary': {
            'outcome': outcome.value,
            'pricing_error': pricing_error,
            'quoted_pricing_error': calibrator.quoted_pricing_error(),
            'rmse': float(np.sqrt(pricing_error / calibrator.n_quotes)) if calibrator.n_quotes else 0.0,
            'n_quotes': calibrator.n_quotes,
            'n_iterations': report.n_iterations if report is not None else 0,
            'termination': report.termination.value if report is not None else None
        },
        'parameters': params.to_dict(),
        'r0': calibrator.r0,
        'feller_condition': params.feller_condition,
        'pricing': calibrator.objective().pricing_errors(params)
    }
