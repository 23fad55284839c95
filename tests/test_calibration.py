import pytest
import numpy as np
from unittest.mock import MagicMock
import sys
import os

# Add the src directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from hestoncal.pricers.heston_charfn import HestonParameters
from hestoncal.pricers.heston_integral import HestonModel
from hestoncal.calibration.minimizer import (
    CalibrationMethod,
    MinimizationReport,
    ScipyLBFGSMinimizer,
    ScipyNelderMeadMinimizer,
    TerminationReason
)
from hestoncal.calibration.objective import CalibrationConfig
from hestoncal.calibration.engine import (
    CalibrationFailedError,
    CalibrationOutcome,
    HestonCalibrator,
    create_calibration_report
)


R0 = 0.1
SEED = HestonParameters(kappa=2.0, theta=0.06, sigma=0.4, rho=0.5, v0=0.04)
FITTED = np.array([1.5, 0.05, 0.3, -0.4, 0.03])

REFERENCE_QUOTES = [
    (100.0, 1.0, 80.0, 25.72),
    (100.0, 1.0, 90.0, 18.93),
    (100.0, 2.0, 80.0, 30.49),
    (100.0, 2.0, 100.0, 19.36),
    (100.0, 1.5, 100.0, 16.58),
]


def stub_minimizer(termination, x=FITTED, n_iterations=7):
    """Minimizer double returning a fixed report."""
    minimizer = MagicMock()
    minimizer.minimize.return_value = MinimizationReport(
        x=np.array(x, dtype=float),
        termination=termination,
        n_iterations=n_iterations,
        message=termination.value
    )
    return minimizer


def make_calibrator(minimizer=None, **kwargs):
    calibrator = HestonCalibrator(r0=R0, minimizer=minimizer, **kwargs)
    for quote in REFERENCE_QUOTES:
        calibrator.add_observed_option(*quote)
    return calibrator


class TestCalibratorSetup:
    """Test cases for calibrator construction and quote handling."""

    def test_defaults(self):
        calibrator = HestonCalibrator()

        assert calibrator.r0 == 0.1
        assert calibrator.config.eps_gradient == 1e-2
        assert calibrator.config.max_iterations == 500
        assert calibrator.calibrated_params == SEED
        assert calibrator.outcome == CalibrationOutcome.NOT_STARTED
        assert calibrator.last_report is None
        assert isinstance(calibrator.minimizer, ScipyLBFGSMinimizer)

    def test_overrides(self):
        config = CalibrationConfig(r0=0.02)
        calibrator = HestonCalibrator(r0=0.05, accuracy=1e-4, max_iterations=50, config=config)

        assert calibrator.r0 == 0.05
        assert calibrator.config.eps_gradient == 1e-4
        assert calibrator.config.eps_function == 1e-4
        assert calibrator.config.eps_step == 1e-4
        assert calibrator.config.max_iterations == 50
        # The caller's config is left alone
        assert config.r0 == 0.02

    def test_method_selects_minimizer(self):
        calibrator = HestonCalibrator(config=CalibrationConfig(method=CalibrationMethod.NELDER_MEAD))
        assert isinstance(calibrator.minimizer, ScipyNelderMeadMinimizer)

    def test_quotes_kept_in_order(self):
        calibrator = make_calibrator()

        assert calibrator.n_quotes == 5
        assert [q.strike for q in calibrator.quotes] == [80.0, 90.0, 80.0, 100.0, 100.0]

    def test_add_returns_quote(self):
        calibrator = HestonCalibrator(r0=R0)
        quote = calibrator.add_observed_option(100.0, 1.0, 90.0, 18.93)

        assert quote.mid_price == 18.93
        assert calibrator.quotes == (quote,)

    def test_set_initial_guess(self):
        calibrator = HestonCalibrator(r0=R0)
        calibrator.set_initial_guess(1.0, 0.04, 0.3, -0.6, 0.05)

        assert calibrator.calibrated_params == HestonParameters(1.0, 0.04, 0.3, -0.6, 0.05)


class TestCalibrationStatus:

    def test_not_started_reports_seed_error(self):
        calibrator = make_calibrator()
        outcome, error = calibrator.get_calibration_status()

        assert outcome == CalibrationOutcome.NOT_STARTED
        assert error == calibrator.objective()(SEED)
        assert error > 0

    def test_status_idempotent(self):
        calibrator = make_calibrator()
        assert calibrator.get_calibration_status() == calibrator.get_calibration_status()

    def test_quoted_error_zero_on_rounded_match(self):
        """Mids equal to the rounded model prices give an exact zero at quoted precision."""
        model = HestonModel(R0, SEED)
        calibrator = HestonCalibrator(r0=R0)
        for spot, maturity, strike, _ in REFERENCE_QUOTES:
            calibrator.add_observed_option(spot, maturity, strike, model.call_price(strike, maturity, spot))

        assert calibrator.quoted_pricing_error() == 0.0
        # Unrounded prices differ from the cent-rounded mids
        assert calibrator.get_calibration_status().pricing_error > 0.0

    def test_calibrated_model(self):
        calibrator = make_calibrator()
        model = calibrator.get_calibrated_model()

        assert isinstance(model, HestonModel)
        assert model.r0 == R0
        assert model.params == SEED


class TestCalibrationController:
    """Controller behaviour with a stubbed minimizer."""

    def test_converged_adopts_result(self):
        calibrator = make_calibrator(stub_minimizer(TerminationReason.GRADIENT_TOLERANCE))

        assert calibrator.calibrate() == CalibrationOutcome.CONVERGED
        np.testing.assert_array_equal(calibrator.calibrated_params.to_array(), FITTED)
        assert calibrator.last_report.n_iterations == 7

    @pytest.mark.parametrize("termination", [
        TerminationReason.FUNCTION_TOLERANCE,
        TerminationReason.STEP_TOLERANCE,
    ])
    def test_other_tolerances_converge(self, termination):
        calibrator = make_calibrator(stub_minimizer(termination))
        assert calibrator.calibrate() == CalibrationOutcome.CONVERGED

    def test_max_iterations_adopts_result(self):
        calibrator = make_calibrator(stub_minimizer(TerminationReason.MAX_ITERATIONS))

        assert calibrator.calibrate() == CalibrationOutcome.MAX_ITERATIONS_REACHED
        np.testing.assert_array_equal(calibrator.calibrated_params.to_array(), FITTED)

    def test_failure_rolls_back(self):
        minimizer = stub_minimizer(TerminationReason.FAILURE)
        calibrator = make_calibrator(minimizer)

        with pytest.raises(CalibrationFailedError) as excinfo:
            calibrator.calibrate()

        assert excinfo.value.report is minimizer.minimize.return_value
        assert calibrator.outcome == CalibrationOutcome.FAILED
        assert calibrator.calibrated_params == SEED
        assert calibrator.get_calibration_status().outcome == CalibrationOutcome.FAILED

    def test_minimizer_receives_seed_and_tolerances(self):
        minimizer = stub_minimizer(TerminationReason.GRADIENT_TOLERANCE)
        calibrator = make_calibrator(minimizer, accuracy=1e-3, max_iterations=1000)
        calibrator.calibrate()

        args, kwargs = minimizer.minimize.call_args
        objective, x0 = args

        np.testing.assert_array_equal(x0, SEED.to_array())
        assert len(objective.quotes) == 5
        assert kwargs == {
            'eps_gradient': 1e-3,
            'eps_function': 1e-3,
            'eps_step': 1e-3,
            'max_iterations': 1000,
            'max_step_size': 0.05
        }

    def test_restarts_from_adopted_parameters(self):
        minimizer = stub_minimizer(TerminationReason.GRADIENT_TOLERANCE)
        calibrator = make_calibrator(minimizer)

        calibrator.calibrate()
        calibrator.calibrate()

        first_x0 = minimizer.minimize.call_args_list[0][0][1]
        second_x0 = minimizer.minimize.call_args_list[1][0][1]
        np.testing.assert_array_equal(first_x0, SEED.to_array())
        np.testing.assert_array_equal(second_x0, FITTED)

    def test_new_quotes_do_not_reset_outcome(self):
        calibrator = make_calibrator(stub_minimizer(TerminationReason.GRADIENT_TOLERANCE))
        calibrator.calibrate()
        error_before = calibrator.get_calibration_status().pricing_error

        calibrator.add_observed_option(100.0, 0.5, 110.0, 3.10)
        outcome, error_after = calibrator.get_calibration_status()

        assert outcome == CalibrationOutcome.CONVERGED
        assert error_after != error_before

    def test_failure_after_success_keeps_previous_fit(self):
        minimizer = stub_minimizer(TerminationReason.GRADIENT_TOLERANCE)
        calibrator = make_calibrator(minimizer)
        calibrator.calibrate()

        minimizer.minimize.return_value = MinimizationReport(
            x=np.zeros(5), termination=TerminationReason.FAILURE, n_iterations=1
        )
        with pytest.raises(CalibrationFailedError):
            calibrator.calibrate()

        np.testing.assert_array_equal(calibrator.calibrated_params.to_array(), FITTED)


class TestCalibrationEndToEnd:
    """Calibration with the real scipy minimizer."""

    def test_no_quotes_converges_at_seed(self):
        calibrator = HestonCalibrator(r0=R0, accuracy=1e-3, max_iterations=1000)

        assert calibrator.calibrate() == CalibrationOutcome.CONVERGED
        assert calibrator.calibrated_params == SEED
        assert calibrator.get_calibration_status() == (CalibrationOutcome.CONVERGED, 0.0)

    def test_reference_scenario_improves_fit(self):
        calibrator = HestonCalibrator(r0=R0, accuracy=1e-3, max_iterations=1000)
        for quote in REFERENCE_QUOTES:
            calibrator.add_observed_option(*quote)

        initial_error = calibrator.get_calibration_status().pricing_error
        outcome = calibrator.calibrate()
        final_error = calibrator.get_calibration_status().pricing_error

        assert outcome in (CalibrationOutcome.CONVERGED, CalibrationOutcome.MAX_ITERATIONS_REACHED)
        assert np.isfinite(final_error)
        assert final_error < 0.75 * initial_error


class TestCalibrationReport:

    def test_report_before_calibration(self):
        report = create_calibration_report(make_calibrator())

        assert report['summary']['outcome'] == 'not_started'
        assert report['summary']['n_quotes'] == 5
        assert report['summary']['n_iterations'] == 0
        assert report['summary']['termination'] is None
        assert report['summary']['quoted_pricing_error'] == pytest.approx(
            report['summary']['pricing_error'], abs=0.5
        )
        assert report['parameters'] == SEED.to_dict()
        assert report['r0'] == R0
        assert report['feller_condition']
        assert len(report['pricing']) == 5

    def test_report_after_calibration(self):
        calibrator = make_calibrator(stub_minimizer(TerminationReason.MAX_ITERATIONS, n_iterations=1000))
        calibrator.calibrate()
        report = create_calibration_report(calibrator)

        summary = report['summary']
        assert summary['outcome'] == 'max_iterations_reached'
        assert summary['termination'] == 'max_iterations'
        assert summary['n_iterations'] == 1000
        assert summary['rmse'] == pytest.approx(np.sqrt(summary['pricing_error'] / 5))
        assert report['parameters']['rho'] == -0.4

    def test_report_without_quotes(self):
        report = create_calibration_report(HestonCalibrator(r0=R0))

        assert report['summary']['rmse'] == 0.0
        assert report['pricing'].empty
