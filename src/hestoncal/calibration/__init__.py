"""
Heston model calibration framework.

- Market quote containers
- Minimizer contract and scipy adapters
- Sum-of-squared-errors objective and configuration
- Calibration controller with outcome tracking
"""

from .surface import MarketQuote, QuoteBook

from .minimizer import (
    Minimizer,
    MinimizationReport,
    TerminationReason,
    CalibrationMethod,
    ScipyLBFGSMinimizer,
    ScipyNelderMeadMinimizer,
    build_minimizer
)

from .objective import CalibrationConfig, CalibrationObjective

from .engine import (
    HestonCalibrator,
    CalibrationOutcome,
    CalibrationStatus,
    CalibrationError,
    CalibrationFailedError,
    create_calibration_report
)

__all__ = [
    # Market data
    'MarketQuote',
    'QuoteBook',

    # Minimizer contract
    'Minimizer',
    'MinimizationReport',
    'TerminationReason',
    'CalibrationMethod',
    'ScipyLBFGSMinimizer',
    'ScipyNelderMeadMinimizer',
    'build_minimizer',

    # Objective
    'CalibrationConfig',
    'CalibrationObjective',

    # Controller
    'HestonCalibrator',
    'CalibrationOutcome',
    'CalibrationStatus',
    'CalibrationError',
    'CalibrationFailedError',
    'create_calibration_report'
]
