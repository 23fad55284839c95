#!/usr/bin/env python3
"""
Calibrate the Heston model to a handful of European call quotes.

Without arguments the reference surface below is used (S=100, r0=0.1,
five quotes across three maturities).
"""

import argparse
import logging
import sys

from hestoncal.calibration import (
    CalibrationConfig,
    CalibrationFailedError,
    HestonCalibrator,
    create_calibration_report
)
from hestoncal.data.loaders import add_quotes_from_frame, load_option_quotes
from hestoncal.utils.config import get_nested_value, load_config
from hestoncal.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)

# (spot, maturity, strike, mid_price)
REFERENCE_QUOTES = [
    (100.0, 1.0, 80.0, 25.72),
    (100.0, 1.0, 90.0, 18.93),
    (100.0, 2.0, 80.0, 30.49),
    (100.0, 2.0, 100.0, 19.36),
    (100.0, 1.5, 100.0, 16.58),
]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Heston model calibration")
    parser.add_argument("--config", help="YAML config with a 'calibration' section")
    parser.add_argument("--quotes", help="CSV with spot, maturity, strike, mid_price columns")
    parser.add_argument("--r0", type=float, default=None, help="Risk-free rate")
    parser.add_argument("--accuracy", type=float, default=None, help="Stopping tolerance")
    parser.add_argument("--max-iterations", type=int, default=None, help="Iteration budget")
    parser.add_argument("--log-level", default=None, help="Logging level")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Run one calibration and print the outcome."""
    args = parse_args(argv)

    if args.config:
        raw_config = load_config(args.config)
        config = CalibrationConfig.from_dict(get_nested_value(raw_config, 'calibration', {}) or {})
        log_level = args.log_level or get_nested_value(raw_config, 'logging.level', 'INFO')
        pricer_level = get_nested_value(raw_config, 'logging.pricer_level')
    else:
        config = CalibrationConfig(accuracy=1e-3, max_iterations=1000)
        log_level = args.log_level or 'INFO'
        pricer_level = None

    setup_logging(level=log_level, pricer_level=pricer_level)

    calibrator = HestonCalibrator(
        r0=args.r0,
        accuracy=args.accuracy,
        max_iterations=args.max_iterations,
        config=config
    )

    if args.quotes:
        add_quotes_from_frame(calibrator, load_option_quotes(args.quotes))
    else:
        for spot, maturity, strike, price in REFERENCE_QUOTES:
            calibrator.add_observed_option(spot, maturity, strike, price)

    initial_error = calibrator.get_calibration_status().pricing_error
    print(f"Initial pricing error: {initial_error:.6f}")

    try:
        calibrator.calibrate()
    except CalibrationFailedError as e:
        logger.error(f"Calibration failed: {e}")
        return 1

    report = create_calibration_report(calibrator)
    summary = report['summary']

    print(f"Calibration outcome: {summary['outcome']} and error: {summary['pricing_error']:.6f}")
    print(f"Iterations: {summary['n_iterations']} ({summary['termination']})")
    print(f"Parameters: {calibrator.calibrated_params}")
    print(f"Feller condition satisfied: {report['feller_condition']}")
    print(report['pricing'].to_string(index=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())
