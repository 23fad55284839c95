"""
Minimizer contract used by the calibration controller.

The controller only depends on the ``Minimizer`` protocol: an objective,
a starting vector and a tolerance bundle go in; the optimised vector and a
``TerminationReason`` come out. The scipy adapters below translate scipy's
own status codes and messages into that small enumeration once, so other
quasi-Newton or derivative-free engines can be swapped in freely.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol
import logging
from scipy.optimize import minimize

logger = logging.getLogger(__name__)


class TerminationReason(Enum):
    """Why a minimizer stopped."""
    GRADIENT_TOLERANCE = "gradient_tolerance"   # gradient norm <= eps_gradient
    FUNCTION_TOLERANCE = "function_tolerance"   # relative improvement <= eps_function
    STEP_TOLERANCE = "step_tolerance"           # step size <= eps_step
    MAX_ITERATIONS = "max_iterations"           # iteration budget exhausted
    FAILURE = "failure"                         # anything else


class CalibrationMethod(Enum):
    """Optimization algorithms available for calibration."""
    L_BFGS_B = "L-BFGS-B"          # Limited-memory BFGS, finite-difference gradient
    NELDER_MEAD = "Nelder-Mead"    # Nelder-Mead simplex, derivative free


@dataclass
class MinimizationReport:
    """Outcome of one minimizer run."""
    x: np.ndarray
    termination: TerminationReason
    n_iterations: int
    n_evaluations: int = 0
    fun: float = np.nan
    message: str = ""


class Minimizer(Protocol):
    def minimize(
        self,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        eps_gradient: float,
        eps_function: float,
        eps_step: float,
        max_iterations: int,
        max_step_size: float
    ) -> MinimizationReport:
        ...


class _StepMonitor:
    """
    Iteration callback implementing a step-size stopping rule.

    Raising StopIteration from a callback halts scipy's minimize; the
    monitor remembers that it did so, which lets the adapter report
    STEP_TOLERANCE instead of a generic stop.
    """

    def __init__(self, x0: np.ndarray, eps_step: float):
        self.previous = np.array(x0, dtype=float)
        self.eps_step = eps_step
        self.n_iterations = 0
        self.triggered = False

    def __call__(self, xk: np.ndarray) -> None:
        self.n_iterations += 1
        step = float(np.linalg.norm(np.asarray(xk) - self.previous))
        self.previous = np.array(xk, dtype=float)

        if self.eps_step > 0 and step <= self.eps_step:
            logger.debug(f"Step {step:.3e} below eps_step={self.eps_step:.3e}")
            self.triggered = True
            raise StopIteration


def _normalise_message(message) -> str:
    if isinstance(message, bytes):
        message = message.decode()
    # scipy < 1.15 uses underscores in L-BFGS-B messages, newer versions spaces
    return str(message).upper().replace('_', ' ')


class ScipyLBFGSMinimizer:
    """
    Quasi-Newton minimizer backed by scipy's L-BFGS-B with numerical gradients.

    Tolerance mapping:
        eps_gradient -> ``gtol`` (max projected gradient component)
        eps_function -> ``ftol`` (relative reduction of f)
        eps_step     -> step-norm check in an iteration callback
        max_iterations -> ``maxiter``

    scipy's L-BFGS-B has no step-length cap, so ``max_step_size`` is only
    recorded in the log.
    """

    def __init__(self, diff_step: float = 1e-6, max_evaluations: Optional[int] = None):
        self.diff_step = diff_step
        self.max_evaluations = max_evaluations

    def minimize(
        self,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        eps_gradient: float,
        eps_function: float,
        eps_step: float,
        max_iterations: int,
        max_step_size: float
    ) -> MinimizationReport:
        x0 = np.asarray(x0, dtype=float)
        monitor = _StepMonitor(x0, eps_step)
        max_evaluations = self.max_evaluations or 50 * max(max_iterations, 1) * (x0.size + 1)

        logger.debug(
            f"L-BFGS-B: gtol={eps_gradient}, ftol={eps_function}, xtol={eps_step}, "
            f"maxiter={max_iterations}, max_step_size={max_step_size} (not enforced)"
        )

        result = minimize(
            objective,
            x0=x0,
            method=CalibrationMethod.L_BFGS_B.value,
            callback=monitor,
            options={
                'gtol': eps_gradient,
                'ftol': eps_function,
                'maxiter': max_iterations,
                'maxfun': max_evaluations,
                'eps': self.diff_step
            }
        )

        termination = self._termination_reason(result, monitor)
        return MinimizationReport(
            x=np.asarray(result.x, dtype=float),
            termination=termination,
            n_iterations=int(getattr(result, 'nit', monitor.n_iterations)),
            n_evaluations=int(getattr(result, 'nfev', 0)),
            fun=float(result.fun),
            message=str(getattr(result, 'message', ''))
        )

    @staticmethod
    def _termination_reason(result, monitor: _StepMonitor) -> TerminationReason:
        message = _normalise_message(getattr(result, 'message', ''))

        if monitor.triggered:
            return TerminationReason.STEP_TOLERANCE
        if result.status == 0:
            if 'GRADIENT' in message:
                return TerminationReason.GRADIENT_TOLERANCE
            return TerminationReason.FUNCTION_TOLERANCE
        if result.status == 1:
            # Covers both the iteration and the evaluation budget
            return TerminationReason.MAX_ITERATIONS

        logger.warning(f"L-BFGS-B stopped abnormally (status={result.status}): {message}")
        return TerminationReason.FAILURE


class ScipyNelderMeadMinimizer:
    """
    Derivative-free alternative backed by scipy's Nelder-Mead simplex.

    ``eps_step`` and ``eps_function`` map to ``xatol`` and ``fatol``; the
    simplex stops only once both hold, which is reported as STEP_TOLERANCE.
    ``eps_gradient`` and ``max_step_size`` have no counterpart.
    """

    def minimize(
        self,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        eps_gradient: float,
        eps_function: float,
        eps_step: float,
        max_iterations: int,
        max_step_size: float
    ) -> MinimizationReport:
        x0 = np.asarray(x0, dtype=float)

        result = minimize(
            objective,
            x0=x0,
            method=CalibrationMethod.NELDER_MEAD.value,
            options={
                'xatol': eps_step,
                'fatol': eps_function,
                'maxiter': max_iterations
            }
        )

        if result.status == 0:
            termination = TerminationReason.STEP_TOLERANCE
        elif result.status in (1, 2):
            # 1: max function evaluations, 2: max iterations
            termination = TerminationReason.MAX_ITERATIONS
        else:
            logger.warning(f"Nelder-Mead stopped abnormally (status={result.status}): {result.message}")
            termination = TerminationReason.FAILURE

        return MinimizationReport(
            x=np.asarray(result.x, dtype=float),
            termination=termination,
            n_iterations=int(getattr(result, 'nit', 0)),
            n_evaluations=int(getattr(result, 'nfev', 0)),
            fun=float(result.fun),
            message=str(getattr(result, 'message', ''))
        )


def build_minimizer(method: CalibrationMethod, diff_step: float = 1e-6) -> Minimizer:
    """Create the minimizer adapter for a calibration method."""
    if method == CalibrationMethod.L_BFGS_B:
        return ScipyLBFGSMinimizer(diff_step=diff_step)
    elif method == CalibrationMethod.NELDER_MEAD:
        return ScipyNelderMeadMinimizer()
    else:
        raise ValueError(f"Unknown calibration method: {method}")
