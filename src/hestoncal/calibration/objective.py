import numpy as np
import pandas as pd
from typing import Any, Dict, Iterable, Optional, Sequence, Union
from dataclasses import dataclass, field, fields
from pathlib import Path
import logging
from ..pricers.heston_charfn import HestonParameters
from ..pricers.heston_integral import HestonModel, QuadratureSettings
from ..utils.config import get_nested_value, load_config, merge_configs
from .minimizer import CalibrationMethod
from .surface import MarketQuote

logger = logging.getLogger(__name__)


@dataclass
class CalibrationConfig:
    """Configuration for Heston model calibration."""

    # Observed short rate, never calibrated
    r0: float = 0.1

    # Stopping rules; the three eps_* default to ``accuracy``
    accuracy: float = 1e-2
    eps_gradient: Optional[float] = None
    eps_function: Optional[float] = None
    eps_step: Optional[float] = None
    max_iterations: int = 500
    max_step_size: float = 0.05

    # Optimization settings
    method: CalibrationMethod = CalibrationMethod.L_BFGS_B
    diff_step: float = 1e-6  # finite-difference step for numerical gradients

    # Objective settings
    objective_price_decimals: Optional[int] = None  # None compares unrounded model prices
    invalid_penalty: float = 1e10                   # objective value for non-finite prices

    # Pricing
    quadrature: QuadratureSettings = field(default_factory=QuadratureSettings)

    # Starting point
    initial_guess: HestonParameters = field(default_factory=HestonParameters.default_params)

    def __post_init__(self):
        if self.eps_gradient is None:
            self.eps_gradient = self.accuracy
        if self.eps_function is None:
            self.eps_function = self.accuracy
        if self.eps_step is None:
            self.eps_step = self.accuracy

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'CalibrationConfig':
        """
        Build a config from a plain dictionary, e.g. the ``calibration``
        section of a YAML file.

        ``method`` may be given by enum value ("L-BFGS-B") or name
        ("L_BFGS_B"); ``quadrature`` and ``initial_guess`` are nested mappings.
        """
        config = dict(config or {})
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ValueError(f"Unknown calibration config keys: {sorted(unknown)}")

        if 'method' in config and not isinstance(config['method'], CalibrationMethod):
            config['method'] = _parse_method(config['method'])

        if 'quadrature' in config and not isinstance(config['quadrature'], QuadratureSettings):
            config['quadrature'] = QuadratureSettings(**config['quadrature'])

        if 'initial_guess' in config and not isinstance(config['initial_guess'], HestonParameters):
            config['initial_guess'] = HestonParameters.from_dict(config['initial_guess'])

        return cls(**config)

    @classmethod
    def from_yaml(
        cls,
        path: Union[str, Path],
        overrides: Optional[Dict[str, Any]] = None
    ) -> 'CalibrationConfig':
        """Load the ``calibration`` section of a YAML file, optionally merged with overrides."""
        section = get_nested_value(load_config(path), 'calibration', {}) or {}
        if overrides:
            section = merge_configs(section, overrides)
        return cls.from_dict(section)


def _parse_method(value: str) -> CalibrationMethod:
    for method in CalibrationMethod:
        if value in (method.value, method.name):
            return method
    raise ValueError(f"Unknown calibration method: {value}")


class CalibrationObjective:
    """
    Sum of squared call pricing errors over a fixed set of market quotes.

    The quotes are snapshotted on construction, so an instance is a pure
    function of the parameter vector and may be shared freely between
    threads.
    """

    def __init__(
        self,
        quotes: Iterable[MarketQuote],
        r0: float,
        quadrature: Optional[QuadratureSettings] = None,
        price_decimals: Optional[int] = None,
        invalid_penalty: float = 1e10
    ):
        self.quotes = tuple(quotes)
        self.r0 = float(r0)
        self.quadrature = quadrature or QuadratureSettings()
        self.price_decimals = price_decimals
        self.invalid_penalty = invalid_penalty

    def _model(self, params: Union[HestonParameters, Sequence[float]]) -> HestonModel:
        return HestonModel(self.r0, params, self.quadrature, self.price_decimals)

    def mean_square_error(self, params: Union[HestonParameters, Sequence[float]]) -> float:
        """
        Sum over quotes of (model call price - observed mid)^2.

        Despite the name the errors are summed, not averaged; existing
        calibration tolerances are expressed against the sum.
        """
        model = self._model(params)

        total = 0.0
        for quote in self.quotes:
            model_price = model.call_price(quote.strike, quote.maturity, quote.spot)
            difference = model_price - quote.mid_price
            total += difference * difference

        if not np.isfinite(total):
            logger.debug(f"Non-finite pricing error for {model.params}, using penalty")
            return self.invalid_penalty

        return float(total)

    __call__ = mean_square_error

    def pricing_errors(self, params: Union[HestonParameters, Sequence[float]]) -> pd.DataFrame:
        """Per-quote model price, market price and error, in quote order."""
        model = self._model(params)

        rows = []
        for quote in self.quotes:
            model_price = model.call_price(quote.strike, quote.maturity, quote.spot)
            rows.append({
                'spot': quote.spot,
                'maturity': quote.maturity,
                'strike': quote.strike,
                'market': quote.mid_price,
                'model': model_price,
                'error': model_price - quote.mid_price
            })

        return pd.DataFrame(rows, columns=['spot', 'maturity', 'strike', 'market', 'model', 'error'])
