import numpy as np
import pandas as pd
from typing import Iterator, List, Tuple
from dataclasses import dataclass, astuple
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketQuote:
    """
    One observed European call option.

    Values are taken as given; nothing is validated.
    """
    spot: float        # S
    maturity: float    # T, in years
    strike: float      # K
    mid_price: float   # observed mid


class QuoteBook:
    """
    Append-only, insertion-ordered collection of market quotes.

    Iteration order is the order quotes were added, which keeps error
    accumulation reproducible.
    """

    def __init__(self):
        self._quotes: List[MarketQuote] = []

    def add(self, spot: float, maturity: float, strike: float, mid_price: float) -> MarketQuote:
        """Append a quote and return it."""
        quote = MarketQuote(
            spot=float(spot),
            maturity=float(maturity),
            strike=float(strike),
            mid_price=float(mid_price)
        )
        self._quotes.append(quote)
        logger.debug(f"Added quote {quote}")
        return quote

    def snapshot(self) -> Tuple[MarketQuote, ...]:
        """Immutable view of the current quotes."""
        return tuple(self._quotes)

    def __len__(self) -> int:
        return len(self._quotes)

    def __iter__(self) -> Iterator[MarketQuote]:
        return iter(self.snapshot())

    def to_dataframe(self) -> pd.DataFrame:
        """Quotes as a DataFrame with one row per quote, in insertion order."""
        columns = ['spot', 'maturity', 'strike', 'mid_price']
        if not self._quotes:
            return pd.DataFrame(columns=columns, dtype=float)
        return pd.DataFrame([astuple(q) for q in self._quotes], columns=columns)

    def summary_stats(self) -> dict:
        """Basic description of the quoted surface."""
        if not self._quotes:
            return {'n_quotes': 0}

        strikes = np.array([q.strike for q in self._quotes])
        maturities = np.array([q.maturity for q in self._quotes])
        return {
            'n_quotes': len(self._quotes),
            'n_maturities': int(np.unique(maturities).size),
            'strike_range': (float(strikes.min()), float(strikes.max())),
            'maturity_range': (float(maturities.min()), float(maturities.max()))
        }
