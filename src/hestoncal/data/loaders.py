import pandas as pd
from pathlib import Path
from typing import Union
import logging

logger = logging.getLogger(__name__)

QUOTE_COLUMNS = ['spot', 'maturity', 'strike', 'mid_price']


def load_option_quotes(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load observed European call quotes from a CSV file.

    Expected columns (case and common aliases are tolerated):
    spot, maturity, strike, mid_price

    Args:
        path: CSV file path

    Returns:
        DataFrame with columns ['spot', 'maturity', 'strike', 'mid_price'],
        in file order
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Quote file not found: {path}")

    df = pd.read_csv(path)
    df = standardize_quote_columns(df)
    df = validate_quote_data(df)

    logger.info(f"Loaded {len(df)} option quotes from {path.name}")
    return df


def standardize_quote_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Standardize quote DataFrame column names.

    Args:
        df: Input DataFrame with various column naming conventions

    Returns:
        DataFrame with only the standardized quote columns
    """
    column_mapping = {
        # Spot
        'S': 'spot',
        'Spot': 'spot',
        'stock_price': 'spot',
        'underlying_price': 'spot',

        # Maturity
        'T': 'maturity',
        'Maturity': 'maturity',
        'time_to_expiry': 'maturity',
        'expiry': 'maturity',

        # Strike
        'K': 'strike',
        'Strike': 'strike',

        # Price
        'price': 'mid_price',
        'Price': 'mid_price',
        'mid': 'mid_price',
        'Mid': 'mid_price',
        'market_price': 'mid_price',
    }

    df = df.rename(columns=column_mapping)

    missing_cols = [col for col in QUOTE_COLUMNS if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns: {missing_cols}")

    return df[QUOTE_COLUMNS].apply(pd.to_numeric, errors='coerce')


def validate_quote_data(df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop incomplete rows. Values themselves are not range-checked.

    Args:
        df: Standardized quote DataFrame

    Returns:
        DataFrame without missing values
    """
    initial_rows = len(df)
    df = df.dropna(subset=QUOTE_COLUMNS).reset_index(drop=True)

    dropped = initial_rows - len(df)
    if dropped > 0:
        logger.warning(f"Dropped {dropped} quotes with missing values")

    return df


def add_quotes_from_frame(calibrator, df: pd.DataFrame) -> int:
    """
    Feed quote rows to a calibrator in DataFrame order.

    Args:
        calibrator: Object with an ``add_observed_option`` method
        df: DataFrame with the standard quote columns

    Returns:
        Number of quotes added
    """
    for row in df[QUOTE_COLUMNS].itertuples(index=False):
        calibrator.add_observed_option(row.spot, row.maturity, row.strike, row.mid_price)
    return len(df)
