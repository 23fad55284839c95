"""Market quote loading."""

from .loaders import load_option_quotes, add_quotes_from_frame

__all__ = [
    'load_option_quotes',
    'add_quotes_from_frame'
]
