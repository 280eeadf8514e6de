# Shared utilities: validators, retry
from signalforge.utils.retry import with_retry
from signalforge.utils.validators import clean_bars, validate_price, validate_ticker

__all__ = [
    "clean_bars",
    "validate_price",
    "validate_ticker",
    "with_retry",
]
