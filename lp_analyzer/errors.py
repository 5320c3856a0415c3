"""
Valuation Errors
================

Failure kinds raised by the valuation core and its configuration layer.

  ValuationError           base class — everything the core can raise
  ├── ConfigurationError   unsupported chain / protocol pair
  ├── InputError           malformed or missing snapshot field
  │   └── DegenerateRangeError   tickLower > tickUpper
  └── UndefinedRatioError  ROI requested against a zero cost basis

Ambiguous stable/volatile classification is NOT an error: the result is
still produced and carries an advisory ``warning`` string instead.

Messages name the offending field and its Solidity type, never the raw
on-chain integer.
"""


class ValuationError(Exception):
    """Base class for every failure raised by the valuation pipeline."""


class ConfigurationError(ValuationError, ValueError):
    """Unsupported chain/protocol pair. Fatal, not retryable."""


class InputError(ValuationError, ValueError):
    """A snapshot field is missing, of the wrong type, or out of range."""


class DegenerateRangeError(InputError):
    """Tick bounds are inverted (tickLower > tickUpper)."""


class UndefinedRatioError(ValuationError, ZeroDivisionError):
    """ROI is undefined because the cost basis is zero."""
